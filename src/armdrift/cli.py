"""CLI entrypoint for armdrift."""

import logging
import os
import sys
from pathlib import Path

import click
from azure.core.exceptions import AzureError

from armdrift.azure.resource_graph import ResourceGraphService
from armdrift.config import load_config, load_config_file, write_sample_config
from armdrift.detector import Detector
from armdrift.errors import ArmDriftError, ConfigError
from armdrift.formatter import format_json, format_markdown, format_table
from armdrift.integrations.devops import AzureDevOpsClient
from armdrift.integrations.github import post_to_github_pr
from armdrift.integrations.slack import post_to_slack
from armdrift.integrations.teams import post_to_teams

FORMATTERS = {
    "console": format_table,
    "json": format_json,
    "markdown": format_markdown,
}


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(2)


def _parse_parameters(values: tuple[str, ...]) -> dict[str, str] | None:
    params = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key.strip():
            _fail(f"Invalid parameter {value!r}, expected KEY=VALUE")
        params[key.strip()] = val.strip()
    return params or None


def _target_options(func):
    """Options shared by every command that runs a detection."""
    func = click.option(
        "--config",
        "config_path",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Config file (defaults to ./.driftdetector.json when present).",
    )(func)
    func = click.option(
        "--parameter",
        "-p",
        multiple=True,
        help="Template parameter as KEY=VALUE. Repeatable.",
    )(func)
    func = click.option("--resource-group", "-g", required=True, help="Azure resource group name.")(func)
    func = click.option("--subscription", "-s", required=True, help="Azure subscription ID.")(func)
    func = click.option(
        "--template",
        "-t",
        required=True,
        type=click.Path(dir_okay=False, path_type=Path),
        help="Path to Bicep or ARM template file.",
    )(func)
    return func


def _run_detection(template, subscription, resource_group, parameter, config_path):
    parameters = _parse_parameters(parameter)
    try:
        config = load_config_file(config_path) if config_path else load_config(Path.cwd())
        detector = Detector(ResourceGraphService(), config=config)
        return detector.generate_report(
            template,
            subscription,
            resource_group,
            parameters=parameters,
        )
    except (ArmDriftError, AzureError, ValueError) as e:
        _fail(str(e))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose):
    """Azure Resource Drift Detector - know when reality diverges from your IaC."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@_target_options
@click.option(
    "--output",
    "-o",
    "output_format",
    type=click.Choice(list(FORMATTERS)),
    default="console",
    help="Output format.",
)
@click.option(
    "--output-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write output to a file instead of stdout.",
)
@click.option("--fail-on-drift", is_flag=True, help="Exit 1 if drift is detected.")
@click.option("--redact-values", is_flag=True, help="Hide property values in output.")
@click.option("--post-github-pr", type=int, default=None, help="Post report as GitHub PR comment.")
@click.option("--comment-id", default=None, help="Marker used to update an existing PR comment.")
def detect(
    template,
    subscription,
    resource_group,
    parameter,
    config_path,
    output_format,
    output_file,
    fail_on_drift,
    redact_values,
    post_github_pr,
    comment_id,
):
    """Detect drift between a template and Azure resources."""
    report = _run_detection(template, subscription, resource_group, parameter, config_path)

    output = FORMATTERS[output_format](report, redact=redact_values)
    if output_file is not None:
        output_file.write_text(output, encoding="utf-8")
        click.echo(f"Report written to: {output_file}")
    else:
        click.echo(output)

    if post_github_pr is not None:
        token = os.environ.get("GITHUB_TOKEN")
        repo = os.environ.get("GITHUB_REPO")
        if not token or not repo:
            _fail("GITHUB_TOKEN and GITHUB_REPO env vars required.")
        post_to_github_pr(
            report=report,
            repo=repo,
            pr_number=post_github_pr,
            token=token,
            identifier=comment_id,
            redact=redact_values,
        )

    sys.exit(1 if fail_on_drift and report.has_drift else 0)


@main.command()
@_target_options
@click.option("--slack-webhook", envvar="SLACK_WEBHOOK_URL", default=None, help="Slack webhook URL.")
@click.option("--teams-webhook", envvar="TEAMS_WEBHOOK_URL", default=None, help="Teams webhook URL.")
@click.option("--only-on-drift", is_flag=True, help="Only notify when drift is detected.")
def notify(
    template,
    subscription,
    resource_group,
    parameter,
    config_path,
    slack_webhook,
    teams_webhook,
    only_on_drift,
):
    """Send drift report notifications to Slack and/or Teams."""
    if not slack_webhook and not teams_webhook:
        _fail("At least one webhook URL is required (--slack-webhook or --teams-webhook)")

    report = _run_detection(template, subscription, resource_group, parameter, config_path)

    if only_on_drift and not report.has_drift:
        click.echo("No drift detected. Skipping notification.")
        sys.exit(0)

    if slack_webhook:
        post_to_slack(report=report, webhook_url=slack_webhook)
        click.echo("Sent notification to Slack")

    if teams_webhook:
        post_to_teams(report=report, webhook_url=teams_webhook)
        click.echo("Sent notification to Microsoft Teams")

    sys.exit(1 if report.has_drift else 0)


@main.command()
@_target_options
@click.option("--org-url", required=True, help="Azure DevOps organization URL.")
@click.option("--project", required=True, help="Azure DevOps project name.")
@click.option("--pr-id", type=int, required=True, help="Pull request ID to comment on.")
@click.option("--token", envvar="AZURE_DEVOPS_PAT", default=None, help="Azure DevOps PAT.")
@click.option("--comment-id", default=None, help="Marker used to update an existing comment.")
def devops(
    template,
    subscription,
    resource_group,
    parameter,
    config_path,
    org_url,
    project,
    pr_id,
    token,
    comment_id,
):
    """Post a drift report as an Azure DevOps PR comment."""
    if not token:
        _fail("Azure DevOps PAT is required. Use --token or set AZURE_DEVOPS_PAT.")

    report = _run_detection(template, subscription, resource_group, parameter, config_path)

    with AzureDevOpsClient(token) as client:
        if comment_id:
            client.upsert_pull_request_comment(org_url, project, pr_id, report, comment_id)
        else:
            client.post_pull_request_comment(org_url, project, pr_id, report)

    click.echo(f"Successfully posted drift report to PR #{pr_id}")
    sys.exit(1 if report.has_drift else 0)


@main.command()
@click.option(
    "--directory",
    "-d",
    type=click.Path(file_okay=False, exists=True, path_type=Path),
    default=None,
    help="Directory for the config file (defaults to the current directory).",
)
def init(directory):
    """Create a sample .driftdetector.json configuration file."""
    target = directory or Path.cwd()
    try:
        path = write_sample_config(target)
    except ConfigError as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    click.echo(f"Created sample configuration file: {path}")
