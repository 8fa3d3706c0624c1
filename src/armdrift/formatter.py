"""Output formatters for drift reports."""

import io
import json
import re
from typing import Any

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from armdrift.jsonvalue import ABSENT, Number, dump_json, to_python
from armdrift.models import DriftKind, DriftReport, DriftResult, DriftStatus

STATUS_STYLES = {
    DriftStatus.IN_SYNC: ("green", "✓", "IN SYNC"),
    DriftStatus.DRIFTED: ("red", "✗", "DRIFTED"),
    DriftStatus.MISSING: ("yellow", "⚠", "MISSING"),
    DriftStatus.UNMANAGED: ("blue", "?", "UNMANAGED"),
    DriftStatus.ERROR: ("bold red", "!", "ERROR"),
}

KIND_STYLES = {
    DriftKind.MODIFIED: ("yellow", "~"),
    DriftKind.MISSING: ("red", "-"),
    DriftKind.ADDED: ("green", "+"),
    DriftKind.TYPE_CHANGED: ("magenta", "!"),
}

MARKDOWN_STATUS_EMOJI = {
    DriftStatus.IN_SYNC: ":white_check_mark:",
    DriftStatus.DRIFTED: ":x:",
    DriftStatus.MISSING: ":warning:",
    DriftStatus.UNMANAGED: ":question:",
    DriftStatus.ERROR: ":exclamation:",
}

REDACTED = "[REDACTED]"
NOT_SET = "_not set_"
PR_COMMENT_MAX_DRIFTS = 10


def _escape_md_cell(value: str) -> str:
    """Escape characters that break markdown table cells."""
    return value.replace("|", "\\|").replace("\n", " ")


def _truncate(value: str, limit: int) -> str:
    return value if len(value) <= limit else value[: limit - 3] + "..."


def _render(value: Any, *, redact: bool) -> str | None:
    """Compact text for a drift value, or None when the value is absent."""
    if value is ABSENT:
        return None
    return REDACTED if redact else dump_json(value)


def _md_value(value: Any, limit: int, *, redact: bool) -> str:
    text = _render(value, redact=redact)
    if text is None:
        return NOT_SET
    return f"`{_truncate(_escape_md_cell(text), limit)}`"


class _RawNumbers:
    """Stands in for numbers during ``json.dumps`` and splices their raw text back in."""

    _TOKEN = "\x00number:"
    _PATTERN = re.compile(r'"\\u0000number:(\d+)"')

    def __init__(self):
        self._raw: list[str] = []

    def __call__(self, number: Number) -> str:
        self._raw.append(number.raw)
        return f"{self._TOKEN}{len(self._raw) - 1}"

    def splice(self, text: str) -> str:
        return self._PATTERN.sub(lambda m: self._raw[int(m.group(1))], text)


def _json_value(value: Any, numbers: _RawNumbers, *, redact: bool) -> Any:
    if value is ABSENT:
        return None
    return REDACTED if redact else to_python(value, numbers)


def format_json(report: DriftReport, *, redact: bool = False) -> str:
    """Format a report as JSON. Numbers keep the exact text they were read with."""
    numbers = _RawNumbers()

    results = []
    for r in report.results:
        results.append(
            {
                "resource_id": r.resource_id,
                "resource_type": r.resource_type,
                "resource_name": r.resource_name,
                "status": r.status.value,
                "error_message": r.error_message,
                "drifts": [
                    {
                        "property_path": d.property_path,
                        "kind": d.kind.value,
                        "expected_value": _json_value(d.expected_value, numbers, redact=redact),
                        "actual_value": _json_value(d.actual_value, numbers, redact=redact),
                    }
                    for d in r.drifts
                ],
            }
        )

    text = json.dumps(
        {
            "generated_at": report.generated_at.isoformat(),
            "template_path": report.template_path,
            "subscription_id": report.subscription_id,
            "resource_group": report.resource_group,
            "summary": {
                "total_resources": report.total_resources,
                "in_sync": report.in_sync_count,
                "drifted": report.drifted_count,
                "missing": report.missing_count,
                "unmanaged": report.unmanaged_count,
                "errors": report.error_count,
                "has_drift": report.has_drift,
            },
            "results": results,
        },
        indent=2,
    )
    return numbers.splice(text)


def _markdown_result(result: DriftResult, *, redact: bool) -> list[str]:
    emoji = MARKDOWN_STATUS_EMOJI[result.status]
    lines = [
        f"### {emoji} {_escape_md_cell(result.resource_name)}",
        "",
        f"- **Type:** `{result.resource_type}`",
        f"- **Status:** {result.status.value}",
    ]
    if result.error_message:
        lines.append(f"- **Error:** {_escape_md_cell(result.error_message)}")
    lines.append("")

    if result.drifts:
        lines.append("| Property | Expected | Actual | Type |")
        lines.append("|----------|----------|--------|------|")
        for d in result.drifts:
            lines.append(
                f"| `{_escape_md_cell(d.property_path)}` "
                f"| {_md_value(d.expected_value, 50, redact=redact)} "
                f"| {_md_value(d.actual_value, 50, redact=redact)} "
                f"| {d.kind.value} |"
            )
        lines.append("")

    return lines


def format_markdown(report: DriftReport, *, redact: bool = False) -> str:
    """Format a report as Markdown."""
    lines = [
        "# Azure Resource Drift Report",
        "",
        f"**Generated:** {report.generated_at:%Y-%m-%d %H:%M:%S} UTC",
        "",
        "## Configuration",
        "",
        f"- **Template:** `{report.template_path}`",
        f"- **Subscription:** `{report.subscription_id or 'N/A'}`",
        f"- **Resource Group:** `{report.resource_group or 'N/A'}`",
        "",
        "## Summary",
        "",
        "| Status | Count |",
        "|--------|-------|",
        f"| :white_check_mark: In Sync | {report.in_sync_count} |",
        f"| :x: Drifted | {report.drifted_count} |",
        f"| :warning: Missing | {report.missing_count} |",
        f"| :question: Unmanaged | {report.unmanaged_count} |",
    ]
    if report.error_count:
        lines.append(f"| :exclamation: Errors | {report.error_count} |")
    lines.append("")

    not_in_sync = [r for r in report.results if r.status != DriftStatus.IN_SYNC]
    if not_in_sync:
        lines.append("## Drift Details")
        lines.append("")
        for result in not_in_sync:
            lines.extend(_markdown_result(result, redact=redact))
    else:
        lines.append("> :tada: All resources are in sync with the template!")

    return "\n".join(lines)


def format_pr_comment(report: DriftReport, identifier: str | None = None, *, redact: bool = False) -> str:
    """Format a compact Markdown comment for pull requests.

    ``identifier`` is embedded as a hidden HTML comment so the comment can be found
    and updated later.
    """
    lines = []
    if identifier:
        lines.append(f"<!-- {identifier} -->")

    status = "⚠️ Drift Detected" if report.has_drift else "✅ No Drift Detected"
    lines.extend(
        [
            "## 🔍 Azure Resource Drift Report",
            "",
            f"**Status:** {status}",
            "",
            "### Summary",
            "",
            "| Metric | Count |",
            "|--------|-------|",
            f"| ✅ In Sync | {report.in_sync_count} |",
            f"| ❌ Drifted | {report.drifted_count} |",
            f"| ⚠️ Missing | {report.missing_count} |",
            f"| ❓ Unmanaged | {report.unmanaged_count} |",
            "",
        ]
    )

    drifted = [r for r in report.results if r.status == DriftStatus.DRIFTED]
    if drifted:
        lines.append("### Drifted Resources")
        lines.append("")
        for result in drifted:
            lines.append(f"#### ❌ {_escape_md_cell(result.resource_name)}")
            lines.append(f"Type: `{result.resource_type}`")
            lines.append("")
            lines.append("| Property | Expected | Actual |")
            lines.append("|----------|----------|--------|")
            for d in result.drifts[:PR_COMMENT_MAX_DRIFTS]:
                lines.append(
                    f"| `{_escape_md_cell(d.property_path)}` "
                    f"| {_md_value(d.expected_value, 40, redact=redact)} "
                    f"| {_md_value(d.actual_value, 40, redact=redact)} |"
                )
            if len(result.drifts) > PR_COMMENT_MAX_DRIFTS:
                lines.append(f"| ... | _+{len(result.drifts) - PR_COMMENT_MAX_DRIFTS} more_ | |")
            lines.append("")

    lines.append("---")
    lines.append(f"_Generated by armdrift at {report.generated_at:%Y-%m-%d %H:%M:%SZ}_")
    return "\n".join(lines)


def _rich_result(result: DriftResult, *, redact: bool) -> Group:
    color, icon, label = STATUS_STYLES[result.status]
    header = Panel(
        Text.from_markup(
            f"[bold]{escape(result.resource_name)}[/bold]\n[dim]{escape(result.resource_type)}[/dim]"
        ),
        title=f"[{color}]{icon} {label}[/{color}]",
        title_align="left",
        border_style=color,
    )
    parts: list[Any] = [header]

    if result.error_message:
        parts.append(Text.from_markup(f"  [red]Error: {escape(result.error_message)}[/red]"))

    if result.drifts:
        table = Table(show_edge=False, header_style="dim")
        table.add_column("Type", no_wrap=True)
        table.add_column("Property")
        table.add_column("Expected")
        table.add_column("Actual")
        for d in result.drifts:
            kind_color, kind_icon = KIND_STYLES[d.kind]
            expected = _render(d.expected_value, redact=redact)
            actual = _render(d.actual_value, redact=redact)
            table.add_row(
                Text(f"{kind_icon} {d.kind.value}", style=kind_color),
                Text(d.property_path),
                Text(_truncate(expected, 60), style="green") if expected is not None else Text("-", style="dim"),
                Text(_truncate(actual, 60), style="red") if actual is not None else Text("-", style="dim"),
            )
        parts.append(table)

    return Group(*parts)


def format_table(report: DriftReport, *, redact: bool = False) -> str:
    """Format a report with Rich panels and tables, returned as a string."""
    console = Console(record=True, width=120, file=io.StringIO())
    console.print(Panel("[bold]Azure Resource Drift Report[/bold]", border_style="blue"))

    info = Table.grid(padding=(0, 2))
    info.add_column(style="dim", width=16)
    info.add_column()
    info.add_row("Template:", escape(report.template_path))
    info.add_row("Subscription:", escape(report.subscription_id or "N/A"))
    info.add_row("Resource Group:", escape(report.resource_group or "N/A"))
    info.add_row("Generated:", f"{report.generated_at:%Y-%m-%d %H:%M:%S} UTC")
    console.print(info)

    summary = Table(title="Summary")
    summary.add_column("Status", justify="center")
    summary.add_column("Count", justify="center")
    summary.add_row("[green]✓ In Sync[/green]", f"[green]{report.in_sync_count}[/green]")
    summary.add_row("[red]✗ Drifted[/red]", f"[red]{report.drifted_count}[/red]")
    summary.add_row("[yellow]⚠ Missing[/yellow]", f"[yellow]{report.missing_count}[/yellow]")
    summary.add_row("[blue]? Unmanaged[/blue]", f"[blue]{report.unmanaged_count}[/blue]")
    if report.error_count:
        summary.add_row("[red]! Errors[/red]", f"[red]{report.error_count}[/red]")
    console.print(summary)

    not_in_sync = [r for r in report.results if r.status != DriftStatus.IN_SYNC]
    if not_in_sync:
        console.rule("[bold]Drift Details[/bold]", align="left")
        for result in not_in_sync:
            console.print(_rich_result(result, redact=redact))
    else:
        console.print(
            Panel("[green]✓ All resources are in sync with the template.[/green]", border_style="green")
        )

    return console.export_text()
