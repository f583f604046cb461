"""Rich formatting helpers for CLI output.

Each formatter returns either a Rich renderable or, with ``as_json``, a
JSON string.
"""

import json
from typing import Any

from rich.table import Table

from erp_analyst.validation.models import PreSendValidation, ValidationAction

ACTION_COLORS = {
    ValidationAction.SEND: "green",
    ValidationAction.WARN: "yellow",
    ValidationAction.REGENERATE: "red",
}

STATUS_COLORS = {
    "active": "green",
    "disabled": "dim",
    "error": "red",
}


def format_catalog(entries: list[dict[str, Any]], as_json: bool = False) -> Table | str:
    """Skill catalogue as a table."""
    if as_json:
        return json.dumps(entries, indent=2)
    if not entries:
        return "No skills available."

    table = Table(title="Skills", show_lines=False)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Integration")
    table.add_column("Tags", style="dim")
    table.add_column("Priority", justify="right")
    table.add_column("Description")
    for entry in entries:
        table.add_row(
            entry["name"],
            entry["integration"],
            ", ".join(entry.get("tags", [])),
            str(entry.get("priority", 0)),
            entry["description"],
        )
    return table


def format_integrations(rows: list[dict[str, Any]], as_json: bool = False) -> Table | str:
    """Tenant integrations as a table (never includes secrets)."""
    if as_json:
        return json.dumps(rows, indent=2, default=str)
    if not rows:
        return "No integrations configured."

    table = Table(title="Integrations")
    table.add_column("Integration", style="cyan")
    table.add_column("Status")
    table.add_column("URL")
    table.add_column("Database")
    table.add_column("Username")
    table.add_column("Updated")
    for row in rows:
        color = STATUS_COLORS.get(row["status"], "white")
        table.add_row(
            row["integration"],
            f"[{color}]{row['status']}[/{color}]",
            row.get("url") or "-",
            row.get("database") or "-",
            row.get("username") or "-",
            (row.get("updated_at") or "-")[:19],
        )
    return table


def format_validation(validation: PreSendValidation, as_json: bool = False) -> Table | str:
    """Validator verdict with its issues."""
    if as_json:
        return validation.model_dump_json(indent=2)

    color = ACTION_COLORS[validation.action]
    table = Table(
        title=f"[{color}]{validation.action.value}[/{color}] (confidence {validation.confidence})",
    )
    table.add_column("Type")
    table.add_column("Severity")
    table.add_column("Description")
    table.add_column("Suggestion", style="dim")
    for issue in validation.issues:
        table.add_row(issue.type.value, issue.severity.value, issue.description, issue.suggestion)
    return table
