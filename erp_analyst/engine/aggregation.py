"""Post-processing of raw ``read_group`` rows.

Rows are decoded leniently: many2one keys arrive as ``[id, name]``
pairs, empty keys as ``False``, and aggregates may be missing or ``False``
when a group has no values.
"""

from typing import Any

from erp_analyst.engine.models import GroupTotal

UNASSIGNED_LABEL = "Unassigned"


def as_number(value: Any) -> float:
    """Numeric aggregate value, 0.0 for missing/False/non-numeric values."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def group_label(value: Any) -> str:
    """Display label of a group key."""
    if isinstance(value, (list, tuple)):
        if len(value) >= 2 and value[1] not in (None, False, ""):
            return str(value[1])
        return UNASSIGNED_LABEL
    if value in (None, False, ""):
        return UNASSIGNED_LABEL
    return str(value)


def group_count(row: dict[str, Any], key: str) -> int:
    """Record count of a group row (``<key>_count`` in lazy mode, ``__count`` otherwise)."""
    field = key.split(":", 1)[0]
    for candidate in (f"{key}_count", f"{field}_count", "__count"):
        value = row.get(candidate)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return 0


def rows_to_groups(
    rows: list[dict[str, Any]],
    group_by: list[str],
    amount_field: str | None,
) -> list[tuple[str, GroupTotal]]:
    """Convert rows to (label, GroupTotal) pairs in row order.

    Multi-level groupings join their labels with " / ". Rows that resolve to
    the same label (two partners sharing a display name) are merged so no
    amount is dropped.
    """
    merged: dict[str, GroupTotal] = {}
    for row in rows:
        label = " / ".join(group_label(row.get(key)) for key in group_by)
        total = as_number(row.get(amount_field)) if amount_field else 0.0
        count = group_count(row, group_by[0]) if group_by else 0
        existing = merged.get(label)
        if existing is None:
            merged[label] = GroupTotal(total=total, count=count)
        else:
            merged[label] = GroupTotal(total=existing.total + total, count=existing.count + count)
    return list(merged.items())


def sort_groups(groups: list[tuple[str, GroupTotal]]) -> list[tuple[str, GroupTotal]]:
    """Descending by total; ties keep label order so output is stable."""
    return sorted(groups, key=lambda item: (-item[1].total, item[0]))


def summarize_groups(
    groups: list[tuple[str, GroupTotal]],
    *,
    limit: int | None = None,
    keep_order: bool = False,
) -> tuple[dict[str, GroupTotal], float, int, bool]:
    """Rank, truncate, and total a full list of groups.

    Totals are computed over every group before truncation, so a display
    limit can never understate them.

    Args:
        groups: All groups of the result set.
        limit: Display limit; None keeps every group.
        keep_order: Keep the given order (caller asked for an explicit one)
            instead of sorting by descending total.

    Returns:
        (grouped map in display order, total, count, truncated)
    """
    total = sum(group.total for _, group in groups)
    count = sum(group.count for _, group in groups)
    ordered = groups if keep_order else sort_groups(groups)
    truncated = limit is not None and len(ordered) > limit
    shown = ordered[:limit] if truncated else ordered
    return dict(shown), total, count, truncated


def flat_total(rows: list[dict[str, Any]], amount_field: str | None) -> tuple[float, int]:
    """Total and count from an ungrouped ``read_group`` (zero or one row)."""
    total = 0.0
    count = 0
    for row in rows:
        if amount_field:
            total += as_number(row.get(amount_field))
        count += group_count(row, "")
    return total, count
