"""Rule-based insight extraction.

Insights are derived purely from an aggregation result and its comparison;
extracting them never issues a query.
"""

from erp_analyst.engine.comparisons import detect_declining, detect_lost, detect_new
from erp_analyst.engine.models import (
    Comparison,
    GroupTotal,
    GroupVariation,
    Insight,
    InsightType,
)

CONCENTRATION_THRESHOLD_PERCENT = 50.0
DOMINANCE_RATIO = 3.0
SWING_THRESHOLD_PERCENT = 10.0
MAX_INSIGHTS = 5
TOP_N = 3

_ICONS = {
    InsightType.SUCCESS: "📈",
    InsightType.ALERT: "📉",
    InsightType.WARNING: "⚠️",
    InsightType.INFO: "💡",
}


def _insight(
    kind: InsightType,
    title: str,
    description: str,
    priority: int,
    actionable: str | None = None,
) -> Insight:
    return Insight(
        type=kind,
        icon=_ICONS[kind],
        title=title,
        description=description,
        priority=priority,
        actionable=actionable,
    )


def _names(variations: list[GroupVariation], limit: int = 3) -> str:
    names = ", ".join(v.label for v in variations[:limit])
    extra = len(variations) - limit
    return f"{names} and {extra} more" if extra > 0 else names


def concentration_insights(groups: list[tuple[str, GroupTotal]], total: float) -> list[Insight]:
    """Top-N share and single-group dominance over groups ranked by total."""
    insights: list[Insight] = []
    if total <= 0 or not groups:
        return insights

    if len(groups) > TOP_N:
        top_share = sum(g.total for _, g in groups[:TOP_N]) / total * 100
        if top_share > CONCENTRATION_THRESHOLD_PERCENT:
            insights.append(_insight(
                InsightType.WARNING,
                "High concentration",
                f"The top {TOP_N} account for {top_share:.1f}% of the total.",
                2,
                "Reduce dependence on a few groups by growing the rest.",
            ))
        else:
            insights.append(_insight(
                InsightType.INFO,
                f"Top {TOP_N} share",
                f"The top {TOP_N} account for {top_share:.1f}% of the total.",
                5,
            ))

    if len(groups) >= 2:
        (first_label, first), (_, second) = groups[0], groups[1]
        if first.total > 0 and first.total > DOMINANCE_RATIO * second.total:
            share = first.total / total * 100
            insights.append(_insight(
                InsightType.INFO,
                f"{first_label} leads clearly",
                f"{first_label} contributes {share:.1f}% of the total, "
                f"more than {DOMINANCE_RATIO:g}x the next group.",
                3,
            ))
    return insights


def comparison_insights(comparison: Comparison) -> list[Insight]:
    """Overall swing against the previous period."""
    percent = comparison.variation.percent
    previous_label = comparison.previous.label
    if percent > SWING_THRESHOLD_PERCENT:
        return [_insight(
            InsightType.SUCCESS,
            "Growth vs previous period",
            f"Up {percent:.1f}% against {previous_label}.",
            1,
        )]
    if percent < -SWING_THRESHOLD_PERCENT:
        return [_insight(
            InsightType.ALERT,
            "Drop vs previous period",
            f"Down {abs(percent):.1f}% against {previous_label}.",
            1,
            "Review which groups explain the drop.",
        )]
    return []


def group_change_insights(variations: list[GroupVariation]) -> list[Insight]:
    """Declining, lost and new groups."""
    insights: list[Insight] = []
    declining = detect_declining(variations)
    if declining:
        insights.append(_insight(
            InsightType.ALERT,
            f"{len(declining)} declining",
            f"Falling more than 20%: {_names(declining)}.",
            2,
            "Follow up with the declining groups.",
        ))
    lost = detect_lost(variations)
    if lost:
        insights.append(_insight(
            InsightType.WARNING,
            f"{len(lost)} without activity",
            f"Active last period, none now: {_names(lost)}.",
            2,
            "Check whether these relationships are at risk.",
        ))
    new = detect_new(variations)
    if new:
        insights.append(_insight(
            InsightType.SUCCESS,
            f"{len(new)} new",
            f"Active this period only: {_names(new)}.",
            4,
        ))
    return insights


def extract_insights(
    groups: list[tuple[str, GroupTotal]] | None,
    total: float,
    comparison: Comparison | None = None,
    variations: list[GroupVariation] | None = None,
    max_insights: int = MAX_INSIGHTS,
) -> list[Insight]:
    """Run every rule and keep the highest-priority insights.

    Args:
        groups: Full list of groups ranked by total (not truncated).
        total: Total over the full result set.
        comparison: Period comparison, if one was computed.
        variations: Per-group variations, if the comparison was grouped.
        max_insights: Cap on returned insights.

    Returns:
        Insights sorted by priority (stable within a priority).
    """
    insights: list[Insight] = []
    if comparison is not None:
        insights.extend(comparison_insights(comparison))
    if groups:
        insights.extend(concentration_insights(groups, total))
    if variations:
        insights.extend(group_change_insights(variations))
    insights.sort(key=lambda insight: insight.priority)
    return insights[:max_insights]
