"""Period-over-period comparison helpers."""

from erp_analyst.engine.models import GroupTotal, GroupVariation, Trend, Variation

TREND_EPSILON_PERCENT = 1.0
DECLINE_THRESHOLD_PERCENT = 20.0
LOST_MIN_PREVIOUS = 1000.0


def classify_trend(percent: float, epsilon: float = TREND_EPSILON_PERCENT) -> Trend:
    """UP/DOWN outside the +/- epsilon band, FLAT inside it."""
    if percent > epsilon:
        return Trend.UP
    if percent < -epsilon:
        return Trend.DOWN
    return Trend.FLAT


def calculate_variation(
    current: float,
    previous: float,
    epsilon: float = TREND_EPSILON_PERCENT,
) -> Variation:
    """Absolute and percentage change from ``previous`` to ``current``.

    A zero previous value yields 100% when current is positive and 0%
    otherwise, rather than dividing by zero.
    """
    amount = current - previous
    if previous == 0:
        percent = 100.0 if current > 0 else 0.0
    else:
        percent = amount / abs(previous) * 100
    return Variation(
        amount=round(amount, 2),
        percent=round(percent, 1),
        trend=classify_trend(percent, epsilon),
    )


def compare_grouped(
    current: dict[str, GroupTotal],
    previous: dict[str, GroupTotal],
) -> list[GroupVariation]:
    """Per-label variation over the union of both periods' groups.

    Ordered by current total descending, then groups that only exist in
    the previous period.
    """
    labels = list(current) + [label for label in previous if label not in current]
    variations = []
    for label in labels:
        cur = current[label].total if label in current else 0.0
        prev = previous[label].total if label in previous else 0.0
        variations.append(
            GroupVariation(label=label, current=cur, previous=prev, variation=calculate_variation(cur, prev))
        )
    return variations


def detect_declining(
    variations: list[GroupVariation],
    threshold_percent: float = DECLINE_THRESHOLD_PERCENT,
) -> list[GroupVariation]:
    """Groups still present but down by more than the threshold, steepest first."""
    declining = [
        v for v in variations
        if v.previous > 0 and v.current > 0 and v.variation.percent <= -threshold_percent
    ]
    return sorted(declining, key=lambda v: v.variation.percent)


def detect_new(variations: list[GroupVariation]) -> list[GroupVariation]:
    """Groups with activity now and none in the previous period."""
    return [v for v in variations if v.previous == 0 and v.current > 0]


def detect_lost(
    variations: list[GroupVariation],
    min_previous: float = LOST_MIN_PREVIOUS,
) -> list[GroupVariation]:
    """Groups that had meaningful activity before and none now, largest first."""
    lost = [v for v in variations if v.current == 0 and v.previous >= min_previous]
    return sorted(lost, key=lambda v: v.previous, reverse=True)
