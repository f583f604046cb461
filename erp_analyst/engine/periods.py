"""Natural-language period resolution.

Turns tokens such as "this month", "last 30 days", "marzo 2025" or
"week 2 of january" into inclusive DateRange pairs, relative to "today" in
the tenant's timezone. English and Spanish phrasings are accepted; accents
and case are ignored. Anything outside the vocabulary raises a validation
QueryEngineError instead of falling back to a default.
"""

import calendar
import re
import unicodedata
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from erp_analyst.engine.models import DateRange, QueryEngineError

MONTHS: dict[str, int] = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "enero": 1, "febrero": 2, "marzo": 3, "abril": 4, "mayo": 5, "junio": 6,
    "julio": 7, "agosto": 8, "septiembre": 9, "setiembre": 9, "octubre": 10,
    "noviembre": 11, "diciembre": 12,
}

_ALIASES: dict[str, str] = {
    "hoy": "today",
    "ayer": "yesterday",
    "esta semana": "this week",
    "semana actual": "this week",
    "semana pasada": "last week",
    "la semana pasada": "last week",
    "semana anterior": "last week",
    "este mes": "this month",
    "mes actual": "this month",
    "current month": "this month",
    "mes pasado": "last month",
    "el mes pasado": "last month",
    "mes anterior": "last month",
    "previous month": "last month",
    "este trimestre": "this quarter",
    "trimestre actual": "this quarter",
    "trimestre pasado": "last quarter",
    "el trimestre pasado": "last quarter",
    "trimestre anterior": "last quarter",
    "este ano": "this year",
    "ano actual": "this year",
    "current year": "this year",
    "ano pasado": "last year",
    "el ano pasado": "last year",
    "ano anterior": "last year",
    "previous year": "last year",
}

_LAST_N_DAYS = re.compile(r"^(?:last|past|(?:los )?ultimos) (\d{1,4}) (?:days?|dias?)$")
_MONTH_YEAR = re.compile(r"^([a-z]+)(?: (?:de |del )?(\d{4}))?$")
_WEEK_OF_MONTH = re.compile(
    r"^(?:week|semana) ([1-5]) (?:of|de|del) ([a-z]+)(?: (?:de |del )?(\d{4}))?$"
)
_YEAR = re.compile(r"^(\d{4})$")
_ISO_MONTH = re.compile(r"^(\d{4})-(\d{2})$")
_ISO_DAY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

ACCEPTED_PERIODS = (
    "today, yesterday, this/last week, this/last month, this/last quarter, "
    "this/last year, last N days, <month> [year], week N of <month>, YYYY, "
    "YYYY-MM, YYYY-MM-DD"
)


def normalize_token(token: str) -> str:
    """Lowercase, strip accents, and collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", token)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(stripped.lower().replace("_", " ").split())


def today_in(timezone: str) -> date:
    """Current date in the given IANA timezone."""
    return datetime.now(ZoneInfo(timezone)).date()


def month_range(year: int, month: int, label: str | None = None) -> DateRange:
    """Full calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return DateRange(start=date(year, month, 1), end=date(year, month, last_day), label=label)


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _quarter_range(year: int, quarter: int, label: str) -> DateRange:
    first_month = (quarter - 1) * 3 + 1
    start = date(year, first_month, 1)
    end = month_range(year, first_month + 2).end
    return DateRange(start=start, end=end, label=label)


def _unresolvable(token: str) -> QueryEngineError:
    return QueryEngineError.from_code("E-1002", token=token, accepted=ACCEPTED_PERIODS)


def resolve_period(token: str, *, today: date) -> DateRange:
    """Resolve a period token to an inclusive date range.

    Calendar periods ("this month", "this year", ...) cover the whole
    calendar unit, including days after ``today``. A bare month name refers
    to the current year, or to the previous year when that month has not
    started yet.

    Args:
        token: Period phrase in English or Spanish.
        today: Reference date in the tenant's timezone.

    Returns:
        DateRange labelled with the original token.

    Raises:
        QueryEngineError: E-1002 when the token is not in the vocabulary.
    """
    if not token or not token.strip():
        raise _unresolvable(token or "")
    label = token.strip()
    key = normalize_token(token)
    key = _ALIASES.get(key, key)

    if key == "today":
        return DateRange(start=today, end=today, label=label)
    if key == "yesterday":
        day = today - timedelta(days=1)
        return DateRange(start=day, end=day, label=label)
    if key in ("this week", "last week"):
        monday = today - timedelta(days=today.weekday())
        if key == "last week":
            monday -= timedelta(days=7)
        return DateRange(start=monday, end=monday + timedelta(days=6), label=label)
    if key in ("this month", "last month"):
        year, month = _shift_month(today.year, today.month, -1 if key == "last month" else 0)
        return month_range(year, month, label)
    if key in ("this quarter", "last quarter"):
        quarter = (today.month - 1) // 3 + 1
        year = today.year
        if key == "last quarter":
            quarter -= 1
            if quarter == 0:
                quarter, year = 4, year - 1
        return _quarter_range(year, quarter, label)
    if key in ("this year", "last year"):
        year = today.year - (1 if key == "last year" else 0)
        return DateRange(start=date(year, 1, 1), end=date(year, 12, 31), label=label)

    match = _LAST_N_DAYS.match(key)
    if match:
        days = int(match.group(1))
        if days < 1:
            raise _unresolvable(token)
        return DateRange(start=today - timedelta(days=days - 1), end=today, label=label)

    match = _YEAR.match(key)
    if match:
        year = int(match.group(1))
        return DateRange(start=date(year, 1, 1), end=date(year, 12, 31), label=label)

    match = _ISO_MONTH.match(key)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if not 1 <= month <= 12:
            raise _unresolvable(token)
        return month_range(year, month, label)

    match = _ISO_DAY.match(key)
    if match:
        try:
            day = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError as e:
            raise _unresolvable(token) from e
        return DateRange(start=day, end=day, label=label)

    match = _WEEK_OF_MONTH.match(key)
    if match and match.group(2) in MONTHS:
        month = MONTHS[match.group(2)]
        year = _year_for_month(month, match.group(3), today)
        full = month_range(year, month)
        week = int(match.group(1))
        start = full.start + timedelta(days=(week - 1) * 7)
        if start > full.end:
            raise _unresolvable(token)
        end = min(start + timedelta(days=6), full.end)
        return DateRange(start=start, end=end, label=label)

    match = _MONTH_YEAR.match(key)
    if match and match.group(1) in MONTHS:
        month = MONTHS[match.group(1)]
        year = _year_for_month(month, match.group(2), today)
        return month_range(year, month, label)

    raise _unresolvable(token)


def _year_for_month(month: int, explicit_year: str | None, today: date) -> int:
    if explicit_year:
        return int(explicit_year)
    return today.year - 1 if month > today.month else today.year


def resolve_date_range(
    date_range: DateRange | None = None,
    period: str | None = None,
    *,
    today: date,
) -> DateRange | None:
    """Resolve an explicit range or a period token (explicit range wins)."""
    if date_range is not None:
        return date_range
    if period:
        return resolve_period(period, today=today)
    return None


def previous_period(date_range: DateRange) -> DateRange:
    """The immediately preceding period of equal length.

    Ranges made of whole calendar months map to the same number of whole
    months before them (so February compares against all of January);
    any other range maps to the same number of days ending the day before
    ``start``.
    """
    start, end = date_range.start, date_range.end
    is_whole_months = start.day == 1 and end == month_range(end.year, end.month).end
    if is_whole_months:
        months = (end.year - start.year) * 12 + (end.month - start.month) + 1
        prev_start_year, prev_start_month = _shift_month(start.year, start.month, -months)
        prev_end_year, prev_end_month = _shift_month(start.year, start.month, -1)
        return DateRange(
            start=date(prev_start_year, prev_start_month, 1),
            end=month_range(prev_end_year, prev_end_month).end,
            label=f"previous {months} month(s)" if months > 1 else "previous month",
        )
    prev_end = start - timedelta(days=1)
    prev_start = prev_end - timedelta(days=date_range.days - 1)
    return DateRange(start=prev_start, end=prev_end, label=f"previous {date_range.days} day(s)")
