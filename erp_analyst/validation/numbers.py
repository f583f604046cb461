"""Amount and name scanning for model prose.

These are regex heuristics. They recognise the common ways an answer
writes money (``$ 5.200.000``, ``$128.000``, ``1.234,56``, ``1,234.56``,
``5k``, ``2,5 millones``) and the placeholder names models invent, but
they do not parse language; expect misses in unusual phrasings.
"""

import re
import unicodedata

_NUMBER_PATTERN = re.compile(
    r"(?P<currency>US\$|\$|USD|ARS)?\s*"
    r"(?<![\w.,])(?P<number>\d{1,3}(?:[.,]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?)(?![\d%])"
    r"(?:\s*(?P<suffix>millones|millon|millón|millions?|mil|[kK]|M)\b)?"
)

_MULTIPLIERS = {
    "k": 1_000,
    "mil": 1_000,
    "m": 1_000_000,
    "millon": 1_000_000,
    "millón": 1_000_000,
    "millones": 1_000_000,
    "million": 1_000_000,
    "millions": 1_000_000,
}

# Bare integers in this range without currency or separators are read as years
_YEAR_RANGE = (1900, 2100)

_GENERIC_NAME_PATTERNS = (
    # Letter excludes "I", which reads as the pronoun ("the customer I called")
    re.compile(
        r"\b(?i:cliente|customer|client|proveedor|supplier|vendor|empresa|company|"
        r"producto|product|vendedor|seller)\s+(?:[A-HJ-Z]|\d{1,2})\b"
    ),
    re.compile(r"\b(?:John|Jane)\s+(?:Doe|Smith)\b"),
    re.compile(r"\b(?:ABC|XYZ)\s+(?:S\.?A\.?|S\.?R\.?L\.?|Inc\.?|Corp\.?|Ltd\.?)(?!\w)"),
    re.compile(r"\b(?i:empresa|company|compañía)\s+(?i:ejemplo|example|demo)\b"),
)

KNOWN_FAKE_NAMES = (
    "Juan Pérez",
    "María García",
    "Pedro González",
    "Carlos López",
    "Ana Martínez",
    "José Rodríguez",
    "Laura Fernández",
    "Luis Sánchez",
    "Marta Gómez",
    "Jorge Díaz",
)


def strip_accents(text: str) -> str:
    """Remove diacritics so 'Pérez' and 'Perez' compare equal."""
    normalized = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


_FAKE_NAME_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(strip_accents(name)) for name in KNOWN_FAKE_NAMES) + r")\b",
    re.IGNORECASE,
)


def parse_number(raw: str) -> float:
    """Convert one number token to a float.

    With both '.' and ',' present the last one is the decimal separator.
    With one kind of separator, repeated use or exactly three trailing
    digits means thousands grouping; anything else is a decimal point.
    """
    if "." in raw and "," in raw:
        decimal = "." if raw.rfind(".") > raw.rfind(",") else ","
        thousands = "," if decimal == "." else "."
        return float(raw.replace(thousands, "").replace(decimal, "."))
    for separator in (".", ","):
        if separator in raw:
            head, _, tail = raw.rpartition(separator)
            if raw.count(separator) > 1 or len(tail) == 3:
                return float(raw.replace(separator, ""))
            return float(f"{head}.{tail}")
    return float(raw)


def extract_amounts(text: str) -> list[float]:
    """Positive numbers written in the text, with suffix multipliers applied.

    Bare four-digit years are skipped.
    """
    amounts = []
    for match in _NUMBER_PATTERN.finditer(text):
        raw = match.group("number")
        suffix = match.group("suffix")
        value = parse_number(raw)
        if suffix:
            value *= _MULTIPLIERS[suffix.lower()]
        elif (
            not match.group("currency")
            and raw.isdigit()
            and _YEAR_RANGE[0] <= value <= _YEAR_RANGE[1]
        ):
            continue
        if value > 0:
            amounts.append(value)
    return amounts


def has_numeric_data(text: str) -> bool:
    """Whether the text states a currency amount or a number above 100."""
    for match in _NUMBER_PATTERN.finditer(text):
        if match.group("currency"):
            return True
    return any(amount > 100 for amount in extract_amounts(text))


def find_generic_names(text: str) -> list[str]:
    """Placeholder entity names found in the text, in order of appearance."""
    found: list[tuple[int, str]] = []
    for pattern in _GENERIC_NAME_PATTERNS:
        found.extend((m.start(), m.group(0)) for m in pattern.finditer(text))
    plain = strip_accents(text)
    found.extend((m.start(), m.group(0)) for m in _FAKE_NAME_PATTERN.finditer(plain))
    seen = set()
    names = []
    for _, name in sorted(found):
        if name.lower() not in seen:
            seen.add(name.lower())
            names.append(name)
    return names


def mentions(text: str, name: str, prefix_length: int = 20) -> bool:
    """Whether the text mentions a group label (case and accent insensitive).

    Long labels match on their first ``prefix_length`` characters so
    "Distribuidora del Sur S.A." is found when written without the suffix.
    """
    needle = strip_accents(name).lower()[:prefix_length].strip()
    return bool(needle) and needle in strip_accents(text).lower()
