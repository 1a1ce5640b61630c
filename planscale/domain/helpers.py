import re

from planscale.constants import CM_PER_INCH, INCHES_PER_FOOT, INCHES_PER_METER, MM_PER_INCH

UNIT_CHOICES = ("ft", "in", "mm", "cm", "m")

_INCHES_PER_UNIT = {
    "in": 1.0,
    "ft": INCHES_PER_FOOT,
    "mm": 1.0 / MM_PER_INCH,
    "cm": 1.0 / CM_PER_INCH,
    "m": INCHES_PER_METER,
}


def parse_length_to_inches(raw: str, default_unit: str = "in") -> float:
    """Parse user-entered lengths into inches."""
    if raw is None:
        raise ValueError("Missing length.")
    s = str(raw).strip().lower()
    if not s:
        raise ValueError("Missing length.")

    s = s.replace("feet", "ft").replace("foot", "ft").replace("inches", "in").replace("inch", "in")
    s = s.replace("millimeters", "mm").replace("millimeter", "mm")
    s = s.replace("centimeters", "cm").replace("centimeter", "cm")
    s = s.replace("meters", "m").replace("meter", "m")
    s = s.replace("”", "\"").replace("“", "\"").replace("′", "'").replace("″", "\"")
    s = " ".join(s.split())

    if "'" in s:
        left, right = s.split("'", 1)
        feet = float(left.strip() or "0")
        right = right.strip().lstrip("-").strip()
        inches = 0.0
        if right:
            right = right.replace('"', "").replace("in", "").strip()
            if right:
                inches = float(right)
        return feet * INCHES_PER_FOOT + inches

    if "ft" in s:
        parts = s.split("ft", 1)
        feet = float(parts[0].strip() or "0")
        rest = parts[1].strip()
        inches = 0.0
        if rest:
            rest = rest.replace("in", "").replace('"', "").strip()
            if rest:
                inches = float(rest)
        return feet * INCHES_PER_FOOT + inches

    unit_re = re.compile(r'([+-]?\d+(?:\.\d+)?)\s*(mm|cm|ft|in|m|")')
    matches = list(unit_re.finditer(s))
    if matches:
        consumed = unit_re.sub("", s)
        consumed = consumed.replace(",", " ").strip()
        if consumed:
            raise ValueError(f"Could not parse length: {raw}")
        total_inches = 0.0
        for match in matches:
            unit = "in" if match.group(2) == '"' else match.group(2)
            total_inches += float(match.group(1)) * _INCHES_PER_UNIT[unit]
        return total_inches

    value = float(s)
    unit = (default_unit or "in").strip().lower()
    if unit not in UNIT_CHOICES:
        unit = "in"
    return value * _INCHES_PER_UNIT[unit]


def parse_length(raw, unit: str = "ft") -> float:
    """Parse a length and express it in ``unit``. Bare numbers are taken as ``unit``."""
    if isinstance(raw, (int, float)):
        return float(raw)
    unit = (unit or "ft").strip().lower()
    if unit not in _INCHES_PER_UNIT:
        raise ValueError(f"Unsupported unit: {unit}")
    inches = parse_length_to_inches(raw, default_unit=unit)
    return inches / _INCHES_PER_UNIT[unit]


def area_unit_for(linear_unit: str) -> str:
    return f"sq {linear_unit}"


def format_value(value: float, unit: str) -> str:
    if unit == "count":
        return f"{round(value)} ea"
    if unit == "text":
        return ""
    return f"{value:.2f} {unit}"


__all__ = [
    "UNIT_CHOICES",
    "area_unit_for",
    "format_value",
    "parse_length",
    "parse_length_to_inches",
]
