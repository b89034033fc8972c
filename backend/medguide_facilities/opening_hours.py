from __future__ import annotations

import re
from datetime import datetime

from medguide_core.models import CLOSED_DAY, WEEKDAYS, DayHours, Facility

_DAY_CODES = {
    "mo": "monday",
    "tu": "tuesday",
    "we": "wednesday",
    "th": "thursday",
    "fr": "friday",
    "sa": "saturday",
    "su": "sunday",
}
_DAY_ORDER = list(_DAY_CODES.keys())

_TIME_SPAN_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})\+?$")
_RULE_RE = re.compile(r"^(?P<days>[A-Za-z]{2}(?:\s*[-,]\s*[A-Za-z]{2})*)\s+(?P<times>.+)$")
_ALL_DAY = DayHours(open="00:00", close="24:00", all_day=True)


def _expand_days(spec: str) -> list[str]:
    days: list[str] = []
    for part in spec.replace(" ", "").lower().split(","):
        if not part:
            continue
        if "-" in part:
            start, _, end = part.partition("-")
            if start not in _DAY_CODES or end not in _DAY_CODES:
                return []
            i = _DAY_ORDER.index(start)
            j = _DAY_ORDER.index(end)
            span = _DAY_ORDER[i : j + 1] if i <= j else _DAY_ORDER[i:] + _DAY_ORDER[: j + 1]
            days.extend(_DAY_CODES[code] for code in span)
        else:
            if part not in _DAY_CODES:
                return []
            days.append(_DAY_CODES[part])
    return days


def _parse_span(span: str) -> tuple[str, str] | None:
    match = _TIME_SPAN_RE.match(span.strip())
    if not match:
        return None
    open_h, open_m, close_h, close_m = (int(part) for part in match.groups())
    if open_h > 24 or close_h > 24 or open_m > 59 or close_m > 59:
        return None
    return f"{open_h:02d}:{open_m:02d}", f"{close_h:02d}:{close_m:02d}"


def _parse_times(times: str) -> DayHours | None:
    cleaned = times.strip().lower()
    if cleaned in {"off", "closed"}:
        return CLOSED_DAY
    spans = [_parse_span(part) for part in cleaned.split(",") if part.strip()]
    if not spans or any(span is None for span in spans):
        return None
    if any(span == ("00:00", "24:00") for span in spans):
        return _ALL_DAY
    spans.sort()
    if len(spans) == 1:
        return DayHours(open=spans[0][0], close=spans[0][1])
    # Keep every span so breaks between them read as closed.
    return DayHours(open=spans[0][0], close=spans[-1][1], spans=tuple(spans))


def parse_opening_hours(raw: str | None) -> dict[str, DayHours]:
    schedule = {day: CLOSED_DAY for day in WEEKDAYS}
    text = (raw or "").strip()
    if not text:
        return schedule

    for rule in text.split(";"):
        rule = rule.strip()
        if not rule:
            continue
        if rule.lower() == "24/7":
            for day in WEEKDAYS:
                schedule[day] = _ALL_DAY
            continue

        match = _RULE_RE.match(rule)
        if match:
            days = _expand_days(match.group("days"))
            hours = _parse_times(match.group("times"))
        else:
            # Time-only rule such as "08:00-20:00" applies to every day.
            days = list(WEEKDAYS)
            hours = _parse_times(rule)
        if not days or hours is None:
            continue
        for day in days:
            schedule[day] = hours
    return schedule


def is_open_at(facility: Facility, when: datetime) -> bool:
    day = WEEKDAYS[when.weekday()]
    hours = facility.opening_hours.get(day, CLOSED_DAY)
    return hours.covers(when.strftime("%H:%M"))
