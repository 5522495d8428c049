from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

_MONTHS_SHORT = (
    "janv.", "févr.", "mars", "avr.", "mai", "juin",
    "juil.", "août", "sept.", "oct.", "nov.", "déc.",
)


def _parse(value: Union[datetime, str]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def format_relative_date(value: Union[datetime, str], now: Optional[datetime] = None) -> str:
    """French relative label for a past date: "Il y a 2 h", "Hier", "5 mars"...

    Day differences are counted on calendar days in the timezone of `value`.
    """
    d = _parse(value)
    if now is None:
        now = datetime.now(d.tzinfo)
    elif d.tzinfo is not None and now.tzinfo is None:
        now = now.replace(tzinfo=d.tzinfo)
    elif d.tzinfo is None and now.tzinfo is not None:
        d = d.replace(tzinfo=now.tzinfo)
    elif d.tzinfo is not None:
        now = now.astimezone(d.tzinfo)

    diff_seconds = (now - d).total_seconds()
    diff_mins = int(diff_seconds // 60)
    diff_hours = int(diff_seconds // 3600)
    diff_days = (date(now.year, now.month, now.day) - date(d.year, d.month, d.day)).days

    if diff_days == 0:
        if diff_mins < 1:
            return "À l'instant"
        if diff_mins < 60:
            return f"Il y a {diff_mins} min"
        if diff_hours < 24:
            return f"Il y a {diff_hours} h"
        return "Aujourd'hui"
    if diff_days == 1:
        return "Hier"
    if 2 <= diff_days <= 6:
        return f"Il y a {diff_days} jours"
    if diff_days == 7:
        return "Il y a 1 semaine"
    if 8 <= diff_days <= 13:
        return f"Il y a {diff_days} jours"
    return f"{d.day} {_MONTHS_SHORT[d.month - 1]}"
