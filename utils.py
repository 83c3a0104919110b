# utils.py
from datetime import datetime, timezone

import pytz


def utc_now():
    # All DateTime columns store naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def resolve_timezone(name, default="UTC"):
    try:
        return pytz.timezone(name or default)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(default)
