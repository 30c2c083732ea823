"""Month bucket keys (``YYYY-MM``) used by every monthly aggregate."""

from datetime import date


def normalize_month(month=None, date_value=None):
    """Canonicalize a stored month field into a ``YYYY-MM`` bucket key.

    ``"2025-1"`` becomes ``"2025-01"``. A month string that does not split
    into exactly two parts is returned unchanged. Without a month the first
    seven characters of ``date_value`` are used, and with neither an empty
    string is returned, meaning the record cannot be bucketed.
    """
    if month:
        parts = month.split("-")
        if len(parts) == 2:
            return f"{parts[0]}-{parts[1].zfill(2)}"
        return month
    if date_value:
        return date_value[:7]
    return ""


def month_key(day):
    return day.strftime("%Y-%m")


def previous_month(day):
    if day.month == 1:
        return date(day.year - 1, 12, 1)
    return date(day.year, day.month - 1, 1)


def rolling_month_keys(today, count=12):
    """The ``count`` month keys ending with ``today``'s month, oldest first."""
    month_cursor = date(today.year, today.month, 1)
    month_keys = []
    for _ in range(count):
        month_keys.append(month_key(month_cursor))
        month_cursor = previous_month(month_cursor)
    month_keys.reverse()
    return month_keys


def month_year(key):
    try:
        return int(key.split("-")[0])
    except (ValueError, AttributeError):
        return None
