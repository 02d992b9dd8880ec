from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

JST = ZoneInfo("Asia/Tokyo")

_WEEKDAYS_JA = ("月", "火", "水", "木", "金", "土", "日")


def utc_naive_to_jst(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(JST)


def format_event_date(value: date) -> str:
    """Render a date the way event listings show it, e.g. ``2024年5月1日（水）``."""
    return f"{value.year}年{value.month}月{value.day}日（{_WEEKDAYS_JA[value.weekday()]}）"
