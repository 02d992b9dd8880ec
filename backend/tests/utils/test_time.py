from datetime import date, datetime

from chakai.utils.time import format_event_date, utc_naive_to_jst


def test_format_event_date_includes_weekday() -> None:
    assert format_event_date(date(2024, 5, 1)) == "2024年5月1日（水）"
    assert format_event_date(date(2025, 1, 5)) == "2025年1月5日（日）"


def test_utc_naive_to_jst_shifts_nine_hours() -> None:
    converted = utc_naive_to_jst(datetime(2024, 1, 1, 15, 30))
    assert (converted.day, converted.hour, converted.minute) == (2, 0, 30)
    assert converted.utcoffset().total_seconds() == 9 * 3600
