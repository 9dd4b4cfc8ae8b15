"""
타임존 유틸리티

내부 저장: UTC 원칙 준수를 위한 헬퍼 함수
"""

from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)

    datetime.now(timezone.utc)의 축약형.

    Returns:
        현재 UTC 시간 (tzinfo=timezone.utc)
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """datetime을 UTC로 변환

    Args:
        dt: datetime 객체 (naive면 UTC로 간주)

    Returns:
        UTC 타임존의 datetime
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_utc(value: str | datetime) -> datetime:
    """ISO 8601 문자열을 UTC datetime으로 파싱

    Example:
        >>> parse_utc("2026-10-19T08:30:00+00:00").hour
        8
    """
    if isinstance(value, datetime):
        return to_utc(value)
    return to_utc(datetime.fromisoformat(value))


def parse_date(value: str | date | datetime) -> date:
    """날짜 파싱 (YYYY-MM-DD 또는 ISO datetime 문자열)

    Raises:
        ValueError: 파싱할 수 없는 문자열
        TypeError: 지원하지 않는 타입
    """
    if isinstance(value, datetime):
        return to_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if "T" in text or " " in text:
            return parse_utc(text).date()
        return date.fromisoformat(text)
    raise TypeError(f"날짜로 변환할 수 없는 타입: {type(value).__name__}")


def days_between(start: date, end: date) -> int:
    """두 날짜 사이의 달력 일수 (end - start)

    Example:
        >>> days_between(date(2026, 10, 1), date(2026, 10, 19))
        18
    """
    return (end - start).days
