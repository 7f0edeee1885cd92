# services/calendar_math.py
from datetime import date, datetime, timedelta
from typing import Optional, Union

DateLike = Union[date, datetime]


def to_day(value: DateLike) -> date:
    """日付/日時をローカル暦日に正規化する"""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def day_key(value: DateLike) -> str:
    """YYYY-MM-DD形式の日付キーを返す"""
    d = to_day(value)
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def date_from_day_key(key: str) -> Optional[date]:
    """日付キーをdateに戻す（不正な形式はNone）"""
    parts = str(key).split("-")
    if len(parts) != 3:
        return None
    try:
        y, m, d = (int(p) for p in parts)
        return date(y, m, d)
    except ValueError:
        return None


def is_weekday(value: DateLike) -> bool:
    """月〜金ならTrue"""
    return to_day(value).weekday() < 5


def list_days(start: DateLike, end: DateLike) -> list[date]:
    """start〜endの日付を昇順で返す（両端を含む）"""
    out: list[date] = []
    d = to_day(start)
    e = to_day(end)
    while d <= e:
        out.append(d)
        try:
            d = d + timedelta(days=1)
        except OverflowError:
            break
    return out
