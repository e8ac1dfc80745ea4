from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    # 统一写入带时区的 UTC
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utcnow().date()


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite 读回来可能不带时区，按 UTC 处理
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Excel 不支持时区，写单元格前去掉 tzinfo。"""
    value = as_utc(value)
    return value.replace(tzinfo=None) if value is not None else None
