from datetime import datetime
from typing import Optional
import pytz

from snet.core.config import settings

UTC = pytz.utc
LOCAL_TZ = pytz.timezone(settings.TIMEZONE)

def get_utc_now() -> datetime:
    """Get current time in UTC."""
    return datetime.now(UTC)

def ensure_utc(dt: datetime) -> datetime:
    """SQLite hands back naive values; treat them as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)

def to_local(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime object to the school's local timezone."""
    if dt is None:
        return None
    return ensure_utc(dt).astimezone(LOCAL_TZ)

def format_local(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime as ISO string in local time."""
    if dt is None:
        return None
    return to_local(dt).isoformat()
