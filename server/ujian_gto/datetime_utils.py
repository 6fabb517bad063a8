from datetime import datetime, timezone, timedelta
import time

# Western Indonesia Time (UTC+7)
WIB = timezone(timedelta(hours=7))


def now_ts() -> float:
    """Return the current wall-clock time as epoch seconds."""
    return time.time()


def now_wib() -> datetime:
    """Return a timezone-aware datetime in WIB (UTC+7)."""
    return datetime.now(WIB)


def now_wib_iso() -> str:
    """Return current WIB time as ISO-8601 string including offset."""
    return now_wib().isoformat()
