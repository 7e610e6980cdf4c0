from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now, matching how SQLite hands DateTime columns back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
