#!/usr/bin/env python3
"""Timestamp helpers for tree records."""

from datetime import datetime, timezone
from typing import Optional


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, returning None for empty or bad input."""
    if not value:
        return None
    try:
        # Accept the trailing 'Z' form written by browsers
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_relative_time(value: Optional[str], now: Optional[datetime] = None) -> str:
    """Format an ISO timestamp as relative time (e.g., '2h ago', '3 days ago')."""
    then = parse_iso(value)
    if then is None:
        return "Unknown"
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    seconds = (now - then).total_seconds()

    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h ago"

    days = int(seconds // 86400)
    if days == 1:
        return "1 day ago"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        weeks = days // 7
        return "1 week ago" if weeks == 1 else f"{weeks} weeks ago"
    if days < 365:
        months = days // 30
        return "1 month ago" if months == 1 else f"{months} months ago"
    years = days // 365
    return "1 year ago" if years == 1 else f"{years} years ago"
