"""Formatting utilities for backup watch output."""

from datetime import datetime
from typing import Optional


def format_fingerprint(fingerprint: Optional[int]) -> str:
    """Format a 128-bit fingerprint as zero-padded hex.

    Args:
        fingerprint: Fingerprint value, or None.

    Returns:
        ``0x`` followed by 32 hex digits, or ``-`` when there is none.
    """
    if fingerprint is None:
        return "-"
    return f"{fingerprint:#034x}"


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Human readable size string.
    """
    if size_bytes < 1024:
        return f"{size_bytes}B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes // 1024}KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes // (1024 * 1024)}MB"
    else:
        return f"{size_bytes // (1024 * 1024 * 1024)}GB"


def format_date(dt: datetime, short: bool = False) -> str:
    """Format datetime for display.

    Args:
        dt: Datetime to format.
        short: If True, drop the milliseconds.

    Returns:
        Formatted date string.
    """
    if short:
        return dt.strftime('%Y-%m-%d %H:%M:%S')
    return dt.strftime('%Y-%m-%d %H:%M:%S.') + f"{dt.microsecond // 1000:03d}"


def format_path_relative(full_path: str, base_path: str) -> str:
    """Format path relative to base path.

    Args:
        full_path: Full absolute path.
        base_path: Base path to make relative to.

    Returns:
        Relative path string.
    """
    base_path = base_path.rstrip('/')
    if full_path == base_path:
        return '.'
    if full_path.startswith(base_path + '/'):
        return full_path[len(base_path) + 1:]
    return full_path
