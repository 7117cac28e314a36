"""Utility modules for backup watch."""

from .formatters import format_fingerprint, format_file_size, format_date, format_path_relative

__all__ = ["format_fingerprint", "format_file_size", "format_date", "format_path_relative"]
