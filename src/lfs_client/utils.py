"""Utility functions for lfs-client."""


def humanize_size(size: float) -> str:
    """Convert bytes to human-readable format."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def short_oid(oid: object, length: int = 12) -> str:
    """Abbreviated object id for display."""
    return str(oid)[:length]
