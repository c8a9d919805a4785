"""ObjectKey generation."""
import os
import time
import uuid


def generate_key(name: str) -> str:
    """
    Unique key for an uploaded artifact: <epoch millis>_<uuid4><ext>.

    The extension is taken from name (including the dot); names without an
    extension produce a key without one.
    """
    _, ext = os.path.splitext(name)
    return f"{time.time_ns() // 1_000_000}_{uuid.uuid4()}{ext}"


def resized_key(key: str, prefix: str = "resized-") -> str:
    """Name of the thumbnail derived from key."""
    return f"{prefix}{key}"
