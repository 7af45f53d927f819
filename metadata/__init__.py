from .naming import build_output_filename, sanitize_title, unique_suffix
from .types import MediaMetadata

__all__ = ["MediaMetadata", "build_output_filename", "sanitize_title", "unique_suffix"]
