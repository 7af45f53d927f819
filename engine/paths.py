import os
from dataclasses import dataclass
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parent.parent

def _is_container_runtime():
    if os.path.exists("/.dockerenv"):
        return True
    return os.path.isdir("/data")


def _default_root_paths():
    if _is_container_runtime():
        return {
            "data": Path("/data"),
            "downloads": Path("/downloads"),
            "logs": Path("/logs"),
        }
    base = PROJECT_ROOT / "data"
    return {
        "data": base,
        "downloads": PROJECT_ROOT / "downloads",
        "logs": base / "logs",
    }


_DEFAULTS = _default_root_paths()

DOWNLOADS_DIR = Path(os.environ.get("YTCONVERT_DOWNLOADS_DIR", _DEFAULTS["downloads"])).resolve()
LOG_DIR = Path(os.environ.get("YTCONVERT_LOG_DIR", _DEFAULTS["logs"])).resolve()


@dataclass(frozen=True)
class EnginePaths:
    log_dir: str
    downloads_dir: str


def ensure_dir(path):
    if path:
        os.makedirs(path, exist_ok=True)


def _is_within_base(path, base_dir):
    real = os.path.realpath(path)
    base = os.path.realpath(base_dir)
    return os.path.commonpath([real, base]) == base


def resolve_in_downloads(paths, filename):
    """Join ``filename`` onto the storage root, refusing anything that escapes it."""
    base = paths.downloads_dir
    resolved = os.path.abspath(os.path.join(base, filename))
    if not _is_within_base(resolved, base):
        raise ValueError(f"Path must be within downloads directory: {base}")
    return resolved


def build_engine_paths(downloads_dir=None, log_dir=None):
    downloads = Path(downloads_dir).resolve() if downloads_dir else DOWNLOADS_DIR
    logs = Path(log_dir).resolve() if log_dir else LOG_DIR

    # Idempotent
    for d in (downloads, logs):
        ensure_dir(d)

    return EnginePaths(
        log_dir=str(logs),
        downloads_dir=str(downloads),
    )
