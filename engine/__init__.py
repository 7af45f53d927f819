from .errors import (
    AcquisitionError,
    ArtifactMissingError,
    ConversionError,
    MissingInputError,
    ResolutionError,
    TranscodeError,
)
from .paths import EnginePaths, build_engine_paths
from .runtime import get_runtime_info

__all__ = [
    "AcquisitionError",
    "ArtifactMissingError",
    "ConversionError",
    "EnginePaths",
    "MissingInputError",
    "ResolutionError",
    "TranscodeError",
    "build_engine_paths",
    "get_runtime_info",
]
