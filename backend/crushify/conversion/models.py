"""Conversion request/result models."""
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from crushify.conversion.errors import ConversionError, SecondaryWarning
from crushify.conversion.formats import FormatDescriptor

_RANGES = {
    "quality": (1, 100),
    "effort": (0, 6),
    "compression_level": (0, 10),
}
_FLAGS = ("lossless", "progressive", "mozjpeg", "delete_original")


@dataclass(frozen=True)
class ProcessingOptions:
    """Caller overrides. A field left as None is not supplied and falls back to the format default."""

    quality: Optional[int] = None
    lossless: Optional[bool] = None
    effort: Optional[int] = None
    progressive: Optional[bool] = None
    chroma_subsampling: Optional[str] = None
    mozjpeg: Optional[bool] = None
    delete_original: Optional[bool] = None
    compression_level: Optional[int] = None

    def __post_init__(self):
        for name, (lo, hi) in _RANGES.items():
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if not lo <= value <= hi:
                raise ValueError(f"{name} must be between {lo} and {hi}, got {value}")
        for name in _FLAGS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, bool):
                raise ValueError(f"{name} must be true or false, got {value!r}")
        if self.chroma_subsampling is not None and not isinstance(self.chroma_subsampling, str):
            raise ValueError(f"chroma_subsampling must be a string, got {self.chroma_subsampling!r}")

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ProcessingOptions":
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown processing option(s): {', '.join(sorted(unknown))}")
        return cls(**dict(data))

    def overrides(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def merge_options(descriptor: FormatDescriptor, options: Optional[ProcessingOptions] = None) -> Mapping[str, Any]:
    """Format defaults < format default quality < caller overrides. Returns a read-only copy."""
    merged: dict[str, Any] = dict(descriptor.default_options)
    merged["quality"] = descriptor.default_quality
    if options is not None:
        merged.update(options.overrides())
    return MappingProxyType(merged)


@dataclass(frozen=True)
class ConversionRequest:
    input_path: Path
    target_format: str
    output_path: Optional[Path] = None
    options: ProcessingOptions = field(default_factory=ProcessingOptions)

    def __post_init__(self):
        object.__setattr__(self, "input_path", Path(self.input_path))
        if self.output_path is not None:
            object.__setattr__(self, "output_path", Path(self.output_path))


@dataclass(frozen=True)
class ConversionStats:
    input_size: int
    output_size: int
    saved_size: int
    saving_percent: str  # "-40.0" shrank, "+12.5" grew


@dataclass(frozen=True)
class ConversionResult:
    success: bool
    message: str
    stats: Optional[ConversionStats] = None
    error: Optional[BaseException] = None
    warnings: tuple[SecondaryWarning, ...] = ()
    input_path: Optional[Path] = None
    output_path: Optional[Path] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "input_path": str(self.input_path) if self.input_path else None,
            "output_path": str(self.output_path) if self.output_path else None,
            "stats": asdict(self.stats) if self.stats else None,
            "error": None,
            "warnings": [str(w) for w in self.warnings],
        }
        if self.error is not None:
            out["error"] = {
                "type": type(self.error).__name__,
                "message": str(self.error),
                "path": str(self.error.path) if isinstance(self.error, ConversionError) and self.error.path else None,
            }
        return out


@dataclass(frozen=True)
class FolderProgress:
    file: str
    progress: float
    result: ConversionResult


@dataclass(frozen=True)
class Statistics:
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    total_saved_bytes: int = 0
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def processing_time(self) -> Optional[float]:
        """Seconds between the last start and completion marks."""
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time

    @property
    def average_saving(self) -> Optional[float]:
        """Bytes saved per processed file."""
        if self.processed <= 0:
            return None
        return self.total_saved_bytes / self.processed

    def to_dict(self) -> dict[str, Union[int, float, None]]:
        out: dict[str, Union[int, float, None]] = asdict(self)
        out["processing_time"] = self.processing_time
        out["average_saving"] = self.average_saving
        return out
