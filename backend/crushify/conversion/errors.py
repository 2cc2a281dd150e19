"""Error kinds raised by the conversion engine."""
from pathlib import Path
from typing import Iterable, Optional, Union

PathLike = Union[str, Path]


class ConversionError(Exception):
    """Base class for conversion failures. `path` is the file the error is about, if any."""

    def __init__(self, message: str, path: Optional[PathLike] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class InvalidInputError(ConversionError):
    """Input path is missing, unreadable or not a regular file."""


class UnsupportedFormatError(ConversionError):
    def __init__(self, format_name: str):
        super().__init__(f"Unsupported output format: {format_name}")
        self.format_name = format_name


class UnsupportedConversionError(ConversionError):
    def __init__(self, input_ext: str, format_name: str, accepted: Iterable[str], path: Optional[PathLike] = None):
        self.accepted = tuple(sorted(accepted))
        super().__init__(
            f"Cannot convert {input_ext or '(no extension)'} to {format_name}. "
            f"Supported input formats: {', '.join(self.accepted)}",
            path,
        )
        self.input_ext = input_ext
        self.format_name = format_name


class CodecFailureError(ConversionError):
    """The codec raised while encoding. Keeps the original exception as `cause`."""

    def __init__(self, path: PathLike, cause: BaseException):
        super().__init__(f"Processing failed for {path}: {cause}", path)
        self.cause = cause


class DirectoryCreationError(ConversionError):
    def __init__(self, path: PathLike, cause: OSError):
        super().__init__(f"Could not create directory {path}: {cause}", path)
        self.cause = cause


class SecondaryWarning(ConversionError):
    """Cleanup failure after a successful conversion. Attached to results, never raised."""

    def __init__(self, message: str, path: Optional[PathLike] = None, cause: Optional[BaseException] = None):
        super().__init__(message, path)
        self.cause = cause
