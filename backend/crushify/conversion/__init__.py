from .service import ImageConverter, get_converter
from .models import ConversionRequest, ConversionResult, FolderProgress, ProcessingOptions, Statistics
from .errors import (
    CodecFailureError,
    ConversionError,
    DirectoryCreationError,
    InvalidInputError,
    SecondaryWarning,
    UnsupportedConversionError,
    UnsupportedFormatError,
)

__all__ = [
    "ImageConverter",
    "get_converter",
    "ConversionRequest",
    "ConversionResult",
    "FolderProgress",
    "ProcessingOptions",
    "Statistics",
    "CodecFailureError",
    "ConversionError",
    "DirectoryCreationError",
    "InvalidInputError",
    "SecondaryWarning",
    "UnsupportedConversionError",
    "UnsupportedFormatError",
]
