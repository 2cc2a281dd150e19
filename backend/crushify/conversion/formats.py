"""Static registry of output formats and the input extensions each one accepts."""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from crushify.conversion.errors import UnsupportedFormatError


@dataclass(frozen=True)
class FormatDescriptor:
    name: str
    accepted_input_extensions: frozenset[str]
    default_quality: int
    output_extension: str
    default_options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    # Every extension that denotes this format (".jpg" and ".jpeg" for jpeg)
    extensions: frozenset[str] = frozenset()

    def accepts(self, ext: str) -> bool:
        return normalize_extension(ext) in self.accepted_input_extensions


def normalize_extension(ext: str) -> str:
    ext = (ext or "").strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


def _descriptor(
    name: str,
    inputs: list[str],
    quality: int,
    extension: str,
    options: dict[str, Any],
    extensions: Optional[list[str]] = None,
) -> FormatDescriptor:
    return FormatDescriptor(
        name=name,
        accepted_input_extensions=frozenset(inputs),
        default_quality=quality,
        output_extension=extension,
        default_options=MappingProxyType(dict(options)),
        extensions=frozenset(extensions or [extension]),
    )


_FORMATS: dict[str, FormatDescriptor] = {
    d.name: d
    for d in (
        _descriptor(
            "jpeg",
            [".png", ".webp", ".tiff", ".avif", ".gif", ".svg"],
            80,
            ".jpg",
            {"progressive": True, "chroma_subsampling": "4:4:4", "mozjpeg": True},
            extensions=[".jpg", ".jpeg"],
        ),
        _descriptor(
            "png",
            [".jpg", ".jpeg", ".webp", ".tiff", ".avif", ".gif", ".svg"],
            100,
            ".png",
            {"compression_level": 6, "palette": True},
        ),
        _descriptor(
            "webp",
            [".jpg", ".jpeg", ".png", ".tiff", ".avif", ".gif", ".svg"],
            80,
            ".webp",
            {"lossless": False, "effort": 4, "near_lossless": False, "alpha_quality": 100},
        ),
        _descriptor(
            "avif",
            [".jpg", ".jpeg", ".png", ".webp", ".tiff", ".gif", ".svg"],
            65,
            ".avif",
            {"effort": 4, "chroma_subsampling": "4:4:4", "lossless": False},
        ),
        _descriptor(
            "tiff",
            [".jpg", ".jpeg", ".png", ".webp", ".avif", ".gif", ".svg"],
            100,
            ".tiff",
            {"compression": "lzw", "pyramid": False, "tile": False},
        ),
        _descriptor(
            "gif",
            [".jpg", ".jpeg", ".png", ".webp", ".tiff", ".avif", ".svg"],
            100,
            ".gif",
            {"colours": 256, "dither": 1},
        ),
        _descriptor(
            "svg",
            [".jpg", ".jpeg", ".png", ".webp", ".tiff", ".avif", ".gif"],
            100,
            ".svg",
            {"density": 300},
        ),
    )
}

_ALIASES = {"jpg": "jpeg", "tif": "tiff"}


def _check_registry(formats: dict[str, FormatDescriptor]) -> None:
    """No format accepts itself, and every format is both a source and a target for some other format."""
    for desc in formats.values():
        own = desc.extensions & desc.accepted_input_extensions
        if own:
            raise RuntimeError(f"Format {desc.name} lists its own extension(s) as input: {sorted(own)}")
    for desc in formats.values():
        others = [other for other in formats.values() if other is not desc]
        if not any(other.extensions & desc.accepted_input_extensions for other in others):
            raise RuntimeError(f"Format {desc.name} cannot be produced from any other format")
        if not any(desc.extensions & other.accepted_input_extensions for other in others):
            raise RuntimeError(f"Format {desc.name} cannot be converted to any other format")


_check_registry(_FORMATS)

FORMATS: Mapping[str, FormatDescriptor] = MappingProxyType(_FORMATS)


def find(format_name: str) -> Optional[FormatDescriptor]:
    key = (format_name or "").strip().lower()
    return FORMATS.get(_ALIASES.get(key, key))


def lookup(format_name: str) -> FormatDescriptor:
    desc = find(format_name)
    if desc is None:
        raise UnsupportedFormatError(format_name)
    return desc


def is_input_accepted(format_name: str, input_ext: str) -> bool:
    desc = find(format_name)
    return desc is not None and desc.accepts(input_ext)


def accepted_input_extensions(format_name: str) -> frozenset[str]:
    return lookup(format_name).accepted_input_extensions


def output_extension(format_name: str) -> str:
    return lookup(format_name).output_extension


def supported_formats() -> list[str]:
    return list(FORMATS)
