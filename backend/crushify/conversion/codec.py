"""Codec gateway: the protocol the converter encodes through, and the Pillow binding used by default."""
import logging
from pathlib import Path
from typing import Any, Mapping, Protocol

from PIL import Image, ImageOps

logger = logging.getLogger("crushify.codec")


class CodecGateway(Protocol):
    def encode(self, input_path: Path, output_path: Path, format_name: str, options: Mapping[str, Any]) -> int:
        """Transcode input_path into output_path and return the number of bytes written.
        This is a blocking call; raise on any failure.
        """


_PIL_FORMATS = {
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "avif": "AVIF",
    "tiff": "TIFF",
    "gif": "GIF",
}

_TIFF_COMPRESSION = {
    "lzw": "tiff_lzw",
    "deflate": "tiff_adobe_deflate",
    "jpeg": "jpeg",
    "none": None,
}

# Modes PNG and TIFF output keep as-is; anything else (CMYK, YCbCr, LAB, ...) goes to RGB
_DIRECT_MODES = ("RGB", "RGBA", "L", "LA", "P", "1")


def _to_rgb(img: Image.Image) -> Image.Image:
    if img.mode in _DIRECT_MODES:
        return img
    return img.convert("RGBA" if "A" in img.getbands() else "RGB")


class PillowCodec:
    """Encodes through Pillow. Options it has no equivalent for (mozjpeg, density, ...) are ignored."""

    def encode(self, input_path: Path, output_path: Path, format_name: str, options: Mapping[str, Any]) -> int:
        fmt = format_name.lower()
        pil_format = _PIL_FORMATS.get(fmt)
        if pil_format is None:
            raise ValueError(f"No Pillow encoder for {format_name}")

        with Image.open(input_path) as img:
            work = ImageOps.exif_transpose(img)
            work, save_kw = self._prepare(work, fmt, options)
            work.save(str(output_path), format=pil_format, **save_kw)

        written = Path(output_path).stat().st_size
        logger.debug("Encoded %s -> %s (%s, %s bytes)", input_path, output_path, pil_format, written)
        return written

    @staticmethod
    def _prepare(img: Image.Image, fmt: str, options: Mapping[str, Any]) -> tuple[Image.Image, dict]:
        quality = int(options.get("quality", 80))
        save_kw: dict = {}
        if fmt == "jpeg":
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            save_kw = {"quality": quality, "optimize": True, "progressive": bool(options.get("progressive", False))}
            if options.get("chroma_subsampling"):
                save_kw["subsampling"] = options["chroma_subsampling"]
        elif fmt == "png":
            img = _to_rgb(img)
            level = options.get("compression_level")
            save_kw = {"optimize": True}
            if level is not None:
                # zlib tops out at 9
                save_kw["compress_level"] = min(int(level), 9)
        elif fmt == "webp":
            save_kw = {
                "quality": quality,
                "lossless": bool(options.get("lossless", False)),
                "method": int(options.get("effort", 4)),
            }
            if options.get("alpha_quality") is not None:
                save_kw["alpha_quality"] = int(options["alpha_quality"])
        elif fmt == "avif":
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
            save_kw = {"quality": 100 if options.get("lossless") else quality}
            if options.get("chroma_subsampling"):
                save_kw["subsampling"] = options["chroma_subsampling"]
        elif fmt == "tiff":
            img = _to_rgb(img)
            compression = _TIFF_COMPRESSION.get(str(options.get("compression", "lzw")).lower(), "tiff_lzw")
            if compression:
                save_kw["compression"] = compression
            if compression == "jpeg":
                if img.mode not in ("RGB", "L"):
                    img = img.convert("RGB")
                save_kw["quality"] = quality
        elif fmt == "gif":
            dither = Image.Dither.FLOYDSTEINBERG if options.get("dither") else Image.Dither.NONE
            colours = max(2, min(256, int(options.get("colours", 256))))
            if img.mode != "P":
                img = img.convert("RGB").quantize(colors=colours, dither=dither)
            save_kw = {"optimize": True}
        return img, save_kw
