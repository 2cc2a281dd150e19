import pytest
from PIL import Image, features

from crushify.conversion.codec import PillowCodec
from crushify.conversion.errors import CodecFailureError
from crushify.conversion.service import ImageConverter


@pytest.fixture
def png_image(tmp_path):
    path = tmp_path / "sample.png"
    img = Image.new("RGBA", (64, 48), (200, 30, 30, 255))
    for x in range(0, 64, 4):
        img.putpixel((x, x % 48), (0, 0, 255, 128))
    img.save(path, format="PNG")
    return path


@pytest.mark.parametrize(
    "format_name, options, pil_format",
    [
        ("jpeg", {"quality": 70, "progressive": True, "chroma_subsampling": "4:4:4"}, "JPEG"),
        ("webp", {"quality": 80, "lossless": False, "effort": 4, "alpha_quality": 100}, "WEBP"),
        ("gif", {"colours": 16, "dither": 1}, "GIF"),
        ("tiff", {"compression": "lzw"}, "TIFF"),
    ],
)
def test_encode_writes_requested_format(tmp_path, png_image, format_name, options, pil_format):
    out = tmp_path / f"out.{format_name}"
    written = PillowCodec().encode(png_image, out, format_name, options)

    assert written == out.stat().st_size > 0
    with Image.open(out) as img:
        assert img.format == pil_format
        assert img.size == (64, 48)


def test_encode_png_clamps_compression_level(tmp_path):
    src = tmp_path / "in.gif"
    Image.new("RGB", (16, 16), (10, 20, 30)).save(src, format="GIF")
    out = tmp_path / "out.png"

    PillowCodec().encode(src, out, "png", {"compression_level": 10})

    with Image.open(out) as img:
        assert img.format == "PNG"


@pytest.mark.parametrize("format_name, pil_format", [("png", "PNG"), ("tiff", "TIFF")])
def test_cmyk_jpeg_converts(tmp_path, format_name, pil_format):
    src = tmp_path / "print.jpg"
    Image.new("CMYK", (20, 10), (0, 128, 255, 10)).save(src, format="JPEG")
    converter = ImageConverter(PillowCodec())

    result = converter.convert_file(src, format_name)

    assert result.success
    with Image.open(result.output_path) as img:
        assert img.format == pil_format
        assert img.mode == "RGB"
        assert img.size == (20, 10)


@pytest.mark.skipif(not features.check("avif"), reason="Pillow built without AVIF")
def test_encode_avif(tmp_path, png_image):
    out = tmp_path / "out.avif"
    PillowCodec().encode(png_image, out, "avif", {"quality": 65, "chroma_subsampling": "4:4:4"})
    with Image.open(out) as img:
        assert img.format == "AVIF"


def test_encode_svg_is_unsupported(tmp_path, png_image):
    with pytest.raises(ValueError, match="svg"):
        PillowCodec().encode(png_image, tmp_path / "out.svg", "svg", {})


def test_converter_with_pillow_codec(tmp_path, png_image):
    converter = ImageConverter(PillowCodec())
    result = converter.convert_file(png_image, "webp", tmp_path / "out" / "sample.webp", {"quality": 60})

    assert result.success
    assert result.stats.input_size == png_image.stat().st_size
    assert result.stats.output_size == (tmp_path / "out" / "sample.webp").stat().st_size
    assert result.stats.saved_size == result.stats.input_size - result.stats.output_size


def test_converter_wraps_undecodable_input(tmp_path):
    bogus = tmp_path / "broken.png"
    bogus.write_bytes(b"not an image")
    converter = ImageConverter(PillowCodec())

    with pytest.raises(CodecFailureError) as exc:
        converter.convert_file(bogus, "jpeg")
    assert exc.value.path == bogus
