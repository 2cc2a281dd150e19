"""API routes for single-file and folder conversion."""
import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from crushify.conversion import formats
from crushify.conversion.errors import (
    ConversionError,
    InvalidInputError,
    UnsupportedConversionError,
    UnsupportedFormatError,
)
from crushify.conversion.models import ConversionRequest, ProcessingOptions
from crushify.conversion.service import get_converter

logger = logging.getLogger("crushify.api")
router = APIRouter(prefix="/api", tags=["converter"])


class ConvertBody(BaseModel):
    input_path: str
    format: str
    output_path: Optional[str] = None
    options: Optional[dict[str, Any]] = None


class ConvertFolderBody(BaseModel):
    source_dir: str
    dest_dir: str
    format: str
    options: Optional[dict[str, Any]] = None
    max_workers: Optional[int] = None


def _parse_options(data: Optional[dict[str, Any]]) -> ProcessingOptions:
    try:
        return ProcessingOptions.from_mapping(data)
    except (TypeError, ValueError) as e:
        raise HTTPException(400, f"Invalid options: {e}")


def _to_http_error(error: ConversionError) -> HTTPException:
    if isinstance(error, (UnsupportedFormatError, UnsupportedConversionError)):
        return HTTPException(400, str(error))
    if isinstance(error, InvalidInputError):
        return HTTPException(404, str(error))
    return HTTPException(500, str(error))


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/formats")
def get_formats():
    """Accepted inputs, output extension and defaults for every output format."""
    return {
        name: {
            "accepted_inputs": sorted(desc.accepted_input_extensions),
            "output_extension": desc.output_extension,
            "default_quality": desc.default_quality,
            "default_options": dict(desc.default_options),
        }
        for name, desc in formats.FORMATS.items()
    }


@router.post("/convert")
def convert(body: ConvertBody):
    """Convert a single file on the server's filesystem."""
    request = ConversionRequest(
        input_path=body.input_path,
        target_format=body.format,
        output_path=body.output_path,
        options=_parse_options(body.options),
    )
    try:
        result = get_converter().convert(request)
    except ConversionError as e:
        logger.warning("Conversion failed for %s: %s", body.input_path, e)
        raise _to_http_error(e)
    return result.to_dict()


@router.post("/convert-folder")
def convert_folder(body: ConvertFolderBody):
    """Convert every eligible file in a folder. Per-file failures are reported in the results."""
    options = _parse_options(body.options)
    svc = get_converter()
    try:
        results = svc.convert_folder(
            body.source_dir,
            body.dest_dir,
            body.format,
            options,
            max_workers=body.max_workers,
        )
    except ConversionError as e:
        logger.warning("Folder conversion failed for %s: %s", body.source_dir, e)
        raise _to_http_error(e)
    return {
        "results": [r.to_dict() for r in results],
        "stats": svc.statistics_snapshot().to_dict(),
    }


@router.get("/stats")
def get_stats():
    return get_converter().statistics_snapshot().to_dict()


@router.delete("/stats")
def reset_stats():
    get_converter().reset_statistics()
    return {"ok": True}


@router.delete("/cache")
def clear_cache():
    get_converter().clear_cache()
    return {"ok": True}
