"""Image conversion service: single files, folder batches, result cache and statistics."""
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

from crushify.config import BATCH_WORKERS, MAX_WORKERS
from crushify.conversion import formats
from crushify.conversion.cache import ResultCache, make_cache_key
from crushify.conversion.codec import CodecGateway, PillowCodec
from crushify.conversion.errors import (
    CodecFailureError,
    DirectoryCreationError,
    InvalidInputError,
    SecondaryWarning,
    UnsupportedConversionError,
)
from crushify.conversion.formats import FormatDescriptor
from crushify.conversion.models import (
    ConversionRequest,
    ConversionResult,
    ConversionStats,
    FolderProgress,
    ProcessingOptions,
    Statistics,
    merge_options,
)
from crushify.conversion.stats import StatisticsTracker

logger = logging.getLogger("crushify.service")

PathLike = Union[str, Path]
OptionsLike = Union[ProcessingOptions, Mapping[str, Any], None]
ProgressCallback = Callable[[FolderProgress], None]

KIB = 1024


def _as_options(options: OptionsLike) -> ProcessingOptions:
    if isinstance(options, ProcessingOptions):
        return options
    return ProcessingOptions.from_mapping(options)


def _ensure_directory(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryCreationError(path, e) from e


def _saving_percent(input_size: int, saved_size: int) -> str:
    if saved_size == 0:
        return "0.0"
    percent = abs(saved_size) / input_size * 100 if input_size else 0.0
    return f"{'+' if saved_size < 0 else '-'}{percent:.1f}"


def _result_message(name: str, input_size: int, output_size: int, saving_percent: str) -> str:
    if output_size > input_size:
        prefix = "Size increased"
    elif output_size < input_size:
        prefix = "Size reduced"
    else:
        prefix = "Size unchanged"
    return (
        f"{prefix} - {name} (Original: {input_size / KIB:.2f}KB, "
        f"New: {output_size / KIB:.2f}KB, Change: {saving_percent}%)"
    )


class _OrderedProgress:
    """Stores per-file results by input index and reports progress in input order."""

    def __init__(self, files: list[Path], callback: Optional[ProgressCallback]):
        self.results: list[Optional[ConversionResult]] = [None] * len(files)
        self._files = files
        self._callback = callback
        self._next = 0
        self._lock = threading.Lock()

    def completed(self, index: int, result: ConversionResult) -> None:
        with self._lock:
            self.results[index] = result
            while self._next < len(self.results) and self.results[self._next] is not None:
                self._emit(self._next)
                self._next += 1

    def finish(self) -> None:
        """Report files that finished behind a slot that was cancelled before it started."""
        with self._lock:
            while self._next < len(self.results):
                if self.results[self._next] is not None:
                    self._emit(self._next)
                self._next += 1

    def _emit(self, i: int) -> None:
        if self._callback is not None:
            total = len(self.results)
            self._callback(FolderProgress(self._files[i].name, (i + 1) / total * 100, self.results[i]))


class ImageConverter:
    """Converts images through a codec, memoizing results and keeping running statistics."""

    def __init__(
        self,
        codec: Optional[CodecGateway] = None,
        *,
        cache: Optional[ResultCache] = None,
        stats: Optional[StatisticsTracker] = None,
        max_workers: Optional[int] = None,
    ):
        self._codec = codec if codec is not None else PillowCodec()
        self._cache = cache if cache is not None else ResultCache()
        self._stats = stats if stats is not None else StatisticsTracker()
        self._max_workers = max_workers or BATCH_WORKERS
        logger.info("ImageConverter initialized with batch workers=%s", self._max_workers)

    # Capability queries

    @staticmethod
    def accepted_input_extensions(format_name: str) -> frozenset[str]:
        return formats.accepted_input_extensions(format_name)

    @staticmethod
    def output_extension(format_name: str) -> str:
        return formats.output_extension(format_name)

    # Statistics and cache

    def statistics_snapshot(self) -> Statistics:
        return self._stats.snapshot()

    def reset_statistics(self) -> None:
        self._stats.reset()

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Result cache cleared")

    # Single file

    def convert(self, request: ConversionRequest) -> ConversionResult:
        """Convert one file. Errors propagate to the caller."""
        descriptor = formats.lookup(request.target_format)
        self._stats.mark_started()
        try:
            return self._convert_one(request, descriptor)
        finally:
            self._stats.mark_completed()

    def convert_file(
        self,
        input_path: PathLike,
        target_format: str,
        output_path: Optional[PathLike] = None,
        options: OptionsLike = None,
    ) -> ConversionResult:
        return self.convert(
            ConversionRequest(
                input_path=Path(input_path),
                target_format=target_format,
                output_path=Path(output_path) if output_path else None,
                options=_as_options(options),
            )
        )

    def convert_to_png(self, input_path: PathLike, output_path: Optional[PathLike] = None, options: OptionsLike = None):
        return self.convert_file(input_path, "png", output_path, options)

    def convert_to_webp(self, input_path: PathLike, output_path: Optional[PathLike] = None, options: OptionsLike = None):
        return self.convert_file(input_path, "webp", output_path, options)

    def convert_to_jpeg(self, input_path: PathLike, output_path: Optional[PathLike] = None, options: OptionsLike = None):
        return self.convert_file(input_path, "jpeg", output_path, options)

    def convert_to_avif(self, input_path: PathLike, output_path: Optional[PathLike] = None, options: OptionsLike = None):
        return self.convert_file(input_path, "avif", output_path, options)

    def _convert_one(self, request: ConversionRequest, descriptor: FormatDescriptor) -> ConversionResult:
        src = request.input_path
        ext = src.suffix.lower()
        if not descriptor.accepts(ext):
            raise UnsupportedConversionError(ext, descriptor.name, descriptor.accepted_input_extensions, src)

        try:
            self._validate_input(src)
            merged = merge_options(descriptor, request.options)
            key = make_cache_key(descriptor.name, src, merged)
            cached = self._cache.get(key)
            if cached is not None:
                self._stats.record_skipped()
                logger.info("Cache hit for %s (%s), skipping", src.name, descriptor.name)
                return cached

            out_path = request.output_path or src.with_suffix(descriptor.output_extension)
            _ensure_directory(out_path.parent)
            try:
                input_size = src.stat().st_size
            except OSError as e:
                raise InvalidInputError(f"Invalid file path: {e}", src) from e
            try:
                self._codec.encode(src, out_path, descriptor.name, merged)
                output_size = out_path.stat().st_size
            except Exception as e:
                raise CodecFailureError(src, e) from e
        except Exception:
            self._stats.record_failed()
            raise

        saved_size = input_size - output_size
        saving_percent = _saving_percent(input_size, saved_size)
        warnings: tuple[SecondaryWarning, ...] = ()
        if merged.get("delete_original"):
            warnings = self._delete_original(src)

        result = ConversionResult(
            success=True,
            message=_result_message(src.name, input_size, output_size, saving_percent),
            stats=ConversionStats(input_size, output_size, saved_size, saving_percent),
            warnings=warnings,
            input_path=src,
            output_path=out_path,
        )
        self._cache.put(key, result)
        self._stats.record_processed(saved_size)
        logger.info("Converted %s -> %s (%s%%)", src.name, out_path.name, saving_percent)
        return result

    @staticmethod
    def _validate_input(path: Path) -> None:
        if not path.exists():
            raise InvalidInputError(f"Invalid file path: {path} does not exist", path)
        if not path.is_file():
            raise InvalidInputError(f"Invalid file path: {path} is not a file", path)
        if not os.access(path, os.R_OK):
            raise InvalidInputError(f"Invalid file path: {path} is not readable", path)

    @staticmethod
    def _delete_original(path: Path) -> tuple[SecondaryWarning, ...]:
        try:
            path.unlink()
        except OSError as e:
            logger.warning("Converted but could not remove original %s: %s", path, e)
            return (SecondaryWarning(f"Could not remove original {path}: {e}", path, e),)
        logger.info("Removed original %s", path)
        return ()

    # Folder batch

    def convert_folder(
        self,
        source_dir: PathLike,
        dest_dir: PathLike,
        target_format: str,
        options: OptionsLike = None,
        on_progress: Optional[ProgressCallback] = None,
        *,
        max_workers: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[ConversionResult]:
        """Convert every eligible file in source_dir into dest_dir.

        A failing file becomes a result with success=False and the batch carries on;
        only an unknown format or an unusable source/destination folder raises.
        Setting cancel_event stops the batch before the next file starts; files that
        never started are left out of the returned list.
        """
        descriptor = formats.lookup(target_format)
        options = _as_options(options)
        self._stats.mark_started()
        try:
            source = Path(source_dir)
            dest = Path(dest_dir)
            if not source.is_dir():
                raise InvalidInputError(f"Source folder is not a directory: {source}", source)
            _ensure_directory(dest)
            files = self._eligible_files(source, descriptor)
            workers = min(max_workers or self._max_workers, MAX_WORKERS)
            logger.info(
                "Converting %s file(s) from %s to %s in %s (workers=%s)",
                len(files), source, descriptor.name, dest, workers,
            )

            progress = _OrderedProgress(files, on_progress)
            aborted = threading.Event()

            def cancelled() -> bool:
                return aborted.is_set() or (cancel_event is not None and cancel_event.is_set())

            if workers <= 1 or len(files) <= 1:
                for index, path in enumerate(files):
                    if cancelled():
                        break
                    progress.completed(index, self._convert_entry(path, dest, descriptor, options))
            else:
                def work(index: int, path: Path) -> None:
                    if cancelled():
                        return
                    progress.completed(index, self._convert_entry(path, dest, descriptor, options))

                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="crushify") as executor:
                    futures = [executor.submit(work, i, p) for i, p in enumerate(files)]
                    try:
                        for future in futures:
                            future.result()
                    except BaseException:
                        # Let queued files drain without converting
                        aborted.set()
                        raise

            progress.finish()
            results = [r for r in progress.results if r is not None]
            if len(results) < len(files):
                logger.warning("Batch cancelled: %s of %s file(s) not converted", len(files) - len(results), len(files))
            return results
        finally:
            self._stats.mark_completed()

    def convert_folder_to_png(self, source_dir: PathLike, dest_dir: PathLike, options: OptionsLike = None, on_progress=None):
        return self.convert_folder(source_dir, dest_dir, "png", options, on_progress)

    def convert_folder_to_webp(self, source_dir: PathLike, dest_dir: PathLike, options: OptionsLike = None, on_progress=None):
        return self.convert_folder(source_dir, dest_dir, "webp", options, on_progress)

    def convert_folder_to_jpeg(self, source_dir: PathLike, dest_dir: PathLike, options: OptionsLike = None, on_progress=None):
        return self.convert_folder(source_dir, dest_dir, "jpeg", options, on_progress)

    def convert_folder_to_avif(self, source_dir: PathLike, dest_dir: PathLike, options: OptionsLike = None, on_progress=None):
        return self.convert_folder(source_dir, dest_dir, "avif", options, on_progress)

    @staticmethod
    def _eligible_files(source: Path, descriptor: FormatDescriptor) -> list[Path]:
        with os.scandir(source) as entries:
            eligible = [
                Path(entry.path)
                for entry in entries
                if descriptor.accepts(os.path.splitext(entry.name)[1]) and entry.is_file()
            ]
        return sorted(eligible, key=lambda p: p.name)

    def _convert_entry(
        self,
        path: Path,
        dest: Path,
        descriptor: FormatDescriptor,
        options: ProcessingOptions,
    ) -> ConversionResult:
        request = ConversionRequest(
            input_path=path,
            target_format=descriptor.name,
            output_path=dest / f"{path.stem}{descriptor.output_extension}",
            options=options,
        )
        try:
            return self._convert_one(request, descriptor)
        except Exception as e:
            logger.exception("Conversion failed for %s: %s", path, e)
            return ConversionResult(
                success=False,
                message=str(e),
                error=e,
                input_path=path,
                output_path=request.output_path,
            )


# Singleton
_converter: Optional[ImageConverter] = None


def get_converter() -> ImageConverter:
    global _converter
    if _converter is None:
        _converter = ImageConverter()
    return _converter
