import threading

import pytest

from crushify.conversion.errors import CodecFailureError, InvalidInputError, UnsupportedFormatError
from crushify.conversion.models import ConversionResult
from crushify.conversion.service import ImageConverter, _OrderedProgress

from conftest import FakeCodec


@pytest.fixture
def folder(tmp_path, make_file):
    src = tmp_path / "in"
    for name in ("a.png", "b.png", "c.png"):
        make_file(src / name, 1000)
    make_file(src / "notes.txt", 10)
    return src


def test_only_eligible_files_are_converted(tmp_path, folder, codec, converter):
    progress = []
    results = converter.convert_folder(folder, tmp_path / "out", "gif", {}, progress.append)

    assert len(results) == 3
    assert all(r.success for r in results)
    assert [c[0].name for c in codec.calls] == ["a.png", "b.png", "c.png"]
    assert [p.file for p in progress] == ["a.png", "b.png", "c.png"]
    assert [p.progress for p in progress] == pytest.approx([33.3, 66.7, 100.0], abs=0.05)
    assert progress[-1].progress == 100.0
    assert [p.result for p in progress] == results
    assert sorted(p.name for p in (tmp_path / "out").iterdir()) == ["a.gif", "b.gif", "c.gif"]


def test_one_corrupt_file_does_not_abort_batch(tmp_path, folder, codec, converter):
    codec.fail_for.add("b.png")
    progress = []

    results = converter.convert_folder(folder, tmp_path / "out", "webp", on_progress=progress.append)

    assert [r.success for r in results] == [True, False, True]
    failed = results[1]
    assert isinstance(failed.error, CodecFailureError)
    assert failed.input_path == folder / "b.png"
    assert "corrupt image" in failed.message
    assert len(progress) == 3
    snap = converter.statistics_snapshot()
    assert snap.failed == 1
    assert snap.processed == 2


def test_unknown_format_aborts_before_touching_disk(tmp_path, folder, codec, converter):
    dest = tmp_path / "out"
    with pytest.raises(UnsupportedFormatError):
        converter.convert_folder(folder, dest, "bmp")
    assert not dest.exists()
    assert codec.calls == []


def test_missing_source_folder(tmp_path, converter):
    with pytest.raises(InvalidInputError):
        converter.convert_folder(tmp_path / "nope", tmp_path / "out", "webp")


def test_subdirectories_are_ignored(tmp_path, folder, codec, converter):
    (folder / "nested.png").mkdir()
    results = converter.convert_folder(folder, tmp_path / "out", "webp")
    assert len(results) == 3
    assert "nested.png" not in [c[0].name for c in codec.calls]


def test_empty_folder(tmp_path, converter):
    (tmp_path / "empty").mkdir()
    assert converter.convert_folder(tmp_path / "empty", tmp_path / "out", "webp") == []
    assert (tmp_path / "out").is_dir()


def test_second_batch_hits_cache(tmp_path, folder, codec, converter):
    converter.convert_folder(folder, tmp_path / "out", "webp")
    converter.convert_folder(folder, tmp_path / "out", "webp")
    assert len(codec.calls) == 3
    assert converter.statistics_snapshot().skipped == 3


def test_batch_sets_timestamps(tmp_path, folder, converter):
    converter.convert_folder(folder, tmp_path / "out", "webp")
    snap = converter.statistics_snapshot()
    assert snap.start_time is not None
    assert snap.end_time is not None
    assert snap.processing_time >= 0


def test_parallel_batch_keeps_input_order(tmp_path, make_file):
    src = tmp_path / "in"
    names = [f"img{i:02d}.jpg" for i in range(8)]
    for name in names:
        make_file(src / name, 500)
    # Early files finish last
    codec = FakeCodec(size=100, delays={name: 0.05 * (8 - i) for i, name in enumerate(names)}, fail_for={"img03.jpg"})
    converter = ImageConverter(codec, max_workers=4)
    progress = []

    results = converter.convert_folder(src, tmp_path / "out", "png", on_progress=progress.append)

    assert [r.input_path.name for r in results] == names
    assert [r.success for r in results] == [i != 3 for i in range(8)]
    assert [p.file for p in progress] == names
    values = [p.progress for p in progress]
    assert values == sorted(values)
    assert values[-1] == 100.0
    snap = converter.statistics_snapshot()
    assert snap.processed == 7
    assert snap.failed == 1


def test_cancel_between_files(tmp_path, folder, codec, converter):
    cancel = threading.Event()

    def on_progress(update):
        cancel.set()

    results = converter.convert_folder(folder, tmp_path / "out", "webp", on_progress=on_progress, cancel_event=cancel)

    assert len(results) == 1
    assert len(codec.calls) == 1


def test_files_finished_behind_a_cancelled_slot_still_report_progress(tmp_path):
    files = [tmp_path / name for name in ("a.png", "b.png", "c.png")]
    seen = []
    progress = _OrderedProgress(files, seen.append)
    first = ConversionResult(success=True, message="a done")
    last = ConversionResult(success=True, message="c done")

    progress.completed(0, first)
    progress.completed(2, last)
    assert [p.file for p in seen] == ["a.png"]

    progress.finish()

    assert [p.file for p in seen] == ["a.png", "c.png"]
    assert seen[-1].progress == 100.0
    assert seen[-1].result is last
    assert progress.results == [first, None, last]
