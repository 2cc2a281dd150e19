import threading
import time
from pathlib import Path

import pytest

from crushify.conversion.service import ImageConverter


class FakeCodec:
    """Writes `size` zero bytes per output and records every call."""

    def __init__(self, size=100, sizes=None, fail_for=(), delays=None):
        self.size = size
        self.sizes = sizes or {}
        self.fail_for = set(fail_for)
        self.delays = delays or {}
        self.calls = []
        self._lock = threading.Lock()

    def encode(self, input_path, output_path, format_name, options):
        name = Path(input_path).name
        with self._lock:
            self.calls.append((Path(input_path), Path(output_path), format_name, dict(options)))
        if name in self.delays:
            time.sleep(self.delays[name])
        if name in self.fail_for:
            raise OSError(f"corrupt image: {name}")
        size = self.sizes.get(name, self.size)
        Path(output_path).write_bytes(b"\0" * size)
        return size


def write_file(path: Path, size: int) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\1" * size)
    return path


@pytest.fixture
def make_file():
    return write_file


@pytest.fixture
def codec():
    return FakeCodec()


@pytest.fixture
def converter(codec):
    return ImageConverter(codec, max_workers=1)
