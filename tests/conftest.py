"""Pytest configuration and shared fixtures."""

import pytest

from paperbridge.storage.staging import StagingStore


class BytesStream:
    """In-memory ByteStream handing out at most ``chunk_size`` bytes per read."""

    def __init__(self, data: bytes, chunk_size: int = 1024):
        self.data = data
        self.chunk_size = chunk_size
        self.position = 0
        self.reads = []

    async def read(self, n: int) -> bytes:
        self.reads.append(n)
        size = min(n, self.chunk_size)
        chunk = self.data[self.position:self.position + size]
        self.position += len(chunk)
        return chunk


class FailingStream:
    """ByteStream that breaks after yielding some data."""

    def __init__(self, data: bytes = b"partial"):
        self.data = data
        self.done = False

    async def read(self, n: int) -> bytes:
        if not self.done:
            self.done = True
            return self.data
        raise ConnectionResetError("data connection lost")


class FakeClock:
    """Deterministic clock whose sleep only advances time."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def staging_dir(tmp_path):
    """Directory used for staged uploads."""
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def staging_store(staging_dir):
    """Staging store with a small buffer so uploads span several chunks."""
    return StagingStore(staging_dir, buffer_size=4096)


@pytest.fixture
def fake_clock():
    return FakeClock()
