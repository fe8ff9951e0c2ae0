"""Tests for the aioftp path IO adapter."""

import stat
from pathlib import PurePosixPath
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from aioftp.errors import PathIOError

from paperbridge.core.exceptions import RemoteJobFailed
from paperbridge.ftp.pathio import BridgePathIO, QueueStream, UploadHandle
from paperbridge.models.upload import JobState, Principal
from paperbridge.services.bridge import UploadBridge
from paperbridge.storage.paperless import PaperlessStorage

PRINCIPAL = Principal("scanner")
PATH = PurePosixPath("/inbox/scan.pdf")


class RecordingStorage(PaperlessStorage):
    """Storage whose put drains the stream and remembers what it got."""

    def __init__(self, fail_with=None, read_size=5):
        super().__init__(bridge=None)
        self.fail_with = fail_with
        self.read_size = read_size
        self.calls = []

    async def put(self, principal, stream, path, start_pos=0):
        if self.fail_with is not None:
            raise self.fail_with
        data = b""
        while chunk := await stream.read(self.read_size):
            data += chunk
        self.calls.append((principal, path, start_pos, data))
        return len(data)


def make_pathio(storage):
    connection = SimpleNamespace(user=SimpleNamespace(principal=PRINCIPAL))
    return BridgePathIO(storage=storage, connection=connection)


@pytest.mark.asyncio
async def test_every_path_is_an_existing_directory():
    pathio = make_pathio(RecordingStorage())

    assert await pathio.exists(PATH)
    assert await pathio.is_dir(PATH)
    assert not await pathio.is_file(PATH)


@pytest.mark.asyncio
async def test_stat_reports_directory():
    pathio = make_pathio(RecordingStorage())

    result = await pathio.stat(PATH)

    assert stat.S_ISDIR(result.st_mode)
    assert result.st_size == 0


@pytest.mark.asyncio
async def test_list_is_empty():
    pathio = make_pathio(RecordingStorage())

    entries = [entry async for entry in pathio.list(PurePosixPath("/"))]

    assert entries == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda p: p.unlink(PATH),
        lambda p: p.mkdir(PATH),
        lambda p: p.rmdir(PATH),
        lambda p: p.rename(PATH, PurePosixPath("/other.pdf")),
    ],
    ids=["unlink", "mkdir", "rmdir", "rename"],
)
async def test_unsupported_operations_become_path_io_errors(call):
    pathio = make_pathio(RecordingStorage())

    with pytest.raises(PathIOError):
        await call(pathio)


@pytest.mark.asyncio
async def test_open_for_reading_is_rejected():
    pathio = make_pathio(RecordingStorage())

    with pytest.raises(PathIOError):
        async with pathio.open(PATH, mode="rb"):
            pass


@pytest.mark.asyncio
async def test_upload_streams_to_storage():
    storage = RecordingStorage()
    pathio = make_pathio(storage)

    async with pathio.open(PATH, mode="wb") as file_out:
        for block in (b"hello ", b"ftp ", b"world"):
            await file_out.write(block)

    assert storage.calls == [(PRINCIPAL, "/inbox/scan.pdf", 0, b"hello ftp world")]


@pytest.mark.asyncio
async def test_upload_without_data():
    storage = RecordingStorage()
    pathio = make_pathio(storage)

    async with pathio.open(PATH, mode="wb"):
        pass

    assert storage.calls == [(PRINCIPAL, "/inbox/scan.pdf", 0, b"")]


@pytest.mark.asyncio
async def test_upload_with_restart_offset():
    storage = RecordingStorage()
    pathio = make_pathio(storage)

    async with pathio.open(PATH, mode="r+b") as file_out:
        await file_out.seek(100)
        await file_out.write(b"rest")

    assert storage.calls == [(PRINCIPAL, "/inbox/scan.pdf", 100, b"rest")]


@pytest.mark.asyncio
async def test_upload_failure_surfaces_on_close():
    storage = RecordingStorage(fail_with=RemoteJobFailed("t", "FAILURE"))
    pathio = make_pathio(storage)

    with pytest.raises(PathIOError):
        async with pathio.open(PATH, mode="wb") as file_out:
            await file_out.write(b"data")


@pytest.mark.asyncio
async def test_writes_after_backend_failure_are_rejected():
    storage = RecordingStorage(fail_with=RemoteJobFailed("t", "FAILURE"))
    handle = UploadHandle(storage, PRINCIPAL, "/scan.pdf", queue_size=1)

    with pytest.raises(RemoteJobFailed):
        for _ in range(10):
            await handle.write(b"block")


@pytest.mark.asyncio
async def test_queue_stream_splits_blocks():
    stream = QueueStream()
    await stream.feed(b"abcdef")
    await stream.feed(None)

    assert await stream.read(4) == b"abcd"
    assert await stream.read(4) == b"ef"
    assert await stream.read(4) == b""
    assert await stream.read(4) == b""


@pytest.mark.asyncio
async def test_upload_through_bridge(staging_store, staging_dir, fake_clock):
    client = MagicMock()
    submitted = []

    async def submit(path):
        submitted.append((path.name, path.read_bytes()))
        return "task-9"

    client.submit = AsyncMock(side_effect=submit)
    client.poll_status = AsyncMock(side_effect=[JobState.PENDING, JobState.SUCCESS])
    bridge = UploadBridge(staging_store, client, clock=fake_clock, sleep=fake_clock.sleep)
    pathio = make_pathio(PaperlessStorage(bridge))

    payload = b"%PDF" + b"." * 50_000
    async with pathio.open(PATH, mode="wb") as file_out:
        for start in range(0, len(payload), 8192):
            await file_out.write(payload[start:start + 8192])

    assert submitted == [("scan.pdf", payload)]
    assert list(staging_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_upload_through_bridge_reports_remote_failure(staging_store, staging_dir, fake_clock):
    client = MagicMock()
    client.submit = AsyncMock(return_value="task-9")
    client.poll_status = AsyncMock(return_value=JobState.FAILURE)
    bridge = UploadBridge(staging_store, client, clock=fake_clock, sleep=fake_clock.sleep)
    pathio = make_pathio(PaperlessStorage(bridge))

    with pytest.raises(PathIOError):
        async with pathio.open(PATH, mode="wb") as file_out:
            await file_out.write(b"data")

    assert list(staging_dir.iterdir()) == []
