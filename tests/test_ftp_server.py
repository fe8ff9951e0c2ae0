"""End-to-end tests: aioftp client -> bridge server -> mocked Paperless API.

The server listens on an ephemeral port on localhost; Paperless is served by
httpx.MockTransport and the bridge polls with a fake clock.
"""

import aioftp
import httpx
import pytest

from conftest import FakeClock
from paperbridge.auth.authenticator import Authenticator
from paperbridge.clients.paperless import PaperlessClient
from paperbridge.core.config import Settings
from paperbridge.ftp.server import build_server
from paperbridge.services.bridge import UploadBridge
from paperbridge.storage.paperless import PaperlessStorage
from paperbridge.storage.staging import StagingStore

DOCUMENT = b"%PDF-1.4 scanned page" * 100


def paperless_handler(task_status, received):
    """Mock Paperless API answering every task lookup with ``task_status``."""

    def handler(request):
        if request.url.path == "/api/documents/post_document/":
            received.append(request.read())
            return httpx.Response(200, text='"task-1"')
        if request.url.path == "/api/tasks/":
            return httpx.Response(200, json=[{"task_id": "task-1", "status": task_status}])
        return httpx.Response(404)

    return handler


@pytest.fixture
def settings(staging_dir):
    return Settings(
        LISTEN="127.0.0.1:0",
        PASSIVE_MODE_PORTS="40000-40999",
        FTP_USERNAME="scanner",
        FTP_PASSWORD="s3cret",
        PAPERLESS_URL="https://paperless.example.com",
        PAPERLESS_API_TOKEN="token",
        STAGING_DIR=str(staging_dir),
    )


async def start_server(settings, task_status, received):
    client = PaperlessClient(
        settings.PAPERLESS_URL,
        settings.PAPERLESS_API_TOKEN,
        transport=httpx.MockTransport(paperless_handler(task_status, received)),
    )
    clock = FakeClock()
    bridge = UploadBridge(
        StagingStore(settings.staging_dir),
        client,
        poll_interval=1.0,
        poll_timeout=10.0,
        clock=clock,
        sleep=clock.sleep,
    )
    server = build_server(
        settings,
        PaperlessStorage(bridge),
        Authenticator(settings.FTP_USERNAME, settings.FTP_PASSWORD),
    )
    await server.start(settings.listen_host, settings.listen_port)
    port = server.server.sockets[0].getsockname()[1]
    return server, client, port


async def upload(port, name, data, expected_codes="226"):
    client = aioftp.Client()
    await client.connect("127.0.0.1", port)
    try:
        await client.login("scanner", "s3cret")
        stream = await client.upload_stream(name)
        await stream.write(data)
        await stream.finish(expected_codes)
    finally:
        client.close()


@pytest.mark.asyncio
async def test_successful_ingestion_replies_226(settings, staging_dir):
    received = []
    server, paperless, port = await start_server(settings, "SUCCESS", received)
    try:
        await upload(port, "scan.pdf", DOCUMENT)
    finally:
        await server.close()
        await paperless.aclose()

    assert len(received) == 1
    assert DOCUMENT in received[0]
    assert b'filename="scan.pdf"' in received[0]
    assert list(staging_dir.iterdir()) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("task_status", ["FAILURE", "REVOKED", "PENDING"])
async def test_unsuccessful_ingestion_replies_451(settings, staging_dir, task_status):
    received = []
    server, paperless, port = await start_server(settings, task_status, received)
    try:
        with pytest.raises(aioftp.StatusCodeError) as exc_info:
            await upload(port, "scan.pdf", DOCUMENT)
    finally:
        await server.close()
        await paperless.aclose()

    assert exc_info.value.received_codes == ("451",)
    assert len(received) == 1
    assert list(staging_dir.iterdir()) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("login,password", [("scanner", "wrong"), ("intruder", "s3cret")])
async def test_rejected_login_replies_530(settings, login, password):
    server, paperless, port = await start_server(settings, "SUCCESS", [])
    client = aioftp.Client()
    try:
        await client.connect("127.0.0.1", port)
        with pytest.raises(aioftp.StatusCodeError) as exc_info:
            await client.login(login, password)
    finally:
        client.close()
        await server.close()
        await paperless.aclose()

    assert exc_info.value.received_codes == ("530",)


@pytest.mark.asyncio
async def test_change_directory_is_accepted(settings):
    server, paperless, port = await start_server(settings, "SUCCESS", [])
    client = aioftp.Client()
    try:
        await client.connect("127.0.0.1", port)
        await client.login("scanner", "s3cret")
        await client.change_directory("inbox")
        assert await client.list() == []
    finally:
        client.close()
        await server.close()
        await paperless.aclose()
