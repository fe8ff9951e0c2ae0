"""Command line entry point for paperbridge."""

import asyncio
import logging
import signal
from typing import Optional

import aioftp
import typer
from pydantic import ValidationError

from paperbridge.auth.authenticator import Authenticator
from paperbridge.clients.paperless import PaperlessClient, verify_connection
from paperbridge.core.config import Settings
from paperbridge.core.exceptions import RemoteUnavailable
from paperbridge.core.logging import setup_logging
from paperbridge.ftp.server import build_server
from paperbridge.services.bridge import UploadBridge
from paperbridge.storage.paperless import PaperlessStorage
from paperbridge.storage.staging import StagingStore

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="paperbridge",
    help="FTP server that forwards uploaded documents to Paperless.",
    add_completion=False,
)


@app.command()
def serve(
    listen: Optional[str] = typer.Option(
        None, "--listen", "-l", help="Listen address with IP and port, e.g. 0.0.0.0:2121 or [::]:2121"
    ),
    passive_mode_ports: Optional[str] = typer.Option(
        None, "--passive-mode-ports", help="Passive mode port range, e.g. 2122-2124"
    ),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="FTP username"),
    password: Optional[str] = typer.Option(None, "--password", "-p", help="FTP password"),
    paperless_url: Optional[str] = typer.Option(
        None, "--paperless-url", help="URL of the Paperless instance, e.g. https://paperless.example.com"
    ),
    paperless_api_token: Optional[str] = typer.Option(None, "--paperless-api-token", help="Paperless API token"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Be verbose"),
) -> None:
    """
    Run the FTP server.

    Every option can also be set through the environment with the
    PAPERBRIDGE_ prefix (PAPERBRIDGE_LISTEN, PAPERBRIDGE_PASSIVE_MODE_PORTS,
    PAPERBRIDGE_FTP_USERNAME, PAPERBRIDGE_FTP_PASSWORD,
    PAPERBRIDGE_PAPERLESS_URL, PAPERBRIDGE_PAPERLESS_API_TOKEN,
    PAPERBRIDGE_VERBOSE). Command line values win. Environment files written
    for the FTP_PAPERLESS_BRIDGE_ variable names must be renamed.
    """
    overrides = {
        "LISTEN": listen,
        "PASSIVE_MODE_PORTS": passive_mode_ports,
        "FTP_USERNAME": username,
        "FTP_PASSWORD": password,
        "PAPERLESS_URL": paperless_url,
        "PAPERLESS_API_TOKEN": paperless_api_token,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if verbose:
        overrides["VERBOSE"] = True

    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        typer.echo(f"Invalid configuration:\n{e}", err=True)
        raise typer.Exit(code=2)

    setup_logging(settings.VERBOSE, settings.LOG_FORMAT)
    raise typer.Exit(code=asyncio.run(run_bridge(settings)))


async def run_bridge(settings: Settings) -> int:
    """Validate the Paperless connection, then serve FTP until signalled.

    Returns:
        Process exit code
    """
    async with PaperlessClient(
        settings.PAPERLESS_URL,
        settings.PAPERLESS_API_TOKEN,
        timeout=settings.REQUEST_TIMEOUT,
    ) as client:
        logger.info("Validating Paperless API connection...")
        try:
            await verify_connection(client, settings.HEALTH_CHECK_ATTEMPTS)
        except RemoteUnavailable as e:
            logger.error(f"Failed to connect to Paperless API: {e}")
            return 1
        logger.info("Paperless API connection validated")

        bridge = UploadBridge(
            StagingStore(settings.staging_dir, settings.STAGING_BUFFER_SIZE),
            client,
            poll_interval=settings.POLL_INTERVAL_SECONDS,
            poll_timeout=settings.POLL_TIMEOUT_SECONDS,
        )
        server = build_server(
            settings,
            PaperlessStorage(bridge),
            Authenticator(settings.FTP_USERNAME, settings.FTP_PASSWORD),
        )

        logger.info(
            f"Starting FTP server at {settings.LISTEN} "
            f"with passive port range {settings.PASSIVE_MODE_PORTS}"
        )
        try:
            await server.start(settings.listen_host, settings.listen_port)
            try:
                await serve_until_signalled(server)
            finally:
                await server.close()
        except OSError as e:
            logger.error(f"FTP server error: {e}")
            return 1

    logger.info("Shutdown complete")
    return 0


async def serve_until_signalled(server: aioftp.Server) -> None:
    """Serve until SIGINT or SIGTERM arrives or the server stops by itself."""
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    def on_signal(sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down gracefully...")
        stop.set()

    signals = (signal.SIGINT, signal.SIGTERM)
    for sig in signals:
        loop.add_signal_handler(sig, on_signal, sig)

    serve_task = asyncio.create_task(server.serve_forever())
    stop_task = asyncio.create_task(stop.wait())
    try:
        done, _ = await asyncio.wait({serve_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
        for task in (serve_task, stop_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(serve_task, stop_task, return_exceptions=True)

    if serve_task in done:
        logger.info("FTP server stopped")
        serve_task.result()


if __name__ == "__main__":
    app()
