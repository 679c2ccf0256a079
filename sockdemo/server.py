"""File upload server: receives framed messages and writes files to disk."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path

from .messages import (
    FileChunk,
    FileTransferRequest,
    FileUploadFinished,
    FileUploadStatus,
    MessageError,
    decode_client_message,
    encode_server_message,
)
from .protocol import ProtocolError, read_frame, write_frame

DEFAULT_PORT = 12345
DEFAULT_UPLOAD_DIR = "uploads"

logger = logging.getLogger(__name__)


def _endpoint(address) -> str:
    if not address:
        return "unknown"
    host, port = address[0], address[1]
    if ":" in str(host):
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _is_plain_name(filename: str) -> bool:
    return (
        bool(filename)
        and filename not in (".", "..")
        and not any(sep in filename for sep in ("/", "\\", "\0"))
    )


class UploadSession:
    """The state of one client's upload; turns client messages into replies."""

    def __init__(self, upload_dir=DEFAULT_UPLOAD_DIR):
        self.upload_dir = Path(upload_dir)
        self.filename = ""
        self.file_size = 0
        self.bytes_received = 0
        self._out = None

    @property
    def is_open(self) -> bool:
        """Whether a file is currently being written."""
        return self._out is not None

    def handle_message(self, message) -> FileUploadStatus | None:
        """Apply *message* and return the status to send back, if any."""
        if isinstance(message, FileTransferRequest):
            return self._on_request(message)
        if isinstance(message, FileChunk):
            return self._on_chunk(message)
        if isinstance(message, FileUploadFinished):
            return self._on_finished(message)
        logger.warning("Unknown ClientMessage type")
        return None

    def close(self) -> None:
        """Close the file being written, if any."""
        if self._out is not None:
            self._out.close()
            self._out = None

    def _on_request(self, request: FileTransferRequest) -> FileUploadStatus:
        self.close()
        self.filename = request.filename
        self.file_size = request.filesize
        self.bytes_received = 0

        try:
            if not _is_plain_name(request.filename):
                raise OSError(f"invalid file name: {request.filename!r}")
            target = self.upload_dir / request.filename
            if target.exists():
                logger.warning("File is already exists. It will be overridden")
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            self._out = open(target, "wb")
        except OSError as exc:
            logger.error("File couldn't be open: %s (%s)", request.filename, exc)
            return FileUploadStatus(request.filename, "File couldn't be open", False, 0)

        logger.info("File transfer request is received: %s", self.filename)
        return FileUploadStatus(request.filename, "File transfer request is received", True, 0)

    def _on_chunk(self, chunk: FileChunk) -> FileUploadStatus:
        if self._out is None or chunk.filename != self.filename:
            logger.error("Wrong filename")
            return FileUploadStatus(chunk.filename, "Wrong filename", False, 0)

        self._out.seek(chunk.offset)
        self._out.write(chunk.data)
        self.bytes_received += len(chunk.data)

        percent = self.bytes_received / self.file_size * 100.0 if self.file_size else 100.0
        logger.info("Received: %d Remaining: %s%%", self.bytes_received, percent)

        if self.bytes_received >= self.file_size or chunk.is_last_chunk:
            logger.info("All bytes received: %s", self.filename)
            return FileUploadStatus(chunk.filename, "All bytes received", True, self.bytes_received)
        return FileUploadStatus(chunk.filename, "Bytes received", True, self.bytes_received)

    def _on_finished(self, finished: FileUploadFinished) -> FileUploadStatus | None:
        if finished.filename != self.filename or self._out is None:
            return None
        self.close()
        logger.info("File transfer completed: %s", self.filename)
        return FileUploadStatus(self.filename, "File transfer completed", True, self.file_size)

    def __enter__(self) -> "UploadSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


async def handle_connection(reader, writer, upload_dir=DEFAULT_UPLOAD_DIR) -> None:
    """Serve one client connection until it closes or sends something invalid."""
    logger.info(
        "New connection has been established: %s",
        _endpoint(writer.get_extra_info("peername")),
    )
    try:
        with UploadSession(upload_dir) as session:
            while True:
                try:
                    payload = await read_frame(reader)
                except asyncio.IncompleteReadError:
                    logger.info("Error in reading message: End of file")
                    return
                except (ProtocolError, OSError) as exc:
                    logger.error("Error in reading message: %s", exc)
                    return

                try:
                    message = decode_client_message(payload)
                except MessageError as exc:
                    logger.error("Error in HandleReadPayload: %s", exc)
                    return

                try:
                    status = session.handle_message(message)
                except OSError as exc:
                    logger.error("File write error: %s", exc)
                    return

                if status is not None:
                    try:
                        await write_frame(writer, encode_server_message(status))
                    except OSError as exc:
                        logger.error("SendUploadStatus write error: %s", exc)
    finally:
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()


class FileServer:
    """An asyncio upload server; usable as an async context manager."""

    def __init__(self, host: str = "0.0.0.0", port: int = DEFAULT_PORT,
                 upload_dir=DEFAULT_UPLOAD_DIR):
        self.host = host
        self.port = port
        self.upload_dir = Path(upload_dir)
        self._server: asyncio.base_events.Server | None = None
        self._sessions: set[asyncio.Task] = set()

    @property
    def address(self) -> tuple[str, int]:
        """The bound (host, port); only valid once started."""
        if self._server is None or not self._server.sockets:
            raise RuntimeError("server is not started")
        return tuple(self._server.sockets[0].getsockname()[:2])

    async def _on_client(self, reader, writer) -> None:
        task = asyncio.current_task()
        self._sessions.add(task)
        try:
            await handle_connection(reader, writer, self.upload_dir)
        finally:
            self._sessions.discard(task)

    async def start(self) -> None:
        """Bind and begin accepting connections."""
        if self._server is not None:
            return
        self._server = await asyncio.start_server(self._on_client, self.host, self.port)
        logger.info("Server is listening Port %d", self.address[1])

    async def serve_forever(self) -> None:
        """Accept connections until cancelled."""
        await self.start()
        await self._server.serve_forever()

    async def close(self) -> None:
        """Stop accepting and end every open session."""
        if self._server is None:
            return
        server, self._server = self._server, None
        server.close()
        sessions = list(self._sessions)
        for task in sessions:
            task.cancel()
        await asyncio.gather(*sessions, return_exceptions=True)
        await server.wait_closed()

    async def __aenter__(self) -> "FileServer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def main(argv: list[str] | None = None) -> int:
    """Command line entry point of the upload server."""
    parser = argparse.ArgumentParser(description="File upload server.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--upload-dir", default=DEFAULT_UPLOAD_DIR)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stdout)

    async def run() -> None:
        async with FileServer(args.host, args.port, args.upload_dir) as server:
            await server.serve_forever()

    try:
        asyncio.run(run())
    except OSError as exc:
        logger.error("Server error: %s", exc)
    except KeyboardInterrupt:
        pass
    return 0