"""File upload client: sends a file in chunks, driven by the server's replies."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import enum
import logging
import sys
from pathlib import Path

from .messages import (
    FileChunk,
    FileTransferRequest,
    FileUploadFinished,
    FileUploadStatus,
    MessageError,
    decode_server_message,
    encode_client_message,
)
from .protocol import ProtocolError, read_frame, write_frame

DEFAULT_CHUNK_SIZE = 4

logger = logging.getLogger(__name__)


class TransferState(enum.IntEnum):
    """The stages of one upload."""

    INIT = 0
    TRANSFER = 1
    COMPLETE_CHECK = 2
    COMPLETED = 3
    FAILED = 4
    STOPPED = 5

    @property
    def is_terminal(self) -> bool:
        return self in (TransferState.COMPLETED, TransferState.FAILED, TransferState.STOPPED)


class TransferError(Exception):
    """The upload failed or was stopped."""


class FileUploader:
    """Decides which message to send next for each status the server returns.

    The uploader does no network I/O itself: ``initial_request`` gives the
    first message and ``handle_status`` the reply to each server status.
    """

    def __init__(self, path, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.path = Path(path)
        self.chunk_size = chunk_size
        self.state = TransferState.INIT
        self.file_size = 0
        self.error: str | None = None
        self._file = None
        self._stop_requested = False

    @property
    def filename(self) -> str:
        """The name the file is uploaded under."""
        return self.path.name

    def open(self) -> None:
        """Open the file to upload; raises TransferError if it cannot be read."""
        if not self.path.exists():
            self._fail(f"File not found: {self.path}")
        try:
            self.file_size = self.path.stat().st_size
            self._file = open(self.path, "rb")
        except OSError as exc:
            self._fail(f"Input file could not be opened: {self.path} ({exc})")

    def initial_request(self) -> FileTransferRequest:
        """Return the request announcing the upload."""
        if self.state is not TransferState.INIT:
            raise TransferError("FileHandler already started or in a non-initial state.")
        if self._file is None:
            self.open()
        logger.info("Sending file transfer request for: %s", self.filename)
        return FileTransferRequest(filename=self.filename, filesize=self.file_size)

    def handle_status(self, status) -> FileChunk | FileUploadFinished | None:
        """Advance on a server status; return the next message to send, if any.

        Raises TransferError when the upload fails or has been stopped.
        """
        if not isinstance(status, FileUploadStatus):
            if not self.state.is_terminal:
                self._fail("Received invalid or unexpected message from server (no upload status).")
            return None

        logger.info(
            "Server Status for %s: %s (%d bytes received by server)",
            status.filename, status.status_message, status.bytes_received,
        )

        if self._stop_requested:
            self._halt()

        if self.state is TransferState.INIT:
            if not status.success:
                self._fail(f"Transfer initialization error from server: {status.status_message}")
            self.state = TransferState.TRANSFER
            return self._next_chunk(0)

        if self.state is TransferState.TRANSFER:
            if not status.success:
                self._fail(f"Transfer error from server: {status.status_message}")
            if status.bytes_received >= self.file_size:
                self.state = TransferState.COMPLETE_CHECK
                return self._finished_message()
            return self._next_chunk(status.bytes_received)

        if self.state is TransferState.COMPLETE_CHECK:
            if status.success and status.bytes_received >= self.file_size:
                logger.info("Transfer completed successfully: %s", status.filename)
                self.state = TransferState.COMPLETED
                self.close()
                return None
            self._fail(
                f"Transfer completion check error or size mismatch: {status.status_message}"
            )

        logger.warning(
            "Unexpected message in terminal state %d: %s",
            int(self.state), status.status_message,
        )
        return None

    def stop(self) -> None:
        """Ask the upload to stop at the next server status."""
        if not self.state.is_terminal:
            self._stop_requested = True
            logger.info("Stop requested for file transfer.")
        self.close()

    def close(self) -> None:
        """Close the file being uploaded."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "FileUploader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _fail(self, reason: str):
        self.state = TransferState.FAILED
        self.error = reason
        self.close()
        logger.error("%s", reason)
        raise TransferError(reason)

    def _halt(self):
        self.state = TransferState.STOPPED
        self.error = "File transfer stopped by request."
        self.close()
        raise TransferError(self.error)

    def _finished_message(self) -> FileUploadFinished:
        return FileUploadFinished(filename=self.filename, message="Upload Finished")

    def _next_chunk(self, offset: int) -> FileChunk | FileUploadFinished:
        if self._stop_requested:
            self._halt()
        if self._file is None:
            self._fail("File is not open, cannot send chunk.")
        if offset >= self.file_size:
            logger.info("All local data read. Sending finalization message.")
            self.state = TransferState.COMPLETE_CHECK
            return self._finished_message()
        try:
            self._file.seek(offset)
            data = self._file.read(self.chunk_size)
        except (OSError, ValueError):
            self._fail(f"File seek offset failed: {offset}")
        if not data:
            self._fail(f"No bytes read from file at offset {offset}. Unexpected.")
        return FileChunk(
            filename=self.filename,
            offset=offset,
            data=data,
            is_last_chunk=offset + len(data) >= self.file_size,
        )


async def upload_file(host: str, port: int, path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> FileUploadStatus:
    """Upload *path* to the server and return its final status.

    Raises TransferError if the upload fails and OSError if the server
    cannot be reached.
    """
    with FileUploader(path, chunk_size) as uploader:
        uploader.open()
        reader, writer = await asyncio.open_connection(host, port)
        logger.info("Client is connected to the server: %s:%s", host, port)
        last: FileUploadStatus | None = None
        try:
            outgoing = uploader.initial_request()
            while True:
                if outgoing is not None:
                    try:
                        await write_frame(writer, encode_client_message(outgoing))
                    except OSError as exc:
                        uploader._fail(f"Error sending message: {exc}")
                if uploader.state.is_terminal:
                    break
                try:
                    payload = await read_frame(reader)
                except asyncio.IncompleteReadError:
                    uploader._fail("Connection closed by the server (EOF)")
                except (ProtocolError, OSError) as exc:
                    uploader._fail(f"Error reading server message: {exc}")
                try:
                    status = decode_server_message(payload)
                except MessageError as exc:
                    uploader._fail(f"Received invalid message from server: {exc}")
                last = status
                outgoing = uploader.handle_status(status)
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()
    return last


def main(argv: list[str] | None = None) -> int:
    """Command line entry point of the upload client."""
    parser = argparse.ArgumentParser(description="File upload client.")
    parser.add_argument("host")
    parser.add_argument("port", type=int)
    parser.add_argument("filepath")
    parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)

    try:
        asyncio.run(upload_file(args.host, args.port, args.filepath, args.chunk_size))
        success = True
    except TransferError:
        success = False
    except OSError as exc:
        print(f"Client error: {exc}", file=sys.stderr)
        return 0
    except KeyboardInterrupt:
        return 0
    outcome = "SUCCESS" if success else "FAILED"
    print(f"File transfer of {args.filepath} completed with status: {outcome}")
    return 0