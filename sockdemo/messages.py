"""Messages exchanged by the file upload client and server."""

import base64
import binascii
import dataclasses
import json
from dataclasses import dataclass
from typing import Union

_UINT64_MAX = 2**64 - 1


class MessageError(ValueError):
    """A message could not be encoded or decoded."""


@dataclass(frozen=True)
class FileTransferRequest:
    """Announces a file the client is about to upload."""

    filename: str
    filesize: int


@dataclass(frozen=True)
class FileChunk:
    """A piece of file content starting at *offset*."""

    filename: str
    offset: int
    data: bytes
    is_last_chunk: bool = False


@dataclass(frozen=True)
class FileUploadFinished:
    """Tells the server that the client has sent every chunk."""

    filename: str
    message: str = ""


@dataclass(frozen=True)
class FileUploadStatus:
    """The server's answer to each client message."""

    filename: str
    status_message: str
    success: bool
    bytes_received: int


ClientMessage = Union[FileTransferRequest, FileChunk, FileUploadFinished]

_CLIENT_KINDS = {
    "file_request": FileTransferRequest,
    "file_chunk": FileChunk,
    "upload_finished": FileUploadFinished,
}
_SERVER_KINDS = {"upload_status": FileUploadStatus}


def _field_types(cls) -> dict:
    return {field.name: field.type for field in dataclasses.fields(cls)}


def _check(name: str, value, expected) -> None:
    if expected is bool:
        valid = isinstance(value, bool)
    elif expected is int:
        valid = (
            isinstance(value, int)
            and not isinstance(value, bool)
            and 0 <= value <= _UINT64_MAX
        )
    elif expected is bytes:
        valid = isinstance(value, (bytes, bytearray))
    else:
        valid = isinstance(value, expected)
    if not valid:
        raise MessageError(f"field {name!r} has an invalid value: {value!r}")


def _encode(message, kinds: dict) -> bytes:
    for kind, cls in kinds.items():
        if type(message) is cls:
            break
    else:
        raise MessageError(f"cannot encode {type(message).__name__}")

    body = {"kind": kind}
    for name, expected in _field_types(cls).items():
        value = getattr(message, name)
        _check(name, value, expected)
        body[name] = base64.b64encode(value).decode("ascii") if expected is bytes else value
    return json.dumps(body, separators=(",", ":"), sort_keys=True).encode("utf-8")


def _decode(data: bytes, kinds: dict):
    try:
        body = json.loads(bytes(data))
    except ValueError as exc:
        raise MessageError(f"malformed message: {exc}") from exc
    if not isinstance(body, dict):
        raise MessageError("message must be an object")

    kind = body.get("kind")
    cls = kinds.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise MessageError(f"unknown message kind: {kind!r}")

    values = {}
    for name, expected in _field_types(cls).items():
        if name not in body:
            raise MessageError(f"missing field {name!r}")
        value = body[name]
        if expected is bytes:
            if not isinstance(value, str):
                raise MessageError(f"field {name!r} must be base64 text")
            try:
                value = base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise MessageError(f"field {name!r} is not valid base64") from exc
        else:
            _check(name, value, expected)
        values[name] = value
    return cls(**values)


def encode_client_message(message: ClientMessage) -> bytes:
    """Serialise a message sent by the client."""
    return _encode(message, _CLIENT_KINDS)


def decode_client_message(data: bytes) -> ClientMessage:
    """Parse a message sent by the client; raises MessageError if invalid."""
    return _decode(data, _CLIENT_KINDS)


def encode_server_message(message: FileUploadStatus) -> bytes:
    """Serialise a status message sent by the server."""
    return _encode(message, _SERVER_KINDS)


def decode_server_message(data: bytes) -> FileUploadStatus:
    """Parse a status message sent by the server; raises MessageError if invalid."""
    return _decode(data, _SERVER_KINDS)