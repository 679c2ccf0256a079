import json

import pytest

from sockdemo.messages import (
    FileChunk,
    FileTransferRequest,
    FileUploadFinished,
    FileUploadStatus,
    MessageError,
    decode_client_message,
    decode_server_message,
    encode_client_message,
    encode_server_message,
)


@pytest.mark.parametrize(
    "message",
    [
        FileTransferRequest(filename="report.txt", filesize=4096),
        FileChunk(filename="report.txt", offset=8, data=b"\x00\x01\xfe\xff", is_last_chunk=True),
        FileChunk(filename="report.txt", offset=0, data=b""),
        FileUploadFinished(filename="report.txt", message="Upload Finished"),
    ],
)
def test_client_message_round_trip(message):
    assert decode_client_message(encode_client_message(message)) == message


def test_server_message_round_trip():
    status = FileUploadStatus(
        filename="report.txt",
        status_message="All bytes received",
        success=True,
        bytes_received=2**40,
    )
    assert decode_server_message(encode_server_message(status)) == status


def test_chunk_defaults_to_not_last():
    chunk = decode_client_message(encode_client_message(FileChunk("a", 0, b"xy")))
    assert chunk.is_last_chunk is False
    assert chunk.data == b"xy"


def test_encode_is_compact_and_sorted():
    message = FileTransferRequest(filename="a.bin", filesize=10)
    assert encode_client_message(message) == (
        b'{"filename":"a.bin","filesize":10,"kind":"file_request"}'
    )


def test_server_status_is_not_a_client_message():
    status = FileUploadStatus("a", "ok", True, 0)
    with pytest.raises(MessageError):
        encode_client_message(status)
    with pytest.raises(MessageError):
        decode_client_message(encode_server_message(status))


def test_client_message_is_not_a_server_message():
    request = FileTransferRequest("a", 1)
    with pytest.raises(MessageError):
        encode_server_message(request)
    with pytest.raises(MessageError):
        decode_server_message(encode_client_message(request))


@pytest.mark.parametrize(
    "message",
    [
        FileTransferRequest(filename="a", filesize=-1),
        FileTransferRequest(filename="a", filesize=2**64),
        FileTransferRequest(filename=5, filesize=1),
        FileChunk(filename="a", offset=True, data=b""),
        FileChunk(filename="a", offset=0, data="text"),
    ],
)
def test_encode_rejects_invalid_fields(message):
    with pytest.raises(MessageError):
        encode_client_message(message)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"not json",
        b"\xff\xfe",
        b"[]",
        b'{"kind": "nothing"}',
        b'{"filename": "a", "filesize": 1}',
        b'{"kind": "file_request", "filename": "a"}',
        b'{"kind": "file_request", "filename": "a", "filesize": "1"}',
        b'{"kind": "file_chunk", "filename": "a", "offset": 0, "data": "@@@", "is_last_chunk": false}',
        b'{"kind": "file_chunk", "filename": "a", "offset": 0, "data": "", "is_last_chunk": 1}',
    ],
)
def test_decode_rejects_invalid_data(data):
    with pytest.raises(MessageError):
        decode_client_message(data)


def test_encoded_message_names_its_kind():
    body = json.loads(encode_client_message(FileUploadFinished("a", "done")))
    assert body["kind"] == "upload_finished"
    assert body["filename"] == "a"