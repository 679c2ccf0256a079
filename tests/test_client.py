import pytest

from sockdemo.client import (
    FileUploader,
    TransferError,
    TransferState,
    main,
    upload_file,
)
from sockdemo.messages import (
    FileChunk,
    FileTransferRequest,
    FileUploadFinished,
    FileUploadStatus,
)
from sockdemo.server import FileServer, UploadSession

DATA = b"abcdefghij"


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "input.bin"
    path.write_bytes(DATA)
    return path


def status(bytes_received, success=True, text="ok", filename="input.bin"):
    return FileUploadStatus(filename, text, success, bytes_received)


def test_open_missing_file_fails(tmp_path):
    uploader = FileUploader(tmp_path / "missing.bin")
    with pytest.raises(TransferError):
        uploader.open()
    assert uploader.state is TransferState.FAILED


def test_invalid_chunk_size(source):
    with pytest.raises(ValueError):
        FileUploader(source, 0)


def test_initial_request(source):
    with FileUploader(source) as uploader:
        uploader.open()
        request = uploader.initial_request()
    assert request == FileTransferRequest(filename="input.bin", filesize=len(DATA))


def test_full_state_sequence(source):
    with FileUploader(source, 4) as uploader:
        uploader.initial_request()
        first = uploader.handle_status(status(0))
        assert first == FileChunk("input.bin", 0, DATA[:4], False)
        assert uploader.state is TransferState.TRANSFER
        second = uploader.handle_status(status(4))
        assert second == FileChunk("input.bin", 4, DATA[4:8], False)
        third = uploader.handle_status(status(8))
        assert third == FileChunk("input.bin", 8, DATA[8:], True)
        finished = uploader.handle_status(status(len(DATA)))
        assert finished == FileUploadFinished("input.bin", "Upload Finished")
        assert uploader.state is TransferState.COMPLETE_CHECK
        assert uploader.handle_status(status(len(DATA))) is None
        assert uploader.state is TransferState.COMPLETED


def test_second_initial_request_rejected(source):
    with FileUploader(source) as uploader:
        uploader.initial_request()
        uploader.handle_status(status(0))
        with pytest.raises(TransferError):
            uploader.initial_request()
        assert uploader.state is TransferState.TRANSFER


def test_server_rejects_request(source):
    with FileUploader(source) as uploader:
        uploader.initial_request()
        with pytest.raises(TransferError):
            uploader.handle_status(status(0, success=False, text="File couldn't be open"))
        assert uploader.state is TransferState.FAILED


def test_completion_size_mismatch_fails(source):
    with FileUploader(source, 100) as uploader:
        uploader.initial_request()
        uploader.handle_status(status(0))
        uploader.handle_status(status(len(DATA)))
        assert uploader.state is TransferState.COMPLETE_CHECK
        with pytest.raises(TransferError):
            uploader.handle_status(status(len(DATA) - 1))
        assert uploader.state is TransferState.FAILED


def test_stop_then_status(source):
    with FileUploader(source) as uploader:
        uploader.initial_request()
        uploader.stop()
        with pytest.raises(TransferError):
            uploader.handle_status(status(0))
        assert uploader.state is TransferState.STOPPED


def test_terminal_state_ignores_messages(source):
    uploader = FileUploader(source)
    uploader.initial_request()
    with pytest.raises(TransferError):
        uploader.handle_status(status(0, success=False))
    assert uploader.handle_status(status(0)) is None
    assert uploader.state is TransferState.FAILED


def test_invalid_message_fails(source):
    with FileUploader(source) as uploader:
        uploader.initial_request()
        with pytest.raises(TransferError):
            uploader.handle_status("not a status")
        assert uploader.state is TransferState.FAILED


def test_empty_file_goes_straight_to_finish(tmp_path):
    path = tmp_path / "empty.bin"
    path.write_bytes(b"")
    with FileUploader(path) as uploader:
        assert uploader.initial_request().filesize == 0
        reply = uploader.handle_status(status(0, filename="empty.bin"))
        assert isinstance(reply, FileUploadFinished)
        assert uploader.state is TransferState.COMPLETE_CHECK


def test_drives_upload_session_without_network(source, tmp_path):
    upload_dir = tmp_path / "uploads"
    with FileUploader(source, 3) as uploader, UploadSession(upload_dir) as session:
        message = uploader.initial_request()
        while message is not None:
            reply = session.handle_message(message)
            message = uploader.handle_status(reply)
    assert uploader.state is TransferState.COMPLETED
    assert (upload_dir / "input.bin").read_bytes() == DATA


@pytest.mark.asyncio
async def test_upload_file_over_tcp(source, tmp_path):
    upload_dir = tmp_path / "uploads"
    async with FileServer("127.0.0.1", 0, upload_dir) as server:
        host, port = server.address
        final = await upload_file(host, port, source, 4)
    assert final.success is True
    assert final.bytes_received == len(DATA)
    assert (upload_dir / "input.bin").read_bytes() == DATA


@pytest.mark.asyncio
async def test_upload_file_missing_path(tmp_path):
    with pytest.raises(TransferError):
        await upload_file("127.0.0.1", 1, tmp_path / "missing.bin")


def test_main_reports_failure(tmp_path, capsys):
    missing = tmp_path / "missing.bin"
    assert main(["127.0.0.1", "1", str(missing)]) == 0
    assert "completed with status: FAILED" in capsys.readouterr().out


def test_main_requires_arguments():
    with pytest.raises(SystemExit):
        main(["127.0.0.1"])