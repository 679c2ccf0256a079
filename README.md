# sockdemo

Small TCP networking tools built on the Python standard library alone:
line-based echo servers and clients (blocking, asyncio and multi-threaded),
and a file upload service that exchanges framed, CRC-32-checked messages.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Echo tools

The echo servers send every newline-terminated line straight back to the
client that sent it. Servers listen on `0.0.0.0` port `12345` by default;
clients connect to `127.0.0.1` port `12345`. Every echo command accepts
`--host` and `--port`.

| Command | What it does |
| --- | --- |
| `sockdemo-echo-server-sync` | Blocking server; serves one client at a time, the next one after the current one disconnects. |
| `sockdemo-echo-server-async` | asyncio server; serves many clients at once. |
| `sockdemo-echo-server-threaded` | Runs `--workers` threads (default 4), each with its own event loop, accepting on one shared listening socket. Each received line is logged with the id of the thread that handled it. |
| `sockdemo-echo-client-sync` | Sends `Message [1]`, `Message [2]`, ... and waits for each echo. Runs until stopped, or sends `--count` messages. |
| `sockdemo-echo-client-async` | Sends each line read from standard input and prints the echoes. The line `exit` ends the session. |

Start a server in one terminal and a client in another:

```
sockdemo-echo-server-async
sockdemo-echo-client-async
```

From Python:

- `sockdemo.echo_sync.serve(listener, out)` serves clients on a listening
  socket; `handle_client(sock, out)` serves one connection.
- `sockdemo.echo_sync.run_client(host, port, limit, out)` sends numbered
  messages and returns the replies.
- `sockdemo.echo_async.EchoServer(host, port, out)` has `start()`,
  `serve_forever()`, `close()` and an `address` property, and works as an
  async context manager. `handle_session(reader, writer, out)` serves one
  asyncio stream pair.
- `sockdemo.echo_async.serve_threaded(host, port, workers, out)` is a
  context manager that yields the bound address while the worker threads run.
- `sockdemo.echo_async.run_client(host, port, lines, out)` sends the given
  lines and returns the replies.

The `out` argument is a text stream for progress messages; it defaults to
standard output.

## File upload

`sockdemo-file-server` listens on `0.0.0.0` port `12345` (`--host`, `--port`)
and writes each uploaded file into the directory given by `--upload-dir`
(default `uploads`, created if needed), replacing a file of the same name.
File names containing a path separator, or `.` and `..`, are refused.

```
sockdemo-file-server
```

`sockdemo-file-client` takes the server's host, its port and the file to send:

```
sockdemo-file-client 127.0.0.1 12345 my_document.txt
```

The client announces the file name and size, then sends the file in chunks
of `--chunk-size` bytes (default 4). After each chunk the server reports how
many bytes it has received, and the client continues from that offset. Once
everything has arrived the client sends a finish message and waits for the
server's confirmation. The command then prints
`File transfer of <path> completed with status: SUCCESS` (or `FAILED`).

From Python:

- `sockdemo.client.upload_file(host, port, path, chunk_size)` is a coroutine
  that runs a whole upload and returns the server's last
  `FileUploadStatus`; it raises `TransferError` if the upload fails.
- `sockdemo.client.FileUploader` holds the client's state
  (`TransferState`) without doing any network I/O: `initial_request()` gives
  the first message and `handle_status(status)` the next message for each
  server status. `stop()` makes the next status end the upload.
- `sockdemo.server.FileServer(host, port, upload_dir)` runs the receiving
  side (`start()`, `serve_forever()`, `close()`, async context manager);
  `UploadSession(upload_dir).handle_message(message)` turns one client
  message into the status to send back.

### Wire format

Every message travels as one frame: a 16-byte header followed by the payload.
The header holds, in network byte order, the magic number `0xDEADBEEF`
(4 bytes), the protocol version `1` (1 byte), 3 padding bytes, the payload
length (4 bytes) and the CRC-32 of the payload (4 bytes).
`sockdemo.protocol` builds and reads frames (`encode_frame`, `read_frame`,
`write_frame`, `ProtocolHeader`) and raises `InvalidMagicError`,
`VersionMismatchError` or `ChecksumError`, all subclasses of
`ProtocolError`, on a bad frame.

Payloads are compact JSON objects with a `kind` field; file data is carried
as base64 text. `sockdemo.messages` defines `FileTransferRequest`,
`FileChunk`, `FileUploadFinished` and `FileUploadStatus`, with
`encode_client_message` / `decode_client_message` and
`encode_server_message` / `decode_server_message`; invalid payloads raise
`MessageError`.

## Limitations

- Connections are plain TCP: no encryption and no authentication.
- The upload server keeps no state between connections, so an interrupted
  upload cannot be resumed; it has to be sent again from the start.
- Each connection uploads one file at a time; there is no download command.