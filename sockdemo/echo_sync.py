"""Blocking line echo server and client over TCP."""

from __future__ import annotations

import argparse
import itertools
import socket
import sys
from typing import TextIO

DEFAULT_PORT = 12345


def _stream(out: TextIO | None) -> TextIO:
    return sys.stdout if out is None else out


def _emit(out: TextIO, text: str) -> None:
    print(text, file=out, flush=True)


def _endpoint(address) -> str:
    if not address:
        return "unknown"
    host, port = address[0], address[1]
    if ":" in str(host):
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def handle_client(sock: socket.socket, out: TextIO | None = None) -> None:
    """Echo newline-terminated messages on *sock* until the peer closes it."""
    out = _stream(out)
    try:
        with sock.makefile("rb") as stream:
            while True:
                data = stream.readline()
                if not data.endswith(b"\n"):
                    _emit(out, "Client connection has been closed EOF")
                    return
                message = data.decode("utf-8", errors="replace")
                _emit(out, f"Received: {message}")
                sock.sendall(data)
                _emit(out, f"Send: {message}")
    except OSError as exc:
        _emit(out, f"Error: {exc}")


def serve(listener: socket.socket, out: TextIO | None = None) -> None:
    """Accept clients one after another and serve each until it disconnects.

    Runs until accepting fails; that error is raised to the caller.
    """
    out = _stream(out)
    while True:
        conn, address = listener.accept()
        with conn:
            _emit(out, f"New connection has been accepted: {_endpoint(address)}")
            handle_client(conn, out)
        _emit(out, "Client connection has been closed")


def run_client(
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
    limit: int | None = None,
    out: TextIO | None = None,
) -> list[str]:
    """Send numbered messages and wait for each echo.

    Sends forever when *limit* is None. Returns the replies without their
    trailing newline; raises ConnectionError if the server closes early.
    """
    out = _stream(out)
    counter = itertools.count(1) if limit is None else range(1, limit + 1)
    replies: list[str] = []
    with socket.create_connection((host, port)) as sock, sock.makefile("rb") as stream:
        _emit(out, "Connected to the server")
        for number in counter:
            message = f"Message [{number}]\n"
            sock.sendall(message.encode("utf-8"))
            _emit(out, f"Send: {message}")

            data = stream.readline()
            if not data.endswith(b"\n"):
                raise ConnectionError("end of file")
            received = data.decode("utf-8", errors="replace")
            _emit(out, f"Received: {received}")
            replies.append(received.rstrip("\n"))
    return replies


def server_main(argv: list[str] | None = None) -> int:
    """Command line entry point of the blocking echo server."""
    parser = argparse.ArgumentParser(description="Blocking TCP echo server.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    out = sys.stdout
    try:
        with socket.create_server((args.host, args.port)) as listener:
            _emit(out, f"Server is listening port {args.port}")
            serve(listener, out)
    except OSError as exc:
        _emit(out, f"Server error: {exc}")
    except KeyboardInterrupt:
        pass
    return 0


def client_main(argv: list[str] | None = None) -> int:
    """Command line entry point of the blocking echo client."""
    parser = argparse.ArgumentParser(description="Blocking TCP echo client.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--count", type=int, default=None, help="messages to send")
    args = parser.parse_args(argv)
    out = sys.stdout
    try:
        run_client(args.host, args.port, args.count, out)
    except OSError as exc:
        _emit(out, f"Error: {exc}")
    except KeyboardInterrupt:
        pass
    return 0