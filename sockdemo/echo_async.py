"""Asynchronous line echo server, a multi-threaded variant and a client."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import queue
import socket
import sys
import threading
from typing import Iterable, Iterator, TextIO

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


async def _session(reader, writer, out: TextIO, show_thread: bool) -> None:
    peer = _endpoint(writer.get_extra_info("peername"))
    _emit(out, f"New connection has been accepted: {peer}")
    try:
        while True:
            try:
                data = await reader.readuntil(b"\n")
            except asyncio.IncompleteReadError:
                _emit(out, f"Client connection has been closed (EOF): {peer}")
                return
            except (OSError, asyncio.LimitOverrunError) as exc:
                _emit(out, f"Read failure ({peer}): {exc}")
                return

            message = data.decode("utf-8", errors="replace")
            suffix = f" Thread: {threading.get_ident()}" if show_thread else ""
            _emit(out, f"Received: {message}{suffix}")

            try:
                writer.write(data)
                await writer.drain()
            except OSError as exc:
                _emit(out, f"Write failure ({peer}): {exc}")
                return
            _emit(out, f"Send: {message}")
    finally:
        writer.close()


async def handle_session(reader, writer, out: TextIO | None = None) -> None:
    """Echo newline-terminated messages for one connection until it closes."""
    await _session(reader, writer, _stream(out), show_thread=False)


class EchoServer:
    """An asyncio echo server; usable as an async context manager."""

    def __init__(self, host: str = "0.0.0.0", port: int = DEFAULT_PORT, out: TextIO | None = None):
        self.host = host
        self.port = port
        self._out = _stream(out)
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
            await handle_session(reader, writer, self._out)
        finally:
            self._sessions.discard(task)

    async def start(self) -> None:
        """Bind and begin accepting connections."""
        if self._server is not None:
            return
        self._server = await asyncio.start_server(self._on_client, self.host, self.port)
        _emit(self._out, f"Async server is listening Port {self.address[1]}")

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

    async def __aenter__(self) -> "EchoServer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def _worker(listener: socket.socket, out: TextIO, handles: queue.Queue) -> None:
    async def run() -> None:
        stop = asyncio.Event()
        try:
            server = await asyncio.start_server(
                lambda r, w: _session(r, w, out, show_thread=True), sock=listener
            )
        except BaseException:
            listener.close()
            raise
        handles.put((asyncio.get_running_loop(), stop))
        try:
            await stop.wait()
        finally:
            server.close()

    try:
        asyncio.run(run())
    except Exception as exc:  # reported to the thread that started the pool
        handles.put(exc)


@contextlib.contextmanager
def serve_threaded(
    host: str = "0.0.0.0",
    port: int = DEFAULT_PORT,
    workers: int = 4,
    out: TextIO | None = None,
) -> Iterator[tuple[str, int]]:
    """Serve echo sessions from *workers* threads sharing one listening socket.

    Yields the bound (host, port); the workers stop when the block exits.
    """
    if workers < 1:
        raise ValueError("workers must be at least 1")
    out = _stream(out)
    listener = socket.create_server((host, port))
    handles: queue.Queue = queue.Queue()
    threads: list[threading.Thread] = []
    started = []
    try:
        for _ in range(workers):
            thread = threading.Thread(
                target=_worker, args=(listener.dup(), out, handles), daemon=True
            )
            thread.start()
            threads.append(thread)

        failures = []
        for _ in threads:
            item = handles.get()
            if isinstance(item, BaseException):
                failures.append(item)
            else:
                started.append(item)
        if failures:
            raise failures[0]

        address = tuple(listener.getsockname()[:2])
        _emit(out, f"Async server is listening Port {address[1]}")
        yield address
    finally:
        for loop, stop in started:
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(stop.set)
        for thread in threads:
            thread.join()
        listener.close()


async def _receive(reader, received: list[str], arrivals: asyncio.Queue, out: TextIO) -> None:
    try:
        while True:
            try:
                data = await reader.readuntil(b"\n")
            except asyncio.IncompleteReadError:
                _emit(out, "Read error: end of file")
                return
            except (OSError, asyncio.LimitOverrunError) as exc:
                _emit(out, f"Read error: {exc}")
                return
            message = data.decode("utf-8", errors="replace")
            _emit(out, f"Received: {message}")
            received.append(message.rstrip("\n"))
            arrivals.put_nowait(True)
    finally:
        arrivals.put_nowait(None)


async def run_client(
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
    lines: Iterable[str] = (),
    out: TextIO | None = None,
) -> list[str]:
    """Send each of *lines* to the echo server while printing replies.

    The line ``exit`` ends the session at once; otherwise the client waits
    for the echo of every line sent. Returns the replies received.
    """
    out = _stream(out)
    try:
        reader, writer = await asyncio.open_connection(host, port)
    except OSError as exc:
        _emit(out, f"Connect error: {exc}")
        raise
    _emit(out, f"Connected to the server: {_endpoint(writer.get_extra_info('peername'))}")

    received: list[str] = []
    arrivals: asyncio.Queue = asyncio.Queue()
    reader_task = asyncio.create_task(_receive(reader, received, arrivals, out))
    source = iter(lines)
    sent = 0
    stopped = False
    try:
        while not reader_task.done():
            line = await asyncio.to_thread(next, source, None)
            if line is None:
                break
            line = line.rstrip("\r\n")
            if line == "exit":
                stopped = True
                break
            message = line + "\n"
            try:
                writer.write(message.encode("utf-8"))
                await writer.drain()
            except OSError as exc:
                _emit(out, f"Write error: {exc}")
                break
            sent += 1
            _emit(out, f"Send: {message}")

        if not stopped:
            while len(received) < sent:
                if await arrivals.get() is None:
                    break
    finally:
        reader_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reader_task
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
    return received


def _server_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    return parser


def server_main(argv: list[str] | None = None) -> int:
    """Command line entry point of the asyncio echo server."""
    args = _server_parser("Asynchronous TCP echo server.").parse_args(argv)
    out = sys.stdout

    async def run() -> None:
        async with EchoServer(args.host, args.port, out) as server:
            await server.serve_forever()

    try:
        asyncio.run(run())
    except OSError as exc:
        _emit(out, f"Server error: {exc}")
    except KeyboardInterrupt:
        pass
    return 0


def multithreaded_main(argv: list[str] | None = None) -> int:
    """Command line entry point of the multi-threaded echo server."""
    parser = _server_parser("Multi-threaded asynchronous TCP echo server.")
    parser.add_argument("--workers", type=int, default=4)
    args = parser.parse_args(argv)
    out = sys.stdout
    try:
        with serve_threaded(args.host, args.port, args.workers, out):
            threading.Event().wait()
    except OSError as exc:
        _emit(out, f"Server error: {exc}")
    except KeyboardInterrupt:
        pass
    return 0


def client_main(argv: list[str] | None = None) -> int:
    """Command line entry point of the interactive echo client."""
    parser = argparse.ArgumentParser(description="Interactive TCP echo client.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    out = sys.stdout
    try:
        asyncio.run(run_client(args.host, args.port, sys.stdin, out))
    except OSError as exc:
        _emit(out, f"Client error: {exc}")
    except KeyboardInterrupt:
        pass
    return 0