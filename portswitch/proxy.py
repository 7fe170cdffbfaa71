"""A TCP proxy that runs on a background thread and is reconfigured at runtime."""

from __future__ import annotations

import asyncio
import socket
import sys
import threading
from typing import Optional, Tuple

from portswitch.config import ConfigError, ForwardTarget, ProxyConfig

LISTEN_HOST = "127.0.0.1"
_CHUNK_SIZE = 64 * 1024


def resolve_target(target: ForwardTarget) -> Tuple[str, int]:
    """Resolve the target's domain to the first address found, keeping its port."""
    try:
        infos = socket.getaddrinfo(target.domain, target.port, type=socket.SOCK_STREAM)
    except (OSError, UnicodeError, ValueError) as exc:
        raise ConfigError(f"Invalid domain {target.domain!r}: {exc}") from exc
    if not infos:
        raise ConfigError(f"No address found for {target.domain!r}")
    sockaddr = infos[0][4]
    return sockaddr[0], target.port


async def _relay(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> int:
    total = 0
    while True:
        chunk = await reader.read(_CHUNK_SIZE)
        if not chunk:
            break
        writer.write(chunk)
        await writer.drain()
        total += len(chunk)
    if writer.can_write_eof():
        writer.write_eof()
    return total


async def _bridge(
    client_reader: asyncio.StreamReader,
    client_writer: asyncio.StreamWriter,
    server_reader: asyncio.StreamReader,
    server_writer: asyncio.StreamWriter,
) -> Tuple[int, int]:
    tasks = [
        asyncio.ensure_future(_relay(client_reader, server_writer)),
        asyncio.ensure_future(_relay(server_reader, client_writer)),
    ]
    try:
        sent, received = await asyncio.gather(*tasks)
        return sent, received
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    finally:
        client_writer.close()
        server_writer.close()


def _make_handler(host: str, port: int):
    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            upstream_reader, upstream_writer = await asyncio.open_connection(host, port)
        except OSError as exc:
            print(f"Failed to connect to forward address: {exc}", file=sys.stderr)
            writer.close()
            return
        try:
            sent, received = await _bridge(reader, writer, upstream_reader, upstream_writer)
        except OSError as exc:
            print(f"Connection failed: {exc}", file=sys.stderr)
            return
        print(f"client wrote {sent} bytes and received {received} bytes")

    return handle


async def serve_proxy(
    listen_port: int,
    target: ForwardTarget,
    stop_event: asyncio.Event,
    ready: Optional[asyncio.Future] = None,
) -> None:
    """Forward connections on 127.0.0.1:listen_port to target until stop_event is set.

    If ready is given, it receives the bound port once the proxy accepts
    connections, or the exception that kept it from starting.
    """
    try:
        host, port = await asyncio.to_thread(resolve_target, target)
        server = await asyncio.start_server(_make_handler(host, port), LISTEN_HOST, listen_port)
    except Exception as exc:
        if ready is not None and not ready.done():
            ready.set_exception(exc)
        raise

    bound_port = server.sockets[0].getsockname()[1]
    if ready is not None and not ready.done():
        ready.set_result(bound_port)
    try:
        await stop_event.wait()
        print("Graceful shutdown signal received", file=sys.stderr)
    finally:
        server.close()
    print("All connections Closed")


def _report_failure(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        print(f"Proxy server stopped: {task.exception()}", file=sys.stderr)


class DynamicProxy:
    """A proxy running on its own thread, switched on, off and retargeted by update().

    The target is read when the listener starts; while it runs, updates only
    record the new target, and switching off and on again applies it.
    """

    def __init__(self, *, thread_name: str = "dynamic_proxy") -> None:
        self._lock = threading.Lock()
        self._started = threading.Event()
        self._closed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._target: Optional[ForwardTarget] = None
        self._thread = threading.Thread(target=self._run, name=thread_name, daemon=True)
        self._thread.start()
        self._started.wait()
        if self._loop is None:
            raise RuntimeError("proxy thread failed to start")

    @property
    def target(self) -> Optional[ForwardTarget]:
        """The most recently requested forward target."""
        return self._target

    def _run(self) -> None:
        try:
            asyncio.run(self._observe())
        finally:
            self._started.set()

    async def _observe(self) -> None:
        self._queue = asyncio.Queue()
        self._loop = asyncio.get_running_loop()
        self._started.set()

        running: Optional[asyncio.Task] = None
        stop: Optional[asyncio.Event] = None
        stopping: set[asyncio.Task] = set()

        while (config := await self._queue.get()) is not None:
            if config.is_off() and running is not None:
                stop.set()
                stopping.add(running)
                running.add_done_callback(stopping.discard)
                running = None
            elif config.is_on():
                self._target = config.forward_target()
                if running is None:
                    stop = asyncio.Event()
                    running = asyncio.create_task(
                        serve_proxy(config.listen_port(), self._target, stop)
                    )
                    running.add_done_callback(_report_failure)

        if running is not None:
            stop.set()
            stopping.add(running)
        await asyncio.gather(*stopping, return_exceptions=True)

    def update(self, config: ProxyConfig) -> None:
        """Send a new configuration to the proxy thread."""
        if not isinstance(config, ProxyConfig):
            raise TypeError("update() expects a ProxyConfig")
        with self._lock:
            if self._closed:
                raise RuntimeError("proxy is closed")
            try:
                self._loop.call_soon_threadsafe(self._queue.put_nowait, config)
            except RuntimeError as exc:
                raise RuntimeError("proxy is closed") from exc

    def close(self) -> None:
        """Stop accepting updates and shut the running proxy down."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
            except RuntimeError:
                pass

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the proxy thread to end; return True if it has."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def __enter__(self) -> "DynamicProxy":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
        self.join()