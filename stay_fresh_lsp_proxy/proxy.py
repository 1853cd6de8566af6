"""Bidirectional stdio relay between an LSP client and a spawned LSP server."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import sys
from asyncio.streams import FlowControlMixin
from asyncio.subprocess import PIPE, SubprocessStreamProtocol
from typing import BinaryIO, Callable, Protocol, Sequence, TextIO

from .config import ProxyConfig
from .errors import ClientInputError, SpawnFailure
from .filtering import DiagnosticFilter
from .framing import encode_message
from .messages import JSONObject
from .parser import StreamParser

log = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
STREAM_LIMIT = 64 * 1024

# Time allowed after the server exits for output it already wrote to arrive
EXIT_DRAIN_SECONDS = 0.5

FORWARDED_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class ByteSink(Protocol):
    """Write side used for the proxy's stdout and stderr."""

    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...

    def close(self) -> None: ...


class BlockingSink:
    """Sink over a regular binary stream, for outputs asyncio cannot pipe (files)."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def write(self, data: bytes) -> None:
        self._stream.write(data)

    async def drain(self) -> None:
        self._stream.flush()

    def close(self) -> None:
        self._stream.flush()


async def open_stdin_reader() -> asyncio.StreamReader:
    """Wrap the process stdin in an asyncio stream reader.

    Raises:
        ClientInputError: If stdin is not a pipe, socket or character device.
    """
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    try:
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    except ValueError as exc:
        raise ClientInputError(str(exc)) from exc
    return reader


async def open_output_writer(stream: TextIO) -> ByteSink:
    """Return a non-blocking writer over a duplicate of ``stream``'s descriptor.

    Regular files and streams without a descriptor get a :class:`BlockingSink`.
    Closing the returned writer leaves ``stream`` itself open.
    """
    loop = asyncio.get_running_loop()
    try:
        pipe = os.fdopen(os.dup(stream.fileno()), "wb", buffering=0)
    except (OSError, ValueError):
        return BlockingSink(stream.buffer)
    try:
        transport, protocol = await loop.connect_write_pipe(FlowControlMixin, pipe)
    except ValueError:
        pipe.close()
        return BlockingSink(stream.buffer)
    return asyncio.StreamWriter(transport, protocol, None, loop)


def exit_status(returncode: int | None) -> int:
    """Map a child return code onto the proxy's own exit status.

    asyncio reports death by signal as a negative return code; that case, like
    a missing code, maps to success.
    """
    if returncode is None or returncode < 0:
        return 0
    return returncode


class ServerProcessProtocol(SubprocessStreamProtocol):
    """Stream protocol whose ``exited`` future resolves when the child exits.

    ``exited`` does not wait for the child's pipes to close, which a
    descendant process may keep open indefinitely.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        super().__init__(limit=STREAM_LIMIT, loop=loop)
        self.exited: asyncio.Future[None] = loop.create_future()

    def process_exited(self) -> None:
        super().process_exited()
        if not self.exited.done():
            self.exited.set_result(None)


class LspProxy:
    """Relay client bytes to the server and filtered server messages back.

    Client to server traffic is copied byte-for-byte. Server stdout runs
    through :class:`StreamParser` and :class:`DiagnosticFilter` and is
    re-encoded; server stderr is copied unmodified. The proxy finishes when
    the child exits.

    Args:
        config: Resolved runtime configuration.
        stdout: Sink for messages sent to the client.
        stderr: Sink for the server's stderr.
    """

    def __init__(self, config: ProxyConfig, *, stdout: ByteSink, stderr: ByteSink):
        self.config = config
        self._stdout = stdout
        self._stderr = stderr
        self._filter = DiagnosticFilter(config)
        self._parser = StreamParser(self._forward_to_client)

    async def spawn(
        self, command: str, args: Sequence[str]
    ) -> tuple[asyncio.SubprocessTransport, ServerProcessProtocol]:
        """Start the LSP server with all three stdio streams piped.

        Raises:
            SpawnFailure: If the executable is missing or cannot be run.
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.subprocess_exec(
                lambda: ServerProcessProtocol(loop),
                command,
                *args,
                stdin=PIPE,
                stdout=PIPE,
                stderr=PIPE,
            )
        except OSError as exc:
            raise SpawnFailure(command, exc.strerror or str(exc)) from exc

    async def run(
        self,
        command: str,
        args: Sequence[str],
        client_input: asyncio.StreamReader | None = None,
    ) -> int:
        """Proxy traffic until the LSP server exits.

        Args:
            command: Executable to spawn.
            args: Arguments passed verbatim to ``command``.
            client_input: Source of client bytes; defaults to this process's
                stdin, attached before the server is spawned.

        Returns:
            Exit status mirroring the child's.

        Raises:
            ClientInputError: If stdin cannot be read asynchronously.
            SpawnFailure: If the child process cannot be started.
        """
        log.info("Starting proxy for: %s %s", command, " ".join(args))
        log.info(
            "Config: drop_all=%s, min_severity=%s, debug=%s",
            self.config.drop_all,
            self.config.min_severity,
            self.config.debug,
        )

        if client_input is None:
            client_input = await open_stdin_reader()
        transport, server = await self.spawn(command, args)

        restore_signals = self._forward_signals(transport)
        client_pump = asyncio.create_task(self._pump_client(client_input, server.stdin))
        output_pumps = [
            asyncio.create_task(self._pump_server(server.stdout)),
            asyncio.create_task(self._pump_errors(server.stderr)),
        ]
        try:
            pending: set[asyncio.Future] = {server.exited, *output_pumps}
            while not server.exited.done():
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for future in done:
                    future.result()

            await asyncio.wait(output_pumps, timeout=EXIT_DRAIN_SECONDS)
            for pump in output_pumps:
                if pump.done():
                    pump.result()
        finally:
            tasks = (client_pump, *output_pumps)
            for task in tasks:
                task.cancel()
            for task in tasks:
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            restore_signals()
            transport.close()

        returncode = transport.get_returncode()
        log.info("LSP server exited with code %s", returncode)
        return exit_status(returncode)

    def _forward_to_client(self, message: JSONObject) -> None:
        filtered = self._filter(message)
        if filtered is None:
            return
        self._stdout.write(encode_message(filtered))

    async def _pump_client(self, reader: asyncio.StreamReader, child_stdin: asyncio.StreamWriter) -> None:
        try:
            while True:
                chunk = await reader.read(CHUNK_SIZE)
                if not chunk:
                    break
                child_stdin.write(chunk)
                await child_stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            log.info("LSP server stopped reading its input")
            return
        child_stdin.close()

    async def _pump_server(self, reader: asyncio.StreamReader) -> None:
        while True:
            chunk = await reader.read(CHUNK_SIZE)
            if not chunk:
                return
            self._parser.feed(chunk)
            await self._stdout.drain()

    async def _pump_errors(self, reader: asyncio.StreamReader) -> None:
        while True:
            chunk = await reader.read(CHUNK_SIZE)
            if not chunk:
                return
            self._stderr.write(chunk)
            await self._stderr.drain()

    def _forward_signals(self, transport: asyncio.SubprocessTransport) -> Callable[[], None]:
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []

        def relay(signum: signal.Signals) -> None:
            log.info("Forwarding %s to LSP server", signum.name)
            if transport.get_returncode() is None:
                with contextlib.suppress(ProcessLookupError):
                    transport.send_signal(signum)

        for signum in FORWARDED_SIGNALS:
            try:
                loop.add_signal_handler(signum, relay, signum)
            except (NotImplementedError, RuntimeError, ValueError):  # pragma: no cover - non-Unix or non-main thread
                continue
            installed.append(signum)

        def restore() -> None:
            for signum in installed:
                loop.remove_signal_handler(signum)

        return restore


async def run_proxy(command: str, args: Sequence[str], config: ProxyConfig) -> int:
    """Proxy this process's stdio to ``command`` and return its exit status."""

    client_input = await open_stdin_reader()
    stdout = await open_output_writer(sys.stdout)
    stderr = await open_output_writer(sys.stderr)
    proxy = LspProxy(config, stdout=stdout, stderr=stderr)
    try:
        return await proxy.run(command, args, client_input)
    finally:
        stdout.close()
        stderr.close()


__all__ = [
    "BlockingSink",
    "ByteSink",
    "CHUNK_SIZE",
    "EXIT_DRAIN_SECONDS",
    "FORWARDED_SIGNALS",
    "LspProxy",
    "ServerProcessProtocol",
    "exit_status",
    "open_output_writer",
    "open_stdin_reader",
    "run_proxy",
]
