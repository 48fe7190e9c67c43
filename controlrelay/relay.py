"""Rendezvous relay: hosts register, launchers authenticate, data is spliced."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import random
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field

from .words import generate_memorable_id

__all__ = [
    "AUTH_RESPONSE_TIMEOUT",
    "CONTROL_PORT",
    "DATA_CONN_TIMEOUT",
    "IDENT_TIMEOUT",
    "PendingAuth",
    "RelayServer",
    "is_network_close_error",
    "main",
]

log = logging.getLogger(__name__)

CONTROL_PORT = 34000
DATA_CONN_TIMEOUT = 15.0
IDENT_TIMEOUT = 5.0
AUTH_RESPONSE_TIMEOUT = 10.0

_COPY_SIZE = 64 * 1024
_CLOSE_MARKERS = (
    "use of closed network connection",
    "connection reset by peer",
    "broken pipe",
    "forcibly closed by the remote host",
)


def is_network_close_error(err: BaseException | None) -> bool:
    """Tell whether ``err`` only means that the peer went away."""
    if err is None:
        return False
    if isinstance(
        err,
        (EOFError, asyncio.IncompleteReadError, ConnectionResetError,
         BrokenPipeError, ConnectionAbortedError),
    ):
        return True
    text = str(err)
    return any(marker in text for marker in _CLOSE_MARKERS)


@dataclass
class PendingAuth:
    """A launcher waiting for the host to verify its password."""

    launcher: asyncio.StreamWriter
    target_host_id: str
    initiated: float = field(default_factory=time.monotonic)


def _peer(writer: asyncio.StreamWriter) -> str:
    peer = writer.get_extra_info("peername")
    if isinstance(peer, tuple) and len(peer) >= 2:
        return f"{peer[0]}:{peer[1]}"
    return str(peer)


async def _send(writer: asyncio.StreamWriter, line: str) -> bool:
    """Write one protocol line; return False if the peer is gone."""
    try:
        writer.write(line.encode("utf-8"))
        await writer.drain()
    except (OSError, RuntimeError) as exc:
        log.debug("write to %s failed: %s", _peer(writer), exc)
        return False
    return True


async def _close(writer: asyncio.StreamWriter) -> None:
    writer.close()
    with contextlib.suppress(Exception):
        await writer.wait_closed()


class RelayServer:
    """Control-channel relay that pairs client applications with host proxies."""

    def __init__(
        self,
        host: str = "",
        port: int = CONTROL_PORT,
        auth_timeout: float = AUTH_RESPONSE_TIMEOUT,
        data_timeout: float = DATA_CONN_TIMEOUT,
        ident_timeout: float = IDENT_TIMEOUT,
        rng: random.Random | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.auth_timeout = auth_timeout
        self.data_timeout = data_timeout
        self.ident_timeout = ident_timeout
        self._rng = rng if rng is not None else random.Random()
        self.hosts: dict[str, asyncio.StreamWriter] = {}
        self.pending: dict[str, PendingAuth] = {}
        self._server: asyncio.base_events.Server | None = None
        self._tasks: set[asyncio.Task] = set()
        self._control_writers: set[asyncio.StreamWriter] = set()
        self._data_servers: set[asyncio.base_events.Server] = set()

    # ------------------------------------------------------------------ life cycle

    async def start(self) -> int:
        """Bind the control listener and return the port it listens on."""
        self._server = await asyncio.start_server(
            self.handle_control, self.host or None, self.port
        )
        sockets = self._server.sockets or ()
        if sockets:
            self.port = sockets[0].getsockname()[1]
        log.info("Relay server listening for control connections on port %s", self.port)
        return self.port

    async def serve_forever(self) -> None:
        """Start if needed and serve until cancelled."""
        if self._server is None:
            await self.start()
        assert self._server is not None
        try:
            await self._server.serve_forever()
        finally:
            await self.close()

    async def close(self) -> None:
        """Stop listening and tear down every connection and session."""
        if self._server is not None:
            self._server.close()
            self._server = None
        for data_server in list(self._data_servers):
            data_server.close()
        self._data_servers.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(BaseException):
                await task
        for writer in list(self._control_writers):
            await _close(writer)
        self._control_writers.clear()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------ control

    async def handle_control(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Serve one control connection until it closes."""
        remote = _peer(writer)
        log.info("New control connection from: %s", remote)
        self._control_writers.add(writer)
        registered_host_id = ""
        try:
            while True:
                try:
                    raw = await reader.readline()
                except (OSError, ValueError, asyncio.IncompleteReadError) as exc:
                    log.error("Reading from control connection %s: %s", remote, exc)
                    break
                if not raw.endswith(b"\n"):
                    log.info("Control connection %s closed (EOF)", remote)
                    break
                message = raw.decode("utf-8", errors="replace").strip()
                parts = message.split()
                if not parts:
                    continue
                command, args = parts[0], parts[1:]
                log.debug("Control command from %s: %s, Args: %s", remote, command, args)

                if command == "REGISTER_HOST":
                    registered_host_id = await self._register(writer, args, remote)
                elif command == "INITIATE_CLIENT_SESSION":
                    await self._initiate(writer, parts)
                elif command == "VERIFY_PASSWORD_RESPONSE":
                    await self._verify_response(parts, registered_host_id, remote, message)
                else:
                    log.warning("Unknown control command from %s: '%s'", remote, message)
                    await _send(writer, f"ERROR Unknown command: {command}\n")
        finally:
            self._forget(writer, registered_host_id, remote)
            self._control_writers.discard(writer)
            await _close(writer)

    def _forget(self, writer: asyncio.StreamWriter, host_id: str, remote: str) -> None:
        if host_id and self.hosts.get(host_id) is writer:
            log.info("Host '%s' (control conn %s) disconnected. Removing from registry.",
                     host_id, remote)
            del self.hosts[host_id]
        for token, pending in list(self.pending.items()):
            if pending.launcher is writer:
                log.info("Launcher %s for pending auth token %s disconnected.", remote, token)
                del self.pending[token]

    async def _register(
        self, writer: asyncio.StreamWriter, args: list[str], remote: str
    ) -> str:
        if args:
            log.warning("REGISTER_HOST with unexpected arguments from %s: %s. Ignoring.",
                        remote, args)
        new_id = generate_memorable_id(self.hosts, self._rng)
        for old_id, conn in list(self.hosts.items()):
            if conn is writer:
                log.warning("Connection %s (previously '%s') is re-registering.", remote, old_id)
                del self.hosts[old_id]
        self.hosts[new_id] = writer
        log.info("Host registered from %s, assigned ID '%s'", remote, new_id)
        await _send(writer, f"HOST_REGISTERED {new_id}\n")
        return new_id

    async def _initiate(self, launcher: asyncio.StreamWriter, parts: list[str]) -> None:
        if len(parts) < 2:
            await _send(
                launcher,
                "ERROR Invalid INITIATE_CLIENT_SESSION. Usage: "
                "INITIATE_CLIENT_SESSION <target_host_id> [password]\n",
            )
            return
        target = parts[1]
        supplied = parts[2] if len(parts) > 2 else ""
        host_conn = self.hosts.get(target)
        if host_conn is None:
            log.warning("Target host '%s' not found for client session", target)
            await _send(launcher, f"ERROR_HOST_NOT_FOUND {target}\n")
            return

        token = str(uuid.uuid4())
        self.pending[token] = PendingAuth(launcher, target)
        log.info("Session for host '%s'. Sending VERIFY_PASSWORD_REQUEST (token %s).",
                 target, token)
        if not await _send(host_conn, f"VERIFY_PASSWORD_REQUEST {token} {supplied}\n"):
            log.error("Failed to send VERIFY_PASSWORD_REQUEST to host '%s'.", target)
            await _send(launcher, "ERROR_RELAY_INTERNAL Failed to contact host for auth\n")
            self.pending.pop(token, None)
            return
        self._spawn(self._expire_auth(token, target))

    async def _expire_auth(self, token: str, target: str) -> None:
        await asyncio.sleep(self.auth_timeout)
        pending = self.pending.pop(token, None)
        if pending is not None:
            log.warning("Timeout waiting for VERIFY_PASSWORD_RESPONSE from host '%s' "
                        "for token %s.", target, token)
            await _send(pending.launcher, f"ERROR_AUTHENTICATION_FAILED {target}\n")

    async def _verify_response(
        self, parts: list[str], registered_host_id: str, remote: str, message: str
    ) -> None:
        if len(parts) < 3:
            log.warning("Invalid VERIFY_PASSWORD_RESPONSE from %s: %s", remote, message)
            return
        token, verdict = parts[1], parts[2].lower()
        pending = self.pending.get(token)
        if pending is None:
            log.warning("VERIFY_PASSWORD_RESPONSE for unknown/expired token %s from %s",
                        token, remote)
            return
        if registered_host_id != pending.target_host_id:
            log.warning("VERIFY_PASSWORD_RESPONSE token %s from unexpected host %s "
                        "(expected %s). Ignoring.",
                        token, registered_host_id, pending.target_host_id)
            return
        del self.pending[token]

        target = pending.target_host_id
        if verdict != "true":
            log.warning("Password verification FAILED for host '%s' (token %s).", target, token)
            await _send(pending.launcher, f"ERROR_AUTHENTICATION_FAILED {target}\n")
            return
        host_conn = self.hosts.get(target)
        if host_conn is None:
            log.warning("Host '%s' disconnected after password verification.", target)
            await _send(pending.launcher, f"ERROR_HOST_NOT_FOUND {target}\n")
            return
        await self._setup_session(pending.launcher, target, host_conn)

    # ------------------------------------------------------------------ data

    async def _setup_session(
        self,
        launcher: asyncio.StreamWriter,
        target: str,
        host_conn: asyncio.StreamWriter,
    ) -> None:
        session = str(uuid.uuid4())
        incoming: asyncio.Queue = asyncio.Queue()

        async def on_data(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            await incoming.put((reader, writer))

        try:
            data_server = await asyncio.start_server(on_data, self.host or None, 0)
        except OSError as exc:
            log.error("Failed to create data listener for session %s: %s", session, exc)
            await _send(launcher, "ERROR_RELAY_INTERNAL Failed to create data port\n")
            return
        sockets = data_server.sockets or ()
        if not sockets:
            data_server.close()
            await _send(launcher, "ERROR_RELAY_INTERNAL Failed to get data port details\n")
            return
        port = sockets[0].getsockname()[1]
        self._data_servers.add(data_server)
        log.info("Session %s for host '%s': data listener on port %d", session, target, port)

        await _send(launcher, f"SESSION_READY {port} {session}\n")
        if not await _send(host_conn, f"CREATE_TUNNEL {port} {session}\n"):
            log.error("Session %s: failed to send CREATE_TUNNEL to host '%s'.", session, target)
            await _send(launcher, "ERROR_RELAY_INTERNAL Failed to notify host.\n")
            data_server.close()
            self._data_servers.discard(data_server)
            return
        self._spawn(self._manage_session(data_server, incoming, session, target, port))

    async def _manage_session(self, data_server, incoming: asyncio.Queue,
                              session: str, target: str, port: int) -> None:
        accepted: list[tuple[asyncio.StreamReader, asyncio.StreamWriter]] = []
        deadline = asyncio.get_running_loop().time() + (
            self.data_timeout * 2 + self.ident_timeout + 2
        )
        try:
            while len(accepted) < 2:
                remaining = deadline - asyncio.get_running_loop().time()
                try:
                    accepted.append(await asyncio.wait_for(incoming.get(), max(remaining, 0)))
                except asyncio.TimeoutError:
                    log.warning("Session %s: timed out waiting for data connections on "
                                "port %d. Received %d/2.", session, port, len(accepted))
                    break
        finally:
            data_server.close()
            self._data_servers.discard(data_server)
            while not incoming.empty():
                _, extra = incoming.get_nowait()
                await _close(extra)

        if len(accepted) < 2:
            for _, writer in accepted:
                await _close(writer)
            return

        roles: dict[str, tuple[asyncio.StreamReader, asyncio.StreamWriter]] = {}
        for reader, writer in accepted:
            role = await self._identify(reader, session)
            if role in ("CLIENT_APP", "HOST_PROXY") and role not in roles:
                log.info("Session %s: %s identified as %s", session, _peer(writer), role)
                roles[role] = (reader, writer)
            else:
                log.warning("Session %s: rejecting data connection %s (role %r)",
                            session, _peer(writer), role)
                await _close(writer)

        if len(roles) < 2:
            log.warning("Session %s: incomplete relay on port %d. Client: %s, Host proxy: %s.",
                        session, port, "CLIENT_APP" in roles, "HOST_PROXY" in roles)
            for _, writer in roles.values():
                await _close(writer)
            return

        client, proxy = roles["CLIENT_APP"], roles["HOST_PROXY"]
        log.info("Session %s: relaying on port %d.", session, port)
        writers = (client[1], proxy[1])
        await asyncio.gather(
            self._relay_one_way(client[0], proxy[1], writers, session, "CLIENT_APP to HOST_PROXY"),
            self._relay_one_way(proxy[0], client[1], writers, session, "HOST_PROXY to CLIENT_APP"),
        )
        log.info("Session %s: relaying ended for port %d.", session, port)

    async def _identify(self, reader: asyncio.StreamReader, session: str) -> str | None:
        try:
            raw = await asyncio.wait_for(reader.readline(), self.ident_timeout)
        except (asyncio.TimeoutError, OSError, ValueError) as exc:
            log.warning("Session %s: failed to read identification: %s", session, exc)
            return None
        if not raw.endswith(b"\n"):
            return None
        parts = raw.decode("utf-8", errors="replace").split()
        if len(parts) != 3 or parts[0] != "SESSION_TOKEN" or parts[1] != session:
            log.warning("Session %s: invalid identification %r", session, raw)
            return None
        return parts[2]

    async def _relay_one_way(self, src: asyncio.StreamReader, dst: asyncio.StreamWriter,
                             writers: tuple[asyncio.StreamWriter, ...],
                             session: str, label: str) -> None:
        total = 0
        try:
            while data := await src.read(_COPY_SIZE):
                dst.write(data)
                await dst.drain()
                total += len(data)
        except (OSError, RuntimeError) as exc:
            if not is_network_close_error(exc):
                log.error("Session %s: copying %s: %s (bytes: %d)", session, label, exc, total)
        else:
            log.info("Session %s: %s stream ended. Bytes: %d", session, label, total)
        finally:
            for writer in writers:
                await _close(writer)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the relay server from the command line."""
    parser = argparse.ArgumentParser(description="Connection relay server.")
    parser.add_argument("--host", default="", help="address to bind (default: all)")
    parser.add_argument("--port", type=int, default=CONTROL_PORT, help="control port")
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(filename)s:%(lineno)d %(message)s",
    )
    relay = RelayServer(host=args.host, port=args.port)
    try:
        asyncio.run(relay.serve_forever())
    except KeyboardInterrupt:
        pass
    except OSError as exc:
        log.critical("Failed to listen on control port %s: %s", args.port, exc)
        return 1
    return 0