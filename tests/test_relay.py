import asyncio
import contextlib
import random

import pytest

from controlrelay.relay import RelayServer, is_network_close_error
from controlrelay.words import ADJECTIVES, NOUNS

TIMEOUT = 3.0


@contextlib.asynccontextmanager
async def running_relay(**kwargs):
    kwargs.setdefault("rng", random.Random(7))
    relay = RelayServer(host="127.0.0.1", port=0, **kwargs)
    await relay.start()
    try:
        yield relay
    finally:
        await relay.close()


async def connect(port):
    return await asyncio.open_connection("127.0.0.1", port)


async def send(writer, line):
    writer.write(line.encode())
    await writer.drain()


async def recv(reader, timeout=TIMEOUT):
    return (await asyncio.wait_for(reader.readline(), timeout)).decode()


async def register(relay):
    reader, writer = await connect(relay.port)
    await send(writer, "REGISTER_HOST\n")
    line = await recv(reader)
    command, host_id = line.split()
    assert command == "HOST_REGISTERED"
    return reader, writer, host_id


def _is_memorable(host_id):
    nouns = set(NOUNS)
    return any(host_id.startswith(a) and host_id[len(a):] in nouns for a in ADJECTIVES)


@pytest.mark.parametrize(
    "err,expected",
    [
        (None, False),
        (EOFError(), True),
        (Exception("read tcp 127.0.0.1:1234->127.0.0.1:5678: use of closed network connection"), True),
        (Exception("read: connection reset by peer"), True),
        (Exception("write: broken pipe"), True),
        (Exception("wsarecv: An existing connection was forcibly closed by the remote host."), True),
        (Exception("это другая ошибка"), False),
        (Exception(""), False),
        (ConnectionResetError(), True),
    ],
)
def test_is_network_close_error(err, expected):
    assert is_network_close_error(err) is expected


@pytest.mark.asyncio
async def test_register_assigns_memorable_id():
    async with running_relay() as relay:
        _, writer, host_id = await register(relay)
        assert _is_memorable(host_id)
        assert host_id in relay.hosts
        writer.close()


@pytest.mark.asyncio
async def test_reregister_replaces_old_id():
    async with running_relay() as relay:
        reader, writer, first = await register(relay)
        await send(writer, "REGISTER_HOST\n")
        second = (await recv(reader)).split()[1]
        assert list(relay.hosts) == [second]
        writer.close()


@pytest.mark.asyncio
async def test_unknown_command():
    async with running_relay() as relay:
        reader, writer = await connect(relay.port)
        await send(writer, "FOO bar\n")
        assert await recv(reader) == "ERROR Unknown command: FOO\n"
        writer.close()


@pytest.mark.asyncio
async def test_initiate_without_target():
    async with running_relay() as relay:
        reader, writer = await connect(relay.port)
        await send(writer, "INITIATE_CLIENT_SESSION\n")
        line = await recv(reader)
        assert line.startswith("ERROR Invalid INITIATE_CLIENT_SESSION. Usage:")
        writer.close()


@pytest.mark.asyncio
async def test_initiate_unknown_host():
    async with running_relay() as relay:
        reader, writer = await connect(relay.port)
        await send(writer, "INITIATE_CLIENT_SESSION Nowhere password\n")
        assert await recv(reader) == "ERROR_HOST_NOT_FOUND Nowhere\n"
        writer.close()


@pytest.mark.asyncio
async def test_empty_password_forwarded_as_blank():
    async with running_relay() as relay:
        host_reader, host_writer, host_id = await register(relay)
        _, launcher = await connect(relay.port)
        await send(launcher, f"INITIATE_CLIENT_SESSION {host_id}\n")
        line = await recv(host_reader)
        parts = line.split(" ")
        assert parts[0] == "VERIFY_PASSWORD_REQUEST"
        assert line == f"VERIFY_PASSWORD_REQUEST {parts[1]} \n"
        launcher.close()
        host_writer.close()


@pytest.mark.asyncio
async def test_rejected_password():
    async with running_relay() as relay:
        host_reader, host_writer, host_id = await register(relay)
        launcher_reader, launcher = await connect(relay.port)
        await send(launcher, f"INITIATE_CLIENT_SESSION {host_id} password\n")
        _, token, supplied = (await recv(host_reader)).split()
        assert supplied == "password"
        await send(host_writer, f"VERIFY_PASSWORD_RESPONSE {token} false\n")
        assert await recv(launcher_reader) == f"ERROR_AUTHENTICATION_FAILED {host_id}\n"
        assert relay.pending == {}
        launcher.close()
        host_writer.close()


@pytest.mark.asyncio
async def test_auth_timeout():
    async with running_relay(auth_timeout=0.1) as relay:
        host_reader, host_writer, host_id = await register(relay)
        launcher_reader, launcher = await connect(relay.port)
        await send(launcher, f"INITIATE_CLIENT_SESSION {host_id} password\n")
        await recv(host_reader)
        assert await recv(launcher_reader) == f"ERROR_AUTHENTICATION_FAILED {host_id}\n"
        launcher.close()
        host_writer.close()


@pytest.mark.asyncio
async def test_response_from_other_host_is_ignored():
    async with running_relay(auth_timeout=0.3) as relay:
        host_reader, host_writer, host_id = await register(relay)
        _, other_writer, _ = await register(relay)
        launcher_reader, launcher = await connect(relay.port)
        await send(launcher, f"INITIATE_CLIENT_SESSION {host_id} password\n")
        _, token, _ = (await recv(host_reader)).split()
        await send(other_writer, f"VERIFY_PASSWORD_RESPONSE {token} true\n")
        assert await recv(launcher_reader) == f"ERROR_AUTHENTICATION_FAILED {host_id}\n"
        launcher.close()
        host_writer.close()
        other_writer.close()


@pytest.mark.asyncio
async def test_host_disconnect_unregisters():
    async with running_relay() as relay:
        _, host_writer, host_id = await register(relay)
        host_writer.close()
        for _ in range(100):
            if host_id not in relay.hosts:
                break
            await asyncio.sleep(0.01)
        launcher_reader, launcher = await connect(relay.port)
        await send(launcher, f"INITIATE_CLIENT_SESSION {host_id} password\n")
        assert await recv(launcher_reader) == f"ERROR_HOST_NOT_FOUND {host_id}\n"
        launcher.close()


async def _open_session(relay):
    host_reader, host_writer, host_id = await register(relay)
    launcher_reader, launcher = await connect(relay.port)
    await send(launcher, f"INITIATE_CLIENT_SESSION {host_id} password\n")
    _, token, _ = (await recv(host_reader)).split()
    await send(host_writer, f"VERIFY_PASSWORD_RESPONSE {token} TRUE\n")
    ready, port, session = (await recv(launcher_reader)).split()
    assert ready == "SESSION_READY"
    tunnel, host_port, host_session = (await recv(host_reader)).split()
    assert (tunnel, host_port, host_session) == ("CREATE_TUNNEL", port, session)
    return int(port), session, (launcher, host_writer)


@pytest.mark.asyncio
async def test_full_session_relays_bytes():
    async with running_relay() as relay:
        port, session, controls = await _open_session(relay)
        client_reader, client_writer = await connect(port)
        await send(client_writer, f"SESSION_TOKEN {session} CLIENT_APP\n")
        proxy_reader, proxy_writer = await connect(port)
        await send(proxy_writer, f"SESSION_TOKEN {session} HOST_PROXY\n")

        await send(client_writer, "ping")
        assert await asyncio.wait_for(proxy_reader.readexactly(4), TIMEOUT) == b"ping"
        await send(proxy_writer, "pong")
        assert await asyncio.wait_for(client_reader.readexactly(4), TIMEOUT) == b"pong"

        client_writer.close()
        assert await asyncio.wait_for(proxy_reader.read(), TIMEOUT) == b""
        proxy_writer.close()
        for writer in controls:
            writer.close()


@pytest.mark.asyncio
async def test_bad_identification_closes_both():
    async with running_relay() as relay:
        port, session, controls = await _open_session(relay)
        client_reader, client_writer = await connect(port)
        await send(client_writer, "SESSION_TOKEN wrong CLIENT_APP\n")
        proxy_reader, proxy_writer = await connect(port)
        await send(proxy_writer, f"SESSION_TOKEN {session} HOST_PROXY\n")
        assert await asyncio.wait_for(client_reader.read(), TIMEOUT) == b""
        assert await asyncio.wait_for(proxy_reader.read(), TIMEOUT) == b""
        client_writer.close()
        proxy_writer.close()
        for writer in controls:
            writer.close()