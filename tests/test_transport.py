import asyncio
import json

import pytest
import websockets

from filesender.client import FileShareClient
from filesender.errors import FrameError
from filesender.protocol.frames import encode_frame
from filesender.session import SessionPhase
from filesender.transfer.receiver import ReceiveOptions, ReceivePhase
from filesender.transport import WebSocketTransport

from fakes import envelope, share_request


def wire(message):
    outer = json.loads(message)
    return outer['className'], json.loads(outer['payload'])


async def serve(handler):
    server = await websockets.serve(handler, '127.0.0.1', 0)
    port = server.sockets[0].getsockname()[1]
    return server, f"ws://127.0.0.1:{port}"


async def test_login_and_download_over_websocket(tmp_path):
    received = []

    async def host(ws):
        received.append(wire(await ws.recv()))
        await ws.send(envelope('auth-accepted', {
            'receivedClientId': 1, 'clientName': 'tester',
            'serverInfo': {'serverName': 'test-host'},
        }))
        received.append(wire(await ws.recv()))  # download request
        await ws.send(envelope('file-share-request', share_request(size=6, chunk_size=3, chunk_count=2)))
        received.append(wire(await ws.recv()))  # accept
        await ws.send(encode_frame(42, 1, b'def'))
        await ws.send(encode_frame(42, 0, b'abc'))
        await ws.wait_closed()

    server, url = await serve(host)
    try:
        client = FileShareClient("tester", "1.0.0")
        transport = WebSocketTransport(url, client)

        client.on_login(lambda m: client.download_file(7))
        client.on_share_request(lambda r: client.respond_to_share_request(
            r, True, ReceiveOptions(tmp_path, on_completed=lambda h: client.close()),
        ))

        await asyncio.wait_for(transport.run(), timeout=10)
    finally:
        server.close()
        await server.wait_closed()

    assert received == [
        ('auth-request', {'clientName': 'tester', 'clientVersion': '1.0.0'}),
        ('request-file-download', {'fileId': 7}),
        ('file-share-accept', {'fileHandleId': 42}),
    ]
    assert (tmp_path / 'movie.bin').read_bytes() == b'abcdef'
    assert client.session.phase is SessionPhase.CLOSED
    assert client.transfers.get_stats()['completed'] == 1


async def test_denied_login_closes_connection():
    async def host(ws):
        await ws.recv()
        await ws.send(envelope('auth-denied', {'code': 1, 'message': 'bad version'}))
        await ws.wait_closed()

    server, url = await serve(host)
    try:
        client = FileShareClient("tester", "0.1")
        transport = WebSocketTransport(url, client)
        failures = []
        closes = []
        client.on_login_failed(failures.append)
        client.on_close(lambda code, reason, remote: closes.append(remote))

        await asyncio.wait_for(transport.run(), timeout=10)
    finally:
        server.close()
        await server.wait_closed()

    assert len(failures) == 1
    assert closes == [False]


async def test_corrupt_frame_ends_session(tmp_path):
    async def host(ws):
        await ws.recv()
        await ws.send(b'\x00\x01')
        await ws.wait_closed()

    server, url = await serve(host)
    try:
        client = FileShareClient("tester", "1.0.0")
        transport = WebSocketTransport(url, client)
        errors = []
        client.on_error(errors.append)

        with pytest.raises(FrameError):
            await asyncio.wait_for(transport.run(), timeout=10)
    finally:
        server.close()
        await server.wait_closed()

    assert any(isinstance(e, FrameError) for e in errors)
    assert client.session.phase is SessionPhase.CLOSED


async def test_unreachable_host_reports_error():
    client = FileShareClient("tester", "1.0.0")
    transport = WebSocketTransport('ws://127.0.0.1:9', client, open_timeout=2)
    errors = []
    closes = []
    client.on_error(errors.append)
    client.on_close(lambda code, reason, remote: closes.append(code))

    await transport.run()

    assert len(errors) == 1
    assert closes == [1006]
