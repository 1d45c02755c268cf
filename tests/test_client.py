import asyncio

import pytest

from filesender.client import FileShareClient
from filesender.errors import FrameError
from filesender.protocol.frames import encode_frame
from filesender.protocol.messages import FileShareRequest
from filesender.transfer.receiver import ReceiveOptions, ReceivePhase

from fakes import FakeTransport, envelope, share_request


async def test_short_binary_frame_raises(logged_in):
    with pytest.raises(FrameError):
        await logged_in.binary_received(b'\x01\x00\x00\x00')


def test_send_without_transport():
    client = FileShareClient("tester", "1.0.0")
    with pytest.raises(ConnectionError):
        client.request_file_list_update()


def test_attach_transport():
    client = FileShareClient("tester", "1.0.0")
    transport = FakeTransport()
    client.attach(transport)
    client.download_file(1)
    assert transport.messages() == [('request-file-download', {'fileId': 1})]


def test_legacy_class_names_on_the_wire():
    transport = FakeTransport()
    client = FileShareClient("tester", "1.0.0", transport=transport, legacy_class_names=True)
    client.connection_opened()
    assert transport.messages()[0][0] == 'me.fabianfg.filesender.model.payloads.AuthPacket'


async def test_close_and_error_callbacks(client):
    closes = []
    errors = []
    client.on_close(lambda code, reason, remote: closes.append((code, reason, remote)))
    client.on_error(errors.append)

    client.connection_failed(OSError("reset"))
    await client.connection_closed(1006, 'reset', True)

    assert closes == [(1006, 'reset', True)]
    assert len(errors) == 1


async def test_stall_watch_fails_idle_transfer(tmp_path):
    transport = FakeTransport()
    client = FileShareClient("tester", "1.0.0", transport=transport, stall_timeout=0.1)
    failures = []
    client.connection_opened()
    handle = client.respond_to_share_request(
        FileShareRequest.model_validate(share_request()),
        True, ReceiveOptions(tmp_path, on_failed=lambda h, e: failures.append(e)),
    )

    assert await asyncio.wait_for(handle.wait(), timeout=5) is ReceivePhase.FAILED
    assert len(failures) == 1

    await client.connection_closed(1000, '', False)


async def test_get_stats(logged_in, tmp_path):
    logged_in.text_received(envelope('unknown.msg', {}))
    stats = logged_in.get_stats()

    assert stats['session']['phase'] == 'authenticated'
    assert stats['session']['client_id'] == 3
    assert stats['dispatcher']['messages_dropped'] == 1
    assert stats['transfers']['active'] == 0


async def test_progress_fractions_for_four_chunks(logged_in, tmp_path):
    seen = []

    logged_in.on_share_request(lambda request: logged_in.respond_to_share_request(
        request, True,
        ReceiveOptions(tmp_path, on_progress=lambda h: seen.append(f"{h.received_chunks}/{h.chunk_count}")),
    ))
    logged_in.text_received(envelope('file-share-request', share_request()))
    handle = logged_in.transfers.get(42)

    for index in range(10):
        await logged_in.binary_received(encode_frame(42, index, bytes([index]) * 100))

    assert seen == [f"{i}/10" for i in range(1, 11)]
    assert await handle.wait() is ReceivePhase.COMPLETED
    assert handle.progress == 1.0
