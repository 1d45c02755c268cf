import pytest

from filesender.client import FileShareClient

from fakes import FakeTransport, envelope


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(transport):
    return FileShareClient("tester", "1.0.0", transport=transport)


@pytest.fixture
def logged_in(client, transport):
    client.connection_opened()
    client.text_received(envelope('auth-accepted', {
        'receivedClientId': 3,
        'clientName': 'tester',
        'serverInfo': {'serverName': 'host', 'serverVersion': '2.1'},
    }))
    transport.sent.clear()
    return client
