import pytest
from fastapi.testclient import TestClient

from filesender.api import create_app
from filesender.client import FileShareClient

from fakes import FakeTransport, envelope

FILES = {'files': {
    '7': {'fileName': 'movie.bin', 'fileSize': 1000, 'chunkSize': 100, 'chunkCount': 10},
    '2': {'fileName': 'notes.txt', 'fileSize': 5, 'chunkSize': 100, 'chunkCount': 1},
}}


@pytest.fixture
def api(logged_in):
    logged_in.text_received(envelope('file-list-update', FILES))
    return TestClient(create_app(logged_in))


def test_status(api):
    response = api.get('/status')
    assert response.status_code == 200
    body = response.json()
    assert body['phase'] == 'authenticated'
    assert body['client_id'] == 3
    assert body['server_name'] == 'host'


def test_list_files_sorted_by_id(api):
    body = api.get('/files').json()
    assert [f['file_id'] for f in body] == [2, 7]
    assert body[1]['file_name'] == 'movie.bin'
    assert body[1]['chunk_count'] == 10


def test_download_known_file(api, transport):
    response = api.post('/files/7/download')
    assert response.status_code == 200
    assert transport.messages() == [('request-file-download', {'fileId': 7})]


def test_download_unknown_file(api, transport):
    assert api.post('/files/99/download').status_code == 404
    assert transport.sent == []


def test_refresh(api, transport):
    assert api.post('/files/refresh').status_code == 200
    assert transport.messages() == [('request-file-list-update', {})]


def test_requests_need_a_session():
    client = FileShareClient("tester", "1.0.0", transport=FakeTransport())
    api = TestClient(create_app(client))
    assert api.post('/files/refresh').status_code == 503
    assert api.get('/status').json()['phase'] == 'connecting'


def test_transfers_empty(api):
    assert api.get('/transfers').json() == []
    assert api.get('/transfers/42').status_code == 404
