import pytest

from filesender.catalog import Catalog
from filesender.protocol.messages import FileDescriptor

from fakes import envelope


def descriptor(name, size=10):
    return FileDescriptor(file_name=name, file_size=size, chunk_size=4, chunk_count=3)


def test_update_replaces_everything():
    catalog = Catalog()
    catalog.apply_update({1: descriptor('a'), 2: descriptor('b')})
    catalog.apply_update({2: descriptor('b2'), 3: descriptor('c')})

    assert dict(catalog.files) == {2: descriptor('b2'), 3: descriptor('c')}
    assert 1 not in catalog
    assert len(catalog) == 2


def test_snapshot_is_read_only():
    catalog = Catalog()
    catalog.apply_update({1: descriptor('a')})
    with pytest.raises(TypeError):
        catalog.files[2] = descriptor('b')


def test_old_snapshot_is_unchanged_by_update():
    catalog = Catalog()
    catalog.apply_update({1: descriptor('a')})
    before = catalog.files
    catalog.apply_update({})
    assert dict(before) == {1: descriptor('a')}
    assert len(catalog.files) == 0


def test_source_dict_is_copied():
    catalog = Catalog()
    files = {1: descriptor('a')}
    catalog.apply_update(files)
    files[2] = descriptor('b')
    assert 2 not in catalog


def test_callback_receives_new_snapshot():
    catalog = Catalog()
    seen = []
    catalog.on_update(seen.append)
    snapshot = catalog.apply_update({1: descriptor('a')})
    assert seen == [snapshot]
    assert catalog.updates == 1


def test_client_file_list_update(logged_in):
    updates = []
    logged_in.on_file_list_update(updates.append)

    logged_in.text_received(envelope('file-list-update', {'files': {
        '1': {'fileName': 'a', 'fileSize': 10, 'chunkSize': 4, 'chunkCount': 3},
    }}))
    logged_in.text_received(envelope('file-list-update', {'files': {
        '2': {'fileName': 'b', 'fileSize': 10, 'chunkSize': 4, 'chunkCount': 3},
    }}))

    assert list(logged_in.files) == [2]
    assert len(updates) == 2


def test_requests_are_sent(logged_in, transport):
    logged_in.request_file_list_update()
    logged_in.download_file(7)
    assert transport.messages() == [
        ('request-file-list-update', {}),
        ('request-file-download', {'fileId': 7}),
    ]
