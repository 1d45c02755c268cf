from pathlib import Path

from filesender.config import Config, load_config


def test_defaults():
    config = Config()
    assert config.server_url == 'ws://localhost:8765'
    assert config.auto_accept is True
    assert config.stall_timeout is None


def test_file_then_env(tmp_path, monkeypatch):
    path = tmp_path / 'config.json'
    Config(server_url='ws://file:1', client_name='from-file', api_port=9000).save(path)

    monkeypatch.setenv('FILESENDER_SERVER_URL', 'ws://env:2')
    monkeypatch.setenv('FILESENDER_AUTO_ACCEPT', 'false')
    monkeypatch.setenv('FILESENDER_STALL_TIMEOUT', '30')
    monkeypatch.delenv('FILESENDER_CLIENT_NAME', raising=False)
    monkeypatch.delenv('FILESENDER_API_PORT', raising=False)

    config = load_config(path)

    assert config.server_url == 'ws://env:2'
    assert config.client_name == 'from-file'
    assert config.api_port == 9000
    assert config.auto_accept is False
    assert config.stall_timeout == 30.0


def test_missing_file_gives_defaults(tmp_path):
    config = Config.from_file(tmp_path / 'nope.json')
    assert config.download_dir == Path('./downloads')


def test_round_trip_dict(tmp_path):
    path = tmp_path / 'c.json'
    config = Config(download_dir=tmp_path / 'dl', legacy_class_names=True)
    config.save(path)
    loaded = Config.from_file(path)
    assert loaded.download_dir == tmp_path / 'dl'
    assert loaded.legacy_class_names is True


def test_from_env(monkeypatch):
    monkeypatch.setenv('FILESENDER_CLIENT_NAME', 'env-client')
    monkeypatch.setenv('FILESENDER_LEGACY_CLASS_NAMES', 'yes')
    monkeypatch.setenv('FILESENDER_STALL_TIMEOUT', '0')

    config = Config.from_env()

    assert config.client_name == 'env-client'
    assert config.legacy_class_names is True
    assert config.stall_timeout is None
