"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from fileshare.cli import cli
from fileshare.config import EXAMPLE_CONFIG, Config, load_config
from fileshare.errors import ConfigError


def test_defaults():
    config = Config()
    assert config.port == 8080
    assert config.transform_key == 0x5A
    assert config.root_dir == Path('server_files')
    assert config.upload_dir == Path('server_files/uploads')
    assert config.users_file == Path('users.txt')
    assert config.max_sessions == 1
    assert not config.discard_partial_uploads


def test_file_roundtrip(tmp_path):
    path = tmp_path / 'config.json'
    original = Config(port=9000, root_dir=Path('/srv/files'), transform_key=0x21, max_sessions=4)
    original.save(path)

    loaded = Config.from_file(path)
    assert loaded.to_dict() == original.to_dict()


def test_hex_key_in_file(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({'transform_key': '0x5B'}))
    assert Config.from_file(path).transform_key == 0x5B


def test_invalid_json(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text('{not json')
    with pytest.raises(ConfigError):
        Config.from_file(path)


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / 'config.json'
    Config(port=9000, max_sessions=2).save(path)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv('FILESHARE_PORT', '9100')
    monkeypatch.setenv('FILESHARE_TRANSFORM_KEY', '0x10')
    monkeypatch.setenv('FILESHARE_DISCARD_PARTIAL_UPLOADS', 'true')

    config = load_config(path)

    assert config.port == 9100
    assert config.transform_key == 0x10
    assert config.max_sessions == 2
    assert config.discard_partial_uploads


def test_bad_env_value(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv('FILESHARE_PORT', 'eighty')
    with pytest.raises(ConfigError):
        load_config()


@pytest.mark.parametrize("kwargs", [
    {'transform_key': 256},
    {'transform_key': -1},
    {'max_frame_length': 0},
    {'max_sessions': 0},
    {'port': 70000},
])
def test_validate(kwargs):
    with pytest.raises(ConfigError):
        Config(**kwargs).validate()


def test_example_config_matches_defaults(tmp_path):
    path = tmp_path / 'example.json'
    path.write_text(EXAMPLE_CONFIG)

    example = Config.from_file(path).validate()
    assert example.port == Config().port
    assert example.transform_key == Config().transform_key
    assert example.max_sessions == 1


def test_init_config_writes_loadable_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ['init-config', 'config.json'])
    assert result.exit_code == 0, result.output
    assert json.loads((tmp_path / 'config.json').read_text())['port'] == 8080

    # Refuses to clobber without --force
    result = runner.invoke(cli, ['init-config', 'config.json'])
    assert result.exit_code != 0
    assert runner.invoke(cli, ['init-config', 'config.json', '--force']).exit_code == 0


def test_init_config_to_stdout(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ['init-config'])
    assert result.exit_code == 0
    assert json.loads(result.output)['upload_dir'] == './server_files/uploads'
