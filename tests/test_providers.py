from __future__ import annotations

import json
import os
import queue
import threading
from pathlib import Path

import pytest

from confwatch import Config, EnvProvider, FileProvider, LoadError, ProviderError
from confwatch.providers import unmarshal_dotenv

from conftest import WatchRunner, wait_for


def test_file_load_yaml(tmp_path: Path):
    yml = tmp_path / "c.yaml"
    yml.write_text("database:\n  url: postgres://localhost\n  pool: 5\n")
    assert FileProvider(yml).load() == {"database": {"url": "postgres://localhost", "pool": 5}}


def test_file_load_json(tmp_path: Path):
    js = tmp_path / "c.json"
    js.write_text(json.dumps({"service": {"host": "127.0.0.1", "port": 8000}}))
    assert FileProvider(js).load() == {"service": {"host": "127.0.0.1", "port": 8000}}


def test_file_load_custom_unmarshal(tmp_path: Path):
    js = tmp_path / "c.json"
    js.write_text('{"a": 1}')
    assert FileProvider(js, unmarshal=json.loads).load() == {"a": 1}


def test_file_empty_is_empty_tree(tmp_path: Path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("")
    assert FileProvider(empty).load() == {}


def test_file_missing(tmp_path: Path):
    with pytest.raises(ProviderError, match="^read file: ") as excinfo:
        FileProvider(tmp_path / "missing.yaml").load()
    assert isinstance(excinfo.value.__cause__, FileNotFoundError)


def test_file_invalid(tmp_path: Path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("invalid: yaml: content: [")
    with pytest.raises(ProviderError, match="^unmarshal: "):
        FileProvider(bad).load()


def test_file_not_a_mapping(tmp_path: Path):
    lst = tmp_path / "list.yaml"
    lst.write_text("- a\n- b\n")
    with pytest.raises(ProviderError, match="expected a mapping, got list"):
        FileProvider(lst).load()


def test_file_name(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    provider = FileProvider("config.yaml")
    assert provider.name == "file://" + os.path.join(os.path.abspath(tmp_path), "config.yaml")
    assert str(provider) == provider.name


def test_file_name_falls_back_to_path(monkeypatch):
    def broken(path):
        raise OSError("no cwd")

    monkeypatch.setattr(os.path, "abspath", broken)
    assert FileProvider("config.yaml").name == "file://config.yaml"


def test_config_load_file_error(tmp_path: Path):
    missing = tmp_path / "missing.yaml"
    config = Config()
    with pytest.raises(LoadError, match="^load configuration: read file: ") as excinfo:
        config.load(FileProvider(missing))
    assert excinfo.value.loader == "file://" + str(missing)


def test_files_merge_in_order(tmp_path: Path):
    a = tmp_path / "a.yaml"
    a.write_text("X: 1\nshared:\n  a: 1\n")
    b = tmp_path / "b.json"
    b.write_text('{"x": 2, "shared": {"b": 2}}')
    config = Config()
    config.load(FileProvider(a), FileProvider(b))
    assert config.get("x") == 2
    assert config.get("shared") == {"a": 1, "b": 2}
    assert config.provenance("x").loader.endswith("b.json")


def test_file_watch_pushes_rewrites(tmp_path: Path):
    yml = tmp_path / "c.yaml"
    yml.write_text("value: 1\n")
    provider = FileProvider(yml, poll_interval=0.01)
    deltas: "queue.Queue[dict]" = queue.Queue()
    statuses = []
    provider.status(lambda ok, err: statuses.append((ok, err)))

    cancel = threading.Event()
    thread = threading.Thread(target=provider.watch, args=(cancel, deltas.put), daemon=True)
    thread.start()
    try:
        # give the observer time to attach before writing
        threading.Event().wait(0.2)
        yml.write_text("value: 2\n")
        delta = deltas.get(timeout=5)
        while delta != {"value": 2}:
            delta = deltas.get(timeout=5)

        yml.write_text("invalid: yaml: content: [")
        assert wait_for(lambda: any(not ok for ok, _ in statuses))
        failed = [err for ok, err in statuses if not ok]
        assert isinstance(failed[0], ProviderError)
    finally:
        cancel.set()
        thread.join(5)
    assert not thread.is_alive()
    assert (True, None) in statuses


def test_file_watch_missing_directory(tmp_path: Path):
    provider = FileProvider(tmp_path / "nope" / "c.yaml")
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OSError):
        provider.watch(cancel, lambda delta: None)


def test_file_change_reaches_config(tmp_path: Path):
    yml = tmp_path / "c.yaml"
    yml.write_text("Server:\n  Port: 80\n")
    config = Config()
    config.load(FileProvider(yml, poll_interval=0.01))

    ports: "queue.Queue[int]" = queue.Queue()
    config.on_change(lambda c: ports.put(c.unmarshal("server.port", int)), "server")
    with WatchRunner(config):
        threading.Event().wait(0.2)
        yml.write_text("Server:\n  Port: 8080\n")
        port = ports.get(timeout=5)
        while port != 8080:
            port = ports.get(timeout=5)
    assert config.get("server.port") == 8080


def test_env_provider_nests_by_delimiter():
    environ = {
        "APP_DB_HOST": "localhost",
        "APP_DB_PORT": "5432",
        "APP_NAME": "svc",
        "OTHER": "ignored",
    }
    provider = EnvProvider(prefix="APP_", environ=environ)
    assert provider.load() == {"DB": {"HOST": "localhost", "PORT": "5432"}, "NAME": "svc"}
    assert provider.name == "env:APP_"


def test_env_provider_nested_keys_win():
    environ = {"APP_DB": "flat", "APP_DB_HOST": "h"}
    assert EnvProvider(prefix="APP_", environ=environ).load() == {"DB": {"HOST": "h"}}


def test_env_provider_reads_process_environment(monkeypatch):
    monkeypatch.setenv("CONFWATCH_TEST_LEVEL", "debug")
    config = Config()
    config.load(EnvProvider(prefix="CONFWATCH_TEST_", delimiter=""))
    assert config.get("level") == "debug"
    assert config.registered_providers[0].name == "env:CONFWATCH_TEST_"


def test_env_provider_without_prefix():
    provider = EnvProvider(environ={"A_B": "1"})
    assert provider.name == "env"
    assert provider.load() == {"A": {"B": "1"}}


def test_dotenv_unmarshal(monkeypatch):
    monkeypatch.setenv("HOME_DIR", "/home/app")
    data = b"""
# comment
A=1
QUOTED="line\\nbreak"
LITERAL='$A stays'
export EXPANDED=${HOME_DIR}/data
SIMPLE=$A-suffix # trailing comment
not a line
"""
    assert unmarshal_dotenv(data) == {
        "A": "1",
        "QUOTED": "line\nbreak",
        "LITERAL": "$A stays",
        "EXPANDED": "/home/app/data",
        "SIMPLE": "1-suffix",
    }


def test_dotenv_file(tmp_path: Path):
    env_file = tmp_path / ".env"
    env_file.write_text("DB_URL=postgres://localhost\n")
    config = Config()
    config.load(FileProvider(env_file, unmarshal=unmarshal_dotenv))
    assert config.get("db_url") == "postgres://localhost"
