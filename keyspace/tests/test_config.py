from __future__ import annotations

import json

import pytest

from keyspace import config as kconfig
from keyspace.errors import ConfigError


def test_defaults():
    cfg = kconfig.load()
    assert cfg.db.uri == "sqlite:///keyspace.db"
    assert cfg.db.readonly is True
    assert cfg.log.level == "INFO"
    assert cfg.log.format == "text"
    assert cfg.dump.show_values is False
    assert cfg.dump.value_preview == 64
    assert cfg.dump.limit is None


def test_precedence_overrides_env_file(monkeypatch, tmp_path):
    path = tmp_path / "keyspace.toml"
    path.write_text(
        '[db]\nuri = "sqlite:///from-file.db"\n'
        '[log]\nlevel = "debug"\nformat = "JSON"\n'
        "[dump]\nlimit = 5\nvalue_preview = 8\n"
    )
    cfg = kconfig.load(path)
    assert cfg.db.uri == "sqlite:///from-file.db"
    assert cfg.log.level == "DEBUG"
    assert cfg.log.format == "json"
    assert cfg.dump.limit == 5

    monkeypatch.setenv("KEYSPACE_DB_URI", "memory://")
    monkeypatch.setenv("KEYSPACE_DUMP_LIMIT", "0x10")
    monkeypatch.setenv("KEYSPACE_DUMP_VALUES", "yes")
    cfg = kconfig.load(path)
    assert cfg.db.uri == "memory://"
    assert cfg.dump.limit == 16
    assert cfg.dump.show_values is True
    assert cfg.dump.value_preview == 8

    cfg = kconfig.load(path, db={"uri": "sqlite:///override.db"}, dump=None)
    assert cfg.db.uri == "sqlite:///override.db"
    assert cfg.dump.limit == 16


def test_json_file(tmp_path):
    path = tmp_path / "keyspace.json"
    path.write_text(json.dumps({"db": {"readonly": False}, "log": {"file": "/tmp/ks.log"}}))
    cfg = kconfig.load(str(path))
    assert cfg.db.readonly is False
    assert cfg.log.file == "/tmp/ks.log"


def test_string_booleans_in_files(tmp_path):
    path = tmp_path / "keyspace.json"
    path.write_text(json.dumps({"db": {"readonly": "false"}, "dump": {"show_values": "no"}}))
    cfg = kconfig.load(path)
    assert cfg.db.readonly is False
    assert cfg.dump.show_values is False

    path = tmp_path / "keyspace.toml"
    path.write_text('[db]\nreadonly = "yes"\n[dump]\nshow_values = "off"\n')
    cfg = kconfig.load(path)
    assert cfg.db.readonly is True
    assert cfg.dump.show_values is False

    cfg = kconfig.load(db={"readonly": "FALSE"}, dump={"show_values": 1})
    assert cfg.db.readonly is False
    assert cfg.dump.show_values is True


@pytest.mark.parametrize(
    "content, suffix",
    [
        ("[db\nuri=", ".toml"),
        ("{not json", ".json"),
        ("db: {}", ".yaml"),
        ("[surprise]\nx = 1\n", ".toml"),
        ('[db]\nuri = "ftp://x"\n', ".toml"),
        ('[log]\nlevel = "LOUD"\n', ".toml"),
        ('[log]\nformat = "xml"\n', ".toml"),
        ("[dump]\nvalue_preview = -1\n", ".toml"),
        ('[dump]\nlimit = "many"\n', ".toml"),
        ('[db]\nreadonly = "sometimes"\n', ".toml"),
        ("[dump]\nshow_values = 0.5\n", ".toml"),
    ],
)
def test_bad_files_raise_config_error(tmp_path, content, suffix):
    path = tmp_path / f"keyspace{suffix}"
    path.write_text(content)
    with pytest.raises(ConfigError):
        kconfig.load(path)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        kconfig.load(tmp_path / "nope.toml")


def test_bad_env_int(monkeypatch):
    monkeypatch.setenv("KEYSPACE_DUMP_PREVIEW", "lots")
    with pytest.raises(ConfigError):
        kconfig.load()


def test_main_prints_json(capsys):
    assert kconfig.main([]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["db"]["uri"] == "sqlite:///keyspace.db"


def test_main_reports_errors(tmp_path, capsys):
    assert kconfig.main([str(tmp_path / "nope.toml")]) == 2
    assert "config error" in capsys.readouterr().err
