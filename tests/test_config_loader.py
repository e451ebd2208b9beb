from __future__ import annotations

from pathlib import Path

import pytest

from deadexport.config_loader import (
    ExportConfig,
    create_example_config,
    find_config_file,
    load_config,
    save_example_config,
)


def test_defaults():
    cfg = ExportConfig()
    assert cfg.paths == ["src", "."]
    assert cfg.include_own_tests is True
    assert cfg.skip_vendor is True
    assert cfg.protocol_methods == ["len", "less", "swap"]
    assert cfg.scope == []
    assert cfg.format == "text"


def test_yaml_config(tmp_path: Path):
    path = tmp_path / "deadexport.yaml"
    path.write_text(
        "paths: src\n"
        "scope: ['app.**']\n"
        "include_own_tests: false\n"
        "ignore: ['*.Meta']\n"
        "format: JSON\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.paths == ["src"]
    assert cfg.scope == ["app.**"]
    assert cfg.include_own_tests is False
    assert cfg.ignore == ["*.Meta"]
    assert cfg.format == "json"


def test_pyproject_table_is_found(tmp_path: Path, monkeypatch):
    (tmp_path / "pyproject.toml").write_text(
        "[project]\nname = 'x'\n\n[tool.deadexport]\nskip_vendor = false\nprotocol_methods = ['len', 'compare']\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    assert find_config_file() == Path("pyproject.toml")
    cfg = load_config()
    assert cfg.skip_vendor is False
    assert cfg.protocol_methods == ["compare", "len", "less", "swap"]


def test_pyproject_without_table_is_skipped(tmp_path: Path, monkeypatch):
    (tmp_path / "pyproject.toml").write_text("[project]\nname = 'x'\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    assert find_config_file() is None
    assert load_config() == ExportConfig()


def test_yaml_takes_priority(tmp_path: Path):
    (tmp_path / "pyproject.toml").write_text("[tool.deadexport]\nverbose = true\n", encoding="utf-8")
    (tmp_path / ".deadexport.yml").write_text("debug: true\n", encoding="utf-8")
    assert find_config_file(tmp_path) == tmp_path / ".deadexport.yml"


def test_invalid_values(tmp_path: Path):
    path = tmp_path / "deadexport.yaml"
    path.write_text("format: xml\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")
    other = tmp_path / "deadexport.ini"
    other.write_text("", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(other)


def test_example_config_round_trips(tmp_path: Path):
    path = save_example_config(tmp_path / "deadexport.yaml")
    assert path.read_text(encoding="utf-8") == create_example_config()
    cfg = load_config(path)
    assert cfg.paths == ["src"]
    assert cfg.ignore == []
    assert cfg.protocol_methods == ["len", "less", "swap"]


def test_empty_protocol_methods_keep_sorting_protocol(tmp_path: Path):
    path = tmp_path / "deadexport.yaml"
    path.write_text("protocol_methods: []\n", encoding="utf-8")
    assert load_config(path).protocol_methods == ["len", "less", "swap"]
