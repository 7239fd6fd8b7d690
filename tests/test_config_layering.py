# tests/test_config_layering.py
from pathlib import Path

import pytest

import fixtura.config as cfg
from fixtura import Builder, ConfigError
from sample_models import Minion


class _DummyFiles:
    def __init__(self, text: str):
        self._text = text

    def joinpath(self, name: str):
        return self

    def read_text(self, encoding: str = "utf-8") -> str:
        return self._text


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_layering_packaged_user_project(tmp_path, monkeypatch, config_home):
    # 0) Packaged defaults
    packaged = """
[defaults]
collection_count = 10
[builder]
sequential_ids_start = 1
[registry]
on_ambiguity = "error"
"""
    monkeypatch.setattr(cfg.ir, "files", lambda pkg: _DummyFiles(packaged))

    # 1) User-level config under XDG_CONFIG_HOME
    _write(
        config_home / ".config" / "fixtura" / "config.toml",
        """
[builder]
sequential_ids_start = 50   # overrides packaged
[registry]
on_ambiguity = "first"
""",
    )

    # 2) Project config
    proj = tmp_path / "proj"
    local_cfg = _write(
        proj / ".fixtura" / "config.toml",
        """
[builder]
sequential_ids_start = 7    # overrides user-level
""",
    )

    ctx = cfg.load_layered_config(start=proj)
    eff = cfg.effective_section(ctx, "builder")

    # Precedence: packaged < user < project
    assert eff["sequential_ids_start"] == 7
    assert eff["collection_count"] == 10  # inherited from [defaults]
    assert cfg.effective_section(ctx, "registry")["on_ambiguity"] == "first"

    assert ctx.source_path == local_cfg
    assert ctx.project_root == proj.resolve()


def test_project_config_is_found_from_a_subdirectory(tmp_path, config_home):
    proj = tmp_path / "proj"
    _write(proj / ".fixtura" / "config.toml", "[builder]\ncollection_count = 4\n")
    nested = proj / "a" / "b"
    nested.mkdir(parents=True)

    ctx = cfg.load_layered_config(start=nested)
    assert ctx.project_root == proj.resolve()
    assert cfg.effective_section(ctx, "builder")["collection_count"] == 4


def test_yaml_project_config(tmp_path, config_home):
    proj = tmp_path / "proj"
    _write(
        proj / ".fixtura" / "config.yaml",
        "registry:\n  modules: myproj.builders\n  on_ambiguity: first\n",
    )
    settings = cfg.Settings.from_context(cfg.load_layered_config(start=proj))
    assert settings.registry_modules == ("myproj.builders",)
    assert settings.on_ambiguity == "first"


def test_env_var_points_at_the_user_config(tmp_path, monkeypatch, config_home):
    custom = _write(tmp_path / "elsewhere.toml", "[builder]\ncollection_count = '6'\n")
    monkeypatch.setenv("FIXTURA_CONFIG", str(custom))
    ctx = cfg.load_layered_config(start=tmp_path)
    assert ctx.source_path is None
    assert cfg.Settings.from_context(ctx).collection_count == 6


def test_packaged_defaults_only(tmp_path, config_home):
    settings = cfg.Settings.from_context(cfg.load_layered_config(start=tmp_path))
    assert settings == cfg.Settings()


def test_broken_toml_is_ignored_with_a_warning(tmp_path, config_home, caplog):
    proj = tmp_path / "proj"
    _write(proj / ".fixtura" / "config.toml", "[builder\n")
    ctx = cfg.load_layered_config(start=proj)
    assert cfg.effective_section(ctx, "builder")["collection_count"] == 3
    assert any("Failed to parse TOML" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize(
    "text",
    [
        "[registry]\non_ambiguity = 'random'\n",
        "[builder]\ncollection_count = -1\n",
        "[builder]\ncollection_count = 'many'\n",
    ],
)
def test_invalid_values_are_config_errors(tmp_path, config_home, text):
    proj = tmp_path / "proj"
    _write(proj / ".fixtura" / "config.toml", text)
    with pytest.raises(ConfigError):
        cfg.Settings.from_context(cfg.load_layered_config(start=proj))


def test_get_settings_caches_until_reset(tmp_path, config_home):
    proj = tmp_path / "proj"
    path = _write(proj / ".fixtura" / "config.toml", "[builder]\ncollection_count = 8\n")
    cfg.reset_settings()
    assert cfg.get_settings(proj).collection_count == 8

    path.write_text("[builder]\ncollection_count = 9\n", encoding="utf-8")
    assert cfg.get_settings(proj).collection_count == 8
    cfg.reset_settings()
    assert cfg.get_settings(proj).collection_count == 9


def test_debug_report_lists_layers_and_effective_values(tmp_path, config_home):
    proj = tmp_path / "proj"
    local_cfg = _write(proj / ".fixtura" / "config.toml", "[builder]\ncollection_count = 2\n")
    report = cfg.render_config_debug_report(cfg.load_layered_config(start=proj))
    assert "fixtura CONFIG DEBUG REPORT" in report
    assert "packaged  fixtura/default_config.toml" in report
    assert f"project   {local_cfg.resolve()}" in report
    assert "[builder]\n  collection_count = 2\n  sequential_ids_start = 1" in report


def test_undecodable_config_file_is_ignored(tmp_path, monkeypatch, config_home, caplog):
    proj = tmp_path / "proj"
    bad = proj / ".fixtura" / "config.toml"
    bad.parent.mkdir(parents=True)
    bad.write_bytes(b'[builder]\nname = "caf\xe9"\ncollection_count = 9\n')
    monkeypatch.chdir(proj)
    cfg.reset_settings()

    b = Builder.new(Minion).with_sequential_ids("id")
    assert b.build().id == 1
    assert cfg.get_settings().collection_count == 3
    assert any("not valid UTF-8" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize(
    "text",
    [
        "builder: 5\n",
        "defaults: [1, 2]\n",
        "builder:\n  sequential_ids_start: null\n",
        "builder:\n  collection_count: true\n",
        "registry:\n  modules: 5\n",
    ],
)
def test_malformed_sections_surface_as_config_errors(tmp_path, monkeypatch, config_home, text):
    proj = tmp_path / "proj"
    _write(proj / ".fixtura" / "config.yaml", text)
    monkeypatch.chdir(proj)
    cfg.reset_settings()

    with pytest.raises(ConfigError):
        Builder.new(Minion).with_sequential_ids("id").build()
