# fixtura/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import importlib.resources as ir
import logging
import os

from .errors import ConfigError

_log = logging.getLogger("fixtura.config")

SECTIONS = ("defaults", "builder", "registry", "logging")
AMBIGUITY_POLICIES = ("error", "first")

_INT_KEYS = ("collection_count", "sequential_ids_start")


# ------------------ Context model ------------------

@dataclass(frozen=True)
class ConfigContext:
    """In-memory representation of the layered configuration."""
    raw: Dict[str, Any]               # full layered mapping with sections (defaults/builder/...)
    project_root: Path                # resolved project root (if any), else CWD
    source_path: Optional[Path]       # project-level config file path, if found (else None)
    layers: List[Tuple[str, str]] = field(default_factory=list)  # (layer, origin) in merge order


@dataclass(frozen=True)
class Settings:
    """Typed view over the effective configuration used by the library."""
    collection_count: int = 3
    sequential_ids_start: int = 1
    registry_modules: tuple[str, ...] = ()
    on_ambiguity: str = "error"
    log_level: str = "WARNING"

    @classmethod
    def from_context(cls, ctx: ConfigContext) -> "Settings":
        builder = effective_section(ctx, "builder")
        registry = effective_section(ctx, "registry")
        logging_ = effective_section(ctx, "logging")
        defaults = cls()
        policy = str(registry.get("on_ambiguity", defaults.on_ambiguity))
        if policy not in AMBIGUITY_POLICIES:
            raise ConfigError(
                f"[registry] on_ambiguity must be one of {', '.join(AMBIGUITY_POLICIES)}, got {policy!r}"
            )
        count = builder.get("collection_count", defaults.collection_count)
        if count < 0:
            raise ConfigError(f"[builder] collection_count must be >= 0, got {count}")
        return cls(
            collection_count=count,
            sequential_ids_start=builder.get("sequential_ids_start", defaults.sequential_ids_start),
            registry_modules=tuple(registry.get("modules", ())),
            on_ambiguity=policy,
            log_level=str(logging_.get("level", defaults.log_level)).upper(),
        )


# ---------- File discovery ----------

def _first_existing(paths: list[Path]) -> Optional[Path]:
    for p in paths:
        if p.is_file():
            return p
    return None


def _candidates(base: Path) -> list[Path]:
    return [base / "config.toml", base / "config.yaml", base / "config.yml"]


def _find_project_config(start: Path) -> Optional[Path]:
    """
    Return nearest '.fixtura/config.{toml,yaml,yml}' walking upward from 'start'.
    """
    cur = start.resolve()
    for p in [cur, *cur.parents]:
        cand = _first_existing(_candidates(p / ".fixtura"))
        if cand:
            _log.info("project config: %s", cand)
            return cand
    _log.debug("no project config above %s", cur)
    return None


def _find_user_config() -> Optional[Path]:
    """
    User-level precedence:
      1) $FIXTURA_CONFIG            (exact path)
      2) $XDG_CONFIG_HOME/fixtura/config.{toml,yaml,yml}
      3) ~/.config/fixtura/config.{toml,yaml,yml}
      4) ~/.fixtura/config.{toml,yaml,yml}
    """
    env_path = os.getenv("FIXTURA_CONFIG")
    if env_path:
        env_cand = Path(env_path).expanduser()
        if env_cand.is_file():
            _log.info("user config via FIXTURA_CONFIG=%s", env_cand)
            return env_cand
        _log.warning("FIXTURA_CONFIG=%s is not a file; ignoring.", env_path)

    bases: list[Path] = []
    xdg_home = os.getenv("XDG_CONFIG_HOME")
    if xdg_home:
        bases.append(Path(xdg_home) / "fixtura")
    bases += [Path.home() / ".config" / "fixtura", Path.home() / ".fixtura"]
    for base in bases:
        cand = _first_existing(_candidates(base))
        if cand:
            _log.info("user config: %s", cand)
            return cand
    return None


# ---------- Parsers ----------

def _load_toml_text(txt: str) -> Dict[str, Any]:
    try:
        import tomllib  # Python >= 3.11
    except ModuleNotFoundError:
        import tomli as tomllib  # 3.10
    try:
        return tomllib.loads(txt)
    except tomllib.TOMLDecodeError as exc:
        _log.warning("Failed to parse TOML: %s", exc)
        return {}


def _load_yaml_text(txt: str) -> Dict[str, Any]:
    import yaml  # PyYAML

    try:
        data = yaml.safe_load(txt) or {}
    except yaml.YAMLError as exc:
        _log.warning("Failed to parse YAML: %s", exc)
        return {}
    if not isinstance(data, dict):
        _log.warning("YAML root is not a mapping; ignoring.")
        return {}
    return data


def _parse_config_file(path: Path) -> Dict[str, Any]:
    """Read and parse one config file; unreadable or undecodable files are ignored."""
    try:
        b = path.read_bytes()
    except OSError as exc:
        _log.warning("Cannot read config %s: %s", path, exc)
        return {}
    try:
        txt = b.decode("utf-8")
    except UnicodeDecodeError as exc:
        _log.warning("Config %s is not valid UTF-8 (%s); ignoring.", path, exc)
        return {}

    suffix = path.suffix.lower()
    if suffix == ".toml":
        return _load_toml_text(txt)
    if suffix in (".yaml", ".yml"):
        return _load_yaml_text(txt)
    _log.warning("Unknown config extension '%s' for %s; ignoring.", suffix, path)
    return {}


# ---------- Merging & coercion ----------

def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge two dicts: values in 'b' override 'a'; nested dicts are merged recursively.
    """
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _coerce_types(section: str, d: Dict[str, Any]) -> Dict[str, Any]:
    """
    Coerce known fields so downstream code gets stable types.
      - Ints:  collection_count, sequential_ids_start
      - Lists[str]: modules
    """
    out = dict(d)

    for k in _INT_KEYS:
        if k not in out:
            continue
        val = out[k]
        if val is None or isinstance(val, bool):
            raise ConfigError(f"[{section}] {k} must be an integer, got {val!r}")
        try:
            out[k] = int(val)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"[{section}] {k} must be an integer, got {val!r}") from exc

    if "modules" in out:
        val = out["modules"]
        if val is None:
            out["modules"] = []
        elif isinstance(val, str):
            out["modules"] = [val]
        elif isinstance(val, (list, tuple)):
            out["modules"] = [str(x) for x in val]
        else:
            raise ConfigError(f"[{section}] modules must be a list of module names, got {val!r}")

    return out


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"config section [{name}] must be a table/mapping, got {value!r}")
    return value


def _effective(section: str, raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    effective = deep_merge(raw['defaults'] or {}, raw[section] or {}), then coerced.
    """
    eff = _deep_merge(_section(raw, "defaults"), _section(raw, section))
    eff = _coerce_types(section, eff)
    _log.debug("Effective config for [%s]: %s", section, eff if eff else "{}")
    return eff


# ---------- Public API ----------

def load_layered_config(start: Optional[Path] = None) -> ConfigContext:
    """
    Layered load:
      base = packaged defaults (fixtura/default_config.toml)
      base <- user-level config (if any)
      base <- nearest project config from `start` (if any)
    """
    layers: List[Tuple[str, str]] = []

    # 1) Packaged
    base: Dict[str, Any] = {}
    try:
        txt = ir.files("fixtura").joinpath("default_config.toml").read_text(encoding="utf-8")
        base = _deep_merge(base, _load_toml_text(txt))
        layers.append(("packaged", "fixtura/default_config.toml"))
    except (FileNotFoundError, ModuleNotFoundError) as exc:
        _log.info("No packaged defaults available: %s", exc)

    # 2) User-level
    user_cfg_path = _find_user_config()
    if user_cfg_path:
        base = _deep_merge(base, _parse_config_file(user_cfg_path))
        layers.append(("user", str(user_cfg_path)))

    # 3) Project-level
    source_path = None
    project_root = Path.cwd().resolve()
    proj_cfg_path = _find_project_config((start or Path.cwd()).resolve())
    if proj_cfg_path:
        base = _deep_merge(base, _parse_config_file(proj_cfg_path))
        layers.append(("project", str(proj_cfg_path)))
        source_path = proj_cfg_path
        cfg_dir = proj_cfg_path.parent
        project_root = cfg_dir.parent if cfg_dir.name == ".fixtura" else cfg_dir

    return ConfigContext(raw=base, project_root=project_root, source_path=source_path, layers=layers)


def effective_section(ctx: ConfigContext, section: str) -> Dict[str, Any]:
    return _effective(section, ctx.raw)


def render_config_debug_report(ctx: ConfigContext) -> str:
    """
    Which files were merged, in order, and the effective value of every section.
    """
    lines: List[str] = []
    lines.append("=== fixtura CONFIG DEBUG REPORT ===")
    lines.append(f"cwd          : {Path.cwd().resolve()}")
    lines.append(f"project_root : {ctx.project_root}")
    lines.append(f"config_source: {ctx.source_path or '<none>'}")
    lines.append("")
    lines.append("Layers (lowest precedence first):")
    if not ctx.layers:
        lines.append("  <none>")
    lines.extend(f"  {name:<9} {origin}" for name, origin in ctx.layers)
    lines.append("")
    for sec in SECTIONS:
        eff = _effective(sec, ctx.raw)
        lines.append(f"[{sec}]")
        lines.extend(f"  {k} = {eff[k]!r}" for k in sorted(eff))
    return "\n".join(lines)


# ---------- Process-wide settings ----------

_SETTINGS: Optional[Settings] = None


def get_settings(start: Optional[Path] = None) -> Settings:
    """
    Settings from the layered configuration, loaded on first use and cached for
    the life of the process (see `reset_settings`).
    """
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_context(load_layered_config(start))
        _log.debug("settings loaded: %s", _SETTINGS)
    return _SETTINGS


def reset_settings(settings: Optional[Settings] = None) -> None:
    """Drop the cached settings, or pin them to `settings`."""
    global _SETTINGS
    _SETTINGS = settings
