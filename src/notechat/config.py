"""notechat configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (NOTECHAT_DB, NOTECHAT_LOG_LEVEL)
  3. Per-project notechat.yaml  (current working directory)
  4. Global ~/.notechat/config.yaml
  5. Hardcoded defaults

All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import logging
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".notechat"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "notechat.yaml"
_DEFAULT_DB_PATH: Path = _GLOBAL_CONFIG_DIR / "notechat.db"

_KNOWN_SECTIONS: frozenset[str] = frozenset(["storage", "archive", "logging"])
_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StorageCfg:
    """Local database location (notechat.yaml: storage:)."""

    db_path: Path = field(default_factory=lambda: _DEFAULT_DB_PATH)


@dataclass
class ArchiveCfg:
    """Export settings (notechat.yaml: archive:).

    Attributes:
        compression_level: zlib level 0-9 used for archive entries.
        export_dir: Directory where ``notechat export`` writes by default.
    """

    compression_level: int = 6
    export_dir: Path = field(default_factory=lambda: Path("."))


@dataclass
class LoggingCfg:
    """Log level for the CLI (notechat.yaml: logging:)."""

    level: str = "WARNING"

    @property
    def level_no(self) -> int:
        return logging.getLevelName(self.level)


@dataclass
class NotechatConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    storage: StorageCfg = field(default_factory=StorageCfg)
    archive: ArchiveCfg = field(default_factory=ArchiveCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _validate_level(level: str, source: str) -> str:
    upper = level.upper()
    if upper not in _LOG_LEVELS:
        raise ConfigError(
            f"Invalid logging.level '{level}' in {source}.\n"
            f"  Use one of: {', '.join(sorted(_LOG_LEVELS))}"
        )
    return upper


def _validate_compression(value: Any) -> int:
    try:
        level = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"archive.compression_level must be an integer, got {value!r}") from exc
    if not 0 <= level <= 9:
        raise ConfigError(f"archive.compression_level must be between 0 and 9, got {level}")
    return level


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse config file '{path}': {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> NotechatConfig:
    """Build a *NotechatConfig* from a merged raw YAML dict."""
    cfg = NotechatConfig()

    if "storage" in data:
        s = data["storage"] or {}
        if s.get("db_path"):
            cfg.storage = StorageCfg(db_path=Path(str(s["db_path"])).expanduser())

    if "archive" in data:
        a = data["archive"] or {}
        cfg.archive = ArchiveCfg(
            compression_level=_validate_compression(
                a.get("compression_level", cfg.archive.compression_level)
            ),
            export_dir=Path(str(a.get("export_dir", cfg.archive.export_dir))).expanduser(),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(
            level=_validate_level(str(lg.get("level", cfg.logging.level)), "config"),
        )

    return cfg


def _apply_env_overrides(cfg: NotechatConfig) -> NotechatConfig:
    """Apply NOTECHAT_* environment variable overrides."""
    if db_path := os.environ.get("NOTECHAT_DB"):
        cfg.storage.db_path = Path(db_path).expanduser()
    if level := os.environ.get("NOTECHAT_LOG_LEVEL"):
        cfg.logging.level = _validate_level(level, "NOTECHAT_LOG_LEVEL")
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> NotechatConfig:
    """Load and return a merged *NotechatConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *notechat.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a config file does not parse or holds an invalid value.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    return _apply_env_overrides(cfg)


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.notechat/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# notechat global configuration.\n"
            "\n"
            "storage:\n"
            f"  db_path: {_DEFAULT_DB_PATH}\n"
            "\n"
            "archive:\n"
            "  compression_level: 6\n"
            "\n"
            "logging:\n"
            "  level: WARNING\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
