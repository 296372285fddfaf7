from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from review_common.schema import DEFAULT_ALIASES, merge_alias_groups

CONFIG_ENV_KEY = "REVIEW_CONFIG"
FAILURE_POLICIES = ("skip", "abort")


class ConfigError(ValueError):
    """Raised when the YAML configuration is invalid."""


@dataclass
class IngestSettings:
    failure_policy: str = "skip"
    clean_headers: bool = True


@dataclass
class DashboardSettings:
    path: Optional[Path] = None
    ingest: IngestSettings = field(default_factory=IngestSettings)
    aliases: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_ALIASES))


def _parse_ingest(section: Mapping[str, Any]) -> IngestSettings:
    policy = str(section.get("failure_policy", "skip")).strip().lower()
    if policy not in FAILURE_POLICIES:
        raise ConfigError(f"ingest.failure_policy must be one of {', '.join(FAILURE_POLICIES)}; got '{policy}'")
    return IngestSettings(
        failure_policy=policy,
        clean_headers=bool(section.get("clean_headers", True)),
    )


def settings_from_mapping(raw: Mapping[str, Any], path: Optional[Path] = None) -> DashboardSettings:
    """Validate an already-parsed config mapping."""

    if not isinstance(raw, Mapping):
        raise ConfigError("Configuration must be a mapping at the top level.")

    ingest_cfg = raw.get("ingest") or {}
    if not isinstance(ingest_cfg, Mapping):
        raise ConfigError("`ingest` must be a mapping.")

    alias_cfg = raw.get("aliases") or {}
    if not isinstance(alias_cfg, Mapping):
        raise ConfigError("`aliases` must map field names to lists of column names.")
    try:
        aliases = merge_alias_groups(alias_cfg)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    return DashboardSettings(path=path, ingest=_parse_ingest(ingest_cfg), aliases=aliases)


def load_settings(path: Optional[Path] = None) -> DashboardSettings:
    """
    Load settings from YAML.

    Resolution order: explicit ``path``, then the ``REVIEW_CONFIG`` environment
    variable, then built-in defaults. An explicitly named file must exist.
    """

    if path is None:
        env_path = os.environ.get(CONFIG_ENV_KEY)
        if not env_path:
            return DashboardSettings()
        path = Path(env_path)

    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    return settings_from_mapping(raw, path=path)
