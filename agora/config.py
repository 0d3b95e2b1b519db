"""
agora.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for **infrastructure-only** settings (platform
identity, API port, token lifetime, sweep batch size).  Economic values
are fixed in :mod:`agora.constants` and are never read from here.
Secrets (``DATABASE_URL``, ``JWT_SECRET``) come from the environment.

Usage::

    from agora.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.platform_name)     # "Agora Dev"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True, slots=True)
class AgoraConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    platform_name: str

    # API
    api_port: int
    token_ttl_hours: int = 24

    # Maintenance
    sweep_batch_size: int = 500


def load_config(path: str | Path = "config.yaml") -> AgoraConfig:
    """Read *path* and return an :class:`AgoraConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return AgoraConfig(
        platform_name=raw["platform_name"],
        api_port=int(raw["api_port"]),
        token_ttl_hours=int(raw.get("token_ttl_hours", 24)),
        sweep_batch_size=int(raw.get("sweep_batch_size", 500)),
    )
