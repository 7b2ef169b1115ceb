"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers, later layers overriding earlier ones:

  1. ``config/config.yaml``  -- static tunables checked into the repo
  2. ``.env`` file           -- local developer overrides (not committed)
  3. Environment variables   -- set at deploy time

:func:`load_config` reads the YAML first, then deep-merges the values
derived from :class:`~bookbuddy.config.settings.Settings` on top.
:func:`_deep_merge` merges recursively::

    base = {"chunking": {"window_words": 400}}
    overrides = {"chunking": {"overlap_percent": 10}}
    result = {"chunking": {"window_words": 400, "overlap_percent": 10}}
"""

from pathlib import Path
from typing import Any

import yaml

from bookbuddy.config.settings import Settings

# Fallbacks for every tunable the services read, so a missing or partial
# YAML file still yields a complete config.
DEFAULTS: dict[str, Any] = {
    "chunking": {"window_words": 400, "overlap_percent": 20, "txt_words_per_page": 500},
    "embedding": {"batch_size": 100, "batch_delay_seconds": 0.1},
    "search": {"default_limit": 10, "default_min_similarity": 0.5},
    "rag": {"top_k": 5, "min_similarity": 0.3, "history_turns": 4, "memory_entries": 5},
    "generation": {
        "models": [],
        "provider_models": {},
        "max_fallback_depth": 3,
        "temperature": 0.7,
        "max_tokens": 2048,
    },
    "ingestion": {"workers": 2, "max_upload_mb": 100},
    "record_store": {"retry_attempts": 3, "retry_base_delay": 1.0, "retry_max_delay": 5.0},
    "cache": {"max_size": 1024, "ttl_seconds": 3600},
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config: dict = {}
    _deep_merge(config, _copy(DEFAULTS))

    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
        _deep_merge(config, yaml_config)

    settings = settings or Settings()
    env_overrides: dict[str, Any] = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "available_providers": settings.get_available_llm_providers(),
        },
        "storage": {
            "type": settings.storage_type,
            "local_path": settings.local_storage_path,
            "database_path": settings.database_path,
            "chromadb_persist_dir": settings.chromadb_persist_dir,
            "chromadb_collection": settings.chromadb_collection,
        },
        "logging": {
            "level": settings.log_level,
        },
    }
    # Only an explicitly configured chain replaces the YAML one.
    models = settings.get_generation_models()
    if models:
        env_overrides["generation"] = {"models": models}

    _deep_merge(config, env_overrides)
    return config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _copy(section: dict) -> dict:
    return {k: _copy(v) if isinstance(v, dict) else v for k, v in section.items()}
