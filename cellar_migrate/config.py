"""Defaults, configuration file loading and validation."""

import copy
import json
import os
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigurationError
from .radosgw import DEFAULT_ENDPOINT as RADOSGW_ENDPOINT
from .riakcs import DEFAULT_ENDPOINT as RIAKCS_ENDPOINT

MEGABYTE = 1024 * 1024

# S3 rejects multipart parts smaller than this, except the last one
MIN_CHUNK_SIZE_MB = 5

REDACTED = "***REDACTED***"

DEFAULT_CONFIG = {
    "source": {
        "endpoint_url": RIAKCS_ENDPOINT,
        "aws_access_key_id": None,
        "aws_secret_access_key": None,
        "region_name": "us-east-1",
        "verify_ssl": True,
    },
    "destination": {
        "endpoint_url": RADOSGW_ENDPOINT,
        "aws_access_key_id": None,
        "aws_secret_access_key": None,
        "region_name": "us-east-1",
        "verify_ssl": True,
    },
    "performance": {
        "threads": os.cpu_count() or 1,
        "multipart_chunk_size_mb": 100,
        "max_keys": 1000,
        "max_pool_connections": 50,
    },
    "sync": {
        "source_bucket": None,
        "destination_bucket": None,
        "destination_bucket_prefix": None,
        "delete_extraneous": False,
        "execute": False,
        "exclude_buckets": [],
    },
}


def default_config() -> dict:
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: dict, override: dict) -> dict:
    """Merge ``override`` into a copy of ``base``, one level of sections deep."""
    config = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    return config


def load_config(config_path: Optional[str]) -> dict:
    """Load configuration from file or use defaults.

    Raises:
        ConfigurationError: missing, unreadable or unsupported file.
    """
    if not config_path:
        return default_config()

    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    suffix = config_file.suffix.lower()
    try:
        with open(config_file, "r", encoding="utf-8") as file:
            if suffix == ".json":
                user_config = json.load(file)
            elif suffix in (".yaml", ".yml"):
                user_config = yaml.safe_load(file)
            else:
                raise ConfigurationError(
                    "Unsupported config format. Use .json or .yaml"
                )
    except (OSError, ValueError, yaml.YAMLError) as err:
        raise ConfigurationError(f"Error loading config file: {err}") from err

    if user_config is None:
        return default_config()
    if not isinstance(user_config, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return merge_config(DEFAULT_CONFIG, user_config)


def _integer(section: dict, key: str) -> int:
    try:
        return int(section[key])
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"performance.{key} must be an integer, got {section[key]!r}"
        ) from None


def validate_config(config: dict) -> None:
    """Reject invalid combinations before anything touches the network.

    Raises:
        ConfigurationError: the first problem found.
    """
    sync = config["sync"]
    if sync.get("destination_bucket") and not sync.get("source_bucket"):
        raise ConfigurationError(
            "You can't give a destination bucket without a source bucket. "
            "Please specify the --source-bucket option"
        )

    for side in ("source", "destination"):
        section = config[side]
        for key in ("aws_access_key_id", "aws_secret_access_key"):
            if not section.get(key):
                raise ConfigurationError(f"Missing {side} {key}")
        if not section.get("endpoint_url"):
            raise ConfigurationError(f"Missing {side} endpoint_url")

    perf = config["performance"]
    if _integer(perf, "threads") < 1:
        raise ConfigurationError("threads must be at least 1")
    if _integer(perf, "multipart_chunk_size_mb") < MIN_CHUNK_SIZE_MB:
        raise ConfigurationError(
            f"multipart chunk size must be at least {MIN_CHUNK_SIZE_MB} MB"
        )
    if _integer(perf, "max_keys") < 1:
        raise ConfigurationError("max-keys must be at least 1")
    if _integer(perf, "max_pool_connections") < 1:
        raise ConfigurationError("max_pool_connections must be at least 1")


def redact_config(config: dict) -> dict:
    """Copy of the config safe to print."""
    display_config = copy.deepcopy(config)
    for side in ("source", "destination"):
        if display_config[side].get("aws_secret_access_key"):
            display_config[side]["aws_secret_access_key"] = REDACTED
    return display_config
