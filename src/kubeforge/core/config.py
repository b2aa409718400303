#!/usr/bin/env python3
"""
KUBEFORGE CONFIGURATION
-----------------------
Build-wide defaults for artifact generation. Values come from the dataclass
defaults, an optional JSON file and finally KUBEFORGE_* environment variables.

Author: KubeForge Team
Date: 2026-10-18
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from kubeforge.core.errors import SchemaError

logger = logging.getLogger("kubeforge.config")

ENV_PREFIX = "KUBEFORGE_"
_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class ForgeConfig:
    base_image: str = "eclipse-temurin:17-jre"
    namespace: Optional[str] = None
    registry: Optional[str] = None
    single_yaml: bool = False
    uber_jar: bool = True
    cloud_config_name: str = "Cloud.toml"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ForgeConfig":
        known = {f.name: f for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                raise SchemaError(f"Unknown configuration key '{key}'")
            if known[key].type in (bool, "bool"):
                value = _to_bool(key, value)
            values[key] = value
        return cls(**values)

    @classmethod
    def load(cls, path: Optional[str] = None,
             env: Optional[Mapping[str, str]] = None) -> "ForgeConfig":
        """
        Loads configuration from a JSON file (if given) then applies
        environment overrides such as KUBEFORGE_SINGLE_YAML=true.
        """
        data: Dict[str, Any] = {}
        if path:
            try:
                with open(Path(path), "r") as f:
                    data = json.load(f)
            except (FileNotFoundError, json.JSONDecodeError) as e:
                logger.error(f"Unable to load configuration from {path}")
                raise SchemaError(f"Failed to load configuration: {str(e)}")
            if not isinstance(data, dict):
                raise SchemaError(f"Configuration file {path} must contain a JSON object")

        env = os.environ if env is None else env
        for f in fields(cls):
            env_key = ENV_PREFIX + f.name.upper()
            if env_key in env:
                data[f.name] = env[env_key]
        return cls.from_dict(data)


def _to_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise SchemaError(f"Configuration key '{key}' expects a boolean, found '{value}'")
