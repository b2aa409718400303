#!/usr/bin/env python3
"""
KUBEFORGE PROCESSOR BASE
------------------------
Shared plumbing for the annotation processors: attachment-target checks,
typed accessors for raw annotation payloads and passthrough handling for
keys a processor does not know.

Author: KubeForge Team
Date: 2026-10-18
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from kubeforge.core.errors import ModelReferenceError, SchemaError
from kubeforge.core.models import ModuleDeploymentContext, ProbeModel, PROBE_KINDS
from kubeforge.core.targets import (
    AnnotationKind, AttachmentTarget, ListenerVariableTarget, ServiceTarget, target_name
)
from kubeforge.core.utils import get_valid_name, is_blank

logger = logging.getLogger("kubeforge.processors")

MAX_PORT = 65535


class AnnotationProcessor:
    """
    Base class for every annotation processor.

    Subclasses set `kind`, `known_keys` and `supported_targets` and implement
    `apply()`. Keys outside `known_keys` are handed back by `passthrough()`
    so processors can keep them as metadata annotations.
    """

    kind: AnnotationKind
    known_keys: Tuple[str, ...] = ()
    supported_targets: Tuple[type, ...] = (ServiceTarget, ListenerVariableTarget)

    def process(self, ctx: ModuleDeploymentContext, target: AttachmentTarget,
                data: Optional[Dict[str, Any]]):
        if not isinstance(target, self.supported_targets):
            allowed = ", ".join(t.__name__ for t in self.supported_targets)
            raise SchemaError(
                f"@{self.kind.value} annotation is not supported on {type(target).__name__} "
                f"(expected one of: {allowed})", target_name(target))
        if isinstance(target, ListenerVariableTarget) and not target.is_listener:
            raise SchemaError("annotations are only supported with listeners", target.name)
        if data is not None and not isinstance(data, dict):
            raise SchemaError(f"@{self.kind.value} annotation payload must be a key/value map",
                              target_name(target))
        ctx.ensure_mutable()
        self.apply(ctx, target, data or {})

    def apply(self, ctx: ModuleDeploymentContext, target: AttachmentTarget, data: Dict[str, Any]):
        raise NotImplementedError

    def passthrough(self, data: Dict[str, Any], owner: str) -> Dict[str, str]:
        extra = {}
        for key in data:
            if key not in self.known_keys:
                logger.debug(f"Passing through unknown @{self.kind.value} key '{key}' on {owner}")
                extra[key] = str(data[key])
        return extra


# --- Typed accessors -------------------------------------------------------

def get_str(data: Dict[str, Any], key: str, owner: str, default: Optional[str] = None) -> Optional[str]:
    if key not in data or data[key] is None:
        return default
    value = data[key]
    if isinstance(value, (dict, list)):
        raise SchemaError(f"'{key}' must be a string, found {type(value).__name__}", owner)
    return str(value)


def get_int(data: Dict[str, Any], key: str, owner: str, default: Optional[int] = None,
            minimum: Optional[int] = None) -> Optional[int]:
    if key not in data or data[key] is None:
        return default
    value = data[key]
    if isinstance(value, bool):
        raise SchemaError(f"'{key}' must be an integer, found '{value}'", owner)
    try:
        number = int(str(value).strip())
    except ValueError:
        raise SchemaError(f"'{key}' must be an integer, found '{value}'", owner)
    if minimum is not None and number < minimum:
        raise SchemaError(f"'{key}' must be >= {minimum}, found {number}", owner)
    return number


def get_bool(data: Dict[str, Any], key: str, owner: str, default: bool = False) -> bool:
    if key not in data or data[key] is None:
        return default
    value = data[key]
    if isinstance(value, bool):
        return value
    if str(value).lower() in ("true", "false"):
        return str(value).lower() == "true"
    raise SchemaError(f"'{key}' must be a boolean, found '{value}'", owner)


def get_map(data: Dict[str, Any], key: str, owner: str) -> Dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SchemaError(f"'{key}' must be a map, found {type(value).__name__}", owner)
    return {str(k): str(v) for k, v in value.items()}


def get_list(data: Dict[str, Any], key: str, owner: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise SchemaError(f"'{key}' must be a list, found {type(value).__name__}", owner)
    return list(value)


def get_choice(data: Dict[str, Any], key: str, owner: str, choices: Tuple[str, ...],
               default: Optional[str] = None) -> Optional[str]:
    value = get_str(data, key, owner, default)
    if value is not None and value not in choices:
        raise SchemaError(f"'{key}' must be one of {', '.join(choices)}, found '{value}'", owner)
    return value


def valid_name(raw: Any, owner: str, postfix: str = "") -> str:
    """Sanitized resource name for `raw` (plus postfix); blank results are rejected."""
    name = get_valid_name(raw, postfix)
    if is_blank(name):
        raise SchemaError(f"name '{raw}' has no valid characters", owner)
    return name


def check_port(value: Optional[int], field_name: str, owner: str) -> Optional[int]:
    if value is not None and not 0 <= value <= MAX_PORT:
        raise ModelReferenceError(f"{field_name} {value} is outside the valid range 0-{MAX_PORT}", owner)
    return value


def build_probe(kind: str, options: Any, owner: str) -> ProbeModel:
    """Builds a probe from `true` or from a probe option map."""
    if kind not in PROBE_KINDS:
        raise SchemaError(f"probe kind must be one of {', '.join(PROBE_KINDS)}, found '{kind}'", owner)
    if options is True:
        return ProbeModel(kind=kind)
    if not isinstance(options, dict):
        raise SchemaError(f"{kind} probe must be 'true' or a map of probe options", owner)
    command = get_list(options, "command", owner)
    return ProbeModel(
        kind=kind,
        port=check_port(get_int(options, "port", owner), "probe port", owner),
        path=get_str(options, "path", owner),
        command=[str(c) for c in command],
        initial_delay_seconds=get_int(options, "initialDelaySeconds", owner, 10, minimum=0),
        period_seconds=get_int(options, "periodSeconds", owner, 5, minimum=1),
    )


def parse_env(data: Dict[str, Any], owner: str) -> Dict[str, Any]:
    """
    Environment variables: plain values, or a configMapKeyRef/secretKeyRef map.
    """
    env = {}
    value = data.get("env")
    if value is None:
        return env
    if not isinstance(value, dict):
        raise SchemaError(f"'env' must be a map, found {type(value).__name__}", owner)
    for name, entry in value.items():
        if isinstance(entry, dict):
            ref_kinds = [k for k in ("configMapKeyRef", "secretKeyRef") if k in entry]
            if len(ref_kinds) != 1 or not isinstance(entry[ref_kinds[0]], dict):
                raise SchemaError(f"env '{name}' must hold one configMapKeyRef or secretKeyRef", owner)
            ref = entry[ref_kinds[0]]
            if "name" not in ref or "key" not in ref:
                raise SchemaError(f"env '{name}' reference needs 'name' and 'key'", owner)
            env[str(name)] = {ref_kinds[0]: {"name": str(ref["name"]), "key": str(ref["key"])}}
        else:
            env[str(name)] = str(entry)
    return env
