#!/usr/bin/env python3
"""
KUBEFORGE STORAGE PROCESSORS
----------------------------
ConfigMap, Secret and PersistentVolumeClaim annotations. Each annotation
carries a list of entries; every entry becomes one entity owned by the module
deployment and mounted into its pod when a mountPath is given.

Author: KubeForge Team
Date: 2026-10-18
"""

from pathlib import Path
from typing import Any, Dict, List

from kubeforge.core.errors import SchemaError
from kubeforge.core.models import (
    ConfigMapModel, ModuleDeploymentContext, PersistentVolumeClaimModel, SecretModel
)
from kubeforge.core.targets import AnnotationKind
from kubeforge.core.utils import is_blank
from kubeforge.processors.base import (
    AnnotationProcessor, get_bool, get_choice, get_int, get_list, get_map, get_str, valid_name
)

ACCESS_MODES = ("ReadWriteOnce", "ReadOnlyMany", "ReadWriteMany", "ReadWriteOncePod")


def _entries(data: Dict[str, Any], key: str, owner: str) -> List[Dict[str, Any]]:
    entries = get_list(data, key, owner)
    for entry in entries:
        if not isinstance(entry, dict):
            raise SchemaError(f"every '{key}' entry must be a map", owner)
        if is_blank(entry.get("name")):
            raise SchemaError(f"every '{key}' entry requires a 'name'", owner)
        valid_name(entry["name"], owner)
    return entries


def _read_files(paths: List[str], owner: str) -> Dict[str, str]:
    """Loads each file into the payload under its file name."""
    data = {}
    for raw in paths:
        path = Path(raw)
        try:
            data[path.name] = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SchemaError(f"unable to read data file '{raw}': {e}", owner)
    return data


class ConfigMapAnnotationProcessor(AnnotationProcessor):
    kind = AnnotationKind.CONFIG_MAP
    known_keys = ("configMaps",)
    list_key = "configMaps"
    model_class = ConfigMapModel

    def table(self, ctx: ModuleDeploymentContext) -> Dict[str, ConfigMapModel]:
        return ctx.config_maps

    def references(self, ctx: ModuleDeploymentContext) -> List[str]:
        return ctx.deployment.config_maps

    def apply(self, ctx: ModuleDeploymentContext, target, data: Dict[str, Any]):
        owner = target.name
        extra = self.passthrough(data, owner)
        for entry in _entries(data, self.list_key, owner):
            key = str(entry["name"])
            model = self.table(ctx).get(key)
            if model is None:
                model = self.model_class(name=valid_name(key, owner))
                self.table(ctx)[key] = model
                self.references(ctx).append(key)
            paths = [str(p) for p in get_list(entry, "paths", owner)]
            model.annotations.update(extra)
            model.annotations.update(get_map(entry, "annotations", owner))
            model.data.update(get_map(entry, "data", owner))
            model.data.update(_read_files(paths, owner))
            model.paths.extend(paths)
            model.mount_path = get_str(entry, "mountPath", owner, model.mount_path)
            model.read_only = get_bool(entry, "readOnly", owner, model.read_only)
            model.default_mode = get_int(entry, "defaultMode", owner, model.default_mode, minimum=0)


class SecretAnnotationProcessor(ConfigMapAnnotationProcessor):
    kind = AnnotationKind.SECRET
    known_keys = ("secrets",)
    list_key = "secrets"
    model_class = SecretModel

    def table(self, ctx: ModuleDeploymentContext) -> Dict[str, SecretModel]:
        return ctx.secrets

    def references(self, ctx: ModuleDeploymentContext) -> List[str]:
        return ctx.deployment.secrets


class VolumeAnnotationProcessor(AnnotationProcessor):
    kind = AnnotationKind.VOLUME
    known_keys = ("volumeClaims",)

    def apply(self, ctx: ModuleDeploymentContext, target, data: Dict[str, Any]):
        owner = target.name
        extra = self.passthrough(data, owner)
        for entry in _entries(data, "volumeClaims", owner):
            key = str(entry["name"])
            mount_path = get_str(entry, "mountPath", owner)
            if is_blank(mount_path):
                raise SchemaError(f"volume claim '{key}' requires a 'mountPath'", owner)
            model = ctx.volume_claims.get(key)
            if model is None:
                model = PersistentVolumeClaimModel(name=valid_name(key, owner))
                ctx.volume_claims[key] = model
                ctx.deployment.volume_claims.append(key)
            model.mount_path = mount_path
            model.access_mode = get_choice(entry, "accessMode", owner, ACCESS_MODES, model.access_mode)
            model.volume_claim_size = get_str(entry, "volumeClaimSize", owner, model.volume_claim_size)
            model.read_only = get_bool(entry, "readOnly", owner, model.read_only)
            model.annotations.update(extra)
            model.annotations.update(get_map(entry, "annotations", owner))
