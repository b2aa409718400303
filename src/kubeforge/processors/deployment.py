#!/usr/bin/env python3
"""
KUBEFORGE DEPLOYMENT & PROBE PROCESSORS
---------------------------------------
Author: KubeForge Team
Date: 2026-10-18
"""

from typing import Any, Dict, Optional, Tuple

from kubeforge.core.errors import SchemaError
from kubeforge.core.models import ModuleDeploymentContext, ProbeModel, ResourceRequirements
from kubeforge.core.targets import AnnotationKind
from kubeforge.processors.base import (
    AnnotationProcessor, build_probe, get_bool, get_choice, get_int, get_list, get_map, get_str,
    parse_env, valid_name
)

PULL_POLICIES = ("Always", "IfNotPresent", "Never")


def split_image(image: str) -> Tuple[Optional[str], str, str]:
    """'reg.io/team/app:1.0' -> ('reg.io/team', 'app', '1.0')."""
    registry, _, remainder = image.rpartition("/")
    name, sep, tag = remainder.partition(":")
    return (registry or None), name, (tag if sep else "latest")


def add_probe(ctx: ModuleDeploymentContext, probe: ProbeModel):
    """A later probe of the same kind replaces the earlier one."""
    ctx.deployment.probes = [p for p in ctx.deployment.probes if p.kind != probe.kind]
    ctx.deployment.probes.append(probe)
    ctx.deployment.probes.sort(key=lambda p: p.kind)


class DeploymentAnnotationProcessor(AnnotationProcessor):
    kind = AnnotationKind.DEPLOYMENT
    known_keys = ("name", "namespace", "labels", "annotations", "podAnnotations", "replicas",
                  "image", "imagePullPolicy", "env", "resources", "imagePullSecrets",
                  "livenessProbe", "readinessProbe", "baseImage", "registry", "cmd",
                  "buildImage", "push")

    def apply(self, ctx: ModuleDeploymentContext, target, data: Dict[str, Any]):
        owner = target.name
        deployment = ctx.deployment
        docker = ctx.docker
        deployment.enabled = True

        name = get_str(data, "name", owner)
        if name is not None:
            deployment.name = valid_name(name, owner)
        deployment.namespace = get_str(data, "namespace", owner, deployment.namespace)
        deployment.labels.update(get_map(data, "labels", owner))
        deployment.annotations.update(get_map(data, "annotations", owner))
        deployment.annotations.update(self.passthrough(data, owner))
        deployment.pod_annotations.update(get_map(data, "podAnnotations", owner))
        deployment.replicas = get_int(data, "replicas", owner, deployment.replicas, minimum=0)
        deployment.image_pull_policy = get_choice(data, "imagePullPolicy", owner, PULL_POLICIES,
                                                  deployment.image_pull_policy)
        deployment.env.update(parse_env(data, owner))
        deployment.image_pull_secrets.extend(
            s for s in (str(v) for v in get_list(data, "imagePullSecrets", owner))
            if s not in deployment.image_pull_secrets
        )
        if "resources" in data:
            deployment.resources = self._parse_resources(data["resources"], owner)

        for key, kind in (("livenessProbe", "liveness"), ("readinessProbe", "readiness")):
            if data.get(key) not in (None, False):
                add_probe(ctx, build_probe(kind, data[key], owner))

        docker.base_image = get_str(data, "baseImage", owner, docker.base_image)
        docker.cmd = get_str(data, "cmd", owner, docker.cmd)
        docker.registry = get_str(data, "registry", owner, docker.registry)
        docker.build_image = get_bool(data, "buildImage", owner, docker.build_image)
        docker.push_image = get_bool(data, "push", owner, docker.push_image)
        image = get_str(data, "image", owner)
        if image is not None:
            registry, docker.name, docker.tag = split_image(image)
            docker.registry = registry or docker.registry
            deployment.image = image

    def _parse_resources(self, value: Any, owner: str) -> ResourceRequirements:
        if not isinstance(value, dict):
            raise SchemaError("'resources' must be a map with 'requests' and/or 'limits'", owner)
        requests = get_map(value, "requests", owner)
        limits = get_map(value, "limits", owner)
        return ResourceRequirements(
            requests_cpu=requests.get("cpu"),
            requests_memory=requests.get("memory"),
            limits_cpu=limits.get("cpu"),
            limits_memory=limits.get("memory"),
        )


class ProbeAnnotationProcessor(AnnotationProcessor):
    kind = AnnotationKind.PROBE
    known_keys = ("kind", "port", "path", "command", "initialDelaySeconds", "periodSeconds")

    def apply(self, ctx: ModuleDeploymentContext, target, data: Dict[str, Any]):
        kind = get_str(data, "kind", target.name)
        if kind is None:
            raise SchemaError("@Probe annotation requires 'kind' (liveness or readiness)", target.name)
        add_probe(ctx, build_probe(kind, data, target.name))
