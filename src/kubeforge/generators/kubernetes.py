#!/usr/bin/env python3
"""
KUBEFORGE MANIFEST GENERATORS
-----------------------------
One pure function per Kubernetes resource kind. Each maps a populated entity
model (plus the read-only module context for cross references) to a plain
manifest object. No I/O happens here; defaults are resolved at render time.

Author: KubeForge Team
Date: 2026-10-18
"""

import base64
from typing import Any, Dict, List, Optional

from kubeforge.core.models import (
    ConfigMapModel, HPAModel, IngressModel, JobModel, ModuleDeploymentContext,
    PersistentVolumeClaimModel, ProbeModel, SecretModel, ServiceModel
)
from kubeforge.core.utils import get_valid_name

DEFAULT_CPU_PERCENTAGE = 50
MAX_PORT_NAME_LENGTH = 15


def _sorted(mapping: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {k: mapping[k] for k in sorted(mapping)} if mapping else {}


def _metadata(name: str, labels: Optional[Dict[str, str]] = None,
              annotations: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    return {
        "name": name,
        "labels": _sorted(labels),
        "annotations": _sorted(annotations),
    }


def port_name(protocol: str, port: int) -> str:
    """Container/service port names are IANA service names of at most 15 characters."""
    suffix = f"-{port}"
    prefix = get_valid_name(protocol)[:MAX_PORT_NAME_LENGTH - len(suffix)].strip("-") or "port"
    return prefix + suffix


def _env(env: Dict[str, Any]) -> List[Dict[str, Any]]:
    rendered = []
    for name in sorted(env):
        value = env[name]
        if isinstance(value, dict):
            rendered.append({"name": name, "valueFrom": value})
        else:
            rendered.append({"name": name, "value": value})
    return rendered


def _probe(probe: ProbeModel, default_port: Optional[int]) -> Dict[str, Any]:
    port = probe.port if probe.port is not None else default_port
    doc: Dict[str, Any] = {}
    if probe.command:
        doc["exec"] = {"command": list(probe.command)}
    elif probe.path:
        doc["httpGet"] = {"path": probe.path, "port": port}
    else:
        doc["tcpSocket"] = {"port": port}
    doc["initialDelaySeconds"] = probe.initial_delay_seconds
    doc["periodSeconds"] = probe.period_seconds
    return doc


def _container_ports(ctx: ModuleDeploymentContext) -> List[Dict[str, Any]]:
    ports = []
    seen = set()
    for service in ctx.attached_services():
        target = service.resolved_target_port()
        if target is None or target in seen:
            continue
        seen.add(target)
        ports.append({"name": port_name(service.protocol, target),
                      "containerPort": target, "protocol": "TCP"})
    return ports


def _volumes(ctx: ModuleDeploymentContext):
    volumes, mounts = [], []
    for key in ctx.deployment.config_maps:
        cm = ctx.config_maps[key]
        if cm.mount_path:
            volumes.append({"name": f"{cm.name}-volume",
                            "configMap": {"name": cm.name, "defaultMode": cm.default_mode}})
            mounts.append({"name": f"{cm.name}-volume", "mountPath": cm.mount_path,
                           "readOnly": cm.read_only})
    for key in ctx.deployment.secrets:
        secret = ctx.secrets[key]
        if secret.mount_path:
            volumes.append({"name": f"{secret.name}-volume",
                            "secret": {"secretName": secret.name,
                                       "defaultMode": secret.default_mode}})
            mounts.append({"name": f"{secret.name}-volume", "mountPath": secret.mount_path,
                           "readOnly": secret.read_only})
    for key in ctx.deployment.volume_claims:
        claim = ctx.volume_claims[key]
        volumes.append({"name": f"{claim.name}-volume",
                        "persistentVolumeClaim": {"claimName": claim.name}})
        mounts.append({"name": f"{claim.name}-volume", "mountPath": claim.mount_path,
                       "readOnly": claim.read_only})
    return volumes, mounts


def generate_deployment(ctx: ModuleDeploymentContext) -> Dict[str, Any]:
    deployment = ctx.deployment
    services = ctx.attached_services()
    default_port = services[0].resolved_target_port() if services else None
    volumes, mounts = _volumes(ctx)
    resources = deployment.resources

    container = {
        "name": ctx.base_name(),
        "image": ctx.workload_image(deployment.image),
        "imagePullPolicy": deployment.image_pull_policy,
        "ports": _container_ports(ctx),
        "env": _env(deployment.env),
        "resources": {
            "requests": {"cpu": resources.requests_cpu, "memory": resources.requests_memory},
            "limits": {"cpu": resources.limits_cpu, "memory": resources.limits_memory},
        },
        "volumeMounts": mounts,
    }
    for probe in deployment.probes:
        container[f"{probe.kind}Probe"] = _probe(probe, default_port)

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(deployment.name, deployment.labels, deployment.annotations),
        "spec": {
            "replicas": deployment.replicas,
            "selector": {"matchLabels": _sorted(deployment.labels)},
            "template": {
                "metadata": {
                    "labels": _sorted(deployment.labels),
                    "annotations": _sorted(deployment.pod_annotations),
                },
                "spec": {
                    "containers": [container],
                    "volumes": volumes,
                    "imagePullSecrets": [{"name": s} for s in deployment.image_pull_secrets],
                },
            },
        },
    }


def generate_service(ctx: ModuleDeploymentContext, service: ServiceModel) -> Dict[str, Any]:
    target_port = service.resolved_target_port()
    port = {
        "name": port_name(service.protocol, service.port),
        "protocol": "TCP",
        "port": service.port,
        "targetPort": target_port,
        "nodePort": service.node_port,
    }
    labels = {"app": ctx.base_name()}
    labels.update(service.labels)
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(service.name, labels, service.annotations),
        "spec": {
            "type": service.service_type,
            "selector": _sorted(ctx.deployment.labels),
            "ports": [port],
            "sessionAffinity": service.session_affinity,
        },
    }


def generate_hpa(ctx: ModuleDeploymentContext, hpa: HPAModel) -> Dict[str, Any]:
    min_replicas = hpa.min_replicas
    if min_replicas is None:
        min_replicas = max(ctx.deployment.replicas, 1)
    max_replicas = hpa.max_replicas if hpa.max_replicas is not None else min_replicas + 1

    def metric(resource: str, utilization: int) -> Dict[str, Any]:
        return {
            "type": "Resource",
            "resource": {
                "name": resource,
                "target": {"type": "Utilization", "averageUtilization": utilization},
            },
        }

    metrics = [metric("cpu", hpa.cpu_percentage or DEFAULT_CPU_PERCENTAGE)]
    if hpa.memory_percentage is not None:
        metrics.append(metric("memory", hpa.memory_percentage))

    return {
        "apiVersion": "autoscaling/v2",
        "kind": "HorizontalPodAutoscaler",
        "metadata": _metadata(hpa.name, hpa.labels, hpa.annotations),
        "spec": {
            "scaleTargetRef": {
                "apiVersion": "apps/v1",
                "kind": "Deployment",
                "name": ctx.hpa_target(hpa),
            },
            "minReplicas": min_replicas,
            "maxReplicas": max_replicas,
            "metrics": metrics,
        },
    }


def generate_job(ctx: ModuleDeploymentContext, job: JobModel) -> Dict[str, Any]:
    # Job pods carry their own app label so Service selectors never match them
    labels = {"app": job.name}
    labels.update(job.labels)
    job_spec = {
        "backoffLimit": job.backoff_limit,
        "activeDeadlineSeconds": job.active_deadline_seconds,
        "template": {
            "metadata": {"labels": _sorted(labels)},
            "spec": {
                "restartPolicy": job.restart_policy,
                "containers": [{
                    "name": ctx.base_name(),
                    "image": ctx.workload_image(job.image),
                    "imagePullPolicy": job.image_pull_policy,
                    "env": _env(job.env),
                }],
            },
        },
    }
    metadata = _metadata(job.name, labels, job.annotations)
    if job.schedule:
        return {
            "apiVersion": "batch/v1",
            "kind": "CronJob",
            "metadata": metadata,
            "spec": {"schedule": job.schedule, "jobTemplate": {"spec": job_spec}},
        }
    return {"apiVersion": "batch/v1", "kind": "Job", "metadata": metadata, "spec": job_spec}


def generate_config_map(ctx: ModuleDeploymentContext, config_map: ConfigMapModel) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": _metadata(config_map.name, {"app": ctx.base_name()}, config_map.annotations),
        "data": _sorted(config_map.data),
    }


def generate_secret(ctx: ModuleDeploymentContext, secret: SecretModel) -> Dict[str, Any]:
    encoded = {
        key: base64.b64encode(value.encode("utf-8")).decode("ascii")
        for key, value in secret.data.items()
    }
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": _metadata(secret.name, {"app": ctx.base_name()}, secret.annotations),
        "type": "Opaque",
        "data": _sorted(encoded),
    }


def generate_volume_claim(ctx: ModuleDeploymentContext,
                          claim: PersistentVolumeClaimModel) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": _metadata(claim.name, {"app": ctx.base_name()}, claim.annotations),
        "spec": {
            "accessModes": [claim.access_mode],
            "resources": {"requests": {"storage": claim.volume_claim_size}},
        },
    }


def generate_ingress(ctx: ModuleDeploymentContext, ingress: IngressModel) -> Dict[str, Any]:
    service = ctx.services[ingress.service_key]
    annotations = dict(ingress.annotations)
    if ingress.target_path:
        annotations.setdefault("nginx.ingress.kubernetes.io/rewrite-target", ingress.target_path)
    if service.protocol == "https":
        annotations.setdefault("nginx.ingress.kubernetes.io/backend-protocol", "HTTPS")
    labels = {"app": ctx.base_name()}
    labels.update(ingress.labels)

    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": _metadata(ingress.name, labels, annotations),
        "spec": {
            "ingressClassName": ingress.ingress_class,
            "tls": [{"hosts": [ingress.hostname]}] if ingress.enable_tls else [],
            "rules": [{
                "host": ingress.hostname,
                "http": {
                    "paths": [{
                        "path": ingress.path,
                        "pathType": "Prefix",
                        "backend": {
                            "service": {"name": service.name, "port": {"number": service.port}},
                        },
                    }],
                },
            }],
        },
    }
