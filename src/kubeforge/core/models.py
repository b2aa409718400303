#!/usr/bin/env python3
"""
KUBEFORGE CORE MODELS
---------------------
Defines the entity records accumulated by the annotation processors and
consumed by the artifact generators. Every record is a mutable builder until
the owning ModuleDeploymentContext is frozen by the validator.

Author: KubeForge Team
Date: 2026-10-18
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from kubeforge.core.config import ForgeConfig
from kubeforge.core.errors import ContextFrozenError, KubeForgeError
from kubeforge.core.utils import get_valid_name

# Name postfixes appended to sanitized identifiers
DEPLOYMENT_POSTFIX = "-deployment"
SVC_POSTFIX = "-svc"
HPA_POSTFIX = "-hpa"
JOB_POSTFIX = "-job"
INGRESS_POSTFIX = "-ingress"

SERVICE_TYPES = ("ClusterIP", "NodePort", "LoadBalancer")
PROBE_KINDS = ("liveness", "readiness")


@dataclass
class ResourceRequirements:
    """Container requests/limits. Unset values are omitted from the manifest."""
    requests_cpu: Optional[str] = None
    requests_memory: Optional[str] = None
    limits_cpu: Optional[str] = None
    limits_memory: Optional[str] = None


@dataclass
class ProbeModel:
    kind: str                           # 'liveness' or 'readiness'
    port: Optional[int] = None          # Falls back to the first service target port
    path: Optional[str] = None          # HTTP GET path
    command: List[str] = field(default_factory=list)
    initial_delay_seconds: int = 10
    period_seconds: int = 5


@dataclass
class ServiceModel:
    """
    A Kubernetes Service bound to one listener.

    `key` is the listener or service identifier the model was registered
    under; the deployment refers to services through it, never by pointer.
    """
    key: str
    name: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    protocol: str = "http"
    port: Optional[int] = None
    target_port: Optional[int] = None
    node_port: Optional[int] = None
    service_type: str = "ClusterIP"
    session_affinity: str = "None"

    def resolved_target_port(self) -> Optional[int]:
        return self.target_port if self.target_port is not None else self.port


@dataclass
class DeploymentModel:
    name: str = ""
    namespace: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    pod_annotations: Dict[str, str] = field(default_factory=dict)
    image: Optional[str] = None          # Defaults to the docker image reference
    image_pull_policy: str = "IfNotPresent"
    replicas: int = 1
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)
    env: Dict[str, Any] = field(default_factory=dict)
    image_pull_secrets: List[str] = field(default_factory=list)
    probes: List[ProbeModel] = field(default_factory=list)
    service_keys: List[str] = field(default_factory=list)
    config_maps: List[str] = field(default_factory=list)
    secrets: List[str] = field(default_factory=list)
    volume_claims: List[str] = field(default_factory=list)
    enabled: bool = False               # Set once a Deployment annotation is processed

    def probe(self, kind: str) -> Optional[ProbeModel]:
        for probe in self.probes:
            if probe.kind == kind:
                return probe
        return None


@dataclass
class HPAModel:
    name: str
    deployment: Optional[str] = None    # Target deployment by name; None is the module deployment
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    min_replicas: Optional[int] = None
    max_replicas: Optional[int] = None
    cpu_percentage: Optional[int] = None
    memory_percentage: Optional[int] = None


@dataclass
class JobModel:
    name: str
    image: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    image_pull_policy: str = "IfNotPresent"
    restart_policy: str = "Never"
    backoff_limit: int = 3
    active_deadline_seconds: Optional[int] = None
    schedule: Optional[str] = None      # Renders a CronJob when set
    env: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ConfigMapModel:
    name: str
    data: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    paths: List[str] = field(default_factory=list)
    mount_path: Optional[str] = None
    read_only: bool = True
    default_mode: Optional[int] = None


@dataclass
class SecretModel(ConfigMapModel):
    pass


@dataclass
class PersistentVolumeClaimModel:
    name: str
    mount_path: str = ""
    access_mode: str = "ReadWriteOnce"
    volume_claim_size: str = "1Gi"
    read_only: bool = False
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass
class IngressModel:
    name: str
    service_key: str                    # Listener/service identifier of the backend
    hostname: str = ""
    path: str = "/"
    target_path: Optional[str] = None
    ingress_class: str = "nginx"
    enable_tls: bool = False
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass
class DockerModel:
    """The image build spec: Dockerfile content inputs plus build instructions."""
    name: str = ""
    registry: Optional[str] = None
    tag: str = "latest"
    base_image: str = "eclipse-temurin:17-jre"
    ports: List[int] = field(default_factory=list)
    cmd: Optional[str] = None
    executable: Optional[Path] = None
    dependency_paths: List[Path] = field(default_factory=list)
    uber_jar: bool = True
    entrypoint: str = "'$_init'"
    work_dir: str = "/home/app"
    build_image: bool = True
    push_image: bool = False

    def image_reference(self) -> str:
        image = f"{self.name}:{self.tag}"
        return f"{self.registry}/{image}" if self.registry else image

    def executable_name(self) -> str:
        return self.executable.name if self.executable else "app.jar"

    def resolved_cmd(self) -> str:
        if self.cmd:
            return self.cmd
        if self.uber_jar:
            return f"CMD java -Xdiag -jar {self.executable_name()}"
        return f'CMD java -Xdiag -cp "{self.executable_name()}:jars/*" {self.entrypoint}'

    def build_command(self, context_dir: Path) -> Optional[str]:
        if not self.build_image:
            return None
        command = f"docker build --force-rm --pull -t {self.image_reference()} {context_dir}"
        if self.push_image:
            command += f" && docker push {self.image_reference()}"
        return command


@dataclass
class OutputPaths:
    """Resolved output locations for one module; the caller resolves the root."""
    kubernetes: Path
    docker: Path
    cloud_config: Path

    @classmethod
    def for_module(cls, root: Path, module_name: str,
                   config: Optional[ForgeConfig] = None) -> "OutputPaths":
        config = config or ForgeConfig()
        root = Path(root)
        return cls(
            kubernetes=root / "kubernetes" / module_name,
            docker=root / "docker" / module_name,
            cloud_config=root / config.cloud_config_name,
        )


@dataclass
class ModuleDeploymentContext:
    """
    The aggregate root for one compiled module.

    Owns exactly one DeploymentModel and one DockerModel and name-indexed
    tables for every other entity kind. Lookups between entities always go
    through these tables.
    """
    module_id: str
    paths: OutputPaths
    config: ForgeConfig = field(default_factory=ForgeConfig)
    deployment: DeploymentModel = field(default_factory=DeploymentModel)
    docker: DockerModel = field(default_factory=DockerModel)
    services: Dict[str, ServiceModel] = field(default_factory=dict)
    hpas: Dict[str, HPAModel] = field(default_factory=dict)
    jobs: Dict[str, JobModel] = field(default_factory=dict)
    config_maps: Dict[str, ConfigMapModel] = field(default_factory=dict)
    secrets: Dict[str, SecretModel] = field(default_factory=dict)
    volume_claims: Dict[str, PersistentVolumeClaimModel] = field(default_factory=dict)
    ingresses: Dict[str, IngressModel] = field(default_factory=dict)
    errors: List[KubeForgeError] = field(default_factory=list)
    frozen: bool = False

    def __post_init__(self):
        base = self.base_name()
        self.deployment.name = get_valid_name(base, DEPLOYMENT_POSTFIX)
        self.deployment.labels = {"app": base}
        self.deployment.namespace = self.config.namespace
        self.docker.name = base
        self.docker.registry = self.config.registry
        self.docker.base_image = self.config.base_image
        self.docker.uber_jar = self.config.uber_jar

    @staticmethod
    def short_name(module_id: str) -> str:
        return get_valid_name(module_id.split("/")[-1].split(":")[0])

    def base_name(self) -> str:
        """The sanitized short name of the module (last path segment)."""
        return self.short_name(self.module_id)

    def ensure_mutable(self):
        if self.frozen:
            raise ContextFrozenError(f"module [{self.module_id}] is already validated and frozen")

    def draft_service(self, key: str) -> ServiceModel:
        """
        A working copy of the service registered under `key` (or a fresh one).
        Nothing is registered until put_service() is called.
        """
        existing = self.services.get(key)
        if existing is not None:
            return copy.deepcopy(existing)
        return ServiceModel(key=key, name=get_valid_name(key, SVC_POSTFIX))

    def put_service(self, model: ServiceModel):
        self.ensure_mutable()
        if model.key not in self.services:
            self.deployment.service_keys.append(model.key)
        self.services[model.key] = model

    def attached_services(self) -> List[ServiceModel]:
        return [self.services[k] for k in self.deployment.service_keys if k in self.services]

    def exposed_ports(self) -> List[int]:
        ports = {s.resolved_target_port() for s in self.services.values()}
        return sorted(p for p in ports if p is not None)

    def has_workload(self) -> bool:
        return self.deployment.enabled or bool(self.jobs)

    def hpa_target(self, hpa: HPAModel) -> str:
        return hpa.deployment or self.deployment.name

    def workload_image(self, image: Optional[str]) -> str:
        return image or self.docker.image_reference()
