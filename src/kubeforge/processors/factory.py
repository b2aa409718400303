#!/usr/bin/env python3
"""
KUBEFORGE PROCESSOR TABLE
-------------------------
The closed mapping from annotation kind to its processor. New kinds are
added by extending AnnotationKind and registering a processor here.

Author: KubeForge Team
Date: 2026-10-18
"""

from typing import Dict, Type

from kubeforge.core.errors import SchemaError
from kubeforge.core.targets import AnnotationKind
from kubeforge.processors.base import AnnotationProcessor
from kubeforge.processors.deployment import DeploymentAnnotationProcessor, ProbeAnnotationProcessor
from kubeforge.processors.ingress import IngressAnnotationProcessor
from kubeforge.processors.service import ServiceAnnotationProcessor
from kubeforge.processors.storage import (
    ConfigMapAnnotationProcessor, SecretAnnotationProcessor, VolumeAnnotationProcessor
)
from kubeforge.processors.workload import HPAAnnotationProcessor, JobAnnotationProcessor

PROCESSORS: Dict[AnnotationKind, Type[AnnotationProcessor]] = {
    AnnotationKind.DEPLOYMENT: DeploymentAnnotationProcessor,
    AnnotationKind.SERVICE: ServiceAnnotationProcessor,
    AnnotationKind.HPA: HPAAnnotationProcessor,
    AnnotationKind.JOB: JobAnnotationProcessor,
    AnnotationKind.CONFIG_MAP: ConfigMapAnnotationProcessor,
    AnnotationKind.SECRET: SecretAnnotationProcessor,
    AnnotationKind.VOLUME: VolumeAnnotationProcessor,
    AnnotationKind.INGRESS: IngressAnnotationProcessor,
    AnnotationKind.PROBE: ProbeAnnotationProcessor,
}


def get_processor(kind: AnnotationKind) -> AnnotationProcessor:
    try:
        return PROCESSORS[kind]()
    except KeyError:
        raise SchemaError(f"No processor registered for annotation kind '{kind}'")
