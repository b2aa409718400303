#!/usr/bin/env python3
"""
KUBEFORGE ANNOTATION PIPELINE
-----------------------------
Feeds a module's annotation stream through the processor table in
declaration order and collects every failure instead of stopping at the
first one.

When a module opts into automatic generation, default annotations are
synthesized as plain values before the explicit ones:
  * Deployment and HPA for every service,
  * Service (NodePort) for services bound to inline listeners and for the
    listener variables referenced by services,
  * Job for the `main` function.
Explicit annotations are applied afterwards so their values win the merge.

Author: KubeForge Team
Date: 2026-10-18
"""

import logging
from typing import Dict, List

from kubeforge.core.errors import KubeForgeError
from kubeforge.core.models import ModuleDeploymentContext
from kubeforge.core.targets import (
    Annotation, AnnotationKind, ListenerInit, ListenerRef, ModuleSource, target_name
)
from kubeforge.processors.base import AnnotationProcessor
from kubeforge.processors.factory import PROCESSORS, get_processor

logger = logging.getLogger("kubeforge.pipeline")

DEFAULT_SERVICE_TYPE = "NodePort"


class AnnotationPipeline:
    """
    Orchestrates processor dispatch for one module at a time. Holds no
    per-module state, so a single instance can be shared by worker threads.
    """

    def __init__(self):
        self.processors: Dict[AnnotationKind, AnnotationProcessor] = {
            kind: get_processor(kind) for kind in PROCESSORS
        }

    def synthesize(self, source: ModuleSource) -> List[Annotation]:
        if not source.auto_generate:
            return []
        synthesized = []

        # --- PHASE 1: WORKLOAD & SCALING ---
        for service in source.services:
            synthesized.append(Annotation(service, AnnotationKind.DEPLOYMENT, {}, synthesized=True))
        for service in source.services:
            synthesized.append(Annotation(service, AnnotationKind.HPA, {}, synthesized=True))

        # --- PHASE 2: SERVICES FOR INLINE LISTENERS ---
        node_port = {"serviceType": DEFAULT_SERVICE_TYPE}
        for service in source.services:
            inline = [expr for expr in service.listeners if isinstance(expr, ListenerInit)]
            named = [expr for expr in service.listeners if isinstance(expr, ListenerRef)]
            if inline and not named:
                synthesized.append(Annotation(service, AnnotationKind.SERVICE, dict(node_port),
                                              synthesized=True))

        # --- PHASE 3: SERVICES FOR REFERENCED LISTENER VARIABLES ---
        exposed = {expr.name for svc in source.services for expr in svc.listeners
                   if isinstance(expr, ListenerRef)}
        for listener in source.listeners:
            if listener.name in exposed:
                synthesized.append(Annotation(listener, AnnotationKind.SERVICE, dict(node_port),
                                              synthesized=True))

        # --- PHASE 4: JOBS FOR ENTRY POINTS ---
        for function in source.functions:
            if function.name == "main":
                synthesized.append(Annotation(function, AnnotationKind.JOB, {}, synthesized=True))

        logger.debug(f"Synthesized {len(synthesized)} default annotations for [{source.module_id}]")
        return synthesized

    def annotations_for(self, source: ModuleSource) -> List[Annotation]:
        return self.synthesize(source) + list(source.annotations)

    def run(self, ctx: ModuleDeploymentContext, annotations: List[Annotation]) -> List[KubeForgeError]:
        """Processes every annotation and returns the ordered list of failures."""
        errors: List[KubeForgeError] = []
        for annotation in annotations:
            processor = self.processors[annotation.kind]
            try:
                processor.process(ctx, annotation.target, annotation.data)
            except KubeForgeError as e:
                if e.target is None:
                    e.target = target_name(annotation.target)
                logger.debug(f"@{annotation.kind.value} on {e.target} failed: {e.message}")
                errors.append(e)
        return errors
