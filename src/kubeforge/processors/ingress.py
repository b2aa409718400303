#!/usr/bin/env python3
"""
KUBEFORGE INGRESS PROCESSOR
---------------------------
Author: KubeForge Team
Date: 2026-10-18
"""

import copy
from typing import Any, Dict

from kubeforge.core.errors import SchemaError
from kubeforge.core.models import INGRESS_POSTFIX, IngressModel, ModuleDeploymentContext
from kubeforge.core.targets import AnnotationKind
from kubeforge.core.utils import is_blank
from kubeforge.processors.base import AnnotationProcessor, get_bool, get_map, get_str, valid_name


class IngressAnnotationProcessor(AnnotationProcessor):
    """
    Exposes the Service of the annotated listener through an Ingress rule.
    The backend is recorded by listener key; the validator checks that a
    Service was actually created for it.
    """
    kind = AnnotationKind.INGRESS
    known_keys = ("name", "labels", "annotations", "hostname", "path", "targetPath",
                  "ingressClass", "enableTLS")

    def apply(self, ctx: ModuleDeploymentContext, target, data: Dict[str, Any]):
        owner = target.name
        existing = ctx.ingresses.get(target.name)
        if existing is not None:
            model = copy.deepcopy(existing)
        else:
            model = IngressModel(name=valid_name(target.name, owner, INGRESS_POSTFIX),
                                 service_key=target.name)

        if "name" in data:
            model.name = valid_name(get_str(data, "name", owner), owner)
        model.hostname = get_str(data, "hostname", owner, model.hostname)
        if is_blank(model.hostname):
            raise SchemaError("@Ingress annotation requires a 'hostname'", owner)
        model.path = get_str(data, "path", owner, model.path)
        model.target_path = get_str(data, "targetPath", owner, model.target_path)
        model.ingress_class = get_str(data, "ingressClass", owner, model.ingress_class)
        model.enable_tls = get_bool(data, "enableTLS", owner, model.enable_tls)
        model.labels.update(get_map(data, "labels", owner))
        model.annotations.update(get_map(data, "annotations", owner))
        model.annotations.update(self.passthrough(data, owner))
        ctx.ingresses[target.name] = model
