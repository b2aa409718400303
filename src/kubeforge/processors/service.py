#!/usr/bin/env python3
"""
KUBEFORGE SERVICE PROCESSOR
---------------------------
Turns a Service annotation plus the attached listener into a ServiceModel.

Port and protocol are inferred from the listener construction arguments:
  1. an integer first argument is the port;
  2. otherwise the first argument is a config record with a 'port' field;
  3. the protocol is the package alias of the listener type, upgraded from
     'http' to 'https' when a second config record carries 'secureSocket'.

When the annotation declares a port, the listener port becomes the
targetPort; otherwise the listener port is used for both.

Author: KubeForge Team
Date: 2026-10-18
"""

import logging
from typing import Any, Dict

from kubeforge.core.errors import ModelReferenceError, PortExtractionError, PortParseError, SchemaError
from kubeforge.core.models import ModuleDeploymentContext, SERVICE_TYPES, ServiceModel
from kubeforge.core.targets import (
    AnnotationKind, ArgKind, ListenerInit, ListenerRef, ListenerVariableTarget, ServiceTarget
)
from kubeforge.core.utils import is_blank
from kubeforge.processors.base import (
    AnnotationProcessor, check_port, get_choice, get_int, get_map, get_str, valid_name
)

logger = logging.getLogger("kubeforge.processors")

SESSION_AFFINITIES = ("None", "ClientIP")


def extract_port(listener: ListenerInit) -> int:
    """Resolves the listening port from the listener constructor arguments."""
    if not listener.args:
        raise PortExtractionError("unable extract port from the listener: no constructor arguments")
    first = listener.args[0]
    try:
        if first.kind is ArgKind.INT:
            return _parse_port(first.value)
        if first.kind is ArgKind.RECORD and isinstance(first.value, dict) and "port" in first.value:
            return _parse_port(first.value["port"])
    except (TypeError, ValueError):
        raise PortParseError(f"unable to parse port/targetPort for the service: {first.text}")
    raise PortExtractionError(f"unable extract port from the listener {first.text}")


def _parse_port(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(value)
    return int(str(value).strip())


def infer_protocol(listener: ListenerInit) -> str:
    protocol = listener.package_alias
    if protocol == "http" and len(listener.args) >= 2:
        config = listener.args[1]
        if config.kind is ArgKind.RECORD and isinstance(config.value, dict):
            return "https" if "secureSocket" in config.value else "http"
    return protocol


class ServiceAnnotationProcessor(AnnotationProcessor):
    kind = AnnotationKind.SERVICE
    known_keys = ("name", "labels", "annotations", "serviceType", "port",
                  "targetPort", "nodePort", "sessionAffinity")

    def apply(self, ctx: ModuleDeploymentContext, target, data: Dict[str, Any]):
        listener = self._resolve_listener(target)
        owner = target.name
        model = ctx.draft_service(target.name)

        if "name" in data:
            model.name = valid_name(get_str(data, "name", owner), owner)
        elif is_blank(model.name):
            raise SchemaError(f"service key '{target.name}' has no valid name characters; "
                              f"set an explicit 'name'", owner)
        model.labels.update(get_map(data, "labels", owner))
        model.annotations.update(get_map(data, "annotations", owner))
        model.annotations.update(self.passthrough(data, owner))
        model.service_type = get_choice(data, "serviceType", owner, SERVICE_TYPES, model.service_type)
        model.session_affinity = get_choice(data, "sessionAffinity", owner, SESSION_AFFINITIES,
                                            model.session_affinity)
        for key, attr in (("port", "port"), ("targetPort", "target_port"), ("nodePort", "node_port")):
            value = get_int(data, key, owner)
            if value is not None:
                setattr(model, attr, check_port(value, key, owner))

        self._validate_ports(model, listener, owner)
        ctx.put_service(model)

    def _resolve_listener(self, target) -> ListenerInit:
        if isinstance(target, ServiceTarget):
            for expr in target.listeners:
                if isinstance(expr, ListenerRef):
                    raise SchemaError("adding @Service annotation to a service is only supported "
                                      "when the service has an anonymous listener", target.name)
            if not target.listeners:
                raise PortExtractionError("unable extract port: service has no attached listener",
                                          target.name)
            if len(target.listeners) > 1:
                logger.warning(f"Service '{target.name}' has {len(target.listeners)} listeners; "
                               f"only the first is used for port and protocol inference")
            return target.listeners[0]

        if isinstance(target, ListenerVariableTarget) and target.init is not None:
            return target.init
        raise PortExtractionError("unable extract port: listener has no construction expression",
                                  target.name)

    def _validate_ports(self, model: ServiceModel, listener: ListenerInit, owner: str):
        try:
            if model.port is None:
                model.port = check_port(extract_port(listener), "port", owner)
            if model.target_port is None:
                model.target_port = check_port(extract_port(listener), "targetPort", owner)
        except (PortExtractionError, PortParseError) as e:
            e.target = e.target or owner
            raise
        model.protocol = infer_protocol(listener)

        if model.node_port is not None and model.service_type != "NodePort":
            raise ModelReferenceError(
                f"NodePort [{model.node_port}] defined without setting the service type to "
                f"NodePort. Found [{model.service_type}]", owner)
