#!/usr/bin/env python3
"""
KUBEFORGE ATTACHMENT TARGETS
----------------------------
The structural facts handed over by the source extractor: which construct an
annotation decorates, the resolved listener constructor arguments, and the
annotation payload itself. Nothing here re-parses source text.

Author: KubeForge Team
Date: 2026-10-18
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from kubeforge.core.errors import SchemaError


class ArgKind(Enum):
    INT = "int"
    RECORD = "record"
    OTHER = "other"


@dataclass
class ListenerArg:
    """
    One listener constructor argument.

    INT args carry the literal (possibly still as text); RECORD args carry a
    field-name to value mapping. `text` is the source rendering used in errors.
    """
    kind: ArgKind
    value: Any
    text: str = ""

    def __post_init__(self):
        if not self.text:
            self.text = str(self.value)


@dataclass
class ListenerInit:
    """An inline `new Listener(...)` construction."""
    package_alias: str
    args: List[ListenerArg] = field(default_factory=list)


@dataclass
class ListenerRef:
    """A reference to a separately declared listener variable."""
    name: str


ListenerExpr = Union[ListenerInit, ListenerRef]


@dataclass
class ServiceTarget:
    name: str
    listeners: List[ListenerExpr] = field(default_factory=list)


@dataclass
class ListenerVariableTarget:
    name: str
    init: Optional[ListenerInit] = None
    is_listener: bool = True


@dataclass
class FunctionTarget:
    name: str


AttachmentTarget = Union[ServiceTarget, ListenerVariableTarget, FunctionTarget]


class AnnotationKind(Enum):
    DEPLOYMENT = "Deployment"
    SERVICE = "Service"
    HPA = "HPA"
    JOB = "Job"
    CONFIG_MAP = "ConfigMap"
    SECRET = "Secret"
    VOLUME = "Volume"
    INGRESS = "Ingress"
    PROBE = "Probe"

    @classmethod
    def from_name(cls, name: str) -> "AnnotationKind":
        for kind in cls:
            if kind.value == name:
                return kind
        raise SchemaError(f"Unknown annotation kind '{name}'")


@dataclass
class Annotation:
    target: AttachmentTarget
    kind: AnnotationKind
    data: Dict[str, Any] = field(default_factory=dict)
    synthesized: bool = False

    def __post_init__(self):
        if isinstance(self.kind, str):
            self.kind = AnnotationKind.from_name(self.kind)


@dataclass
class ModuleSource:
    """Everything the extractor discovered for one compiled module."""
    module_id: str
    executable: Optional[Path] = None
    dependency_paths: List[Path] = field(default_factory=list)
    services: List[ServiceTarget] = field(default_factory=list)
    listeners: List[ListenerVariableTarget] = field(default_factory=list)
    functions: List[FunctionTarget] = field(default_factory=list)
    annotations: List[Annotation] = field(default_factory=list)
    auto_generate: bool = False


def target_name(target: AttachmentTarget) -> str:
    return getattr(target, "name", "<unknown>")
