#!/usr/bin/env python3
"""
KUBEFORGE ERRORS
----------------
The typed failure vocabulary shared by processors, the validator and the
artifact manager. Processors and validators never print; they raise (or
return) these objects and the manager decides how they are aggregated.

Author: KubeForge Team
Date: 2026-10-18
"""

from typing import List, Optional


class KubeForgeError(Exception):
    """Base class for every error raised by the artifact pipeline."""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.target = target

    def __str__(self) -> str:
        if self.target:
            return f"[{self.target}] {self.message}"
        return self.message


class SchemaError(KubeForgeError):
    """Unknown annotation kind, malformed payload or unsupported attachment."""


class ContextFrozenError(SchemaError):
    """A processor tried to mutate a context that already passed validation."""


class ModelReferenceError(KubeForgeError):
    """Port, name or cross-entity reference invariant violation."""


class ExtractionError(KubeForgeError):
    """Unable to resolve a port or protocol from listener arguments."""


class PortExtractionError(ExtractionError):
    """No usable port value was found in the listener arguments."""


class PortParseError(ExtractionError):
    """A port value was found but it is not a number."""


class ArtifactIOError(KubeForgeError):
    """Output directory creation, deletion, copy or write failure."""


class ContextBusyError(KubeForgeError):
    """A module context is already owned by another pipeline run."""


class GenerationAborted(KubeForgeError):
    """
    Aggregate failure raised when a generator fails mid-module.
    The partially written output has already been removed when this is raised.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None,
                 target: Optional[str] = None):
        super().__init__(message, target=target)
        self.cause = cause


def format_errors(errors: List[KubeForgeError]) -> List[str]:
    """Renders an ordered error list as plain strings."""
    return [f"{type(e).__name__}: {e}" for e in errors]
