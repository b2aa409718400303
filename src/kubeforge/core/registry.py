#!/usr/bin/env python3
"""
KUBEFORGE MODEL REGISTRY
------------------------
A build-scoped table of ModuleDeploymentContext objects keyed by module id.
The registry is created by the caller and passed around explicitly; it is
safe to use from several worker threads, while each context is owned by at
most one worker at a time.

Author: KubeForge Team
Date: 2026-10-18
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from kubeforge.core.config import ForgeConfig
from kubeforge.core.errors import ArtifactIOError, ContextBusyError
from kubeforge.core.models import ModuleDeploymentContext, OutputPaths

logger = logging.getLogger("kubeforge.registry")


class ModelRegistry:

    def __init__(self, config: Optional[ForgeConfig] = None):
        self.config = config or ForgeConfig()
        self._lock = threading.Lock()
        self._contexts: Dict[str, ModuleDeploymentContext] = {}
        self._claimed: set = set()
        # Output directory -> module id that first wrote to it; outlives drop()
        self._owners: Dict[Path, str] = {}

    def get_or_create(self, module_id: str,
                      paths: Optional[OutputPaths] = None,
                      output_root: Optional[Path] = None) -> ModuleDeploymentContext:
        """Returns the context for `module_id`, creating it on first use."""
        with self._lock:
            return self._get_or_create(module_id, paths, output_root)

    def _get_or_create(self, module_id: str, paths: Optional[OutputPaths],
                       output_root: Optional[Path]) -> ModuleDeploymentContext:
        ctx = self._contexts.get(module_id)
        if ctx is not None:
            return ctx
        if paths is None:
            name = ModuleDeploymentContext.short_name(module_id)
            paths = OutputPaths.for_module(Path(output_root or "."), name, self.config)
        owner = self._owners.setdefault(paths.kubernetes, module_id)
        if owner != module_id:
            raise ArtifactIOError(f"module [{module_id}] would overwrite the output of "
                                  f"module [{owner}] in {paths.kubernetes}", module_id)
        ctx = ModuleDeploymentContext(module_id=module_id, paths=paths, config=self.config)
        self._contexts[module_id] = ctx
        logger.debug(f"Created deployment context for module [{module_id}]")
        return ctx

    def get(self, module_id: str) -> Optional[ModuleDeploymentContext]:
        with self._lock:
            return self._contexts.get(module_id)

    def drop(self, module_id: str):
        with self._lock:
            self._contexts.pop(module_id, None)

    def module_ids(self) -> List[str]:
        with self._lock:
            return list(self._contexts)

    def __contains__(self, module_id: str) -> bool:
        with self._lock:
            return module_id in self._contexts

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)

    @contextmanager
    def claim(self, module_id: str, create: bool = False,
              output_root: Optional[Path] = None) -> Iterator[ModuleDeploymentContext]:
        """
        Exclusive, non-reentrant ownership of one module's context.
        A second claim while the first is held raises ContextBusyError.
        With `create`, a missing context is created under the same lock,
        otherwise a missing module raises KeyError.
        """
        with self._lock:
            if module_id in self._claimed:
                raise ContextBusyError(f"module [{module_id}] is already being processed")
            if module_id not in self._contexts and not create:
                raise KeyError(module_id)
            ctx = self._get_or_create(module_id, None, output_root)
            self._claimed.add(module_id)
        try:
            yield ctx
        finally:
            with self._lock:
                self._claimed.discard(module_id)
