#!/usr/bin/env python3
"""
KUBEFORGE ENGINE - The Artifact Manager
---------------------------------------
Drives one module through the artifact lifecycle:

    IDLE -> POPULATING -> VALIDATING -> GENERATING -> WRITTEN | FAILED

The ArtifactManager owns a single module context. The ForgeEngine builds
many modules in parallel, one claimed context per worker, and reports a
ModuleResult for each of them. Output is all-or-nothing per module: a
generator failure removes everything already written for that module.

Author: KubeForge Team
Date: 2026-10-18
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from kubeforge.core.config import ForgeConfig
from kubeforge.core.errors import (
    ArtifactIOError, ContextBusyError, GenerationAborted, KubeForgeError
)
from kubeforge.core.models import ModuleDeploymentContext
from kubeforge.core.pipeline import AnnotationPipeline
from kubeforge.core.registry import ModelRegistry
from kubeforge.core.targets import Annotation, ModuleSource
from kubeforge.core.utils import atomic_write, copy_file_or_directory, delete_directory
from kubeforge.generators.docker import DEPENDENCY_DIR, generate_dockerfile
from kubeforge.generators.exporter import KubeExporter
from kubeforge.generators.kubernetes import (
    generate_config_map, generate_deployment, generate_hpa, generate_ingress,
    generate_job, generate_secret, generate_service, generate_volume_claim
)
from kubeforge.rules.defaults import DefaultsEngine
from kubeforge.validator.validator import ModelValidator

logger = logging.getLogger("kubeforge.engine")

DOCKERFILE = "Dockerfile"


class ModuleState(Enum):
    IDLE = "IDLE"
    POPULATING = "POPULATING"
    VALIDATING = "VALIDATING"
    GENERATING = "GENERATING"
    WRITTEN = "WRITTEN"
    FAILED = "FAILED"


_TRANSITIONS = {
    ModuleState.IDLE: {ModuleState.POPULATING, ModuleState.FAILED},
    ModuleState.POPULATING: {ModuleState.VALIDATING, ModuleState.FAILED},
    ModuleState.VALIDATING: {ModuleState.GENERATING, ModuleState.FAILED},
    ModuleState.GENERATING: {ModuleState.WRITTEN, ModuleState.FAILED},
    ModuleState.WRITTEN: set(),
    ModuleState.FAILED: set(),
}


@dataclass
class ModuleResult:
    module_id: str
    state: ModuleState = ModuleState.IDLE
    written: List[Path] = field(default_factory=list)
    errors: List[KubeForgeError] = field(default_factory=list)
    build_command: Optional[str] = None
    render_log: List[str] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)

    @property
    def success(self) -> bool:
        return self.state is ModuleState.WRITTEN


class ArtifactManager:
    """
    Lifecycle owner for one ModuleDeploymentContext.
    Not shared between threads; the ForgeEngine gives every worker its own.
    """

    def __init__(self, ctx: ModuleDeploymentContext,
                 pipeline: Optional[AnnotationPipeline] = None,
                 validator: Optional[ModelValidator] = None,
                 exporter: Optional[KubeExporter] = None):
        self.ctx = ctx
        self.pipeline = pipeline or AnnotationPipeline()
        self.validator = validator or ModelValidator()
        # ruamel's dumper keeps state while dumping, so exporters are per manager
        self.exporter = exporter or KubeExporter()
        self.state = ModuleState.IDLE
        self.written: List[Path] = []
        self.render_log: List[str] = []

    def _transition(self, new_state: ModuleState):
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal state change for [{self.ctx.module_id}]: "
                f"{self.state.value} -> {new_state.value}")
        logger.debug(f"[{self.ctx.module_id}] {self.state.value} -> {new_state.value}")
        self.state = new_state

    def abort(self, reason: str) -> GenerationAborted:
        """Stops the module before generation; nothing has been written yet."""
        self._transition(ModuleState.FAILED)
        logger.info(f"Module [{self.ctx.module_id}] aborted: {reason}")
        return GenerationAborted(reason, target=self.ctx.module_id)

    # --- STAGE 1 & 2: MODEL POPULATION AND VALIDATION ---

    def populate_deployment_model(self, annotations: Sequence[Annotation]) -> List[KubeForgeError]:
        """
        Runs every annotation through its processor, then the validator.
        Returns all processor and validation errors in order. An empty list
        leaves the manager in VALIDATING, ready for create_artifacts().
        """
        self._transition(ModuleState.POPULATING)
        errors = self.pipeline.run(self.ctx, list(annotations))
        self._finalize_model()

        self._transition(ModuleState.VALIDATING)
        errors.extend(self.validator.validate(self.ctx))
        self.ctx.errors = list(errors)

        if errors:
            logger.info(f"Module [{self.ctx.module_id}] has {len(errors)} model error(s)")
            self._transition(ModuleState.FAILED)
        return errors

    def _finalize_model(self):
        ctx = self.ctx
        # A service needs pods to select
        if ctx.services and not ctx.deployment.enabled:
            ctx.deployment.enabled = True
        ctx.docker.ports = ctx.exposed_ports()

    # --- STAGE 3: GENERATION ---

    def create_artifacts(self) -> List[Path]:
        """
        Writes every manifest and the image build context.
        Raises GenerationAborted after removing partial output.
        """
        self._transition(ModuleState.GENERATING)
        ctx = self.ctx
        try:
            # Regeneration never leaves stale files from a previous run
            delete_directory(ctx.paths.kubernetes)
            delete_directory(ctx.paths.docker)
            ctx.paths.kubernetes.mkdir(parents=True, exist_ok=True)

            defaults = DefaultsEngine(namespace=ctx.deployment.namespace)
            for filename, docs in self._plan():
                rendered = []
                for doc in docs:
                    doc, changes = defaults.apply(doc)
                    self.render_log.extend(changes)
                    rendered.append(doc)
                self._write(ctx.paths.kubernetes / filename, self.exporter.export(rendered))

            if ctx.has_workload():
                self._write_docker_context()
        except Exception as e:
            logger.error(f"Generation failed for [{ctx.module_id}]: {str(e)}")
            self._cleanup()
            self._transition(ModuleState.FAILED)
            raise GenerationAborted(f"artifact generation failed: {str(e)}",
                                    cause=e, target=ctx.module_id) from e

        self._transition(ModuleState.WRITTEN)
        logger.info(f"Module [{ctx.module_id}] wrote {len(self.written)} file(s)")
        return list(self.written)

    def _groups(self) -> List[Tuple[str, Callable[[], List[Dict[str, Any]]]]]:
        ctx = self.ctx
        return [
            ("deployment", lambda: [generate_deployment(ctx)] if ctx.deployment.enabled else []),
            ("svc", lambda: [generate_service(ctx, s) for s in ctx.services.values()]),
            ("hpa", lambda: [generate_hpa(ctx, h) for h in ctx.hpas.values()]),
            ("job", lambda: [generate_job(ctx, j) for j in ctx.jobs.values()]),
            ("config_map", lambda: [generate_config_map(ctx, c) for c in ctx.config_maps.values()]),
            ("secret", lambda: [generate_secret(ctx, s) for s in ctx.secrets.values()]),
            ("volume_claim", lambda: [generate_volume_claim(ctx, v)
                                      for v in ctx.volume_claims.values()]),
            ("ingress", lambda: [generate_ingress(ctx, i) for i in ctx.ingresses.values()]),
        ]

    def _plan(self) -> Iterator[Tuple[str, List[Dict[str, Any]]]]:
        name = self.ctx.base_name()
        if self.ctx.config.single_yaml:
            docs = []
            for _, produce in self._groups():
                docs.extend(produce())
            if docs:
                yield f"{name}.yaml", docs
            return

        for suffix, produce in self._groups():
            docs = produce()
            if docs:
                yield f"{name}_{suffix}.yaml", docs

    def _write_docker_context(self):
        docker = self.ctx.docker
        out = self.ctx.paths.docker
        out.mkdir(parents=True, exist_ok=True)

        if docker.executable is not None:
            target = out / docker.executable_name()
            copy_file_or_directory(docker.executable, target)
            self.written.append(target)

        if not docker.uber_jar and docker.dependency_paths:
            jars = out / DEPENDENCY_DIR
            jars.mkdir(exist_ok=True)
            for dependency in sorted(docker.dependency_paths):
                target = jars / Path(dependency).name
                copy_file_or_directory(dependency, target)
                self.written.append(target)

        self._write(out / DOCKERFILE, generate_dockerfile(docker))

    def _write(self, path: Path, content: str):
        atomic_write(path, content)
        self.written.append(path)

    def _cleanup(self):
        for path in (self.ctx.paths.kubernetes, self.ctx.paths.docker):
            try:
                delete_directory(path)
            except ArtifactIOError as e:
                logger.error(f"Cleanup failed for {path}: {e}")
        self.written.clear()


class ForgeEngine:
    """
    Principal orchestrator for a build. Every module gets its own context,
    claimed from the shared registry by exactly one worker.
    """

    def __init__(self, output_root: str, config: Optional[ForgeConfig] = None,
                 registry: Optional[ModelRegistry] = None):
        self.output_root = Path(output_root).resolve()
        self.config = config or ForgeConfig()
        self.registry = registry or ModelRegistry(self.config)
        self.pipeline = AnnotationPipeline()
        self.validator = ModelValidator()

    def run(self, source: ModuleSource,
            cancel: Optional[threading.Event] = None) -> ModuleResult:
        """Populates, validates and generates one module."""
        module_id = source.module_id
        try:
            with self.registry.claim(module_id, create=True, output_root=self.output_root) as ctx:
                try:
                    return self._run_claimed(ctx, source, cancel)
                finally:
                    self.registry.drop(module_id)
        except (ContextBusyError, ArtifactIOError) as e:
            logger.warning(str(e))
            return ModuleResult(module_id, ModuleState.FAILED, errors=[e])

    def _run_claimed(self, ctx: ModuleDeploymentContext, source: ModuleSource,
                     cancel: Optional[threading.Event]) -> ModuleResult:
        result = ModuleResult(source.module_id)
        manager = ArtifactManager(ctx, pipeline=self.pipeline, validator=self.validator)

        ctx.docker.executable = Path(source.executable) if source.executable else None
        ctx.docker.dependency_paths = [Path(p) for p in source.dependency_paths]

        if cancel is not None and cancel.is_set():
            result.errors = [manager.abort("cancelled before model population")]
            result.state = manager.state
            return result

        errors = manager.populate_deployment_model(self.pipeline.annotations_for(source))
        if errors:
            result.errors = errors
            result.state = manager.state
            return result

        if cancel is not None and cancel.is_set():
            result.errors = [manager.abort("cancelled before artifact generation")]
            result.state = manager.state
            return result

        try:
            result.written = manager.create_artifacts()
        except GenerationAborted as e:
            result.errors = [e]
        result.state = manager.state
        result.render_log = list(manager.render_log)
        if result.success and ctx.has_workload():
            result.build_command = ctx.docker.build_command(ctx.paths.docker)
        return result

    def build_modules(self, sources: Sequence[ModuleSource], max_workers: int = 4,
                      cancel: Optional[threading.Event] = None) -> List[ModuleResult]:
        """
        Builds independent modules in parallel. Results keep the input order.
        """
        results: List[ModuleResult] = []
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(self.run, source, cancel) for source in sources]
            for source, future in zip(sources, futures):
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.error(f"Critical error while building [{source.module_id}]: {str(e)}")
                    results.append(ModuleResult(
                        source.module_id, ModuleState.FAILED,
                        errors=[GenerationAborted(str(e), cause=e, target=source.module_id)]))
        return results

    def generate_summary(self, results: List[ModuleResult]) -> Dict[str, Any]:
        """Aggregate counts for a build."""
        if not results:
            return {
                "total_modules": 0, "success_rate": 0, "successful": 0,
                "failed": 0, "files_written": 0, "errors": 0
            }

        total = len(results)
        successful = sum(1 for r in results if r.success)
        return {
            "total_modules": total,
            "success_rate": successful / total,
            "successful": successful,
            "failed": total - successful,
            "files_written": sum(len(r.written) for r in results),
            "errors": sum(len(r.errors) for r in results),
            "summary_timestamp": time.strftime("%Y-%m-%d %H:%M:%S")
        }
