#!/usr/bin/env python3
"""
KUBEFORGE ENGINE TESTS - End-to-end generation
----------------------------------------------
Drives whole modules through the ForgeEngine and checks what lands on disk:
file layout, idempotent regeneration, all-or-nothing failure handling,
cancellation and parallel builds.

Author: KubeForge Team
Date: 2026-10-18
"""

import threading

import pytest
from ruamel.yaml import YAML

from kubeforge.core.config import ForgeConfig
from kubeforge.core.engine import ArtifactManager, ForgeEngine, ModuleState
from kubeforge.core.errors import ArtifactIOError, ContextBusyError, GenerationAborted, SchemaError
from kubeforge.core.targets import (
    Annotation, FunctionTarget, ListenerVariableTarget, ModuleSource, ServiceTarget
)


def _files(directory):
    return sorted(p.name for p in directory.iterdir())


@pytest.fixture
def jar(tmp_path):
    path = tmp_path / "build" / "hello.jar"
    path.parent.mkdir()
    path.write_bytes(b"PK\x03\x04")
    return path


@pytest.fixture
def module(jar, service):
    def _make(module_id="org/hello:0.1.0", ingress=False, extra=None) -> ModuleSource:
        svc = service("hello", 9090)
        annotations = [
            Annotation(svc, "Service", {"port": 80}),
            Annotation(svc, "Deployment", {"replicas": 2}),
            Annotation(svc, "HPA", {"maxReplicas": 4}),
        ]
        if ingress:
            annotations.append(Annotation(svc, "Ingress", {"hostname": "hello.example.com"}))
        annotations.extend(extra or [])
        return ModuleSource(module_id=module_id, executable=jar, services=[svc],
                            annotations=annotations)
    return _make


@pytest.fixture
def engine(tmp_path):
    return ForgeEngine(str(tmp_path / "target"))


def test_module_generation_layout(engine, module, tmp_path):
    result = engine.run(module())

    assert result.state is ModuleState.WRITTEN, result.errors
    kube_dir = tmp_path / "target" / "kubernetes" / "hello"
    docker_dir = tmp_path / "target" / "docker" / "hello"
    assert _files(kube_dir) == ["hello_deployment.yaml", "hello_hpa.yaml", "hello_svc.yaml"]
    assert _files(docker_dir) == ["Dockerfile", "hello.jar"]
    assert "EXPOSE 9090" in (docker_dir / "Dockerfile").read_text()
    assert result.build_command == f"docker build --force-rm --pull -t hello:latest {docker_dir}"
    assert set(result.written) == {kube_dir / f for f in _files(kube_dir)} | \
        {docker_dir / f for f in _files(docker_dir)}

    svc = YAML(typ='safe').load((kube_dir / "hello_svc.yaml").read_text())
    assert svc["spec"]["ports"][0]["port"] == 80
    assert svc["spec"]["ports"][0]["targetPort"] == 9090


def test_regeneration_is_byte_identical(engine, module, tmp_path):
    kube_dir = tmp_path / "target" / "kubernetes" / "hello"
    engine.run(module())
    first = {f: (kube_dir / f).read_bytes() for f in _files(kube_dir)}
    engine.run(module())
    second = {f: (kube_dir / f).read_bytes() for f in _files(kube_dir)}
    assert first == second


def test_regeneration_removes_stale_files(engine, module, tmp_path):
    kube_dir = tmp_path / "target" / "kubernetes" / "hello"
    engine.run(module(ingress=True))
    assert "hello_ingress.yaml" in _files(kube_dir)

    engine.run(module(ingress=False))
    assert "hello_ingress.yaml" not in _files(kube_dir)


def test_model_errors_write_nothing(engine, module, tmp_path):
    bad = ServiceTarget("bad", [])
    result = engine.run(module(extra=[
        Annotation(bad, "Service", {}),
        Annotation(FunctionTarget("main"), "Deployment", {}),
    ]))

    assert result.state is ModuleState.FAILED
    assert len(result.errors) == 2
    assert isinstance(result.errors[1], SchemaError)
    assert not (tmp_path / "target" / "kubernetes").exists()


def test_generator_failure_removes_partial_output(engine, module, tmp_path, monkeypatch):
    def explode(ctx, hpa):
        raise RuntimeError("boom")

    monkeypatch.setattr("kubeforge.core.engine.generate_hpa", explode)
    result = engine.run(module())

    assert result.state is ModuleState.FAILED
    assert isinstance(result.errors[0], GenerationAborted)
    assert isinstance(result.errors[0].cause, RuntimeError)
    assert result.written == []
    assert not (tmp_path / "target" / "kubernetes" / "hello").exists()
    assert not (tmp_path / "target" / "docker" / "hello").exists()


def test_missing_executable_aborts(engine, module, jar, tmp_path):
    jar.unlink()
    result = engine.run(module())
    assert result.state is ModuleState.FAILED
    assert not (tmp_path / "target" / "kubernetes" / "hello").exists()


def test_cancelled_build_writes_nothing(engine, module, tmp_path):
    cancel = threading.Event()
    cancel.set()
    result = engine.run(module(), cancel=cancel)

    assert result.state is ModuleState.FAILED
    assert "cancelled" in result.errors[0].message
    assert not (tmp_path / "target").exists()


def test_single_yaml_and_namespace(tmp_path, module):
    config = ForgeConfig(single_yaml=True, namespace="shop")
    engine = ForgeEngine(str(tmp_path / "target"), config=config)
    result = engine.run(module())

    kube_dir = tmp_path / "target" / "kubernetes" / "hello"
    assert result.success
    assert _files(kube_dir) == ["hello.yaml"]
    docs = list(YAML(typ='safe').load_all((kube_dir / "hello.yaml").read_text()))
    assert [d["kind"] for d in docs] == ["Deployment", "Service", "HorizontalPodAutoscaler"]
    assert {d["metadata"]["namespace"] for d in docs} == {"shop"}
    assert any("namespace: shop" in log for log in result.render_log)


def test_thin_jar_copies_dependencies(tmp_path, module):
    lib = tmp_path / "build" / "lib.jar"
    lib.parent.mkdir(exist_ok=True)
    lib.write_bytes(b"lib")
    source = module()
    source.dependency_paths = [lib]

    engine = ForgeEngine(str(tmp_path / "target"), config=ForgeConfig(uber_jar=False))
    result = engine.run(source)

    docker_dir = tmp_path / "target" / "docker" / "hello"
    assert result.success
    assert (docker_dir / "jars" / "lib.jar").read_bytes() == b"lib"
    assert "COPY jars/" in (docker_dir / "Dockerfile").read_text()


def test_auto_generated_module(engine, listener, tmp_path):
    svc = ServiceTarget("api", [listener(9090)])
    source = ModuleSource(
        module_id="org/shop:1.0.0",
        services=[svc],
        listeners=[ListenerVariableTarget("unused", init=listener(9999))],
        functions=[FunctionTarget("main")],
        auto_generate=True,
    )
    result = engine.run(source)

    assert result.success, result.errors
    assert _files(tmp_path / "target" / "kubernetes" / "shop") == [
        "shop_deployment.yaml", "shop_hpa.yaml", "shop_job.yaml", "shop_svc.yaml"
    ]

    kube_dir = tmp_path / "target" / "kubernetes" / "shop"
    selector = YAML(typ='safe').load((kube_dir / "shop_svc.yaml").read_text())["spec"]["selector"]
    job = YAML(typ='safe').load((kube_dir / "shop_job.yaml").read_text())
    assert selector == {"app": "shop"}
    assert job["spec"]["template"]["metadata"]["labels"] == {"app": "shop-job"}


def test_build_modules_in_parallel(engine, module, tmp_path):
    sources = [module(f"org/app{i}:1.0.0") for i in range(6)]
    results = engine.build_modules(sources, max_workers=3)

    assert [r.module_id for r in results] == [s.module_id for s in sources]
    assert all(r.success for r in results)
    for i in range(6):
        assert (tmp_path / "target" / "kubernetes" / f"app{i}" / f"app{i}_svc.yaml").exists()
    assert len(engine.registry) == 0

    summary = engine.generate_summary(results)
    assert summary["total_modules"] == 6
    assert summary["successful"] == 6
    assert summary["success_rate"] == 1.0
    assert summary["files_written"] == 6 * 5


def test_summary_of_nothing(engine):
    assert engine.generate_summary([])["total_modules"] == 0


def test_manager_rejects_out_of_order_calls(ctx):
    manager = ArtifactManager(ctx)
    with pytest.raises(RuntimeError):
        manager.create_artifacts()
    assert manager.state is ModuleState.IDLE


def test_modules_sharing_a_short_name_do_not_overwrite_each_other(engine, module, service, tmp_path):
    first = engine.run(module("orgA/hello:1.0.0"))
    svc = service("hello", 7070)
    second = engine.run(ModuleSource(module_id="orgB/hello:1.0.0", services=[svc],
                                     annotations=[Annotation(svc, "Service", {})]))

    assert first.success, first.errors
    assert second.state is ModuleState.FAILED
    assert isinstance(second.errors[0], ArtifactIOError)
    assert "orgA/hello:1.0.0" in second.errors[0].message

    svc_doc = YAML(typ='safe').load(
        (tmp_path / "target" / "kubernetes" / "hello" / "hello_svc.yaml").read_text())
    assert svc_doc["spec"]["ports"][0]["targetPort"] == 9090

    # The owning module can still regenerate its own output
    assert engine.run(module("orgA/hello:1.0.0")).success


def test_same_module_run_concurrently(engine, module):
    sources = [module() for _ in range(6)]
    results = engine.build_modules(sources, max_workers=6)

    for result in results:
        assert result.success or isinstance(result.errors[0], ContextBusyError), result.errors
    assert any(r.success for r in results)
    assert len(engine.registry) == 0
