import pytest

from kubeforge.core.errors import ModelReferenceError, SchemaError
from kubeforge.core.pipeline import AnnotationPipeline
from kubeforge.core.targets import (
    Annotation, AnnotationKind, FunctionTarget, ListenerRef, ListenerVariableTarget,
    ModuleSource, ServiceTarget
)


@pytest.fixture
def pipeline():
    return AnnotationPipeline()


@pytest.fixture
def auto_source(listener):
    api = ServiceTarget("api", [listener(9090)])
    admin = ServiceTarget("admin", [ListenerRef("adminEp")])
    return ModuleSource(
        module_id="org/hello:0.1.0",
        services=[api, admin],
        listeners=[
            ListenerVariableTarget("adminEp", init=listener(9091)),
            ListenerVariableTarget("unusedEp", init=listener(9092)),
        ],
        functions=[FunctionTarget("main"), FunctionTarget("helper")],
        auto_generate=True,
    )


def test_synthesis_order(pipeline, auto_source):
    synthesized = pipeline.synthesize(auto_source)

    assert [(a.kind, a.target.name) for a in synthesized] == [
        (AnnotationKind.DEPLOYMENT, "api"),
        (AnnotationKind.DEPLOYMENT, "admin"),
        (AnnotationKind.HPA, "api"),
        (AnnotationKind.HPA, "admin"),
        (AnnotationKind.SERVICE, "api"),
        (AnnotationKind.SERVICE, "adminEp"),
        (AnnotationKind.JOB, "main"),
    ]
    assert all(a.synthesized for a in synthesized)
    assert synthesized[4].data == {"serviceType": "NodePort"}


def test_no_synthesis_without_auto_generate(pipeline, auto_source):
    auto_source.auto_generate = False
    assert pipeline.synthesize(auto_source) == []


def test_synthesized_module_populates(pipeline, auto_source, ctx):
    errors = pipeline.run(ctx, pipeline.annotations_for(auto_source))

    assert errors == []
    assert ctx.deployment.enabled
    assert sorted(ctx.services) == ["adminEp", "api"]
    assert ctx.services["adminEp"].port == 9091
    assert ctx.services["api"].service_type == "NodePort"
    assert list(ctx.hpas) == [""]
    assert list(ctx.jobs) == ["main"]


def test_explicit_annotation_wins_over_synthesized(pipeline, auto_source, ctx):
    api = auto_source.services[0]
    auto_source.annotations = [
        Annotation(api, AnnotationKind.SERVICE, {"serviceType": "ClusterIP", "port": 80}),
    ]
    assert pipeline.run(ctx, pipeline.annotations_for(auto_source)) == []

    assert ctx.services["api"].service_type == "ClusterIP"
    assert ctx.services["api"].port == 80
    assert ctx.services["api"].target_port == 9090


def test_run_collects_every_error_in_order(pipeline, ctx, service):
    named = ServiceTarget("named", [ListenerRef("ep")])
    good = service("hello", 9090)
    annotations = [
        Annotation(named, "Service", {}),
        Annotation(good, "Job", {}),
        Annotation(good, "Service", {"nodePort": 30001}),
        Annotation(good, "Deployment", {"replicas": 2}),
    ]

    errors = pipeline.run(ctx, annotations)

    assert [type(e) for e in errors] == [SchemaError, SchemaError, ModelReferenceError]
    assert [e.target for e in errors] == ["named", "hello", "hello"]
    # Processing continues after failures
    assert ctx.deployment.replicas == 2
