import pytest

from kubeforge.core.errors import ContextFrozenError, ModelReferenceError
from kubeforge.core.models import HPAModel, ProbeModel
from kubeforge.processors.deployment import DeploymentAnnotationProcessor
from kubeforge.processors.ingress import IngressAnnotationProcessor
from kubeforge.processors.service import ServiceAnnotationProcessor
from kubeforge.validator.validator import ModelValidator


@pytest.fixture
def validator():
    return ModelValidator()


def _populated(ctx, service):
    target = service("hello", 9090)
    ServiceAnnotationProcessor().process(ctx, target, {})
    DeploymentAnnotationProcessor().process(ctx, target, {})
    return target


def test_clean_model_is_frozen(ctx, service, validator):
    target = _populated(ctx, service)
    assert validator.validate(ctx) == []
    assert ctx.frozen

    with pytest.raises(ContextFrozenError):
        ServiceAnnotationProcessor().process(ctx, target, {"port": 80})


def test_node_port_without_node_port_type(ctx, service, validator):
    _populated(ctx, service)
    ctx.services["hello"].node_port = 30080

    errors = validator.validate(ctx)
    assert len(errors) == 1
    assert isinstance(errors[0], ModelReferenceError)
    assert "NodePort [30080]" in errors[0].message
    assert not ctx.frozen


def test_hpa_with_unknown_deployment(ctx, service, validator):
    _populated(ctx, service)
    ctx.hpas["other"] = HPAModel(name="other-hpa", deployment="other")

    errors = validator.validate(ctx)
    assert [e.target for e in errors] == ["other-hpa"]


def test_hpa_without_deployment(ctx, validator):
    ctx.hpas[""] = HPAModel(name="hello-hpa")
    assert len(validator.validate(ctx)) == 1


def test_ingress_without_service(ctx, service, validator):
    IngressAnnotationProcessor().process(ctx, service("hello"), {"hostname": "h.example.com"})
    errors = validator.validate(ctx)
    assert len(errors) == 1
    assert "requires a Service" in errors[0].message


def test_probe_without_any_port(ctx, validator):
    ctx.deployment.enabled = True
    ctx.deployment.probes.append(ProbeModel(kind="liveness"))
    assert len(validator.validate(ctx)) == 1


def test_exec_probe_needs_no_port(ctx, validator):
    ctx.deployment.enabled = True
    ctx.deployment.probes.append(ProbeModel(kind="liveness", command=["true"]))
    assert validator.validate(ctx) == []


def test_service_name_collision(ctx, service, validator):
    processor = ServiceAnnotationProcessor()
    processor.process(ctx, service("a", 9090), {"name": "shared"})
    processor.process(ctx, service("b", 9091), {"name": "shared"})

    errors = validator.validate(ctx)
    assert len(errors) == 1
    assert errors[0].target == "b"
    assert "'shared'" in errors[0].message


def test_all_problems_reported_together(ctx, service, validator):
    _populated(ctx, service)
    ctx.services["hello"].node_port = 30080
    ctx.hpas["other"] = HPAModel(name="other-hpa", deployment="other")
    IngressAnnotationProcessor().process(ctx, service("missing"), {"hostname": "h.example.com"})

    assert len(validator.validate(ctx)) == 3
