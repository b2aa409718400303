import pytest

from kubeforge.core.config import ForgeConfig
from kubeforge.core.models import ModuleDeploymentContext, OutputPaths
from kubeforge.core.targets import ArgKind, ListenerArg, ListenerInit, ServiceTarget

MODULE_ID = "org/hello:0.1.0"


@pytest.fixture
def make_ctx(tmp_path):
    """Builds a fresh module context writing under tmp_path."""
    def _make(module_id: str = MODULE_ID, config: ForgeConfig = None) -> ModuleDeploymentContext:
        config = config or ForgeConfig()
        name = ModuleDeploymentContext.short_name(module_id)
        return ModuleDeploymentContext(
            module_id=module_id,
            paths=OutputPaths.for_module(tmp_path / "target", name, config),
            config=config,
        )
    return _make


@pytest.fixture
def ctx(make_ctx):
    return make_ctx()


@pytest.fixture
def listener():
    """Inline listener construction: `new http:Listener(port, {secureSocket: ...})`."""
    def _make(port=9090, alias: str = "http", secure: bool = False,
              as_record: bool = False) -> ListenerInit:
        if as_record:
            args = [ListenerArg(ArgKind.RECORD, {"port": port})]
        else:
            args = [ListenerArg(ArgKind.INT, port)]
        if secure:
            args.append(ListenerArg(ArgKind.RECORD, {"secureSocket": {"key": "k"}}))
        return ListenerInit(alias, args)
    return _make


@pytest.fixture
def service(listener):
    def _make(name: str = "hello", port=9090, **kwargs) -> ServiceTarget:
        return ServiceTarget(name, [listener(port, **kwargs)])
    return _make
