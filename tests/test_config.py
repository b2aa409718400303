import json

import pytest

from kubeforge.core.config import ForgeConfig
from kubeforge.core.errors import SchemaError


def test_defaults():
    config = ForgeConfig.load(env={})
    assert config.base_image == "eclipse-temurin:17-jre"
    assert config.namespace is None
    assert config.single_yaml is False
    assert config.uber_jar is True


def test_file_then_environment(tmp_path):
    path = tmp_path / "kubeforge.json"
    path.write_text(json.dumps({"namespace": "shop", "single_yaml": False, "registry": "reg.io"}))

    config = ForgeConfig.load(str(path), env={"KUBEFORGE_SINGLE_YAML": "yes",
                                              "KUBEFORGE_REGISTRY": "mirror.io"})
    assert config.namespace == "shop"
    assert config.single_yaml is True
    assert config.registry == "mirror.io"


@pytest.mark.parametrize("data", [
    {"colour": "blue"},
    {"uber_jar": "maybe"},
])
def test_malformed_values(data):
    with pytest.raises(SchemaError):
        ForgeConfig.from_dict(data)


def test_unreadable_file(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(SchemaError):
        ForgeConfig.load(str(bad), env={})
    with pytest.raises(SchemaError):
        ForgeConfig.load(str(tmp_path / "missing.json"), env={})


def test_file_must_hold_an_object(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]")
    with pytest.raises(SchemaError):
        ForgeConfig.load(str(path), env={})
