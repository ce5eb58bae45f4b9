"""Tests for document-level transforms: versions, environments, templates."""

import pytest

from gocd_yaml.codes import ErrorCode
from gocd_yaml.kernel.transforms import RootTransform, TransformContext
from gocd_yaml.kernel.transforms.environments import EnvironmentTransform
from gocd_yaml.kernel.transforms.root import SUPPORTED_VERSIONS, parse_version
from gocd_yaml.kernel.transforms.templates import TemplateTransform


@pytest.mark.parametrize("raw,expected", [
    (3, 3), ("10", 10), (" 2 ", 2), ("-3", -3),
    (True, None), ("v2", None), (1.5, None), ("--5", None), ("²", None),
])
def test_parse_version(raw, expected):
    assert parse_version(raw) == expected


def test_supported_versions():
    assert SUPPORTED_VERSIONS == tuple(range(1, 11))


def test_version_must_be_integer():
    ctx = TransformContext("a.gocd.yaml")
    config = RootTransform().transform({"format_version": "latest"}, ctx)
    assert config.format_version is None
    assert ctx.errors[0].code == ErrorCode.INVALID_FIELD_VALUE
    assert ctx.errors[0].message.startswith("format_version: ")


def test_empty_document():
    ctx = TransformContext("a.gocd.yaml")
    config = RootTransform().transform({}, ctx)
    assert config.is_empty
    assert config.format_version is None
    assert ctx.errors == []


def test_entity_names_must_be_strings():
    ctx = TransformContext("a.gocd.yaml")
    RootTransform().transform({"environments": {1: {}}}, ctx)
    assert ctx.errors[0].code == ErrorCode.INVALID_FIELD_VALUE


def test_environment_round_trip():
    ctx = TransformContext("e.gocd.yaml")
    transform = EnvironmentTransform()
    env = transform.transform(
        "staging",
        {"environment_variables": {"A": "1"}, "secure_variables": {"B": "AES:x"},
         "agents": ["agent-1"], "pipelines": ["app", "api"]},
        ctx,
    )
    assert ctx.errors == []
    assert transform.transform("staging", transform.inverse_transform(env), ctx) == env


def test_environment_without_body_is_empty():
    ctx = TransformContext("e.gocd.yaml")
    env = EnvironmentTransform().transform("bare", None, ctx)
    assert ctx.errors == []
    assert env.pipelines == []


def test_environment_duplicate_pipeline():
    ctx = TransformContext("e.gocd.yaml")
    assert EnvironmentTransform().transform("staging", {"pipelines": ["app", "app"]}, ctx) is None
    assert [e.code for e in ctx.errors] == [ErrorCode.DUPLICATE_NAME]


def test_template_round_trip():
    ctx = TransformContext("t.gocd.yaml")
    transform = TemplateTransform()
    template = transform.transform(
        "standard",
        {"stages": [{"build": {"jobs": {"compile": {"tasks": ["make"]}}}},
                    {"deploy": {"approval": "manual", "jobs": {"ship": {"tasks": ["./ship.sh"]}}}}]},
        ctx,
    )
    assert ctx.errors == []
    assert [s.name for s in template.stages] == ["build", "deploy"]
    assert transform.transform("standard", transform.inverse_transform(template), ctx) == template


def test_template_requires_stages():
    ctx = TransformContext("t.gocd.yaml")
    assert TemplateTransform().transform("standard", {}, ctx) is None
    assert [e.code for e in ctx.errors] == [ErrorCode.MISSING_REQUIRED_FIELD]


def test_malformed_numeric_version_is_a_field_error():
    ctx = TransformContext("a.gocd.yaml")
    config = RootTransform().transform({"format_version": "--5"}, ctx)
    assert config.format_version is None
    assert [e.code for e in ctx.errors] == [ErrorCode.INVALID_FIELD_VALUE]
