"""Tests for the configuration collection and the file parser.

Covers partial-failure isolation, version agreement, cross-file duplicate
names, environment merging and freezing.
"""

import pytest

from gocd_yaml.codes import COLLECTION_SCOPE, ErrorCode
from gocd_yaml.kernel.collection import CollectionFrozenError, ConfigCollection
from gocd_yaml.kernel.parser import ConfigParser
from gocd_yaml.kernel.reader import MalformedDocument


def _pipeline_yaml(name, version=None, group="web"):
    head = f"format_version: {version}\n" if version is not None else ""
    return head + (
        "pipelines:\n"
        f"  {name}:\n"
        f"    group: {group}\n"
        "    materials:\n"
        "      app:\n"
        "        git: https://example.org/app.git\n"
        "    stages:\n"
        "      - test:\n"
        "          jobs:\n"
        "            unit:\n"
        "              tasks:\n"
        "                - make test\n"
    )


def _parse(contents, default_format_version=None):
    return ConfigParser(default_format_version).parse_contents(contents)


def test_single_file():
    collection = _parse({"a.gocd.yaml": _pipeline_yaml("build", version=10)})
    data = collection.to_json()
    assert data["target-version"] == 10
    assert data["errors"] == {}
    assert [p["name"] for p in data["pipelines"]] == ["build"]
    assert data["pipelines"][0]["location"] == "a.gocd.yaml"
    task = data["pipelines"][0]["stages"][0]["jobs"][0]["tasks"][0]
    assert task == {"type": "exec", "command": "make test", "arguments": [], "run_if": "passed"}


def test_partial_failure_isolation():
    """One broken file: every other pipeline survives, one error for the bad file."""
    collection = _parse({
        "a.gocd.yaml": _pipeline_yaml("a"),
        "b.gocd.yaml": "pipelines:\n  b: [unclosed\n",
        "c.gocd.yaml": _pipeline_yaml("c"),
    })
    assert [p.name for p in collection.pipelines] == ["a", "c"]
    assert list(collection.errors) == ["b.gocd.yaml"]
    assert len(collection.errors["b.gocd.yaml"]) == 1
    assert collection.errors["b.gocd.yaml"][0].code == ErrorCode.MALFORMED_DOCUMENT


def test_version_mismatch():
    collection = _parse({
        "a.gocd.yaml": _pipeline_yaml("a", version='"1"'),
        "b.gocd.yaml": _pipeline_yaml("b", version='"2"'),
    })
    data = collection.to_json()
    assert "target-version" not in data
    errors = data["errors"][COLLECTION_SCOPE]
    assert len(errors) == 1
    assert errors[0]["code"] == "VERSION_MISMATCH"
    assert "a.gocd.yaml (1)" in errors[0]["message"]
    assert "b.gocd.yaml (2)" in errors[0]["message"]
    # both files are individually fine
    assert set(data["errors"]) == {COLLECTION_SCOPE}


def test_undeclared_versions_do_not_participate():
    collection = _parse({
        "a.gocd.yaml": _pipeline_yaml("a", version=4),
        "b.gocd.yaml": _pipeline_yaml("b"),
    })
    assert collection.target_version == 4
    assert not collection.has_errors()


def test_fallback_version():
    assert _parse({"a.gocd.yaml": _pipeline_yaml("a")}).target_version == 1
    assert _parse({"a.gocd.yaml": _pipeline_yaml("a")}, default_format_version=7).target_version == 7


def test_unsupported_version_rejects_file_entities():
    collection = _parse({"a.gocd.yaml": _pipeline_yaml("a", version=42)})
    assert collection.pipelines == []
    assert [e.code for e in collection.errors["a.gocd.yaml"]] == [ErrorCode.UNSUPPORTED_VERSION]
    assert collection.target_version == 1


def test_duplicate_pipeline_across_files():
    collection = _parse({
        "a.yaml": _pipeline_yaml("build"),
        "b.yaml": _pipeline_yaml("build"),
    })
    assert collection.pipelines == []
    errors = collection.errors[COLLECTION_SCOPE]
    assert [e.code for e in errors] == [ErrorCode.DUPLICATE_NAME]
    assert "a.yaml" in errors[0].message and "b.yaml" in errors[0].message


def test_distinct_pipelines_across_files():
    collection = _parse({
        "a.yaml": _pipeline_yaml("build"),
        "b.yaml": _pipeline_yaml("test"),
    })
    assert collection.errors == {}
    assert [p.name for p in collection.pipelines] == ["build", "test"]


def test_empty_file():
    """Zero bytes: no pipelines, no errors, no vote on the version."""
    collection = _parse({
        "a.gocd.yaml": _pipeline_yaml("a", version=5),
        "empty.gocd.yaml": b"",
    })
    assert collection.errors == {}
    assert collection.target_version == 5
    assert _parse({"empty.gocd.yaml": b""}).to_json() == {
        "target-version": 1, "pipelines": [], "environments": [], "templates": [], "errors": {},
    }


def test_files_are_processed_in_lexical_order():
    collection = _parse({
        "z.gocd.yaml": _pipeline_yaml("z"),
        "dir/m.gocd.yaml": _pipeline_yaml("m"),
        "a.gocd.yaml": _pipeline_yaml("a"),
    })
    assert [p.name for p in collection.pipelines] == ["a", "m", "z"]


def test_environments_merge_across_files():
    collection = _parse({
        "a.gocd.yaml": (
            "environments:\n"
            "  staging:\n"
            "    environment_variables: {DEPLOY_ENV: staging}\n"
            "    agents: [agent-1]\n"
            "    pipelines: [app]\n"
        ),
        "b.gocd.yaml": (
            "environments:\n"
            "  staging:\n"
            "    environment_variables: {DEPLOY_ENV: staging, REGION: eu}\n"
            "    agents: [agent-1, agent-2]\n"
            "    pipelines: [api]\n"
        ),
    })
    assert collection.errors == {}
    [env] = collection.environments
    assert env.agents == ["agent-1", "agent-2"]
    assert env.pipelines == ["app", "api"]
    assert [v.name for v in env.environment_variables] == ["DEPLOY_ENV", "REGION"]


def test_environment_variable_conflict():
    collection = _parse({
        "a.gocd.yaml": "environments:\n  staging:\n    environment_variables: {A: '1'}\n",
        "b.gocd.yaml": "environments:\n  staging:\n    environment_variables: {A: '2'}\n",
    })
    errors = collection.errors[COLLECTION_SCOPE]
    assert [e.code for e in errors] == [ErrorCode.DUPLICATE_NAME]
    assert "a.gocd.yaml" in errors[0].message and "b.gocd.yaml" in errors[0].message


def test_pipeline_in_two_environments():
    collection = _parse({
        "a.gocd.yaml": "environments:\n  staging:\n    pipelines: [app]\n  prod:\n    pipelines: [app]\n",
    })
    errors = collection.errors[COLLECTION_SCOPE]
    assert [e.code for e in errors] == [ErrorCode.DUPLICATE_NAME]
    assert "'app'" in errors[0].message


def test_templates_are_collected():
    collection = _parse({
        "t.gocd.yaml": (
            "templates:\n"
            "  standard:\n"
            "    stages:\n"
            "      - build: {jobs: {compile: {tasks: [make]}}}\n"
        ),
    })
    data = collection.to_json()
    assert data["errors"] == {}
    assert data["templates"][0]["name"] == "standard"
    assert data["templates"][0]["location"] == "t.gocd.yaml"


def test_common_section_is_ignored_and_unknown_root_key_reported():
    collection = _parse({
        "a.gocd.yaml": "common:\n  anything: [goes, here]\nfoo: bar\n",
    })
    assert [e.code for e in collection.errors["a.gocd.yaml"]] == [ErrorCode.UNKNOWN_FIELD]


def test_non_mapping_root():
    collection = _parse({"a.gocd.yaml": "- just\n- a list\n"})
    assert [e.code for e in collection.errors["a.gocd.yaml"]] == [ErrorCode.INVALID_FIELD_VALUE]


def test_partially_valid_file_keeps_good_pipelines():
    text = _pipeline_yaml("good") + "  bad:\n    materials: {}\n    stages: []\n"
    collection = _parse({"a.gocd.yaml": text})
    assert [p.name for p in collection.pipelines] == ["good"]
    assert len(collection.errors["a.gocd.yaml"]) == 2


def test_add_file_accepts_reader_errors():
    collection = ConfigCollection()
    collection.add_file("x.gocd.yaml", MalformedDocument("x.gocd.yaml", "bad indentation", 3, 4))
    collection.finalize()
    [error] = collection.errors["x.gocd.yaml"]
    assert error.to_json() == {
        "message": "x.gocd.yaml (line 3, column 4): bad indentation",
        "location": "x.gocd.yaml",
        "code": "MALFORMED_DOCUMENT",
    }


def test_add_file_never_raises_on_internal_failure(monkeypatch):
    collection = ConfigCollection()

    def boom(node, ctx):
        raise KeyError("unexpected")

    monkeypatch.setattr(collection._transform, "transform", boom)
    collection.add_file("x.gocd.yaml", {"pipelines": {}})
    assert [e.code for e in collection.errors["x.gocd.yaml"]] == [ErrorCode.INTERNAL_ERROR]


def test_finalized_collection_is_frozen():
    collection = ConfigCollection().finalize()
    assert collection.frozen
    with pytest.raises(CollectionFrozenError):
        collection.add_file("late.gocd.yaml", {})
    # finalize is idempotent
    assert collection.finalize() is collection


def test_parse_files_reports_unreadable_file(write_repo):
    base = write_repo({"a.gocd.yaml": _pipeline_yaml("a")})
    collection = ConfigParser().parse_files(base, ["a.gocd.yaml", "missing.gocd.yaml"])
    assert [p.name for p in collection.pipelines] == ["a"]
    assert [e.code for e in collection.errors["missing.gocd.yaml"]] == [ErrorCode.UNREADABLE_FILE]


def test_malformed_integer_is_a_field_error():
    """A value int() rejects is the user's error, not an engine fault."""
    text = _pipeline_yaml("a").replace("            unit:\n", '            unit:\n              timeout: "--5"\n')
    collection = _parse({"a.gocd.yaml": text})
    errors = collection.errors["a.gocd.yaml"]
    assert [e.code for e in errors] == [ErrorCode.INVALID_FIELD_VALUE]
    assert "timeout" in errors[0].message
