"""Tests for gocd_yaml public API.

Every operation answers with an EngineResponse: success (possibly carrying
file errors), bad_request for malformed calls, error for internal faults.
"""

import logging

import pytest

import gocd_yaml
from gocd_yaml import api
from gocd_yaml.codes import ENGINE_SCOPE
from gocd_yaml.reporting import EngineResponse, Outcome

PIPELINE = """\
format_version: 10
pipelines:
  build:
    materials:
      app: {git: https://example.org/app.git}
    stages:
      - test: {jobs: {unit: {tasks: [make test]}}}
"""


def test_parse_contents_success():
    response = api.parse_contents({"a.gocd.yaml": PIPELINE})
    assert isinstance(response, EngineResponse)
    assert response.outcome == Outcome.SUCCESS
    assert response.body["target-version"] == 10
    assert [p["name"] for p in response.body["pipelines"]] == ["build"]


def test_parse_contents_with_errors_is_still_success():
    response = api.parse_contents({"a.gocd.yaml": "pipelines: {build: {}}\n"})
    assert response.ok
    assert response.body["errors"]["a.gocd.yaml"][0]["code"] == "MISSING_REQUIRED_FIELD"


def test_parse_contents_default_version():
    response = api.parse_contents({"a.gocd.yaml": ""}, default_format_version=3)
    assert response.body["target-version"] == 3


@pytest.mark.parametrize(
    "contents,kwargs",
    [
        (["a.gocd.yaml"], {}),
        ({"a.gocd.yaml": 12}, {}),
        ({"a.gocd.yaml": ""}, {"default_format_version": "ten"}),
    ],
)
def test_parse_contents_bad_request(contents, kwargs):
    response = api.parse_contents(contents, **kwargs)
    assert response.outcome == Outcome.BAD_REQUEST
    assert response.body["message"]


def test_parse_directory(write_repo):
    base = write_repo({
        "a.gocd.yaml": PIPELINE,
        "nested/b.gocd.yml": PIPELINE.replace("build:", "deploy:"),
        "ignored.yaml": "not: [valid",
    })
    response = api.parse_directory(base)
    assert response.ok
    assert response.body["errors"] == {}
    assert [p["name"] for p in response.body["pipelines"]] == ["build", "deploy"]
    assert response.body["pipelines"][1]["location"] == "nested/b.gocd.yml"


def test_parse_directory_with_pattern_and_settings(write_repo):
    base = write_repo({"ci/build.yaml": PIPELINE, "a.gocd.yaml": ""})
    response = api.parse_directory(base, pattern="ci/*.yaml")
    assert [p["name"] for p in response.body["pipelines"]] == ["build"]

    response = api.parse_directory(base, settings={"file_pattern": "ci/*.yaml"})
    assert [p["name"] for p in response.body["pipelines"]] == ["build"]


def test_parse_directory_missing_directory(tmp_path):
    response = api.parse_directory(tmp_path / "absent")
    assert response.outcome == Outcome.BAD_REQUEST
    assert "does not exist" in response.body["message"]
    assert api.parse_directory(42).outcome == Outcome.BAD_REQUEST
    assert api.parse_directory(tmp_path, settings=["x"]).outcome == Outcome.BAD_REQUEST


def test_list_config_files(write_repo):
    base = write_repo({"b.gocd.yaml": "", "a/x.gocd.yml": "", "c.txt": ""})
    response = api.list_config_files(base)
    assert response.body == {"files": ["a/x.gocd.yml", "b.gocd.yaml"]}


def test_export_pipeline():
    parsed = api.parse_contents({"a.gocd.yaml": PIPELINE}).body["pipelines"][0]
    response = api.export_pipeline(parsed)
    assert response.ok
    assert response.headers["Content-Type"] == "application/x-yaml; charset=utf-8"
    assert response.headers["X-Export-Filename"] == "build.gocd.yaml"
    assert "make test" in response.body["pipeline"]


def test_export_pipeline_bad_request():
    response = api.export_pipeline({"name": "x"})
    assert response.outcome == Outcome.BAD_REQUEST


def test_export_pipeline_duplicate_jobs_is_bad_request():
    parsed = api.parse_contents({"a.gocd.yaml": PIPELINE}).body["pipelines"][0]
    jobs = parsed["stages"][0]["jobs"]
    jobs.append(dict(jobs[0]))
    response = api.export_pipeline(parsed)
    assert response.outcome == Outcome.BAD_REQUEST
    assert "duplicate job name" in response.body["message"]


def test_capabilities():
    response = api.get_capabilities()
    assert response.body == {
        "supports_parse_directory": True,
        "supports_parse_content": True,
        "supports_pipeline_export": True,
        "supports_list_config_files": True,
        "supports_pluggable_tasks": True,
        "supports_user_defined_properties": False,
    }


def test_internal_fault_becomes_error_response(monkeypatch, caplog):
    def explode(self, contents):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(api.ConfigParser, "parse_contents", explode)
    with caplog.at_level(logging.ERROR, logger="gocd_yaml.reporting"):
        response = api.parse_contents({"a.gocd.yaml": PIPELINE})

    assert response.outcome == Outcome.ERROR
    assert response.body["pipelines"] == []
    [error] = response.body["errors"][ENGINE_SCOPE]
    assert error["code"] == "INTERNAL_ERROR"
    assert "disk on fire" in error["message"]
    assert any(record.exc_info for record in caplog.records)


def test_package_exports_operations():
    assert gocd_yaml.parse_directory is api.parse_directory
    assert gocd_yaml.export_pipeline is api.export_pipeline
    assert isinstance(gocd_yaml.__version__, str)
