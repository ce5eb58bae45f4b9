"""Tests for config file discovery."""

import pytest

from gocd_yaml._internal.discovery import compile_patterns, find_config_files, split_patterns


def test_default_pattern_is_recursive_and_case_insensitive(write_repo):
    base = write_repo({
        "root.gocd.yaml": "",
        "nested/deep/app.GOCD.YML": "",
        "nested/readme.md": "",
        "other.yaml": "",
        ".git/hooks/x.gocd.yaml": "",
    })
    assert find_config_files(base) == ["nested/deep/app.GOCD.YML", "root.gocd.yaml"]


def test_custom_pattern(write_repo):
    base = write_repo({"ci/a.yaml": "", "ci/sub/b.yaml": "", "c.yaml": ""})
    assert find_config_files(base, "ci/*.yaml") == ["ci/a.yaml"]
    assert find_config_files(base, "ci/**/*.yaml") == ["ci/a.yaml", "ci/sub/b.yaml"]
    assert find_config_files(base, " c.yaml , ci/sub/** ") == ["c.yaml", "ci/sub/b.yaml"]


def test_missing_directory(tmp_path):
    with pytest.raises(NotADirectoryError):
        find_config_files(tmp_path / "nope")


@pytest.mark.parametrize(
    "pattern,path,expected",
    [
        ("**/*.gocd.yaml", "a.gocd.yaml", True),
        ("**/*.gocd.yaml", "x/y/a.gocd.yaml", True),
        ("*.gocd.yaml", "x/a.gocd.yaml", False),
        ("/*.gocd.yaml", "a.gocd.yaml", True),
        ("a?.yml", "ab.yml", True),
        ("a?.yml", "a/.yml", False),
        ("pipelines.gocd.yaml", "pipelines_gocd_yaml", False),
        ("CI/*.YAML", "ci/a.yaml", True),
        ("ci/*.yaml, **/*.yml", "x/b.yml", True),
    ],
)
def test_compile_patterns(pattern, path, expected):
    assert bool(compile_patterns(pattern).match_file(path)) is expected


def test_file_names_keep_their_case(write_repo):
    base = write_repo({"CI/App.Gocd.Yaml": "", "ci2/other.txt": ""})
    assert find_config_files(base, "ci/*.gocd.yaml") == ["CI/App.Gocd.Yaml"]


def test_split_patterns_drops_blanks():
    assert split_patterns("a, ,b,") == ["a", "b"]
