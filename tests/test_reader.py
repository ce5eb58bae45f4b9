"""Tests for the YAML document reader."""

import pytest

from gocd_yaml.codes import ErrorCode
from gocd_yaml.kernel.reader import MalformedDocument, read_document


def test_empty_document_is_empty_mapping():
    """Zero bytes, whitespace and comment-only files are valid and empty."""
    assert read_document(b"", "a.gocd.yaml") == {}
    assert read_document("   \n\n", "a.gocd.yaml") == {}
    assert read_document("# nothing here\n", "a.gocd.yaml") == {}
    assert read_document("null\n", "a.gocd.yaml") == {}


def test_reads_nested_structure_in_order():
    doc = read_document(
        "format_version: 10\npipelines:\n  b: {group: x}\n  a: {group: y}\n",
        "p.gocd.yaml",
    )
    assert doc["format_version"] == 10
    assert list(doc["pipelines"]) == ["b", "a"]


def test_utf8_bom_is_accepted():
    doc = read_document("\ufeffformat_version: 3\n".encode("utf-8"), "bom.gocd.yaml")
    assert doc == {"format_version": 3}


def test_syntax_error_carries_filename_and_position():
    with pytest.raises(MalformedDocument) as excinfo:
        read_document("pipelines:\n  build: [unclosed\n", "broken.gocd.yaml")
    error = excinfo.value
    assert error.filename == "broken.gocd.yaml"
    assert error.code == ErrorCode.MALFORMED_DOCUMENT
    assert error.line is not None and error.line >= 2
    assert error.column is not None
    assert "broken.gocd.yaml" in str(error)
    assert f"line {error.line}" in str(error)


def test_invalid_utf8_is_malformed():
    with pytest.raises(MalformedDocument) as excinfo:
        read_document(b"name: \xff\xfe\n", "binary.gocd.yaml")
    assert excinfo.value.code == ErrorCode.MALFORMED_DOCUMENT
    assert excinfo.value.line is None


def test_duplicate_keys_are_rejected():
    text = (
        "pipelines:\n"
        "  build:\n"
        "    group: a\n"
        "  build:\n"
        "    group: b\n"
    )
    with pytest.raises(MalformedDocument) as excinfo:
        read_document(text, "dup.gocd.yaml")
    assert excinfo.value.code == ErrorCode.DUPLICATE_NAME
    assert "build" in excinfo.value.message
    assert excinfo.value.line == 4


def test_merge_keys_are_not_duplicates():
    """Keys pulled in with ``<<`` may be overridden explicitly."""
    text = (
        "common:\n"
        "  defaults: &defaults\n"
        "    group: shared\n"
        "    label_template: '${COUNT}'\n"
        "pipelines:\n"
        "  build:\n"
        "    <<: *defaults\n"
        "    group: own\n"
    )
    doc = read_document(text, "merge.gocd.yaml")
    assert doc["pipelines"]["build"] == {"group": "own", "label_template": "${COUNT}"}


def test_multiple_documents_are_malformed():
    with pytest.raises(MalformedDocument):
        read_document("a: 1\n---\nb: 2\n", "multi.gocd.yaml")
