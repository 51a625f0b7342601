"""Tests for mapping loading/validation and configuration helpers."""

import json
import logging
from datetime import datetime

import pytest

from agentpack.config import default_artifact_name, get_log_level, record_timestamp
from agentpack.errors import MappingFileNotFound, MappingFormatError
from agentpack.mapping import MappingSpec, Substitution


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# ── Loading ──────────────────────────────────────────────────────────

def test_load_normalizes_scopes_and_folders(tmp_path):
    path = _write(tmp_path / "map.json", {
        "ignore-folders": ["./vendor/", "node_modules"],
        "map": [
            {"scope": "./src/", "list": [{"Acme": "ANON"}]},
            {"list": [{"secret": "XXX"}]},
        ],
    })

    spec = MappingSpec.load(path)

    assert spec.ignore_folders == frozenset({"vendor", "node_modules"})
    assert spec.groups[0].scope == "src"
    assert spec.groups[0].substitutions == (Substitution("Acme", "ANON"),)
    assert spec.groups[1].scope == "."
    assert spec.groups[1].is_global
    assert spec.rule_count == 2
    assert spec.source == path.resolve()


def test_load_yaml_mapping(tmp_path):
    path = tmp_path / "map.yaml"
    path.write_text(
        "ignore-folders:\n  - dist\nmap:\n  - scope: src\n    list:\n      - Acme: ANON\n",
        encoding="utf-8",
    )

    spec = MappingSpec.load(path)

    assert spec.ignore_folders == frozenset({"dist"})
    assert spec.groups[0].substitutions == (Substitution("Acme", "ANON"),)


def test_empty_document_sections_are_optional():
    spec = MappingSpec.from_dict({})
    assert spec.groups == ()
    assert spec.ignore_folders == frozenset()


def test_missing_file(tmp_path):
    with pytest.raises(MappingFileNotFound):
        MappingSpec.load(tmp_path / "nope.json")


def test_invalid_json_names_the_file(tmp_path):
    path = tmp_path / "map.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(MappingFormatError) as exc:
        MappingSpec.load(path)

    assert str(path) in str(exc.value)


# ── Validation ───────────────────────────────────────────────────────

@pytest.mark.parametrize("doc", [
    [],
    {"map": {"scope": "."}},
    {"map": ["not an object"]},
    {"map": [{"scope": 3, "list": []}]},
    {"map": [{"scope": "."}]},
    {"map": [{"list": [{"a": "b", "c": "d"}]}]},
    {"map": [{"list": [{"": "b"}]}]},
    {"map": [{"list": [{"a": 1}]}]},
    {"ignore-folders": "vendor"},
    {"ignore-folders": [""]},
    {"ignore-folders": ["./"]},
])
def test_malformed_documents_are_rejected(doc):
    with pytest.raises(MappingFormatError):
        MappingSpec.from_dict(doc)


def test_validation_is_eager_even_for_unused_groups():
    doc = {"map": [
        {"scope": "src", "list": [{"ok": "fine"}]},
        {"scope": "never/used", "list": [{"bad": None}]},
    ]}
    with pytest.raises(MappingFormatError, match=r"map\[1\]\.list\[0\]"):
        MappingSpec.from_dict(doc)


def test_empty_placeholder_is_allowed():
    spec = MappingSpec.from_dict({"map": [{"list": [{"token": ""}]}]})
    assert spec.groups[0].substitutions == (Substitution("token", ""),)


# ── Helpers ──────────────────────────────────────────────────────────

def test_relative_source_inside_and_outside_root(tmp_path):
    project = tmp_path / "project"
    project.mkdir()
    (project / "cfg").mkdir()
    inside = _write(project / "cfg" / "map.json", {})
    outside = _write(tmp_path / "map.json", {})

    assert MappingSpec.load(inside).relative_source(project) == "cfg/map.json"
    assert MappingSpec.load(outside).relative_source(project) is None
    assert MappingSpec.from_dict({}).relative_source(project) is None


def test_describe_hides_substitution_text():
    spec = MappingSpec.from_dict({
        "ignore-folders": ["vendor"],
        "map": [{"list": [{"TopSecret": "X"}]}],
    })

    summary = spec.describe()

    assert summary == {"ignore_folders": ["vendor"], "groups": 1, "rules": 1}
    assert "TopSecret" not in json.dumps(summary)


# ── Configuration ────────────────────────────────────────────────────

def test_default_artifact_name():
    assert default_artifact_name(datetime(2024, 1, 2, 3, 4, 5)) == "Agent20240102-030405.AI"


def test_record_timestamp_format():
    assert record_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "03:04:05 02/01/2024 - Tuesday"


def test_log_level_from_environment(monkeypatch):
    monkeypatch.setenv("AGENTPACK_LOG_LEVEL", "debug")
    assert get_log_level() == logging.DEBUG

    monkeypatch.setenv("AGENTPACK_LOG_LEVEL", "chatty")
    assert get_log_level() == logging.WARNING
