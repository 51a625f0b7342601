"""Tests for artifact building, the tree description and persistence."""

import json

import pytest

from agentpack.archive import Artifact, ArtifactMetadata, ArchiveBuilder, build_tree
from agentpack.errors import ArtifactFormatError
from agentpack.mapping import MappingSpec
from agentpack.rules import MappingResolver
from agentpack.utils import decode_payload, stable_hash


def _metadata():
    return ArtifactMetadata(
        project_name="project",
        artifact_name="Agent.AI",
        timestamp="10:00:00 01/01/2024 - Monday",
    )


# ── Tree ─────────────────────────────────────────────────────────────

def test_tree_lists_directories_before_files():
    tree = build_tree(["src/a.py", "README.md", "src/lib/b.py"])

    assert tree == "\n".join([
        ".",
        "├── src/",
        "│   ├── lib/",
        "│   │   └── b.py",
        "│   └── a.py",
        "└── README.md",
    ])


def test_empty_tree():
    assert build_tree([]) == "."


# ── Building ─────────────────────────────────────────────────────────

def test_build_without_mapping_keeps_bytes(project):
    result = ArchiveBuilder(project).build(["README.md", "src/main.py"], _metadata())

    assert result.ok
    entry = result.artifact.entries[1]
    assert entry.path == "src/main.py"
    assert decode_payload(entry.payload) == (project / "src/main.py").read_bytes()
    assert result.artifact.metadata.mapped is False


def test_build_applies_forward_rules_per_file(project, mapping_file):
    resolver = MappingResolver(MappingSpec.load(mapping_file))

    result = ArchiveBuilder(project, resolver).build(["src/main.py", "docs/guide.md"], _metadata())

    main, guide = result.artifact.entries
    assert decode_payload(main.payload) == b"CLIENT = 'ANONANON'\nHOST = 'HOST_A'\n"
    assert decode_payload(guide.payload) == b"How to use the ANON tool\n"
    assert main.sha256 == stable_hash(decode_payload(main.payload))
    assert result.artifact.metadata.mapped is True


def test_unreadable_file_is_reported_and_skipped(project):
    result = ArchiveBuilder(project).build(["README.md", "gone.txt"], _metadata())

    assert not result.ok
    assert [f.path for f in result.failures] == ["gone.txt"]
    assert result.artifact.file_list == ["README.md"]


def test_binary_content_survives(tmp_path):
    data = bytes(range(256))
    (tmp_path / "blob.bin").write_bytes(data)

    entry = ArchiveBuilder(tmp_path).encode_file("blob.bin")

    assert decode_payload(entry.payload) == data


# ── Persistence ──────────────────────────────────────────────────────

def test_dump_and_load(project, tmp_path):
    artifact = ArchiveBuilder(project).build(["README.md", "src/pkg/mod.py"], _metadata()).artifact
    path = tmp_path / "out" / "Agent.AI"

    artifact.dump(path)
    loaded = Artifact.load(path)

    assert loaded == artifact
    data = json.loads(path.read_text())
    assert data["format"] == "agentpack"
    assert data["tree"] == artifact.tree
    assert [f["encoding"] for f in data["files"]] == ["base64", "base64"]


def test_mapping_never_reaches_the_artifact(project, mapping_file, tmp_path):
    resolver = MappingResolver(MappingSpec.load(mapping_file))
    artifact = ArchiveBuilder(project, resolver).build(["src/main.py"], _metadata()).artifact

    path = tmp_path / "Agent.AI"
    artifact.dump(path)
    text = path.read_text()

    assert "acme.internal" not in text
    assert "map.json" not in text


def _valid_doc():
    return {
        "format": "agentpack",
        "version": 1,
        "metadata": {"project_name": "p"},
        "files": [{"path": "a.txt", "encoding": "base64", "sha256": "", "payload": "YQ=="}],
    }


@pytest.mark.parametrize("mutate", [
    lambda d: d.update(format="zip"),
    lambda d: d.update(version=99),
    lambda d: d.update(files={}),
    lambda d: d.update(metadata="bogus"),
    lambda d: d["files"].append(dict(d["files"][0])),
    lambda d: d["files"][0].update(encoding="hex"),
    lambda d: d["files"][0].pop("payload"),
])
def test_malformed_artifacts_are_rejected(mutate):
    doc = _valid_doc()
    mutate(doc)

    with pytest.raises(ArtifactFormatError):
        Artifact.from_dict(doc)


def test_load_missing_or_garbage(tmp_path):
    with pytest.raises(ArtifactFormatError, match="not found"):
        Artifact.load(tmp_path / "missing.AI")

    garbage = tmp_path / "garbage.AI"
    garbage.write_text("#!/bin/bash\necho hi\n")
    with pytest.raises(ArtifactFormatError):
        Artifact.load(garbage)
