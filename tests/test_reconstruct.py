"""Tests for writing artifacts back to disk."""

import pytest

from agentpack.archive import Artifact, ArtifactEntry, ArtifactMetadata, ArchiveBuilder
from agentpack.mapping import MappingSpec
from agentpack.prompts import ConsolePrompter, OverwriteAll
from agentpack.reconstruct import ArchiveReconstructor, Outcome
from agentpack.rules import MappingResolver
from agentpack.utils import encode_payload, stable_hash


def _artifact(root, paths, resolver=None):
    metadata = ArtifactMetadata(project_name="project", artifact_name="Agent.AI")
    return ArchiveBuilder(root, resolver).build(paths, metadata).artifact


def _entry(path, data):
    return ArtifactEntry(path=path, payload=encode_payload(data), sha256=stable_hash(data))


# ── Writing ──────────────────────────────────────────────────────────

def test_reconstruct_restores_mapped_content(project, mapping_file, tmp_path):
    resolver = MappingResolver(MappingSpec.load(mapping_file))
    paths = ["README.md", "src/main.py", "src/pkg/mod.py"]
    artifact = _artifact(project, paths, resolver)
    target = tmp_path / "restored"

    report = ArchiveReconstructor(target, resolver=resolver).reconstruct(artifact)

    assert report.ok
    assert [r.path for r in report.written] == paths
    for rel in paths:
        assert (target / rel).read_bytes() == (project / rel).read_bytes()


def test_reconstruct_without_mapping_keeps_placeholders(project, mapping_file, tmp_path):
    resolver = MappingResolver(MappingSpec.load(mapping_file))
    artifact = _artifact(project, ["docs/guide.md"], resolver)

    ArchiveReconstructor(tmp_path / "out").reconstruct(artifact)

    assert (tmp_path / "out/docs/guide.md").read_text() == "How to use the ANON tool\n"


def test_existing_file_is_skipped_by_default(tmp_path):
    (tmp_path / "a.txt").write_text("local edits")
    artifact = Artifact(entries=(_entry("a.txt", b"packed"),), metadata=ArtifactMetadata("p", "Agent.AI"))

    report = ArchiveReconstructor(tmp_path).reconstruct(artifact)

    assert report.ok
    assert [r.path for r in report.skipped] == ["a.txt"]
    assert (tmp_path / "a.txt").read_text() == "local edits"


def test_overwrite_all_replaces_existing_files(tmp_path):
    (tmp_path / "a.txt").write_text("local edits")
    artifact = Artifact(entries=(_entry("a.txt", b"packed"),), metadata=ArtifactMetadata("p", "Agent.AI"))

    report = ArchiveReconstructor(tmp_path, overwrite=OverwriteAll()).reconstruct(artifact)

    assert [r.path for r in report.written] == ["a.txt"]
    assert (tmp_path / "a.txt").read_text() == "packed"


def test_per_file_overwrite_question(tmp_path):
    (tmp_path / "a.txt").write_text("old a")
    (tmp_path / "b.txt").write_text("old b")
    answers = iter(["y", "n"])
    prompter = ConsolePrompter("Agent.AI", input_fn=lambda prompt: next(answers))
    artifact = Artifact(
        entries=(_entry("a.txt", b"new a"), _entry("b.txt", b"new b")),
        metadata=ArtifactMetadata("p", "Agent.AI"),
    )

    report = ArchiveReconstructor(tmp_path, overwrite=prompter).reconstruct(artifact)

    assert [r.outcome for r in report.results] == [Outcome.WRITTEN, Outcome.SKIPPED]
    assert (tmp_path / "a.txt").read_text() == "new a"
    assert (tmp_path / "b.txt").read_text() == "old b"


# ── Failures ─────────────────────────────────────────────────────────

@pytest.mark.parametrize("path", ["../escape.txt", "/etc/passwd", "a/../../b.txt"])
def test_unsafe_paths_fail(tmp_path, path):
    target = tmp_path / "target"
    artifact = Artifact(entries=(_entry(path, b"x"),), metadata=ArtifactMetadata("p", "Agent.AI"))

    report = ArchiveReconstructor(target).reconstruct(artifact)

    assert not report.ok
    assert report.failed[0].path == path
    assert not (tmp_path / "escape.txt").exists()


def test_corrupt_payload_fails_only_that_file(tmp_path):
    good = _entry("good.txt", b"fine")
    tampered = ArtifactEntry(path="bad.txt", payload=encode_payload(b"changed"), sha256=stable_hash(b"orig"))
    garbage = ArtifactEntry(path="worse.txt", payload="not base64!!", sha256="")
    artifact = Artifact(entries=(tampered, garbage, good), metadata=ArtifactMetadata("p", "Agent.AI"))

    report = ArchiveReconstructor(tmp_path).reconstruct(artifact)

    assert [r.path for r in report.failed] == ["bad.txt", "worse.txt"]
    assert [r.path for r in report.written] == ["good.txt"]
    assert not (tmp_path / "bad.txt").exists()


def test_directory_in_the_way_fails(tmp_path):
    (tmp_path / "a.txt").mkdir()
    artifact = Artifact(entries=(_entry("a.txt", b"x"),), metadata=ArtifactMetadata("p", "Agent.AI"))

    report = ArchiveReconstructor(tmp_path, overwrite=OverwriteAll()).reconstruct(artifact)

    assert [r.outcome for r in report.results] == [Outcome.FAILED]
