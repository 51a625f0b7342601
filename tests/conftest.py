"""Shared fixtures for the agentpack test-suite."""

import io
import json
import sys

import pytest


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    # Tests never ask git and never print ANSI codes.
    monkeypatch.setenv("AGENTPACK_NO_GIT", "1")
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("AGENTPACK_LOG_LEVEL", raising=False)
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))


@pytest.fixture
def project(tmp_path):
    """A small project tree with source, docs, build output and git metadata."""
    root = tmp_path / "project"
    files = {
        "README.md": "Acme project readme\n",
        "src/main.py": "CLIENT = 'AcmeAcme'\nHOST = 'acme.internal'\n",
        "src/util.py": "def helper():\n    return 'Acme'\n",
        "src/pkg/mod.py": "VALUE = 1\n",
        "docs/guide.md": "How to use the Acme tool\n",
        "build/out.bin": "binary-ish\n",
        "node_modules/lib/index.js": "module.exports = {}\n",
        ".git/config": "[core]\n",
        ".gitignore": "build/\n*.log\n",
    }
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def mapping_file(project):
    """A mapping file stored inside the project root."""
    path = project / "map.json"
    path.write_text(
        json.dumps(
            {
                "ignore-folders": ["node_modules"],
                "map": [
                    {"scope": ".", "list": [{"Acme": "ANON"}]},
                    {"scope": "src/main.py", "list": [{"acme.internal": "HOST_A"}]},
                ],
            }
        ),
        encoding="utf-8",
    )
    return path
