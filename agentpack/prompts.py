"""
Operator decisions.

The selector and the reconstructor never talk to a terminal directly.
They ask a DecisionSource which directories and files to include, and an
OverwritePolicy whether an existing file may be replaced. This module
provides the console implementation plus non-interactive ones for
scripted runs and tests.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from .errors import AgentPackError
from .utils import normalize_rel_path


class Decision(str, Enum):
    SKIP = "skip"
    INCLUDE = "include"
    INCLUDE_ALL = "include-all"

    @classmethod
    def parse(cls, value: str) -> "Decision":
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(d.value for d in cls)
            raise ValueError(f"unknown decision {value!r} (expected one of: {choices})") from None


@runtime_checkable
class DecisionSource(Protocol):
    def ask_directory(self, path: str) -> Decision: ...

    def ask_file(self, path: str) -> Decision: ...


@runtime_checkable
class OverwritePolicy(Protocol):
    def should_overwrite(self, path: Path) -> bool: ...


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


def ask_yes_no(
    prompt: str,
    default: bool = False,
    input_fn: Callable[[str], str] = input,
) -> bool:
    """
    Minimal y/N prompt. Any answer other than y/yes counts as "no";
    an empty answer or end of input gives `default`.
    """

    try:
        answer = input_fn(f"{prompt} ")
    except EOFError:
        return default

    answer = answer.strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


class ConsolePrompter:
    """Asks the operator on stdin, one question per directory or file."""

    def __init__(self, label: str, input_fn: Callable[[str], str] = input):
        self.label = label
        self.input_fn = input_fn

    def _ask(self, prompt: str, default: bool = False) -> bool:
        return ask_yes_no(prompt, default=default, input_fn=self.input_fn)

    def ask_directory(self, path: str) -> Decision:
        if not self._ask(f"Add folder {path} to {self.label}? [y/N]"):
            return Decision.SKIP
        if self._ask(f"Add all files in {path} to {self.label}? [y/N]"):
            return Decision.INCLUDE_ALL
        return Decision.INCLUDE

    def ask_file(self, path: str) -> Decision:
        if self._ask(f"Add file {path} to {self.label}? [y/N]"):
            return Decision.INCLUDE
        return Decision.SKIP

    def should_overwrite(self, path: Path) -> bool:
        return self._ask(f"File {path} already exists. Overwrite? [y/N]")


# ---------------------------------------------------------------------------
# Non-interactive
# ---------------------------------------------------------------------------


class AcceptAllDecisions:
    """Include every eligible file without asking."""

    def ask_directory(self, path: str) -> Decision:
        return Decision.INCLUDE_ALL

    def ask_file(self, path: str) -> Decision:
        return Decision.INCLUDE


class ScriptedDecisions:
    """
    Answer from a fixed table of path -> decision.

    Paths missing from the table get `default`. Every question asked is
    kept in `asked`, in order.
    """

    DEFAULT_KEY = "*"

    def __init__(self, answers: Mapping[str, Decision], default: Decision = Decision.SKIP):
        self.answers: Dict[str, Decision] = {
            normalize_rel_path(path): decision for path, decision in answers.items()
        }
        self.default = default
        self.asked: List[str] = []

    @classmethod
    def from_file(cls, path: Path) -> "ScriptedDecisions":
        """
        Load answers from a JSON object such as
        {"src": "include-all", "README.md": "include", "*": "skip"}.
        """

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise AgentPackError(f"Cannot read answers file {path}: {e}") from e
        if not isinstance(data, dict):
            raise AgentPackError(f"Answers file {path} must contain a JSON object")

        try:
            answers = {key: Decision.parse(str(value)) for key, value in data.items()}
        except ValueError as e:
            raise AgentPackError(f"Answers file {path}: {e}") from e

        default = answers.pop(cls.DEFAULT_KEY, Decision.SKIP)
        return cls(answers, default=default)

    def _lookup(self, path: str) -> Decision:
        path = normalize_rel_path(path)
        self.asked.append(path)
        return self.answers.get(path, self.default)

    def ask_directory(self, path: str) -> Decision:
        return self._lookup(path)

    def ask_file(self, path: str) -> Decision:
        decision = self._lookup(path)
        return Decision.INCLUDE if decision is Decision.INCLUDE_ALL else decision


class OverwriteAll:
    def should_overwrite(self, path: Path) -> bool:
        return True


class NeverOverwrite:
    def should_overwrite(self, path: Path) -> bool:
        return False


def overwrite_policy(overwrite_all: bool, prompter: Optional[ConsolePrompter]) -> OverwritePolicy:
    """Pick the policy for a reconstruct run."""
    if overwrite_all:
        return OverwriteAll()
    if prompter is not None:
        return prompter
    return NeverOverwrite()
