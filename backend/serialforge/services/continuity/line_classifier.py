"""Classify unit body lines into dialogue, monologue, action or narrative."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

_DIALOGUE_RE = re.compile(r'^>\s*"(?P<text>.+)"\s*$')
_MONOLOGUE_RE = re.compile(r"^>\s*\*'(?P<text>.+)'\*\s*$")
_ACTION_RE = re.compile(r"^>\s*\[(?P<text>.+)\]\s*$")


@dataclass(frozen=True)
class Dialogue:
    text: str


@dataclass(frozen=True)
class Monologue:
    text: str


@dataclass(frozen=True)
class Action:
    text: str


@dataclass(frozen=True)
class Narrative:
    text: str


Line = Union[Dialogue, Monologue, Action, Narrative]


def recognize_dialogue(line: str) -> Optional[Dialogue]:
    match = _DIALOGUE_RE.match(line.strip())
    return Dialogue(match.group("text").strip()) if match else None


def recognize_monologue(line: str) -> Optional[Monologue]:
    match = _MONOLOGUE_RE.match(line.strip())
    return Monologue(match.group("text").strip()) if match else None


def recognize_action(line: str) -> Optional[Action]:
    match = _ACTION_RE.match(line.strip())
    return Action(match.group("text").strip()) if match else None


# Monologue is tried before dialogue so `> *'...'*` never reads as speech.
_RECOGNIZERS = (recognize_monologue, recognize_dialogue, recognize_action)


def classify_line(line: str) -> Line:
    for recognize in _RECOGNIZERS:
        matched = recognize(line)
        if matched is not None:
            return matched
    return Narrative(line.strip())


def classify_body(body: str) -> List[Line]:
    """Classify every non-blank line of a unit body."""
    return [classify_line(line) for line in body.splitlines() if line.strip()]


def dialogue_lines(lines: Iterable[Line]) -> List[str]:
    return [line.text for line in lines if isinstance(line, Dialogue)]
