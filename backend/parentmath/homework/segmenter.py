"""
Problem detection for recognised worksheet text.

A photo of a worksheet usually holds several problems. The recognised text is
split into candidate problems so the parent can pick the one to analyze:

  1. A numbered line (1. / 1) / (1) / 1a. / Problem 1:) starts a new problem.
  2. A blank line ends the current problem, if it already holds some text and
     more text follows.
  3. Anything else continues the current problem.

If the split looks wrong (empty, tiny fragments, too many pieces) the whole
text is used as a single problem instead.
"""

import re
from dataclasses import dataclass

from parentmath.results import Fallback, Ok

MIN_PROBLEM_CHARS = 3
MAX_PROBLEMS = 20
BLANK_SPLIT_MIN_CHARS = 5
FALLBACK_LABEL = "Detected Text"

NUMBER_PATTERNS = [
    re.compile(r"^\s*([0-9]+)\.\s+(.+)$"),             # 1. text
    re.compile(r"^\s*([0-9]+)\)\s+(.+)$"),             # 1) text
    re.compile(r"^\s*\(([0-9]+)\)\s+(.+)$"),           # (1) text
    re.compile(r"^\s*([0-9]+[a-z]?)\.\s+(.+)$"),       # 1a. text
    re.compile(r"^\s*Problem\s+([0-9]+):?\s+(.+)$", re.IGNORECASE),
]


@dataclass(frozen=True)
class ProblemRecord:
    id: str
    text: str
    label: str


def _record(n: int, text: str, label: str | None = None) -> ProblemRecord:
    return ProblemRecord(id=f"problem-{n}", text=text, label=label or f"Problem {n}")


def _match_numbered(line: str) -> str | None:
    for pattern in NUMBER_PATTERNS:
        m = pattern.match(line)
        if m:
            return m.group(2)
    return None


def segment(raw_text: str) -> list[ProblemRecord]:
    """Split recognised text into problems, in document order."""
    if not raw_text or not raw_text.strip():
        return []

    lines = [line.rstrip("\r") for line in raw_text.split("\n")]
    problems: list[ProblemRecord] = []
    current: list[str] = []

    def flush():
        text = "\n".join(current).strip()
        if text:
            problems.append(_record(len(problems) + 1, text))
        current.clear()

    for i, line in enumerate(lines):
        rest = _match_numbered(line)
        if rest is not None:
            if current:
                flush()
            current.append(rest)
        elif not line.strip():
            if not current:
                continue
            has_more = any(later.strip() for later in lines[i + 1:])
            if has_more and len("\n".join(current).strip()) > BLANK_SPLIT_MIN_CHARS:
                flush()
        else:
            current.append(line)

    if current:
        flush()

    if not problems:
        return [_record(1, raw_text.strip())]
    return problems


def validate(problems: list[ProblemRecord]) -> bool:
    """Reject empty, over-fragmented or over-split detections."""
    if not problems:
        return False
    if len(problems) > MAX_PROBLEMS:
        return False
    return all(len(p.text.strip()) >= MIN_PROBLEM_CHARS for p in problems)


def detect_problems(raw_text: str):
    """Segment and validate. Returns Ok(problems) or Fallback(problems, reason)."""
    problems = segment(raw_text)
    if validate(problems):
        return Ok(problems)

    whole = (raw_text or "").strip()
    if not whole:
        return Fallback([], reason="no_text")
    return Fallback([_record(1, whole, FALLBACK_LABEL)], reason="invalid_segmentation")
