"""
Task Triage

Two ways to decide how much reasoning a request needs:
- ``classify_effort`` interprets the one-word answer of the triage model call.
- ``estimate_reasoning_effort`` is a model-free heuristic over the raw text.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from codeagent.core.domain.todo import ReasoningEffort


def classify_effort(answer: str) -> ReasoningEffort:
    """
    Map the triage model's answer to an effort level.

    Only an unambiguous answer is trusted: "low" without "high" is low,
    "high" without "low" is high. Anything else is medium.
    """
    lower = (answer or "").lower()
    has_low = "low" in lower
    has_high = "high" in lower
    if has_low and not has_high:
        return ReasoningEffort.LOW
    if has_high and not has_low:
        return ReasoningEffort.HIGH
    return ReasoningEffort.MEDIUM


@dataclass(frozen=True)
class EffortEstimate:
    """Result of the heuristic estimator."""

    level: ReasoningEffort
    score: float
    max_output_tokens: int
    temperature: float
    features: dict[str, int] = field(default_factory=dict)


_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")
_BULLET = re.compile(r"^\s*([-*•]|\d+\.)\s+", re.MULTILINE)
_BLOCK_BREAK = re.compile(r"\n{2,}")
_FENCED = re.compile(r"```[\s\S]*?```")
_INLINE_TICK = re.compile(r"`[^`]+`")
_NUMERAL = re.compile(r"\b\d+(?:\.\d+)?\b")
_CONNECTOR = re.compile(
    r"\b(first|second|third|next|then|after|before|finally|therefore|thus|however|while|if|else|when)\b"
)
_CONSTRAINT = re.compile(r"\b(must|should|required|exact(?:ly)?|at least|at most|only|without|need to)\b")
_AMBIGUITY = re.compile(r"\b(maybe|perhaps|might|could|possibly|optionally|or)\b")
_URL = re.compile(r"\bhttps?://\S+")
_REF = re.compile(r"[@#][\w/-]+")
_BRACKET = re.compile(r"[(){}\[\]]")

_WEIGHTS = {
    "bullet_lines": 0.7,
    "newline_blocks": 0.4,
    "fenced_blocks": 1.1,
    "inline_ticks": 0.5,
    "numerals": 0.3,
    "connectors": 0.7,
    "constraints": 0.6,
    "ambiguity": 0.6,
    "urls": 0.6,
    "refs": 0.4,
    "parens": 0.2,
}


def _logish(n: int) -> float:
    return math.log2(1 + n)


def estimate_reasoning_effort(text: str) -> EffortEstimate:
    """
    Score a request by its structure and wording.

    Thresholds: below 6 is low, below 10 is medium, otherwise high. A single
    sentence is never high (and drops to low unless it was high), more than
    six sentences are never low.
    """
    text = text or ""
    lower = text.lower()

    features = {
        "sentence_count": len(_SENTENCE_END.findall(text)) or 1,
        "approx_tokens": math.ceil(len(text.split()) * 1.2),
        "bullet_lines": len(_BULLET.findall(text)),
        "newline_blocks": len(_BLOCK_BREAK.split(text)) - 1,
        "fenced_blocks": len(_FENCED.findall(text)),
        "inline_ticks": len(_INLINE_TICK.findall(text)),
        "numerals": len(_NUMERAL.findall(text)),
        "connectors": len(_CONNECTOR.findall(lower)),
        "constraints": len(_CONSTRAINT.findall(lower)),
        "ambiguity": len(_AMBIGUITY.findall(lower)) + text.count("?"),
        "urls": len(_URL.findall(text)),
        "refs": len(_REF.findall(text)),
        "parens": len(_BRACKET.findall(text)),
    }

    score = _logish(features["sentence_count"]) * 0.9 + _logish(features["approx_tokens"]) * 0.9
    for name, weight in _WEIGHTS.items():
        score += features[name] * weight

    if score < 6:
        level = ReasoningEffort.LOW
    elif score < 10:
        level = ReasoningEffort.MEDIUM
    else:
        level = ReasoningEffort.HIGH

    if features["sentence_count"] <= 1:
        level = ReasoningEffort.MEDIUM if level is ReasoningEffort.HIGH else ReasoningEffort.LOW
    if features["sentence_count"] > 6 and level is ReasoningEffort.LOW:
        level = ReasoningEffort.MEDIUM

    return EffortEstimate(
        level=level,
        score=round(score, 2),
        max_output_tokens={ReasoningEffort.HIGH: 2000, ReasoningEffort.MEDIUM: 1000}.get(level, 500),
        temperature={ReasoningEffort.LOW: 0.2, ReasoningEffort.MEDIUM: 0.3}.get(level, 0.4),
        features=features,
    )
