"""
Quick Thoughts Backend: Response Parser / Validator
=====================================================

What:  Turns the AI service's free-text reply into a validated
       TranscriptionResult.
How:   Strip fenced-code wrappers → json.loads → per-candidate validation →
       truncation → degraded-mode fallback.
Who:   Called by TranscriptionService right after the Gemini call.

The reply is untrusted input. Nothing about its shape, field presence or
field types is assumed; every rule below runs on every reply.

Candidate policy (applied in order):
    1. Trim text; discard candidates whose text is empty or not a string
    2. Trim label; non-string becomes "" (the client substitutes "Memo N");
       cut to MAX_LABEL_LENGTH so it always fits a memo title
    3. Trim folder; anything not in the constraint set becomes the fallback
    4. Keep only the first MAX_THOUGHTS_PER_CLIP valid candidates

Degraded mode:
    Zero valid thoughts but a non-empty transcription → one synthetic thought
    carrying the whole transcription, labelled "Voice Memo", in the fallback
    folder. A reply that cannot be parsed at all is treated as a plain
    transcription and goes through the same fallback.
"""

import json
import logging
import re
from typing import Any, List, Tuple

from quickthoughts.domain import (
    MAX_LABEL_LENGTH,
    MAX_THOUGHTS_PER_CLIP,
    ClassificationConstraint,
    Thought,
    TranscriptionResult,
)
from quickthoughts.exceptions import MalformedResponseError

logger = logging.getLogger(__name__)

SYNTHETIC_LABEL = "Voice Memo"

# ```json ... ``` anywhere in the text (prose before/after is tolerated)
_FENCED_BLOCK = re.compile(r"```[ \t]*[A-Za-z0-9_-]*[ \t]*\r?\n?(.*?)```", re.DOTALL)


def strip_code_fences(raw: str) -> str:
    """
    Remove fenced-code markers around the payload.

    Handles a complete fenced block (with or without a language tag), and a
    reply that opens a fence but never closes it.
    """
    text = (raw or "").strip()
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    if text.startswith("```"):
        # Unterminated fence: drop the opening line
        first_newline = text.find("\n")
        text = text[first_newline + 1:] if first_newline != -1 else text[3:]
        return text.strip()
    return text


def parse_model_response(raw: str) -> Tuple[str, List[Any]]:
    """
    Parse the reply into (transcription, raw thought candidates).

    Raises:
        MalformedResponseError: stripped text is not a JSON object.
    """
    payload_text = strip_code_fences(raw)
    try:
        payload = json.loads(payload_text)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedResponseError(
            message="AI response is not valid JSON",
            raw_preview=payload_text,
            context={"error": str(e)},
        )

    if not isinstance(payload, dict):
        raise MalformedResponseError(
            message="AI response is not a JSON object",
            raw_preview=payload_text,
            context={"type": type(payload).__name__},
        )

    transcription = payload.get("transcription")
    if not isinstance(transcription, str):
        transcription = ""

    thoughts = payload.get("thoughts")
    if isinstance(thoughts, list):
        return transcription, thoughts

    # Single-result shape from the first API revision: {transcription, label, category}
    if "thoughts" not in payload and ("label" in payload or "category" in payload):
        return transcription, [
            {
                "text": transcription,
                "label": payload.get("label"),
                "folder": payload.get("category"),
            }
        ]

    return transcription, []


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def validate_thoughts(
    candidates: List[Any],
    constraint: ClassificationConstraint,
    max_thoughts: int = MAX_THOUGHTS_PER_CLIP,
) -> List[Thought]:
    """Apply the candidate policy and return at most `max_thoughts` thoughts in model order."""
    thoughts: List[Thought] = []
    for index, candidate in enumerate(candidates):
        if not isinstance(candidate, dict):
            logger.debug("Skipping thought candidate %d: not an object", index)
            continue

        text = _clean(candidate.get("text"))
        if not text:
            logger.debug("Skipping thought candidate %d: empty text", index)
            continue

        label = _clean(candidate.get("label"))
        if len(label) > MAX_LABEL_LENGTH:
            logger.debug("Thought candidate %d: label truncated from %d chars", index, len(label))
            label = label[:MAX_LABEL_LENGTH].rstrip()

        requested = _clean(candidate.get("folder"))
        folder = constraint.coerce(requested)
        if folder != requested:
            logger.debug(
                "Thought candidate %d: folder %r not allowed, using %r",
                index,
                requested,
                folder,
            )

        thoughts.append(Thought(text=text, label=label, folder=folder))

    if len(thoughts) > max_thoughts:
        logger.info("Model returned %d valid thoughts; keeping first %d", len(thoughts), max_thoughts)
        thoughts = thoughts[:max_thoughts]
    return thoughts


def classify_response(
    raw: str,
    constraint: ClassificationConstraint,
    max_thoughts: int = MAX_THOUGHTS_PER_CLIP,
) -> TranscriptionResult:
    """Full parse + validate + degrade pipeline. Never raises for bad model output."""
    degraded = False
    try:
        transcription, candidates = parse_model_response(raw)
    except MalformedResponseError as e:
        logger.warning("%s; treating reply as plain transcription (%s)", e.message, e.context)
        transcription, candidates = strip_code_fences(raw), []
        degraded = True

    transcription = transcription.strip()
    thoughts = validate_thoughts(candidates, constraint, max_thoughts=max_thoughts)

    if not thoughts and transcription:
        logger.info("No valid thoughts in AI reply; using whole transcription as one thought")
        thoughts = [
            Thought(text=transcription, label=SYNTHETIC_LABEL, folder=constraint.fallback)
        ]
        degraded = True

    return TranscriptionResult(
        transcription=transcription,
        thoughts=tuple(thoughts),
        degraded=degraded,
    )
