"""Grounding guardrails for answers built on retrieved guide chunks.

An answer generated from retrieval must (a) use only the retrieved chunks,
(b) cite them, and (c) say plainly when nothing was retrieved.  These
helpers check a :class:`~src.models.rag.RetrievalBundle` and a candidate
answer against those rules, patch an answer that breaks them, and build
the instruction block handed to the language model.

The factual-claim check is a heuristic: numbers with units, four-digit
years and prices found in the answer but absent from every chunk are
reported as warnings, never as violations.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

import structlog

from src.models.rag import GuardrailCheck, RetrievalBundle, RetrievalResult

logger = structlog.get_logger(logger_name=__name__)

# Chunks below this similarity are flagged as weak support.
LOW_SIMILARITY = 0.5

DATA_NOT_AVAILABLE_RESPONSE = (
    "I don't have specific information about that. "
    "The data may not be available in my knowledge base."
)

_DATA_NOT_AVAILABLE_PATTERNS = (
    re.compile(r"don'?t have", re.IGNORECASE),
    re.compile(r"no data", re.IGNORECASE),
    re.compile(r"not available", re.IGNORECASE),
    re.compile(r"unable to find", re.IGNORECASE),
    re.compile(r"cannot provide", re.IGNORECASE),
)

_FACTUAL_PATTERNS = (
    re.compile(r"\d+\s*(?:km|miles|hours|days|years)", re.IGNORECASE),
    re.compile(r"\d{4}"),
    re.compile(r"(?:cost|price|fee)\s+(?:is|are|of)\s+\$?\d+", re.IGNORECASE),
)


def check_guardrails(bundle: RetrievalBundle) -> GuardrailCheck:
    """Check that a retrieval bundle can support a cited answer.

    An empty bundle only warns (the answer must then say data is not
    available).  Chunks without citations, or citations missing a source
    or URL, are violations.
    """
    violations: list[str] = []
    warnings: list[str] = []

    if not bundle.has_data:
        warnings.append("No chunks retrieved - response must state data not available")
    elif not bundle.citations:
        violations.append("Data retrieved but no citations provided")

    for index, citation in enumerate(bundle.citations, start=1):
        if not citation.source:
            violations.append(f"Citation {index}: Missing source")
        if not citation.url:
            violations.append(f"Citation {index}: Missing URL")

    if bundle.has_data:
        weak = sum(1 for c in bundle.chunks if c.similarity < LOW_SIMILARITY)
        if weak:
            warnings.append(f"{weak} chunks have low similarity (< {LOW_SIMILARITY})")

    return GuardrailCheck(passed=not violations, violations=violations, warnings=warnings)


def validate_response_grounded(
    response: str,
    chunks: Sequence[RetrievalResult],
) -> GuardrailCheck:
    """Check that *response* stays within what *chunks* support."""
    violations: list[str] = []
    warnings: list[str] = []

    if not chunks:
        if not any(p.search(response) for p in _DATA_NOT_AVAILABLE_PATTERNS):
            violations.append("No data retrieved but response does not state data not available")
    else:
        corpus = " ".join(c.text.lower() for c in chunks)
        for pattern in _FACTUAL_PATTERNS:
            match = pattern.search(response)
            if match and match.group(0).lower() not in corpus:
                warnings.append(
                    f'Response contains fact "{match.group(0)}" that may not be in retrieved chunks'
                )

    check = GuardrailCheck(passed=not violations, violations=violations, warnings=warnings)
    if not check.passed:
        logger.warning("response_not_grounded", violations=violations)
    return check


def enforce_guardrails(response: str, bundle: RetrievalBundle) -> str:
    """Return *response*, patched to satisfy the guardrails if needed.

    With no data, an answer that does not admit it is replaced by
    :data:`DATA_NOT_AVAILABLE_RESPONSE`.  With data, an answer that never
    mentions a source gets a ``(Source: ...)`` line appended.
    """
    lower = response.lower()

    if not bundle.has_data:
        if not any(marker in lower for marker in ("not available", "don't have", "unable to find")):
            return DATA_NOT_AVAILABLE_RESPONSE
        return response

    if bundle.citations:
        mentions_source = any(c.source.lower() in lower for c in bundle.citations if c.source)
        if not mentions_source and "[" not in response and "Source" not in response:
            names = " and ".join(c.source for c in bundle.citations)
            return f"{response}\n\n(Source: {names})"

    return response


def create_guardrail_prompt(chunks: Sequence[RetrievalResult]) -> str:
    """Build the grounding instructions given to the language model."""
    if not chunks:
        return (
            "IMPORTANT: You do not have any data about this topic.\n"
            "You MUST respond by saying that you don't have this information available.\n"
            "Do NOT make up or guess any information."
        )

    numbered = "\n\n".join(f"[Chunk {i}]\n{c.text}" for i, c in enumerate(chunks, start=1))
    return (
        "IMPORTANT RULES:\n"
        "1. You may ONLY use information from the provided chunks below.\n"
        "2. Do NOT make up, guess, or hallucinate any facts.\n"
        "3. If the chunks don't contain the answer, say \"I don't have specific "
        'information about that."\n'
        "4. You MUST cite your sources when providing information.\n"
        "5. Every factual claim must be supported by the chunks.\n"
        "\n"
        f"Provided chunks:\n{numbered}\n"
        "\n"
        "Remember: Only use information from the chunks above. No hallucinations allowed."
    )


def data_not_available_response() -> str:
    """Return the canonical "no data" answer."""
    return DATA_NOT_AVAILABLE_RESPONSE
