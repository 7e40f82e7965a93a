"""Read-only retrieval over the travel-guide index.

QueryEngine   -- filtered nearest-neighbour queries (raw vectors in, results out)
Retriever     -- question in, thresholded chunks + citations out
guardrails    -- grounding checks for answers built on retrieved chunks
"""

from src.services.retrieval.guardrails import (
    check_guardrails,
    create_guardrail_prompt,
    data_not_available_response,
    enforce_guardrails,
    validate_response_grounded,
)
from src.services.retrieval.query_engine import QueryEngine, coerce_filters
from src.services.retrieval.retriever import Retriever

__all__ = [
    "QueryEngine",
    "Retriever",
    "check_guardrails",
    "coerce_filters",
    "create_guardrail_prompt",
    "data_not_available_response",
    "enforce_guardrails",
    "validate_response_grounded",
]
