"""
Lead-array detection for tool output.

Providers wrap their results inconsistently, so detection is an ordered list
of (name, extractor) strategies. Each extractor returns the candidate list or
None; the first candidate that looks like contact records wins. Supporting a
new envelope means appending a strategy.
"""

from collections.abc import Callable, Mapping
from typing import Any

from aihub.features.contacts.domain.models import LeadArrayMatch, OutputShape
from aihub.features.contacts.services.normalization import ENVELOPE_KEYS, fold_key

RECOGNIZED_FIELDS = frozenset(
    fold_key(name)
    for name in ("name", "full_name", "email", "phone", "contact", "profile_url", "headline", "location")
)

Extractor = Callable[[Any], Any]


def _top_level(payload: Any) -> Any:
    return payload


def _under(key: str) -> Extractor:
    def extract(payload: Any) -> Any:
        return payload.get(key) if isinstance(payload, Mapping) else None

    return extract


LEAD_ARRAY_STRATEGIES: list[tuple[str, Extractor]] = [
    ("top_level", _top_level),
    *((key, _under(key)) for key in ENVELOPE_KEYS),
]


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return bool(value)
    return True


def _looks_like_leads(candidate: Any) -> bool:
    """Non-empty list whose first element is a mapping with a recognized, filled-in field."""
    if not isinstance(candidate, list) or not candidate:
        return False
    first = candidate[0]
    if not isinstance(first, Mapping):
        return False
    return any(
        isinstance(key, str) and fold_key(key) in RECOGNIZED_FIELDS and _has_value(value)
        for key, value in first.items()
    )


def detect_lead_array(payload: Any) -> LeadArrayMatch:
    for name, extract in LEAD_ARRAY_STRATEGIES:
        candidate = extract(payload)
        if _looks_like_leads(candidate):
            leads = [item if isinstance(item, Mapping) else {} for item in candidate]
            return LeadArrayMatch(found=True, leads=leads, source=name)
    return LeadArrayMatch(found=False)


def classify_output(payload: Any) -> OutputShape:
    """Resolve how an execution's output_data should be rendered."""
    if payload is None:
        return OutputShape.EMPTY
    if isinstance(payload, str):
        return OutputShape.TEXT if payload.strip() else OutputShape.EMPTY
    if detect_lead_array(payload).found:
        return OutputShape.LEAD_ARRAY
    return OutputShape.OBJECT
