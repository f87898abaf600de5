import re
from typing import Iterable, List

from loguru import logger

from pipeline.models import RawCandidate
from pipeline.state import DiscoveryState

def _normalize(value: str) -> str:
    return re.sub(r"\s+", " ", (value or "").strip().lower())

def identity_key(candidate: RawCandidate) -> str:
    """Email when known, otherwise normalized name + company."""
    if candidate.email:
        return candidate.email.strip().lower()
    return f"{_normalize(candidate.name)}|{_normalize(candidate.company)}"

def dedupe_candidates(candidates: Iterable[RawCandidate]) -> List[RawCandidate]:
    """
    Keep the first candidate seen for each identity key and drop the rest.

    Stable and single-pass. No fields are merged from later duplicates, so the
    order of sources decides which one wins.
    """
    seen = set()
    unique = []
    for candidate in candidates:
        key = identity_key(candidate)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique

def dedupe(state: DiscoveryState) -> DiscoveryState:
    """Fold the concatenated candidate list into identity-unique candidates."""
    candidates = state.get("candidates", [])
    unique = dedupe_candidates(candidates)

    state["unique"] = unique
    state.setdefault("stats", {})["candidates_unique"] = len(unique)

    logger.info(f"Dedupe completed: {len(candidates)} -> {len(unique)} candidates")
    return state
