from datetime import datetime, timezone
from typing import List

from loguru import logger

from pipeline.models import (
    Annotation,
    CompanySize,
    EnrichedLead,
    Level,
    RawCandidate,
    ScoreFactor,
    Timeline,
)
from pipeline.state import DiscoveryState

INTENT_POINTS = {Level.HIGH: 30, Level.MEDIUM: 20, Level.LOW: 10}
BUDGET_POINTS = {Level.HIGH: 25, Level.MEDIUM: 15, Level.LOW: 5}
TIMELINE_POINTS = {
    Timeline.IMMEDIATE: 20,
    Timeline.ONE_TO_THREE_MONTHS: 15,
    Timeline.THREE_TO_SIX_MONTHS: 10,
}
DECISION_MAKER_POINTS = 15
COMPANY_SIZE_POINTS = {
    CompanySize.ENTERPRISE: 10,
    CompanySize.LARGE: 8,
    CompanySize.MID_MARKET: 6,
}
EMAIL_AND_PHONE_POINTS = 5
EMAIL_ONLY_POINTS = 3

def score_lead(candidate: RawCandidate, annotation: Annotation) -> int:
    """
    Fixed-weight lead score in [0, 100].

    Pure: identical inputs always give the identical score. Advisory
    ScoreFactors play no part in it.
    """
    score = 0
    score += INTENT_POINTS.get(annotation.intent, 0)
    score += BUDGET_POINTS.get(annotation.budget, 0)
    score += TIMELINE_POINTS.get(annotation.timeline, 0)
    if annotation.decision_maker:
        score += DECISION_MAKER_POINTS

    score += COMPANY_SIZE_POINTS.get(candidate.company_size, 0)

    # Contact completeness
    if candidate.email and candidate.phone:
        score += EMAIL_AND_PHONE_POINTS
    elif candidate.email:
        score += EMAIL_ONLY_POINTS

    return max(0, min(100, score))

def build_lead(candidate: RawCandidate, annotation: Annotation, factors: List[ScoreFactor], discovered_at: datetime = None) -> EnrichedLead:
    return EnrichedLead(
        **candidate.model_dump(include=set(RawCandidate.model_fields)),
        annotation=annotation,
        score_factors=factors,
        score=score_lead(candidate, annotation),
        discovered_at=discovered_at or datetime.now(timezone.utc),
    )

def score(state: DiscoveryState) -> DiscoveryState:
    """Score every annotated candidate, keeping source-concatenation order."""
    unique = state.get("unique", [])
    annotations = state.get("annotations", [])
    factors = state.get("score_factors", [])
    logger.info(f"Starting scoring for {len(unique)} candidates")

    discovered_at = datetime.now(timezone.utc)
    leads = []
    for i, candidate in enumerate(unique):
        annotation = annotations[i] if i < len(annotations) else Annotation.default()
        lead_factors = factors[i] if i < len(factors) else []
        leads.append(build_lead(candidate, annotation, lead_factors, discovered_at))

    state["leads"] = leads
    state.setdefault("stats", {})["leads"] = len(leads)

    if leads:
        top = max(lead.score for lead in leads)
        logger.info(f"Scoring completed: {len(leads)} leads, top score {top}")
    return state
