import asyncio
from dataclasses import dataclass, field
from typing import List

from loguru import logger

from integrations import llm
from pipeline import config
from pipeline.errors import AnalysisDegraded
from pipeline.models import Annotation, RawCandidate, ScoreFactor
from pipeline.state import DiscoveryState

@dataclass
class Enrichment:
    annotation: Annotation = field(default_factory=Annotation.default)
    factors: List[ScoreFactor] = field(default_factory=list)
    annotation_degraded: bool = False
    factors_degraded: bool = False

async def annotate(candidate: RawCandidate) -> Enrichment:
    """Analysis plus advisory score factors for one candidate. Never raises for upstream failures."""
    result = Enrichment()

    try:
        result.annotation = await llm.analyze_lead(candidate, strict=True)
    except AnalysisDegraded:
        result.annotation_degraded = True

    try:
        result.factors = await llm.suggest_score_factors(candidate, strict=True)
    except AnalysisDegraded:
        result.factors_degraded = True

    return result

async def enrich(state: DiscoveryState) -> DiscoveryState:
    """Annotate each unique candidate, one at a time, pausing between calls for the upstream rate limit."""
    unique = state.get("unique", [])
    logger.info(f"Starting enrichment for {len(unique)} candidates")

    annotations: List[Annotation] = []
    score_factors: List[List[ScoreFactor]] = []
    degraded = 0
    factors_degraded = 0

    for i, candidate in enumerate(unique):
        if i:
            await asyncio.sleep(config.ANALYSIS_DELAY_S)

        try:
            result = await annotate(candidate)
        except Exception as e:
            error_msg = f"Enrichment failed for {candidate.name}: {str(e)}"
            logger.error(error_msg)
            state.setdefault("errors", []).append(error_msg)
            result = Enrichment(annotation_degraded=True, factors_degraded=True)

        degraded += result.annotation_degraded
        factors_degraded += result.factors_degraded
        annotations.append(result.annotation)
        score_factors.append(result.factors)

    state["annotations"] = annotations
    state["score_factors"] = score_factors
    stats = state.setdefault("stats", {})
    stats["analysis_degraded"] = degraded
    stats["score_factors_degraded"] = factors_degraded
    if degraded:
        state.setdefault("errors", []).append(f"analysis degraded for {degraded} of {len(unique)} candidates")
    if factors_degraded:
        state.setdefault("errors", []).append(f"score factors unavailable for {factors_degraded} of {len(unique)} candidates")

    logger.info(
        f"Enrichment completed for {len(unique)} candidates "
        f"({degraded} with default annotation, {factors_degraded} without score factors)"
    )
    return state
