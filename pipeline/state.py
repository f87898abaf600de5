from typing import TypedDict, List, Dict, Any

from pipeline.models import SearchRequest, RawCandidate, Annotation, ScoreFactor, EnrichedLead

class DiscoveryState(TypedDict, total=False):
    """State shape for the lead discovery workflow."""
    account_id: str
    request: SearchRequest
    candidates: List[RawCandidate]         # concatenated across sources, source order
    unique: List[RawCandidate]             # after first-writer-wins dedupe
    annotations: List[Annotation]          # parallel to `unique`
    score_factors: List[List[ScoreFactor]] # parallel to `unique`, advisory only
    leads: List[EnrichedLead]
    source_errors: Dict[str, str]          # source kind -> error tag
    errors: List[str]
    stats: Dict[str, Any]
