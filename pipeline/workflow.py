import time
from typing import Any, Dict, List, Mapping, Union

from langgraph.graph import StateGraph, START, END
from loguru import logger
from pydantic import ValidationError

from pipeline.errors import InvalidRequest
from pipeline.models import EnrichedLead, RawCandidate, SearchRequest
from pipeline.nodes.collect import collect
from pipeline.nodes.dedupe import dedupe
from pipeline.nodes.enrich import annotate, enrich
from pipeline.nodes.gate import gate
from pipeline.nodes.record import record
from pipeline.nodes.score import build_lead, score
from pipeline.state import DiscoveryState

# Build the LangGraph workflow
def build_workflow():
    """Build the lead discovery workflow."""
    workflow = StateGraph(DiscoveryState)

    # Add nodes
    workflow.add_node("gate", gate)
    workflow.add_node("collect", collect)
    workflow.add_node("dedupe", dedupe)
    workflow.add_node("enrich", enrich)
    workflow.add_node("score", score)
    workflow.add_node("record", record)

    # Add edges
    workflow.add_edge(START, "gate")
    workflow.add_edge("gate", "collect")
    workflow.add_edge("collect", "dedupe")

    # Nothing found is a normal outcome, not an error
    def branch_decision(state: DiscoveryState) -> str:
        if state.get("unique"):
            return "enrich"
        logger.info("No candidates from any source, finishing with an empty result")
        return "finish"

    workflow.add_conditional_edges(
        "dedupe",
        branch_decision,
        {
            "enrich": "enrich",
            "finish": END
        }
    )

    workflow.add_edge("enrich", "score")
    workflow.add_edge("score", "record")
    workflow.add_edge("record", END)

    return workflow.compile()

app_graph = build_workflow()

async def run_discovery(request: Union[SearchRequest, Mapping[str, Any]], account_id: str) -> Dict[str, Any]:
    """
    Run the workflow and return its final state.

    Raises:
        InvalidRequest: malformed request, unknown source kind or missing account
        QuotaExceeded: account has no discovery allowance left this month
    """
    start_time = time.time()
    search = SearchRequest.parse(request)

    initial_state = {
        "account_id": account_id,
        "request": search,
        "errors": [],
        "source_errors": {},
        "stats": {}
    }

    result = await app_graph.ainvoke(initial_state)
    result.setdefault("leads", [])

    processing_time = time.time() - start_time
    logger.info(
        f"Discovery completed in {processing_time:.2f}s for {account_id}: "
        f"{len(result['leads'])} leads, stats={result.get('stats', {})}"
    )
    return result

async def discover_leads(request: Union[SearchRequest, Mapping[str, Any]], account_id: str) -> List[EnrichedLead]:
    """Discover, deduplicate, enrich and score leads for an account."""
    result = await run_discovery(request, account_id)
    return result["leads"]

async def rescore_lead(candidate: Union[RawCandidate, Mapping[str, Any]]) -> EnrichedLead:
    """Re-analyze and re-score a single lead. Does not consume discovery quota."""
    if not isinstance(candidate, RawCandidate):
        try:
            candidate = RawCandidate.model_validate(candidate)
        except ValidationError as e:
            raise InvalidRequest(f"Invalid lead: {e.error_count()} field error(s)") from e

    result = await annotate(candidate)
    lead = build_lead(candidate, result.annotation, result.factors)
    logger.info(f"Re-scored lead {candidate.name} ({candidate.company}): {lead.score}")
    return lead
