from loguru import logger

from integrations import quota
from pipeline.errors import InvalidRequest, QuotaExceeded
from pipeline.state import DiscoveryState
from sources.catalog import resolve_adapter

def gate(state: DiscoveryState) -> DiscoveryState:
    """Reject bad requests and exhausted accounts before any source is contacted."""
    account_id = (state.get("account_id") or "").strip()
    request = state.get("request")
    logger.info(f"Starting gate check for account: {account_id or 'unknown'}")

    if not account_id:
        raise InvalidRequest("account id is required")
    if request is None:
        raise InvalidRequest("search request is required")

    # Every requested kind must resolve before anything runs
    for kind in request.sources:
        resolve_adapter(kind)

    if not quota.can_discover(account_id):
        logger.warning(f"Discovery quota exhausted for account {account_id}")
        raise QuotaExceeded(account_id)

    state["account_id"] = account_id
    state.setdefault("errors", [])
    state.setdefault("source_errors", {})
    state.setdefault("stats", {})

    logger.info(f"Gate passed for {account_id}: sources={[k.value for k in request.sources]}")
    return state
