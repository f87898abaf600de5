import asyncio

from loguru import logger

from integrations import quota, slack
from pipeline.state import DiscoveryState

async def record(state: DiscoveryState) -> DiscoveryState:
    """Charge one discovery unit and announce the run. Neither step can fail the run."""
    account_id = state.get("account_id")
    leads = state.get("leads", [])

    if not leads:
        logger.info(f"No leads for {account_id}, nothing to record")
        return state

    try:
        used = await asyncio.to_thread(quota.record_usage, account_id, "discovery")
        logger.info(f"Recorded discovery usage for {account_id}: {used} this month")
    except Exception as e:
        error_msg = f"Usage recording failed: {str(e)}"
        logger.error(error_msg)
        state.setdefault("errors", []).append(error_msg)

    # The result is only logged
    try:
        await asyncio.to_thread(slack.send_discovery_notification, account_id, leads)
    except Exception as e:
        logger.error(f"Slack notification failed: {e}")

    return state
