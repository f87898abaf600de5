import asyncio
from typing import List, Tuple

from loguru import logger

from pipeline import config
from pipeline.errors import SourceUnavailable
from pipeline.models import RawCandidate, SearchRequest, SourceKind
from pipeline.state import DiscoveryState
from sources.base import SourceResult
from sources.catalog import resolve_adapter

async def run_source(kind: SourceKind, request: SearchRequest, timeout: float) -> SourceResult:
    """
    Run one adapter under its own timeout.

    Errors of any kind are turned into an empty SourceResult so a bad source
    never takes its siblings down with it.
    """
    adapter = resolve_adapter(kind)
    try:
        result = await asyncio.wait_for(adapter.discover(request), timeout=timeout)
        if result.error:
            raise SourceUnavailable(kind.value, result.error)
        return result

    except asyncio.TimeoutError:
        error = SourceUnavailable(kind.value, f"timed out after {timeout:g}s")
    except SourceUnavailable as e:
        error = e
    except Exception as e:
        error = SourceUnavailable(kind.value, f"unexpected error: {e}")

    logger.error(f"Source unavailable: {error}")
    return SourceResult.failed(error.reason)

async def collect(state: DiscoveryState) -> DiscoveryState:
    """Query every requested source concurrently and concatenate their candidates in source order."""
    request = state["request"]
    logger.info(f"Starting collection from {len(request.sources)} sources for {state.get('account_id')}")

    results: List[SourceResult] = await asyncio.gather(
        *(run_source(kind, request, config.SOURCE_TIMEOUT_S) for kind in request.sources)
    )

    candidates: List[RawCandidate] = []
    per_source: List[Tuple[str, int]] = []
    for kind, result in zip(request.sources, results):
        if result.error:
            state.setdefault("source_errors", {})[kind.value] = result.error
            state.setdefault("errors", []).append(f"source {kind.value} unavailable: {result.error}")
        candidates.extend(result.candidates)
        per_source.append((kind.value, len(result.candidates)))

    state["candidates"] = candidates
    stats = state.setdefault("stats", {})
    stats["candidates_raw"] = len(candidates)
    stats["sources_failed"] = len(state.get("source_errors", {}))

    logger.info(f"Collection completed: {len(candidates)} candidates {per_source}")
    return state
