import os
import time
from typing import Any, Dict

from fastapi import FastAPI, Request, HTTPException, Header
from fastapi.responses import JSONResponse
from loguru import logger
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Import our modules
from integrations.quota import quota_gate
from pipeline.errors import InvalidRequest, QuotaExceeded
from pipeline.models import INDUSTRY_KEYWORDS, Industry
from pipeline.workflow import run_discovery, rescore_lead

# Configure logging
logger.add("logs/app.log", rotation="1 day", retention="7 days", level="INFO")

# Initialize FastAPI app
app = FastAPI(
    title="Lead Finder",
    description="Multi-source lead discovery, AI enrichment and scoring",
    version="1.0.0"
)

@app.post("/leads/discover")
async def discover(req: Request, x_account_id: str = Header(default="")):
    """
    Discover, enrich and score leads for the calling account.

    Expected payload:
    {
        "industry": "Technology",
        "location": "Austin, TX",
        "company_size": "201-500",
        "keywords": ["devops", "cloud"],
        "sources": ["marketplace", "profile_index", "news"],
        "websites": ["https://acme.example"]
    }
    """
    start_time = time.time()

    try:
        payload = await req.json()
    except ValueError:
        return JSONResponse(
            status_code=400,
            content={"status": "error", "message": "Request body must be JSON"}
        )

    logger.info(f"Received discovery request from {x_account_id or 'unknown'}: {payload.get('industry') if isinstance(payload, dict) else payload}")

    try:
        result = await run_discovery(payload if isinstance(payload, dict) else {}, x_account_id)
    except InvalidRequest as e:
        logger.warning(f"Invalid discovery request: {e}")
        return JSONResponse(
            status_code=400,
            content={"status": "error", "message": str(e)}
        )
    except QuotaExceeded as e:
        return JSONResponse(
            status_code=429,
            content={
                "status": "error",
                "error": "Lead generation limit reached",
                "message": str(e)
            }
        )

    leads = result["leads"]
    processing_time = time.time() - start_time

    return {
        "status": "success",
        "message": f"Discovered {len(leads)} leads",
        "processing_time": processing_time,
        "total": len(leads),
        "leads": [lead.model_dump(mode="json") for lead in leads],
        "errors": result.get("errors", []),
        "stats": result.get("stats", {})
    }

@app.post("/leads/score")
async def score_lead(payload: Dict[str, Any]):
    """Re-analyze and re-score a single lead without consuming discovery quota."""
    try:
        lead = await rescore_lead(payload)
    except InvalidRequest as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "status": "success",
        "message": "Lead scored successfully",
        "lead": lead.model_dump(mode="json")
    }

@app.get("/industries")
def list_industries():
    """Industries a discovery request may target."""
    return {
        "success": True,
        "industries": [industry.value for industry in Industry]
    }

@app.get("/industries/{industry}/keywords")
def industry_keywords(industry: str):
    """Default search keywords used when a request brings none."""
    try:
        key = Industry(industry)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown industry: {industry}")

    return {
        "success": True,
        "industry": key.value,
        "keywords": INDUSTRY_KEYWORDS[key]
    }

@app.get("/health")
def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": "1.0.0",
        "services": {
            "redis": "connected" if quota_gate.r else "disconnected",
            "workflow": "ready"
        }
    }

# Error handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal server error"}
    )

if __name__ == "__main__":
    import uvicorn

    # Create logs directory if it doesn't exist
    os.makedirs("logs", exist_ok=True)

    logger.info("Starting Lead Finder")

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
