"""
Official Site Gap Finder — API Backend
FastAPI → gap analysis engine → DataForSEO
Deploy: set root directory to /backend, add DATAFORSEO_LOGIN + DATAFORSEO_PASSWORD env vars
"""

import logging
import sys

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from utils.dataforseo import RankingClient
from utils.domains import load_domain_tables
from utils.errors import InvalidInput
from utils.models import AnalysisSummary
from utils.rate_limiter import get_rate_limiter
from workflows.gap_analysis import run_gap_analysis

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("server")

# ── App setup ─────────────────────────────────────────────
app = FastAPI(title="Official Site Gap Finder API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One client per process so every request shares the same rate-limit clock.
ranking_client = RankingClient.from_env(limiter=get_rate_limiter())


# ── Request schemas ────────────────────────────────────────
class GapAnalysisRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    organization_name: str = ""
    category: str = ""
    contact: str = ""


# ── Routes ────────────────────────────────────────────────
@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": "Official Site Gap Finder API",
        "live_data": ranking_client.has_credentials,
        "domain_tables": load_domain_tables().get("version"),
    }


@app.post("/api/gap-analysis", response_model=AnalysisSummary)
async def gap_analysis(req: GapAnalysisRequest):
    """Run the gap analysis for one organization + sport."""
    try:
        return await run_gap_analysis(
            req.organization_name,
            req.category,
            req.contact,
            client=ranking_client,
        )
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
