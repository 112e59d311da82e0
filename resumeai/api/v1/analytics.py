from fastapi import APIRouter, Depends, Query

from resumeai.analytics import db as analytics_db
from resumeai.core.security import require_api_key

router = APIRouter()


@router.get("/analytics/reasoner-runs")
def reasoner_runs(_: None = Depends(require_api_key)):
    return analytics_db.get_reasoner_summary()


@router.get("/analytics/reasoner-runs/latest")
def latest_reasoner_runs(
    limit: int = Query(default=20, ge=1, le=200),
    _: None = Depends(require_api_key),
):
    return analytics_db.get_latest_runs(limit=limit)
