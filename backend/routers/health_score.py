"""
Health Score Router

POST /api/health-score  — score a basket of items (0-100) with recommendations
"""
import logging

from fastapi import APIRouter

from models.schemas import HealthScore, HealthScoreRequest
from services.health_service import calculate_health_score

logger = logging.getLogger("pantryscan.health_score")
router = APIRouter()


@router.post("", response_model=HealthScore)
async def score_items(body: HealthScoreRequest):
    result = calculate_health_score(body.items)
    logger.debug("Scored %d items → %d (%s)", len(body.items), result.total_score, result.label)
    return result
