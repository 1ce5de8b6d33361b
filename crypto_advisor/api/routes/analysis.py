"""
API routes for crypto analysis requests.
"""
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from crypto_advisor.exceptions import InvalidRequest
from crypto_advisor.utils.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)


class AnalyzeRequest(BaseModel):
    """Body of POST /analyze."""
    symbol: str = Field(..., pattern=r"^[A-Za-z]{3}$", description="Base asset code, e.g. BTC")

    @field_validator("symbol")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()


@router.post("/analyze", response_model=Dict[str, Any])
async def analyze(payload: AnalyzeRequest, request: Request):
    """
    Run the full analysis pipeline for a symbol.
    """
    logger.info("Analysis requested", symbol=payload.symbol)
    orchestrator = request.app.state.services.orchestrator
    try:
        result = await orchestrator.run(payload.symbol)
    except InvalidRequest as e:
        logger.warning("Rejected analysis request", symbol=payload.symbol, error=str(e))
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.error("Error processing analysis request", symbol=payload.symbol, error=str(e))
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return result.to_dict()
