"""
/yield-analysis endpoint
"""
from fastapi import APIRouter, Depends

from agrimate.di import get_yield_optimizer
from agrimate.schemas import FarmInput, YieldAnalysis
from agrimate.services.yield_optimizer import YieldOptimizer

router = APIRouter(tags=["ai"])


@router.post("/yield-analysis", response_model=YieldAnalysis)
async def yield_analysis(farm: FarmInput, optimizer: YieldOptimizer = Depends(get_yield_optimizer)):
    """
    Weather + mandi snapshot fed to the LLM; worst case a low-confidence
    generic recommendation, never an upstream error.
    """
    return await optimizer.analyze(farm)
