"""Case verification endpoints."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ...infrastructure.dependencies import ServiceContainer, get_service_container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cases", tags=["cases"])


class CheckRequest(BaseModel):
    """Request model for a verification run."""

    case_dir: str = Field(..., description="Path of the case directory on the server")
    semantic: bool = Field(default=True, description="Allow escalation to the semantic judge")


async def _pipeline(container: ServiceContainer, case_dir: str, semantic: bool = False):
    try:
        return await container.build_pipeline(case_dir, semantic=semantic)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/check")
async def check_case(
    request: CheckRequest,
    container: ServiceContainer = Depends(get_service_container),
) -> Dict[str, Any]:
    """Run every verifier over a case and return the gate report.

    Raises:
        HTTPException: 404 for an unknown case, 400 for unreadable case files,
            500 when the run cannot complete
    """
    logger.info(f"🔍 Check requested for {request.case_dir}")
    pipeline = await _pipeline(container, request.case_dir, request.semantic)
    try:
        result = await pipeline.run()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid case data: {e}")
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=f"Check failed: {e}")
    return result.to_dict()


@router.get("/gate")
async def gate_case(
    case_dir: str = Query(..., description="Path of the case directory on the server"),
    container: ServiceContainer = Depends(get_service_container),
) -> Dict[str, Any]:
    """Re-evaluate the gate over the stored gap report."""
    pipeline = await _pipeline(container, case_dir)
    try:
        report = pipeline.evaluate_stored()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if report is None:
        raise HTTPException(status_code=404, detail="No gap report stored for this case")
    return report.to_dict()


@router.get("/audit")
async def audit_case(
    case_dir: str = Query(..., description="Path of the case directory on the server"),
    container: ServiceContainer = Depends(get_service_container),
) -> Dict[str, Any]:
    """Verify the stored audit chain and ledger."""
    pipeline = await _pipeline(container, case_dir)
    try:
        return pipeline.audit().to_dict()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
