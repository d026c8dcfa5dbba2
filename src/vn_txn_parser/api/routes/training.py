import asyncio
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from vn_txn_parser.api.dependencies import get_service
from vn_txn_parser.api.schemas import RetrainRequest
from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import TrainingReport
from vn_txn_parser.services.evaluation import evaluate_service
from vn_txn_parser.services.parsing import ParsingService

logger = get_logger(__name__)

router = APIRouter()


@router.post("/api/retrain")
async def retrain(
    payload: RetrainRequest,
    service: Annotated[ParsingService, Depends(get_service)],
) -> TrainingReport:
    logger.info("[TRAIN] Retrain requested (incremental=%s).", payload.incremental)
    return await service.retrain(incremental=payload.incremental)


@router.get("/api/status")
async def status(
    service: Annotated[ParsingService, Depends(get_service)],
) -> dict[str, Any]:
    return service.status()


@router.get("/api/evaluation")
async def evaluation(
    service: Annotated[ParsingService, Depends(get_service)],
    samples: int = 200,
) -> dict[str, Any]:
    await service.warm_up()
    return await asyncio.to_thread(evaluate_service, service, samples)
