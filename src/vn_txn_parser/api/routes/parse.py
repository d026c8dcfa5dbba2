from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from vn_txn_parser.api.dependencies import get_service
from vn_txn_parser.api.schemas import CorrectionRequest, ParseRequest, ParseResponse
from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import TrainingSample
from vn_txn_parser.services.parsing import ParsingService
from vn_txn_parser.training.samples import UnknownSampleError

logger = get_logger(__name__)

router = APIRouter()


@router.post("/api/parse")
async def parse(
    payload: ParseRequest,
    service: Annotated[ParsingService, Depends(get_service)],
) -> ParseResponse:
    draft = await service.parse_utterance(payload.text, payload.categories, today=payload.today)
    return ParseResponse(draft=draft, needs_clarification=draft is None)


@router.post("/api/corrections")
async def record_correction(
    payload: CorrectionRequest,
    service: Annotated[ParsingService, Depends(get_service)],
) -> TrainingSample:
    try:
        return await service.record_correction(payload.draft_id, payload.category_id)
    except UnknownSampleError:
        logger.warning("[LEARN] Correction for unknown draft %s", payload.draft_id)
        raise HTTPException(status_code=404, detail="Unknown draft id")
