from datetime import date

from pydantic import BaseModel, Field

from vn_txn_parser.models import Category, ParsedTransactionDraft


class ParseRequest(BaseModel):
    text: str
    categories: list[Category] = Field(default_factory=list)
    today: date | None = None


class ParseResponse(BaseModel):
    draft: ParsedTransactionDraft | None
    needs_clarification: bool


class CorrectionRequest(BaseModel):
    draft_id: str
    category_id: str


class RetrainRequest(BaseModel):
    incremental: bool = False
