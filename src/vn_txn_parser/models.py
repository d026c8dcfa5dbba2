from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class Action(str, Enum):
    CREATE_TRANSACTION = "CREATE_TRANSACTION"
    VIEW_STATS = "VIEW_STATS"
    EDIT_TRANSACTION = "EDIT_TRANSACTION"
    DELETE_TRANSACTION = "DELETE_TRANSACTION"


class Direction(str, Enum):
    IN = "IN"
    OUT = "OUT"


class CategoryType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def direction(self) -> Direction:
        return Direction.IN if self is CategoryType.INCOME else Direction.OUT


class Decision(str, Enum):
    AUTO_ACT = "AUTO_ACT"
    ASK_GOOD_GUESSES = "ASK_GOOD_GUESSES"
    ASK_WEAK_GUESSES = "ASK_WEAK_GUESSES"


class AmountLabel(str, Enum):
    OUTSIDE = "O"
    BEGIN = "B-AMT"
    INSIDE = "I-AMT"


class Category(BaseModel):
    id: str
    name: str
    type: CategoryType = CategoryType.EXPENSE
    icon: str | None = None
    color: str | None = None


class Prediction(BaseModel):
    category_id: str
    category_name: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: str  # "learned", "keywords", "priors"


class Ranking(BaseModel):
    entries: list[Prediction] = Field(default_factory=list)
    tier: str | None = None

    @property
    def primary(self) -> Prediction | None:
        return self.entries[0] if self.entries else None

    @property
    def top_score(self) -> float:
        return self.entries[0].confidence if self.entries else 0.0


class IntentPrediction(BaseModel):
    action: Action
    confidence: float = Field(ge=0.0, le=1.0)
    source: str  # "model" or "rules"


class AmountExtraction(BaseModel):
    amount: int | None = None
    confidence: float = Field(ge=0.0, le=1.0)
    tokens: list[str]
    labels: list[AmountLabel]
    source: str  # "model" or "fallback"
    span: tuple[int, int] | None = None  # token indices, end exclusive

    @model_validator(mode="after")
    def _labels_align_with_tokens(self) -> "AmountExtraction":
        if len(self.labels) != len(self.tokens):
            raise ValueError(
                f"labels ({len(self.labels)}) and tokens ({len(self.tokens)}) differ in length"
            )
        return self


class TrainingSample(BaseModel):
    id: str
    text: str
    note: str
    amount: int | None = None
    io: Direction
    predicted_category_id: str | None = None
    chosen_category_id: str | None = None
    confidence: float = 0.0
    created_at: datetime
    corrected_at: datetime | None = None

    @property
    def label(self) -> str | None:
        return self.chosen_category_id


class TrainingReport(BaseModel):
    model: str
    status: str  # "trained", "skipped", "failed"
    samples: int = 0
    labels: int = 0
    reason: str | None = None
    trained_at: datetime | None = None
    metrics: dict[str, float] = Field(default_factory=dict)


class ParsedTransactionDraft(BaseModel):
    id: str
    action: Action
    amount: int | None = None
    note: str
    category_id: str = ""
    category_name: str = ""
    io: Direction
    date: date
    message: str
    decision: Decision | None = None
    primary: Prediction | None = None
    alternatives: list[Prediction] = Field(default_factory=list)
    amount_confidence: float = 0.0
    intent_confidence: float = 0.0
