from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from vn_txn_parser.models import Category, Direction, Prediction
from vn_txn_parser.text.tokenizer import tokenize


@dataclass(frozen=True)
class RankingContext:
    note: str
    categories: list[Category]
    direction: Direction | None = None
    amount: int | None = None
    tokens: list[str] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        note: str,
        categories: list[Category],
        direction: Direction | None = None,
        amount: int | None = None,
    ) -> "RankingContext":
        return cls(note=note, categories=categories, direction=direction, amount=amount, tokens=tokenize(note))


class CategoryTier(ABC):
    name: str = "tier"

    @abstractmethod
    def rank(self, context: RankingContext) -> list[Prediction]:
        """Score candidate categories; an empty list hands over to the next tier."""
        pass
