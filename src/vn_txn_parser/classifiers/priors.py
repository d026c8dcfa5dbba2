from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from vn_txn_parser.core import settings
from vn_txn_parser.domain.direction import categories_for_direction
from vn_txn_parser.integration.history import TransactionHistory
from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import Prediction

from .base import CategoryTier, RankingContext

logger = get_logger(__name__)

SMOOTHING = 1.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriorTier(CategoryTier):
    """Ranks categories by their Laplace-smoothed share of recent history."""

    name = "priors"

    def __init__(
        self,
        history: TransactionHistory,
        window_days: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.history = history
        self.window_days = settings.prior_window_days() if window_days is None else window_days
        self.clock = clock

    def rank(self, context: RankingContext) -> list[Prediction]:
        candidates = categories_for_direction(context.categories, context.direction) or context.categories
        if not candidates:
            return []

        since = self.clock() - timedelta(days=self.window_days)
        counts = self.history.category_counts(since, context.direction)
        candidate_ids = {category.id for category in candidates}
        total = sum(count for category_id, count in counts.items() if category_id in candidate_ids)
        denominator = total + SMOOTHING * len(candidates)

        logger.debug("[CATEGORY] Prior tier over %d transactions since %s", total, since.date())
        return [
            Prediction(
                category_id=category.id,
                category_name=category.name,
                confidence=(counts.get(category.id, 0) + SMOOTHING) / denominator,
                source=self.name,
            )
            for category in candidates
        ]
