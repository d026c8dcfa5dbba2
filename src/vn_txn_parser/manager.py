from vn_txn_parser.classifiers.base import CategoryTier, RankingContext
from vn_txn_parser.classifiers.keywords import KeywordTier
from vn_txn_parser.classifiers.learned import LearnedTier
from vn_txn_parser.classifiers.priors import PriorTier
from vn_txn_parser.core import settings
from vn_txn_parser.integration.history import TransactionHistory
from vn_txn_parser.lifecycle import ModelLifecycle
from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import Decision, Prediction, Ranking

logger = get_logger(__name__)


def merge_predictions(predictions: list[Prediction]) -> list[Prediction]:
    """Deduplicate by category id keeping the best score, highest first."""
    best: dict[str, Prediction] = {}
    for prediction in predictions:
        current = best.get(prediction.category_id)
        if current is None or prediction.confidence > current.confidence:
            best[prediction.category_id] = prediction
    return sorted(best.values(), key=lambda p: p.confidence, reverse=True)


def decide(ranking: Ranking, threshold: float) -> Decision:
    if ranking.primary is not None and ranking.top_score >= threshold:
        return Decision.AUTO_ACT
    if ranking.tier == LearnedTier.name and ranking.entries:
        return Decision.ASK_GOOD_GUESSES
    return Decision.ASK_WEAK_GUESSES


class CategoryRanker:
    def __init__(self, tiers: list[CategoryTier]) -> None:
        self.tiers = tiers

    @classmethod
    def default(cls, category_lifecycle: ModelLifecycle, history: TransactionHistory) -> "CategoryRanker":
        # Learned model first, then keywords, then history priors.
        return cls([LearnedTier(category_lifecycle), KeywordTier(), PriorTier(history)])

    def rank(self, context: RankingContext, skip: frozenset[str] = frozenset()) -> Ranking:
        for tier in self.tiers:
            if tier.name in skip:
                continue
            logger.debug(f"Trying {tier.name} tier for: '{context.note[:50]}'")

            predictions = tier.rank(context)

            if predictions:
                ranking = Ranking(entries=merge_predictions(predictions), tier=tier.name)
                logger.debug(
                    f"{tier.name} tier returned: '{ranking.primary.category_name}' "
                    f"(confidence: {ranking.top_score:.2f})"
                )
                return ranking
            else:
                logger.debug(f"{tier.name} tier returned no candidates")

        logger.debug(f"No tier produced candidates for: '{context.note[:50]}'")
        return Ranking()

    def rank_and_decide(
        self,
        context: RankingContext,
        threshold: float | None = None,
        skip: frozenset[str] = frozenset(),
    ) -> tuple[Ranking, Decision]:
        ranking = self.rank(context, skip=skip)
        decision = decide(ranking, settings.min_auto_confidence() if threshold is None else threshold)
        logger.info(
            "[CATEGORY] %s via %s tier (top %.2f)",
            decision.value,
            ranking.tier or "no",
            ranking.top_score,
        )
        return ranking, decision
