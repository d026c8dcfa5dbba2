import asyncio
from datetime import date
from typing import Any

from vn_txn_parser.classifiers import amount as amount_model
from vn_txn_parser.classifiers import intent as intent_model
from vn_txn_parser.classifiers import learned as category_model
from vn_txn_parser.classifiers.amount import AmountTagger
from vn_txn_parser.classifiers.intent import IntentClassifier
from vn_txn_parser.core import settings
from vn_txn_parser.integration.history import TransactionHistory
from vn_txn_parser.lifecycle import ModelLifecycle
from vn_txn_parser.logger import get_logger
from vn_txn_parser.manager import CategoryRanker
from vn_txn_parser.models import Action, Category, ParsedTransactionDraft, TrainingReport, TrainingSample
from vn_txn_parser.parser import TransactionParser, Utterance
from vn_txn_parser.persistence.model_state import ModelRepository, ModelState
from vn_txn_parser.persistence.store import KeyValueStore
from vn_txn_parser.services.learning import LearningService
from vn_txn_parser.training.samples import TrainingLog

logger = get_logger(__name__)


class ParsingService:
    """In-process entry point: ``parse_utterance`` and ``record_correction``."""

    def __init__(
        self,
        store: KeyValueStore,
        history: TransactionHistory,
        *,
        seed: int | None = None,
        timeout: float | None = None,
        min_retrain_samples: int | None = None,
    ) -> None:
        self.seed = settings.bootstrap_seed() if seed is None else seed
        self.timeout = settings.parse_timeout_seconds() if timeout is None else timeout
        self.repository = ModelRepository(store)

        self.intent_lifecycle = ModelLifecycle(
            intent_model.KIND, self.repository, lambda: intent_model.bootstrap_intent_model(self.seed)
        )
        self.amount_lifecycle = ModelLifecycle(
            amount_model.KIND, self.repository, lambda: amount_model.bootstrap_amount_tagger(self.seed)
        )
        self.category_lifecycle = ModelLifecycle(category_model.KIND, self.repository, self._bootstrap_category)

        self.training_log = TrainingLog(store)
        self.learning = LearningService(self.training_log, self.category_lifecycle, seed=self.seed, min_samples=min_retrain_samples
        )
        self.parser = TransactionParser(
            IntentClassifier(self.intent_lifecycle),
            AmountTagger(self.amount_lifecycle),
            CategoryRanker.default(self.category_lifecycle, history),
        )

    @property
    def lifecycles(self) -> tuple[ModelLifecycle, ...]:
        return (self.intent_lifecycle, self.amount_lifecycle, self.category_lifecycle)

    def _bootstrap_category(self) -> ModelState | None:
        # No synthetic data for categories: only the user's own labels count.
        state, report = self.learning.build_category_state(None, incremental=False)
        if state is None:
            logger.info("[LIFECYCLE] Category model not trained yet: %s", report.reason)
        return state

    def start(self) -> None:
        """Kick off loading/bootstrap of every model without waiting for it."""
        for lifecycle in self.lifecycles:
            lifecycle.start()

    async def warm_up(self) -> None:
        await asyncio.gather(*(lifecycle.ensure_ready() for lifecycle in self.lifecycles))
        logger.info("[LIFECYCLE] All models initialized.")

    async def aclose(self) -> None:
        """Wait for in-flight initialization and retrains to settle."""
        pending = [task for lifecycle in self.lifecycles for task in lifecycle.pending_tasks()]
        if pending:
            logger.info("[LIFECYCLE] Waiting for %d background model tasks.", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    async def parse_utterance(
        self,
        text: str,
        categories: list[Category],
        today: date | None = None,
    ) -> ParsedTransactionDraft | None:
        self.start()
        utterance = self.parser.prepare(text, today or date.today())
        if utterance is None:
            logger.info("[PARSE] Nothing to parse in '%s'", text[:50])
            return None

        try:
            draft = await asyncio.wait_for(self._parse(utterance, categories), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("[PARSE] Timed out after %.1fs, asking the user instead.", self.timeout)
            draft = await asyncio.to_thread(self.parser.fallback_draft, utterance, categories)

        if draft.action is Action.CREATE_TRANSACTION:
            await asyncio.to_thread(
                self.learning.log_prediction,
                text=text,
                note=draft.note,
                amount=draft.amount,
                io=draft.io,
                primary=draft.primary,
                sample_id=draft.id,
            )
        return draft

    async def _parse(self, utterance: Utterance, categories: list[Category]) -> ParsedTransactionDraft:
        intent_prediction, extraction = await asyncio.gather(
            asyncio.to_thread(self.parser.intent.predict, utterance.text),
            asyncio.to_thread(self.parser.tagger.extract, utterance.text, utterance.date_tokens),
        )
        return await asyncio.to_thread(self.parser.assemble, utterance, intent_prediction, extraction, categories)

    async def record_correction(self, draft_id: str, category_id: str) -> TrainingSample:
        return await self.learning.log_correction(draft_id, category_id)

    async def retrain(self, incremental: bool = False) -> TrainingReport:
        return await self.learning.retrain(incremental)

    def status(self) -> dict[str, Any]:
        return {
            "models": [lifecycle.describe() for lifecycle in self.lifecycles],
            "training_samples": len(self.training_log),
        }
