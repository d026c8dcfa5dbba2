import asyncio
import uuid
from datetime import datetime, timezone

from vn_txn_parser.classifiers.learned import KIND, train_category_model
from vn_txn_parser.core import settings
from vn_txn_parser.lifecycle import ModelLifecycle
from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import Direction, Prediction, TrainingReport, TrainingSample
from vn_txn_parser.persistence.model_state import ModelState
from vn_txn_parser.training.samples import TrainingLog

logger = get_logger(__name__)


class LearningService:
    def __init__(
        self,
        log: TrainingLog,
        lifecycle: ModelLifecycle,
        seed: int,
        min_samples: int | None = None,
    ) -> None:
        self.log = log
        self.lifecycle = lifecycle
        self.seed = seed
        self.min_samples = settings.min_retrain_samples() if min_samples is None else min_samples
        self.background_tasks: set[asyncio.Task] = set()

    def log_prediction(
        self,
        *,
        text: str,
        note: str,
        amount: int | None,
        io: Direction,
        primary: Prediction | None,
        sample_id: str | None = None,
    ) -> TrainingSample:
        sample = TrainingSample(
            id=sample_id or uuid.uuid4().hex,
            text=text,
            note=note,
            amount=amount,
            io=io,
            predicted_category_id=primary.category_id if primary else None,
            confidence=primary.confidence if primary else 0.0,
            created_at=datetime.now(timezone.utc),
        )
        return self.log.log_prediction(sample)

    def build_category_state(
        self,
        current: ModelState | None,
        incremental: bool = True,
    ) -> tuple[ModelState | None, TrainingReport]:
        return train_category_model(
            self.log.all(),
            seed=self.seed,
            min_samples=self.min_samples,
            current=current,
            incremental=incremental,
        )

    def schedule_retrain(self, incremental: bool = True) -> asyncio.Task:
        task = self.lifecycle.request_retrain(lambda current: self.build_category_state(current, incremental))
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
        return task

    async def log_correction(self, sample_id: str, chosen_category_id: str) -> TrainingSample:
        sample, changed = await asyncio.to_thread(self.log.log_correction, sample_id, chosen_category_id)
        if changed:
            logger.info("[LEARN] Scheduling background retrain after correction %s", sample_id)
            self.schedule_retrain(incremental=True)
        return sample

    async def retrain(self, incremental: bool = False) -> TrainingReport:
        report = await self.schedule_retrain(incremental)
        if report is None:
            return TrainingReport(model=KIND, status="skipped", reason="nothing to run")
        logger.info("[TRAIN] Category retrain finished: %s (%s)", report.status, report.reason or "ok")
        return report
