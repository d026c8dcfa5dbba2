import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Any

from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import TrainingReport
from vn_txn_parser.persistence.model_state import ModelRepository, ModelState, ModelStateError

logger = get_logger(__name__)

Bootstrap = Callable[[], ModelState | None]
RetrainJob = Callable[[ModelState | None], tuple[ModelState | None, TrainingReport]]


class ModelStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    READY = "ready"
    FAILED = "failed"


class ModelLifecycle:
    """Owns one model's current snapshot.

    Readers take ``state`` once and keep using that snapshot; publishing a
    new one is a single reference assignment, so no reader ever sees a
    half-trained model.
    """

    def __init__(self, kind: str, repository: ModelRepository, bootstrap: Bootstrap) -> None:
        self.kind = kind
        self.repository = repository
        self._bootstrap = bootstrap
        self._state: ModelState | None = None
        self.status = ModelStatus.UNINITIALIZED
        self._init_task: asyncio.Task | None = None
        self._retrain_task: asyncio.Task | None = None
        self._pending_job: RetrainJob | None = None
        self.bootstrap_runs = 0
        self.retrain_runs = 0

    @property
    def state(self) -> ModelState | None:
        return self._state

    @property
    def retrain_in_flight(self) -> bool:
        return self._retrain_task is not None and not self._retrain_task.done()

    def publish(self, state: ModelState | None) -> None:
        self._state = state

    def start(self) -> asyncio.Task:
        """Begin initialization without waiting; repeated calls share one task."""
        if self._init_task is None:
            self._init_task = asyncio.create_task(self._initialize())
        return self._init_task

    async def ensure_ready(self) -> ModelState | None:
        return await asyncio.shield(self.start())

    def _load(self) -> ModelState | None:
        try:
            return self.repository.load(self.kind)
        except ModelStateError as e:
            logger.error("[LIFECYCLE] Discarding persisted %s model: %s", self.kind, e)
            self.repository.discard(self.kind)
            return None

    async def _initialize(self) -> ModelState | None:
        state = await asyncio.to_thread(self._load)
        if state is not None:
            logger.info("[LIFECYCLE] Loaded %s model trained at %s", self.kind, state.trained_at.isoformat())
        else:
            self.status = ModelStatus.BOOTSTRAPPING
            self.bootstrap_runs += 1
            logger.info("[LIFECYCLE] No usable %s model, bootstrapping...", self.kind)
            try:
                state = await asyncio.to_thread(self._bootstrap)
                # A snapshot published meanwhile is newer and already persisted.
                if state is not None and self._state is None:
                    await asyncio.to_thread(self.repository.save, state)
            except Exception:
                logger.exception("[LIFECYCLE] Bootstrap of %s model failed; using fallbacks.", self.kind)
                self.status = ModelStatus.FAILED
                return None

        if self._state is None:
            self.publish(state)
        self.status = ModelStatus.READY
        logger.info("[LIFECYCLE] %s model ready (trained=%s)", self.kind, self._state is not None)
        return self._state

    def request_retrain(self, job: RetrainJob) -> asyncio.Task:
        """Queue ``job``; at most one retrain runs, later requests coalesce into one."""
        self._pending_job = job
        if not self.retrain_in_flight:
            self._retrain_task = asyncio.create_task(self._drain_retrains())
        else:
            logger.debug("[LIFECYCLE] %s retrain already running; request queued.", self.kind)
        return self._retrain_task

    async def _drain_retrains(self) -> TrainingReport | None:
        if self.status is not ModelStatus.READY:
            # Loading or bootstrapping counts as the one training in flight.
            await self.ensure_ready()
        report: TrainingReport | None = None
        while self._pending_job is not None:
            job, self._pending_job = self._pending_job, None
            self.retrain_runs += 1
            try:
                state, report = await asyncio.to_thread(job, self._state)
                if state is not None:
                    await asyncio.to_thread(self.repository.save, state)
                    self.publish(state)
                    logger.info("[LIFECYCLE] Published retrained %s model.", self.kind)
            except Exception as e:
                logger.exception("[LIFECYCLE] Retrain of %s model failed; keeping current model.", self.kind)
                report = TrainingReport(model=self.kind, status="failed", reason=str(e))
        return report

    def pending_tasks(self) -> list[asyncio.Task]:
        return [t for t in (self._init_task, self._retrain_task) if t is not None and not t.done()]

    def describe(self) -> dict[str, Any]:
        state = self._state
        return {
            "kind": self.kind,
            "status": self.status.value,
            "trained": state is not None,
            "vocabulary_size": len(state.vocabulary) if state else 0,
            "labels": len(state.labels) if state else 0,
            "trained_at": state.trained_at.isoformat() if state else None,
            "retrain_in_flight": self.retrain_in_flight,
        }
