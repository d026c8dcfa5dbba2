import threading
from datetime import datetime, timezone

from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import TrainingSample
from vn_txn_parser.persistence.store import KeyValueStore

logger = get_logger(__name__)

SAMPLES_KEY = "training_samples"


class UnknownSampleError(KeyError):
    """A correction referenced a sample id that was never logged."""


class TrainingLog:
    """Append-only log of shown predictions and the categories users chose.

    Stored as JSON lines; a correction appends the updated sample and the
    last line for an id wins on load.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self._lock = threading.Lock()
        self._samples: dict[str, TrainingSample] = {}
        self.load()

    def load(self) -> None:
        self._samples = {}
        raw = self.store.get(SAMPLES_KEY)
        if raw is None:
            return
        skipped = 0
        for line in raw.splitlines():
            if not line.strip():
                continue
            try:
                sample = TrainingSample.model_validate_json(line)
            except ValueError as e:
                skipped += 1
                logger.debug("[LEARN] Unreadable training log line: %s", e)
                continue
            self._samples[sample.id] = sample
        if skipped:
            logger.error("[LEARN] Skipped %d unreadable training log lines.", skipped)
        logger.info("[LEARN] Loaded %d training samples", len(self._samples))

    def _append(self, sample: TrainingSample) -> None:
        self.store.append(SAMPLES_KEY, sample.model_dump_json() + "\n")

    def log_prediction(self, sample: TrainingSample) -> TrainingSample:
        with self._lock:
            if sample.id in self._samples:
                return self._samples[sample.id]
            self._samples[sample.id] = sample
            self._append(sample)
        logger.debug("[LEARN] Logged prediction %s -> %s", sample.id, sample.predicted_category_id)
        return sample

    def log_correction(self, sample_id: str, chosen_category_id: str) -> tuple[TrainingSample, bool]:
        """Record the user's choice on the existing sample.

        Returns the updated sample and whether it differs from the prediction.
        """
        with self._lock:
            sample = self._samples.get(sample_id)
            if sample is None:
                raise UnknownSampleError(sample_id)
            updated = sample.model_copy(
                update={"chosen_category_id": chosen_category_id, "corrected_at": datetime.now(timezone.utc)}
            )
            self._samples[sample_id] = updated
            self._append(updated)
        changed = chosen_category_id != sample.predicted_category_id
        logger.info(
            "[LEARN] Correction %s: predicted=%s chosen=%s",
            sample_id,
            sample.predicted_category_id,
            chosen_category_id,
        )
        return updated, changed

    def get(self, sample_id: str) -> TrainingSample | None:
        with self._lock:
            return self._samples.get(sample_id)

    def all(self) -> list[TrainingSample]:
        with self._lock:
            return list(self._samples.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
