from datetime import datetime, timezone

import torch

from vn_txn_parser.domain.direction import categories_for_direction
from vn_txn_parser.lifecycle import ModelLifecycle
from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import Prediction, TrainingReport, TrainingSample
from vn_txn_parser.networks import POOLED, build_module, fit, predict_proba
from vn_txn_parser.persistence.model_state import ModelState
from vn_txn_parser.text.tokenizer import feature_tokens, tokenize
from vn_txn_parser.text.vocabulary import Vocabulary

from .base import CategoryTier, RankingContext

logger = get_logger(__name__)

KIND = "category"

HYPERPARAMETERS = {
    "max_length": 16,
    "embedding_dim": 24,
    "hidden_units": 32,
    "dropout": 0.1,
    "max_vocab": 3000,
    "epochs": 60,
    "learning_rate": 0.01,
}


def amount_bucket(amount: int | None) -> str:
    if amount is None:
        return "<amt:none>"
    return f"<amt:{len(str(amount))}>"


def category_features(note: str, amount: int | None) -> list[str]:
    return feature_tokens(tokenize(note)) + [amount_bucket(amount)]


def labeled_samples(samples: list[TrainingSample]) -> list[TrainingSample]:
    return [s for s in samples if s.chosen_category_id]


def train_category_model(
    samples: list[TrainingSample],
    seed: int,
    min_samples: int,
    current: ModelState | None = None,
    incremental: bool = False,
) -> tuple[ModelState | None, TrainingReport]:
    """Fit a fresh model and vocabulary on every labeled sample.

    With ``incremental`` the run is skipped when nothing new was labeled
    since ``current`` was trained; otherwise the two modes are identical.
    """
    labeled = labeled_samples(samples)
    labels = sorted({s.chosen_category_id for s in labeled})

    if incremental and current is not None and current.metadata.get("labeled_samples") == len(labeled):
        return None, TrainingReport(model=KIND, status="skipped", samples=len(labeled), labels=len(labels),
                                    reason="no new labeled samples")
    if len(labeled) < min_samples:
        return None, TrainingReport(model=KIND, status="skipped", samples=len(labeled), labels=len(labels),
                                    reason=f"need at least {min_samples} labeled samples")
    if len(labels) < 2:
        return None, TrainingReport(model=KIND, status="skipped", samples=len(labeled), labels=len(labels),
                                    reason="need at least 2 distinct categories")

    hp = dict(HYPERPARAMETERS)
    features = [category_features(s.note, s.amount) for s in labeled]
    vocabulary = Vocabulary.build(features, hp["max_vocab"])
    hp["vocab_size"] = len(vocabulary)

    inputs = torch.tensor([vocabulary.encode(f, hp["max_length"]) for f in features], dtype=torch.long)
    targets = torch.tensor([labels.index(s.chosen_category_id) for s in labeled], dtype=torch.long)

    torch.manual_seed(seed)
    module = build_module(POOLED, len(vocabulary), len(labels), hp)
    losses = fit(module, inputs, targets, epochs=hp["epochs"], seed=seed, batch_size=16,
                 learning_rate=hp["learning_rate"])

    trained_at = datetime.now(timezone.utc)
    logger.info("[TRAIN] Category model: %d samples over %d categories, final loss %.4f",
                len(labeled), len(labels), losses[-1])
    state = ModelState(
        kind=KIND,
        architecture=POOLED,
        module=module,
        vocabulary=vocabulary,
        labels=tuple(labels),
        hyperparameters=hp,
        trained_at=trained_at,
        metadata={"labeled_samples": len(labeled), "seed": seed},
    )
    report = TrainingReport(
        model=KIND,
        status="trained",
        samples=len(labeled),
        labels=len(labels),
        trained_at=trained_at,
        metrics={"final_loss": float(losses[-1])},
    )
    return state, report


class LearnedTier(CategoryTier):
    """Category model fitted to the user's own labeled history."""

    name = "learned"

    def __init__(self, lifecycle: ModelLifecycle) -> None:
        self.lifecycle = lifecycle

    def rank(self, context: RankingContext) -> list[Prediction]:
        state = self.lifecycle.state
        if state is None:
            return []
        allowed = {c.id: c for c in categories_for_direction(context.categories, context.direction)}
        if not allowed:
            return []

        try:
            row = state.vocabulary.encode(category_features(context.note, context.amount), state.max_length)
            probabilities = predict_proba(state.module, torch.tensor([row], dtype=torch.long))[0].tolist()
        except Exception:
            logger.exception("[CATEGORY] Learned tier inference failed.")
            return []

        # No renormalization after filtering: dropped mass lowers confidence.
        return [
            Prediction(
                category_id=category_id,
                category_name=allowed[category_id].name,
                confidence=min(probability, 1.0),
                source=self.name,
            )
            for category_id, probability in zip(state.labels, probabilities)
            if category_id in allowed
        ]
