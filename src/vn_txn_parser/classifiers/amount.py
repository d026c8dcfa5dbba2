import torch

from vn_txn_parser.core import settings
from vn_txn_parser.domain.amounts import fallback_confidence, find_amount, labels_for_span, span_to_value
from vn_txn_parser.lifecycle import ModelLifecycle
from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import AmountExtraction, AmountLabel
from vn_txn_parser.networks import BILSTM, IGNORE_INDEX, build_module, fit, predict_proba
from vn_txn_parser.persistence.model_state import ModelState
from vn_txn_parser.text.tokenizer import feature_tokens, token_gaps, tokenize_with_spans
from vn_txn_parser.text.vocabulary import Vocabulary
from vn_txn_parser.training.synthetic import AmountSample, generate_amount_samples

logger = get_logger(__name__)

KIND = "amount"
LABELS: tuple[str, ...] = tuple(label.value for label in AmountLabel)

HYPERPARAMETERS = {
    "max_length": 20,
    "embedding_dim": 32,
    "hidden_units": 32,
    "max_vocab": 1000,
    "epochs": 15,
    "learning_rate": 0.01,
}
BOOTSTRAP_SAMPLES = 1500


def encode_tokens(tokens: list[str], vocabulary: Vocabulary, max_length: int) -> list[int]:
    return vocabulary.encode(feature_tokens(tokens), max_length)


def train_amount_tagger(samples: list[AmountSample], seed: int) -> ModelState:
    hp = dict(HYPERPARAMETERS)
    max_length = hp["max_length"]
    vocabulary = Vocabulary.build((feature_tokens(s.tokens) for s in samples), hp["max_vocab"])
    hp["vocab_size"] = len(vocabulary)

    inputs = torch.tensor([encode_tokens(s.tokens, vocabulary, max_length) for s in samples], dtype=torch.long)
    targets = torch.full((len(samples), max_length), IGNORE_INDEX, dtype=torch.long)
    for row, sample in enumerate(samples):
        label_ids = [LABELS.index(label.value) for label in sample.labels[:max_length]]
        targets[row, : len(label_ids)] = torch.tensor(label_ids, dtype=torch.long)

    torch.manual_seed(seed)
    module = build_module(BILSTM, len(vocabulary), len(LABELS), hp)
    losses = fit(module, inputs, targets, epochs=hp["epochs"], seed=seed, learning_rate=hp["learning_rate"])
    logger.info("[TRAIN] Amount tagger: %d samples, final loss %.4f", len(samples), losses[-1])

    return ModelState(
        kind=KIND,
        architecture=BILSTM,
        module=module,
        vocabulary=vocabulary,
        labels=LABELS,
        hyperparameters=hp,
        metadata={"samples": len(samples), "seed": seed},
    )


def bootstrap_amount_tagger(seed: int) -> ModelState:
    return train_amount_tagger(generate_amount_samples(BOOTSTRAP_SAMPLES, seed), seed)


def best_span(
    labels: list[AmountLabel],
    scores: list[float],
    exclude: frozenset[int] = frozenset(),
) -> tuple[int, int, float] | None:
    """Highest mean-confidence B-AMT(I-AMT)* run as ``(start, end, confidence)``; first wins ties.

    Runs touching any position in ``exclude`` are never chosen.
    """
    best: tuple[int, int, float] | None = None
    index = 0
    while index < len(labels):
        if labels[index] is not AmountLabel.BEGIN:
            index += 1
            continue
        end = index + 1
        while end < len(labels) and labels[end] is AmountLabel.INSIDE:
            end += 1
        if exclude.isdisjoint(range(index, end)):
            confidence = sum(scores[index:end]) / (end - index)
            if best is None or confidence > best[2]:
                best = (index, end, confidence)
        index = end
    return best


class AmountTagger:
    def __init__(self, lifecycle: ModelLifecycle, fallback_ceiling: float | None = None) -> None:
        self.lifecycle = lifecycle
        self.fallback_ceiling = settings.fallback_amount_confidence() if fallback_ceiling is None else fallback_ceiling

    def extract(self, text: str, exclude: frozenset[int] = frozenset()) -> AmountExtraction:
        """Tag ``text`` and convert the best span; ``exclude`` marks token positions that are never the amount."""
        spans = tokenize_with_spans(text)
        tokens = [token for token, _, _ in spans]
        state = self.lifecycle.state
        if state is not None and tokens:
            try:
                result = self._tag(state, tokens, exclude)
            except Exception:
                logger.exception("[AMOUNT] Tagger inference failed, using fallback parser.")
                result = None
            if result is not None:
                return result
        return self.deterministic(text, exclude, spans)

    def _tag(
        self,
        state: ModelState,
        tokens: list[str],
        exclude: frozenset[int] = frozenset(),
    ) -> AmountExtraction | None:
        row = encode_tokens(tokens, state.vocabulary, state.max_length)
        probabilities = predict_proba(state.module, torch.tensor([row], dtype=torch.long))[0]
        scores, label_ids = probabilities.max(dim=-1)

        labels = [AmountLabel.OUTSIDE] * len(tokens)
        confidences = [1.0] * len(tokens)
        for position in range(min(len(tokens), state.max_length)):
            labels[position] = AmountLabel(state.labels[int(label_ids[position])])
            confidences[position] = float(scores[position])

        span = best_span(labels, confidences, exclude)
        if span is None:
            logger.debug("[AMOUNT] No B-AMT span outside excluded tokens.")
            return None
        start, end, confidence = span
        value = span_to_value(tokens[start:end])
        if value is None:
            logger.debug("[AMOUNT] Tagged span %s has no value.", tokens[start:end])
            return None
        return AmountExtraction(
            amount=value,
            confidence=min(confidence, 1.0),
            tokens=tokens,
            labels=labels_for_span(len(tokens), start, end - start),
            source="model",
            span=(start, end),
        )

    def deterministic(
        self,
        text: str,
        exclude: frozenset[int] = frozenset(),
        spans: list[tuple[str, int, int]] | None = None,
    ) -> AmountExtraction:
        """Token-pattern parser used whenever the tagger is unavailable or unsure."""
        if spans is None:
            spans = tokenize_with_spans(text)
        tokens = [token for token, _, _ in spans]
        gaps = token_gaps(text, spans)
        match = find_amount(tokens, gaps, exclude)
        if match is None:
            return AmountExtraction(
                amount=None,
                confidence=0.0,
                tokens=tokens,
                labels=labels_for_span(len(tokens), None, 0),
                source="fallback",
            )
        logger.debug("[AMOUNT] Fallback parser found %d", match.value)
        return AmountExtraction(
            amount=match.value,
            confidence=fallback_confidence(match, self.fallback_ceiling),
            tokens=tokens,
            labels=labels_for_span(len(tokens), match.start, match.consumed),
            source="fallback",
            span=(match.start, match.start + match.consumed),
        )
