import torch
from sklearn.metrics import accuracy_score
from sklearn.model_selection import train_test_split

from vn_txn_parser.domain.direction import contains_phrase
from vn_txn_parser.lifecycle import ModelLifecycle
from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import Action, IntentPrediction
from vn_txn_parser.networks import POOLED, build_module, fit, predict_proba
from vn_txn_parser.persistence.model_state import ModelState
from vn_txn_parser.text.tokenizer import feature_tokens, tokenize
from vn_txn_parser.text.vocabulary import Vocabulary
from vn_txn_parser.training.synthetic import generate_intent_samples

logger = get_logger(__name__)

KIND = "intent"
LABELS: tuple[str, ...] = tuple(action.value for action in Action)

HYPERPARAMETERS = {
    "max_length": 16,
    "embedding_dim": 32,
    "hidden_units": 64,
    "dropout": 0.15,
    "max_vocab": 2000,
    "epochs": 25,
    "learning_rate": 0.01,
}
BOOTSTRAP_SAMPLES = 1200

RULE_CONFIDENCE = 0.6

STATS_PATTERNS = [("thống", "kê"), ("báo", "cáo"), ("phân", "tích"), ("tổng", "kết")]
EDIT_PATTERNS = [("chỉnh", "sửa"), ("thay", "đổi"), ("cập", "nhật")]
# (verb, object): the object may appear anywhere after the verb.
EDIT_SEQUENCES = [(("sửa",), ("giao", "dịch"))]
DELETE_SEQUENCES = [
    (("xóa",), ("giao", "dịch")),
    (("xoá",), ("giao", "dịch")),
    (("hủy",), ("giao", "dịch")),
    (("huỷ",), ("giao", "dịch")),
    (("xóa",), ("cuối",)),
    (("xoá",), ("cuối",)),
]


def _phrase_then(tokens: list[str], first: tuple[str, ...], then: tuple[str, ...]) -> bool:
    width = len(first)
    for i in range(len(tokens) - width + 1):
        if tuple(tokens[i:i + width]) == first and contains_phrase(tokens[i + width:], then):
            return True
    return False


def rule_based_intent(tokens: list[str]) -> IntentPrediction:
    """Explicit phrase patterns; anything unmatched reads as a new transaction."""
    if any(contains_phrase(tokens, p) for p in STATS_PATTERNS):
        return IntentPrediction(action=Action.VIEW_STATS, confidence=RULE_CONFIDENCE, source="rules")
    if any(contains_phrase(tokens, p) for p in EDIT_PATTERNS) or any(
        _phrase_then(tokens, first, then) for first, then in EDIT_SEQUENCES
    ):
        return IntentPrediction(action=Action.EDIT_TRANSACTION, confidence=RULE_CONFIDENCE, source="rules")
    if any(_phrase_then(tokens, first, then) for first, then in DELETE_SEQUENCES):
        return IntentPrediction(action=Action.DELETE_TRANSACTION, confidence=RULE_CONFIDENCE, source="rules")
    return IntentPrediction(action=Action.CREATE_TRANSACTION, confidence=0.0, source="rules")


def resolve_action(prediction: IntentPrediction, threshold: float) -> Action:
    if prediction.confidence >= threshold:
        return prediction.action
    return Action.CREATE_TRANSACTION


def encode_texts(texts: list[str], vocabulary: Vocabulary, max_length: int) -> torch.Tensor:
    rows = [vocabulary.encode(feature_tokens(tokenize(text)), max_length) for text in texts]
    return torch.tensor(rows, dtype=torch.long)


def train_intent_model(samples: list[tuple[str, Action]], seed: int) -> ModelState:
    hp = dict(HYPERPARAMETERS)
    texts = [text for text, _ in samples]
    targets = [LABELS.index(action.value) for _, action in samples]
    train_texts, val_texts, train_targets, val_targets = train_test_split(
        texts, targets, test_size=0.15, random_state=seed, stratify=targets
    )

    vocabulary = Vocabulary.build((feature_tokens(tokenize(t)) for t in train_texts), hp["max_vocab"])
    hp["vocab_size"] = len(vocabulary)

    torch.manual_seed(seed)
    module = build_module(POOLED, len(vocabulary), len(LABELS), hp)
    losses = fit(
        module,
        encode_texts(train_texts, vocabulary, hp["max_length"]),
        torch.tensor(train_targets, dtype=torch.long),
        epochs=hp["epochs"],
        seed=seed,
        learning_rate=hp["learning_rate"],
    )

    probabilities = predict_proba(module, encode_texts(val_texts, vocabulary, hp["max_length"]))
    accuracy = accuracy_score(val_targets, probabilities.argmax(dim=-1).tolist())
    logger.info("[TRAIN] Intent model: %d samples, final loss %.4f, val accuracy %.3f", len(train_texts), losses[-1], accuracy)

    return ModelState(
        kind=KIND,
        architecture=POOLED,
        module=module,
        vocabulary=vocabulary,
        labels=LABELS,
        hyperparameters=hp,
        metadata={"samples": len(train_texts), "val_accuracy": float(accuracy), "seed": seed},
    )


def bootstrap_intent_model(seed: int) -> ModelState:
    return train_intent_model(generate_intent_samples(BOOTSTRAP_SAMPLES, seed), seed)


class IntentClassifier:
    def __init__(self, lifecycle: ModelLifecycle) -> None:
        self.lifecycle = lifecycle

    def predict(self, text: str) -> IntentPrediction:
        tokens = tokenize(text)
        state = self.lifecycle.state
        if state is None:
            logger.debug("[INTENT] Model not ready, using rules.")
            return rule_based_intent(tokens)
        try:
            row = state.vocabulary.encode(feature_tokens(tokens), state.max_length)
            probabilities = predict_proba(state.module, torch.tensor([row], dtype=torch.long))[0]
            index = int(probabilities.argmax())
            prediction = IntentPrediction(
                action=Action(state.labels[index]),
                confidence=min(float(probabilities[index]), 1.0),
                source="model",
            )
        except Exception:
            logger.exception("[INTENT] Inference failed, using rules.")
            return rule_based_intent(tokens)
        logger.debug("[INTENT] %s (%.2f) for '%s'", prediction.action.value, prediction.confidence, text[:50])
        return prediction
