from collections.abc import Callable

import pytest

from vn_txn_parser.classifiers.intent import IntentClassifier, resolve_action, rule_based_intent
from vn_txn_parser.lifecycle import ModelLifecycle
from vn_txn_parser.models import Action, IntentPrediction
from vn_txn_parser.persistence.model_state import ModelState
from vn_txn_parser.services.evaluation import evaluate_intent
from vn_txn_parser.text.tokenizer import tokenize

SEED = 42

LifecycleFactory = Callable[[str, ModelState | None], ModelLifecycle]


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("xem thống kê tháng này", Action.VIEW_STATS),
        ("báo cáo chi tiêu", Action.VIEW_STATS),
        ("sửa lại giao dịch hôm qua", Action.EDIT_TRANSACTION),
        ("cập nhật số tiền", Action.EDIT_TRANSACTION),
        ("xóa giao dịch cuối", Action.DELETE_TRANSACTION),
        ("hủy giao dịch này", Action.DELETE_TRANSACTION),
        ("ăn trưa 45k", Action.CREATE_TRANSACTION),
    ],
)
def test_rule_based_intent(text: str, expected: Action) -> None:
    prediction = rule_based_intent(tokenize(text))
    assert prediction.action is expected
    assert prediction.source == "rules"


def test_rule_based_create_has_no_confidence() -> None:
    assert rule_based_intent(tokenize("mua đồ")).confidence == 0.0


def test_resolve_action_threshold() -> None:
    stats = IntentPrediction(action=Action.VIEW_STATS, confidence=0.6, source="model")
    assert resolve_action(stats, 0.6) is Action.VIEW_STATS
    unsure = IntentPrediction(action=Action.VIEW_STATS, confidence=0.59, source="model")
    assert resolve_action(unsure, 0.6) is Action.CREATE_TRANSACTION


def test_falls_back_to_rules_without_model(ready_lifecycle: LifecycleFactory) -> None:
    classifier = IntentClassifier(ready_lifecycle("intent", None))
    prediction = classifier.predict("xem thống kê")
    assert prediction.source == "rules"
    assert prediction.action is Action.VIEW_STATS


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("xem thống kê", Action.VIEW_STATS),
        ("sửa giao dịch", Action.EDIT_TRANSACTION),
        ("xóa giao dịch cuối", Action.DELETE_TRANSACTION),
        ("ăn trưa 45k", Action.CREATE_TRANSACTION),
        ("đổ xăng 50k", Action.CREATE_TRANSACTION),
    ],
)
def test_trained_model(
    intent_state: ModelState, ready_lifecycle: LifecycleFactory, text: str, expected: Action
) -> None:
    prediction = IntentClassifier(ready_lifecycle("intent", intent_state)).predict(text)
    assert prediction.source == "model"
    assert prediction.action is expected
    assert 0.0 <= prediction.confidence <= 1.0


def test_trained_model_metadata(intent_state: ModelState) -> None:
    assert intent_state.labels == tuple(action.value for action in Action)
    assert intent_state.hyperparameters["vocab_size"] == len(intent_state.vocabulary)
    assert intent_state.metadata["val_accuracy"] > 0.9


def test_held_out_accuracy(intent_state: ModelState, ready_lifecycle: LifecycleFactory) -> None:
    classifier = IntentClassifier(ready_lifecycle("intent", intent_state))
    result = evaluate_intent(classifier, count=200, seed=SEED)
    assert result["samples"] == 200
    assert result["accuracy"] > 0.9
