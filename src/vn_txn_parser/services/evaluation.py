from collections import Counter
from typing import Any

from sklearn.metrics import accuracy_score, classification_report

from vn_txn_parser.classifiers.amount import AmountTagger
from vn_txn_parser.classifiers.intent import IntentClassifier
from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import TrainingSample
from vn_txn_parser.services.parsing import ParsingService
from vn_txn_parser.training.synthetic import generate_amount_samples, generate_intent_samples

logger = get_logger(__name__)

HELD_OUT_SEED_OFFSET = 1000


def evaluate_intent(classifier: IntentClassifier, count: int, seed: int) -> dict[str, Any]:
    samples = generate_intent_samples(count, seed + HELD_OUT_SEED_OFFSET)
    expected = [action.value for _, action in samples]
    predicted = [classifier.predict(text).action.value for text, _ in samples]
    return {
        "samples": len(samples),
        "accuracy": float(accuracy_score(expected, predicted)),
        "report": classification_report(expected, predicted, output_dict=True, zero_division=0),
    }


def evaluate_amounts(tagger: AmountTagger, count: int, seed: int) -> dict[str, Any]:
    samples = generate_amount_samples(count, seed + HELD_OUT_SEED_OFFSET)
    exact = 0
    by_source: Counter[str] = Counter()
    for sample in samples:
        extraction = tagger.extract(sample.text)
        by_source[extraction.source] += 1
        if extraction.amount == sample.amount:
            exact += 1
    return {
        "samples": len(samples),
        "exact_match": exact / len(samples) if samples else 0.0,
        "sources": dict(by_source),
    }


def summarize_training_log(samples: list[TrainingSample], top: int = 5) -> dict[str, Any]:
    """Acceptance rate and most frequent predicted -> chosen confusions."""
    reviewed = [s for s in samples if s.chosen_category_id]
    accepted = sum(1 for s in reviewed if s.chosen_category_id == s.predicted_category_id)
    confusions = Counter(
        (s.predicted_category_id or "", s.chosen_category_id)
        for s in reviewed
        if s.chosen_category_id != s.predicted_category_id
    )
    return {
        "logged": len(samples),
        "reviewed": len(reviewed),
        "acceptance_rate": accepted / len(reviewed) if reviewed else None,
        "confusions": [
            {"predicted": predicted, "chosen": chosen, "count": count}
            for (predicted, chosen), count in confusions.most_common(top)
        ],
    }


def evaluate_service(service: ParsingService, count: int = 200) -> dict[str, Any]:
    result = {
        "intent": evaluate_intent(service.parser.intent, count, service.seed),
        "amount": evaluate_amounts(service.parser.tagger, count, service.seed),
        "training_log": summarize_training_log(service.training_log.all()),
    }
    logger.info(
        "[TRAIN] Evaluation: intent accuracy %.3f, amount exact match %.3f",
        result["intent"]["accuracy"],
        result["amount"]["exact_match"],
    )
    return result
