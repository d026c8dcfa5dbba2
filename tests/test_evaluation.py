from datetime import datetime, timezone

from vn_txn_parser.models import Direction, TrainingSample
from vn_txn_parser.services.evaluation import summarize_training_log


def _sample(sample_id: str, predicted: str | None, chosen: str | None) -> TrainingSample:
    return TrainingSample(
        id=sample_id,
        text="x 10k",
        note="x",
        amount=10_000,
        io=Direction.OUT,
        predicted_category_id=predicted,
        chosen_category_id=chosen,
        created_at=datetime(2024, 7, 20, tzinfo=timezone.utc),
    )


def test_summary_of_empty_log() -> None:
    summary = summarize_training_log([])
    assert summary == {"logged": 0, "reviewed": 0, "acceptance_rate": None, "confusions": []}


def test_summary_counts_acceptance_and_confusions() -> None:
    samples = [
        _sample("1", "food", "food"),
        _sample("2", "shopping", "food"),
        _sample("3", "shopping", "food"),
        _sample("4", "bills", "transport"),
        _sample("5", "food", None),
    ]
    summary = summarize_training_log(samples, top=1)

    assert summary["logged"] == 5
    assert summary["reviewed"] == 4
    assert summary["acceptance_rate"] == 0.25
    assert summary["confusions"] == [{"predicted": "shopping", "chosen": "food", "count": 2}]
