import asyncio
from datetime import date

import pytest

from vn_txn_parser.domain.messages import MISSING_AMOUNT_MESSAGE, VIEW_STATS_MESSAGE, WEAK_GUESSES_MESSAGE
from vn_txn_parser.integration.history import InMemoryTransactionHistory
from vn_txn_parser.models import Action, Category, Decision, Direction
from vn_txn_parser.parser import build_note
from vn_txn_parser.persistence.model_state import model_key
from vn_txn_parser.persistence.store import InMemoryKeyValueStore
from vn_txn_parser.services.parsing import ParsingService
from vn_txn_parser.training.samples import UnknownSampleError

TODAY = date(2024, 7, 20)


@pytest.mark.anyio
async def test_lunch_is_recorded_automatically(service: ParsingService, categories: list[Category]) -> None:
    await service.warm_up()
    draft = await service.parse_utterance("ăn trưa 45k", categories, today=TODAY)

    assert draft is not None
    assert draft.action is Action.CREATE_TRANSACTION
    assert draft.amount == 45_000
    assert draft.note == "ăn trưa"
    assert draft.category_id == "food"
    assert draft.io is Direction.OUT
    assert draft.decision is Decision.AUTO_ACT
    assert draft.primary.source == "keywords"
    assert draft.primary.confidence == pytest.approx(0.62)
    assert draft.date == TODAY
    assert draft.message == "Đã ghi chi 45.000đ cho ăn trưa vào 20/07/2024. Phân loại: Ăn uống (62% chắc chắn)."
    assert len(draft.alternatives) <= 3
    assert all(alt.category_id != "food" for alt in draft.alternatives)

    sample = service.training_log.get(draft.id)
    assert sample.predicted_category_id == "food"
    assert sample.chosen_category_id is None


@pytest.mark.anyio
async def test_salary_is_income(service: ParsingService, categories: list[Category]) -> None:
    await service.warm_up()
    draft = await service.parse_utterance("nhận lương 15tr", categories, today=TODAY)

    assert draft.amount == 15_000_000
    assert draft.io is Direction.IN
    assert draft.category_id == "salary"
    assert draft.decision is Decision.AUTO_ACT
    assert draft.message.startswith("Đã ghi thu 15.000.000đ")
    assert {alt.category_id for alt in draft.alternatives} <= {"bonus"}


@pytest.mark.anyio
async def test_missing_amount_asks_for_it(service: ParsingService, categories: list[Category]) -> None:
    await service.warm_up()
    draft = await service.parse_utterance("mua đồ", categories, today=TODAY)

    assert draft.action is Action.CREATE_TRANSACTION
    assert draft.amount is None
    assert draft.message == MISSING_AMOUNT_MESSAGE


@pytest.mark.anyio
async def test_stats_request(service: ParsingService, categories: list[Category]) -> None:
    await service.warm_up()
    draft = await service.parse_utterance("xem thống kê tháng này", categories, today=TODAY)

    assert draft.action is Action.VIEW_STATS
    assert draft.intent_confidence >= 0.6
    assert draft.message == VIEW_STATS_MESSAGE
    assert draft.decision is None
    assert service.training_log.get(draft.id) is None


@pytest.mark.anyio
async def test_relative_date_is_applied(service: ParsingService, categories: list[Category]) -> None:
    await service.warm_up()
    draft = await service.parse_utterance("ăn tối hôm qua 120k", categories, today=TODAY)

    assert draft.date == date(2024, 7, 19)
    assert draft.amount == 120_000
    assert "hôm qua" not in draft.note


@pytest.mark.anyio
async def test_numeric_date_is_not_an_amount(service: ParsingService, categories: list[Category]) -> None:
    await service.warm_up()
    draft = await service.parse_utterance("15/7 mua sách", categories, today=TODAY)

    assert draft.amount is None
    assert draft.note == "mua sách"
    assert draft.date == date(2024, 7, 15)
    assert draft.message == MISSING_AMOUNT_MESSAGE


@pytest.mark.anyio
async def test_amount_next_to_numeric_date(service: ParsingService, categories: list[Category]) -> None:
    await service.warm_up()
    draft = await service.parse_utterance("cafe 15/7 45k", categories, today=TODAY)

    assert draft.amount == 45_000
    assert draft.note == "cafe"
    assert draft.date == date(2024, 7, 15)


@pytest.mark.anyio
async def test_unparseable_input_returns_none(service: ParsingService, categories: list[Category]) -> None:
    assert await service.parse_utterance("  ?! ", categories) is None
    assert await service.parse_utterance("", categories) is None
    await service.aclose()


@pytest.mark.anyio
async def test_correction_is_learned(service: ParsingService, categories: list[Category]) -> None:
    await service.warm_up()
    corrections = [
        ("đi siêu thị 200k", "shopping"),
        ("siêu thị cuối tuần 350k", "shopping"),
        ("mua đồ siêu thị 120k", "shopping"),
        ("grab về nhà 45k", "transport"),
        ("đi grab 30k", "transport"),
        ("grab đi làm 50k", "transport"),
    ]

    first = await service.parse_utterance(corrections[0][0], categories, today=TODAY)
    assert first.primary.source != "learned"
    for text, chosen in corrections:
        draft = first if text == corrections[0][0] else await service.parse_utterance(text, categories, today=TODAY)
        sample = await service.record_correction(draft.id, chosen)
        assert sample.predicted_category_id == draft.primary.category_id
        assert sample.chosen_category_id == chosen

    await asyncio.gather(*list(service.learning.background_tasks))
    report = await service.retrain()

    assert report.status == "trained"
    assert report.samples == 6
    assert service.repository.store.get(model_key("category")) is not None

    draft = await service.parse_utterance("đi siêu thị 90k", categories, today=TODAY)
    assert draft.primary.source == "learned"
    assert draft.category_id == "shopping"


@pytest.mark.anyio
async def test_differing_correction_schedules_background_retrain(
    service: ParsingService, categories: list[Category]
) -> None:
    await service.warm_up()
    draft = await service.parse_utterance("ăn trưa 45k", categories, today=TODAY)

    await service.record_correction(draft.id, "shopping")

    assert service.learning.background_tasks
    await asyncio.gather(*list(service.learning.background_tasks))
    assert service.category_lifecycle.retrain_runs == 1
    assert service.category_lifecycle.state is None


@pytest.mark.anyio
async def test_correction_for_unknown_draft(service: ParsingService) -> None:
    with pytest.raises(UnknownSampleError):
        await service.record_correction("nope", "food")


@pytest.mark.anyio
async def test_timeout_falls_back_to_asking(
    seeded_store: InMemoryKeyValueStore,
    history: InMemoryTransactionHistory,
    categories: list[Category],
) -> None:
    service = ParsingService(seeded_store, history, seed=42, timeout=0.0)
    await service.warm_up()

    draft = await service.parse_utterance("ăn trưa 45k", categories, today=TODAY)

    assert draft.amount == 45_000
    assert draft.amount_confidence <= 0.25
    assert draft.decision is Decision.ASK_WEAK_GUESSES
    assert draft.message == WEAK_GUESSES_MESSAGE
    await service.aclose()


def test_sync_parser_before_models_are_ready(service: ParsingService, categories: list[Category]) -> None:
    draft = service.parser.parse("ăn trưa 45k", categories, today=TODAY)

    assert draft.amount == 45_000
    assert draft.amount_confidence <= 0.25
    assert draft.intent_confidence == 0.0
    assert draft.category_id == "food"


def test_build_note_cuts_amount_and_date(service: ParsingService) -> None:
    utterance = service.parser.prepare("cafe 15/7 với bạn, 45k", TODAY)
    assert build_note(utterance, (5, 7)) == "cafe với bạn"


@pytest.mark.parametrize(
    ("text", "amount_span", "expected"),
    [
        ("15/7 mua sách", (0, 2), "mua sách"),
        ("cafe 15/7 45k", (1, 5), "cafe"),
        ("cafe 15/7 45k", (2, 5), "cafe"),
    ],
)
def test_build_note_merges_overlapping_cuts(
    service: ParsingService, text: str, amount_span: tuple[int, int], expected: str
) -> None:
    utterance = service.parser.prepare(text, TODAY)
    assert build_note(utterance, amount_span) == expected


@pytest.mark.anyio
async def test_status_reports_every_model(service: ParsingService) -> None:
    await service.warm_up()
    status = service.status()

    assert [model["kind"] for model in status["models"]] == ["intent", "amount", "category"]
    assert all(model["status"] == "ready" for model in status["models"])
    assert [model["trained"] for model in status["models"]] == [True, True, False]
    assert status["training_samples"] == 0
