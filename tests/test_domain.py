from datetime import date

from vn_txn_parser.domain.dates import extract_date
from vn_txn_parser.domain.direction import categories_for_direction, detect_direction, resolve_direction
from vn_txn_parser.domain.messages import (
    DELETE_MESSAGE,
    MISSING_AMOUNT_MESSAGE,
    VIEW_STATS_MESSAGE,
    WEAK_GUESSES_MESSAGE,
    build_message,
    format_amount,
)
from vn_txn_parser.models import Action, Category, CategoryType, Decision, Direction
from vn_txn_parser.text.tokenizer import tokenize

TODAY = date(2024, 7, 20)


def test_explicit_date() -> None:
    match = extract_date("ăn tối 15/7 200k", TODAY)
    assert match is not None
    assert match.value == date(2024, 7, 15)
    assert "ăn tối 15/7 200k"[match.start:match.end] == "15/7"


def test_explicit_date_with_year() -> None:
    assert extract_date("tiền nhà 01/06/2023", TODAY).value == date(2023, 6, 1)
    assert extract_date("tiền nhà 01/06/23", TODAY).value == date(2023, 6, 1)


def test_invalid_date_is_ignored() -> None:
    assert extract_date("mã 45/99", TODAY) is None


def test_relative_dates() -> None:
    assert extract_date("ăn sáng hôm qua 30k", TODAY).value == date(2024, 7, 19)
    assert extract_date("hôm kia đổ xăng", TODAY).value == date(2024, 7, 18)
    assert extract_date("3 ngày trước mua sách", TODAY).value == date(2024, 7, 17)
    assert extract_date("ăn trưa 45k", TODAY) is None


def test_detect_direction() -> None:
    assert detect_direction(tokenize("nhận lương 15tr")) is Direction.IN
    assert detect_direction(tokenize("mua cafe 30k")) is Direction.OUT
    assert detect_direction(tokenize("nhận hàng trả tiền 200k")) is Direction.OUT
    assert detect_direction(tokenize("ăn trưa 45k")) is None


def test_resolve_direction_prefers_category() -> None:
    salary = Category(id="salary", name="Lương", type=CategoryType.INCOME)
    assert resolve_direction(salary, Direction.OUT) is Direction.IN
    assert resolve_direction(None, Direction.IN) is Direction.IN
    assert resolve_direction(None, None) is Direction.OUT


def test_categories_for_direction(categories: list[Category]) -> None:
    income = categories_for_direction(categories, Direction.IN)
    assert [c.id for c in income] == ["salary", "bonus"]
    assert categories_for_direction(categories, None) == categories


def test_format_amount() -> None:
    assert format_amount(45_000) == "45.000"
    assert format_amount(15_000_000) == "15.000.000"


def _message(action: Action, amount: int | None, decision: Decision | None, confidence: float) -> str:
    return build_message(
        action,
        amount=amount,
        note="ăn trưa",
        category_name="Ăn uống",
        io=Direction.OUT,
        on=TODAY,
        decision=decision,
        confidence=confidence,
    )


def test_messages_for_non_create_actions() -> None:
    assert _message(Action.VIEW_STATS, None, None, 0.0) == VIEW_STATS_MESSAGE
    assert _message(Action.DELETE_TRANSACTION, 45_000, None, 0.0) == DELETE_MESSAGE


def test_missing_amount_message() -> None:
    assert _message(Action.CREATE_TRANSACTION, None, Decision.AUTO_ACT, 0.9) == MISSING_AMOUNT_MESSAGE


def test_auto_act_message() -> None:
    confident = _message(Action.CREATE_TRANSACTION, 45_000, Decision.AUTO_ACT, 0.9)
    assert confident == "Đã ghi chi 45.000đ cho ăn trưa vào 20/07/2024. Phân loại: Ăn uống ✓."
    unsure = _message(Action.CREATE_TRANSACTION, 45_000, Decision.AUTO_ACT, 0.62)
    assert "(62% chắc chắn)" in unsure


def test_asking_messages() -> None:
    assert "(45%)" in _message(Action.CREATE_TRANSACTION, 45_000, Decision.ASK_GOOD_GUESSES, 0.45)
    assert _message(Action.CREATE_TRANSACTION, 45_000, Decision.ASK_WEAK_GUESSES, 0.3) == WEAK_GUESSES_MESSAGE
