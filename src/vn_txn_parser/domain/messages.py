from datetime import date

from vn_txn_parser.models import Action, Decision, Direction

CONFIDENT_DISPLAY_THRESHOLD = 0.75

VIEW_STATS_MESSAGE = "Bạn muốn xem thống kê chi tiêu"
EDIT_MESSAGE = "Bạn muốn chỉnh sửa giao dịch"
DELETE_MESSAGE = "Bạn muốn xóa giao dịch"
MISSING_AMOUNT_MESSAGE = "Vui lòng cho biết số tiền cụ thể nhé!"
WEAK_GUESSES_MESSAGE = "Không thể xác định danh mục chính xác. Bạn muốn phân loại vào:"
DEFAULT_NOTE = "Giao dịch"


def format_amount(amount: int) -> str:
    return f"{amount:,}".replace(",", ".")


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def percent(confidence: float) -> int:
    return round(confidence * 100)


def build_message(
    action: Action,
    *,
    amount: int | None,
    note: str,
    category_name: str,
    io: Direction,
    on: date,
    decision: Decision | None,
    confidence: float,
) -> str:
    if action is Action.VIEW_STATS:
        return VIEW_STATS_MESSAGE
    if action is Action.EDIT_TRANSACTION:
        return EDIT_MESSAGE
    if action is Action.DELETE_TRANSACTION:
        return DELETE_MESSAGE
    if amount is None:
        return MISSING_AMOUNT_MESSAGE

    if decision is Decision.ASK_GOOD_GUESSES:
        return f"Độ tin cậy thấp ({percent(confidence)}%). Bạn muốn phân loại vào:"
    if decision is Decision.ASK_WEAK_GUESSES or decision is None:
        return WEAK_GUESSES_MESSAGE

    verb = "thu" if io is Direction.IN else "chi"
    marker = "✓" if confidence >= CONFIDENT_DISPLAY_THRESHOLD else f"({percent(confidence)}% chắc chắn)"
    return (
        f"Đã ghi {verb} {format_amount(amount)}đ cho {note} vào {format_date(on)}. "
        f"Phân loại: {category_name} {marker}."
    )
