from vn_txn_parser.models import Category, Direction

INCOME_CUES: tuple[tuple[str, ...], ...] = (
    ("nhận",),
    ("thu",),
    ("lương",),
    ("thưởng",),
    ("kiếm",),
    ("thu", "nhập"),
    ("hoàn", "tiền"),
    ("chuyển", "vào"),
)

EXPENSE_CUES: tuple[tuple[str, ...], ...] = (
    ("mua",),
    ("chi",),
    ("trả",),
    ("nạp",),
    ("mất",),
    ("tiêu",),
    ("thanh", "toán"),
)


def contains_phrase(tokens: list[str], phrase: tuple[str, ...]) -> bool:
    width = len(phrase)
    return any(tuple(tokens[i:i + width]) == phrase for i in range(len(tokens) - width + 1))


def detect_direction(tokens: list[str]) -> Direction | None:
    """IN only with an income cue and no expense cue; ``None`` when neither appears."""
    has_income = any(contains_phrase(tokens, cue) for cue in INCOME_CUES)
    has_expense = any(contains_phrase(tokens, cue) for cue in EXPENSE_CUES)
    if has_income and not has_expense:
        return Direction.IN
    if has_expense:
        return Direction.OUT
    return None


def resolve_direction(category: Category | None, detected: Direction | None) -> Direction:
    if category is not None:
        return category.type.direction
    return detected or Direction.OUT


def categories_for_direction(categories: list[Category], direction: Direction | None) -> list[Category]:
    if direction is None:
        return list(categories)
    return [category for category in categories if category.type.direction is direction]
