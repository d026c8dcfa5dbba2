"""Seeded generators of labeled utterances for cold-start training.

Each generator is a pure function of ``(count, seed)`` so bootstrap runs and
tests are reproducible.
"""
import random
from typing import NamedTuple

from vn_txn_parser.models import Action, AmountLabel
from vn_txn_parser.text.tokenizer import tokenize

STAT_PHRASES = [
    "xem thống kê", "thống kê chi tiêu", "xem báo cáo", "báo cáo chi tiêu", "tổng kết chi tiêu",
    "phân tích chi tiêu", "xem tổng chi", "xem biểu đồ chi tiêu", "tháng này tiêu bao nhiêu",
    "chi tiêu tuần này thế nào", "xem tình hình tài chính", "cho xem thống kê", "tổng kết thu chi",
    "báo cáo thu nhập", "thống kê",
]
EDIT_PHRASES = [
    "sửa giao dịch", "chỉnh sửa giao dịch", "sửa lại giao dịch", "cập nhật giao dịch",
    "thay đổi giao dịch", "sửa số tiền", "đổi danh mục giao dịch", "chỉnh lại số tiền",
    "sửa khoản vừa nhập", "cập nhật số tiền", "thay đổi danh mục", "sửa ghi chú",
]
DELETE_PHRASES = [
    "xóa giao dịch", "xoá giao dịch", "hủy giao dịch", "huỷ giao dịch", "xóa giao dịch cuối",
    "xóa khoản vừa rồi", "bỏ giao dịch này", "xóa giao dịch vừa nhập", "hủy khoản chi",
    "xóa cái vừa ghi", "xoá khoản cuối",
]
CREATE_NOTES = [
    "ăn trưa", "ăn sáng", "ăn tối", "mua cafe", "cà phê", "trà sữa", "mua 2 ly trà sữa", "đổ xăng",
    "đi grab", "tiền điện", "tiền nước", "tiền nhà", "mua quần áo", "mua giày", "đi siêu thị",
    "mua thuốc", "khám bệnh", "học phí", "mua sách", "xem phim", "nhận lương", "lương tháng này",
    "thưởng tết", "được hoàn tiền", "nạp tiền điện thoại", "trả nợ", "mua 3 cái bánh", "cơm tấm",
    "phở bò", "gửi xe", "đi chợ", "mua đồ",
]
FILLERS = [
    "giúp tôi", "nhé", "nha", "với", "đi", "cho mình", "tháng này", "hôm nay", "ơi", "giùm", "luôn",
]

INTENT_MIX: list[tuple[Action, float]] = [
    (Action.CREATE_TRANSACTION, 0.4),
    (Action.VIEW_STATS, 0.2),
    (Action.EDIT_TRANSACTION, 0.2),
    (Action.DELETE_TRANSACTION, 0.2),
]

AMOUNT_PREFIXES = [
    "mua cafe", "ăn trưa", "ăn sáng", "đổ xăng", "mua 2 ly trà sữa", "trả tiền điện", "nhận lương",
    "tiền nhà", "đi grab", "mua 3 cái bánh", "thanh toán", "chuyển khoản", "tiền học", "mua sách",
    "khám răng", "nạp thẻ", "lương tháng 7", "thưởng", "đi chợ", "hóa đơn", "",
]
AMOUNT_SUFFIXES = ["", "", "", "hôm nay", "tháng 7", "ngày 15", "cho mẹ", "nhé", "ở quán", "hôm qua"]
RECEIPT_PREFIXES = ["tổng", "thành tiền", "tổng cộng", "tổng tiền", "cộng"]
NO_AMOUNT_TEXTS = ["mua đồ", "ăn sáng", "đi chơi", "tiền nhà tháng 7", "mua 2 cái áo", "ngày 15 đi chợ"]

AMOUNT_STYLES = ("shorthand_k", "compound_million", "spelled_million", "separated", "receipt")


class AmountSample(NamedTuple):
    text: str
    tokens: list[str]
    labels: list[AmountLabel]
    amount: int | None


def _weighted_action(rng: random.Random) -> Action:
    actions = [action for action, _ in INTENT_MIX]
    weights = [weight for _, weight in INTENT_MIX]
    return rng.choices(actions, weights=weights, k=1)[0]


def _random_amount_text(rng: random.Random) -> str:
    choice = rng.random()
    if choice < 0.5:
        return f"{rng.randint(5, 999)}k"
    if choice < 0.8:
        return f"{rng.randint(1, 30)}tr{rng.randint(1, 9)}"
    return f"{rng.randint(10, 900) * 1000:,}".replace(",", ".") + "đ"


def _maybe_filler(rng: random.Random, probability: float = 0.5) -> str:
    return rng.choice(FILLERS) if rng.random() < probability else ""


def _join(*parts: str) -> str:
    return " ".join(part for part in parts if part)


def generate_intent_samples(count: int, seed: int) -> list[tuple[str, Action]]:
    rng = random.Random(seed)
    samples: list[tuple[str, Action]] = []
    for _ in range(count):
        action = _weighted_action(rng)
        if action is Action.VIEW_STATS:
            text = _join(_maybe_filler(rng, 0.3), rng.choice(STAT_PHRASES), _maybe_filler(rng))
        elif action is Action.EDIT_TRANSACTION:
            text = _join(rng.choice(EDIT_PHRASES), _maybe_filler(rng))
        elif action is Action.DELETE_TRANSACTION:
            text = _join(rng.choice(DELETE_PHRASES), _maybe_filler(rng))
        else:
            amount = _random_amount_text(rng) if rng.random() < 0.85 else ""
            text = _join(rng.choice(CREATE_NOTES), amount, _maybe_filler(rng, 0.3))
        samples.append((text, action))
    return samples


def _amount_expression(style: str, rng: random.Random) -> tuple[str, int]:
    if style == "shorthand_k":
        value = rng.randint(1, 999)
        unit = rng.choice(["k", "k", "k", " k", " nghìn", " ngàn"])
        return f"{value}{unit}", value * 1_000
    if style == "compound_million":
        base = rng.randint(1, 50)
        digits = rng.choice([1, 1, 2, 3])
        fraction = rng.randint(1, 10 ** digits - 1)
        fraction_text = str(fraction).zfill(digits)
        unit = rng.choice(["tr", "tr", " triệu "])
        value = round((base + fraction / 10 ** len(fraction_text)) * 1_000_000)
        return f"{base}{unit}{fraction_text}", value
    if style == "spelled_million":
        if rng.random() < 0.1:
            base = rng.randint(1, 9)
            return f"{base} {rng.choice(['tỷ', 'tỉ'])}", base * 1_000_000_000
        base = rng.randint(1, 99)
        unit = rng.choice([" triệu", " triệu", "tr", " tr", " triệu đồng"])
        return f"{base}{unit}", base * 1_000_000
    if style == "separated":
        value = rng.randint(1, 9_999) * 1_000
        separator = rng.choice([".", ","])
        suffix = rng.choice(["đ", "", " đồng", " vnd", "đ"])
        return f"{value:,}".replace(",", separator) + suffix, value
    inner_style = rng.choice(["shorthand_k", "separated", "compound_million"])
    return _amount_expression(inner_style, rng)


def generate_amount_samples(count: int, seed: int, no_amount_share: float = 0.1) -> list[AmountSample]:
    rng = random.Random(seed)
    samples: list[AmountSample] = []
    for _ in range(count):
        if rng.random() < no_amount_share:
            text = rng.choice(NO_AMOUNT_TEXTS)
            tokens = tokenize(text)
            samples.append(AmountSample(text, tokens, [AmountLabel.OUTSIDE] * len(tokens), None))
            continue

        style = rng.choice(AMOUNT_STYLES)
        expression, value = _amount_expression(style, rng)
        if style == "receipt":
            prefix = rng.choice(RECEIPT_PREFIXES) + rng.choice(["", ":"])
        else:
            prefix = rng.choice(AMOUNT_PREFIXES)
        suffix = rng.choice(AMOUNT_SUFFIXES)

        prefix_tokens = tokenize(prefix)
        amount_tokens = tokenize(expression)
        suffix_tokens = tokenize(suffix)
        labels = (
            [AmountLabel.OUTSIDE] * len(prefix_tokens)
            + [AmountLabel.BEGIN]
            + [AmountLabel.INSIDE] * (len(amount_tokens) - 1)
            + [AmountLabel.OUTSIDE] * len(suffix_tokens)
        )
        samples.append(
            AmountSample(
                text=_join(prefix, expression, suffix),
                tokens=prefix_tokens + amount_tokens + suffix_tokens,
                labels=labels,
                amount=value,
            )
        )
    return samples
