"""Span-to-value conversion for Vietnamese money expressions.

Works on tokens from ``vn_txn_parser.text.tokenizer``; separators such as
``.`` and ``,`` are gone by then, so ``750.000`` arrives as ``750``, ``000``.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from vn_txn_parser.models import AmountLabel
from vn_txn_parser.text.tokenizer import is_number

THOUSAND = 1_000
MILLION = 1_000_000
BILLION = 1_000_000_000

UNIT_SCALES: dict[str, int] = {
    "k": THOUSAND,
    "nghìn": THOUSAND,
    "nghin": THOUSAND,
    "ngàn": THOUSAND,
    "ngan": THOUSAND,
    "tr": MILLION,
    "triệu": MILLION,
    "trieu": MILLION,
    "tỷ": BILLION,
    "tỉ": BILLION,
    "ty": BILLION,
    "đ": 1,
    "d": 1,
    "dong": 1,
    "đồng": 1,
    "vnd": 1,
    "vnđ": 1,
}

GROUP_SEPARATORS = frozenset({".", ","})

FALLBACK_CONFIDENCE_WITH_UNIT = 0.25
FALLBACK_CONFIDENCE_BARE = 0.1


class AmountMatch(NamedTuple):
    value: int
    start: int
    consumed: int
    has_unit: bool


def _scale(token: str) -> int | None:
    return UNIT_SCALES.get(token)


def _fractional(base: str, fraction: str, scale: int) -> int:
    value = (Decimal(base) + Decimal(fraction) / (Decimal(10) ** len(fraction))) * scale
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _attached(gaps: list[str] | None, index: int) -> bool:
    return gaps is None or gaps[index] in GROUP_SEPARATORS


def parse_amount(tokens: list[str], start: int = 0, gaps: list[str] | None = None) -> AmountMatch | None:
    """Convert the money expression beginning at ``tokens[start]``.

    ``gaps`` holds the raw text preceding each token. When given, digit
    groups and decimals are only joined across ``.`` or ``,`` so that
    ``tháng 7 15tr`` is not read as 7.15 million. Returns ``None`` when the
    leading token is not numeric or the value is not positive.
    """
    if start >= len(tokens) or not is_number(tokens[start]):
        return None

    index = start + 1
    base = tokens[start]

    # 1.500.000 / 1,500,000
    if len(base) <= 3:
        while (
            index < len(tokens)
            and is_number(tokens[index])
            and len(tokens[index]) == 3
            and _attached(gaps, index)
        ):
            base += tokens[index]
            index += 1

    # 1.5tr / 2,5 triệu
    fraction = ""
    if (
        index + 1 < len(tokens)
        and is_number(tokens[index])
        and _attached(gaps, index)
        and (_scale(tokens[index + 1]) or 0) > 1
    ):
        fraction = tokens[index]
        index += 1

    scale = _scale(tokens[index]) if index < len(tokens) else None
    has_unit = scale is not None
    if scale is None:
        value = int(base)
    else:
        index += 1
        if scale > 1 and not fraction and index < len(tokens) and is_number(tokens[index]):
            # 4tr8, 5tr873, 1 triệu 2
            fraction = tokens[index]
            index += 1
            trailing = _scale(tokens[index]) if index < len(tokens) else None
            if trailing is not None and trailing < scale:
                # 2tr500k, 1 tỷ 200 triệu
                index += 1
        elif scale > 1 and index < len(tokens) and _scale(tokens[index]) == 1:
            # 2 triệu đồng
            index += 1
        value = _fractional(base, fraction, scale) if fraction else int(base) * scale

    if value <= 0:
        return None
    return AmountMatch(value=value, start=start, consumed=index - start, has_unit=has_unit)


def span_to_value(tokens: list[str]) -> int | None:
    match = parse_amount(tokens, 0)
    return match.value if match else None


def find_amount(
    tokens: list[str],
    gaps: list[str] | None = None,
    exclude: frozenset[int] = frozenset(),
) -> AmountMatch | None:
    """Deterministic scan used when no tagged span is available.

    Candidates carrying a unit beat bare numbers, and bare numbers below
    1,000 (quantities, days, months) are ignored, as are positions listed
    in ``exclude``. The first best candidate wins.
    """
    best: AmountMatch | None = None
    best_score = -1
    index = 0
    while index < len(tokens):
        match = None if index in exclude else parse_amount(tokens, index, gaps)
        if match is None:
            index += 1
            continue
        index += match.consumed
        if not match.has_unit and match.value < THOUSAND:
            continue
        score = (2 if match.has_unit else 0) + (1 if match.value >= THOUSAND else 0)
        if score > best_score:
            best, best_score = match, score
    return best


def fallback_confidence(match: AmountMatch, ceiling: float) -> float:
    base = FALLBACK_CONFIDENCE_WITH_UNIT if match.has_unit else FALLBACK_CONFIDENCE_BARE
    return min(base, ceiling)


def labels_for_span(length: int, start: int | None, consumed: int) -> list[AmountLabel]:
    labels = [AmountLabel.OUTSIDE] * length
    if start is not None and consumed > 0:
        labels[start] = AmountLabel.BEGIN
        for position in range(start + 1, min(start + consumed, length)):
            labels[position] = AmountLabel.INSIDE
    return labels
