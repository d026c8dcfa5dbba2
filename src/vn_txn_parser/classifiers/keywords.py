from rapidfuzz import fuzz

from vn_txn_parser.core import settings
from vn_txn_parser.domain.direction import categories_for_direction
from vn_txn_parser.logger import get_logger
from vn_txn_parser.models import Category, CategoryType, Direction, Prediction
from vn_txn_parser.text.tokenizer import fold_diacritics, tokenize

from .base import CategoryTier, RankingContext

logger = get_logger(__name__)

# Pinned calibration values.
EXACT_NAME_SCORE = 0.95
KEYWORD_WEIGHT = 0.30
TOKEN_OVERLAP_WEIGHT = 0.40
JACCARD_WEIGHT = 0.15
NGRAM_WEIGHT = 0.10
DIRECTION_WEIGHT = 0.05

FUZZY_MIN_KEYWORD_LENGTH = 5
FUZZY_MIN_RATIO = 90.0
MIN_CONTAINED_LENGTH = 3

# theme -> (cues found in category names, cues found in notes)
_THEMES: dict[str, tuple[list[str], list[str]]] = {
    "food": (
        ["ăn uống", "ăn", "uống", "đồ ăn", "thực phẩm", "ẩm thực", "cà phê", "cafe", "food"],
        ["ăn", "uống", "trà", "trà sữa", "cà phê", "cafe", "coffee", "quán", "nhà hàng", "buffet",
         "cơm", "phở", "bún", "bánh", "lẩu", "nước", "sáng", "trưa", "tối", "đồ ăn", "đi chợ"],
    ),
    "transport": (
        ["di chuyển", "đi lại", "xe", "giao thông", "xăng", "transport"],
        ["taxi", "grab", "be", "xe", "xăng", "dầu", "bus", "xe buýt", "tàu", "gửi xe", "vé xe",
         "đổ xăng", "sửa xe", "rửa xe"],
    ),
    "shopping": (
        ["mua sắm", "shopping", "quần áo", "thời trang"],
        ["mua", "shopping", "quần áo", "áo", "quần", "giày", "túi", "shopee", "lazada", "tiki", "mỹ phẩm"],
    ),
    "bills": (
        ["hóa đơn", "hoá đơn", "điện nước", "tiện ích", "bills"],
        ["điện", "nước", "internet", "wifi", "mạng", "điện thoại", "gas", "truyền hình", "hóa đơn", "hoá đơn"],
    ),
    "housing": (
        ["nhà ở", "nhà cửa", "thuê nhà", "nhà", "housing"],
        ["thuê nhà", "tiền nhà", "phòng trọ", "trọ", "chung cư", "sửa nhà", "nội thất"],
    ),
    "pets": (
        ["thú cưng", "vật nuôi", "pets"],
        ["chó", "mèo", "thú cưng", "pate", "hạt", "thú y"],
    ),
    "health": (
        ["sức khỏe", "sức khoẻ", "y tế", "health"],
        ["thuốc", "bệnh viện", "khám", "bác sĩ", "nha khoa", "viện phí", "bảo hiểm y tế", "gym"],
    ),
    "education": (
        ["học tập", "giáo dục", "học", "education"],
        ["sách", "học", "học phí", "khóa học", "khoá học", "trường", "vở", "bút"],
    ),
    "entertainment": (
        ["giải trí", "du lịch", "vui chơi", "entertainment"],
        ["phim", "game", "vui chơi", "karaoke", "bar", "du lịch", "tour", "khách sạn", "resort",
         "vé máy bay", "netflix", "spotify", "concert"],
    ),
    "income": (
        ["thu nhập", "lương", "thưởng", "income"],
        ["lương", "thưởng", "bonus", "nhận", "thu nhập", "tiền lãi", "lãi", "hoàn tiền", "kiếm"],
    ),
}


def _fold_phrases(phrases: list[str]) -> list[str]:
    return [" ".join(tokenize(fold_diacritics(phrase))) for phrase in phrases]


THEMES: dict[str, tuple[list[str], list[str]]] = {
    theme: (_fold_phrases(name_cues), _fold_phrases(keywords))
    for theme, (name_cues, keywords) in _THEMES.items()
}


def _contains_words(haystack: str, needle: str) -> bool:
    return bool(needle) and f" {needle} " in f" {haystack} "


def themes_for(category_name: str) -> list[str]:
    folded = " ".join(tokenize(fold_diacritics(category_name)))
    return [theme for theme, (name_cues, _) in THEMES.items() if any(_contains_words(folded, cue) for cue in name_cues)]


def keyword_hit(folded_note: str, themes: list[str]) -> float:
    for theme in themes:
        for keyword in THEMES[theme][1]:
            if _contains_words(folded_note, keyword):
                return 1.0
            if len(keyword) >= FUZZY_MIN_KEYWORD_LENGTH and fuzz.partial_ratio(keyword, folded_note) >= FUZZY_MIN_RATIO:
                return 1.0
    return 0.0


def _token_matches(name_token: str, note_token: str) -> bool:
    if name_token == note_token:
        return True
    shorter, longer = sorted((name_token, note_token), key=len)
    return len(shorter) >= MIN_CONTAINED_LENGTH and shorter in longer


def token_overlap(note_tokens: list[str], name_tokens: list[str]) -> float:
    """Share of category-name tokens equal to, or containing/contained in, a note token."""
    if not name_tokens:
        return 0.0
    matched = sum(
        1 for name_token in name_tokens
        if any(_token_matches(name_token, token) for token in note_tokens)
    )
    return matched / len(name_tokens)


def jaccard(note_tokens: list[str], name_tokens: list[str]) -> float:
    left, right = set(note_tokens), set(name_tokens)
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def char_ngrams(text: str, n: int = 3) -> set[str]:
    if len(text) < n:
        return {text} if text else set()
    return {text[i:i + n] for i in range(len(text) - n + 1)}


def ngram_dice(left: str, right: str, n: int = 3) -> float:
    left_grams, right_grams = char_ngrams(left, n), char_ngrams(right, n)
    if not left_grams or not right_grams:
        return 0.0
    return 2 * len(left_grams & right_grams) / (len(left_grams) + len(right_grams))


def direction_boost(category: Category, direction: Direction | None) -> float:
    if direction is None:
        return 1.0 if category.type is CategoryType.EXPENSE else 0.0
    return 1.0 if category.type.direction is direction else 0.0


def score_category(note_tokens: list[str], category: Category, direction: Direction | None) -> float:
    folded_note = " ".join(note_tokens)
    name_tokens = tokenize(fold_diacritics(category.name))
    folded_name = " ".join(name_tokens)
    if not folded_note:
        return 0.0
    if _contains_words(folded_note, folded_name):
        return EXACT_NAME_SCORE

    score = (
        KEYWORD_WEIGHT * keyword_hit(folded_note, themes_for(category.name))
        + TOKEN_OVERLAP_WEIGHT * token_overlap(note_tokens, name_tokens)
        + JACCARD_WEIGHT * jaccard(note_tokens, name_tokens)
        + NGRAM_WEIGHT * ngram_dice(folded_note, folded_name)
        + DIRECTION_WEIGHT * direction_boost(category, direction)
    )
    return round(min(score, 1.0), 6)


class KeywordTier(CategoryTier):
    name = "keywords"

    def __init__(self, min_score: float | None = None) -> None:
        self.min_score = settings.heuristic_min_score() if min_score is None else min_score

    def rank(self, context: RankingContext) -> list[Prediction]:
        candidates = categories_for_direction(context.categories, context.direction) or context.categories
        note_tokens = [fold_diacritics(token) for token in context.tokens]

        predictions = []
        for category in candidates:
            score = score_category(note_tokens, category, context.direction)
            if score >= self.min_score:
                predictions.append(
                    Prediction(
                        category_id=category.id,
                        category_name=category.name,
                        confidence=score,
                        source=self.name,
                    )
                )
        logger.debug("[CATEGORY] Keyword tier scored %d/%d categories", len(predictions), len(candidates))
        return predictions
