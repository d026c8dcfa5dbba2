"""Vietnamese-aware tokenization shared by every model in the pipeline.

Training and inference must go through the same functions here; a model
fed tokens produced any other way silently loses accuracy.
"""
import unicodedata
from itertools import groupby

WORD = "word"
NUMBER = "number"

NUMBER_FEATURE_CAP = 7


def normalize_text(text: str) -> str:
    return unicodedata.normalize("NFC", text)


def _char_class(ch: str) -> str | None:
    if "0" <= ch <= "9":
        return NUMBER
    # Stray combining marks stay attached to the letter run they follow.
    if ch.isalpha() or unicodedata.category(ch).startswith("M"):
        return WORD
    return None


def tokenize_with_spans(text: str) -> list[tuple[str, int, int]]:
    """Return ``(token, start, end)`` triples indexing into ``normalize_text(text)``.

    A token is flushed whenever the character class changes, so mixed runs
    such as ``4tr8`` come out as ``4``, ``tr``, ``8``.
    """
    normalized = normalize_text(text)
    spans: list[tuple[str, int, int]] = []
    position = 0
    for char_class, run in groupby(normalized, key=_char_class):
        length = len(list(run))
        if char_class is not None:
            token = normalized[position:position + length].lower()
            spans.append((token, position, position + length))
        position += length
    return spans


def tokenize(text: str) -> list[str]:
    return [token for token, _, _ in tokenize_with_spans(text)]


def is_number(token: str) -> bool:
    return bool(token) and all("0" <= ch <= "9" for ch in token)


def feature_tokens(tokens: list[str]) -> list[str]:
    """Replace digits with a shape marker so unseen numbers share one embedding."""
    return [
        f"<num{min(len(token), NUMBER_FEATURE_CAP)}>" if is_number(token) else token
        for token in tokens
    ]


def fold_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.category(ch).startswith("M"))
    return stripped.replace("đ", "d")


def token_gaps(text: str, spans: list[tuple[str, int, int]] | None = None) -> list[str]:
    """Raw text preceding each token, e.g. ``"."`` before ``000`` in ``750.000``."""
    normalized = normalize_text(text)
    if spans is None:
        spans = tokenize_with_spans(text)
    gaps = []
    previous_end = 0
    for _, start, end in spans:
        gaps.append(normalized[previous_end:start])
        previous_end = end
    return gaps
