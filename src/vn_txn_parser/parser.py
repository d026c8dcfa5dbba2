import uuid
from dataclasses import dataclass
from datetime import date

from vn_txn_parser.classifiers.amount import AmountTagger
from vn_txn_parser.classifiers.base import RankingContext
from vn_txn_parser.classifiers.intent import IntentClassifier, resolve_action, rule_based_intent
from vn_txn_parser.classifiers.learned import LearnedTier
from vn_txn_parser.core import settings
from vn_txn_parser.domain.dates import DateMatch, extract_date
from vn_txn_parser.domain.direction import detect_direction, resolve_direction
from vn_txn_parser.domain.messages import DEFAULT_NOTE, build_message
from vn_txn_parser.logger import get_logger
from vn_txn_parser.manager import CategoryRanker
from vn_txn_parser.models import (
    Action,
    AmountExtraction,
    Category,
    Decision,
    Direction,
    IntentPrediction,
    ParsedTransactionDraft,
    Ranking,
)
from vn_txn_parser.text.tokenizer import normalize_text, tokenize_with_spans

logger = get_logger(__name__)

_NOTE_TRIM = " \t\n,.;:-–+*/()[]"


@dataclass(frozen=True)
class Utterance:
    text: str
    normalized: str
    spans: list[tuple[str, int, int]]
    date_match: DateMatch | None
    today: date

    @property
    def tokens(self) -> list[str]:
        return [token for token, _, _ in self.spans]

    @property
    def date_tokens(self) -> frozenset[int]:
        if self.date_match is None:
            return frozenset()
        return frozenset(
            i for i, (_, start, end) in enumerate(self.spans)
            if start >= self.date_match.start and end <= self.date_match.end
        )


def build_note(utterance: Utterance, amount_span: tuple[int, int] | None) -> str:
    """The utterance with the amount and date expressions cut out."""
    cuts: list[tuple[int, int]] = []
    if amount_span is not None:
        start, end = amount_span
        cuts.append((utterance.spans[start][1], utterance.spans[end - 1][2]))
    if utterance.date_match is not None:
        cuts.append((utterance.date_match.start, utterance.date_match.end))

    merged: list[tuple[int, int]] = []
    for start, end in sorted(cuts):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))

    text = utterance.normalized
    for start, end in reversed(merged):
        text = text[:start] + " " + text[end:]
    return " ".join(text.split()).strip(_NOTE_TRIM)


class TransactionParser:
    def __init__(
        self,
        intent: IntentClassifier,
        tagger: AmountTagger,
        ranker: CategoryRanker,
        *,
        intent_threshold: float | None = None,
        auto_threshold: float | None = None,
        max_alternatives: int | None = None,
    ) -> None:
        self.intent = intent
        self.tagger = tagger
        self.ranker = ranker
        self.intent_threshold = settings.intent_confidence_threshold() if intent_threshold is None else intent_threshold
        self.auto_threshold = settings.min_auto_confidence() if auto_threshold is None else auto_threshold
        self.max_alternatives = settings.max_alternatives() if max_alternatives is None else max_alternatives

    def prepare(self, text: str, today: date) -> Utterance | None:
        spans = tokenize_with_spans(text)
        if not spans:
            return None
        normalized = normalize_text(text)
        return Utterance(
            text=text,
            normalized=normalized,
            spans=spans,
            date_match=extract_date(normalized, today),
            today=today,
        )

    def assemble(
        self,
        utterance: Utterance,
        intent: IntentPrediction,
        extraction: AmountExtraction,
        categories: list[Category],
        *,
        skip_tiers: frozenset[str] = frozenset(),
        force_decision: Decision | None = None,
    ) -> ParsedTransactionDraft:
        action = resolve_action(intent, self.intent_threshold)
        note = build_note(utterance, extraction.span)
        direction = detect_direction(utterance.tokens)
        on = utterance.date_match.value if utterance.date_match else utterance.today

        ranking = Ranking()
        decision: Decision | None = None
        if action is Action.CREATE_TRANSACTION:
            context = RankingContext.build(note, categories, direction, extraction.amount)
            ranking, decision = self.ranker.rank_and_decide(context, self.auto_threshold, skip=skip_tiers)
            if force_decision is not None:
                decision = force_decision

        primary = ranking.primary
        category = next((c for c in categories if primary and c.id == primary.category_id), None)
        io = resolve_direction(category, direction)
        if category is not None:
            category_id, category_name = category.id, category.name
        else:
            category_id, category_name = "", "Thu nhập" if io is Direction.IN else "Chi tiêu"

        display_note = note or DEFAULT_NOTE
        draft = ParsedTransactionDraft(
            id=uuid.uuid4().hex,
            action=action,
            amount=extraction.amount,
            note=display_note,
            category_id=category_id,
            category_name=category_name,
            io=io,
            date=on,
            message=build_message(
                action,
                amount=extraction.amount,
                note=display_note,
                category_name=category_name,
                io=io,
                on=on,
                decision=decision,
                confidence=ranking.top_score,
            ),
            decision=decision,
            primary=primary,
            alternatives=ranking.entries[1:1 + self.max_alternatives],
            amount_confidence=extraction.confidence,
            intent_confidence=intent.confidence,
        )
        logger.info(
            "[PARSE] action=%s amount=%s io=%s category='%s' decision=%s",
            action.value,
            extraction.amount,
            io.value,
            category_name,
            decision.value if decision else "-",
        )
        return draft

    def parse(self, text: str, categories: list[Category], today: date | None = None) -> ParsedTransactionDraft | None:
        utterance = self.prepare(text, today or date.today())
        if utterance is None:
            return None
        return self.assemble(
            utterance,
            self.intent.predict(text),
            self.tagger.extract(text, utterance.date_tokens),
            categories,
        )

    def fallback_draft(self, utterance: Utterance, categories: list[Category]) -> ParsedTransactionDraft:
        """Model-free answer that always asks the user to confirm."""
        return self.assemble(
            utterance,
            rule_based_intent(utterance.tokens),
            self.tagger.deterministic(utterance.text, utterance.date_tokens, utterance.spans),
            categories,
            skip_tiers=frozenset({LearnedTier.name}),
            force_decision=Decision.ASK_WEAK_GUESSES,
        )
