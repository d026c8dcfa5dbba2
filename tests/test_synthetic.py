from vn_txn_parser.domain.amounts import span_to_value
from vn_txn_parser.models import Action, AmountLabel
from vn_txn_parser.text.tokenizer import tokenize
from vn_txn_parser.training.synthetic import generate_amount_samples, generate_intent_samples


def test_intent_samples_are_seeded() -> None:
    assert generate_intent_samples(50, seed=7) == generate_intent_samples(50, seed=7)
    assert generate_intent_samples(50, seed=7) != generate_intent_samples(50, seed=8)


def test_intent_samples_cover_every_action() -> None:
    actions = {action for _, action in generate_intent_samples(400, seed=1)}
    assert actions == set(Action)


def test_amount_samples_tokens_match_text() -> None:
    for sample in generate_amount_samples(300, seed=3):
        assert tokenize(sample.text) == sample.tokens
        assert len(sample.labels) == len(sample.tokens)


def test_amount_sample_spans_convert_to_their_value() -> None:
    for sample in generate_amount_samples(300, seed=5):
        if sample.amount is None:
            assert set(sample.labels) == {AmountLabel.OUTSIDE}
            continue
        start = sample.labels.index(AmountLabel.BEGIN)
        end = start + 1
        while end < len(sample.labels) and sample.labels[end] is AmountLabel.INSIDE:
            end += 1
        assert sample.labels.count(AmountLabel.BEGIN) == 1
        assert span_to_value(sample.tokens[start:end]) == sample.amount


def test_amount_samples_are_seeded() -> None:
    assert generate_amount_samples(30, seed=11) == generate_amount_samples(30, seed=11)


def test_no_amount_share() -> None:
    samples = generate_amount_samples(100, seed=2, no_amount_share=1.0)
    assert all(sample.amount is None for sample in samples)
