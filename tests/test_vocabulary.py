import pytest

from vn_txn_parser.text.vocabulary import PAD_INDEX, PAD_TOKEN, UNK_INDEX, UNK_TOKEN, Vocabulary


def test_reserved_indices() -> None:
    vocabulary = Vocabulary.build([["a"]], max_size=10)
    assert vocabulary.lookup(PAD_TOKEN) == PAD_INDEX == 0
    assert vocabulary.lookup(UNK_TOKEN) == UNK_INDEX == 1


def test_orders_by_frequency_then_first_seen() -> None:
    vocabulary = Vocabulary.build([["b", "a", "c"], ["c", "a"], ["c"]], max_size=10)
    mapping = vocabulary.to_dict()
    assert mapping["c"] == 2
    assert mapping["a"] == 3
    assert mapping["b"] == 4


def test_respects_max_size() -> None:
    vocabulary = Vocabulary.build([["a", "a", "b", "c"]], max_size=3)
    assert len(vocabulary) == 3
    assert "a" in vocabulary
    assert vocabulary.lookup("b") == UNK_INDEX


def test_rejects_too_small_max_size() -> None:
    with pytest.raises(ValueError):
        Vocabulary.build([["a"]], max_size=1)


def test_lookup_never_raises() -> None:
    vocabulary = Vocabulary.build([["a"]], max_size=10)
    assert vocabulary.lookup("unseen") == UNK_INDEX
    assert vocabulary.lookup("") == UNK_INDEX
    assert vocabulary.lookup(None) == UNK_INDEX
    assert vocabulary.lookup(42) == UNK_INDEX


def test_encode_pads_and_truncates() -> None:
    vocabulary = Vocabulary.build([["a", "b"]], max_size=10)
    assert vocabulary.encode(["a"], 3) == [vocabulary.lookup("a"), PAD_INDEX, PAD_INDEX]
    assert vocabulary.encode(["a", "b", "x", "a"], 3) == [
        vocabulary.lookup("a"),
        vocabulary.lookup("b"),
        UNK_INDEX,
    ]


def test_dict_round_trip() -> None:
    vocabulary = Vocabulary.build([["mua", "cafe"], ["mua"]], max_size=10)
    restored = Vocabulary.from_dict(vocabulary.to_dict())
    assert restored.to_dict() == vocabulary.to_dict()


def test_from_dict_rejects_gaps() -> None:
    with pytest.raises(ValueError):
        Vocabulary.from_dict({PAD_TOKEN: 0, UNK_TOKEN: 1, "a": 3})
