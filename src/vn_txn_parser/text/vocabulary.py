from collections import Counter
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

PAD_TOKEN = "<pad>"
UNK_TOKEN = "<unk>"
PAD_INDEX = 0
UNK_INDEX = 1


class Vocabulary:
    """Frozen token to index mapping with PAD at 0 and UNK at 1."""

    def __init__(self, token_to_index: Mapping[str, int]) -> None:
        if token_to_index.get(PAD_TOKEN) != PAD_INDEX or token_to_index.get(UNK_TOKEN) != UNK_INDEX:
            raise ValueError("Vocabulary must reserve index 0 for PAD and 1 for UNK")
        self._index = MappingProxyType(dict(token_to_index))

    @classmethod
    def build(cls, token_lists: Iterable[Iterable[str]], max_size: int) -> "Vocabulary":
        if max_size < 2:
            raise ValueError("max_size must leave room for PAD and UNK")
        counts: Counter[str] = Counter()
        for tokens in token_lists:
            counts.update(tokens)
        counts.pop(PAD_TOKEN, None)
        counts.pop(UNK_TOKEN, None)

        mapping = {PAD_TOKEN: PAD_INDEX, UNK_TOKEN: UNK_INDEX}
        # Counter.most_common keeps first-seen order among equal counts.
        for token, _ in counts.most_common(max_size - 2):
            mapping[token] = len(mapping)
        return cls(mapping)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, token: object) -> bool:
        return token in self._index

    def lookup(self, token: Any) -> int:
        if not isinstance(token, str):
            return UNK_INDEX
        return self._index.get(token, UNK_INDEX)

    def encode(self, tokens: list[str], max_length: int) -> list[int]:
        ids = [self.lookup(token) for token in tokens[:max_length]]
        return ids + [PAD_INDEX] * (max_length - len(ids))

    def to_dict(self) -> dict[str, int]:
        return dict(self._index)

    @classmethod
    def from_dict(cls, data: Mapping[str, int]) -> "Vocabulary":
        indices = sorted(data.values())
        if indices != list(range(len(indices))):
            raise ValueError("Vocabulary indices must be contiguous from 0")
        return cls(data)
