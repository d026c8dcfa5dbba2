"""Small torch modules and the fitting loop shared by the three models."""
from typing import Any

import torch
import torch.nn as nn
from torch.nn.utils.rnn import pack_padded_sequence, pad_packed_sequence

from vn_txn_parser.text.vocabulary import PAD_INDEX

IGNORE_INDEX = -100

POOLED = "pooled"
BILSTM = "bilstm"


class PooledTextClassifier(nn.Module):
    """Embedding, masked mean-pool, dense + ReLU, dropout, output logits."""

    def __init__(
        self,
        vocab_size: int,
        num_labels: int,
        embedding_dim: int = 32,
        hidden_units: int = 64,
        dropout: float = 0.15,
    ) -> None:
        super().__init__()
        self.embedding = nn.Embedding(vocab_size, embedding_dim, padding_idx=PAD_INDEX)
        self.hidden = nn.Linear(embedding_dim, hidden_units)
        self.relu = nn.ReLU()
        self.dropout = nn.Dropout(dropout)
        self.output = nn.Linear(hidden_units, num_labels)

    def forward(self, token_ids: torch.Tensor) -> torch.Tensor:
        mask = (token_ids != PAD_INDEX).unsqueeze(-1).float()
        embedded = self.embedding(token_ids) * mask
        pooled = embedded.sum(dim=1) / mask.sum(dim=1).clamp(min=1.0)
        return self.output(self.dropout(self.relu(self.hidden(pooled))))


class BiLstmTagger(nn.Module):
    """Embedding, bidirectional LSTM, per-token output logits."""

    def __init__(
        self,
        vocab_size: int,
        num_labels: int,
        embedding_dim: int = 32,
        hidden_units: int = 32,
    ) -> None:
        super().__init__()
        self.embedding = nn.Embedding(vocab_size, embedding_dim, padding_idx=PAD_INDEX)
        self.lstm = nn.LSTM(embedding_dim, hidden_units, batch_first=True, bidirectional=True)
        self.output = nn.Linear(2 * hidden_units, num_labels)

    def forward(self, token_ids: torch.Tensor) -> torch.Tensor:
        lengths = (token_ids != PAD_INDEX).sum(dim=1).clamp(min=1)
        packed = pack_padded_sequence(
            self.embedding(token_ids),
            lengths.cpu(),
            batch_first=True,
            enforce_sorted=False,
        )
        encoded, _ = self.lstm(packed)
        encoded, _ = pad_packed_sequence(encoded, batch_first=True, total_length=token_ids.size(1))
        return self.output(encoded)


def build_module(
    architecture: str,
    vocab_size: int,
    num_labels: int,
    hyperparameters: dict[str, Any],
) -> nn.Module:
    if architecture == POOLED:
        return PooledTextClassifier(
            vocab_size,
            num_labels,
            embedding_dim=hyperparameters["embedding_dim"],
            hidden_units=hyperparameters["hidden_units"],
            dropout=hyperparameters.get("dropout", 0.15),
        )
    if architecture == BILSTM:
        return BiLstmTagger(
            vocab_size,
            num_labels,
            embedding_dim=hyperparameters["embedding_dim"],
            hidden_units=hyperparameters["hidden_units"],
        )
    raise ValueError(f"Unknown architecture: {architecture}")


def fit(
    model: nn.Module,
    inputs: torch.Tensor,
    targets: torch.Tensor,
    *,
    epochs: int,
    seed: int,
    batch_size: int = 32,
    learning_rate: float = 0.01,
) -> list[float]:
    """Train in place with Adam and cross-entropy; returns mean loss per epoch.

    Sequence targets of shape ``(batch, length)`` are flattened, and
    positions set to ``IGNORE_INDEX`` do not contribute to the loss.
    """
    generator = torch.Generator().manual_seed(seed)
    optimizer = torch.optim.Adam(model.parameters(), lr=learning_rate)
    criterion = nn.CrossEntropyLoss(ignore_index=IGNORE_INDEX)
    history: list[float] = []

    model.train()
    for _ in range(epochs):
        order = torch.randperm(inputs.size(0), generator=generator)
        total = 0.0
        batches = 0
        for offset in range(0, inputs.size(0), batch_size):
            batch = order[offset:offset + batch_size]
            logits = model(inputs[batch])
            loss = criterion(logits.reshape(-1, logits.size(-1)), targets[batch].reshape(-1))
            optimizer.zero_grad()
            loss.backward()
            optimizer.step()
            total += loss.item()
            batches += 1
        history.append(total / max(batches, 1))
    model.eval()
    return history


def predict_proba(model: nn.Module, inputs: torch.Tensor) -> torch.Tensor:
    model.eval()
    with torch.no_grad():
        return torch.softmax(model(inputs), dim=-1)
