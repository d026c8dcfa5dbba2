"""Model snapshots and their single-record persistence.

A record holds weights, vocabulary and metadata together, so a reload can
never pair weights with the wrong vocabulary.
"""
import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import numpy as np
import torch
import torch.nn as nn

from vn_txn_parser.logger import get_logger
from vn_txn_parser.networks import build_module
from vn_txn_parser.persistence.store import KeyValueStore
from vn_txn_parser.text.vocabulary import Vocabulary

logger = get_logger(__name__)

MODEL_STATE_VERSION = 1

_DTYPES = {
    "float32": (torch.float32, np.float32),
    "float64": (torch.float64, np.float64),
}


class ModelStateError(Exception):
    """Base error for persisted model state."""


class ModelStateMismatch(ModelStateError):
    """Persisted weights do not fit the architecture rebuilt from their metadata."""


@dataclass(frozen=True)
class ModelState:
    """Immutable snapshot of one trained model; replaced whole, never edited."""

    kind: str
    architecture: str
    module: nn.Module
    vocabulary: Vocabulary
    labels: tuple[str, ...]
    hyperparameters: dict[str, Any]
    trained_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = field(default_factory=dict)
    version: int = MODEL_STATE_VERSION

    @property
    def max_length(self) -> int:
        return int(self.hyperparameters["max_length"])


def model_key(kind: str) -> str:
    return f"model_{kind}"


def _dtype_name(tensor: torch.Tensor) -> str:
    for name, (torch_dtype, _) in _DTYPES.items():
        if tensor.dtype == torch_dtype:
            return name
    raise ModelStateError(f"Unsupported tensor dtype {tensor.dtype}")


def serialize_state(state: ModelState) -> dict[str, Any]:
    weights = [
        {
            "name": name,
            "shape": list(tensor.shape),
            "dtype": _dtype_name(tensor),
            "values": tensor.detach().cpu().numpy().ravel().tolist(),
        }
        for name, tensor in state.module.state_dict().items()
    ]
    return {
        "version": state.version,
        "kind": state.kind,
        "architecture": state.architecture,
        "trained_at": state.trained_at.isoformat(),
        "labels": list(state.labels),
        "hyperparameters": state.hyperparameters,
        "metadata": state.metadata,
        "vocabulary": state.vocabulary.to_dict(),
        "weights": weights,
    }


def deserialize_state(record: dict[str, Any]) -> ModelState:
    """Rebuild the module from metadata first, then inject weights.

    Raises ``ModelStateMismatch`` on any disagreement; nothing is partially
    loaded.
    """
    try:
        version = record["version"]
        if version != MODEL_STATE_VERSION:
            raise ModelStateMismatch(f"Unsupported model state version {version}")

        vocabulary = Vocabulary.from_dict(record["vocabulary"])
        labels = tuple(record["labels"])
        hyperparameters = dict(record["hyperparameters"])
        if hyperparameters.get("vocab_size", len(vocabulary)) != len(vocabulary):
            raise ModelStateMismatch(
                f"Vocabulary has {len(vocabulary)} entries, weights expect {hyperparameters['vocab_size']}"
            )

        module = build_module(record["architecture"], len(vocabulary), len(labels), hyperparameters)
        expected = module.state_dict()
        weights = record["weights"]
        if [w["name"] for w in weights] != list(expected):
            raise ModelStateMismatch("Weight tensor names or order do not match the architecture")

        loaded: dict[str, torch.Tensor] = {}
        for weight in weights:
            shape = tuple(weight["shape"])
            target = expected[weight["name"]]
            if shape != tuple(target.shape):
                raise ModelStateMismatch(
                    f"{weight['name']}: persisted shape {shape} != expected {tuple(target.shape)}"
                )
            if len(weight["values"]) != math.prod(shape):
                raise ModelStateMismatch(f"{weight['name']}: value count does not match shape {shape}")
            torch_dtype, np_dtype = _DTYPES[weight["dtype"]]
            array = np.asarray(weight["values"], dtype=np_dtype).reshape(shape)
            loaded[weight["name"]] = torch.from_numpy(array).to(torch_dtype)
        module.load_state_dict(loaded, strict=True)
        module.eval()

        return ModelState(
            kind=record["kind"],
            architecture=record["architecture"],
            module=module,
            vocabulary=vocabulary,
            labels=labels,
            hyperparameters=hyperparameters,
            trained_at=datetime.fromisoformat(record["trained_at"]),
            metadata=dict(record.get("metadata", {})),
            version=version,
        )
    except ModelStateMismatch:
        raise
    except (KeyError, TypeError, ValueError, RuntimeError) as e:
        raise ModelStateMismatch(f"Malformed model state: {e}") from e


class ModelRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def save(self, state: ModelState) -> None:
        payload = json.dumps(serialize_state(state), ensure_ascii=False)
        self.store.set(model_key(state.kind), payload)
        logger.info("[STORE] Saved %s model (vocab=%d, labels=%d)", state.kind, len(state.vocabulary), len(state.labels))

    def load(self, kind: str) -> ModelState | None:
        raw = self.store.get(model_key(kind))
        if raw is None:
            return None
        try:
            record = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ModelStateMismatch(f"Corrupt {kind} model record: {e}") from e
        state = deserialize_state(record)
        if state.kind != kind:
            raise ModelStateMismatch(f"Record under {kind} holds a {state.kind} model")
        return state

    def discard(self, kind: str) -> None:
        self.store.delete(model_key(kind))
