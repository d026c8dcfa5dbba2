from collections.abc import Callable, Generator

import pytest
import torch

from vn_txn_parser.classifiers.amount import bootstrap_amount_tagger
from vn_txn_parser.classifiers.intent import bootstrap_intent_model
from vn_txn_parser.integration.history import InMemoryTransactionHistory
from vn_txn_parser.lifecycle import ModelLifecycle, ModelStatus
from vn_txn_parser.models import Category, CategoryType
from vn_txn_parser.networks import POOLED, build_module
from vn_txn_parser.persistence.model_state import ModelRepository, ModelState
from vn_txn_parser.persistence.store import InMemoryKeyValueStore
from vn_txn_parser.services.parsing import ParsingService
from vn_txn_parser.text.vocabulary import Vocabulary

SEED = 42


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(scope="session")
def intent_state() -> ModelState:
    return bootstrap_intent_model(SEED)


@pytest.fixture(scope="session")
def amount_state() -> ModelState:
    return bootstrap_amount_tagger(SEED)


@pytest.fixture
def categories() -> list[Category]:
    return [
        Category(id="food", name="Ăn uống", type=CategoryType.EXPENSE),
        Category(id="transport", name="Di chuyển", type=CategoryType.EXPENSE),
        Category(id="shopping", name="Mua sắm", type=CategoryType.EXPENSE),
        Category(id="bills", name="Hóa đơn", type=CategoryType.EXPENSE),
        Category(id="salary", name="Lương", type=CategoryType.INCOME),
        Category(id="bonus", name="Thưởng", type=CategoryType.INCOME),
    ]


@pytest.fixture
def make_state() -> Callable[..., ModelState]:
    """Tiny pooled model, cheap enough to build per test."""

    def _make(kind: str = "tiny", seed: int = 0) -> ModelState:
        hp = {"max_length": 4, "embedding_dim": 4, "hidden_units": 4, "dropout": 0.0, "vocab_size": 4}
        torch.manual_seed(seed)
        return ModelState(
            kind=kind,
            architecture=POOLED,
            module=build_module(POOLED, 4, 2, hp),
            vocabulary=Vocabulary.build([["a", "b"]], 10),
            labels=("x", "y"),
            hyperparameters=hp,
        )

    return _make


@pytest.fixture
def ready_lifecycle() -> Callable[[str, ModelState | None], ModelLifecycle]:
    """Lifecycle already holding ``state``, as if initialization had finished."""

    def _ready(kind: str, state: ModelState | None) -> ModelLifecycle:
        lifecycle = ModelLifecycle(kind, ModelRepository(InMemoryKeyValueStore()), lambda: state)
        lifecycle.publish(state)
        lifecycle.status = ModelStatus.READY
        return lifecycle

    return _ready


@pytest.fixture
def seeded_store(intent_state: ModelState, amount_state: ModelState) -> InMemoryKeyValueStore:
    store = InMemoryKeyValueStore()
    repository = ModelRepository(store)
    repository.save(intent_state)
    repository.save(amount_state)
    return store


@pytest.fixture
def history() -> InMemoryTransactionHistory:
    return InMemoryTransactionHistory()


@pytest.fixture
def service(
    seeded_store: InMemoryKeyValueStore,
    history: InMemoryTransactionHistory,
) -> Generator[ParsingService, None, None]:
    yield ParsingService(seeded_store, history, seed=SEED, timeout=30.0, min_retrain_samples=5)
