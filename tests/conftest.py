import pytest

from database import Base, make_engine, make_session_factory
from identity import StaticIdentity
from models import AccountKind, CategoryKind
from schemas import AccountIn, CategoryIn
from services import Ledger
from store import RecordStore


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine) -> RecordStore:
    return RecordStore(make_session_factory(engine))


@pytest.fixture
def identity() -> StaticIdentity:
    return StaticIdentity(1)


@pytest.fixture
def ledger(store, identity) -> Ledger:
    return Ledger(store, identity)


@pytest.fixture
def card(ledger):
    return ledger.accounts.create(
        AccountIn(name="Credit card", kind=AccountKind.checking, accrues=True)
    )


@pytest.fixture
def food(ledger):
    return ledger.categories.create(
        CategoryIn(name="Food", kind=CategoryKind.expense, color="#ef4444")
    )


@pytest.fixture
def salary(ledger):
    return ledger.categories.create(CategoryIn(name="Salary", kind=CategoryKind.income))
