import pytest
from httpx import ASGITransport, AsyncClient

from quizrank.core.cache import MemoryCacheStore
from quizrank.core.database import build_engine, init_db, make_session_factory
from quizrank.main import create_app
from quizrank.services.ledger import MemoryScoreLedger
from quizrank.services.registry import build_services
from tests.fakes import FakeClock


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'quizrank_test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger():
    return MemoryScoreLedger(seed=7)


@pytest.fixture
def services(session_factory, ledger, clock):
    return build_services(
        session_factory,
        ledger=ledger,
        cache_store=MemoryCacheStore(clock=clock),
    )


@pytest.fixture
def geography(services):
    """Category with three questions worth 7, 5 and 3 points"""
    store = services.question_store
    category = store.create_category("Geography", total_time_seconds=120)
    questions = [
        store.create_question(
            category.id, "What is the capital of France?", ["London", "Paris", "Rome"], "Paris", points=7
        ),
        store.create_question(
            category.id, "Longest river in Africa?", ["Nile", "Congo", "Niger"], "Nile", points=5
        ),
        store.create_question(
            category.id, "Highest mountain?", ["K2", "Everest", "Denali"], "Everest", points=3
        ),
    ]
    return category, questions


@pytest.fixture
def history(services):
    """Category with two questions worth 10 points each"""
    store = services.question_store
    category = store.create_category("History")
    questions = [
        store.create_question(category.id, "First moon landing?", ["1969", "1972"], "1969", points=10),
        store.create_question(category.id, "Fall of Rome?", ["476", "1453"], "476", points=10),
    ]
    return category, questions


@pytest.fixture
async def client(services):
    """Create test client"""
    app = create_app(services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
