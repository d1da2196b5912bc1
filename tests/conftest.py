"""Pytest configuration and shared fixtures"""
import pytest
import sys
from pathlib import Path
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from fastapi.testclient import TestClient

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from promptloop.database import Base, get_db, init_db
from promptloop.api.deps import get_runtime
from promptloop.api.main import app
from promptloop.models.evaluation import EvaluatorType
from promptloop.services.cache_store import InMemoryCacheStore
from promptloop.services.pipeline_runtime import PipelineRuntime
from promptloop.services.sampling import SamplingPolicy

from tests.fixtures.fakes import FakeLLMClient, RecordingNotifier, ScriptedRng
from tests.fixtures import sample_data

@pytest.fixture(scope="function")
def test_engine(tmp_path):
    """
    Create a test database engine.

    A file database (not :memory:) so pipeline worker threads, which open
    their own sessions, see the same tables and rows as the test.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30}
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()

@pytest.fixture(scope="function")
def session_factory(test_engine):
    """Session factory bound to the test engine"""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

@pytest.fixture(scope="function")
def test_db(session_factory) -> Generator[Session, None, None]:
    """Create a test database session"""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

@pytest.fixture(scope="function")
def fake_llm() -> FakeLLMClient:
    """Scripted LLM client"""
    return FakeLLMClient()

@pytest.fixture(scope="function")
def notifier() -> RecordingNotifier:
    return RecordingNotifier()

@pytest.fixture(scope="function")
def rng() -> ScriptedRng:
    """Random source whose draws default to 100 (only 100% sampling passes)"""
    return ScriptedRng()

@pytest.fixture(scope="function")
def sampling(rng) -> SamplingPolicy:
    return SamplingPolicy(rng=rng)

@pytest.fixture(scope="function")
def cache() -> InMemoryCacheStore:
    return InMemoryCacheStore()

@pytest.fixture(scope="function")
def runtime(session_factory, fake_llm, notifier, cache, sampling) -> Generator[PipelineRuntime, None, None]:
    """Pipeline runtime with a single worker so event handling order is deterministic"""
    pipeline = PipelineRuntime(
        session_factory,
        llm_client=fake_llm,
        notifier=notifier,
        cache=cache,
        sampling=sampling,
        max_workers=1,
    )
    yield pipeline
    pipeline.shutdown()

@pytest.fixture(scope="function")
def api_client(test_db: Session, runtime: PipelineRuntime) -> TestClient:
    """Create a FastAPI test client with test database and runtime overrides"""
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_runtime] = lambda: runtime
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

@pytest.fixture(scope="function")
def company(test_db: Session):
    """Company with two notification recipients"""
    return sample_data.create_company(test_db)

@pytest.fixture(scope="function")
def model(test_db: Session, company):
    """Active text generation model serving the sample system prompt"""
    return sample_data.create_model(test_db, company)

@pytest.fixture(scope="function")
def contains_order_evaluator(test_db: Session, model):
    """Gating function evaluator requiring the word 'order' in the output"""
    return sample_data.attach_evaluator(
        test_db, model, "mentions_order",
        function_name="contains_text",
        parameters={"requiredText": "order"},
    )

@pytest.fixture(scope="function")
def quality_evaluator(test_db: Session, model):
    """Gating LLM evaluator"""
    return sample_data.attach_evaluator(
        test_db, model, "quality",
        evaluator_type=EvaluatorType.PROMPT,
        prompt="You grade customer support answers for accuracy and tone.",
    )
