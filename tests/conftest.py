import os

# Before any app import: no Redis, no real database file in the repo
os.environ.setdefault("CB_STORAGE", "memory")
os.environ.setdefault("JOB_QUEUE_BACKEND", "memory")
os.environ.setdefault("OBJECT_STORE_BACKEND", "local")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test-pipeline.db")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.base import Base
import app.models  # noqa: F401
from app.services.circuit_breaker import reset_circuit_breakers


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'pipeline.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def _fresh_breakers():
    reset_circuit_breakers()
    yield
    reset_circuit_breakers()

