"""
Root test configuration and fixtures.

Provides an SQLite in-memory job store with an injectable clock, a
scriptable fake enhancement provider, and pipeline configuration tuned
for fast tests.
"""

import os
from pathlib import Path

import pytest
import yaml
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from photo_pipeline.config.pipeline import PipelineConfig
from photo_pipeline.db_base import Base
from photo_pipeline.jobs import models  # noqa: F401 - registers enhancement_jobs
from photo_pipeline.repositories.enhancement_jobs import EnhancementJobStore
from photo_pipeline.tests.fakes import (
    TEST_CRON_SECRET,
    FakeEnhancementProvider,
    FrozenClock,
)

# Set test environment
os.environ.setdefault("ENV", "test")


@pytest.fixture
def db_engine():
    """SQLite in-memory engine shared by every session of one test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=db_engine,
    )


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def store(session_factory, clock):
    return EnhancementJobStore(session_factory, clock=clock)


@pytest.fixture
def pipeline_config():
    """Short deadlines so timeout paths run quickly."""
    return PipelineConfig(
        batch_size=5,
        max_attempts=3,
        job_deadline_seconds=0.2,
        invocation_budget_seconds=1.0,
        cron_secret=TEST_CRON_SECRET,
    )


@pytest.fixture
def provider():
    return FakeEnhancementProvider()


@pytest.fixture
def image_url():
    """Factory for distinct, valid input handles."""
    counter = {"n": 0}

    def _make() -> str:
        counter["n"] += 1
        return f"https://cdn.example.com/in/photo-{counter['n']}.jpg"

    return _make


@pytest.fixture
def temp_config_dir(tmp_path: Path) -> Path:
    """Temporary directory for YAML config files."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def make_yaml_config(temp_config_dir: Path):
    """Factory for writing YAML configs to the temp dir."""

    def _make(data, filename: str = "pipeline.yml") -> str:
        path = temp_config_dir / filename
        with open(path, "w") as f:
            yaml.safe_dump(data, f)
        return str(path)

    return _make
