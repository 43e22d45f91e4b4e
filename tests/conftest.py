"""Shared pytest fixtures"""

import pytest

from planner.config import GovernanceConfig
from planner.governance import GovernanceEngine
from planner.repository import InMemoryManifestRepository
from planner.workers import MockGenerationWorker
from tests.mocks.fixtures import (
    make_manifest_dict,
    make_approved_manifest,
)


# ============================================================
# Governance
# ============================================================

@pytest.fixture
def governance_config():
    """Default caps, independent of the developer's environment"""
    return GovernanceConfig()


@pytest.fixture
def governance(governance_config):
    return GovernanceEngine(governance_config)


# ============================================================
# Workers and storage
# ============================================================

@pytest.fixture
def mock_worker():
    """Fresh mock worker for each test"""
    worker = MockGenerationWorker()
    yield worker
    worker.reset()


@pytest.fixture
def repository():
    return InMemoryManifestRepository()


# ============================================================
# Test Data Fixtures
# ============================================================

@pytest.fixture
def manifest_dict():
    """Valid 3-scene, 30 second manifest document"""
    return make_manifest_dict()


@pytest.fixture
def approved_manifest():
    """Approved manifest object ready for the scheduler"""
    return make_approved_manifest()


# ============================================================
# Markers Configuration
# ============================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
