"""Shared fixtures for workflow-agent tests."""

import pytest


@pytest.fixture
def react_detection():
    """React project where Vue was also detected with lower confidence."""
    return {
        "frameworks": [
            {"name": "React", "confidence": 0.9, "category": "frontend", "version": "18.2.0"},
            {"name": "Vue", "confidence": 0.7, "category": "frontend"},
        ],
        "languages": [
            {"name": "JavaScript", "confidence": 0.95, "primary": True, "version": "20"},
        ],
        "buildTools": [{"name": "webpack", "confidence": 0.8}],
        "packageManagers": [{"name": "npm", "confidence": 0.9}],
        "testingFrameworks": [{"name": "jest", "confidence": 0.85}],
        "deploymentTargets": [{"platform": "vercel", "confidence": 0.8}],
        "projectMetadata": {"name": "storefront", "description": "Shop frontend"},
    }


@pytest.fixture
def python_detection():
    """FastAPI service deployed as a container."""
    return {
        "frameworks": [{"name": "FastAPI", "confidence": 0.95, "category": "backend"}],
        "languages": [{"name": "Python", "confidence": 0.98, "primary": True}],
        "packageManagers": ["pip"],
        "testingFrameworks": ["pytest"],
        "deploymentTargets": [{"platform": "docker"}],
        "projectMetadata": {"name": "orders-api"},
    }


@pytest.fixture
def empty_detection():
    """Analyzer output with nothing detected."""
    return {}


@pytest.fixture
def engine_config():
    """Quiet config with default generator settings."""
    from workflow_agent.config import Config

    cfg = Config()
    cfg.verbose = False
    return cfg


@pytest.fixture
def resolve():
    """Parse and resolve a raw detection mapping."""
    from workflow_agent.core.conflict_resolver import resolve_conflicts
    from workflow_agent.models.detection import DetectionResult

    def _resolve(data):
        return resolve_conflicts(DetectionResult.from_dict(data))

    return _resolve
