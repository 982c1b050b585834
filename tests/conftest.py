"""
conftest.py

Pytest configuration and fixtures for forestfit tests.
Provides shared regression data, stub learners and hyperparameter
fixtures for reproducible testing across all test modules.
"""

import sys
import logging
from pathlib import Path

import pytest

# Add project root and src to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root))
sys.path.append(str(project_root / "src"))

from tests.utils.mock_factories import RegressionDataFactory, MeanStubLearner
from forestfit.models.hyperparameters import HyperParameter

# ============================================
# PYTEST CONFIGURATION
# ============================================

def pytest_configure(config):
    """Configure pytest settings and markers"""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "performance: marks tests that measure performance")

def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location"""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "performance" in str(item.fspath):
            item.add_marker(pytest.mark.performance)
            item.add_marker(pytest.mark.slow)

        if "parallel" in item.name.lower():
            item.add_marker(pytest.mark.slow)

# ============================================
# DATA FIXTURES
# ============================================

@pytest.fixture
def tiny_data():
    """x = [[1], [2], [3]], y = [2, 4, 6]"""
    return RegressionDataFactory.create_tiny_data()

@pytest.fixture
def linear_data():
    """Seeded linear regression data (100 x 3)"""
    return RegressionDataFactory.create_linear_data(n_samples=100, n_features=3, seed=42)

@pytest.fixture
def step_data():
    """Seeded piecewise-constant data (120 x 2)"""
    return RegressionDataFactory.create_step_data()

# ============================================
# MODEL FIXTURES
# ============================================

@pytest.fixture
def stub_factory():
    """Base-learner factory building mean-storing stubs"""
    return MeanStubLearner

@pytest.fixture
def full_sample_params():
    """bRatio = 1.0, nTrees = 3"""
    return HyperParameter(max_depth=3, n_trees=3, b_ratio=1.0, fb_ratio=1.0)

@pytest.fixture
def forest_params():
    """Small forest for real-tree tests"""
    return HyperParameter(max_depth=4, n_trees=5, b_ratio=0.7, fb_ratio=0.7)

# ============================================
# LOGGING FIXTURES
# ============================================

@pytest.fixture
def forestfit_caplog(caplog):
    """caplog capturing forestfit records at WARNING and above"""
    logger = logging.getLogger("forestfit")
    original = logger.propagate
    logger.propagate = True
    caplog.set_level(logging.WARNING, logger="forestfit")
    yield caplog
    logger.propagate = original

