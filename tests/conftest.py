"""
Shared fixtures for the test suite.
"""

import os

import pytest

from wireframe_react.config import GenerationSettings
from wireframe_react.utils.llm_logger import LogLevel, get_logger


MODELS = ["model/a", "model/b", "model/c"]


def pytest_collection_modifyitems(config, items):
    """Skip real-browser tests unless PREVIEW_BROWSER_TESTS=1."""
    if os.getenv("PREVIEW_BROWSER_TESTS") == "1":
        return
    skip_browser = pytest.mark.skip(reason="set PREVIEW_BROWSER_TESTS=1 to run browser tests")
    for item in items:
        if "browser" in item.keywords:
            item.add_marker(skip_browser)


@pytest.fixture(autouse=True)
def quiet_logger(tmp_path):
    """Keep the LLM logger silent and out of the working directory."""
    logger = get_logger()
    previous = (logger.level, logger.log_to_file, logger.log_dir)
    logger.configure(level=LogLevel.NONE, log_to_file=False, log_dir=tmp_path / "logs")
    yield logger
    logger.level, logger.log_to_file, logger.log_dir = previous


@pytest.fixture
def settings():
    """Generation settings pointing at a fake endpoint."""
    return GenerationSettings(
        api_key="test-key",
        base_url="https://llm.test/api/v1",
        default_model=MODELS[0],
        fallback_models=list(MODELS),
        max_retries=0,
        backoff_cap=30.0,
    )
