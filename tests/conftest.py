"""
Pytest configuration for the logseq_rag_bridge test suite.

Configures:
- a throwaway ROOT_DIR, since importing the API server sets up file logging
- fixtures handing out the in-memory fakes from tests/fakes.py
"""

import logging
import os
import tempfile

import pytest

os.environ.setdefault("ROOT_DIR", tempfile.mkdtemp(prefix="logseq_rag_bridge_tests_"))

from shared.helper.HelperConfig import HelperConfig
from tests.fakes import FakeDMSClient, FakeEmbedClient, FakeLLMClient, FakeRAGClient


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("logseq_rag_bridge.tests")


@pytest.fixture
def helper_config(logger) -> HelperConfig:
    return HelperConfig(logger=logger)


@pytest.fixture
def dms_client() -> FakeDMSClient:
    return FakeDMSClient()


@pytest.fixture
def embed_client() -> FakeEmbedClient:
    return FakeEmbedClient()


@pytest.fixture
def rag_client() -> FakeRAGClient:
    return FakeRAGClient()


@pytest.fixture
def llm_client() -> FakeLLMClient:
    return FakeLLMClient()
