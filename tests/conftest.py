"""Shared fixtures."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from pii_masking import get_current_configuration, replace_current_configuration


@pytest.fixture
def restore_current_config():
    saved = get_current_configuration()
    yield
    replace_current_configuration(saved)
