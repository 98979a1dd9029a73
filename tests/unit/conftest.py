"""
Unit test fixtures.

Isolates unit tests from environment variables (.env file)
to ensure tests verify actual default values.

Copyright (c) 2026 Mothership contributors
License: MIT
"""

import os

import pytest


@pytest.fixture(autouse=True)
def clean_env_for_unit_tests(monkeypatch, tmp_path):
    """
    Remove all MOTHERSHIP_* environment variables and change working
    directory to avoid loading .env file.
    """
    for var in list(os.environ):
        if var.upper().startswith("MOTHERSHIP_"):
            monkeypatch.delenv(var, raising=False)

    original_dir = os.getcwd()
    os.chdir(tmp_path)
    yield
    os.chdir(original_dir)
