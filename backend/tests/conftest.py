# backend/tests/conftest.py
"""
Pytest configuration for Sparkleap backend tests.

- Ensures that the project root (backend/) is added to sys.path
  so that `import sparkleap.*` works correctly in tests.
- Ensures required environment variables for tests are set
  with safe dummy values (e.g., SPARKLEAP_ENCRYPTION_KEY).
- Resets the shared in-memory stores between tests.
"""

import os
import sys
from pathlib import Path

import pytest


def _ensure_project_root_in_sys_path() -> None:
    # This file is located at: backend/tests/conftest.py
    # parents[1] -> backend/
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)

    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)


def _ensure_test_env_vars() -> None:
    """
    Set dummy environment variables required for tests.

    These values are only for local testing and do NOT contain real secrets.
    """
    os.environ.setdefault("SPARKLEAP_ENCRYPTION_KEY", "dummy-encryption-key-for-tests")


_ensure_project_root_in_sys_path()
_ensure_test_env_vars()


@pytest.fixture(autouse=True)
def _reset_shared_state():
    from sparkleap.storage.state import reset_state

    reset_state()
    yield
    reset_state()
