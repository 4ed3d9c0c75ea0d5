from __future__ import annotations

import pathlib
import sys

import pytest

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from mcp_stdio.registry import Registry  # noqa: E402
from tests.helpers.sample_app import build_sample_registry  # noqa: E402


@pytest.fixture
def registry() -> Registry:
    return build_sample_registry()
