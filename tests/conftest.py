"""Shared fixtures. The HTTP app reads its database path at import time, so the
environment is pointed at a scratch directory before anything imports it."""

from __future__ import annotations

import os
import tempfile

import pytest

_SCRATCH = tempfile.mkdtemp(prefix="gridsheet-tests-")
os.environ["GRIDSHEET_DB_PATH"] = os.path.join(_SCRATCH, "app.db")
os.environ["XDG_DATA_HOME"] = _SCRATCH


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from gridsheet.app import app

    with TestClient(app) as c:
        yield c
