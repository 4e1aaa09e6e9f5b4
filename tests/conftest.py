"""Shared test fixtures.

Every test runs with a clean settings cache and no ``PANEKIT_*`` variables
inherited from the developer's shell.  Nothing here touches a real tmux
server; tests needing one are marked ``@pytest.mark.tmux``.
"""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from panekit.workspace.settings import _get_settings_cached


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Strip PANEKIT_* env vars and invalidate the settings cache."""
    for key in list(os.environ):
        if key.startswith("PANEKIT_"):
            monkeypatch.delenv(key)
    monkeypatch.delenv("TMUX", raising=False)
    _get_settings_cached.cache_clear()
    yield
    _get_settings_cached.cache_clear()
