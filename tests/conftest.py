"""Shared fixtures for the feedvault test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from feedvault.feeds.models import Item, Tag
from tests.helpers import FlakyVault, make_item


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def vault(vault_dir: Path) -> FlakyVault:
    return FlakyVault(vault_dir)


@pytest.fixture
def item() -> Item:
    return make_item(tags=[Tag(name="research", color="#ff0000")])
