"""Shared pytest fixtures for Flexol Board tests."""

import pytest

from flexol.config_loader import GridConfig
from flexol.errors import DataUnavailable
from flexol.item_manager import ItemCollectionManager
from tests.helpers import CELL


@pytest.fixture
def grid_config() -> GridConfig:
    return GridConfig(cell_size=CELL, max_cols=6)


@pytest.fixture
def viewport_width() -> list[float]:
    """Mutable holder so tests can resize the viewport between moves."""
    return [6 * CELL]


@pytest.fixture
def manager(grid_config, viewport_width) -> ItemCollectionManager:
    return ItemCollectionManager(grid_config, viewport_width=lambda: viewport_width[0])


@pytest.fixture
def unavailable() -> DataUnavailable:
    return DataUnavailable("TokenMint111", "No market pair found")
