from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from solders.keypair import Keypair

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


@pytest.fixture
def payer() -> Keypair:
    return Keypair()


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[str], Path]:
    """Write a pool config file body and return its path."""

    def write(body: str) -> Path:
        path = tmp_path / "pool.toml"
        path.write_text(body)
        return path

    return write
