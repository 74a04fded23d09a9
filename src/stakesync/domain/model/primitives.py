"""Domain primitives: scalar aliases shared across the model."""

from __future__ import annotations

from typing import Final

type Lamports = int
type Epoch = int
type SeedSuffix = int

U64_MAX: Final[int] = 2**64 - 1
