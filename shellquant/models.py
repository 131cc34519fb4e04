"""
Shared types for ShellQuant.

Includes:
- Enumerations for count types, shrink policies, normalisation and aggregation
- The key used to address per-object shell values
- Shell analysis options
- Exception classes
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, asdict
from enum import Enum
from typing import NamedTuple, Optional


# Reserved id of the "Random distribution" pseudo signal group
RANDOM_SIGNAL_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
RANDOM_SIGNAL_NAME = "Random distribution"

DEFAULT_SHELL_COUNT = 5
DEFAULT_RANDOM_ITERATIONS = 10000


# -----------------------
# Exceptions
# -----------------------
class ShellQuantError(Exception):
    """Base exception for shell analysis operations."""

    pass


class ShellAnalysisException(ShellQuantError):
    """Raised when shells cannot be created for a component."""

    pass


class ImageLoadError(ShellQuantError):
    """Raised when a source image is missing or cannot be decoded."""

    pass


# -----------------------
# Enumerations
# -----------------------
class CountType(Enum):
    SIGNAL = "signal"
    COUNTERSTAIN = "counterstain"


class ShrinkType(Enum):
    """How each shell is derived from the object boundary."""

    RADIUS = "radius"
    AREA = "area"


class Normalisation(Enum):
    NONE = "none"
    DAPI = "dapi"


class Aggregation(Enum):
    """Whole-nucleus keys versus per-signal keys."""

    BY_NUCLEUS = "by_nucleus"
    BY_SIGNAL = "by_signal"


class ShellKey(NamedTuple):
    """Opaque identity of the object a shell array belongs to."""

    cell_id: uuid.UUID
    component_id: uuid.UUID
    signal_id: Optional[uuid.UUID] = None

    @property
    def has_signal(self) -> bool:
        return self.signal_id is not None

    def component_key(self) -> "ShellKey":
        return ShellKey(self.cell_id, self.component_id)


# -----------------------
# Options
# -----------------------
@dataclass(frozen=True)
class ShellOptions:
    shell_count: int = DEFAULT_SHELL_COUNT
    shrink_type: ShrinkType = ShrinkType.RADIUS
    random_iterations: int = DEFAULT_RANDOM_ITERATIONS

    def __post_init__(self):
        if isinstance(self.shrink_type, str):
            object.__setattr__(self, "shrink_type", ShrinkType(self.shrink_type.strip().lower()))
        if isinstance(self.shell_count, bool) or int(self.shell_count) != self.shell_count:
            raise ValueError(f"Shell count must be an integer, got {self.shell_count!r}")
        if self.shell_count < 1:
            raise ValueError(f"Shell count must be at least 1, got {self.shell_count}")
        if self.random_iterations < 1:
            raise ValueError("Must have at least one random iteration")

    def to_dict(self) -> dict:
        d = asdict(self)
        d["shrink_type"] = self.shrink_type.value
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "ShellOptions":
        return cls(
            shell_count=int(d.get("shell_count", DEFAULT_SHELL_COUNT)),
            shrink_type=d.get("shrink_type", ShrinkType.RADIUS),
            random_iterations=int(d.get("random_iterations", DEFAULT_RANDOM_ITERATIONS)),
        )
