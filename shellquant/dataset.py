"""
Cells, nuclei and signals as seen by shell analysis.

A CellCollection is the root set of cells from one analysis; a
VirtualCellCollection is a filtered view sharing the same cell objects and ids.
Shell results live on the SignalGroup objects of each collection.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from .core import ImageSource
from .geometry import Region
from .models import RANDOM_SIGNAL_ID


@dataclass
class Signal:
    region: Region
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class Nucleus:
    region: Region
    counterstain: Optional[ImageSource] = None
    signals: Dict[uuid.UUID, List[Signal]] = field(default_factory=dict)
    signal_sources: Dict[uuid.UUID, ImageSource] = field(default_factory=dict)
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    name: str = ""

    def signal_group_ids(self) -> List[uuid.UUID]:
        return list(self.signals.keys())

    def get_signals(self, group_id: uuid.UUID) -> List[Signal]:
        return list(self.signals.get(group_id, []))

    def get_signal_source(self, group_id: uuid.UUID) -> Optional[ImageSource]:
        return self.signal_sources.get(group_id)

    def all_signals(self) -> List[Signal]:
        return [s for sigs in self.signals.values() for s in sigs]

    def add_signal(self, group_id: uuid.UUID, signal: Signal, source: Optional[ImageSource] = None):
        self.signals.setdefault(group_id, []).append(signal)
        if source is not None:
            self.signal_sources[group_id] = source

    @property
    def label(self) -> str:
        return self.name or str(self.id)


@dataclass
class Cell:
    nuclei: List[Nucleus] = field(default_factory=list)
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class SignalGroup:
    id: uuid.UUID
    name: str = ""
    shell_result: Optional[object] = None

    @property
    def has_shell_result(self) -> bool:
        return self.shell_result is not None


class CellCollection:
    is_virtual = False

    def __init__(self, name: str, cells: Iterable[Cell], signal_groups: Optional[Iterable[SignalGroup]] = None):
        self.name = name
        self._cells: List[Cell] = list(cells)
        self.children: List["VirtualCellCollection"] = []
        self._groups: Dict[uuid.UUID, SignalGroup] = {}
        if signal_groups is None:
            for c in self._cells:
                for n in c.nuclei:
                    for gid in n.signal_group_ids():
                        if gid not in self._groups:
                            self._groups[gid] = SignalGroup(gid, str(gid))
        else:
            for g in signal_groups:
                self._groups[g.id] = g

    # -----------------------
    # Cells
    # -----------------------
    @property
    def cells(self) -> List[Cell]:
        return list(self._cells)

    def __iter__(self) -> Iterator[Cell]:
        return iter(self._cells)

    def __len__(self):
        return len(self._cells)

    @property
    def nucleus_count(self) -> int:
        return sum(len(c.nuclei) for c in self._cells)

    def get_cell(self, cell_id: uuid.UUID) -> Optional[Cell]:
        for c in self._cells:
            if c.id == cell_id:
                return c
        return None

    # -----------------------
    # Signal groups
    # -----------------------
    def signal_group_ids(self, include_random: bool = False) -> List[uuid.UUID]:
        return [g for g in self._groups if include_random or g != RANDOM_SIGNAL_ID]

    def get_signal_group(self, group_id: uuid.UUID) -> Optional[SignalGroup]:
        return self._groups.get(group_id)

    def add_signal_group(self, group: SignalGroup):
        self._groups[group.id] = group

    def remove_signal_group(self, group_id: uuid.UUID):
        self._groups.pop(group_id, None)

    def signal_count(self, group_id: uuid.UUID) -> int:
        return sum(len(n.get_signals(group_id)) for c in self._cells for n in c.nuclei)

    def has_signals(self, group_id: Optional[uuid.UUID] = None) -> bool:
        if group_id is not None:
            return self.signal_count(group_id) > 0
        return any(self.signal_count(g) > 0 for g in self.signal_group_ids())

    # -----------------------
    # Child collections
    # -----------------------
    def create_child(self, name: str, cell_ids: Iterable[uuid.UUID]) -> "VirtualCellCollection":
        child = VirtualCellCollection(self, name, cell_ids)
        self.children.append(child)
        return child

    def all_children(self) -> List["VirtualCellCollection"]:
        out = []
        for child in self.children:
            out.append(child)
            out.extend(child.all_children())
        return out

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, cells={len(self._cells)})"


class VirtualCellCollection(CellCollection):
    """A subset of the cells of a parent collection."""

    is_virtual = True

    def __init__(self, parent: CellCollection, name: str, cell_ids: Iterable[uuid.UUID]):
        ids = set(cell_ids)
        groups = [
            SignalGroup(gid, parent.get_signal_group(gid).name)
            for gid in parent.signal_group_ids()
        ]
        super().__init__(name, [c for c in parent.cells if c.id in ids], groups)
        self.parent = parent
