"""
Shell analysis across a cell collection.

Includes:
- ShellAnalysisOrchestrator: measures every nucleus of a root collection in a
  thread pool, or copies existing results into a virtual collection
- run_shell_analysis: functional entry point
- filter_suitable_cells: child collection of cells whose nuclei can be divided
  into shells
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Tuple
import uuid

import numpy as np

from .dataset import Cell, CellCollection, Nucleus, SignalGroup, VirtualCellCollection
from .models import (
    DEFAULT_SHELL_COUNT,
    RANDOM_SIGNAL_ID,
    RANDOM_SIGNAL_NAME,
    CountType,
    ImageLoadError,
    ShellAnalysisException,
    ShellKey,
    ShellOptions,
)
from .random_distribution import RandomDistribution
from .result import ShellResult
from .shells import ShellDecomposer, is_suitable_for_shells

logger = logging.getLogger(__name__)

SUITABLE_COLLECTION_NAME = "Suitable_for_shell_analysis"

# (signal group id, count type, key, per-shell values)
Measurement = Tuple[uuid.UUID, CountType, ShellKey, np.ndarray]


class ShellAnalysisOrchestrator:
    """
    Run shell analysis on a collection and attach results to its signal groups.

    Args:
        options: shell count, shrink policy and random iterations
        progress: called with 1 after each nucleus is processed
        max_workers: thread pool size; None lets the executor decide
    """

    def __init__(
        self,
        options: Optional[ShellOptions] = None,
        progress: Optional[Callable[[int], None]] = None,
        max_workers: Optional[int] = None,
    ):
        self.options = options if options is not None else ShellOptions()
        self.progress = progress
        self.max_workers = max_workers

    def _new_result(self) -> ShellResult:
        return ShellResult(self.options.shell_count, self.options.shrink_type)

    def run(self, collection: CellCollection) -> None:
        if not collection.has_signals():
            logger.info("No signals in %s; skipping shell analysis", collection.name)
            return

        logger.info(
            "Performing %s shell analysis with %d shells on %s",
            self.options.shrink_type.value, self.options.shell_count, collection.name,
        )

        # a child reuses what its parent already measured
        if collection.is_virtual:
            self._copy_from_parent(collection)
            return

        group_ids = [g for g in collection.signal_group_ids() if collection.has_signals(g)]
        results: Dict[uuid.UUID, ShellResult] = {g: self._new_result() for g in group_ids}
        results[RANDOM_SIGNAL_ID] = self._new_result()

        for group_id, count_type, key, values in self._measure_all(collection, group_ids):
            results[group_id].add_shell_data(count_type, key, values)

        self._create_results(collection, results)
        logger.info("Shell analysis complete")

    # -----------------------
    # Measurement
    # -----------------------
    def _measure_all(self, collection: CellCollection, group_ids: List[uuid.UUID]) -> List[Measurement]:
        jobs = [(c, n) for c in collection for n in c.nuclei]
        records: List[Measurement] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as ex:
            fut_map = {ex.submit(self._analyse_nucleus, c, n, group_ids): n for c, n in jobs}
            for fut in as_completed(fut_map):
                records.extend(fut.result())
                if self.progress is not None:
                    self.progress(1)
        return records

    def _analyse_nucleus(self, cell: Cell, nucleus: Nucleus, group_ids: List[uuid.UUID]) -> List[Measurement]:
        opts = self.options
        try:
            decomposer = ShellDecomposer(nucleus.region, opts.shell_count, opts.shrink_type)
        except ShellAnalysisException as e:
            logger.warning("Unable to make shells for %s: %s", nucleus.label, e)
            return []

        pairs = [(g, nucleus.get_signals(g)) for g in group_ids if g != RANDOM_SIGNAL_ID]
        pairs = [(g, sigs) for g, sigs in pairs if sigs]
        if not pairs:
            return []

        try:
            counterstain_img = nucleus.counterstain.load() if nucleus.counterstain is not None else None
        except ImageLoadError as e:
            logger.warning("Unable to load counterstain for %s: %s", nucleus.label, e)
            return []
        if counterstain_img is None:
            logger.warning("No counterstain image for %s", nucleus.label)
            return []
        counterstain = decomposer.find_pixel_intensities(nucleus.region, counterstain_img)

        nucleus_key = ShellKey(cell.id, nucleus.id)
        records: List[Measurement] = []
        random_counts = None
        for group_id, signals in pairs:
            source = nucleus.get_signal_source(group_id)
            if source is None:
                logger.warning("No signal image for group %s in %s", group_id, nucleus.label)
                continue
            try:
                signal_img = source.load()
            except ImageLoadError as e:
                logger.warning("Skipping group %s in %s: %s", group_id, nucleus.label, e)
                continue

            if random_counts is None:
                try:
                    random_counts = RandomDistribution(nucleus.region, decomposer, opts.random_iterations).get_counts()
                except ShellAnalysisException as e:
                    logger.warning("Unable to make random distribution for %s: %s", nucleus.label, e)
                    return records

            records.append((group_id, CountType.COUNTERSTAIN, nucleus_key, counterstain))
            records.append((group_id, CountType.SIGNAL, nucleus_key,
                            decomposer.find_pixel_intensities(nucleus.region, signal_img)))
            records.append((RANDOM_SIGNAL_ID, CountType.SIGNAL, nucleus_key, random_counts))
            records.append((RANDOM_SIGNAL_ID, CountType.COUNTERSTAIN, nucleus_key, counterstain))

            for s in signals:
                signal_key = ShellKey(cell.id, nucleus.id, s.id)
                records.append((group_id, CountType.SIGNAL, signal_key,
                                decomposer.find_pixel_intensities(s.region, signal_img)))
                records.append((RANDOM_SIGNAL_ID, CountType.SIGNAL, signal_key, random_counts))
        return records

    # -----------------------
    # Results
    # -----------------------
    def _create_results(self, collection: CellCollection, results: Dict[uuid.UUID, ShellResult]) -> None:
        add_random = False
        for group_id, result in results.items():
            if group_id == RANDOM_SIGNAL_ID or not collection.has_signals(group_id):
                continue
            add_random = True
            collection.get_signal_group(group_id).shell_result = result
            for child in collection.all_children():
                copy_shell_results(group_id, child.parent, child)

        if add_random:
            random = SignalGroup(RANDOM_SIGNAL_ID, RANDOM_SIGNAL_NAME, results[RANDOM_SIGNAL_ID])
            collection.remove_signal_group(RANDOM_SIGNAL_ID)
            collection.add_signal_group(random)
            for child in collection.all_children():
                copy_shell_results(RANDOM_SIGNAL_ID, child.parent, child)

    def _check_settings(self, parent_result: ShellResult, parent_name: str) -> None:
        opts = self.options
        if parent_result.shell_count != opts.shell_count or parent_result.shrink_type != opts.shrink_type:
            logger.warning(
                "Requested %d %s shells but %s has %d %s shells; copying the parent values",
                opts.shell_count, opts.shrink_type.value, parent_name,
                parent_result.shell_count, parent_result.shrink_type.value,
            )

    def _copy_from_parent(self, collection: VirtualCellCollection) -> None:
        parent = collection.parent
        for group_id in collection.signal_group_ids():
            parent_group = parent.get_signal_group(group_id)
            if parent_group is not None and parent_group.has_shell_result:
                self._check_settings(parent_group.shell_result, parent.name)
                copy_shell_results(group_id, parent, collection)
            else:
                logger.warning("Parent %s has no shell results for group %s", parent.name, group_id)

        random = parent.get_signal_group(RANDOM_SIGNAL_ID)
        if random is None:
            logger.warning("Parent %s does not have shell results to copy", parent.name)
            return
        if random.has_shell_result:
            copy_shell_results(RANDOM_SIGNAL_ID, parent, collection)


def copy_shell_results(
    group_id: uuid.UUID,
    src: CellCollection,
    dest: CellCollection,
) -> None:
    """
    Copy the shell values of the cells in dest from the src group result.

    dest is expected to be a child of src, and the copy keeps the shell count
    and shrink type of the src result. The random group copies the values of
    every signal, whatever group it came from.
    """
    src_group = src.get_signal_group(group_id)
    if src_group is None or not src_group.has_shell_result:
        return
    is_random = group_id == RANDOM_SIGNAL_ID
    if not (dest.has_signals(group_id) or is_random):
        return

    parent_result: ShellResult = src_group.shell_result
    child_result = ShellResult(parent_result.shell_count, parent_result.shrink_type)

    for c in dest:
        for n in c.nuclei:
            key = ShellKey(c.id, n.id)
            counterstain = parent_result.get_pixel_values(CountType.COUNTERSTAIN, key)
            signal = parent_result.get_pixel_values(CountType.SIGNAL, key)
            if counterstain is None:
                logger.debug("No counterstain for %s", n.label)
                continue
            if signal is None:
                continue
            child_result.add_shell_data(CountType.COUNTERSTAIN, key, counterstain)
            child_result.add_shell_data(CountType.SIGNAL, key, signal)

            signals = n.all_signals() if is_random else n.get_signals(group_id)
            for s in signals:
                signal_key = ShellKey(c.id, n.id, s.id)
                values = parent_result.get_pixel_values(CountType.SIGNAL, signal_key)
                if values is None:
                    logger.debug("No shell values for signal %s in %s", s.id, n.label)
                    continue
                child_result.add_shell_data(CountType.SIGNAL, signal_key, values)

    dest_group = dest.get_signal_group(group_id)
    if dest_group is None:
        name = RANDOM_SIGNAL_NAME if is_random else src_group.name
        dest_group = SignalGroup(group_id, name)
        dest.add_signal_group(dest_group)
    dest_group.shell_result = child_result


def run_shell_analysis(
    collection: CellCollection,
    options: Optional[ShellOptions] = None,
    progress: Optional[Callable[[int], None]] = None,
    max_workers: Optional[int] = None,
) -> CellCollection:
    ShellAnalysisOrchestrator(options, progress, max_workers).run(collection)
    return collection


def filter_suitable_cells(collection: CellCollection, shell_count: int = DEFAULT_SHELL_COUNT) -> VirtualCellCollection:
    """Child collection of the cells whose every nucleus is large and round enough for shells."""
    ids = [
        c.id for c in collection
        if c.nuclei and all(is_suitable_for_shells(n.region, shell_count) for n in c.nuclei)
    ]
    logger.info("%d of %d cells are suitable for shell analysis", len(ids), len(collection))
    return collection.create_child(SUITABLE_COLLECTION_NAME, ids)
