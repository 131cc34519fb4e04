"""
Per-shell intensity store for one signal group.

Values are kept raw, per object, and proportions or normalisations are
computed when requested. Objects are addressed by ShellKey: a whole nucleus
(cell id, nucleus id) or a single signal within it (cell id, nucleus id,
signal id).

Proportions for an object whose values sum to zero are NaN. Averages skip
NaN entries.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .models import Aggregation, CountType, Normalisation, ShellKey, ShrinkType

logger = logging.getLogger(__name__)


class ShellResult:
    def __init__(self, shell_count: int, shrink_type: ShrinkType = ShrinkType.RADIUS):
        if int(shell_count) < 1:
            raise ValueError("Shell count must be at least 1")
        self.shell_count = int(shell_count)
        self.shrink_type = ShrinkType(shrink_type)
        self._values: Dict[CountType, Dict[ShellKey, np.ndarray]] = {t: {} for t in CountType}

    def duplicate(self) -> "ShellResult":
        r = ShellResult(self.shell_count, self.shrink_type)
        for t in CountType:
            r._values[t] = {k: v.copy() for k, v in self._values[t].items()}
        return r

    # -----------------------
    # Storage
    # -----------------------
    def add_shell_data(self, count_type: CountType, key: ShellKey, values) -> None:
        """Store the per-shell values for an object, replacing any existing values."""
        arr = np.array(values, dtype=np.int64).ravel()
        if arr.size != self.shell_count:
            raise ValueError(f"Shell count must be {self.shell_count}, got {arr.size}")
        arr[arr < 0] = 0
        self._values[CountType(count_type)][key] = arr

    def get_pixel_values(self, count_type: CountType, key: ShellKey) -> Optional[np.ndarray]:
        v = self._values[CountType(count_type)].get(key)
        return None if v is None else v.copy()

    def keys(self, count_type: CountType = CountType.SIGNAL, aggregation: Optional[Aggregation] = None) -> List[ShellKey]:
        keys = list(self._values[CountType(count_type)].keys())
        if aggregation is None:
            return keys
        if aggregation == Aggregation.BY_SIGNAL:
            return [k for k in keys if k.has_signal]
        return [k for k in keys if not k.has_signal]

    def number_of_signals(self, aggregation: Aggregation = Aggregation.BY_SIGNAL) -> int:
        return len(self.keys(CountType.SIGNAL, aggregation))

    def __len__(self):
        return sum(len(v) for v in self._values.values())

    def __repr__(self):
        return (
            f"ShellResult(shells={self.shell_count}, type={self.shrink_type.value}, "
            f"signal={len(self._values[CountType.SIGNAL])}, counterstain={len(self._values[CountType.COUNTERSTAIN])})"
        )

    # -----------------------
    # Proportions
    # -----------------------
    def _check_shell(self, shell: int):
        if shell < 0 or shell >= self.shell_count:
            raise ValueError(f"Shell {shell} is out of bounds for {self.shell_count} shells")

    def _normalised(self, key: ShellKey) -> np.ndarray:
        # signal per unit counterstain in each shell, as a fraction of the total
        sig = self._values[CountType.SIGNAL][key].astype(np.float64)
        cnt = self._values[CountType.COUNTERSTAIN].get(key.component_key())
        if cnt is None:
            logger.debug("No counterstain for %s", key)
            return np.full(self.shell_count, np.nan)
        cnt = cnt.astype(np.float64)
        nor = np.zeros(self.shell_count, dtype=np.float64)
        np.divide(sig, cnt, out=nor, where=cnt > 0)
        total = float(np.sum(nor))
        if total == 0:
            return np.full(self.shell_count, np.nan)
        return nor / total

    def _proportions(self, count_type: CountType, key: ShellKey) -> np.ndarray:
        vals = self._values[count_type][key].astype(np.float64)
        total = float(np.sum(vals))
        if total == 0:
            return np.full(self.shell_count, np.nan)
        return vals / total

    def get_object_proportions(
        self,
        count_type: CountType,
        key: ShellKey,
        normalisation: Normalisation = Normalisation.NONE,
    ) -> np.ndarray:
        """Fraction of one object's total in each shell."""
        count_type = CountType(count_type)
        normalisation = Normalisation(normalisation)
        if normalisation == Normalisation.DAPI and count_type != CountType.SIGNAL:
            raise ValueError("Counterstain normalisation applies only to signal values")
        if key not in self._values[count_type]:
            return np.full(self.shell_count, np.nan)
        if normalisation == Normalisation.DAPI:
            return self._normalised(key)
        return self._proportions(count_type, key)

    def get_proportions(
        self,
        count_type: CountType,
        normalisation: Normalisation,
        shell: int,
        aggregation: Aggregation = Aggregation.BY_NUCLEUS,
    ) -> np.ndarray:
        """
        Proportion of each tracked object's value falling in the given shell.

        Args:
            count_type: SIGNAL or COUNTERSTAIN values
            normalisation: DAPI divides signal by the counterstain of the same
                nucleus before taking proportions
            shell: shell index
            aggregation: whole nuclei or individual signals

        Returns:
            one proportion per object in the range 0-1, NaN for objects with a
            zero total
        """
        self._check_shell(int(shell))
        keys = self.keys(count_type, aggregation)
        out = np.full(len(keys), np.nan, dtype=np.float64)
        for j, k in enumerate(keys):
            out[j] = self.get_object_proportions(count_type, k, normalisation)[int(shell)]
        return out

    def get_average_proportion(
        self,
        count_type: CountType,
        normalisation: Normalisation,
        shell: int,
        aggregation: Aggregation = Aggregation.BY_NUCLEUS,
    ) -> float:
        props = self.get_proportions(count_type, normalisation, shell, aggregation)
        props = props[np.isfinite(props)]
        if props.size == 0:
            return 0.0
        return float(np.mean(props))

    def get_shell_proportions(
        self,
        count_type: CountType = CountType.SIGNAL,
        normalisation: Normalisation = Normalisation.NONE,
        aggregation: Aggregation = Aggregation.BY_NUCLEUS,
    ) -> np.ndarray:
        return np.array([
            self.get_average_proportion(count_type, normalisation, i, aggregation)
            for i in range(self.shell_count)
        ])

    def get_std_errs(
        self,
        count_type: CountType = CountType.SIGNAL,
        normalisation: Normalisation = Normalisation.NONE,
        aggregation: Aggregation = Aggregation.BY_NUCLEUS,
    ) -> np.ndarray:
        out = np.full(self.shell_count, np.nan)
        for i in range(self.shell_count):
            props = self.get_proportions(count_type, normalisation, i, aggregation)
            props = props[np.isfinite(props)]
            if props.size > 1:
                out[i] = float(np.std(props, ddof=1) / np.sqrt(props.size))
        return out

    def get_overall_shell(
        self,
        count_type: CountType = CountType.SIGNAL,
        normalisation: Normalisation = Normalisation.NONE,
        aggregation: Aggregation = Aggregation.BY_NUCLEUS,
    ) -> float:
        """Mean shell index weighted by the average proportions."""
        props = self.get_shell_proportions(count_type, normalisation, aggregation)
        return float(np.sum(props * np.arange(self.shell_count)))

    def get_aggregate_counts(
        self,
        normalisation: Normalisation = Normalisation.NONE,
        aggregation: Aggregation = Aggregation.BY_NUCLEUS,
    ) -> np.ndarray:
        """Average signal proportions scaled to the number of objects."""
        n = len(self.keys(CountType.SIGNAL, aggregation))
        means = self.get_shell_proportions(CountType.SIGNAL, normalisation, aggregation)
        return (means * n).astype(np.int64)

    # -----------------------
    # Export
    # -----------------------
    def to_dataframe(self) -> pd.DataFrame:
        """One row per (count type, object, shell) with the raw value and proportion."""
        rows = []
        for t in CountType:
            for k, vals in self._values[t].items():
                props = self._proportions(t, k)
                for i in range(self.shell_count):
                    rows.append({
                        "count_type": t.value,
                        "cell_id": str(k.cell_id),
                        "component_id": str(k.component_id),
                        "signal_id": str(k.signal_id) if k.signal_id is not None else None,
                        "shell": i,
                        "value": int(vals[i]),
                        "proportion": float(props[i]),
                    })
        cols = ["count_type", "cell_id", "component_id", "signal_id", "shell", "value", "proportion"]
        if not rows:
            return pd.DataFrame(columns=cols)
        return pd.DataFrame(rows, columns=cols).sort_values(["count_type", "cell_id", "component_id", "shell"]).reset_index(drop=True)
