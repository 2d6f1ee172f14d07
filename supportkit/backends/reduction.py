"""Reduction backend built on pandas."""

import numpy as np
import pandas as pd

from supportkit.models.enums import Reduction

_PANDAS_FUNCS = {
    Reduction.SUM: "sum",
    Reduction.COUNT: "size",
    Reduction.MEAN: "mean",
    Reduction.MEDIAN: "median",
    Reduction.MIN: "min",
    Reduction.MAX: "max",
}


class PandasReduction:
    """Reduces values with pandas.

    Empty groups reduce to 0 for sum/count and NaN otherwise. Count is the
    number of members, missing values included. A mean with weights is the
    weighted mean; other reductions ignore weights.
    """

    def reduce(self, values: np.ndarray, kind: Reduction, weights: np.ndarray | None = None) -> float:
        values = np.asarray(values, dtype=float)
        groups = np.zeros(len(values), dtype=int)
        return float(self.reduce_groups(values, groups, 1, kind, weights)[0])

    def reduce_groups(
        self,
        values: np.ndarray,
        groups: np.ndarray,
        n_groups: int,
        kind: Reduction,
        weights: np.ndarray | None = None,
    ) -> np.ndarray:
        """Reduce values per group.

        Args:
            values: Values to reduce
            groups: Positional group index per value (-1 drops the value)
            n_groups: Number of groups in the output
            kind: Reduction to apply
            weights: Optional weights (used by mean only)

        Returns:
            Array of length n_groups

        Raises:
            ValueError: If the reduction is not a plain reduction (e.g. density)
        """
        if kind not in _PANDAS_FUNCS:
            msg = f"Reduction '{kind.value}' is not supported by the reduction backend"
            raise ValueError(msg)

        frame = pd.DataFrame(
            {
                "value": np.asarray(values, dtype=float),
                "group": np.asarray(groups, dtype=int),
                "weight": np.ones(len(values)) if weights is None else np.asarray(weights, dtype=float),
            }
        )
        frame = frame[frame["group"] >= 0]
        full_index = pd.RangeIndex(n_groups)

        if kind == Reduction.MEAN and weights is not None:
            frame["weighted"] = frame["value"] * frame["weight"]
            totals = frame.groupby("group")[["weighted", "weight"]].sum().reindex(full_index)
            with np.errstate(invalid="ignore", divide="ignore"):
                result = totals["weighted"] / totals["weight"].where(totals["weight"] > 0)
            return result.to_numpy(dtype=float)

        reduced = frame.groupby("group")["value"].agg(_PANDAS_FUNCS[kind]).reindex(full_index)
        if kind.is_extensive:
            reduced = reduced.fillna(0.0)

        return reduced.to_numpy(dtype=float)
