r"""
Reduction of path ensembles to statistics.

This module provides:

* :class:`~mcpaths.evaluation.PathEvaluator` – applies a payoff or reduction
  to every path and aggregates the results.
* :class:`~mcpaths.evaluation.PathStatistics` – mean, dispersion and a
  confidence interval for the aggregated values.

Exclusion semantics
-------------------

A reduction function returns a float or ``None``. Paths that yield ``None``
are dropped from both the numerator and the denominator, so averages are
taken over the successful evaluations only. If nothing survives, the result
is ``None`` rather than ``0.0``.

Confidence intervals
--------------------

.. math::

   \bar{X} \pm c\,\frac{s}{\sqrt{n}}

where :math:`c` is a z or t critical value chosen by :func:`mcpaths.utils.autocrit`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np

from .utils import autocrit

logger = logging.getLogger(__name__)

__all__ = ["PathEvaluator", "PathStatistics"]

PathFunction = Callable[[np.ndarray], Optional[float]]


@dataclass(frozen=True)
class PathStatistics:
    r"""
    Summary of the values a reduction produced over an ensemble.

    Attributes
    ----------
    mean : float
        Sample mean :math:`\bar X` over successful evaluations.
    std : float
        Sample standard deviation with ``ddof=1`` (``0.0`` for one value).
    se : float
        Standard error :math:`s / \sqrt{n}`.
    ci_low, ci_high : float
        Confidence interval endpoints.
    confidence : float
        Confidence level of the interval.
    method : {"z", "t"}
        Critical value family actually used.
    crit : float
        Critical value.
    n_evaluated : int
        Number of paths that produced a value.
    n_excluded : int
        Number of paths for which the reduction returned ``None``.
    """

    mean: float
    std: float
    se: float
    ci_low: float
    ci_high: float
    confidence: float
    method: str
    crit: float
    n_evaluated: int
    n_excluded: int

    def to_string(self) -> str:
        """Pretty, human-readable summary."""
        return "\n".join(
            [
                "=" * 20 + " PATH STATISTICS " + "=" * 20,
                f"  Paths evaluated: {self.n_evaluated} (excluded: {self.n_excluded})",
                f"  Mean: {self.mean:.5f}   (SE: {self.se:.5f}, "
                f"{int(self.confidence * 100)}% {self.method}-CI: [{self.ci_low:.5f}, {self.ci_high:.5f}])",
                f"  Std Dev (sample): {self.std:.5f}",
                "=" * 20 + " END " + "=" * 20,
            ]
        )


class PathEvaluator:
    r"""
    Evaluate a function over every path of an ensemble.

    Parameters
    ----------
    paths : Ensemble or sequence of ndarray
        The paths to evaluate. Only read.

    Examples
    --------
    >>> evaluator = PathEvaluator([np.array([1.0, 2.0]), np.array([1.0, 4.0])])
    >>> evaluator.evaluate_average(lambda path: path[-1])
    3.0
    >>> evaluator.evaluate_average(lambda path: None) is None
    True
    """

    def __init__(self, paths: Sequence[np.ndarray]):
        self.paths = paths

    def __len__(self) -> int:
        return len(self.paths)

    def _collect(self, fn: PathFunction) -> tuple[list[float], int]:
        values = []
        excluded = 0
        for path in self.paths:
            value = fn(path)
            if value is None:
                excluded += 1
            else:
                values.append(float(value))
        if excluded:
            logger.debug("Excluded %d of %d paths from evaluation", excluded, len(self.paths))
        return values, excluded

    def evaluate(self, fn: PathFunction) -> np.ndarray:
        """Return the non-``None`` values of ``fn`` over all paths, in path order."""
        values, _ = self._collect(fn)
        return np.asarray(values, dtype=float)

    def evaluate_average(self, fn: PathFunction) -> float | None:
        r"""
        Average ``fn`` over the paths for which it returns a value.

        Parameters
        ----------
        fn : callable
            ``fn(path) -> float | None``.

        Returns
        -------
        float or None
            Arithmetic mean over successful evaluations, or ``None`` when the
            ensemble is empty or ``fn`` returned ``None`` for every path.
        """
        values, _ = self._collect(fn)
        if not values:
            return None
        return float(np.mean(values))

    def evaluate_statistics(
        self,
        fn: PathFunction,
        confidence: float = 0.95,
        ci_method: str = "auto",
    ) -> PathStatistics | None:
        r"""
        Mean, dispersion and confidence interval of ``fn`` over the ensemble.

        Parameters
        ----------
        fn : callable
            ``fn(path) -> float | None``; ``None`` excludes the path.
        confidence : float, default ``0.95``
            Confidence level in :math:`(0, 1)`.
        ci_method : {"auto", "z", "t"}, default ``"auto"``
            Critical value family. ``"auto"`` uses t below 30 values.

        Returns
        -------
        PathStatistics or None
            ``None`` under the same conditions as :meth:`evaluate_average`.
        """
        if not 0.0 < confidence < 1.0:
            raise ValueError("confidence must be in the interval (0, 1)")
        values, excluded = self._collect(fn)
        if not values:
            return None
        arr = np.asarray(values, dtype=float)
        n = arr.size
        mean = float(np.mean(arr))
        std = float(np.std(arr, ddof=1)) if n > 1 else 0.0
        se = std / np.sqrt(n)
        crit, kind = autocrit(confidence, n, ci_method)
        return PathStatistics(
            mean=mean,
            std=std,
            se=float(se),
            ci_low=float(mean - crit * se),
            ci_high=float(mean + crit * se),
            confidence=confidence,
            method=kind,
            crit=float(crit),
            n_evaluated=n,
            n_excluded=excluded,
        )
