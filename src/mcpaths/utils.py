r"""
Critical values for confidence intervals.

Functions
    :func:`z_crit` — Two-sided normal critical value
    :func:`t_crit` — Two-sided Student-t critical value
    :func:`autocrit` — Pick z or t from the sample size and a method name
"""

from __future__ import annotations

from scipy.stats import norm
from scipy.stats import t as student_t

__all__ = ["z_crit", "t_crit", "autocrit"]

# Below this many observations "auto" uses Student-t
_T_THRESHOLD = 30


def _check_confidence(confidence: float) -> None:
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in the interval (0, 1)")


def z_crit(confidence: float) -> float:
    r"""
    Two-sided normal critical value :math:`z_{1-\alpha/2}`.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.

    Returns
    -------
    float
        The quantile :math:`\Phi^{-1}(1 - \alpha/2)` with :math:`\alpha = 1 - \text{confidence}`.

    Examples
    --------
    >>> round(z_crit(0.95), 4)
    1.96
    """
    _check_confidence(confidence)
    return float(norm.ppf(0.5 + confidence / 2.0))


def t_crit(confidence: float, df: int) -> float:
    r"""
    Two-sided Student-t critical value :math:`t_{1-\alpha/2,\,\nu}`.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.
    df : int
        Degrees of freedom :math:`\nu \ge 1`.

    Returns
    -------
    float
        The Student-t quantile.
    """
    _check_confidence(confidence)
    if df < 1:
        raise ValueError("df must be at least 1")
    return float(student_t.ppf(0.5 + confidence / 2.0, df))


def autocrit(confidence: float, n: int, method: str = "auto") -> tuple[float, str]:
    r"""
    Select a critical value for a mean CI of ``n`` observations.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.
    n : int
        Number of observations.
    method : {"auto", "z", "t"}, default ``"auto"``
        ``"auto"`` uses Student-t with ``n - 1`` degrees of freedom when
        ``n < 30`` and the normal value otherwise.

    Returns
    -------
    tuple[float, str]
        ``(crit, kind)`` where ``kind`` is ``"z"`` or ``"t"``.
    """
    method = str(getattr(method, "value", method))
    if method not in ("auto", "z", "t"):
        raise ValueError(f"ci_method must be one of 'auto', 'z', 't', got '{method}'")
    if method == "auto":
        method = "t" if n < _T_THRESHOLD else "z"
    if method == "t":
        return t_crit(confidence, max(1, n - 1)), "t"
    return z_crit(confidence), "z"
