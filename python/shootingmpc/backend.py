"""
Numerical Backends
==================

Thin adapter between the assembled NLP and a CasADi ``nlpsol`` instance.

The controller only relies on the :class:`Backend` protocol, so a test
double that records its arguments can be injected through
``MPC(problem, backend=factory)``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Protocol

import casadi as ca
import numpy as np

from .exceptions import AssemblyError

logger = logging.getLogger(__name__)


class Backend(Protocol):
    """Callable solver bound to one NLP structure."""

    def __call__(
        self,
        x0: np.ndarray,
        lbx: np.ndarray,
        ubx: np.ndarray,
        lbg: np.ndarray,
        ubg: np.ndarray,
        lam_x0: np.ndarray,
        lam_g0: np.ndarray,
    ) -> Dict[str, np.ndarray]: ...

    def stats(self) -> Dict[str, Any]: ...


BackendFactory = Callable[[Mapping[str, Any], str, Dict[str, Any]], Backend]


class CasadiBackend:
    """
    ``casadi.nlpsol`` wrapped to take and return NumPy arrays.

    Args:
        nlp: ``{"x": w, "f": J, "g": g}`` symbolic problem
        plugin: nlpsol plugin name (``"ipopt"``, ``"sqpmethod"``, ...)
        options: Option dictionary forwarded unmodified to ``nlpsol``
    """

    def __init__(self, nlp: Mapping[str, Any], plugin: str, options: Dict[str, Any]) -> None:
        self.plugin = plugin
        self.options = options
        try:
            self._solver = ca.nlpsol("solver", plugin, dict(nlp), options)
        except RuntimeError as e:
            raise AssemblyError(f"nlpsol('{plugin}') failed: {e}") from e
        logger.debug("created nlpsol backend '%s'", plugin)

    def __call__(self, x0, lbx, ubx, lbg, ubg, lam_x0, lam_g0):
        sol = self._solver(
            x0=x0,
            lbx=lbx,
            ubx=ubx,
            lbg=lbg,
            ubg=ubg,
            lam_x0=lam_x0,
            lam_g0=lam_g0,
        )
        return {key: np.asarray(value.full()).ravel() for key, value in sol.items()}

    def stats(self) -> Dict[str, Any]:
        return dict(self._solver.stats())
