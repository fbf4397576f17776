"""
Solver Presets
==============

Named, versioned option sets for the CasADi ``nlpsol`` backends.

Presets are plain data. Callers copy them and override fields; nothing here
is mutated at runtime.

>>> from shootingmpc.config import IPOPT
>>> opts = IPOPT.with_overrides({"ipopt.max_iter": 50})
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .exceptions import InvalidInputError


@dataclass(frozen=True)
class SolverPreset:
    """
    Backend plugin plus its default options.

    Attributes:
        name: Preset name used by ``MPC(problem, solver=name)``
        version: Bumped whenever the default options change
        plugin: CasADi ``nlpsol`` plugin name
        options: Default option dictionary (never handed out directly)
    """
    name: str
    version: int
    plugin: str
    options: Mapping[str, Any] = field(default_factory=dict)

    def options_copy(self) -> Dict[str, Any]:
        """Deep copy of the default options."""
        return copy.deepcopy(dict(self.options))

    def with_overrides(self, overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Copy the defaults and replace fields from ``overrides``.

        Nested dictionaries (e.g. ``qpsol_options``) are merged key by key.
        """
        merged = self.options_copy()
        for key, value in (overrides or {}).items():
            if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
                merged[key].update(copy.deepcopy(dict(value)))
            else:
                merged[key] = copy.deepcopy(value)
        return merged


IPOPT = SolverPreset(
    name="ipopt",
    version=1,
    plugin="ipopt",
    options={
        "calc_lam_p": True,
        "calc_lam_x": True,
        "ipopt.sb": "yes",
        "ipopt.print_level": 0,
        "print_time": False,
        "ipopt.warm_start_init_point": "yes",
        "expand": True,
    },
)

QPOASES = SolverPreset(
    name="qpoases",
    version=1,
    plugin="sqpmethod",
    options={
        "calc_lam_p": True,
        "calc_lam_x": True,
        "max_iter": 100,
        "print_header": False,
        "print_iteration": False,
        "print_status": False,
        "print_time": False,
        "qpsol": "qpoases",
        "qpsol_options": {"enableRegularisation": True, "printLevel": "none"},
        "expand": True,
    },
)

HPIPM = SolverPreset(
    name="hpipm",
    version=1,
    plugin="sqpmethod",
    options={
        "calc_lam_p": True,
        "calc_lam_x": True,
        "max_iter": 100,
        "print_header": False,
        "print_iteration": False,
        "print_status": False,
        "print_time": False,
        "qpsol": "hpipm",
        "qpsol_options": {"hpipm.iter_max": 100, "hpipm.warm_start": True},
        "expand": True,
    },
)

PRESETS: Dict[str, SolverPreset] = {p.name: p for p in (IPOPT, QPOASES, HPIPM)}


def get_preset(name: str) -> SolverPreset:
    """Look up a preset by name."""
    try:
        return PRESETS[name]
    except KeyError:
        raise InvalidInputError(
            f"unknown solver preset '{name}', expected one of {sorted(PRESETS)}"
        ) from None


def resolve_solver(
    solver: str, config: Optional[Mapping[str, Any]] = None
) -> Tuple[str, Dict[str, Any]]:
    """
    Turn ``(solver, config)`` into ``(plugin, options)``.

    A preset name selects its plugin; its options are used only when
    ``config`` is None. Any other name is taken as a raw plugin name and
    ``config`` (or an empty dict) is forwarded unchanged.

    Raises:
        InvalidInputError: If ``config`` is given for a QP-based preset
            without naming that preset's ``qpsol``
    """
    if solver in PRESETS:
        preset = PRESETS[solver]
        if config is None:
            return preset.plugin, preset.options_copy()
        qpsol = preset.options.get("qpsol")
        if qpsol is not None and config.get("qpsol") != qpsol:
            raise InvalidInputError(
                f"config for preset '{solver}' must set qpsol='{qpsol}', "
                f"got {config.get('qpsol')!r}; use preset.with_overrides() "
                f"or the raw plugin '{preset.plugin}'"
            )
        return preset.plugin, dict(config)
    return solver, dict(config or {})
