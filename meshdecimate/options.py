"""
Decimation Options
==================

Validated run configuration.  Options are given as a mapping (or keyword
arguments) and converted once, so that the decimator never has to deal
with malformed values.
"""

import numbers
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from .exceptions import ConfigurationError
from .qem import Placement


@dataclass
class DecimationOptions:
    """
    Decimation parameters.

    Attributes:
        size: Target edge length; contractions stop once the cheapest
              edge costs more than ``size ** 2``
        placement: Position strategy for contracted vertices
        maxtriangles: Target number of triangles, 0 to disable
        boundary_weight: Multiplier of the boundary fin planes
        swap: Run the edge swap pass after each contraction
        swap_threshold: Minimum cosine between normals of swapped triangles
    """
    size: Optional[float] = None
    placement: Placement = Placement.EDGE
    maxtriangles: int = 0
    boundary_weight: float = 100.0
    swap: bool = False
    swap_threshold: float = 0.95

    @classmethod
    def from_dict(cls, options: Optional[Mapping[str, Any]] = None,
                  **kwargs) -> "DecimationOptions":
        """
        Build options from a mapping and/or keyword arguments.

        Raises:
            ConfigurationError: on unknown keys, invalid values, or when
            neither ``size`` nor ``maxtriangles`` is given
        """
        values = dict(options or {})
        values.update(kwargs)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(f"Unknown option(s): {', '.join(unknown)}")

        ret = cls()
        if values.get("size") is not None:
            ret.size = _positive_real("size", values["size"])
        if "placement" in values:
            try:
                ret.placement = Placement.parse(values["placement"])
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc
        if "maxtriangles" in values:
            maxtriangles = values["maxtriangles"]
            if (isinstance(maxtriangles, bool)
                    or not isinstance(maxtriangles, numbers.Integral)
                    or maxtriangles < 0):
                raise ConfigurationError(
                    f"maxtriangles must be a non-negative integer, got {maxtriangles!r}")
            ret.maxtriangles = int(maxtriangles)
        if "boundary_weight" in values:
            ret.boundary_weight = _positive_real("boundary_weight", values["boundary_weight"])
        if "swap" in values:
            if not isinstance(values["swap"], bool):
                raise ConfigurationError(f"swap must be a boolean, got {values['swap']!r}")
            ret.swap = values["swap"]
        if "swap_threshold" in values:
            threshold = _positive_real("swap_threshold", values["swap_threshold"])
            if threshold > 1.0:
                raise ConfigurationError(
                    f"swap_threshold must be in (0, 1], got {threshold}")
            ret.swap_threshold = threshold

        if ret.size is None and ret.maxtriangles == 0:
            raise ConfigurationError("Either size or maxtriangles must be set")
        return ret

    @property
    def tolerance(self) -> float:
        """Squared size, or 1.0 when only a triangle count is targeted."""
        if self.size is None:
            return 1.0
        return self.size * self.size

    @property
    def count_mode(self) -> bool:
        return self.maxtriangles > 0


def _positive_real(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not value > 0.0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return float(value)
