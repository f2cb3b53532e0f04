"""
Unit Registry for Panorama Label Geolocation.

This module provides a single `pint` unit registry so that length
thresholds given in configuration files ("50 m", "0.05 km", "150 ft") are
converted to meters exactly once, at the configuration boundary. All
internal computations then work in plain meters.

Example Usage
-------------
>>> from common.units import Q_, to_meters
>>> to_meters("0.05 km")
50.0
"""

from typing import Union

import pint
from pint import UnitRegistry as PintUnitRegistry

# Create the global unit registry
ureg = PintUnitRegistry()

# Convenience alias for creating quantities
Q_ = ureg.Quantity

LengthLike = Union[float, int, str, pint.Quantity]


def to_meters(value: LengthLike) -> float:
    """Convert a length to meters.

    Parameters
    ----------
    value : float, int, str or pint.Quantity
        Bare numbers are taken to already be meters. Strings are parsed
        by the unit registry (e.g. "50 m", "0.05 km").

    Returns
    -------
    float
        Length in meters.

    Raises
    ------
    pint.DimensionalityError
        If the value carries a unit that is not a length.
    """
    if isinstance(value, bool):
        raise TypeError("Boolean is not a length")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        value = Q_(value)
    if value.dimensionless:
        # "50" with no unit is meters, like a bare number
        return float(value.magnitude)
    return float(value.to(ureg.meter).magnitude)
