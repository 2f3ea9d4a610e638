"""Zoom level calculation from chart scale values."""

from __future__ import annotations

#: Zoom level at which one map unit matches one chart unit (highest detail).
ONE_TO_ONE_ZOOM = 28


def find_zoom(scale: int | float) -> int:
    """Return the zoom level matching a scale denominator.

    Each halving of the scale above 1 lowers the zoom by one step.
    """
    zoom = ONE_TO_ONE_ZOOM
    z_scale = float(scale)
    while z_scale > 1.0:
        z_scale /= 2.0
        zoom -= 1
    return zoom


def calculate_z_range(scamin: int, scamax: int) -> tuple[int, int]:
    """Return ``(min_z, max_z)`` for the SCAMIN and SCAMAX attributes.

    A value of zero or less leaves the corresponding bound at its default;
    the pair is always ordered so that ``min_z <= max_z``.
    """
    min_z = find_zoom(scamin) if scamin > 0 else 0
    max_z = find_zoom(scamax) if scamax > 0 else ONE_TO_ONE_ZOOM
    if min_z > max_z:
        min_z, max_z = max_z, min_z
    return min_z, max_z