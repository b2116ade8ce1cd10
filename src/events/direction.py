"""
Compass direction of a vehicle's path from entry to exit.
"""

from __future__ import annotations

from typing import Tuple

STATIONARY = "stationary"


def compass_direction(
    start: Tuple[float, float],
    end: Tuple[float, float],
    threshold: float = 0.1,
    swap_axes: bool = True,
) -> str:
    """
    Classify the displacement between two normalized positions.

    With swap_axes the camera is mounted rotated relative to the map: image
    x motion is read as north/south and image y motion as east/west. Positive
    compass-x is east and positive compass-y is south.

    Args:
        start: Entry centroid (x, y).
        end: Exit centroid (x, y).
        threshold: Minimum displacement per axis to count as movement.
        swap_axes: Apply the rotated-mount correction.

    Returns:
        One of north, northeast, east, southeast, south, southwest, west,
        northwest or stationary.
    """
    if swap_axes:
        dy = end[0] - start[0]
        dx = end[1] - start[1]
    else:
        dx = end[0] - start[0]
        dy = end[1] - start[1]

    if dx < -threshold and dy < -threshold:
        return "northwest"
    if dx > threshold and dy < -threshold:
        return "northeast"
    if dx < -threshold and dy > threshold:
        return "southwest"
    if dx > threshold and dy > threshold:
        return "southeast"
    if dx < -threshold:
        return "west"
    if dx > threshold:
        return "east"
    if dy < -threshold:
        return "north"
    if dy > threshold:
        return "south"
    return STATIONARY
