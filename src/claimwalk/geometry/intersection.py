"""
Self-intersection detection for walked paths (rejects figure-eight loops).

Every pair of non-adjacent segments is tested with the counter-clockwise orientation
method from `claimwalk.core.geo`. A walked loop ends next to where it started, so the
first and last few segments sit close together around the closure seam; pairs where one
segment is among the first `seam_segments` and the other among the last `seam_segments`
are not compared.

The seam width is a heuristic. A very short loop that doubles back tightly right at the
seam can cross itself there without being reported.
"""

from __future__ import annotations

from typing import Sequence

from claimwalk.core.geo import LatLon, segments_intersect

DEFAULT_SEAM_SEGMENTS = 2


def find_self_intersection(
    path: Sequence[LatLon], *, seam_segments: int = DEFAULT_SEAM_SEGMENTS
) -> tuple[int, int] | None:
    """Return the indices (i, j) of the first crossing segment pair, or None."""
    if seam_segments < 0:
        raise ValueError("seam_segments must be >= 0")

    points = list(path)
    if len(points) < 4:
        return None
    segment_count = len(points) - 1
    if segment_count < 2:
        return None

    for i in range(segment_count):
        a, b = points[i], points[i + 1]
        for j in range(i + 2, segment_count):
            if i < seam_segments and j >= segment_count - seam_segments:
                continue
            if segments_intersect(a, b, points[j], points[j + 1]):
                return i, j
    return None


def has_self_intersection(path: Sequence[LatLon], *, seam_segments: int = DEFAULT_SEAM_SEGMENTS) -> bool:
    """Whether any two non-adjacent segments of `path` cross (seam pairs exempt)."""
    return find_self_intersection(path, seam_segments=seam_segments) is not None
