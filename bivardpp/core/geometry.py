"""Domain Geometry Pre-computation
================================

Builds everything the likelihood needs from the point pattern once, at setup:

1. Domain volume (product of side lengths, or an explicit override)
2. Periodic neighborhood offsets {-1, 0, 1}^D
3. Pairwise distance matrix, optionally with periodic wrap-around

The resulting ``DomainGeometry`` is immutable and shared read-only by every
downstream computation. Building it costs O(N² 3^D) in periodic mode and
O(N²) otherwise, so it is never recomputed per objective call.
"""

import itertools
from dataclasses import dataclass

import numpy as np
from scipy.spatial.distance import cdist

from bivardpp.core.exceptions import InputValidationError
from bivardpp.utils.logging import get_logger, log_performance

logger = get_logger(__name__)


def periodic_offsets(dimension: int) -> np.ndarray:
    """All integer offset vectors in {-1, 0, 1}^D.

    Args:
        dimension: Domain dimension D (may be zero)

    Returns:
        Integer array of shape (3**D, D); contains the zero offset
    """
    offsets = list(itertools.product((-1, 0, 1), repeat=dimension))
    return np.array(offsets, dtype=int).reshape(len(offsets), dimension)


def compute_distance_matrix(
    points: np.ndarray,
    lower: np.ndarray,
    upper: np.ndarray,
    periodic: bool = True,
    offsets: np.ndarray | None = None,
) -> np.ndarray:
    """Pairwise distances between points of a box domain.

    In periodic mode, entry (i, j) is the smallest Euclidean distance between
    an image ``x_i + o * (upper - lower)`` and the plain coordinate ``x_j``.
    The zero offset is always a candidate, so periodic distances never exceed
    plain ones. Only the upper triangle is computed; it is mirrored so the
    result is exactly symmetric with an exactly zero diagonal.
    """
    points = np.asarray(points, dtype=float)
    n_points, dimension = points.shape
    distances = np.zeros((n_points, n_points))

    if n_points < 2 or dimension == 0:
        return distances

    if periodic:
        if offsets is None:
            offsets = periodic_offsets(dimension)
        side = np.asarray(upper, dtype=float) - np.asarray(lower, dtype=float)
        distances = np.full((n_points, n_points), np.inf)
        for offset in offsets:
            shifted = points + offset * side
            np.minimum(distances, cdist(shifted, points), out=distances)
    else:
        distances = cdist(points, points)

    upper_triangle = np.triu(distances, k=1)
    return upper_triangle + upper_triangle.T


def _validate_inputs(points, labels, lower, upper):
    """Shape and finiteness checks; nothing about the pattern itself."""
    points = np.asarray(points, dtype=float)
    if points.ndim == 1:
        points = points.reshape(-1, 1)
    if points.ndim != 2:
        raise InputValidationError(
            f"points must be a 2-D array (n_points, dimension), got ndim={points.ndim}"
        )

    n_points, dimension = points.shape
    labels = np.asarray(labels).astype(int).reshape(-1)
    lower = np.asarray(lower, dtype=float).reshape(-1)
    upper = np.asarray(upper, dtype=float).reshape(-1)

    if labels.size != n_points:
        raise InputValidationError(
            f"Expected {n_points} labels, got {labels.size}",
            {"n_points": n_points},
        )
    if lower.size != dimension or upper.size != dimension:
        raise InputValidationError(
            f"Domain bounds must have {dimension} entries, "
            f"got lower={lower.size}, upper={upper.size}"
        )
    if not (
        np.all(np.isfinite(points))
        and np.all(np.isfinite(lower))
        and np.all(np.isfinite(upper))
    ):
        raise InputValidationError("Points and domain bounds must be finite")

    return points, labels, lower, upper


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.array(array, copy=True)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class DomainGeometry:
    """Immutable point pattern, domain and pre-computed distances.

    Attributes
    ----------
    points : np.ndarray
        Coordinates, shape (N, D)
    labels : np.ndarray
        Type labels in {1, 2}, shape (N,)
    lower, upper : np.ndarray
        Per-dimension domain bounds
    volume : float
        Domain volume
    periodic : bool
        Whether distances wrap around the domain
    offsets : np.ndarray
        Periodic neighborhood offsets, shape (3**D, D)
    distance_matrix : np.ndarray
        Symmetric (N, N) pairwise distances
    """

    points: np.ndarray
    labels: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    volume: float
    periodic: bool
    offsets: np.ndarray
    distance_matrix: np.ndarray

    @property
    def dimension(self) -> int:
        return self.points.shape[1]

    @property
    def sample_size(self) -> int:
        return self.points.shape[0]

    @property
    def squared_distances(self) -> np.ndarray:
        return self.distance_matrix**2

    @property
    def label_sums(self) -> np.ndarray:
        """Pairwise label sums: 2 (type 1/1), 3 (cross) or 4 (type 2/2)."""
        return self.labels[:, None] + self.labels[None, :]

    def empirical_intensities(self) -> tuple[float, float]:
        """Points per unit volume for each type."""
        first = float(np.count_nonzero(self.labels == 1)) / self.volume
        second = float(np.count_nonzero(self.labels == 2)) / self.volume
        return first, second

    def copy(self) -> "DomainGeometry":
        """Independent copy for use by another engine instance."""
        return DomainGeometry(
            points=_frozen(self.points),
            labels=_frozen(self.labels),
            lower=_frozen(self.lower),
            upper=_frozen(self.upper),
            volume=self.volume,
            periodic=self.periodic,
            offsets=_frozen(self.offsets),
            distance_matrix=_frozen(self.distance_matrix),
        )


@log_performance(threshold=0.05)
def build_geometry(
    points,
    labels,
    lower,
    upper,
    periodic: bool = True,
    volume: float | None = None,
) -> DomainGeometry:
    """Validate inputs and pre-compute the domain geometry.

    Args:
        points: Coordinates, shape (N, D)
        labels: Type labels in {1, 2}, length N
        lower: Per-dimension lower bounds
        upper: Per-dimension upper bounds
        periodic: Use minimum-image distances
        volume: Explicit domain volume; defaults to the box volume

    Returns:
        DomainGeometry with read-only arrays
    """
    points, labels, lower, upper = _validate_inputs(points, labels, lower, upper)
    dimension = points.shape[1]

    if volume is None:
        volume = float(np.prod(upper - lower))
    elif not np.isfinite(volume):
        raise InputValidationError(f"Domain volume must be finite, got {volume}")

    offsets = periodic_offsets(dimension)
    distances = compute_distance_matrix(points, lower, upper, periodic, offsets)

    logger.debug(
        f"Geometry built: {points.shape[0]} points, dimension {dimension}, "
        f"volume {volume:.6g}, periodic={periodic}, {len(offsets)} offsets"
    )

    return DomainGeometry(
        points=_frozen(points),
        labels=_frozen(labels),
        lower=_frozen(lower),
        upper=_frozen(upper),
        volume=float(volume),
        periodic=bool(periodic),
        offsets=_frozen(offsets),
        distance_matrix=_frozen(distances),
    )


def calc_distance_matrix(points, lower=None, upper=None, periodic: bool = False) -> np.ndarray:
    """Standalone distance matrix utility.

    Without bounds the distances are plain Euclidean; with bounds and
    ``periodic=True`` they wrap around the box.
    """
    points = np.asarray(points, dtype=float)
    if points.ndim == 1:
        points = points.reshape(-1, 1)
    if lower is None or upper is None:
        if periodic:
            raise InputValidationError("Periodic distances need domain bounds")
        lower = points.min(axis=0) if points.size else np.zeros(points.shape[1])
        upper = points.max(axis=0) if points.size else np.zeros(points.shape[1])
    labels = np.ones(points.shape[0], dtype=int)
    return build_geometry(points, labels, lower, upper, periodic=periodic).distance_matrix.copy()
