"""Array aliases shared across the package."""

from __future__ import annotations

from typing import TypeAlias

import numpy as np
from numpy.typing import NDArray

Vector3 = NDArray[np.float64]
Matrix33 = NDArray[np.float64]
Matrix44 = NDArray[np.float64]
Quaternion = NDArray[np.float64]  # (x, y, z, w)

JointValues: TypeAlias = dict[str, float]

# Millisecond wall-clock reading supplied by the host (or the default clock).
TimeMs: TypeAlias = float
