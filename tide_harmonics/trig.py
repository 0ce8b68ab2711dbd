"""
Degree-based trigonometric helpers.

Every angle in the harmonic method (astronomical arguments, nodal terms,
equilibrium arguments, station phases) is expressed in degrees, so these thin
wrappers keep the conversion to radians in one place. They accept scalars or
numpy arrays.
"""
import numpy as np


def sind(deg):
    return np.sin(np.radians(deg))


def cosd(deg):
    return np.cos(np.radians(deg))


def tand(deg):
    return np.tan(np.radians(deg))


def asind(x):
    """Inverse sine in degrees, clamping inputs that drift just outside [-1, 1]."""
    return np.degrees(np.arcsin(np.clip(x, -1.0, 1.0)))


def acosd(x):
    """Inverse cosine in degrees, clamping inputs that drift just outside [-1, 1]."""
    return np.degrees(np.arccos(np.clip(x, -1.0, 1.0)))


def atan2d(y, x):
    return np.degrees(np.arctan2(y, x))
