"""
Fundamental astronomical arguments for the harmonic method.

Mean longitudes of the moon and sun, the lunar and solar perigees, the lunar
ascending node and the hour angle of the mean sun, evaluated from the low-order
polynomials of Schureman (1958) Table 1. Time is measured in Julian centuries
from the Table 1 epoch, 1899-12-31 12:00 UTC (JD 2415020.0).

References:
- Julian Day: Meeus, J. (1991) "Astronomical Algorithms", formula 7.1
- Polynomials: Schureman, P. (1958) "Manual of Harmonic Analysis and Prediction
  of Tides", Special Publication 98, Table 1
"""
from dataclasses import dataclass
from datetime import datetime

# Obliquity of the ecliptic and inclination of the lunar orbit, fixed at the
# 1900 epoch the station harmonics are reduced to
OBLIQUITY = 23.0 + 27.0 / 60.0 + 8.26 / 3600.0
LUNAR_INCLINATION = 5.0 + 8.0 / 60.0 + 43.3546 / 3600.0

TABLE_1_EPOCH_JD = 2415020.0
DAYS_PER_JULIAN_CENTURY = 36525.0


@dataclass(frozen=True)
class AstronomicalArguments:
    """
    Orbital elements at one instant, all in degrees within [0, 360).

    Attributes:
        T: Julian centuries since 1899-12-31 12:00 UTC (not an angle)
        s: Mean longitude of the moon
        h: Mean longitude of the sun
        p: Longitude of lunar perigee
        p1: Longitude of solar perigee
        N: Longitude of the moon's ascending node
        tau: Hour angle of the mean sun (180 at UTC midnight)
    """
    T: float
    s: float
    h: float
    p: float
    p1: float
    N: float
    tau: float


def _to_utc_naive(dt: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive input is taken as UTC."""
    if dt.tzinfo is not None:
        return dt.replace(tzinfo=None) - dt.utcoffset()
    return dt


def julian_day(dt: datetime) -> float:
    """
    Calculate the Julian Day for a datetime.
    Based on Meeus formula 7.1 (Gregorian calendar).

    Args:
        dt: datetime object (naive values are taken as UTC)

    Returns:
        Julian Day as a float
    """
    dt_utc = _to_utc_naive(dt)

    y = dt_utc.year
    m = dt_utc.month
    d = dt_utc.day + (
        dt_utc.hour
        + dt_utc.minute / 60.0
        + (dt_utc.second + dt_utc.microsecond / 1e6) / 3600.0
    ) / 24.0

    if m <= 2:
        y -= 1
        m += 12

    a = int(y / 100)
    b = 2 - a + int(a / 4)

    return int(365.25 * (y + 4716)) + int(30.6001 * (m + 1)) + d + b - 1524.5


def julian_centuries(dt: datetime) -> float:
    """Julian centuries elapsed since the Table 1 epoch (1899-12-31 12:00 UTC)."""
    return (julian_day(dt) - TABLE_1_EPOCH_JD) / DAYS_PER_JULIAN_CENTURY


def astronomical_arguments(dt: datetime) -> AstronomicalArguments:
    """
    Evaluate the fundamental arguments at an instant.

    Args:
        dt: Instant of evaluation (naive values are taken as UTC)

    Returns:
        AstronomicalArguments with every angle reduced to [0, 360)
    """
    T = julian_centuries(dt)
    T2 = T * T
    T3 = T2 * T

    s = (270.0 + 26.0 / 60.0 + 14.72 / 3600.0
         + (1336.0 * 360.0 + 1108411.2 / 3600.0) * T
         + (9.09 / 3600.0) * T2
         + (0.0068 / 3600.0) * T3)

    h = (279.0 + 41.0 / 60.0 + 48.04 / 3600.0
         + (129602768.13 / 3600.0) * T
         + (1.089 / 3600.0) * T2)

    p = (334.0 + 19.0 / 60.0 + 40.87 / 3600.0
         + (11.0 * 360.0 + 392515.94 / 3600.0) * T
         - (37.24 / 3600.0) * T2
         - (0.045 / 3600.0) * T3)

    p1 = (281.0 + 13.0 / 60.0 + 15.0 / 3600.0
          + (6189.03 / 3600.0) * T
          + (1.63 / 3600.0) * T2
          + (0.012 / 3600.0) * T3)

    N = (259.0 + 10.0 / 60.0 + 57.12 / 3600.0
         - (5.0 * 360.0 + 482912.63 / 3600.0) * T
         + (7.58 / 3600.0) * T2
         + (0.008 / 3600.0) * T3)

    # The epoch is at noon, so a whole number of days lands on tau = 0
    tau = T * DAYS_PER_JULIAN_CENTURY * 360.0

    return AstronomicalArguments(
        T=T,
        s=s % 360.0,
        h=h % 360.0,
        p=p % 360.0,
        p1=p1 % 360.0,
        N=N % 360.0,
        tau=tau % 360.0,
    )
