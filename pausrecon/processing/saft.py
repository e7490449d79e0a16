import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

MAX_SAFT_LINES = 15


def _round_half_away(x):
    return np.sign(x) * np.floor(np.abs(x) + 0.5)


@dataclass
class TimeDelay:
    time_delay: np.ndarray  # (z_end - z_start, MAX_SAFT_LINES) [samples]
    saft_lines: np.ndarray  # (z_end - z_start,) uint8, contributing lines per depth
    z_start: int
    z_end: int


@dataclass
class SaftDelayParams:
    """
    SAFT parameters relating to transducer geometry, rotation geometry,
    and illumination geometry.
    """
    rt: float  # [mm] distance from axis of rotation to transducer surface
    vs: float  # [m/s] sound speed
    dt: float  # [s] timestep
    da: float  # [rad] angle step size in each rotation

    f: float  # [mm] transducer focal length
    d: float  # [mm] transducer diameter
    angle: float  # [rad] transducer focus angle

    angle_light: float  # [rad] illumination angle

    def dr(self) -> float:
        """[mm] spatial step size"""
        return self.vs * self.dt * 1e3

    @staticmethod
    def make() -> "SaftDelayParams":
        return SaftDelayParams(
            rt=6.2,
            vs=1.5e3,
            dt=1.0 / 180e6,
            da=2 * np.pi / 1000,
            f=15.0,
            d=8.5,
            angle=math.asin(8.5 / (2 * 15.0)),
            angle_light=np.deg2rad(5),
        )

    def compute_saft_time_delay(self, z_start: int = -1, z_end: int = -1) -> TimeDelay:
        """Compute the delay table for every depth bin in [z_start, z_end).

        By default z_start is a quarter of the focal distance and z_end is 1.5x
        the focal distance, both in samples.
        """
        p = self
        if z_start < 0:
            z_start = int(_round_half_away((p.f * 0.25) / p.dr()))
        if z_end < 0:
            z_end = int(_round_half_away((p.f * 1.5) / p.dr()))

        n_lines = np.zeros(z_end - z_start, dtype=np.uint8)
        time_delay = np.zeros((z_end - z_start, MAX_SAFT_LINES), dtype=np.float64)

        i = np.arange(z_start, z_end)
        dr1 = i * p.dr()
        r = p.rt + dr1

        with np.errstate(invalid="ignore", divide="ignore"):
            for j in range(1, MAX_SAFT_LINES):
                ang1 = j * p.da

                # relative position to the transducer center dr2 and ang2
                dr2 = np.sqrt(r * r + p.rt * p.rt - 2 * r * p.rt * np.cos(ang1))
                ang2 = np.pi - np.arccos((p.rt * p.rt + dr2 * dr2 - r * r) / (2 * p.rt * dr2))

                # Within the light beam field
                in_light = ~(ang2 >= p.angle_light)

                # distance to focus and angle wrt focal line
                dr3 = np.sqrt(p.f * p.f + dr2 * dr2 - 2 * p.f * dr2 * np.cos(ang2))
                ang3 = np.arccos((p.f * p.f + dr3 * dr3 - dr2 * dr2) / (2 * p.f * dr3))

                near = in_light & (dr3 <= p.f) & (ang3 <= p.angle)
                far = in_light & ~near & ((np.pi - ang3) <= p.angle)

                time_delay[near, j] = (np.abs(p.f - dr1[near]) - dr3[near]) / p.dr()
                time_delay[far, j] = (dr3[far] - np.abs(p.f - dr1[far])) / p.dr()
                n_lines += (near | far).astype(np.uint8)

        return TimeDelay(time_delay, n_lines, z_start, z_end)


def apply_saft(time_delay: TimeDelay, rf: np.ndarray, dtype=np.float64) -> Tuple[np.ndarray, np.ndarray]:
    """Delay-and-sum synthetic aperture focusing with coherence factor weighting.

    Args:
        time_delay (TimeDelay): Delay table from `compute_saft_time_delay`.
        rf (np.ndarray): RF of shape (samples, lines). Lines wrap around, as one
            frame is a full rotation.
        dtype: Floating point type of the accumulators.

    Returns:
        Tuple[np.ndarray, np.ndarray]: The summed RF and the coherence factor
            weighted RF, both of shape (samples, lines).
    """
    n_pts, _ = rf.shape
    rf = np.asarray(rf, dtype=dtype)
    rf_saft = rf.copy()
    n_saft = np.ones(rf.shape, dtype=np.int32)
    cf_denom = np.square(rf)

    z_start = time_delay.z_start
    depth = np.arange(z_start, min(time_delay.z_end, n_pts))
    counts = time_delay.saft_lines[:depth.size]

    # One pass per lateral offset dj over every depth bin with more than dj lines
    for dj in range(time_delay.time_delay.shape[1]):
        iz = depth[counts > dj]
        if iz.size == 0:
            break
        iz_delayed = _round_half_away(iz + time_delay.time_delay[iz - z_start, dj]).astype(np.int64)
        valid = (iz_delayed >= 0) & (iz_delayed < n_pts)
        iz, iz_delayed = iz[valid], iz_delayed[valid]

        val = rf[iz_delayed]
        sq = val * val

        # line j contributes to lines (j - dj) and (j + dj), wrapping around
        rf_saft[iz] += np.roll(val, -dj, axis=1) + np.roll(val, dj, axis=1)
        cf_denom[iz] += np.roll(sq, -dj, axis=1) + np.roll(sq, dj, axis=1)
        n_saft[iz] += 2

    # CF = rf_saft ** 2 / (cf_denom * n_saft)
    nom = rf_saft * rf_saft
    denom = cf_denom * n_saft
    cf = np.ones_like(rf_saft)
    np.divide(nom, denom, out=cf, where=denom != 0)

    rf_saft_cf = (rf_saft * cf / n_saft).astype(dtype, copy=False)
    return rf_saft, rf_saft_cf
