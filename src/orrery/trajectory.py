'''Append-only trajectories of the bodies of an ephemeris
Trajectory class definition'''

import threading

import numpy as np
import pandas as pd
from scipy.interpolate import CubicHermiteSpline
from typing import Union, Optional, Tuple

from .config import config
from .rigid_motion import DegreesOfFreedom
from .utils import validation_error

_INITIAL_CAPACITY = 16


def _hermite_interpolation(t_array: np.ndarray, states: np.ndarray,
                           times: np.ndarray) -> np.ndarray:
    """
    Cubic Hermite interpolation of sampled states, shape (n_times, 6).

    Only the intervals bracketing ``times`` enter the spline.  Times outside
    the samples are extrapolated from the first or last interval.
    """
    if len(t_array) == 1:
        return np.tile(states[0], (len(times), 1))

    # Index of the left end of the bracketing interval.
    i = np.clip(np.searchsorted(t_array, times, side='right') - 1,
                0, len(t_array) - 2)
    lo, hi = i.min(), i.max() + 2
    spline = CubicHermiteSpline(t_array[lo:hi], states[lo:hi, :3],
                                states[lo:hi, 3:], extrapolate=True)
    result = np.hstack([spline(times), spline(times, 1)])

    # Samples are returned exactly.
    k = np.clip(np.searchsorted(t_array, times), 0, len(t_array) - 1)
    exact = t_array[k] == times
    result[exact] = states[k[exact]]
    return result


class Trajectory:
    """
    A time-ordered sequence of states with continuous-time state access.

    States are appended by the integrator that owns the trajectory (an
    Ephemeris for massive bodies, a massless flow for the others); between
    samples positions and velocities are given by cubic Hermite
    interpolation, which is exact at the samples.

    One thread may append while others read.  Samples live in preallocated
    buffers that grow by doubling; a sample is written before the sample
    count is published, and every read works on one snapshot of the count
    and the buffers.

    Attributes:
        body: The body this trajectory belongs to (may be None)
        t_min: Time of the first sample
        t_max: Time of the last sample
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, body=None):
        self._body = body
        # (times, states) with states rows (x, y, z, vx, vy, vz).
        self._buffers = (np.empty(_INITIAL_CAPACITY),
                         np.empty((_INITIAL_CAPACITY, 6)))
        # Number of published samples; rows past it are being written.
        self._size = 0
        self._append_lock = threading.Lock()

    def append(self, t: float, position, velocity):
        """
        Append a state after the last one.

        Parameters:
            t: Time of the state, strictly after t_max
            position: Position [km], shape (3,)
            velocity: Velocity [km/s], shape (3,)
        """
        t = float(t)
        position = np.array(position, dtype=float)
        velocity = np.array(velocity, dtype=float)
        with self._append_lock:
            n = self._size
            times, states = self._buffers
            if n and not t > times[n - 1]:
                validation_error(
                    f"Cannot append state at t = {t}: trajectory already ends "
                    f"at t = {times[n - 1]}"
                )
                return
            if position.shape != (3,) or velocity.shape != (3,):
                validation_error(
                    f"Position and velocity must have shape (3,), got "
                    f"{position.shape} and {velocity.shape}"
                )
                return
            if n == len(times):
                grown_times = np.empty(2 * n)
                grown_states = np.empty((2 * n, 6))
                grown_times[:n] = times
                grown_states[:n] = states
                times, states = grown_times, grown_states
                self._buffers = (times, states)
            times[n] = t
            states[n, :3] = position
            states[n, 3:] = velocity
            self._size = n + 1

    def _snapshot(self) -> Tuple[np.ndarray, np.ndarray]:
        """Read-only views of the published samples."""
        # The count must be read before the buffers: a grown buffer holds at
        # least every sample published before it was installed.
        n = self._size
        times, states = self._buffers
        return times[:n], states[:n]

    # ========== PROPERTY ACCESS ==========
    @property
    def body(self):
        return self._body

    @property
    def t_min(self) -> float:
        t_array, _ = self._snapshot()
        self._validate_not_empty(t_array)
        return float(t_array[0])

    @property
    def t_max(self) -> float:
        t_array, _ = self._snapshot()
        self._validate_not_empty(t_array)
        return float(t_array[-1])

    @property
    def times(self) -> np.ndarray:
        """Times of the samples."""
        return self._snapshot()[0].copy()

    def last(self) -> DegreesOfFreedom:
        """Degrees of freedom of the last sample."""
        t_array, states = self._snapshot()
        self._validate_not_empty(t_array)
        return DegreesOfFreedom(states[-1, :3].copy(), states[-1, 3:].copy())

    # ========== UTILITY METHODS ==========
    def evaluate_position(self, t: float) -> np.ndarray:
        """Position [km] at time t, in [t_min, t_max]."""
        return self.evaluate_raw(float(t))[:3]

    def evaluate_velocity(self, t: float) -> np.ndarray:
        """Velocity [km/s] at time t, in [t_min, t_max]."""
        return self.evaluate_raw(float(t))[3:]

    def evaluate_degrees_of_freedom(self, t: float) -> DegreesOfFreedom:
        """Position and velocity at time t, in [t_min, t_max]."""
        state = self.evaluate_raw(float(t))
        return DegreesOfFreedom(state[:3], state[3:])

    def evaluate_raw(self, times: Union[float, np.ndarray, list]) -> np.ndarray:
        """
        Evaluate at one or more times, returning raw arrays.

        Parameters:
            times: Single time or array of times

        Returns:
            State array of shape (6,) if times is scalar,
            Array of shape (n_times, 6) if times is array-like
        """
        scalar = np.ndim(times) == 0
        times = np.atleast_1d(np.asarray(times, dtype=float))
        t_array, states = self._snapshot()
        for t in (times.min(), times.max()):
            self._validate_time(t, t_array)
        states = _hermite_interpolation(t_array, states, times)
        return states[0] if scalar else states

    def extrapolate_position(self, t: float) -> np.ndarray:
        """
        Position [km] at any time t.

        Inside [t_min, t_max] this is `evaluate_position`.  Outside, the
        cubic of the first or last interval is continued; a trajectory with a
        single sample stays at that sample.
        """
        t_array, states = self._snapshot()
        self._validate_not_empty(t_array)
        return _hermite_interpolation(t_array, states,
                                      np.array([float(t)]))[0, :3]

    def _validate_not_empty(self, t_array: np.ndarray):
        if len(t_array) == 0:
            raise ValueError(f"Trajectory of {self._body} is empty")

    def _validate_time(self, t: float, t_array: np.ndarray):
        """Validate that time is within the bounds of a snapshot."""
        self._validate_not_empty(t_array)
        if not t_array[0] <= t <= t_array[-1]:
            raise ValueError(
                f"Time {t} outside trajectory bounds "
                f"[{t_array[0]}, {t_array[-1]}]"
            )

    def contains_time(self, t: float) -> bool:
        """Check if time is within trajectory bounds."""
        t_array, _ = self._snapshot()
        return len(t_array) > 0 and bool(t_array[0] <= t <= t_array[-1])

    def get_times(self, n_points: Optional[int] = None) -> np.ndarray:
        """Generate uniform time array spanning trajectory."""
        if n_points is None:
            n_points = config.DEFAULT_SAMPLE_POINTS
        t_array, _ = self._snapshot()
        self._validate_not_empty(t_array)
        return np.linspace(t_array[0], t_array[-1], n_points)

    def to_dataframe(self,
                     times: Optional[np.ndarray] = None,
                     n_points: Optional[int] = None) -> pd.DataFrame:
        """
        Export trajectory to pandas DataFrame.

        Parameters:
            times: Specific times to evaluate. If None, uses uniform sampling.
            n_points: Number of uniform samples if times not provided
                (default: config.DEFAULT_SAMPLE_POINTS)

        Returns:
            DataFrame with columns for time and state components
        """
        # Get evaluation times
        if times is None:
            times = self.get_times(n_points)
        else:
            times = np.asarray(times, dtype=float)

        # Evaluate states to a numpy array
        states = self.evaluate_raw(times)

        # Build data dictionary using array slicing
        data = {
            'time': times,
            'x': states[:, 0],
            'y': states[:, 1],
            'z': states[:, 2],
            'vx': states[:, 3],
            'vy': states[:, 4],
            'vz': states[:, 5],
        }

        return pd.DataFrame(data)

    # ========== SPECIAL METHODS ==========
    def __len__(self):
        return self._size

    def __repr__(self):
        t_array, _ = self._snapshot()
        if len(t_array) == 0:
            return f"Trajectory(body={self._body}, empty)"
        return (f"Trajectory(body={self._body}, t_min={float(t_array[0])}, "
                f"t_max={float(t_array[-1])}, samples={len(t_array)})")

    def __call__(self, t: float) -> DegreesOfFreedom:
        """
        Evaluate trajectory at time t.
        Syntactic sugar for .evaluate_degrees_of_freedom(t). Allows traj(t)
        syntax.

        Parameters:
            t: Time to query

        Returns:
            DegreesOfFreedom at time t
        """
        return self.evaluate_degrees_of_freedom(t)
