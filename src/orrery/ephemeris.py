'''Gravitational n-body ephemeris
Ephemeris class definition

The ephemeris owns the trajectories of the massive bodies and extends them
on demand with a pluggable integrator.  Massless bodies are flowed through
the field of the massive bodies without perturbing them.
'''

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .bodies import MassiveBody, MasslessBody
from .config import config
from .integrators import SymplecticRungeKuttaNystromIntegrator, get_integrator
from .trajectory import Trajectory
from .utils import Timer, validation_error

logger = logging.getLogger(__name__)

# Prolongations of more steps than this are timed and logged at INFO level.
_LONG_PROLONGATION_STEPS = 10000


def _j2_acceleration(displacement: np.ndarray, body: MassiveBody) -> np.ndarray:
    """
    J2 acceleration per unit gravitational parameter.

    Parameters
    ----------
    displacement : np.ndarray, shape (n, 3)
        Positions of the attracted points relative to the oblate body
    body : MassiveBody
        The oblate body

    Returns
    -------
    np.ndarray, shape (n, 3)
    """
    axis = np.asarray(body.axis)
    r2 = np.sum(displacement**2, axis=-1, keepdims=True)
    r = np.sqrt(r2)
    # Common factor: (3/2) * J2 * R^2 / r^5
    factor = 1.5 * body.J2 * body.radius**2 / (r2 * r2 * r)
    z = displacement @ axis
    z = z[..., np.newaxis]
    # a_J2 = factor * [(5z^2/r^2 - 1) r - 2 z axis]
    return factor * ((5.0 * z**2 / r2 - 1.0) * displacement - 2.0 * z * axis)


class _NBodyProblem:
    """Accelerations of the massive bodies on each other."""

    def __init__(self, bodies: Sequence[MassiveBody]):
        self.bodies = list(bodies)
        self.mu = np.array([body.mu for body in self.bodies])
        self.oblate_indices = [i for i, body in enumerate(self.bodies)
                               if body.is_oblate]

    def __call__(self, t: float, positions: np.ndarray) -> np.ndarray:
        n = len(self.bodies)
        # displacement[i, j] is the position of j relative to i
        displacement = positions[np.newaxis, :, :] - positions[:, np.newaxis, :]
        r2 = np.sum(displacement**2, axis=-1)
        np.fill_diagonal(r2, 1.0)
        inverse_r3 = r2 ** -1.5
        np.fill_diagonal(inverse_r3, 0.0)
        accelerations = np.einsum('ijk,ij,j->ik', displacement, inverse_r3,
                                  self.mu)
        for i in self.oblate_indices:
            others = [j for j in range(n) if j != i]
            g = _j2_acceleration(displacement[i, others], self.bodies[i])
            accelerations[others] += self.mu[i] * g
            accelerations[i] -= np.einsum('jk,j->k', g, self.mu[others])
        return accelerations


class _MasslessProblem:
    """
    Accelerations of massless points in the field of an ephemeris.

    Force evaluations of compositions with negative weights may fall
    slightly outside the computed range of the ephemeris; the trajectories
    of the massive bodies are extrapolated there.
    """

    def __init__(self, ephemeris: 'Ephemeris'):
        self._ephemeris = ephemeris

    def __call__(self, t: float, positions: np.ndarray) -> np.ndarray:
        return self._ephemeris.compute_gravitational_accelerations_at_points(
            positions, t, extrapolate=True)


class Ephemeris:
    """
    Trajectories of gravitating massive bodies, extended on demand.

    States are computed on the fixed grid ``initial_time + k * step``.

    Parameters
    ----------
    bodies : sequence of MassiveBody
        The massive bodies; their order defines their indices in messages
    initial_states : sequence of (position, velocity)
        Initial position [km] and velocity [km/s] of each body
    initial_time : float
        Time of the initial states [s]
    integrator : str or integrator, optional
        Integrator or registry name (default: config.DEFAULT_INTEGRATOR)
    step : float, optional
        Step of the grid [s] (default: config.DEFAULT_STEP)

    Examples
    --------
    >>> from orrery import Ephemeris, SUN, EARTH
    >>> ephemeris = Ephemeris(
    ...     [SUN, EARTH],
    ...     [([0, 0, 0], [0, 0, 0]), ([1.496e8, 0, 0], [0, 29.78, 0])],
    ...     initial_time=0.0, step=3600.0)
    >>> ephemeris.prolong(86400.0 * 30)
    >>> earth = ephemeris.trajectory(EARTH)
    >>> earth.evaluate_position(86400.0 * 10.5)
    """

    # ========== CONSTRUCTION ==========
    def __init__(self, bodies: Sequence[MassiveBody], initial_states,
                 initial_time: float, integrator=None,
                 step: Optional[float] = None):
        self._bodies = list(bodies)
        self._initial_time = float(initial_time)
        self._integrator = get_integrator(
            config.DEFAULT_INTEGRATOR if integrator is None else integrator)
        self._step = float(config.DEFAULT_STEP if step is None else step)

        positions, velocities = self._validate_params(self._bodies,
                                                      initial_states,
                                                      self._step)
        self._initial_positions = positions
        self._initial_velocities = velocities

        self._indices = {id(body): i for i, body in enumerate(self._bodies)}
        self._problem = _NBodyProblem(self._bodies)
        self._trajectories = [Trajectory(body) for body in self._bodies]
        for trajectory, q, v in zip(self._trajectories, positions, velocities):
            trajectory.append(self._initial_time, q, v)
        self._instance = self._integrator.new_instance(
            self._problem, self._initial_time, positions, velocities,
            self._step)

    # ========== VALIDATION ==========
    @staticmethod
    def _validate_params(bodies, initial_states, step):
        """Validate the bodies and initial states."""
        if len(bodies) == 0:
            raise ValueError("An ephemeris needs at least one massive body")
        for body in bodies:
            if not isinstance(body, MassiveBody):
                raise TypeError(
                    f"Ephemeris bodies must be MassiveBody instances, got {body!r}"
                )
        if len({id(body) for body in bodies}) != len(bodies):
            raise ValueError("The same body appears twice in the ephemeris")
        if len(initial_states) != len(bodies):
            raise ValueError(
                f"Expected {len(bodies)} initial states, "
                f"got {len(initial_states)}"
            )
        if not step > 0:
            raise ValueError(f"Step must be positive, got {step}")

        positions = np.array([state[0] for state in initial_states], dtype=float)
        velocities = np.array([state[1] for state in initial_states], dtype=float)
        if positions.shape != (len(bodies), 3) or velocities.shape != (len(bodies), 3):
            raise ValueError(
                f"Initial states must be pairs of 3-vectors, got positions of "
                f"shape {positions.shape} and velocities of shape "
                f"{velocities.shape}"
            )
        if not (np.all(np.isfinite(positions)) and np.all(np.isfinite(velocities))):
            raise ValueError(
                f"Initial states contain NaN or Inf values:\n"
                f"positions = {positions}\nvelocities = {velocities}"
            )
        for i in range(len(bodies)):
            for j in range(i + 1, len(bodies)):
                if np.array_equal(positions[i], positions[j]):
                    validation_error(
                        f"Bodies {bodies[i]} and {bodies[j]} start at the "
                        f"same position {positions[i]}"
                    )
        return positions, velocities

    # ========== PROLONGATION ==========
    def prolong(self, t: float):
        """
        Extend all trajectories to at least time t.

        The trajectories are extended by whole steps of the grid, so after
        the call ``t_max >= t``.  Does nothing if t <= t_max.
        """
        t = float(t)
        if t <= self.t_max:
            return
        steps = int(np.ceil((t - self.t_max) / self._step))
        logger.debug("Prolonging %d bodies from t = %.6f to t = %.6f "
                     "(%d steps)", len(self._bodies), self.t_max, t, steps)
        with Timer(f"Prolongation of {len(self._bodies)} bodies by {steps} "
                   f"steps", verbose=steps > _LONG_PROLONGATION_STEPS):
            for time, positions, velocities in self._instance.solve(t):
                for trajectory, q, v in zip(self._trajectories, positions,
                                            velocities):
                    trajectory.append(time, q, v)

    def flow_with_fixed_step(self, trajectories: Sequence[Trajectory],
                             t_final: float, integrator=None,
                             step: Optional[float] = None):
        """
        Extend trajectories of massless bodies to at least t_final.

        The massless bodies move in the field of the massive bodies, which
        are prolonged as needed; they do not perturb the massive bodies.
        All trajectories must end at the same time.

        Parameters
        ----------
        trajectories : sequence of Trajectory
            Trajectories of massless bodies, each with at least one state
        t_final : float
            Time to reach [s]
        integrator : str or SymplecticRungeKuttaNystromIntegrator, optional
            Default: the ephemeris integrator if it is symplectic,
            config.DEFAULT_INTEGRATOR otherwise
        step : float, optional
            Step [s] (default: the ephemeris step)
        """
        if not trajectories:
            return
        if integrator is None:
            integrator = self._integrator
            if not isinstance(integrator, SymplecticRungeKuttaNystromIntegrator):
                integrator = config.DEFAULT_INTEGRATOR
        integrator = get_integrator(integrator)
        if not isinstance(integrator, SymplecticRungeKuttaNystromIntegrator):
            raise ValueError(
                f"Massless flows require a symplectic integrator, "
                f"got {integrator!r}"
            )
        step = self._step if step is None else float(step)
        if not step > 0:
            raise ValueError(f"Step must be positive, got {step}")

        for trajectory in trajectories:
            if trajectory.body is not None and not isinstance(trajectory.body,
                                                              MasslessBody):
                raise TypeError(
                    f"Only trajectories of massless bodies can be flowed, "
                    f"got {trajectory.body!r}"
                )
        t_start = trajectories[0].t_max
        if any(trajectory.t_max != t_start for trajectory in trajectories):
            raise ValueError(
                f"Trajectories must end at the same time, got "
                f"{[trajectory.t_max for trajectory in trajectories]}"
            )
        t_final = float(t_final)
        if t_final <= t_start:
            return
        if t_start < self.t_min:
            raise ValueError(
                f"Trajectories end at t = {t_start}, before the ephemeris "
                f"starts at t = {self.t_min}"
            )

        # The last step may overshoot t_final, and its force evaluations the
        # last step.
        _, latest_kick = integrator.kick_time_range
        self.prolong(t_start + (np.ceil((t_final - t_start) / step)
                                + max(latest_kick - 1.0, 0.0)) * step)
        states = [trajectory.last() for trajectory in trajectories]
        instance = integrator.new_instance(
            _MasslessProblem(self), t_start,
            [state.position for state in states],
            [state.velocity for state in states], step)
        for time, positions, velocities in instance.solve(t_final):
            for trajectory, q, v in zip(trajectories, positions, velocities):
                trajectory.append(time, q, v)

    # ========== GRAVITY ==========
    def compute_gravitational_acceleration_on_massive_body(
            self, body: MassiveBody, t: float) -> np.ndarray:
        """
        Acceleration of a massive body due to the others at time t.

        Includes the J2 terms of the oblate bodies on the body and, if the
        body is oblate, the reaction of its oblateness to the others.
        t must be within [t_min, t_max].

        Returns
        -------
        np.ndarray, shape (3,)
            Acceleration [km/s^2]
        """
        index = self.body_index(body)
        positions = self._positions_at(t)
        return self._problem(t, positions)[index]

    def compute_gravitational_acceleration_on_massless_body(
            self, position, t: float) -> np.ndarray:
        """
        Acceleration of a massless body at the given position at time t.

        Parameters
        ----------
        position : array_like, shape (3,)
            Position [km]
        t : float
            Time [s] within [t_min, t_max]

        Returns
        -------
        np.ndarray, shape (3,)
            Acceleration [km/s^2]
        """
        position = np.asarray(position, dtype=float)
        return self.compute_gravitational_accelerations_at_points(
            position[np.newaxis, :], t)[0]

    def compute_gravitational_accelerations_at_points(
            self, points, t: float, extrapolate: bool = False) -> np.ndarray:
        """
        Accelerations of massless bodies at several positions at time t.

        Parameters
        ----------
        points : array_like, shape (n_points, 3)
            Positions [km]
        t : float
            Time [s], within [t_min, t_max] unless ``extrapolate``
        extrapolate : bool, optional
            Continue the trajectories of the massive bodies past their
            samples instead of raising (default: False)

        Returns
        -------
        np.ndarray, shape (n_points, 3)
            Accelerations [km/s^2]
        """
        points = np.asarray(points, dtype=float)
        positions = self._positions_at(t, extrapolate)
        # displacement[p, i] is body i relative to point p
        displacement = positions[np.newaxis, :, :] - points[:, np.newaxis, :]
        r2 = np.sum(displacement**2, axis=-1)
        accelerations = np.einsum('pik,pi,i->pk', displacement, r2 ** -1.5,
                                  self._problem.mu)
        for i in self._problem.oblate_indices:
            body = self._bodies[i]
            accelerations += body.mu * _j2_acceleration(-displacement[:, i],
                                                        body)
        return accelerations

    def _positions_at(self, t: float, extrapolate: bool = False) -> np.ndarray:
        if extrapolate:
            return np.array([trajectory.extrapolate_position(t)
                             for trajectory in self._trajectories])
        return np.array([trajectory.evaluate_position(t)
                         for trajectory in self._trajectories])

    # ========== PROPERTY ACCESS ==========
    def trajectory(self, body: MassiveBody) -> Trajectory:
        """The trajectory of a massive body of this ephemeris."""
        return self._trajectories[self.body_index(body)]

    def body_index(self, body: MassiveBody) -> int:
        """Index of a body in this ephemeris."""
        try:
            return self._indices[id(body)]
        except KeyError:
            raise ValueError(f"{body!r} is not a body of this ephemeris") from None

    @property
    def bodies(self) -> List[MassiveBody]:
        return list(self._bodies)

    @property
    def t_min(self) -> float:
        return self._initial_time

    @property
    def t_max(self) -> float:
        return self._trajectories[0].t_max

    @property
    def step(self) -> float:
        return self._step

    @property
    def integrator(self):
        return self._integrator

    # ========== SERIALIZATION ==========
    def write_to_message(self) -> Dict[str, Any]:
        """
        Describe this ephemeris as a plain dictionary.

        The computed trajectories are not recorded: prolonging the ephemeris
        read back reproduces them on the same grid.
        """
        return {
            'bodies': [body.write_to_message() for body in self._bodies],
            'initial_states': [
                {'position': q.tolist(), 'velocity': v.tolist()}
                for q, v in zip(self._initial_positions,
                                self._initial_velocities)
            ],
            'initial_time': self._initial_time,
            'integrator': self._integrator.name,
            'step': self._step,
        }

    @classmethod
    def read_from_message(cls, message: Dict[str, Any]) -> 'Ephemeris':
        """Rebuild an ephemeris written by `write_to_message`."""
        bodies = [MassiveBody.read_from_message(body)
                  for body in message['bodies']]
        initial_states = [(state['position'], state['velocity'])
                          for state in message['initial_states']]
        return cls(bodies, initial_states, message['initial_time'],
                   integrator=message['integrator'], step=message['step'])

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        return (f"Ephemeris(bodies={[body.name for body in self._bodies]}, "
                f"integrator={self._integrator.name}, step={self._step}, "
                f"t_min={self.t_min}, t_max={self.t_max})")
