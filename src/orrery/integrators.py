'''Integrators of the equations of motion of an ephemeris
SymplecticRungeKuttaNystromIntegrator and TaylorAdaptiveIntegrator class
definitions

Both integrators produce states on the fixed grid t0 + k * step, so that the
trajectories of an ephemeris look the same whatever the integrator.  An
integrator is a strategy object: `new_instance` binds it to a problem and
initial conditions, and the instance's `solve` yields the grid states.

A problem is a callable ``problem(t, positions) -> accelerations`` on arrays
of shape (n, 3).  The Taylor integrator additionally needs the symbolic form
of the forces, which it builds from ``problem.bodies``.
'''

import logging
import math
from typing import Dict, Iterator, Optional, Sequence, Tuple

import heyoka as hy
import numpy as np

from .config import config
from .utils import Timer, validation_error

logger = logging.getLogger(__name__)

State = Tuple[float, np.ndarray, np.ndarray]


class SymplecticRungeKuttaNystromIntegrator:
    """
    Fixed-step symplectic integrator for separable second-order equations.

    The method is a composition of kick-drift-kick leapfrogs with the given
    substep weights, whose adjacent kicks are merged.  For weights
    (w1, ..., ws) the drifts are (w1, ..., ws, 0) and the kicks
    (w1/2, (w1+w2)/2, ..., (ws-1+ws)/2, ws/2).  The last force evaluation of
    a step is the first of the next.

    Parameters
    ----------
    name : str
        Name used in the registry and in messages
    order : int
        Order of convergence of the method
    weights : sequence of float
        Leapfrog substep weights, summing to 1
    """

    def __init__(self, name: str, order: int, weights: Sequence[float]):
        weights = [float(w) for w in weights]
        if not math.isclose(sum(weights), 1.0, rel_tol=1e-14):
            validation_error(
                f"Weights of integrator '{name}' must sum to 1, "
                f"got {sum(weights)}"
            )
        self._name = name
        self._order = order
        self._drifts = np.array(weights + [0.0])
        self._kicks = np.array(
            [weights[0] / 2]
            + [(a + b) / 2 for a, b in zip(weights[:-1], weights[1:])]
            + [weights[-1] / 2])
        # Time of each kick as a fraction of the step; the last is at the end
        # of the step.
        self._kick_times = np.concatenate([[0.0], np.cumsum(weights)])
        self._kick_times[-1] = 1.0

    @property
    def name(self) -> str:
        return self._name

    @property
    def order(self) -> int:
        return self._order

    @property
    def stages(self) -> int:
        """Number of force evaluations per step."""
        return len(self._kicks) - 1

    @property
    def kick_time_range(self) -> Tuple[float, float]:
        """
        Earliest and latest force evaluation, as fractions of the step.

        Compositions with negative weights evaluate forces outside the step.
        """
        return float(self._kick_times.min()), float(self._kick_times.max())

    def new_instance(self, problem, time: float, positions, velocities,
                     step: float) -> '_SymplecticInstance':
        return _SymplecticInstance(self, problem, time, positions, velocities,
                                   step)

    def __repr__(self):
        return (f"SymplecticRungeKuttaNystromIntegrator(name='{self._name}', "
                f"order={self._order}, stages={self.stages})")


class _SymplecticInstance:
    """Integration of one problem from its initial state."""

    def __init__(self, integrator: SymplecticRungeKuttaNystromIntegrator,
                 problem, time, positions, velocities, step):
        self._integrator = integrator
        self._problem = problem
        self._t0 = float(time)
        self._step = float(step)
        self._steps = 0
        self._q = np.array(positions, dtype=float)
        self._v = np.array(velocities, dtype=float)
        self._acceleration = None

    @property
    def time(self) -> float:
        return self._t0 + self._steps * self._step

    def solve(self, t_final: float) -> Iterator[State]:
        """Advance by whole steps until the time is at least t_final."""
        integrator = self._integrator
        h = self._step
        while self.time < t_final:
            t = self.time
            q = self._q
            v = self._v
            if self._acceleration is None:
                self._acceleration = self._problem(t, q)
            acceleration = self._acceleration
            for i, (kick, drift) in enumerate(zip(integrator._kicks,
                                                  integrator._drifts)):
                if i > 0:
                    acceleration = self._problem(
                        t + integrator._kick_times[i] * h, q)
                v = v + (kick * h) * acceleration
                if drift != 0.0:
                    q = q + (drift * h) * v
            self._q = q
            self._v = v
            self._acceleration = acceleration
            self._steps += 1
            yield self.time, q.copy(), v.copy()


class TaylorAdaptiveIntegrator:
    """
    Adaptive Taylor integration with heyoka, sampled onto the fixed grid.

    The equations of motion of the massive bodies, including the J2 terms of
    oblate bodies, are built symbolically from ``problem.bodies`` and
    compiled once per instance.

    Parameters
    ----------
    tol : float, optional
        Integration tolerance (default: config.TAYLOR_TOLERANCE)
    compile : bool, optional
        If True, compile the equations of motion when an instance is created,
        otherwise on its first use (default: config.DEFAULT_COMPILE)
    """

    name = 'taylor'
    order = None

    def __init__(self, tol: Optional[float] = None,
                 compile: Optional[bool] = None):
        self._tol = None if tol is None else float(tol)
        self._compile = compile

    @property
    def tol(self) -> float:
        return config.TAYLOR_TOLERANCE if self._tol is None else self._tol

    @property
    def compile(self) -> bool:
        return config.DEFAULT_COMPILE if self._compile is None else self._compile

    def new_instance(self, problem, time: float, positions, velocities,
                     step: float) -> '_TaylorInstance':
        bodies = getattr(problem, 'bodies', None)
        if bodies is None:
            raise ValueError(
                "The Taylor integrator needs the massive bodies of the "
                "problem; massless flows require a symplectic integrator"
            )
        instance = _TaylorInstance(self, bodies, time, positions, velocities,
                                   step)
        if self.compile:
            instance.compile()
        return instance

    def __repr__(self):
        return f"TaylorAdaptiveIntegrator(tol={self.tol})"


def _build_nbody_eom(bodies):
    """
    Build symbolic heyoka equations of motion for the massive bodies.

    Returns
    -------
    sys : list of (var, rhs) tuples
        Heyoka ODE system definition ready for taylor_adaptive().
        State vector order: [x0, y0, z0, vx0, vy0, vz0, x1, ...]
    """
    n = len(bodies)
    positions = []
    velocities = []
    for i in range(n):
        x, y, z, vx, vy, vz = hy.make_vars(
            f"x{i}", f"y{i}", f"z{i}", f"vx{i}", f"vy{i}", f"vz{i}")
        positions.append((x, y, z))
        velocities.append((vx, vy, vz))

    accelerations = [[hy.expression(0.0) for _ in range(3)] for _ in range(n)]
    for i in range(n):
        for j in range(i + 1, n):
            # Displacement from body i to body j
            dx = [positions[j][k] - positions[i][k] for k in range(3)]
            r2 = dx[0]**2 + dx[1]**2 + dx[2]**2
            r = hy.sqrt(r2)
            r3 = r2 * r
            for k in range(3):
                accelerations[i][k] = accelerations[i][k] + bodies[j].mu * dx[k] / r3
                accelerations[j][k] = accelerations[j][k] - bodies[i].mu * dx[k] / r3
            # Oblateness of each body acts on the other, with the reaction
            for oblate, other, sign in ((i, j, 1.0), (j, i, -1.0)):
                body = bodies[oblate]
                if not body.is_oblate:
                    continue
                d = [sign * c for c in dx]
                a_hat = body.axis
                # Common factor: (3/2) * J2 * R^2 / r^5, per unit mu
                factor = 1.5 * body.J2 * body.radius**2 / (r2 * r3)
                z = d[0] * a_hat[0] + d[1] * a_hat[1] + d[2] * a_hat[2]
                z2_r2 = z**2 / r2
                for k in range(3):
                    g = factor * (d[k] * (5.0 * z2_r2 - 1.0) - 2.0 * z * a_hat[k])
                    accelerations[other][k] = accelerations[other][k] + body.mu * g
                    accelerations[oblate][k] = accelerations[oblate][k] - bodies[other].mu * g

    sys = []
    for i in range(n):
        for k in range(3):
            sys.append((positions[i][k], velocities[i][k]))
        for k in range(3):
            sys.append((velocities[i][k], accelerations[i][k]))
    return sys


class _TaylorInstance:
    """Integration of the massive bodies from their initial state."""

    def __init__(self, integrator: TaylorAdaptiveIntegrator, bodies, time,
                 positions, velocities, step):
        self._integrator = integrator
        self._bodies = list(bodies)
        self._t0 = float(time)
        self._step = float(step)
        self._steps = 0
        q = np.array(positions, dtype=float)
        v = np.array(velocities, dtype=float)
        self._state = np.hstack([q, v]).ravel()
        self._ta = None

    @property
    def time(self) -> float:
        return self._t0 + self._steps * self._step

    @property
    def is_compiled(self) -> bool:
        return self._ta is not None

    def compile(self):
        """
        Compile Heyoka integrator (expensive operation).

        This performs automatic differentiation and LLVM compilation,
        which takes a few seconds depending on the number of bodies.
        """
        if self._ta is not None:
            return  # Already compiled
        sys = _build_nbody_eom(self._bodies)
        with Timer(f"Compiling Taylor integrator for {len(self._bodies)} bodies"):
            self._ta = hy.taylor_adaptive(
                sys=sys,
                state=self._state,
                time=self._t0,
                tol=self._integrator.tol,
            )

    def solve(self, t_final: float) -> Iterator[State]:
        """Advance by whole steps until the time is at least t_final."""
        if self.time >= t_final:
            return
        self.compile()
        ta = self._ta
        n = len(self._bodies)
        last_step = self._steps + max(
            math.ceil((t_final - self.time) / self._step), 1)
        grid = self._t0 + self._step * np.arange(self._steps + 1, last_step + 1)

        # Propagate until ending time
        c_output = ta.propagate_until(float(grid[-1]), c_output=True)[4]

        # Check for integration failure
        if not np.all(np.isfinite(ta.state)) or c_output is None:
            raise RuntimeError(
                f"Integration failed: state became invalid during propagation.\n"
                f"Bodies: {self._bodies}\n"
                f"Final time: {ta.time}\n"
                f"Final state: {ta.state}\n"
                f"Likely causes:\n"
                f"  - Close encounter or collision between bodies\n"
                f"  - Step of the sampling grid too long for the tolerance"
            )

        states = np.atleast_2d(c_output(grid))
        for k, t in enumerate(grid):
            state = states[k].reshape(n, 6)
            self._steps += 1
            yield float(t), state[:, :3].copy(), state[:, 3:].copy()


_REGISTRY: Dict[str, object] = {}


def register(integrator):
    """Make an integrator available by name to `get_integrator`."""
    _REGISTRY[integrator.name] = integrator
    return integrator


def get_integrator(name_or_integrator):
    """
    Look up an integrator by registry name, or pass an integrator through.

    Parameters
    ----------
    name_or_integrator : str or integrator
        'leapfrog', 'forest_ruth', 'yoshida6' or 'taylor', or an object with
        a ``new_instance`` method

    Raises
    ------
    ValueError
        If the name is not registered
    """
    if not isinstance(name_or_integrator, str):
        return name_or_integrator
    try:
        return _REGISTRY[name_or_integrator]
    except KeyError:
        raise ValueError(
            f"Unknown integrator '{name_or_integrator}'. "
            f"Valid names: {sorted(_REGISTRY)}"
        ) from None


def available_integrators():
    """Names of the registered integrators."""
    return sorted(_REGISTRY)


_CBRT2 = 2.0 ** (1.0 / 3.0)

LEAPFROG = register(SymplecticRungeKuttaNystromIntegrator(
    'leapfrog', 2, [1.0]))

# Yoshida's triple jump, also known as Forest-Ruth.
FOREST_RUTH = register(SymplecticRungeKuttaNystromIntegrator(
    'forest_ruth', 4,
    [1.0 / (2.0 - _CBRT2), -_CBRT2 / (2.0 - _CBRT2), 1.0 / (2.0 - _CBRT2)]))

# H. Yoshida (1990), Construction of higher order symplectic integrators,
# Phys. Lett. A 150, 262-268, solution A.
_W1 = -1.17767998417887100695
_W2 = 0.235573213359358133684
_W3 = 0.784513610477557263819
_W0 = 1.0 - 2.0 * (_W1 + _W2 + _W3)
YOSHIDA6 = register(SymplecticRungeKuttaNystromIntegrator(
    'yoshida6', 6, [_W3, _W2, _W1, _W0, _W1, _W2, _W3]))

TAYLOR = register(TaylorAdaptiveIntegrator())
