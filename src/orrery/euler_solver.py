'''Closed-form torque-free rotation of a rigid body
EulerSolver class definition

The angular momentum in the principal axes follows Euler's equations

    dm1/dt = -m2 m3 (I3 - I2) / (I2 I3)
    dm2/dt =  m1 m3 (I3 - I1) / (I1 I3)
    dm3/dt = -m1 m2 (I2 - I1) / (I1 I2)

whose solutions are Jacobi elliptic functions of time (formulae i and iii),
hyperbolic functions on the separatrix (formula ii), or constants for a
spherical body.  The attitude is the product of a fixed reference rotation,
a precession about the invariable angular momentum and a rotation that
brings the angular momentum onto the precession axis.

References
----------
[1] L. D. Landau, E. M. Lifshitz, Mechanics, Third Edition, 1976, section 37.
[2] A. Celledoni, F. Fasso, N. Safstrom, A. Zanna (2008), The exact
    computation of the motion of the free rigid body and its use in splitting
    methods, SIAM J. Sci. Comput. 30, 2084-2112.
'''

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

import numpy as np
from scipy.spatial.transform import Rotation

from .elliptic_functions import jacobi_amplitude, jacobi_elliptic_functions
from .elliptic_integrals import elliptic_f, elliptic_pi
from .utils import fatal_error

logger = logging.getLogger(__name__)

# Tolerance on M M^T - 1 for an attitude given as a matrix.
_ORTHONORMALITY_TOLERANCE = 1e-9


class Formula(Enum):
    I = 'i'
    II = 'ii'
    III = 'iii'
    SPHERE = 'sphere'


"""
Coefficients of the closed-form solutions, one immutable payload per
formula.  Signed amplitudes include the sign of the component that never
vanishes (m1 in formula i, m3 in formula iii).
"""
@dataclass(frozen=True)
class _Precession:
    """
    Angle of precession about the invariable angular momentum.

    psi(t) = t_multiplier (t - t0)
             + pi_multiplier (Pi(am u(t), n|mc) - pi_offset)

    measured about the body axis ``axis`` (0, 1 or 2).  ``node``, when
    given, is a fixed body vector orthogonal to the angular momentum used
    as the line of nodes.
    """
    axis: int
    t_multiplier: float
    pi_multiplier: float = 0.0
    n: float = 0.0
    pi_offset: float = 0.0
    node: Optional[tuple] = None


@dataclass(frozen=True)
class _FormulaIPayload:
    """m = (b13 dn u, b21 sn u, b31 cn u), u = lambda (t - t0) + nu."""
    b13: float
    b21: float
    b31: float
    lambda_: float
    mc: float
    nu: float
    precession: _Precession


@dataclass(frozen=True)
class _FormulaIIPayload:
    """m = (b13 sech u, G tanh u, b31 sech u), u = lambda (t - t0) + nu."""
    b13: float
    g: float
    b31: float
    lambda_: float
    nu: float
    precession: _Precession


@dataclass(frozen=True)
class _FormulaIIIPayload:
    """m = (b13 cn u, b23 sn u, b31 dn u), u = lambda (t - t0) + nu."""
    b13: float
    b23: float
    b31: float
    lambda_: float
    mc: float
    nu: float
    precession: _Precession


@dataclass(frozen=True)
class _SpherePayload:
    """Constant angular momentum."""
    angular_momentum: tuple
    precession: _Precession


def _sign(x: float) -> float:
    return 1.0 if x >= 0.0 else -1.0


def _sech(x: float) -> float:
    e = math.exp(-abs(x))
    return 2.0 * e / (1.0 + e * e)


def _to_axis_frame(m: np.ndarray, axis: int,
                   node: Optional[tuple] = None) -> Rotation:
    """
    Rotation from the principal axes to a frame whose z axis is along m.

    The x axis of that frame is ``node`` if given, else the normalized
    cross product of the body axis with m.
    """
    g = np.linalg.norm(m)
    if g == 0.0:
        return Rotation.identity()
    z = m / g
    if node is not None:
        x = np.asarray(node, dtype=float)
    else:
        x = np.zeros(3)
        # The body axis may be aligned with m; the next axis then is not.
        for offset in range(3):
            x = np.cross(np.eye(3)[(axis + offset) % 3], z)
            if np.linalg.norm(x) > 0.0:
                break
    x = x / np.linalg.norm(x)
    y = np.cross(z, x)
    return Rotation.from_matrix(np.array([x, y, z]))


class EulerSolver:
    """
    Torque-free motion of a rigid body, in closed form.

    The trajectory is classified once, at construction, into formula i
    (rotation about the axis of least inertia), formula iii (about the axis
    of greatest inertia), formula ii (the separatrix between them) or the
    degenerate case of a sphere.  All queries are then pure functions of
    time.

    Parameters
    ----------
    moments_of_inertia : array_like, shape (3,)
        Principal moments of inertia I1 <= I2 <= I3, all positive
    initial_angular_momentum : array_like, shape (3,)
        Angular momentum at ``initial_time``, in the principal axes
    initial_attitude : scipy.spatial.transform.Rotation or array_like
        Attitude at ``initial_time``, mapping principal-axes coordinates to
        inertial coordinates.  A 3x3 matrix must be a proper orthonormal
        matrix.
    initial_time : float, optional
        Time of the initial conditions [s] (default: 0.0)

    Raises
    ------
    ValueError
        If the moments are not ascending and positive, the angular momentum
        is not finite, or the attitude is not a rotation.

    Examples
    --------
    >>> solver = EulerSolver([1.0, 2.0, 3.0], [1.0, 0.0, 0.0],
    ...                      Rotation.identity())
    >>> solver.formula
    <Formula.I: 'i'>
    >>> m = solver.angular_momentum_at(10.0)
    >>> attitude = solver.attitude_at(m, 10.0)
    """

    # ========== CONSTRUCTION ==========
    def __init__(self, moments_of_inertia, initial_angular_momentum,
                 initial_attitude: Union[Rotation, np.ndarray],
                 initial_time: float = 0.0):
        self._moments_of_inertia = self._validate_moments(moments_of_inertia)
        self._initial_angular_momentum = self._validate_angular_momentum(
            initial_angular_momentum)
        self._initial_attitude = self._validate_attitude(initial_attitude)
        self._initial_time = float(initial_time)

        self._formula, self._payload = self._classify()
        logger.debug("EulerSolver: moments %s, angular momentum %s, "
                     "formula %s", self._moments_of_inertia,
                     self._initial_angular_momentum, self._formula.value)

        precession = self._payload.precession
        self._reference_rotation = (
            self._initial_attitude
            * _to_axis_frame(self._initial_angular_momentum,
                             precession.axis, precession.node).inv()
        )

    # ========== VALIDATION ==========
    @staticmethod
    def _validate_moments(moments_of_inertia) -> np.ndarray:
        moments = np.asarray(moments_of_inertia, dtype=float)
        if moments.shape != (3,):
            fatal_error(f"Moments of inertia must have shape (3,), "
                        f"got {moments.shape}")
        if not np.all(np.isfinite(moments)) or np.any(moments <= 0.0):
            fatal_error(f"Moments of inertia must be finite and positive, "
                        f"got {moments}")
        if not (moments[0] <= moments[1] <= moments[2]):
            fatal_error(f"Moments of inertia must be in ascending order, "
                        f"got {moments}")
        return moments

    @staticmethod
    def _validate_angular_momentum(angular_momentum) -> np.ndarray:
        m = np.asarray(angular_momentum, dtype=float)
        if m.shape != (3,) or not np.all(np.isfinite(m)):
            fatal_error(f"Angular momentum must be a finite 3-vector, "
                        f"got {angular_momentum}")
        return m

    @staticmethod
    def _validate_attitude(attitude) -> Rotation:
        if isinstance(attitude, Rotation):
            if not attitude.single:
                fatal_error("Initial attitude must be a single rotation")
            return attitude
        matrix = np.asarray(attitude, dtype=float)
        if matrix.shape != (3, 3):
            fatal_error(f"Initial attitude must be a Rotation or a 3x3 "
                        f"matrix, got shape {matrix.shape}")
        if (not np.allclose(matrix @ matrix.T, np.eye(3), rtol=0.0,
                            atol=_ORTHONORMALITY_TOLERANCE)
                or np.linalg.det(matrix) <= 0.0):
            fatal_error(f"Initial attitude is not a proper orthonormal "
                        f"matrix:\n{matrix}")
        return Rotation.from_matrix(matrix)

    # ========== CLASSIFICATION ==========
    def _classify(self):
        """Select the formula and compute its coefficients."""
        i1, i2, i3 = self._moments_of_inertia
        m1, m2, m3 = self._initial_angular_momentum
        i21 = i2 - i1
        i31 = i3 - i1
        i32 = i3 - i2
        g = float(np.linalg.norm(self._initial_angular_momentum))

        if i31 == 0.0 or g == 0.0:
            return Formula.SPHERE, _SpherePayload(
                angular_momentum=tuple(self._initial_angular_momentum),
                precession=_Precession(axis=2, t_multiplier=g / i1))

        # Delta_k = G^2 - 2 T I_k, written without cancellation.
        delta1 = m2 * m2 * i21 / i2 + m3 * m3 * i31 / i3
        delta2 = -m1 * m1 * i21 / i1 + m3 * m3 * i32 / i3
        delta3 = -m1 * m1 * i31 / i1 - m2 * m2 * i32 / i2
        b13 = math.sqrt(-i1 * delta3 / i31)
        b31 = math.sqrt(i3 * delta1 / i31)
        pi_factor = g * i31 / (i1 * i3)

        if delta2 < 0.0:
            sigma1 = _sign(m1)
            b21 = math.sqrt(i2 * delta1 / i21)
            lambda_ = sigma1 * math.sqrt(-delta3 * i21 / (i1 * i2 * i3))
            mc = min(max(delta2 * i31 / (delta3 * i21), 0.0), 1.0)
            amplitude = math.atan2(m2 * b31, m3 * b21)
            # Precession about whichever extreme axis keeps |n| <= 1.
            n3 = i3 * delta1 / (i1 * delta3)
            n1 = -i1 * i32 / (i3 * i21)
            if abs(n3) <= abs(n1):
                precession = self._elliptic_precession(
                    2, g / i3, pi_factor / lambda_, n3, amplitude, mc)
            else:
                precession = self._elliptic_precession(
                    0, g / i1, -pi_factor / lambda_, n1, amplitude, mc)
            return Formula.I, _FormulaIPayload(
                b13=sigma1 * b13, b21=b21, b31=b31, lambda_=lambda_, mc=mc,
                nu=elliptic_f(amplitude, mc), precession=precession)

        if delta2 > 0.0:
            sigma3 = _sign(m3)
            b23 = math.sqrt(-i2 * delta3 / i32)
            lambda_ = sigma3 * math.sqrt(delta1 * i32 / (i1 * i2 * i3))
            mc = min(max(delta2 * i31 / (delta1 * i32), 0.0), 1.0)
            amplitude = math.atan2(m2 * b13, m1 * b23)
            n1 = i1 * delta3 / (i3 * delta1)
            n3 = -i3 * i21 / (i1 * i32)
            if abs(n1) <= abs(n3):
                precession = self._elliptic_precession(
                    0, g / i1, -pi_factor / lambda_, n1, amplitude, mc)
            else:
                precession = self._elliptic_precession(
                    2, g / i3, pi_factor / lambda_, n3, amplitude, mc)
            return Formula.III, _FormulaIIIPayload(
                b13=b13, b23=b23, b31=sigma3 * b31, lambda_=lambda_, mc=mc,
                nu=elliptic_f(amplitude, mc), precession=precession)

        # Separatrix, including rotation about the intermediate axis.
        sigma1 = _sign(m1)
        sigma3 = _sign(m3)
        lambda_ = sigma1 * sigma3 * math.sqrt(-delta3 * i21 / (i1 * i2 * i3))
        ratio = m2 / g
        if ratio >= 1.0:
            nu = math.inf
        elif ratio <= -1.0:
            nu = -math.inf
        else:
            nu = math.atanh(ratio)
        node = (sigma3 * b31, 0.0, -sigma1 * b13)
        return Formula.II, _FormulaIIPayload(
            b13=sigma1 * b13, g=g, b31=sigma3 * b31, lambda_=lambda_, nu=nu,
            precession=_Precession(axis=1, t_multiplier=g / i2, node=node))

    @staticmethod
    def _elliptic_precession(axis, t_multiplier, pi_multiplier, n,
                             amplitude, mc) -> _Precession:
        return _Precession(axis=axis, t_multiplier=t_multiplier,
                           pi_multiplier=pi_multiplier, n=n,
                           pi_offset=elliptic_pi(amplitude, n, mc))

    # ========== QUERIES ==========
    def angular_momentum_at(self, t: float) -> np.ndarray:
        """
        Angular momentum in the principal axes at time t.

        Parameters
        ----------
        t : float
            Time [s], before or after the initial time

        Returns
        -------
        np.ndarray, shape (3,)
        """
        p = self._payload
        if self._formula == Formula.SPHERE:
            return np.array(p.angular_momentum)
        u = p.lambda_ * (t - self._initial_time) + p.nu
        if self._formula == Formula.I:
            sn, cn, dn = jacobi_elliptic_functions(u, p.mc)
            return np.array([p.b13 * dn, p.b21 * sn, p.b31 * cn])
        if self._formula == Formula.III:
            sn, cn, dn = jacobi_elliptic_functions(u, p.mc)
            return np.array([p.b13 * cn, p.b23 * sn, p.b31 * dn])
        sech = _sech(u)
        return np.array([p.b13 * sech, p.g * math.tanh(u), p.b31 * sech])

    def angular_velocity_for(self, angular_momentum) -> np.ndarray:
        """Angular velocity in the principal axes [rad/s]."""
        return np.asarray(angular_momentum, dtype=float) / self._moments_of_inertia

    def attitude_at(self, angular_momentum, t: float) -> Rotation:
        """
        Attitude of the body at time t.

        Parameters
        ----------
        angular_momentum : array_like, shape (3,)
            The angular momentum returned by `angular_momentum_at` for the
            same ``t``.  Passing any other value gives a meaningless result.
        t : float
            Time [s]

        Returns
        -------
        Rotation
            Maps principal-axes coordinates to inertial coordinates.

        Notes
        -----
        Close to the separatrix (formulas i and iii with ``mc`` near zero)
        the precession angle loses absolute accuracy.  It goes through
        Pi(am u, n|mc), whose slope in the amplitude grows like
        1 / sqrt(mc + (1 - mc) cos^2 am); rounding of the amplitude near
        +/-pi/2 is amplified accordingly, up to about eps / sqrt(mc).
        For mc ~ 4e-18 the attitude jitters by about 1e-7 rad about the
        angular momentum, while R(t) m(t) stays exact.
        """
        precession = self._payload.precession
        psi = self._precession_angle(t)
        to_axis_frame = _to_axis_frame(np.asarray(angular_momentum, dtype=float),
                                       precession.axis, precession.node)
        return (self._reference_rotation
                * Rotation.from_rotvec([0.0, 0.0, psi])
                * to_axis_frame)

    def _precession_angle(self, t: float) -> float:
        precession = self._payload.precession
        psi = precession.t_multiplier * (t - self._initial_time)
        if precession.pi_multiplier != 0.0:
            p = self._payload
            u = p.lambda_ * (t - self._initial_time) + p.nu
            # Ill-conditioned in the amplitude near the separatrix, see
            # attitude_at.
            amplitude = jacobi_amplitude(u, p.mc)
            psi += precession.pi_multiplier * (
                elliptic_pi(amplitude, precession.n, p.mc)
                - precession.pi_offset)
        return psi

    # ========== PROPERTY ACCESS ==========
    @property
    def formula(self) -> Formula:
        """Closed form selected at construction."""
        return self._formula

    @property
    def moments_of_inertia(self) -> np.ndarray:
        return self._moments_of_inertia.copy()

    @property
    def initial_angular_momentum(self) -> np.ndarray:
        return self._initial_angular_momentum.copy()

    @property
    def initial_attitude(self) -> Rotation:
        return self._initial_attitude

    @property
    def initial_time(self) -> float:
        return self._initial_time

    # ========== SERIALIZATION ==========
    def write_to_message(self) -> Dict[str, Any]:
        """
        Describe this solver as a plain dictionary.

        Only the construction inputs are recorded; the coefficients are
        recomputed by `read_from_message`.
        """
        return {
            'moments_of_inertia': self._moments_of_inertia.tolist(),
            'initial_angular_momentum':
                self._initial_angular_momentum.tolist(),
            'initial_attitude': self._initial_attitude.as_quat().tolist(),
            'initial_time': self._initial_time,
        }

    @classmethod
    def read_from_message(cls, message: Dict[str, Any]) -> 'EulerSolver':
        """Rebuild a solver written by `write_to_message`."""
        return cls(message['moments_of_inertia'],
                   message['initial_angular_momentum'],
                   Rotation.from_quat(message['initial_attitude']),
                   message['initial_time'])

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        return (f"EulerSolver(formula={self._formula.value}, "
                f"moments_of_inertia={self._moments_of_inertia.tolist()}, "
                f"initial_angular_momentum="
                f"{self._initial_angular_momentum.tolist()}, "
                f"initial_time={self._initial_time})")
