"""
Jacobi Elliptic Functions
=========================

Double precision Jacobi elliptic functions sn, cn, dn of a real argument,
after T. Fukushima (2009), Fast computation of Jacobian elliptic functions
and incomplete elliptic integrals for constant values of elliptic parameter
and elliptic characteristic, Celest. Mech. Dyn. Astr. 105, 305-328.

Like the integrals in `orrery.elliptic_integrals`, the functions are
parameterized on the complementary parameter ``mc = 1 - m``.
"""

import logging
import math
from typing import Tuple

from .elliptic_integrals import elliptic_k
from .utils import fatal_error

logger = logging.getLogger(__name__)

# Below this magnitude of u the bounded algorithm is used directly.
_DIRECT_LIMIT = 0.785
_MAX_HALVINGS = 20

# Maclaurin coefficients of the seed of the doubling recursion.
_B10 = 1.0 / 24.0
_B11 = 1.0 / 6.0
_B20 = 1.0 / 720.0
_B21 = 11.0 / 180.0
_B22 = 1.0 / 45.0


def _jacobi_bounded(u: float, mc: float) -> Tuple[float, float, float]:
    """
    sn, cn, dn for 0 <= u <= K(mc).

    Halves u until a short Maclaurin series of 1 - cn is accurate, then
    doubles back.  The doubling of 1 - cn loses accuracy when cn is small,
    in which case the recursion switches to cn itself.
    """
    m = 1.0 - mc
    u_a = 1.76269 + mc * 1.16357
    u_t = 5.217e-3 - m * 2.143e-3
    u0 = u
    for halvings in range(_MAX_HALVINGS + 1):
        if u0 < u_t:
            break
        u0 = 0.5 * u0
    else:
        fatal_error(f"Too large input argument: u = {u}, mc = {mc}")

    v = u0 * u0
    a = 1.0
    b = v * (0.5 - v * (_B10 + m * _B11 - v * (_B20 + m * (_B21 + m * _B22))))

    switch_at = None
    for j in range(1, halvings + 1):
        y = b * (2.0 * a - b)
        z = a * a
        my = m * y
        if u >= u_a and z < my * 2.0:
            switch_at = j
            break
        b = (y * 2.0) * (z - my)
        a = z * z - my * y

    if switch_at is None:
        b = b / a
        y = b * (2.0 - b)
        c = 1.0 - b
        s = math.sqrt(y)
        d = math.sqrt(1.0 - m * y)
        return s, c, d

    c = a - b
    mc2 = mc * 2.0
    m2 = m * 2.0
    for _ in range(switch_at, halvings + 1):
        x = c * c
        z = a * a
        w = m * x * x - mc * z * z
        xz = x * z
        c = mc2 * xz + w
        a = m2 * xz - w
    c = c / a
    x = c * c
    s = math.sqrt(1.0 - x)
    d = math.sqrt(mc + m * x)
    return s, c, d


def jacobi_elliptic_functions(u: float, mc: float) -> Tuple[float, float, float]:
    """
    Jacobi elliptic functions sn(u|m), cn(u|m) and dn(u|m).

    Parameters
    ----------
    u : float
        Argument, any real value
    mc : float
        Complementary parameter 1 - m, 0 <= mc <= 1

    Returns
    -------
    tuple of float
        (sn, cn, dn)

    Raises
    ------
    ValueError
        If ``mc`` is outside [0, 1]

    Examples
    --------
    >>> s, c, d = jacobi_elliptic_functions(0.5, 0.3)
    >>> abs(s * s + c * c - 1.0) < 1e-15
    True
    """
    if not 0.0 <= mc <= 1.0:
        fatal_error(f"jacobi_elliptic_functions: complementary parameter "
                    f"mc = {mc} is outside [0, 1]")
    kc = math.sqrt(mc)
    ux = abs(u)
    if ux < _DIRECT_LIMIT:
        s, c, d = _jacobi_bounded(ux, mc)
    else:
        k = elliptic_k(mc)
        kh = k * 0.5
        kh3 = k * 1.5
        kh5 = k * 2.5
        kh7 = k * 3.5
        k2 = k * 2.0
        k3 = k * 3.0
        k4 = k * 4.0
        ux = ux - k4 * int(ux / k4)
        # Octants of the period 4K, mapped onto [0, K/2] by the shift and
        # reflection identities.
        if ux < kh:
            s, c, d = _jacobi_bounded(ux, mc)
        elif ux < k:
            s, c, d = _jacobi_bounded(k - ux, mc)
            s, c, d = c / d, kc * s / d, kc / d
        elif ux < kh3:
            s, c, d = _jacobi_bounded(ux - k, mc)
            s, c, d = c / d, -kc * s / d, kc / d
        elif ux < k2:
            s, c, d = _jacobi_bounded(k2 - ux, mc)
            c = -c
        elif ux < kh5:
            s, c, d = _jacobi_bounded(ux - k2, mc)
            s = -s
            c = -c
        elif ux < k3:
            s, c, d = _jacobi_bounded(k3 - ux, mc)
            s, c, d = -c / d, -kc * s / d, kc / d
        elif ux < kh7:
            s, c, d = _jacobi_bounded(ux - k3, mc)
            s, c, d = -c / d, kc * s / d, kc / d
        else:
            s, c, d = _jacobi_bounded(k4 - ux, mc)
            s = -s
    if u < 0.0:
        s = -s
    return s, c, d


def jacobi_amplitude(u: float, mc: float) -> float:
    """
    Jacobi amplitude am(u|m), continuous and increasing in u.

    am(u|m) is the angle phi with sn = sin(phi) and cn = cos(phi), chosen
    on the branch that satisfies am(u + 2K) = am(u) + pi.
    """
    k = elliptic_k(mc)
    j = math.floor(u / (2.0 * k) + 0.5)
    s, c, _ = jacobi_elliptic_functions(u - 2.0 * j * k, mc)
    return math.atan2(s, c) + j * math.pi
