"""
Elliptic Integrals
==================

Complete and incomplete elliptic integrals of the first, second and third
kind, after Bulirsch and Fukushima.

All functions take the complementary parameter ``mc = 1 - m`` rather than the
parameter ``m`` because it is better conditioned near ``m = 1``.  Fukushima's
associate integrals are used throughout:

    B(phi|m) = integral of cos^2 / Delta,
    D(phi|m) = integral of sin^2 / Delta,
    J(phi, n|m) = integral of sin^2 / ((1 - n sin^2) Delta),

with ``Delta = sqrt(1 - m sin^2)``, from which the Legendre forms follow:
``F = B + D``, ``E = B + mc D`` and ``Pi = F + n J``.

References
----------
[1] R. Bulirsch (1969), Numerical calculation of elliptic integrals and
    elliptic functions. III, Numer. Math. 13, 305-315.
[2] T. Fukushima (2011), Precise and fast computation of general complete
    elliptic integral of second kind, Math. Comp. 80, 1725-1743.
[3] T. Fukushima (2011), Precise and fast computation of a general incomplete
    elliptic integral of second kind by half and double argument
    transformations, J. Comp. Appl. Math. 235, 4140-4148.
[4] T. Fukushima (2011), Precise and fast computation of a general incomplete
    elliptic integral of third kind by half and double argument
    transformations, J. Comp. Appl. Math. 236, 1961-1975.
"""

import logging
import math
from typing import Sequence, Tuple

from . import _elliptic_coefficients as coefficients
from .utils import fatal_error

logger = logging.getLogger(__name__)

# Values below give about 14 digits of accuracy for cel, see [1].
_CEL_TOLERANCE = 1.0e-7
_KC_NEARLY_ZERO = 1.0e-14

# The maximum number of half argument transformations in the ladders below.
_MAX_TRANSFORMATIONS = 10
# Switch between the arcsin and arccos ladders, see [3] section 2.2.
_X_S = 0.1
# End of the arcsin ladder, see [4] section 3.5.
_Y_B = 0.01622
# Selection of the argument transformation, [3] equations (7-11).  The square
# of the sine of _PHI_S is approximately _Y_S.
_PHI_S = 1.249
_Y_S = 0.9

_TINY = 1.0e-99
_LOG_4 = 1.3862943611198906
_LOG_4_MINUS_1 = 0.3862943611198906188344642429164


def _horner(coefficients: Sequence[float], x: float) -> float:
    """Evaluate c[0] + x * (c[1] + x * (c[2] + ...))."""
    result = coefficients[-1]
    for coefficient in reversed(coefficients[:-1]):
        result = coefficient + x * result
    return result


def _check_complementary_parameter(mc: float, function: str):
    if not 0.0 <= mc <= 1.0:
        fatal_error(f"{function}: complementary parameter mc = {mc} "
                    f"is outside [0, 1]")


# ========== BULIRSCH ==========
def bulirsch_cel(kc: float, nc: float, a: float, b: float) -> float:
    """
    Bulirsch's general complete elliptic integral ``cel``.

    cel(kc, p, a, b) = integral over [0, pi/2] of
    (a cos^2 + b sin^2) / ((cos^2 + p sin^2) sqrt(cos^2 + kc^2 sin^2)).

    Parameters
    ----------
    kc : float
        Complementary modulus, 0 <= kc <= 1
    nc : float
        Complementary characteristic p
    a, b : float
        Coefficients of the numerator

    Returns
    -------
    float
        The value of the integral.  The integral is undefined for ``kc = 0``
        and ``b != 0``: this is logged as an error and NaN is returned.
    """
    # The identifiers follow [1].
    p = nc
    if kc == 0.0:
        if b == 0.0:
            kc = _KC_NEARLY_ZERO
        else:
            logger.error("cel is undefined for kc = %r, nc = %r, a = %r, b = %r",
                         kc, nc, a, b)
            return math.nan
    kc = abs(kc)
    e = kc
    m = 1.0

    if p > 0.0:
        p = math.sqrt(p)
        b = b / p
    else:
        f = kc * kc
        q = 1.0 - f
        g = 1.0 - p
        f = f - p
        q = (b - a * p) * q
        p = math.sqrt(f / g)
        a = (a - b) / g
        b = a * p - q / (g * g * p)

    # Bartky's algorithm.
    while True:
        f = a
        a = b / p + a
        g = e / p
        b = f * g + b
        b = b + b
        p = g + p
        g = m
        m = kc + m
        if abs(g - kc) <= g * _CEL_TOLERANCE:
            break
        kc = math.sqrt(e)
        kc = kc + kc
        e = kc * m
    return (math.pi / 2) * (a * m + b) / (m * (m + p))


def elliptic_nome_q(mc: float, degree: int = 16) -> float:
    """
    Jacobi's nome q(mc) approximated by a series of the given degree.

    Only meaningful for small ``mc``; ``degree`` is at most 16.
    """
    return mc * _horner(coefficients.NOME_Q_SERIES[:degree], mc)


# ========== COMPLETE INTEGRALS ==========
def elliptic_k(mc: float) -> float:
    """
    Complete elliptic integral of the first kind K(m), with m = 1 - mc.

    Returns exactly pi/2 when ``m`` vanishes.  Near ``mc = 0`` the logarithmic
    asymptote is used, and the nome for ``mc < 0.1``.
    """
    _check_complementary_parameter(mc, "elliptic_k")
    m = 1.0 - mc
    if abs(m) < 1.0e-16:
        return math.pi / 2
    elif mc < _TINY:
        return _LOG_4 - 0.5 * math.log(_TINY)
    elif mc < 1.11e-16:
        return _LOG_4 - 0.5 * math.log(mc)
    elif mc < 0.1:
        nome = elliptic_nome_q(mc, 14)
        mx = mc - 0.05
        kkc = _horner(coefficients.K_KKC_POLYNOMIAL, mx)
        return -kkc * (1 / math.pi) * math.log(nome)
    for upper, centre, polynomial in coefficients.K_INTERVALS:
        if m <= upper:
            return _horner(polynomial, m - centre)


def fukushima_elliptic_bd(mc: float) -> Tuple[float, float]:
    """
    Complete associate integrals of the second kind B(m) and D(m).

    K = B + D and E = B + mc D.

    Parameters
    ----------
    mc : float
        Complementary parameter, 0 <= mc <= 1

    Returns
    -------
    tuple of float
        (B, D)
    """
    _check_complementary_parameter(mc, "fukushima_elliptic_bd")
    m = 1.0 - mc
    if m < 1.11e-16:
        return math.pi / 4, math.pi / 4
    elif mc < 1.11e-16:
        # D diverges logarithmically.
        log_mc = math.log(mc) if mc > 0.0 else -math.inf
        return 1.0, _LOG_4_MINUS_1 - 0.5 * log_mc
    elif mc < 0.1:
        nome = elliptic_nome_q(mc, 16)
        if mc < 0.01:
            dkkc = mc * _horner(coefficients.BD_DKKC_SERIES, mc)
            dddc = mc * _horner(coefficients.BD_DDDC_SERIES, mc)
        else:
            mx = mc - 0.05
            dkkc = _horner(coefficients.BD_DKKC_POLYNOMIAL, mx)
            dddc = _horner(coefficients.BD_DDDC_POLYNOMIAL, mx)
        kkc = 1.0 + dkkc
        logq2 = -0.5 * math.log(nome)
        elk = kkc * logq2
        dele = -dkkc / kkc + logq2 * dddc
        elk1 = elk - 1.0
        delb = (dele - mc * elk1) / m
        return 1.0 + delb, elk1 - delb
    elif m <= 0.01:
        return ((math.pi / 2) * _horner(coefficients.BD_B_SERIES, m),
                (math.pi / 2) * _horner(coefficients.BD_D_SERIES, m))
    for upper, centre, b_polynomial, d_polynomial in coefficients.BD_INTERVALS:
        if m <= upper:
            mx = centre - mc
            return _horner(b_polynomial, mx), _horner(d_polynomial, mx)


def fukushima_elliptic_bdj(nc: float, mc: float) -> Tuple[float, float, float]:
    """
    Complete associate integrals B(m), D(m) and J(n|m).

    Parameters
    ----------
    nc : float
        Complementary characteristic 1 - n
    mc : float
        Complementary parameter, 0 <= mc <= 1

    Returns
    -------
    tuple of float
        (B, D, J)
    """
    b, d = fukushima_elliptic_bd(mc)
    # See [1], special examples after equation (1.2.2).
    j = bulirsch_cel(math.sqrt(mc), nc, 0.0, 1.0)
    return b, d, j


def elliptic_e_complete(mc: float) -> float:
    """Complete elliptic integral of the second kind E(m)."""
    b, d = fukushima_elliptic_bd(mc)
    if mc == 0.0:
        return b
    return b + mc * d


def elliptic_pi_complete(n: float, mc: float) -> float:
    """Complete elliptic integral of the third kind Pi(n|m), n < 1."""
    b, d, j = fukushima_elliptic_bdj(1.0 - n, mc)
    return b + d + n * j


# ========== INCOMPLETE INTEGRALS ==========
def _fukushima_t(t: float, h: float) -> float:
    """
    Fukushima's T function, atan(sqrt(h) t) / sqrt(h), for any sign of h.

    The distribution of z is heavily biased towards small values, hence the
    linear search over the truncation thresholds.
    """
    z = -h * t * t
    abs_z = abs(z)
    thresholds = coefficients.T_TRUNCATION
    if abs_z < thresholds[0]:
        return t
    for degree in range(1, 10):
        if abs_z < thresholds[degree]:
            return t * _horner(coefficients.T_SERIES[:degree + 1], z)
    if z < 0.0:
        r = math.sqrt(h)
        return math.atan(r * t) / r
    for degree in range(10, 13):
        if abs_z < thresholds[degree]:
            return t * _horner(coefficients.T_SERIES[:degree + 1], z)
    r = math.sqrt(-h)
    return math.atanh(r * t) / r


def _bs_ds_maclaurin_series(y: float, m: float) -> Tuple[float, float]:
    """Maclaurin series of Bs / s and Ds / s^3 in y = s^2, [2]."""
    f = [_horner([numerator / denominator for numerator in numerators], m)
         for denominator, numerators in coefficients.BS_DS_F]
    d_coefficients = [1.0 / 3.0]
    d_coefficients.extend(fk * ak for fk, ak in zip(f, coefficients.BS_DS_A))
    b_coefficients = [1.0]
    b_coefficients.extend(fk - dk for fk, dk in zip(f, d_coefficients))
    return _horner(b_coefficients, y), _horner(d_coefficients, y)


def _js_maclaurin_series(y: float, n: float, m: float) -> float:
    """Maclaurin series of Js / s^3 times y, truncated according to y, [4]."""
    terms = []
    for k, (denominator, rows) in enumerate(coefficients.JS_MACLAURIN,
                                            start=1):
        row_values = [_horner([numerator / denominator for numerator in row],
                              n)
                      for row in rows]
        terms.append(_horner(row_values, m))
        # Truncations after J5 ... J9.
        if 5 <= k <= 9 and y <= coefficients.JS_TRUNCATION[k - 5]:
            break
    return y * _horner(terms, y)


def _double_argument_transformation(b: float, d: float, j: float,
                                    y: Sequence[float], s: Sequence[float],
                                    cd: Sequence[float], count: int,
                                    n: float, h: float
                                    ) -> Tuple[float, float, float]:
    """Undo ``count`` half argument transformations, in reverse order."""
    for k in range(count, 0, -1):
        sy = s[k - 1] * y[k]
        t = sy / (1.0 - n * (y[k - 1] - y[k] * cd[k - 1]))
        b = 2.0 * b - sy
        d = d + (d + sy)
        j = j + (j + _fukushima_t(t, h))
    return b, d, j


def _fukushima_elliptic_bs_ds_js(s0: float, n: float, mc: float
                                 ) -> Tuple[float, float, float]:
    """Incomplete b, d, j as functions of s = sin(phi), [3], [4]."""
    y = [0.0] * (_MAX_TRANSFORMATIONS + 1)
    s = [0.0] * (_MAX_TRANSFORMATIONS + 1)
    cd = [0.0] * (_MAX_TRANSFORMATIONS + 1)

    m = 1.0 - mc
    h = n * (1.0 - n) * (n - m)
    y0 = s0 * s0

    # Half argument transformation of s.
    y[0] = y0
    s[0] = s0
    yi = y0
    i = 0
    while yi >= _Y_B:
        if i >= _MAX_TRANSFORMATIONS:
            fatal_error(f"Too many half argument transformations: "
                        f"s0 = {s0}, n = {n}, mc = {mc}")
        ci = math.sqrt(1.0 - yi)
        di = math.sqrt(1.0 - m * yi)
        yi = yi / ((1.0 + ci) * (1.0 + di))
        y[i + 1] = yi
        s[i + 1] = math.sqrt(yi)
        cd[i] = ci * di
        i += 1

    b, d = _bs_ds_maclaurin_series(yi, m)
    b = s[i] * b
    d = s[i] * yi * d
    j = s[i] * _js_maclaurin_series(yi, n, m)

    return _double_argument_transformation(b, d, j, y, s, cd, i, n, h)


def _fukushima_elliptic_bc_dc_jc(c0: float, n: float, mc: float
                                 ) -> Tuple[float, float, float]:
    """Incomplete b, d, j as functions of c = cos(phi), [3], [4]."""
    y = [0.0] * (_MAX_TRANSFORMATIONS + 1)
    s = [0.0] * (_MAX_TRANSFORMATIONS + 1)
    cd = [0.0] * (_MAX_TRANSFORMATIONS + 1)

    m = 1.0 - mc
    h = n * (1.0 - n) * (n - m)
    x0 = c0 * c0
    y0 = 1.0 - x0

    # Half argument transformation of c, alternating with the double argument
    # transformation where cancellations would occur, [4] section 3.3.
    y[0] = y0
    s[0] = math.sqrt(y0)
    ci = c0
    xi = x0
    i = 0
    while xi <= _X_S:
        if i >= _MAX_TRANSFORMATIONS:
            fatal_error(f"Too many half argument transformations: "
                        f"c0 = {c0}, n = {n}, mc = {mc}")
        di = math.sqrt(mc + m * xi)
        xi = (ci + di) / (1.0 + di)
        yi = 1.0 - xi
        y[i + 1] = yi
        s[i + 1] = math.sqrt(yi)
        cd[i] = ci * di
        ci = math.sqrt(xi)
        i += 1

    b, d, j = _fukushima_elliptic_bs_ds_js(s[i], n, mc)
    return _double_argument_transformation(b, d, j, y, s, cd, i, n, h)


def fukushima_elliptic_bdj_incomplete(phi: float, n: float, mc: float
                                      ) -> Tuple[float, float, float]:
    """
    Incomplete associate integrals b(phi|m), d(phi|m) and j(phi, n|m).

    Parameters
    ----------
    phi : float
        Argument [rad], 0 <= phi <= pi/2
    n : float
        Characteristic, n < 1
    mc : float
        Complementary parameter, 0 <= mc <= 1

    Returns
    -------
    tuple of float
        (b, d, j)

    Raises
    ------
    ValueError
        If ``mc`` is outside [0, 1] or if the argument transformation ladder
        does not converge within its bounded number of steps.
    """
    _check_complementary_parameter(mc, "fukushima_elliptic_bdj_incomplete")
    if phi < _PHI_S:
        return _fukushima_elliptic_bs_ds_js(math.sin(phi), n, mc)

    m = 1.0 - mc
    nc = 1.0 - n
    h = n * nc * (n - m)
    c = math.cos(phi)
    c2 = c * c
    z2_denominator = mc + m * c2
    if c2 < _Y_S * z2_denominator:
        z = c / math.sqrt(z2_denominator)
        b, d, j = _fukushima_elliptic_bs_ds_js(z, n, mc)
        bc, dc, jc = fukushima_elliptic_bdj(nc, mc)
        sz = z * math.sqrt(1.0 - c2)
        t = sz / nc
        return bc - (b - sz), dc - (d + sz), jc - (j + _fukushima_t(t, h))

    w2_numerator = mc * (1.0 - c2)
    if w2_numerator < c2 * z2_denominator:
        return _fukushima_elliptic_bc_dc_jc(c, n, mc)

    w2_over_mc = (1.0 - c2) / z2_denominator
    b, d, j = _fukushima_elliptic_bc_dc_jc(math.sqrt(mc * w2_over_mc), n, mc)
    bc, dc, jc = fukushima_elliptic_bdj(nc, mc)
    sz = c * math.sqrt(w2_over_mc)
    t = sz / nc
    return bc - (b - sz), dc - (d + sz), jc - (j + _fukushima_t(t, h))


# ========== LEGENDRE FORMS ==========
def _reduce_argument(phi: float) -> Tuple[int, float]:
    """Write phi = j pi + r with r in [-pi/2, pi/2]."""
    j = math.floor(phi / math.pi + 0.5)
    return j, phi - j * math.pi


def _bdj_any_argument(phi: float, n: float, mc: float
                      ) -> Tuple[float, float, float]:
    # The integrands are even and have period pi, so each integral is odd and
    # gains twice the complete integral per period.
    j, r = _reduce_argument(phi)
    b, d, jj = fukushima_elliptic_bdj_incomplete(abs(r), n, mc)
    sign = math.copysign(1.0, r)
    b, d, jj = sign * b, sign * d, sign * jj
    if j != 0:
        bc, dc, jc = fukushima_elliptic_bdj(1.0 - n, mc)
        b += 2 * j * bc
        d += 2 * j * dc
        jj += 2 * j * jc
    return b, d, jj


def elliptic_f(phi: float, mc: float) -> float:
    """Incomplete elliptic integral of the first kind F(phi|m), any real phi."""
    b, d, _ = _bdj_any_argument(phi, 0.0, mc)
    return b + d


def elliptic_e(phi: float, mc: float) -> float:
    """Incomplete elliptic integral of the second kind E(phi|m), any real phi."""
    b, d, _ = _bdj_any_argument(phi, 0.0, mc)
    return b + mc * d


def elliptic_pi(phi: float, n: float, mc: float) -> float:
    """
    Incomplete elliptic integral of the third kind Pi(phi, n|m), any real phi.

    Pi(phi, n|m) = integral over [0, phi] of
    1 / ((1 - n sin^2) sqrt(1 - m sin^2)).

    Accuracy degrades for characteristics of large magnitude, since the
    Maclaurin series of j is a polynomial in n; callers should keep
    ``|n| <= 1`` where they have the choice.
    """
    b, d, j = _bdj_any_argument(phi, n, mc)
    return b + d + n * j
