"""
Celestial Bodies
================

Immutable descriptions of the bodies of an ephemeris, and predefined Solar
System bodies.

Values taken from Vallado, Fundamentals of Astrodynamics, Fifth Edition,
2022, Appendix D.  Units referenced to km (i.e. mu = km^3/s^2).

Bodies compare by identity: two bodies with the same parameters are still
distinct bodies of an ephemeris.

Examples
--------
>>> from orrery import MassiveBody, EARTH
>>> asteroid = MassiveBody(mu=1.0e-3, name='Asteroid')
>>> EARTH.is_oblate
True
"""
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .utils import validation_error


@dataclass(frozen=True, eq=False)
class MassiveBody:
    """
    Immutable parameters of a body that attracts the others.

    Attributes
    ----------
    mu : float
        Gravitational parameter [km^3/s^2]
    radius : float, optional
        Reference (equatorial) radius [km]
        Required if J2 is given
    J2 : float, optional
        J2 zonal harmonic coefficient [dimensionless]
    axis : tuple of float, optional
        Unit vector of the axis of symmetry of an oblate body, in inertial
        coordinates (default: (0, 0, 1))
    name : str, optional
        Name used in messages and representations
    """
    mu: float
    radius: Optional[float] = None
    J2: Optional[float] = None
    axis: Tuple[float, float, float] = (0.0, 0.0, 1.0)
    name: Optional[str] = None

    def __post_init__(self):
        #Validate parameters
        if not self.mu > 0:
            validation_error(f"Gravitational parameter must be positive, got {self.mu}")
        if self.radius is not None and not self.radius > 0:
            validation_error(f"Radius must be positive, got {self.radius}")
        if self.J2 is not None:
            if self.radius is None:
                validation_error(f"An oblate body needs a reference radius "
                                 f"(J2 = {self.J2}, radius = None)")
            if abs(self.J2) > 1:
                validation_error(f"J2 coefficient seems unrealistic: {self.J2}")
        axis = np.asarray(self.axis, dtype=float)
        norm = np.linalg.norm(axis) if axis.shape == (3,) else 0.0
        if norm == 0.0:
            validation_error(f"Axis must be a non-zero 3-vector, got {self.axis}")
        else:
            # Normalize, bypassing the frozen dataclass.
            object.__setattr__(self, 'axis', tuple((axis / norm).tolist()))

    @property
    def is_oblate(self) -> bool:
        """True if the body has a J2 term."""
        return self.J2 is not None and self.J2 != 0.0 and self.radius is not None

    def write_to_message(self) -> dict:
        return {
            'mu': self.mu,
            'radius': self.radius,
            'J2': self.J2,
            'axis': list(self.axis),
            'name': self.name,
        }

    @classmethod
    def read_from_message(cls, message: dict) -> 'MassiveBody':
        return cls(mu=message['mu'], radius=message['radius'],
                   J2=message['J2'], axis=tuple(message['axis']),
                   name=message['name'])

    def __repr__(self):
        label = self.name if self.name is not None else 'unnamed'
        if self.is_oblate:
            return f"MassiveBody({label}, mu={self.mu}, J2={self.J2})"
        return f"MassiveBody({label}, mu={self.mu})"


@dataclass(frozen=True, eq=False)
class MasslessBody:
    """
    A body that is attracted by massive bodies but does not attract them.

    Attributes
    ----------
    name : str, optional
        Name used in representations
    """
    name: Optional[str] = None

    def __repr__(self):
        label = self.name if self.name is not None else 'unnamed'
        return f"MasslessBody({label})"


# Pre-defined common bodies for convenience

SUN = MassiveBody(
    mu=1.32712428e11,
    radius=6.96e5,
    name='Sun'
)

MERCURY = MassiveBody(
    mu=2.2032e4,
    radius=2439.0,
    J2=6.0e-5,
    name='Mercury'
)

VENUS = MassiveBody(
    mu=3.257e5,
    radius=6052.0,
    J2=2.7e-5,
    name='Venus'
)

EARTH = MassiveBody(
    mu=3.986004415e5,
    radius=6378.1363,
    J2=1.0826269e-3,
    name='Earth'
)

MOON = MassiveBody(
    mu=4.902799e3,
    radius=1738.0,
    J2=2.027e-4,
    name='Moon'
)

MARS = MassiveBody(
    mu=4.305e4,
    radius=3397.2,
    J2=1.964e-3,
    name='Mars'
)

JUPITER = MassiveBody(
    mu=1.268e8,
    radius=71492.0,
    J2=1.475e-2,
    name='Jupiter'
)

SATURN = MassiveBody(
    mu=3.794e7,
    radius=60268.0,
    J2=1.645e-2,
    name='Saturn'
)
