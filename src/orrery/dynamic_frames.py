'''Reference frames defined by the motion of the bodies of an ephemeris
DynamicFrame, BarycentricRotatingDynamicFrame and
BodyCentredNonRotatingDynamicFrame class definitions

A dynamic frame gives, at each instant, the rigid motion from the inertial
frame of the ephemeris to itself, and the fictitious accelerations that a
free point experiences in it.
'''

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

import numpy as np
from scipy.spatial.transform import Rotation

from .bodies import MassiveBody
from .rigid_motion import DegreesOfFreedom, RigidMotion

logger = logging.getLogger(__name__)


class DynamicFrame(ABC):
    """
    A reference frame whose motion is defined by an ephemeris.

    Subclasses register themselves under the key of their message.
    """

    _message_key: str = ''
    _registry: Dict[str, type] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls._message_key:
            DynamicFrame._registry[cls._message_key] = cls

    @abstractmethod
    def to_this_frame_at_time(self, t: float) -> RigidMotion:
        """Rigid motion from the inertial frame to this frame at time t."""

    def from_this_frame_at_time(self, t: float) -> RigidMotion:
        """Rigid motion from this frame to the inertial frame at time t."""
        return self.to_this_frame_at_time(t).inverse()

    @abstractmethod
    def geometric_acceleration(self, t: float,
                               degrees_of_freedom) -> np.ndarray:
        """
        Acceleration of a free point in this frame.

        Parameters
        ----------
        t : float
            Time [s], within the computed range of the ephemeris
        degrees_of_freedom : DegreesOfFreedom
            Position and velocity of the point in this frame

        Returns
        -------
        np.ndarray, shape (3,)
            Gravitational and fictitious acceleration [km/s^2], in this frame
        """

    @abstractmethod
    def write_to_message(self) -> Dict[str, Any]:
        """Describe this frame as a plain dictionary keyed by its kind."""

    @staticmethod
    def read_from_message(ephemeris, message: Dict[str, Any]) -> 'DynamicFrame':
        """
        Rebuild a frame written by `write_to_message` on the given ephemeris.

        Raises
        ------
        ValueError
            If the message does not describe a known kind of frame
        """
        if len(message) != 1:
            raise ValueError(
                f"A dynamic frame message has exactly one key, got "
                f"{list(message)}"
            )
        (key, extension), = message.items()
        try:
            cls = DynamicFrame._registry[key]
        except KeyError:
            raise ValueError(
                f"Unknown dynamic frame '{key}'. "
                f"Valid kinds: {sorted(DynamicFrame._registry)}"
            ) from None
        return cls._read_from_extension(ephemeris, extension)

    @classmethod
    @abstractmethod
    def _read_from_extension(cls, ephemeris,
                             extension: Dict[str, Any]) -> 'DynamicFrame':
        """Rebuild a frame of this kind from the content of its message."""


class BarycentricRotatingDynamicFrame(DynamicFrame):
    """
    Frame centred on the barycentre of two bodies and rotating with them.

    The X axis points from the secondary to the primary, the Y axis is along
    the relative velocity of the primary with respect to the secondary,
    orthogonalized against X, and Z = X x Y.  Both bodies stay on the X axis.

    Parameters
    ----------
    ephemeris : Ephemeris
        Ephemeris of the two bodies
    primary, secondary : MassiveBody
        Bodies of the ephemeris defining the frame
    """

    _message_key = 'barycentric_rotating_dynamic_frame'

    def __init__(self, ephemeris, primary: MassiveBody,
                 secondary: MassiveBody):
        if primary is secondary:
            raise ValueError(f"Primary and secondary are the same body: "
                             f"{primary!r}")
        self._ephemeris = ephemeris
        self._primary = primary
        self._secondary = secondary
        self._primary_trajectory = ephemeris.trajectory(primary)
        self._secondary_trajectory = ephemeris.trajectory(secondary)

    @property
    def primary(self) -> MassiveBody:
        return self._primary

    @property
    def secondary(self) -> MassiveBody:
        return self._secondary

    def _barycentre(self, primary_value, secondary_value):
        mu_p = self._primary.mu
        mu_s = self._secondary.mu
        return ((mu_p * np.asarray(primary_value)
                 + mu_s * np.asarray(secondary_value)) / (mu_p + mu_s))

    def _kinematics(self, t: float):
        """Barycentre, rotation and angular velocity at time t."""
        primary = self._primary_trajectory.evaluate_degrees_of_freedom(t)
        secondary = self._secondary_trajectory.evaluate_degrees_of_freedom(t)
        barycentre = DegreesOfFreedom(
            self._barycentre(primary.position, secondary.position),
            self._barycentre(primary.velocity, secondary.velocity))

        r = np.asarray(primary.position) - np.asarray(secondary.position)
        v = np.asarray(primary.velocity) - np.asarray(secondary.velocity)
        x_axis = r / np.linalg.norm(r)
        y_axis = v - np.dot(v, x_axis) * x_axis
        y_axis = y_axis / np.linalg.norm(y_axis)
        z_axis = np.cross(x_axis, y_axis)
        rotation = Rotation.from_matrix(np.array([x_axis, y_axis, z_axis]))

        r2 = np.dot(r, r)
        angular_velocity = np.cross(r, v) / r2
        return barycentre, rotation, r, v, r2, angular_velocity

    def to_this_frame_at_time(self, t: float) -> RigidMotion:
        barycentre, rotation, _, _, _, angular_velocity = self._kinematics(t)
        return RigidMotion(rotation, barycentre.position, barycentre.velocity,
                           rotation.apply(angular_velocity))

    def geometric_acceleration(self, t: float,
                               degrees_of_freedom) -> np.ndarray:
        barycentre, rotation, r, v, r2, angular_velocity = self._kinematics(t)
        to_this_frame = RigidMotion(rotation, barycentre.position,
                                    barycentre.velocity,
                                    rotation.apply(angular_velocity))
        position, velocity = (np.asarray(x, dtype=float)
                              for x in degrees_of_freedom)
        inertial_position = to_this_frame.inverse()(
            DegreesOfFreedom(position, velocity)).position

        primary_acceleration = (
            self._ephemeris.compute_gravitational_acceleration_on_massive_body(
                self._primary, t))
        secondary_acceleration = (
            self._ephemeris.compute_gravitational_acceleration_on_massive_body(
                self._secondary, t))
        gravity = (
            self._ephemeris.compute_gravitational_acceleration_on_massless_body(
                inertial_position, t))

        a = np.asarray(primary_acceleration) - np.asarray(secondary_acceleration)
        angular_acceleration = (np.cross(r, a) / r2
                                - 2.0 * (np.dot(r, v) / r2) * angular_velocity)

        omega = rotation.apply(angular_velocity)
        omega_dot = rotation.apply(angular_acceleration)
        linear = -rotation.apply(self._barycentre(primary_acceleration,
                                                  secondary_acceleration))
        coriolis = -2.0 * np.cross(omega, velocity)
        centrifugal = -np.cross(omega, np.cross(omega, position))
        euler = -np.cross(omega_dot, position)
        return rotation.apply(gravity) + linear + coriolis + centrifugal + euler

    def write_to_message(self) -> Dict[str, Any]:
        return {self._message_key: {
            'primary': self._ephemeris.body_index(self._primary),
            'secondary': self._ephemeris.body_index(self._secondary),
        }}

    @classmethod
    def _read_from_extension(cls, ephemeris, extension):
        bodies = ephemeris.bodies
        return cls(ephemeris, bodies[extension['primary']],
                   bodies[extension['secondary']])

    def __repr__(self):
        return (f"BarycentricRotatingDynamicFrame(primary={self._primary!r}, "
                f"secondary={self._secondary!r})")


class BodyCentredNonRotatingDynamicFrame(DynamicFrame):
    """
    Frame centred on a body, with axes parallel to the inertial axes.

    Parameters
    ----------
    ephemeris : Ephemeris
        Ephemeris of the body
    centre : MassiveBody
        Body of the ephemeris at the origin of the frame
    """

    _message_key = 'body_centred_non_rotating_dynamic_frame'

    def __init__(self, ephemeris, centre: MassiveBody):
        self._ephemeris = ephemeris
        self._centre = centre
        self._centre_trajectory = ephemeris.trajectory(centre)

    @property
    def centre(self) -> MassiveBody:
        return self._centre

    def to_this_frame_at_time(self, t: float) -> RigidMotion:
        centre = self._centre_trajectory.evaluate_degrees_of_freedom(t)
        return RigidMotion(Rotation.identity(), centre.position,
                           centre.velocity, np.zeros(3))

    def geometric_acceleration(self, t: float,
                               degrees_of_freedom) -> np.ndarray:
        centre = self._centre_trajectory.evaluate_degrees_of_freedom(t)
        position = np.asarray(degrees_of_freedom[0], dtype=float)
        gravity = (
            self._ephemeris.compute_gravitational_acceleration_on_massless_body(
                position + np.asarray(centre.position), t))
        centre_acceleration = (
            self._ephemeris.compute_gravitational_acceleration_on_massive_body(
                self._centre, t))
        return np.asarray(gravity) - np.asarray(centre_acceleration)

    def write_to_message(self) -> Dict[str, Any]:
        return {self._message_key: {
            'centre': self._ephemeris.body_index(self._centre),
        }}

    @classmethod
    def _read_from_extension(cls, ephemeris, extension):
        return cls(ephemeris, ephemeris.bodies[extension['centre']])

    def __repr__(self):
        return f"BodyCentredNonRotatingDynamicFrame(centre={self._centre!r})"
