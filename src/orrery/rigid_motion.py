"""
Rigid Motions
=============

Changes of reference frame between frames in relative rotation and
translation, acting on degrees of freedom (position and velocity pairs).

A `RigidMotion` from frame A to frame B is described, in the notation of
the class, by

    x_B = R (x_A - o)
    v_B = R (v_A - v_o) - w x x_B

where R rotates A coordinates into B coordinates, o and v_o are the
position and velocity of the origin of B in A, and w is the angular
velocity of B with respect to A, expressed in B.
"""
from typing import NamedTuple

import numpy as np
from scipy.spatial.transform import Rotation


class DegreesOfFreedom(NamedTuple):
    """Position [km] and velocity [km/s] of a point."""
    position: np.ndarray
    velocity: np.ndarray


class RigidMotion:
    """
    A change of frame at a given instant.

    Parameters
    ----------
    rotation : Rotation
        Rotation taking coordinates along the axes of the source frame to
        coordinates along the axes of the target frame
    origin : array_like, shape (3,)
        Position of the origin of the target frame, in the source frame
    origin_velocity : array_like, shape (3,)
        Velocity of the origin of the target frame, in the source frame
    angular_velocity : array_like, shape (3,)
        Angular velocity of the target frame with respect to the source
        frame, expressed in the target frame [rad/s]
    """

    def __init__(self, rotation: Rotation, origin, origin_velocity,
                 angular_velocity):
        self._rotation = rotation
        self._origin = np.asarray(origin, dtype=float)
        self._origin_velocity = np.asarray(origin_velocity, dtype=float)
        self._angular_velocity = np.asarray(angular_velocity, dtype=float)

    @property
    def rotation(self) -> Rotation:
        return self._rotation

    @property
    def origin(self) -> np.ndarray:
        return self._origin.copy()

    @property
    def origin_velocity(self) -> np.ndarray:
        return self._origin_velocity.copy()

    @property
    def angular_velocity(self) -> np.ndarray:
        return self._angular_velocity.copy()

    def __call__(self, degrees_of_freedom) -> DegreesOfFreedom:
        """Degrees of freedom of a point, from the source to the target frame."""
        position, velocity = degrees_of_freedom
        position = self._rotation.apply(np.asarray(position, dtype=float)
                                        - self._origin)
        velocity = (self._rotation.apply(np.asarray(velocity, dtype=float)
                                         - self._origin_velocity)
                    - np.cross(self._angular_velocity, position))
        return DegreesOfFreedom(position, velocity)

    def inverse(self) -> 'RigidMotion':
        """The rigid motion from the target frame back to the source frame."""
        inverse_rotation = self._rotation.inv()
        # Origin of the source frame, seen from the target frame.
        origin = -self._rotation.apply(self._origin)
        origin_velocity = (-self._rotation.apply(self._origin_velocity)
                           + np.cross(self._angular_velocity,
                                      self._rotation.apply(self._origin)))
        angular_velocity = -inverse_rotation.apply(self._angular_velocity)
        return RigidMotion(inverse_rotation, origin, origin_velocity,
                           angular_velocity)

    def __repr__(self):
        return (f"RigidMotion(rotation={self._rotation.as_quat().tolist()}, "
                f"origin={self._origin.tolist()}, "
                f"origin_velocity={self._origin_velocity.tolist()}, "
                f"angular_velocity={self._angular_velocity.tolist()})")
