"""
Orrery: Celestial Mechanics Numerical Core

A Python package for n-body ephemerides, dynamic reference frames and
torque-free rigid-body rotation, with the elliptic functions and integrals
they rest on.
"""

# Core classes
from .bodies import MassiveBody, MasslessBody
from .ephemeris import Ephemeris
from .trajectory import Trajectory, Trajectory as Traj
from .rigid_motion import DegreesOfFreedom, RigidMotion
from .dynamic_frames import (DynamicFrame, BarycentricRotatingDynamicFrame,
                             BodyCentredNonRotatingDynamicFrame)
from .euler_solver import EulerSolver, Formula

# Integrators
from .integrators import (SymplecticRungeKuttaNystromIntegrator,
                          TaylorAdaptiveIntegrator, get_integrator,
                          available_integrators)

# Elliptic functions and integrals
from .elliptic_functions import jacobi_elliptic_functions, jacobi_amplitude
from .elliptic_integrals import (bulirsch_cel, elliptic_k, elliptic_e_complete,
                                 elliptic_pi_complete, elliptic_f, elliptic_e,
                                 elliptic_pi, fukushima_elliptic_bd,
                                 fukushima_elliptic_bdj,
                                 fukushima_elliptic_bdj_incomplete)

# Commonly-used celestial bodies
from .bodies import SUN, MERCURY, VENUS, EARTH, MOON, MARS, JUPITER, SATURN

# Configuration
from .config import config, temp_config

# Package metadata
__version__ = "0.1.0"
__author__ = "Shane Billingsley"

# Define what gets imported with "from orrery import *"
__all__ = [
    # Classes
    "MassiveBody",
    "MasslessBody",
    "Ephemeris",
    "Trajectory",
    "DegreesOfFreedom",
    "RigidMotion",
    "DynamicFrame",
    "BarycentricRotatingDynamicFrame",
    "BodyCentredNonRotatingDynamicFrame",
    "EulerSolver",
    "Formula",
    "SymplecticRungeKuttaNystromIntegrator",
    "TaylorAdaptiveIntegrator",
    # Abbreviations
    "Traj",
    # Functions
    "get_integrator",
    "available_integrators",
    "jacobi_elliptic_functions",
    "jacobi_amplitude",
    "bulirsch_cel",
    "elliptic_k",
    "elliptic_e_complete",
    "elliptic_pi_complete",
    "elliptic_f",
    "elliptic_e",
    "elliptic_pi",
    "fukushima_elliptic_bd",
    "fukushima_elliptic_bdj",
    "fukushima_elliptic_bdj_incomplete",
    # Constants
    "SUN",
    "MERCURY",
    "VENUS",
    "EARTH",
    "MOON",
    "MARS",
    "JUPITER",
    "SATURN",
    # Configuration
    "config",
    "temp_config",
]
