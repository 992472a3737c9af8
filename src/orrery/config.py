"""
Global Configuration for Orrery Package
=======================================

This module provides package-wide configuration settings that users can modify
to control numerical tolerances, validation behavior and the defaults of the
ephemeris integrators.

Examples
--------
View current configuration:

>>> import orrery
>>> print(orrery.config)

Modify settings:

>>> orrery.config.DEFAULT_STEP = 30.0  # Finer ephemeris grid
>>> orrery.config.DEFAULT_INTEGRATOR = 'yoshida6'

Reset to defaults:

>>> orrery.config.reset()

Temporarily modify settings:

>>> with orrery.temp_config(STRICT_VALIDATION=False):
...     # Validation failures only warn in this block
...     trajectory.append(t_old, q, v)

Notes
-----
These settings affect package-wide behavior. Modifying them will impact
all subsequent operations until changed again or reset.  Objects capture
the defaults they need at construction; changing a setting does not alter
an existing Ephemeris.
"""

from dataclasses import dataclass
from contextlib import contextmanager


@dataclass
class OrreryConfig:
    """
    Global configuration for Orrery package.

    Attributes
    ----------
    STRICT_VALIDATION : bool
        If True, validation failures raise exceptions.
        If False, validation failures issue warnings.
        Precondition violations of the numerical core always raise.
        Default: True
    DEFAULT_INTEGRATOR : str
        Registry name of the integrator used by an Ephemeris when none is
        given.
        Default: 'forest_ruth'
    DEFAULT_STEP : float
        Fixed step of the ephemeris grid [s].
        Default: 60.0
    TAYLOR_TOLERANCE : float
        Tolerance of the heyoka Taylor integrator.
        Default: 1e-15
    DEFAULT_COMPILE : bool
        If True, the Taylor integrator compiles its equations of motion on
        construction.  If False, compilation is deferred until first use.
        Default: True
    DEFAULT_SAMPLE_POINTS : int
        Default number of points for trajectory sampling and export.
        Default: 1000
    """

    # Validation behavior
    STRICT_VALIDATION: bool = True

    # Ephemeris defaults
    DEFAULT_INTEGRATOR: str = 'forest_ruth'
    DEFAULT_STEP: float = 60.0

    # Taylor integrator defaults
    TAYLOR_TOLERANCE: float = 1e-15
    DEFAULT_COMPILE: bool = True

    # Sampling defaults
    DEFAULT_SAMPLE_POINTS: int = 1000

    def reset(self):
        """
        Reset all configuration values to package defaults.

        Examples
        --------
        >>> import orrery
        >>> orrery.config.DEFAULT_STEP = 1.0  # Modify
        >>> orrery.config.reset()  # Back to defaults
        >>> orrery.config.DEFAULT_STEP
        60.0
        """
        defaults = OrreryConfig()
        for key in self.__dataclass_fields__:
            setattr(self, key, getattr(defaults, key))

    def __repr__(self):
        """Return formatted string showing all configuration values."""
        lines = ["OrreryConfig:"]
        lines.append("  Behavior:")
        lines.append(f"    STRICT_VALIDATION = {self.STRICT_VALIDATION}")
        lines.append("  Ephemeris:")
        lines.append(f"    DEFAULT_INTEGRATOR = '{self.DEFAULT_INTEGRATOR}'")
        lines.append(f"    DEFAULT_STEP = {self.DEFAULT_STEP}")
        lines.append("  Taylor Integration:")
        lines.append(f"    TAYLOR_TOLERANCE = {self.TAYLOR_TOLERANCE}")
        lines.append(f"    DEFAULT_COMPILE = {self.DEFAULT_COMPILE}")
        lines.append("  Sampling:")
        lines.append(f"    DEFAULT_SAMPLE_POINTS = {self.DEFAULT_SAMPLE_POINTS}")
        return "\n".join(lines)


# Global configuration instance
config = OrreryConfig()


@contextmanager
def temp_config(**kwargs):
    """
    Context manager for temporarily modifying configuration values.

    Configuration is automatically restored when the context exits,
    even if an exception occurs.

    Parameters
    ----------
    **kwargs
        Configuration attributes to temporarily modify.

    Examples
    --------
    >>> import orrery
    >>> with orrery.temp_config(DEFAULT_STEP=10.0, DEFAULT_INTEGRATOR='leapfrog'):
    ...     ephemeris = orrery.Ephemeris(bodies, states, 0.0)
    >>> # Original config restored here
    >>> orrery.config.DEFAULT_STEP
    60.0

    Raises
    ------
    AttributeError
        If an invalid configuration attribute is specified.
    """
    old_values = {}
    for key, value in kwargs.items():
        if not hasattr(config, key):
            raise AttributeError(
                f"OrreryConfig has no attribute '{key}'. "
                f"Valid attributes: {list(config.__dataclass_fields__.keys())}"
            )
        old_values[key] = getattr(config, key)
        setattr(config, key, value)

    try:
        yield config
    finally:
        for key, value in old_values.items():
            setattr(config, key, value)
