"""
Utility functions and classes for the Orrery package.
"""

import logging
from time import perf_counter
import warnings
from typing import NoReturn, Type
from .config import config

logger = logging.getLogger(__name__)


class Timer:
    """
    Context manager for timing code execution.

    The elapsed time is reported on the ``orrery.utils`` logger at INFO
    level.

    Examples
    --------
    >>> from orrery.utils import Timer
    >>> with Timer("Prolongation"):
    ...     ephemeris.prolong(86400.0)

    >>> with Timer(verbose=False) as t:
    ...     # ... code ...
    >>> print(f"Took {t.elapsed:.6f} seconds")
    """
    def __init__(self, name="Operation", verbose=True):
        """
        Parameters
        ----------
        name : str, optional
            Name to report when timing completes (default: "Operation")
        verbose : bool, optional
            Whether to log timing automatically (default: True)
        """
        self.name = name
        self.verbose = verbose
        self.elapsed = None

    def __enter__(self):
        self.start = perf_counter()
        return self

    def __exit__(self, *args):
        self.end = perf_counter()
        self.elapsed = self.end - self.start
        if self.verbose:
            logger.info("%s: %.6f s", self.name, self.elapsed)


def validation_error(message: str, error_class: Type[Exception] = ValueError):
    """
    Report an invalid argument of a user-facing object.

    Raises error_class when config.STRICT_VALIDATION is set, and otherwise
    emits a UserWarning attributed to the caller of the validated object,
    which then keeps going with the questionable value.

    Parameters
    ----------
    message : str
        What is wrong, including the offending values
    error_class : Type[Exception], optional
        Raised in strict mode (default: ValueError)

    Examples
    --------
    >>> from orrery import MassiveBody, temp_config
    >>> MassiveBody(mu=-1.0)  # ValueError
    >>> with temp_config(STRICT_VALIDATION=False):
    ...     MassiveBody(mu=-1.0)  # UserWarning
    """
    if not config.STRICT_VALIDATION:
        logger.debug("Lenient validation: %s", message)
        warnings.warn(message, UserWarning, stacklevel=3)
        return
    raise error_class(message)


def fatal_error(message: str,
                error_class: Type[Exception] = ValueError) -> NoReturn:
    """
    Log a violated precondition at CRITICAL level and raise.

    Unlike `validation_error`, this ignores config.STRICT_VALIDATION: the
    numerical core cannot continue with inputs outside its domain.

    Parameters
    ----------
    message : str
        Description of the violation, including the offending values
    error_class : Type[Exception], optional
        Exception class to raise.
        Default: ValueError

    Raises
    ------
    Exception (of type error_class)
        Always
    """
    logger.critical(message)
    raise error_class(message)
