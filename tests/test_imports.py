"""Smoke tests to verify package imports work."""

def test_package_imports():
    """Test that all main classes can be imported."""
    from orrery import (Ephemeris, EulerSolver, MassiveBody, MasslessBody,
                        Trajectory, BarycentricRotatingDynamicFrame)
    assert Ephemeris is not None
    assert EulerSolver is not None
    assert MassiveBody is not None
    assert MasslessBody is not None
    assert Trajectory is not None
    assert BarycentricRotatingDynamicFrame is not None

def test_version_exists():
    """Test that version is defined."""
    import orrery
    assert hasattr(orrery, '__version__')
    assert orrery.__version__ == "0.1.0"

def test_all_names_exist():
    """Every name in __all__ is importable."""
    import orrery
    for name in orrery.__all__:
        assert hasattr(orrery, name), name

def test_can_create_massive_body():
    """Test basic MassiveBody creation."""
    from orrery import MassiveBody
    body = MassiveBody(mu=398600.4418, name='Earth')
    assert body.mu == 398600.4418
    assert not body.is_oblate

def test_can_create_euler_solver():
    """Test basic EulerSolver creation."""
    from orrery import EulerSolver, Formula
    import numpy as np
    solver = EulerSolver([1.0, 2.0, 3.0], [1.0, 0.0, 0.0], np.eye(3))
    assert solver.formula == Formula.I

def test_elliptic_k_at_zero_parameter():
    """K(m = 0) is pi / 2."""
    from orrery import elliptic_k
    import numpy as np
    assert elliptic_k(1.0) == np.pi / 2
