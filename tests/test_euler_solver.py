"""
Test suite for the closed-form Euler solver.

Tests cover:
- Selection of formula i, ii, iii and the sphere
- Conservation of angular momentum magnitude and kinetic energy
- Euler's equations, by finite differences
- Attitude: initial value, invariable inertial angular momentum, angular
  velocity by finite differences
- Preconditions
- Messages
"""

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from orrery import EulerSolver, Formula

INITIAL_ATTITUDE = Rotation.from_euler('zxz', [0.3, -1.1, 2.0])

# (moments of inertia, initial angular momentum, expected formula)
CASES = {
    'i': ([1.0, 2.0, 3.0], [2.0, 0.5, -0.3], Formula.I),
    'i_negative': ([1.0, 2.0, 3.0], [-2.0, 0.3, 0.4], Formula.I),
    'i_precession_about_e1': ([1.0, 2.9, 3.0], [1.0, 0.4, 0.2], Formula.I),
    'iii': ([1.0, 2.0, 3.0], [0.2, 0.4, 1.5], Formula.III),
    'iii_negative': ([1.0, 2.0, 3.0], [0.3, -0.1, -1.5], Formula.III),
    'iii_precession_about_e3': ([1.0, 1.1, 3.0], [0.5, 0.5, 1.0],
                               Formula.III),
    'ii': ([2.0, 3.0, 6.0], [1.0, 0.0, 1.0], Formula.II),
    'ii_moving': ([2.0, 3.0, 6.0], [1.0, 0.5, 1.0], Formula.II),
    'symmetric_top': ([1.0, 3.0, 3.0], [0.5, 0.2, 0.7], Formula.I),
    'sphere': ([2.0, 2.0, 2.0], [0.3, -0.4, 1.2], Formula.SPHERE),
}


def euler_derivative(moments, m):
    """Right-hand side of Euler's equations for the angular momentum."""
    i1, i2, i3 = moments
    m1, m2, m3 = m
    return np.array([
        -m2 * m3 * (i3 - i2) / (i2 * i3),
        m1 * m3 * (i3 - i1) / (i1 * i3),
        -m1 * m2 * (i2 - i1) / (i1 * i2),
    ])


@pytest.fixture(params=sorted(CASES))
def case(request):
    moments, m0, formula = CASES[request.param]
    solver = EulerSolver(moments, m0, INITIAL_ATTITUDE, initial_time=10.0)
    return solver, np.array(moments), np.array(m0), formula


class TestClassification:
    """Test the selection of the closed form."""

    def test_formula(self, case):
        solver, _, _, formula = case
        assert solver.formula == formula

    def test_rotation_about_least_axis(self):
        solver = EulerSolver([1.0, 2.0, 3.0], [1.0, 0.0, 0.0], np.eye(3))
        assert solver.formula == Formula.I

    def test_rotation_about_greatest_axis(self):
        solver = EulerSolver([1.0, 2.0, 3.0], [0.0, 0.0, 1.0], np.eye(3))
        assert solver.formula == Formula.III

    def test_rotation_about_intermediate_axis(self):
        """Unstable equilibrium on the separatrix."""
        solver = EulerSolver([1.0, 2.0, 3.0], [0.0, 1.0, 0.0], np.eye(3))
        assert solver.formula == Formula.II
        assert np.allclose(solver.angular_momentum_at(5.0), [0.0, 1.0, 0.0],
                           rtol=0, atol=1e-15)

    def test_zero_angular_momentum(self):
        solver = EulerSolver([1.0, 2.0, 3.0], [0.0, 0.0, 0.0], np.eye(3))
        assert solver.formula == Formula.SPHERE
        assert np.all(solver.angular_momentum_at(3.0) == 0.0)
        assert np.allclose(solver.attitude_at([0.0, 0.0, 0.0], 3.0).as_matrix(),
                           np.eye(3))


class TestAngularMomentum:
    """Test the closed-form angular momentum."""

    def test_initial_value(self, case):
        solver, _, m0, _ = case
        assert np.allclose(solver.angular_momentum_at(10.0), m0, rtol=0,
                           atol=1e-13)

    def test_conservation(self, case):
        """|m| and the kinetic energy are constant."""
        solver, moments, m0, _ = case
        g2 = np.dot(m0, m0)
        energy = np.sum(m0 * m0 / moments)
        for t in [-7.3, 0.0, 4.2, 25.0, 180.0]:
            m = solver.angular_momentum_at(t)
            assert np.isclose(np.dot(m, m), g2, rtol=1e-12)
            assert np.isclose(np.sum(m * m / moments), energy, rtol=1e-12)

    def test_euler_equations(self, case):
        """Central differences of m(t) satisfy Euler's equations."""
        solver, moments, _, _ = case
        h = 1e-5
        for t in [-3.0, 10.0, 12.5, 40.0]:
            m = solver.angular_momentum_at(t)
            derivative = (solver.angular_momentum_at(t + h)
                          - solver.angular_momentum_at(t - h)) / (2 * h)
            assert np.allclose(derivative, euler_derivative(moments, m),
                               rtol=1e-6, atol=1e-8)

    def test_separatrix_limit(self):
        """On the separatrix m tends to the intermediate axis."""
        solver = EulerSolver([2.0, 3.0, 6.0], [1.0, 0.0, 1.0], np.eye(3))
        g = np.sqrt(2.0)
        assert np.allclose(solver.angular_momentum_at(400.0), [0.0, g, 0.0],
                           rtol=0, atol=1e-12)
        assert np.allclose(solver.angular_momentum_at(-400.0), [0.0, -g, 0.0],
                           rtol=0, atol=1e-12)

    def test_angular_velocity(self):
        solver = EulerSolver([1.0, 2.0, 4.0], [1.0, 1.0, 1.0], np.eye(3))
        assert np.allclose(solver.angular_velocity_for([1.0, 2.0, 4.0]),
                           [1.0, 1.0, 1.0])


class TestAttitude:
    """Test the attitude of the body."""

    def test_initial_value(self, case):
        solver, _, _, _ = case
        m = solver.angular_momentum_at(10.0)
        attitude = solver.attitude_at(m, 10.0)
        assert np.allclose(attitude.as_matrix(), INITIAL_ATTITUDE.as_matrix(),
                           rtol=0, atol=1e-12)

    def test_inertial_angular_momentum_is_constant(self, case):
        """R(t) m(t) is the fixed inertial angular momentum."""
        solver, _, m0, _ = case
        expected = INITIAL_ATTITUDE.apply(m0)
        for t in [-5.0, 3.0, 11.0, 37.5, 120.0]:
            m = solver.angular_momentum_at(t)
            assert np.allclose(solver.attitude_at(m, t).apply(m), expected,
                               rtol=0, atol=1e-11)

    def test_angular_velocity(self, case):
        """R(t - h)^-1 R(t + h) is a rotation by 2 h w(t) in body axes."""
        solver, _, _, _ = case
        h = 1e-4
        for t in [-2.0, 10.0, 14.0, 33.0]:
            before = solver.attitude_at(solver.angular_momentum_at(t - h), t - h)
            after = solver.attitude_at(solver.angular_momentum_at(t + h), t + h)
            rotation_vector = (before.inv() * after).as_rotvec()
            expected = solver.angular_velocity_for(solver.angular_momentum_at(t))
            assert np.allclose(rotation_vector / (2 * h), expected, rtol=1e-6,
                               atol=1e-7)

    def test_near_separatrix(self):
        """
        Close to the separatrix the attitude stays consistent.

        Here mc is about 4e-18 and the precession angle is only accurate to
        about 1e-7 rad, which a step of 1e-2 s absorbs.
        """
        moments = [1.0, 2.0, 3.0]
        m0 = np.array([1e-9, 1.0, 0.0])
        solver = EulerSolver(moments, m0, np.eye(3))
        assert solver.formula == Formula.I
        h = 1e-2
        for t in np.linspace(0.0, 150.0, 31):
            m = solver.angular_momentum_at(t)
            assert np.allclose(solver.attitude_at(m, t).apply(m), m0, rtol=0,
                               atol=1e-11)
            before = solver.attitude_at(solver.angular_momentum_at(t - h), t - h)
            after = solver.attitude_at(solver.angular_momentum_at(t + h), t + h)
            rotation_vector = (before.inv() * after).as_rotvec()
            assert np.allclose(rotation_vector / (2 * h),
                               solver.angular_velocity_for(m), rtol=0,
                               atol=1e-4)

    def test_attitude_from_matrix(self):
        """A matrix and the equivalent Rotation give the same solver."""
        from_matrix = EulerSolver([1.0, 2.0, 3.0], [2.0, 0.5, -0.3],
                                  INITIAL_ATTITUDE.as_matrix())
        from_rotation = EulerSolver([1.0, 2.0, 3.0], [2.0, 0.5, -0.3],
                                    INITIAL_ATTITUDE)
        m = from_matrix.angular_momentum_at(2.0)
        assert np.allclose(from_matrix.attitude_at(m, 2.0).as_matrix(),
                           from_rotation.attitude_at(m, 2.0).as_matrix(),
                           rtol=0, atol=1e-12)

    def test_symmetric_top_precession(self):
        """
        A symmetric top precesses uniformly about L.

        For I2 = I3 the symmetry axis e1 turns about the inertial angular
        momentum with angular velocity G / I2.
        """
        moments = [1.0, 3.0, 3.0]
        m0 = np.array([0.5, 0.2, 0.7])
        solver = EulerSolver(moments, m0, np.eye(3))
        g = np.linalg.norm(m0)
        t = 2.0
        m = solver.angular_momentum_at(t)
        axis = solver.attitude_at(m, t).apply([1.0, 0.0, 0.0])
        expected = Rotation.from_rotvec(g / 3.0 * t * m0 / g).apply(
            [1.0, 0.0, 0.0])
        assert np.allclose(axis, expected, rtol=0, atol=1e-12)


class TestPreconditions:
    """Test invalid construction arguments."""

    def test_unsorted_moments(self):
        with pytest.raises(ValueError, match="ascending order"):
            EulerSolver([3.0, 2.0, 1.0], [1.0, 0.0, 0.0], np.eye(3))

    def test_non_positive_moments(self):
        with pytest.raises(ValueError, match="finite and positive"):
            EulerSolver([0.0, 2.0, 3.0], [1.0, 0.0, 0.0], np.eye(3))

    def test_bad_shape(self):
        with pytest.raises(ValueError, match="shape"):
            EulerSolver([1.0, 2.0], [1.0, 0.0, 0.0], np.eye(3))

    def test_non_finite_angular_momentum(self):
        with pytest.raises(ValueError, match="finite 3-vector"):
            EulerSolver([1.0, 2.0, 3.0], [np.nan, 0.0, 0.0], np.eye(3))

    def test_non_orthonormal_attitude(self):
        with pytest.raises(ValueError, match="not a proper orthonormal"):
            EulerSolver([1.0, 2.0, 3.0], [1.0, 0.0, 0.0], 2.0 * np.eye(3))

    def test_improper_attitude(self):
        with pytest.raises(ValueError, match="not a proper orthonormal"):
            EulerSolver([1.0, 2.0, 3.0], [1.0, 0.0, 0.0],
                        np.diag([1.0, 1.0, -1.0]))


class TestMessages:
    """Test serialization."""

    def test_round_trip(self, case):
        solver, _, _, _ = case
        message = solver.write_to_message()
        read = EulerSolver.read_from_message(message)
        assert read.formula == solver.formula
        assert read.initial_time == solver.initial_time
        for t in [0.0, 13.0]:
            m = solver.angular_momentum_at(t)
            assert np.allclose(read.angular_momentum_at(t), m, rtol=0,
                               atol=1e-14)
            assert np.allclose(read.attitude_at(m, t).as_matrix(),
                               solver.attitude_at(m, t).as_matrix(), rtol=0,
                               atol=1e-12)

    def test_message_content(self):
        solver = EulerSolver([1.0, 2.0, 3.0], [1.0, 0.0, 0.0], np.eye(3), 5.0)
        message = solver.write_to_message()
        assert message['moments_of_inertia'] == [1.0, 2.0, 3.0]
        assert message['initial_angular_momentum'] == [1.0, 0.0, 0.0]
        assert message['initial_time'] == 5.0
        assert np.allclose(message['initial_attitude'], [0.0, 0.0, 0.0, 1.0])

    def test_repr(self):
        solver = EulerSolver([1.0, 2.0, 3.0], [1.0, 0.0, 0.0], np.eye(3))
        assert repr(solver).startswith("EulerSolver(formula=i,")
