"""
Test suite for the n-body ephemeris.

Tests cover:
- Construction and validation of bodies and initial states
- Prolongation on the fixed grid
- Two-body circular orbit: closure, conservation of energy and momentum
- Gravitational accelerations, including J2 and extrapolation
- Reads of trajectories while the ephemeris is prolonged
- Flows of massless bodies
- Agreement between the symplectic and Taylor integrators
- Messages
"""

import threading

import pytest
import numpy as np

from orrery import (Ephemeris, MassiveBody, MasslessBody, Trajectory,
                    temp_config)
from orrery.integrators import TaylorAdaptiveIntegrator

# Two bodies on circular orbits about their barycentre at the origin
BIG_MU = 5.0  # km^3/s^2
SMALL_MU = 2.0  # km^3/s^2
SEPARATION = 5.0  # km
RELATIVE_SPEED = np.sqrt((BIG_MU + SMALL_MU) / SEPARATION)
PERIOD = 2.0 * np.pi * np.sqrt(SEPARATION**3 / (BIG_MU + SMALL_MU))


def two_body_states():
    total = BIG_MU + SMALL_MU
    return [
        ([SEPARATION * SMALL_MU / total, 0.0, 0.0],
         [0.0, RELATIVE_SPEED * SMALL_MU / total, 0.0]),
        ([-SEPARATION * BIG_MU / total, 0.0, 0.0],
         [0.0, -RELATIVE_SPEED * BIG_MU / total, 0.0]),
    ]


@pytest.fixture
def bodies():
    return [MassiveBody(mu=BIG_MU, name='Big'),
            MassiveBody(mu=SMALL_MU, name='Small')]


@pytest.fixture
def ephemeris(bodies):
    return Ephemeris(bodies, two_body_states(), initial_time=0.0,
                     integrator='yoshida6', step=PERIOD / 500)


class TestConstruction:
    """Test validation of the construction arguments."""

    def test_initial_state(self, ephemeris, bodies):
        assert ephemeris.t_min == 0.0
        assert ephemeris.t_max == 0.0
        assert np.allclose(ephemeris.trajectory(bodies[0]).evaluate_position(0.0),
                           [10.0 / 7.0, 0.0, 0.0])

    def test_defaults_from_config(self, bodies):
        with temp_config(DEFAULT_INTEGRATOR='leapfrog', DEFAULT_STEP=0.5):
            ephemeris = Ephemeris(bodies, two_body_states(), 0.0)
        assert ephemeris.integrator.name == 'leapfrog'
        assert ephemeris.step == 0.5

    def test_no_bodies(self):
        with pytest.raises(ValueError, match="at least one massive body"):
            Ephemeris([], [], 0.0)

    def test_massless_body(self):
        with pytest.raises(TypeError, match="MassiveBody instances"):
            Ephemeris([MasslessBody()], [([0, 0, 0], [0, 0, 0])], 0.0)

    def test_duplicate_body(self, bodies):
        with pytest.raises(ValueError, match="appears twice"):
            Ephemeris([bodies[0], bodies[0]], two_body_states(), 0.0)

    def test_state_count(self, bodies):
        with pytest.raises(ValueError, match="Expected 2 initial states"):
            Ephemeris(bodies, two_body_states()[:1], 0.0)

    def test_non_positive_step(self, bodies):
        with pytest.raises(ValueError, match="Step must be positive"):
            Ephemeris(bodies, two_body_states(), 0.0, step=0.0)

    def test_non_finite_state(self, bodies):
        states = two_body_states()
        states[0] = ([np.nan, 0.0, 0.0], states[0][1])
        with pytest.raises(ValueError, match="NaN or Inf"):
            Ephemeris(bodies, states, 0.0)

    def test_coincident_bodies(self, bodies):
        states = [([1.0, 2.0, 3.0], [0, 0, 0]), ([1.0, 2.0, 3.0], [0, 1, 0])]
        with pytest.raises(ValueError, match="same position"):
            Ephemeris(bodies, states, 0.0)

    def test_unknown_integrator(self, bodies):
        with pytest.raises(ValueError, match="Unknown integrator"):
            Ephemeris(bodies, two_body_states(), 0.0, integrator='euler')

    def test_unknown_body(self, ephemeris):
        with pytest.raises(ValueError, match="is not a body of this ephemeris"):
            ephemeris.trajectory(MassiveBody(mu=1.0))

    def test_body_index(self, ephemeris, bodies):
        assert ephemeris.body_index(bodies[0]) == 0
        assert ephemeris.body_index(bodies[1]) == 1
        assert ephemeris.bodies == bodies


class TestProlongation:
    """Test extension of the trajectories."""

    def test_prolong_reaches_time(self, ephemeris):
        ephemeris.prolong(PERIOD / 3)
        assert ephemeris.t_max >= PERIOD / 3
        assert ephemeris.t_max < PERIOD / 3 + ephemeris.step

    def test_grid(self, ephemeris, bodies):
        ephemeris.prolong(10 * ephemeris.step)
        times = ephemeris.trajectory(bodies[1]).times
        assert len(times) == 11
        assert np.allclose(np.diff(times), ephemeris.step, rtol=1e-12)

    def test_prolong_is_idempotent(self, ephemeris, bodies):
        ephemeris.prolong(PERIOD / 2)
        t_max = ephemeris.t_max
        samples = len(ephemeris.trajectory(bodies[0]))
        ephemeris.prolong(PERIOD / 4)
        ephemeris.prolong(t_max)
        assert ephemeris.t_max == t_max
        assert len(ephemeris.trajectory(bodies[0])) == samples

    def test_reads_during_prolong(self, ephemeris, bodies):
        """Another thread reads the computed range while prolong runs."""
        trajectory = ephemeris.trajectory(bodies[0])
        done = threading.Event()
        errors = []

        def read():
            while not done.is_set():
                try:
                    t_max = trajectory.t_max
                    radius = np.linalg.norm(trajectory.evaluate_position(t_max))
                    assert np.isclose(radius, 10.0 / 7.0, rtol=1e-6)
                except Exception as error:
                    errors.append(error)
                    return

        reader = threading.Thread(target=read)
        reader.start()
        try:
            ephemeris.prolong(4 * PERIOD)
        finally:
            done.set()
            reader.join()

        assert errors == []
        assert len(trajectory.times) == len(trajectory)
        assert trajectory.times[-1] == ephemeris.t_max
        assert np.array_equal(trajectory.evaluate_position(ephemeris.t_max),
                              trajectory.last().position)

    def test_circular_orbit_closes(self, ephemeris, bodies):
        ephemeris.prolong(2 * PERIOD)
        for body, (position, velocity) in zip(bodies, two_body_states()):
            trajectory = ephemeris.trajectory(body)
            assert np.allclose(trajectory.evaluate_position(2 * PERIOD),
                               position, rtol=0, atol=1e-6)
            assert np.allclose(trajectory.evaluate_velocity(2 * PERIOD),
                               velocity, rtol=0, atol=1e-6)

    def test_separation_is_constant(self, ephemeris, bodies):
        ephemeris.prolong(PERIOD)
        big = ephemeris.trajectory(bodies[0])
        small = ephemeris.trajectory(bodies[1])
        for t in np.linspace(0.0, PERIOD, 37):
            r = big.evaluate_position(t) - small.evaluate_position(t)
            assert np.isclose(np.linalg.norm(r), SEPARATION, rtol=1e-7)

    def test_barycentre_is_fixed(self, ephemeris, bodies):
        """Total momentum is conserved exactly by the symplectic kicks."""
        ephemeris.prolong(PERIOD)
        for t in ephemeris.trajectory(bodies[0]).times[::50]:
            barycentre = sum(body.mu * ephemeris.trajectory(body).evaluate_position(t)
                             for body in bodies)
            assert np.allclose(barycentre, 0.0, rtol=0, atol=1e-10)

    def test_energy(self, ephemeris, bodies):
        ephemeris.prolong(3 * PERIOD)

        def energy(t):
            (q1, v1), (q2, v2) = (ephemeris.trajectory(body)(t)
                                  for body in bodies)
            kinetic = 0.5 * (BIG_MU * v1 @ v1 + SMALL_MU * v2 @ v2)
            return kinetic - BIG_MU * SMALL_MU / np.linalg.norm(q1 - q2)

        e0 = energy(0.0)
        for t in [PERIOD / 3, PERIOD, 2.5 * PERIOD, 3 * PERIOD]:
            assert np.isclose(energy(t), e0, rtol=1e-8)


class TestAccelerations:
    """Test gravitational accelerations."""

    def test_massive_bodies(self, ephemeris, bodies):
        a_big = ephemeris.compute_gravitational_acceleration_on_massive_body(
            bodies[0], 0.0)
        a_small = ephemeris.compute_gravitational_acceleration_on_massive_body(
            bodies[1], 0.0)
        assert np.allclose(a_big, [-SMALL_MU / SEPARATION**2, 0.0, 0.0])
        assert np.allclose(a_small, [BIG_MU / SEPARATION**2, 0.0, 0.0])

    def test_massless_body(self, ephemeris):
        """Between the bodies, on the line joining them."""
        a = ephemeris.compute_gravitational_acceleration_on_massless_body(
            [0.0, 0.0, 0.0], 0.0)
        expected = (BIG_MU / (10.0 / 7.0)**2 - SMALL_MU / (25.0 / 7.0)**2)
        assert np.allclose(a, [expected, 0.0, 0.0], rtol=1e-14)

    def test_outside_computed_range(self, ephemeris):
        with pytest.raises(ValueError, match="outside trajectory bounds"):
            ephemeris.compute_gravitational_acceleration_on_massless_body(
                [0.0, 0.0, 0.0], 10.0)

    def test_several_points(self, ephemeris):
        points = [[0.0, 0.0, 0.0], [3.0, -4.0, 1.0]]
        accelerations = ephemeris.compute_gravitational_accelerations_at_points(
            points, 0.0)
        assert accelerations.shape == (2, 3)
        for point, acceleration in zip(points, accelerations):
            assert np.allclose(
                acceleration,
                ephemeris.compute_gravitational_acceleration_on_massless_body(
                    point, 0.0),
                rtol=1e-14)

    def test_extrapolated_points(self, ephemeris):
        """Past t_max the trajectories of the massive bodies are continued."""
        ephemeris.prolong(PERIOD / 10)
        t = ephemeris.t_max + 1e-3 * ephemeris.step
        point = [[0.0, 10.0, 0.0]]
        with pytest.raises(ValueError, match="outside trajectory bounds"):
            ephemeris.compute_gravitational_accelerations_at_points(point, t)
        extrapolated = ephemeris.compute_gravitational_accelerations_at_points(
            point, t, extrapolate=True)
        at_end = ephemeris.compute_gravitational_accelerations_at_points(
            point, ephemeris.t_max)
        assert np.allclose(extrapolated, at_end, rtol=1e-4)

    def test_j2_on_axis_and_equator(self):
        """J2 weakens gravity at the poles and strengthens it at the equator."""
        mu, radius, j2 = 398600.4418, 6378.137, 1.08262668e-3
        earth = MassiveBody(mu=mu, radius=radius, J2=j2, name='Earth')
        ephemeris = Ephemeris([earth], [([0, 0, 0], [0, 0, 0])], 0.0)
        r = 7000.0
        polar = ephemeris.compute_gravitational_acceleration_on_massless_body(
            [0.0, 0.0, r], 0.0)
        equatorial = ephemeris.compute_gravitational_acceleration_on_massless_body(
            [r, 0.0, 0.0], 0.0)
        assert np.allclose(
            polar, [0.0, 0.0, -mu / r**2 * (1 - 3 * j2 * (radius / r)**2)],
            rtol=1e-14)
        assert np.allclose(
            equatorial, [-mu / r**2 * (1 + 1.5 * j2 * (radius / r)**2), 0.0, 0.0],
            rtol=1e-14)

    def test_j2_tilted_axis(self):
        """The J2 field follows the axis of the body."""
        mu, radius, j2 = 1.0e5, 1000.0, 1e-2
        body = MassiveBody(mu=mu, radius=radius, J2=j2, axis=(1.0, 0.0, 0.0))
        ephemeris = Ephemeris([body], [([0, 0, 0], [0, 0, 0])], 0.0)
        r = 3000.0
        polar = ephemeris.compute_gravitational_acceleration_on_massless_body(
            [r, 0.0, 0.0], 0.0)
        assert np.allclose(
            polar, [-mu / r**2 * (1 - 3 * j2 * (radius / r)**2), 0.0, 0.0],
            rtol=1e-14)

    def test_j2_action_and_reaction(self):
        """The J2 forces between massive bodies balance."""
        oblate = MassiveBody(mu=1.0e4, radius=100.0, J2=0.05,
                             axis=(0.0, 0.6, 0.8))
        moon = MassiveBody(mu=1.0e2)
        ephemeris = Ephemeris([oblate, moon],
                              [([0, 0, 0], [0, 0, 0]),
                               ([300.0, 200.0, 100.0], [0, 0, 0])], 0.0)
        a_oblate = ephemeris.compute_gravitational_acceleration_on_massive_body(
            oblate, 0.0)
        a_moon = ephemeris.compute_gravitational_acceleration_on_massive_body(
            moon, 0.0)
        assert np.allclose(oblate.mu * a_oblate + moon.mu * a_moon, 0.0,
                           rtol=0, atol=1e-12)
        # The moon feels the J2 field of the oblate body.
        alone = Ephemeris([oblate], [([0, 0, 0], [0, 0, 0])], 0.0)
        field = alone.compute_gravitational_acceleration_on_massless_body(
            [300.0, 200.0, 100.0], 0.0)
        assert np.allclose(a_moon, field, rtol=1e-14)


class TestMasslessFlow:
    """Test flowing massless bodies in the field of the ephemeris."""

    @pytest.fixture
    def central(self):
        return MassiveBody(mu=398600.4418, name='Earth')

    @pytest.fixture
    def central_ephemeris(self, central):
        return Ephemeris([central], [([0, 0, 0], [0, 0, 0])], 0.0, step=10.0)

    def circular_trajectory(self, r=7000.0, mu=398600.4418):
        trajectory = Trajectory(MasslessBody('satellite'))
        trajectory.append(0.0, [r, 0.0, 0.0], [0.0, np.sqrt(mu / r), 0.0])
        return trajectory

    def test_circular_orbit_closes(self, central_ephemeris):
        r, mu = 7000.0, 398600.4418
        period = 2 * np.pi * np.sqrt(r**3 / mu)
        trajectory = self.circular_trajectory(r, mu)
        central_ephemeris.flow_with_fixed_step([trajectory], period,
                                               integrator='yoshida6')
        assert trajectory.t_max >= period
        assert np.allclose(trajectory.evaluate_position(period),
                           [r, 0.0, 0.0], rtol=0, atol=1e-3)
        for t in np.linspace(0.0, period, 17):
            assert np.isclose(np.linalg.norm(trajectory.evaluate_position(t)),
                              r, rtol=1e-7)

    def test_ephemeris_is_prolonged(self, central_ephemeris):
        trajectory = self.circular_trajectory()
        central_ephemeris.flow_with_fixed_step([trajectory], 1000.0)
        assert central_ephemeris.t_max >= trajectory.t_max

    def test_several_bodies(self, central_ephemeris):
        trajectories = [self.circular_trajectory(7000.0),
                        self.circular_trajectory(8000.0)]
        central_ephemeris.flow_with_fixed_step(trajectories, 600.0)
        assert trajectories[0].t_max == trajectories[1].t_max
        assert np.isclose(np.linalg.norm(trajectories[1].evaluate_position(600.0)),
                          8000.0, rtol=1e-6)

    def test_does_not_perturb_massive_bodies(self, ephemeris, bodies):
        reference = Ephemeris(bodies, two_body_states(), 0.0,
                              integrator='yoshida6', step=PERIOD / 500)
        satellite = Trajectory(MasslessBody())
        satellite.append(0.0, [0.0, 20.0, 0.0], [0.3, 0.0, 0.0])
        ephemeris.flow_with_fixed_step([satellite], PERIOD)
        reference.prolong(PERIOD)
        assert np.array_equal(
            ephemeris.trajectory(bodies[0]).evaluate_position(PERIOD),
            reference.trajectory(bodies[0]).evaluate_position(PERIOD))

    def test_taylor_ephemeris_falls_back_to_symplectic(self, bodies):
        ephemeris = Ephemeris(bodies, two_body_states(), 0.0,
                              integrator='taylor', step=PERIOD / 50)
        satellite = Trajectory(MasslessBody())
        satellite.append(0.0, [0.0, 20.0, 0.0], [-0.5, 0.0, 0.0])
        ephemeris.flow_with_fixed_step([satellite], PERIOD / 10)
        assert satellite.t_max >= PERIOD / 10

    def test_requires_symplectic_integrator(self, central_ephemeris):
        with pytest.raises(ValueError, match="symplectic integrator"):
            central_ephemeris.flow_with_fixed_step(
                [self.circular_trajectory()], 100.0, integrator='taylor')

    def test_massive_trajectory_rejected(self, central_ephemeris, central):
        trajectory = Trajectory(central)
        trajectory.append(0.0, [7000.0, 0, 0], [0, 7.5, 0])
        with pytest.raises(TypeError, match="massless bodies"):
            central_ephemeris.flow_with_fixed_step([trajectory], 100.0)

    def test_different_end_times_rejected(self, central_ephemeris):
        first = self.circular_trajectory()
        second = self.circular_trajectory()
        second.append(10.0, [7000.0, 75.0, 0.0], [0.0, 7.5, 0.0])
        with pytest.raises(ValueError, match="end at the same time"):
            central_ephemeris.flow_with_fixed_step([first, second], 100.0)

    def test_nothing_to_do(self, central_ephemeris):
        trajectory = self.circular_trajectory()
        central_ephemeris.flow_with_fixed_step([trajectory], 0.0)
        central_ephemeris.flow_with_fixed_step([], 100.0)
        assert len(trajectory) == 1


class TestTaylorEphemeris:
    """Test the heyoka integrator behind an ephemeris."""

    def test_agrees_with_symplectic(self, bodies, ephemeris):
        taylor = Ephemeris(bodies, two_body_states(), 0.0,
                           integrator=TaylorAdaptiveIntegrator(tol=1e-15),
                           step=PERIOD / 50)
        taylor.prolong(PERIOD)
        ephemeris.prolong(PERIOD)
        for body in bodies:
            assert np.allclose(taylor.trajectory(body).evaluate_position(PERIOD),
                               ephemeris.trajectory(body).evaluate_position(PERIOD),
                               rtol=0, atol=1e-7)

    def test_same_grid(self, bodies):
        taylor = Ephemeris(bodies, two_body_states(), 0.0,
                           integrator='taylor', step=PERIOD / 50)
        taylor.prolong(9.5 * taylor.step)
        times = taylor.trajectory(bodies[0]).times
        assert np.allclose(times, np.arange(11) * (PERIOD / 50), rtol=1e-14)


class TestMessages:
    """Test serialization."""

    def test_round_trip(self, ephemeris):
        message = ephemeris.write_to_message()
        read = Ephemeris.read_from_message(message)
        assert [body.mu for body in read.bodies] == [BIG_MU, SMALL_MU]
        assert [body.name for body in read.bodies] == ['Big', 'Small']
        assert read.integrator.name == 'yoshida6'
        assert read.step == ephemeris.step

        read.prolong(PERIOD / 2)
        ephemeris.prolong(PERIOD / 2)
        for original, copy in zip(ephemeris.bodies, read.bodies):
            assert np.array_equal(
                read.trajectory(copy).evaluate_position(PERIOD / 2),
                ephemeris.trajectory(original).evaluate_position(PERIOD / 2))

    def test_message_content(self, ephemeris):
        message = ephemeris.write_to_message()
        assert message['initial_time'] == 0.0
        assert message['integrator'] == 'yoshida6'
        assert len(message['bodies']) == 2
        assert message['initial_states'][0]['position'] == [10.0 / 7.0, 0.0, 0.0]

    def test_body_round_trip(self):
        body = MassiveBody(mu=3.0, radius=2.0, J2=0.01, axis=(0, 0, 2), name='X')
        read = MassiveBody.read_from_message(body.write_to_message())
        assert read is not body
        assert (read.mu, read.radius, read.J2, read.axis, read.name) == (
            3.0, 2.0, 0.01, (0.0, 0.0, 1.0), 'X')

    def test_repr(self, ephemeris):
        assert repr(ephemeris).startswith(
            "Ephemeris(bodies=['Big', 'Small'], integrator=yoshida6")
