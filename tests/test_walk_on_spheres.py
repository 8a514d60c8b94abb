"""
Unit tests for the single-walk estimator.
"""

import math

import numpy as np
import pytest

from wos_sim import Circle, Constant, ConvergenceError, Linear, Rect, Sinusoid, SphereWalker
from wos_sim.vector import vector


class FixedUniforms:
    """Deterministic stand-in for a generator: cycles through fixed uniforms."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def random(self):
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value


def test_walk_returns_immediately_near_boundary():
    walker = SphereWalker(Circle(radius=1.0), Linear(gradient=(1.0, 0.0)), eps=0.05, max_iters=10)
    rng = FixedUniforms([0.3])
    value = walker.walk(vector(0.99, 0.0), rng)
    assert value == pytest.approx(0.99)
    assert rng.calls == 0, "no random draw needed once within eps"


def test_walk_single_jump_to_boundary():
    """From the centre of a disk, one jump of radius R always lands on the boundary."""
    walker = SphereWalker(Circle(radius=1.0), Linear(gradient=(1.0, 0.0)), eps=1e-6, max_iters=10)
    rng = FixedUniforms([0.0])  # angle 0
    assert walker.walk(vector(0.0, 0.0), rng) == pytest.approx(1.0)
    assert rng.calls == 1

    rng = FixedUniforms([0.25])  # angle pi / 2
    walker_y = SphereWalker(Circle(radius=1.0), Linear(gradient=(0.0, 2.0)), eps=1e-6, max_iters=10)
    assert walker_y.walk(vector(0.0, 0.0), rng) == pytest.approx(2.0)


def test_walk_raises_convergence_error():
    # Diagonal steps in a square only approach the corner geometrically
    walker = SphereWalker(Rect(size=(1.0, 1.0)), Constant(level=1.0), eps=1e-6, max_iters=3)
    rng = FixedUniforms([0.125])  # angle pi / 4
    start = vector(0.0, 0.0)
    with pytest.raises(ConvergenceError) as excinfo:
        walker.walk(start, rng)

    err = excinfo.value
    assert np.array_equal(err.start_pos, start), "error must carry the start position"
    assert err.max_iters == 3
    assert rng.calls == 3, "a failing walk uses its whole iteration budget"
    assert "exceeded 3 iterations" in str(err)


def test_convergence_error_pickles():
    import pickle

    err = ConvergenceError((0.25, -0.5), 100)
    clone = pickle.loads(pickle.dumps(err))
    assert np.array_equal(clone.start_pos, [0.25, -0.5])
    assert clone.max_iters == 100


def test_sample_counts_failures():
    walker = SphereWalker(Rect(size=(1.0, 1.0)), Constant(level=1.0), eps=1e-6, max_iters=3)
    total, converged, failures = walker.sample(vector(0.0, 0.0), 4, FixedUniforms([0.125]))
    assert total == 0.0
    assert converged == 0
    assert len(failures) == 4
    assert all(isinstance(f, ConvergenceError) for f in failures)


def test_constant_boundary_is_reproduced_exactly():
    walker = SphereWalker(Rect(size=(1.5, 1.0)), Constant(level=-0.3), eps=0.01, max_iters=10_000)
    rng = np.random.default_rng(0)
    for start in [(0.0, 0.0), (1.2, -0.7), (-1.4, 0.9)]:
        assert walker.walk(vector(*start), rng) == -0.3


def test_walk_ends_within_eps_of_boundary():
    """The recorded boundary value comes from a point within eps of the boundary."""

    class RecordingBoundary:
        def __init__(self):
            self.points = []

        def value(self, x):
            self.points.append(np.array(x))
            return 0.0

    recorder = RecordingBoundary()
    levelset = Rect(size=(1.5, 1.0))
    walker = SphereWalker(levelset, recorder, eps=0.02, max_iters=10_000)
    rng = np.random.default_rng(3)
    for _ in range(50):
        walker.walk(vector(0.3, -0.2), rng)

    assert len(recorder.points) == 50
    for p in recorder.points:
        assert abs(levelset.phi(p)) < 0.02
        assert levelset.phi(p) <= 1e-12, "sphere steps never leave the domain"


def test_walk_mean_matches_harmonic_extension_near_boundary():
    """
    On a disk of radius R, sin(5 theta) extends to (r/R)^5 sin(5 theta).
    Near the boundary the estimate should also be close to the boundary value.
    """
    radius = 1.5
    walker = SphereWalker(Circle(radius=radius), Sinusoid(frequency=5.0), eps=0.005, max_iters=10_000)
    theta = 0.3
    r = 1.47
    start = vector(r * math.cos(theta), r * math.sin(theta))

    rng = np.random.default_rng(1234)
    n = 2000
    mean = sum(walker.walk(start, rng) for _ in range(n)) / n

    exact = (r / radius) ** 5 * math.sin(5.0 * theta)
    assert mean == pytest.approx(exact, abs=0.06)
    assert mean == pytest.approx(math.sin(5.0 * theta), abs=0.15)


def test_estimator_variance_shrinks_with_samples():
    walker = SphereWalker(Circle(radius=1.0), Sinusoid(frequency=2.0), eps=0.01, max_iters=10_000)
    start = vector(0.2, 0.3)
    rng = np.random.default_rng(99)

    def estimate(n):
        return sum(walker.walk(start, rng) for _ in range(n)) / n

    small = np.array([estimate(10) for _ in range(30)])
    large = np.array([estimate(160) for _ in range(30)])
    assert large.var() < small.var() / 4.0, (
        f"variance should drop roughly 16x, got {small.var():.4g} -> {large.var():.4g}"
    )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
