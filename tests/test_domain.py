"""
Unit tests for the signed-distance domain descriptions.
"""

import math

import numpy as np
import pytest

from wos_sim import Circle, ConfigurationError, Levelset, Rect, make_levelset
from wos_sim.domain import phi_kernel
from wos_sim.vector import vector


def _segment_distance(p, a, b):
    ab = b - a
    t = np.clip(np.dot(p - a, ab) / np.dot(ab, ab), 0.0, 1.0)
    return float(np.linalg.norm(p - (a + t * ab)))


def _rect_boundary_distance(p, hx, hy):
    corners = [
        np.array([-hx, -hy]),
        np.array([hx, -hy]),
        np.array([hx, hy]),
        np.array([-hx, hy]),
    ]
    return min(_segment_distance(p, corners[k], corners[(k + 1) % 4]) for k in range(4))


def test_circle_reference_distances():
    circle = Circle(radius=1.5)
    assert circle.phi(vector(0.0, 0.0)) == pytest.approx(-1.5)
    assert circle.phi(vector(3.0, 0.0)) == pytest.approx(1.5)
    assert circle.phi(vector(0.0, -1.5)) == pytest.approx(0.0)


def test_rect_reference_distances():
    rect = Rect(size=(1.5, 1.0))
    # Nearest edge is along the shorter axis
    assert rect.phi(vector(0.0, 0.0)) == pytest.approx(-1.0)
    assert rect.phi(vector(3.0, 0.0)) == pytest.approx(1.5)
    # Rounded exterior near a corner
    assert rect.phi(vector(2.5, 2.0)) == pytest.approx(math.sqrt(2.0))
    assert rect.phi(vector(1.4, 0.0)) == pytest.approx(-0.1)
    assert rect.phi(vector(1.5, 0.3)) == pytest.approx(0.0)


def test_rect_is_exact_signed_distance():
    """|phi| must equal the true distance to the boundary, inside and outside."""
    rng = np.random.default_rng(7)
    rect = Rect(size=(1.5, 1.0))
    for p in rng.uniform(-3.0, 3.0, size=(300, 2)):
        expected = _rect_boundary_distance(p, 1.5, 1.0)
        inside = abs(p[0]) < 1.5 and abs(p[1]) < 1.0
        phi = rect.phi(p)
        assert abs(phi) == pytest.approx(expected, abs=1e-9), f"wrong distance at {p}"
        assert (phi < 0) == inside, f"wrong sign at {p}"


def test_circle_is_exact_signed_distance():
    rng = np.random.default_rng(11)
    circle = Circle(radius=1.5)
    for p in rng.uniform(-3.0, 3.0, size=(100, 2)):
        r = np.hypot(p[0], p[1])
        assert circle.phi(p) == pytest.approx(r - 1.5)


def test_compiled_phi_matches_python_phi():
    rng = np.random.default_rng(7)
    points = rng.uniform(-3.0, 3.0, size=(200, 2))
    for levelset in (Circle(1.25), Rect(size=(1.5, 0.75))):
        kind, params = levelset.kernel_args()
        for p in points:
            assert phi_kernel(kind, params, p[0], p[1]) == pytest.approx(
                levelset.phi(vector(*p)), abs=1e-12
            ), f"{levelset} at {p}"


def test_levelsets_satisfy_protocol():
    assert isinstance(Circle(), Levelset)
    assert isinstance(Rect(), Levelset)


def test_make_levelset():
    circle = make_levelset({"kind": "circle", "radius": 2.0})
    assert isinstance(circle, Circle)
    assert circle.radius == 2.0

    rect = make_levelset({"kind": "rect", "size": [0.5, 0.25]})
    assert isinstance(rect, Rect)
    assert np.array_equal(rect.size, [0.5, 0.25])


@pytest.mark.parametrize(
    "config",
    [
        {"kind": "triangle"},
        {"radius": 1.0},
        {"kind": "circle", "radius": -1.0},
        {"kind": "circle", "radius": 0.0},
        {"kind": "circle", "diameter": 2.0},
        {"kind": "rect", "size": [1.0, 0.0]},
    ],
)
def test_make_levelset_rejects_bad_configs(config):
    with pytest.raises(ConfigurationError):
        make_levelset(config)
