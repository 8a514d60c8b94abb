"""
Tests for the Dirichlet boundary value providers.
"""

import math

import numpy as np
import pytest

from wos_sim import (
    ConfigurationError,
    Constant,
    DirichletBoundary,
    Linear,
    Sinusoid,
    make_boundary,
)
from wos_sim.boundary_conditions import value_kernel
from wos_sim.vector import vector


def test_sinusoid_is_angular():
    s = Sinusoid(frequency=5.0)
    assert s.value(vector(1.0, 0.0)) == pytest.approx(0.0)

    theta = math.pi / 10.0  # 5 * theta = pi / 2
    for r in (0.1, 1.0, 7.5):
        p = vector(r * math.cos(theta), r * math.sin(theta))
        assert s.value(p) == pytest.approx(1.0), "value must not depend on the radius"


def test_sinusoid_frequency():
    p = vector(0.0, 2.0)  # angle pi / 2
    assert Sinusoid(frequency=1.0).value(p) == pytest.approx(1.0)
    assert Sinusoid(frequency=2.0).value(p) == pytest.approx(0.0, abs=1e-12)
    assert Sinusoid(frequency=3.0).value(p) == pytest.approx(-1.0)


def test_constant_and_linear():
    assert Constant(level=0.7).value(vector(12.0, -3.0)) == 0.7

    lin = Linear(gradient=(2.0, -1.0), offset=0.5)
    assert lin.value(vector(1.0, 1.0)) == pytest.approx(1.5)
    grid = np.array([[[0.0, 0.0], [1.0, 1.0]], [[2.0, 0.0], [0.0, 2.0]]])
    assert np.allclose(lin.exact(grid), [[0.5, 1.5], [4.5, -1.5]])


def test_compiled_value_matches_python_value():
    rng = np.random.default_rng(3)
    points = rng.uniform(-2.0, 2.0, size=(100, 2))
    for boundary in (Sinusoid(3.0), Constant(-0.4), Linear(gradient=(0.5, -2.0), offset=1.5)):
        kind, params = boundary.kernel_args()
        for p in points:
            assert value_kernel(kind, params, p[0], p[1]) == pytest.approx(
                boundary.value(vector(*p)), abs=1e-12
            ), f"{boundary} at {p}"


def test_boundaries_satisfy_protocol():
    for b in (Sinusoid(), Constant(), Linear()):
        assert isinstance(b, DirichletBoundary)


def test_make_boundary():
    s = make_boundary({"kind": "sinusoid", "frequency": 3})
    assert isinstance(s, Sinusoid) and s.frequency == 3

    c = make_boundary({"kind": "constant", "value": 2.5})
    assert isinstance(c, Constant) and c.level == 2.5

    lin = make_boundary({"kind": "linear", "gradient": [0.0, 1.0], "offset": 1.0})
    assert lin.value(vector(5.0, 2.0)) == pytest.approx(3.0)


@pytest.mark.parametrize(
    "config",
    [
        {"kind": "neumann"},
        {},
        {"kind": "sinusoid", "amplitude": 2.0},
    ],
)
def test_make_boundary_rejects_bad_configs(config):
    with pytest.raises(ConfigurationError):
        make_boundary(config)
