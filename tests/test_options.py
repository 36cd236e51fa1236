import pytest

from meshdecimate.exceptions import ConfigurationError, DecimationError
from meshdecimate.mesh_decimator import MeshDecimator
from meshdecimate.options import DecimationOptions
from meshdecimate.qem import Placement


def test_defaults():
    options = DecimationOptions.from_dict({"size": 0.5})
    assert options.size == 0.5
    assert options.placement is Placement.EDGE
    assert options.maxtriangles == 0
    assert options.boundary_weight == 100.0
    assert options.swap is False
    assert options.swap_threshold == 0.95
    assert options.tolerance == pytest.approx(0.25)
    assert not options.count_mode


def test_count_mode():
    options = DecimationOptions.from_dict(maxtriangles=100)
    assert options.size is None
    assert options.count_mode
    assert options.tolerance == 1.0


def test_keywords_override_mapping():
    options = DecimationOptions.from_dict({"size": 1.0, "placement": "vertex"},
                                          placement="OPTIMAL")
    assert options.placement is Placement.OPTIMAL


def test_integral_values_are_accepted():
    options = DecimationOptions.from_dict(size=2, boundary_weight=10)
    assert options.size == 2.0
    assert isinstance(options.size, float)
    assert options.boundary_weight == 10.0


@pytest.mark.parametrize("options", [
    {},
    {"size": None},
    {"maxtriangles": 0},
    {"size": 1.0, "colour": "red"},
    {"size": 0.0},
    {"size": -1.0},
    {"size": "1.0"},
    {"size": True},
    {"maxtriangles": -5},
    {"maxtriangles": 2.5},
    {"maxtriangles": True},
    {"size": 1.0, "placement": "centroid"},
    {"size": 1.0, "boundary_weight": 0.0},
    {"size": 1.0, "swap": "yes"},
    {"size": 1.0, "swap_threshold": 1.5},
    {"size": 1.0, "swap_threshold": 0.0},
])
def test_invalid_options(options):
    with pytest.raises(ConfigurationError):
        DecimationOptions.from_dict(options)


def test_configuration_error_hierarchy():
    with pytest.raises(ValueError):
        DecimationOptions.from_dict({})
    with pytest.raises(DecimationError):
        MeshDecimator(placement="nowhere", size=1.0)


def test_decimator_builds_metrics_from_options():
    decimator = MeshDecimator({"size": 0.5, "placement": "middle"}, boundary_weight=20.0)
    assert decimator.qem.placement is Placement.MIDDLE
    assert decimator.qem.boundary_weight == 20.0
    assert decimator.qem.tolerance == pytest.approx(0.25)
