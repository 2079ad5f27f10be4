"""Tests for the propagation models (FSPL, clutter, bulge, diffraction, Fresnel)."""

from __future__ import annotations

import math

import numpy as np
import pytest
from hypothesis import given
from hypothesis import strategies as st

from domain.coverage.propagation import (
    KNIFE_EDGE_THRESHOLD_V,
    clutter_loss_db,
    earth_bulge_m,
    fresnel_clearance,
    free_space_loss_db,
    knife_edge_loss_db,
    los_height_m,
    max_knife_edge_diffraction,
    wavelength_m,
)
from domain.coverage.value_objects import TerrainType
from shared.constants import STANDARD_K_FACTOR
from tests.conftest_utils import make_profile, spike_profile

FREQ = 145.5
K = STANDARD_K_FACTOR


# ===========================================================================
# Free-space and clutter loss
# ===========================================================================
def test_fspl_reference_value():
    assert free_space_loss_db(1000.0, 100.0) == pytest.approx(72.44)


def test_fspl_distance_floored_at_one_meter():
    assert free_space_loss_db(0.0, FREQ) == free_space_loss_db(1.0, FREQ)
    assert math.isfinite(free_space_loss_db(0.0, FREQ))


def test_fspl_doubling_distance_adds_6_db():
    delta = free_space_loss_db(20_000.0, FREQ) - free_space_loss_db(10_000.0, FREQ)
    assert delta == pytest.approx(20 * math.log10(2))


@given(
    st.floats(min_value=1.0, max_value=1e6),
    st.floats(min_value=1.0, max_value=1e6),
    st.floats(min_value=1.0, max_value=10_000.0),
)
def test_fspl_monotonic_in_distance(d1, d2, freq):
    lo, hi = sorted((d1, d2))
    assert free_space_loss_db(lo, freq) <= free_space_loss_db(hi, freq)


@pytest.mark.parametrize(
    "terrain, expected",
    [("open", 0.0), ("hilly", 10.0), ("urban", 20.0), ("forest", 25.0)],
)
def test_clutter_table(terrain, expected):
    assert clutter_loss_db(terrain) == expected
    assert clutter_loss_db(TerrainType(terrain)) == expected


def test_wavelength():
    assert wavelength_m(300.0) == pytest.approx(1.0)


# ===========================================================================
# Geometry helpers
# ===========================================================================
def test_earth_bulge_midpoint_of_10_km():
    assert earth_bulge_m(5000.0, 5000.0, K) == pytest.approx(1.4715, abs=1e-3)


def test_earth_bulge_zero_at_endpoints():
    assert earth_bulge_m(0.0, 10_000.0, K) == 0.0


def test_earth_bulge_shrinks_with_larger_k():
    assert earth_bulge_m(5000.0, 5000.0, 4.0) < earth_bulge_m(5000.0, 5000.0, 1.0)


def test_los_height_linear():
    assert los_height_m(100.0, 20.0, 2500.0, 10_000.0) == pytest.approx(80.0)


def test_geometry_helpers_accept_arrays():
    d1 = np.array([1000.0, 5000.0])
    d2 = np.array([9000.0, 5000.0])

    bulge = earth_bulge_m(d1, d2, K)
    los = los_height_m(10.0, 30.0, d1, 10_000.0)

    assert bulge[1] == pytest.approx(earth_bulge_m(5000.0, 5000.0, K))
    assert los.tolist() == pytest.approx([12.0, 20.0])


def test_profile_search_uses_scalar_geometry():
    profile = spike_profile(30.0)
    d1 = profile.samples[5].distance_m
    total = profile.total_distance_m

    result = max_knife_edge_diffraction(profile, FREQ, 10.0, 2.0, K)

    bulge = earth_bulge_m(d1, total - d1, K)
    assert result.worst_index == 5
    assert result.earth_bulge_m == pytest.approx(bulge)
    assert result.obstruction_height_m == pytest.approx(
        30.0 + bulge - los_height_m(10.0, 2.0, d1, total)
    )


# ===========================================================================
# Knife-edge loss
# ===========================================================================
def test_knife_edge_zero_at_and_below_threshold():
    assert knife_edge_loss_db(KNIFE_EDGE_THRESHOLD_V) == 0.0
    assert knife_edge_loss_db(-5.0) == 0.0


def test_knife_edge_positive_just_above_threshold():
    assert knife_edge_loss_db(-0.77) > 0.0


def test_knife_edge_grazing_is_about_6_db():
    assert knife_edge_loss_db(0.0) == pytest.approx(6.03, abs=0.01)


@given(
    st.floats(min_value=-0.77, max_value=50.0),
    st.floats(min_value=-0.77, max_value=50.0),
)
def test_knife_edge_monotonic(a, b):
    lo, hi = sorted((a, b))
    assert knife_edge_loss_db(lo) <= knife_edge_loss_db(hi) + 1e-9


# ===========================================================================
# Profile searches
# ===========================================================================
def test_clear_path_has_no_diffraction():
    profile = make_profile([0.0] * 21)

    result = max_knife_edge_diffraction(profile, FREQ, 60.0, 60.0, K)

    assert result.v <= KNIFE_EDGE_THRESHOLD_V
    assert result.loss_db == 0.0
    assert result.obstruction_height_m < 0


def test_worst_index_is_interior():
    # Endpoint heights would dominate if endpoints were searched
    profile = make_profile([500.0, 0.0, 0.0, 0.0, 500.0])

    diffraction = max_knife_edge_diffraction(profile, FREQ, 0.0, 0.0, K)
    fresnel = fresnel_clearance(profile, FREQ, 0.0, 0.0, K, 0.6)

    assert 1 <= diffraction.worst_index <= profile.last_index - 1
    assert 1 <= fresnel.worst_index <= profile.last_index - 1


def test_spike_sets_worst_obstruction():
    profile = spike_profile(100.0)

    diffraction = max_knife_edge_diffraction(profile, FREQ, 60.0, 60.0, K)
    fresnel = fresnel_clearance(profile, FREQ, 60.0, 60.0, K, 0.6)

    assert diffraction.worst_index == 5
    assert diffraction.v > 0
    assert diffraction.loss_db > 6.0
    assert diffraction.worst_distance_km == pytest.approx(profile.total_distance_m / 2000)
    assert fresnel.worst_index == 5
    assert fresnel.worst_clearance_m < 0
    assert not fresnel.passes


def test_clear_path_passes_fresnel():
    profile = make_profile([0.0] * 21)

    fresnel = fresnel_clearance(profile, FREQ, 60.0, 60.0, K, 0.6)

    assert fresnel.passes
    assert fresnel.max_bulge_m == pytest.approx(0.72, abs=0.01)


def test_fresnel_factor_zero_reduces_to_line_of_sight():
    profile = spike_profile(30.0)

    strict = fresnel_clearance(profile, FREQ, 60.0, 60.0, K, 1.0)
    los_only = fresnel_clearance(profile, FREQ, 60.0, 60.0, K, 0.0)

    assert los_only.worst_clearance_m > strict.worst_clearance_m
    assert los_only.passes


def test_zero_length_profile_is_finite():
    from domain.terrain.services import terrain_profile
    from tests.conftest_utils import TX

    profile = terrain_profile(TX, TX, [0.0, 0.0, 0.0])

    diffraction = max_knife_edge_diffraction(profile, FREQ, 10.0, 2.0, K)
    fresnel = fresnel_clearance(profile, FREQ, 10.0, 2.0, K, 0.6)

    assert math.isfinite(diffraction.loss_db)
    assert math.isfinite(fresnel.worst_clearance_m)
