"""Tests for GeoTiffTerrainAdapter.

rasterio.open is monkeypatched with an in-memory dataset, so no fixture
files are needed; reprojection is faked by patching the adapter's imported
calculate_default_transform/reproject.
"""

import math
from contextlib import nullcontext
from types import SimpleNamespace

import numpy as np
import numpy.ma as ma
import pytest
import rasterio
from affine import Affine

from domain.terrain.errors import (
    AllNoDataError,
    InsufficientMemoryError,
    InvalidBoundsError,
    InvalidGeotransformError,
    InvalidRasterError,
    MissingCRSError,
)
from infrastructure.terrain.geotiff_adapter import GeoTiffTerrainAdapter

WGS84_TRANSFORM = Affine.translation(-1.0, 52.0) * Affine.scale(0.01, -0.01)


class FakeCRS:
    def __init__(self, code: str):
        self._code = code

    def to_string(self) -> str:
        return self._code

    def __str__(self) -> str:
        return self._code


class FakeDataset:
    """Single-band dataset answering what the adapter reads."""

    def __init__(self, data, *, crs="EPSG:4326", transform=WGS84_TRANSFORM, count=1, nodata=None):
        self.data = data
        self.height, self.width = data.shape
        self.count = count
        self.crs = FakeCRS(crs) if crs is not None else None
        self.transform = transform
        self.nodata = nodata
        self.bounds = SimpleNamespace(
            left=transform.c,
            bottom=transform.f + transform.e * self.height,
            right=transform.c + transform.a * self.width,
            top=transform.f,
        )

    def read(self, band, *, masked, out_dtype):
        return self.data

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def dem_file(tmp_path):
    p = tmp_path / "dem.tif"
    p.write_bytes(b"x")
    return p


@pytest.fixture
def serve(monkeypatch):
    """Make rasterio.open return the given dataset."""

    def _serve(ds):
        monkeypatch.setattr("rasterio.open", lambda path: ds)
        monkeypatch.setattr("rasterio.Env", lambda *a, **k: nullcontext())
        return ds

    return _serve


@pytest.fixture
def fake_reproject(monkeypatch):
    """Replace the warp calls; returns a setter for the output grid."""
    state = {
        "transform": Affine.translation(-1.0, 52.0) * Affine.scale(0.001, -0.001),
        "size": 20,
        "fill": 100.0,
    }

    def fake_cdt(src_crs, dst_crs, w, h, *bounds):
        return state["transform"], state["size"], state["size"]

    def fake_warp(source, destination, **kwargs):
        destination[:] = state["fill"]

    monkeypatch.setattr("rasterio.band", lambda ds, i: (ds, i))
    monkeypatch.setattr(
        "infrastructure.terrain.geotiff_adapter.calculate_default_transform", fake_cdt
    )
    monkeypatch.setattr("infrastructure.terrain.geotiff_adapter.reproject", fake_warp)
    return state


def _masked(data, mask=None):
    data = np.asarray(data, dtype=np.float32)
    return ma.MaskedArray(data, mask=np.zeros_like(data, dtype=bool) if mask is None else mask)


# ===========================================================================
# Pre-flight checks
# ===========================================================================
def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        GeoTiffTerrainAdapter().load_dem(tmp_path / "missing.tif")


def test_empty_file_rejected(tmp_path):
    p = tmp_path / "empty.tif"
    p.write_bytes(b"")

    with pytest.raises(InvalidRasterError, match="Empty"):
        GeoTiffTerrainAdapter().load_dem(p)


def test_disallowed_extension_rejected(tmp_path):
    p = tmp_path / "image.png"
    p.write_bytes(b"x")

    with pytest.raises(InvalidRasterError, match="extension"):
        GeoTiffTerrainAdapter().load_dem(p)


def test_symlink_rejected(tmp_path, dem_file):
    link = tmp_path / "link.tif"
    link.symlink_to(dem_file)

    with pytest.raises(InvalidRasterError, match="Symlink"):
        GeoTiffTerrainAdapter().load_dem(link)


def test_file_larger_than_budget_rejected(tmp_path):
    p = tmp_path / "big.tif"
    p.write_bytes(b"x" * 100)

    with pytest.raises(InsufficientMemoryError):
        GeoTiffTerrainAdapter(max_bytes=10).load_dem(p)


# ===========================================================================
# Dataset validation
# ===========================================================================
def test_wgs84_dataset_loads(serve, dem_file):
    serve(FakeDataset(_masked(np.full((50, 100), 12.5))))

    grid = GeoTiffTerrainAdapter().load_dem(dem_file)

    assert grid.crs == "EPSG:4326"
    assert grid.source_crs == "EPSG:4326"
    assert grid.data.shape == (50, 100)
    assert grid.data.dtype == np.float32
    assert math.isclose(grid.resolution[0], 0.01)
    assert grid.bounds.min_x == pytest.approx(-1.0)
    assert grid.bounds.max_y == pytest.approx(52.0)
    assert grid.bounds.min_y == pytest.approx(51.5)


def test_string_path_accepted(serve, dem_file):
    serve(FakeDataset(_masked(np.ones((3, 3)))))

    grid = GeoTiffTerrainAdapter().load_dem(str(dem_file))

    assert grid.data.shape == (3, 3)


def test_multiband_rejected(serve, dem_file):
    serve(FakeDataset(_masked(np.ones((3, 3))), count=3))

    with pytest.raises(InvalidRasterError, match="Expected 1 band"):
        GeoTiffTerrainAdapter().load_dem(dem_file)


def test_missing_crs_rejected(serve, dem_file):
    serve(FakeDataset(_masked(np.ones((3, 3))), crs=None))

    with pytest.raises(MissingCRSError):
        GeoTiffTerrainAdapter().load_dem(dem_file)


def test_zero_scale_transform_rejected(serve, dem_file):
    serve(FakeDataset(_masked(np.ones((3, 3))), transform=Affine(0.0, 0.0, 0.0, 0.0, -0.01, 1.0)))

    with pytest.raises(InvalidGeotransformError):
        GeoTiffTerrainAdapter().load_dem(dem_file)


def test_out_of_range_bounds_rejected(serve, dem_file):
    far = Affine.translation(1e6, 1e6) * Affine.scale(1.0, -1.0)
    serve(FakeDataset(_masked(np.ones((10, 10))), transform=far))

    with pytest.raises(InvalidBoundsError):
        GeoTiffTerrainAdapter().load_dem(dem_file)


def test_corrupted_file_rejected(monkeypatch, dem_file):
    def broken_open(path):
        raise rasterio.errors.RasterioIOError("not a TIFF")

    monkeypatch.setattr("rasterio.open", broken_open)
    monkeypatch.setattr("rasterio.Env", lambda *a, **k: nullcontext())

    with pytest.raises(InvalidRasterError, match="Corrupted"):
        GeoTiffTerrainAdapter().load_dem(dem_file)


def test_grid_budget_exceeded(serve, dem_file):
    serve(FakeDataset(_masked(np.ones((100, 100)))))

    with pytest.raises(InsufficientMemoryError, match="budget"):
        GeoTiffTerrainAdapter(max_bytes=1_000).load_dem(dem_file)


# ===========================================================================
# NoData handling
# ===========================================================================
def test_masked_pixels_become_nan(serve, dem_file):
    mask = np.zeros((5, 5), dtype=bool)
    mask[0, 0] = True
    serve(FakeDataset(_masked(np.arange(25).reshape(5, 5), mask)))

    grid = GeoTiffTerrainAdapter().load_dem(dem_file)

    assert np.isnan(grid.data[0, 0])
    assert grid.data[2, 2] == 12.0


def test_nodata_value_becomes_nan_without_mask(serve, dem_file):
    data = np.array([[-9999.0, 5.0], [6.0, 7.0]], dtype=np.float32)
    serve(FakeDataset(data, nodata=-9999.0))

    grid = GeoTiffTerrainAdapter().load_dem(dem_file)

    assert np.isnan(grid.data[0, 0])
    assert grid.data[1, 1] == 7.0


def test_all_nodata_rejected(serve, dem_file):
    serve(FakeDataset(_masked(np.zeros((4, 4)), np.ones((4, 4), dtype=bool))))

    with pytest.raises(AllNoDataError):
        GeoTiffTerrainAdapter().load_dem(dem_file)


def test_high_nodata_logged(serve, dem_file, caplog):
    mask = np.zeros((10, 10), dtype=bool)
    mask[:9, :] = True
    serve(FakeDataset(_masked(np.zeros((10, 10)), mask)))

    caplog.set_level("WARNING")
    GeoTiffTerrainAdapter().load_dem(dem_file)

    assert "NoData pixels detected" in caplog.text


def test_extreme_elevations_kept(serve, dem_file):
    serve(FakeDataset(_masked([[-430.0, 0.0, 8849.0]])))

    grid = GeoTiffTerrainAdapter().load_dem(dem_file)

    assert np.nanmin(grid.data) == -430.0
    assert np.nanmax(grid.data) == 8849.0


# ===========================================================================
# Reprojection
# ===========================================================================
def test_projected_dataset_reprojected(serve, dem_file, fake_reproject, caplog):
    utm = Affine.translation(500000.0, 5650000.0) * Affine.scale(30.0, -30.0)
    serve(FakeDataset(_masked(np.ones((10, 10))), crs="EPSG:32630", transform=utm, nodata=-9999))

    caplog.set_level("INFO")
    grid = GeoTiffTerrainAdapter().load_dem(dem_file)

    assert grid.crs == "EPSG:4326"
    assert grid.source_crs == "EPSG:32630"
    assert grid.data.shape == (20, 20)
    assert (grid.data == 100.0).all()
    assert "Reprojected from EPSG:32630 to EPSG:4326" in caplog.text


def test_reprojected_all_nan_rejected(serve, dem_file, fake_reproject):
    fake_reproject["fill"] = np.nan
    serve(FakeDataset(_masked(np.ones((10, 10))), crs="EPSG:32630", transform=Affine.identity()))

    with pytest.raises(AllNoDataError):
        GeoTiffTerrainAdapter().load_dem(dem_file)


def test_reprojected_bounds_validated(serve, dem_file, fake_reproject):
    fake_reproject["transform"] = Affine.translation(200.0, 100.0)
    fake_reproject["size"] = 5
    serve(FakeDataset(_masked(np.ones((10, 10))), crs="EPSG:32630", transform=Affine.identity()))

    with pytest.raises(InvalidBoundsError):
        GeoTiffTerrainAdapter().load_dem(dem_file)
