"""GeoTIFF adapter for TerrainRepository.

Loads a DEM raster with rasterio, normalizes it to EPSG:4326 and returns a
TerrainGrid that backs the offline GridElevationProvider.

Lifecycle:
1) Pre-flight checks on the path (existence, extension, symlink, size)
2) Open dataset inside rasterio.Env so GDAL handles are released on exit
3) Validate band count, CRS and affine transform
4) Read directly (WGS84 source) or reproject bilinearly to EPSG:4326
5) Convert nodata to NaN as float32 and build the TerrainGrid
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any

import numpy as np
import rasterio
from affine import Affine
from numpy.typing import NDArray
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.transform import array_bounds
from rasterio.warp import calculate_default_transform, reproject

from domain.terrain.errors import (
    AllNoDataError,
    InsufficientMemoryError,
    InvalidBoundsError,
    InvalidGeotransformError,
    InvalidRasterError,
    MissingCRSError,
)
from domain.terrain.value_objects import BoundingBox, TerrainGrid

logger = logging.getLogger(__name__)

_TARGET_CRS = CRS.from_epsg(4326)
_ALLOWED_SUFFIXES = (".tif", ".tiff")
_HIGH_NODATA_PCT = 80.0


def _is_wgs84(crs: Any) -> bool:
    """True if crs is EPSG:4326 or an equivalent spelling."""
    if crs is None:
        return False
    try:
        if crs == _TARGET_CRS:
            return True
    except (TypeError, AttributeError):
        pass
    return str(crs).upper() in ("EPSG:4326", "OGC:CRS84")


def _check_transform(transform: Any) -> Affine:
    if not isinstance(transform, Affine):
        raise InvalidGeotransformError("Missing affine transform")
    coefficients = (transform.a, transform.b, transform.c, transform.d, transform.e, transform.f)
    if any(math.isnan(v) or math.isinf(v) for v in coefficients):
        raise InvalidGeotransformError("Invalid (NaN/Inf) transform values")
    if transform.a == 0 or transform.e == 0:
        raise InvalidGeotransformError("Invalid transform scale (zero)")
    return transform


class GeoTiffTerrainAdapter:
    """Infrastructure adapter for loading DEMs from GeoTIFF files.

    Parameters
    ----------
    max_bytes: int | None
        Optional memory budget for the resulting float32 grid (height*width*4).
        Exceeding it raises InsufficientMemoryError before allocation.
    """

    def __init__(self, max_bytes: int | None = None) -> None:
        self.max_bytes = max_bytes

    def _check_budget(self, width: int, height: int) -> None:
        if self.max_bytes is None:
            return
        est_bytes = int(width) * int(height) * 4
        if est_bytes > self.max_bytes:
            raise InsufficientMemoryError(
                f"Estimated grid size {est_bytes}B exceeds budget {self.max_bytes}B"
            )

    def _preflight(self, path: Path) -> None:
        if not path.exists():
            raise FileNotFoundError(str(path))
        if path.suffix.lower() not in _ALLOWED_SUFFIXES:
            raise InvalidRasterError(f"Unsupported file extension: {path.suffix}")
        try:
            if path.is_symlink():
                raise InvalidRasterError("Symlinks are not permitted")
            size = path.stat().st_size
        except OSError as e:
            # Filename only; absolute paths stay out of logs
            logger.error(
                "Failed to stat %s (errno=%s, strerror=%s)",
                path.name,
                getattr(e, "errno", "unknown"),
                getattr(e, "strerror", "unknown"),
            )
            raise
        if size == 0:
            raise InvalidRasterError("Empty file")
        if self.max_bytes is not None and size > self.max_bytes * 2:
            raise InsufficientMemoryError(
                f"File size {size}B exceeds 2x memory budget {self.max_bytes}B"
            )

    def _read_native(self, src: Any, transform: Affine) -> tuple[NDArray[np.float32], Affine]:
        self._check_budget(src.width, src.height)
        data = src.read(1, masked=True, out_dtype="float32")
        if hasattr(data, "mask") and np.any(data.mask):
            data = np.where(data.mask, np.float32(np.nan), data.data)
        elif src.nodata is not None:
            # GeoTIFF stores nodata exactly; equality is intended
            data = np.where(data == src.nodata, np.float32(np.nan), data)
        return np.asarray(data, dtype=np.float32), transform

    def _read_reprojected(
        self, src: Any, transform: Affine
    ) -> tuple[NDArray[np.float32], Affine]:
        sb = src.bounds
        try:
            bounds_tuple = (sb.left, sb.bottom, sb.right, sb.top)
        except (AttributeError, TypeError):
            bounds_tuple = tuple(sb)

        dst_transform, dst_width, dst_height = calculate_default_transform(
            src.crs, _TARGET_CRS, src.width, src.height, *bounds_tuple
        )
        self._check_budget(dst_width, dst_height)

        dst = np.full((dst_height, dst_width), np.nan, dtype=np.float32)
        reproject(
            source=rasterio.band(src, 1),
            destination=dst,
            src_transform=transform,
            src_crs=src.crs,
            dst_transform=dst_transform,
            dst_crs=_TARGET_CRS,
            resampling=Resampling.bilinear,
            src_nodata=src.nodata,
            dst_nodata=np.nan,
        )
        return dst, dst_transform

    def load_dem(self, file_path: Path | str) -> TerrainGrid:
        """Load DEM from GeoTIFF and return a normalized TerrainGrid.

        Raises:
            FileNotFoundError: path does not exist
            InvalidRasterError: wrong format, multi-band, symlink, corrupted
            MissingCRSError / InvalidGeotransformError: unusable georeferencing
            AllNoDataError: no valid pixel
            InsufficientMemoryError: grid exceeds max_bytes
        """
        path = Path(file_path)
        self._preflight(path)

        try:
            with rasterio.Env():
                with rasterio.open(path) as src:
                    if src.count == 0:
                        raise InvalidRasterError("Empty or bandless file")
                    if src.count != 1:
                        raise InvalidRasterError(f"Expected 1 band, got {src.count}")
                    if src.crs is None:
                        raise MissingCRSError("Raster has no CRS defined")

                    source_crs = src.crs.to_string()
                    transform = _check_transform(src.transform)

                    if _is_wgs84(src.crs):
                        data, grid_transform = self._read_native(src, transform)
                    else:
                        data, grid_transform = self._read_reprojected(src, transform)
                        logger.info(
                            "DEM %s: Reprojected from %s to EPSG:4326", path.name, source_crs
                        )
        except PermissionError as e:
            raise PermissionError(path.name) from e
        except (rasterio.errors.RasterioIOError, rasterio.errors.RasterioError) as e:
            raise InvalidRasterError(f"Corrupted or invalid raster: {e}") from e
        except MemoryError as e:
            raise InsufficientMemoryError("Insufficient memory to load raster") from e

        return self._to_grid(path, data, grid_transform, source_crs)

    def _to_grid(
        self, path: Path, data: NDArray[np.float32], transform: Affine, source_crs: str
    ) -> TerrainGrid:
        if not np.any(~np.isnan(data)):
            raise AllNoDataError("Raster contains 100% NoData pixels - unusable")

        height, width = data.shape
        minx, miny, maxx, maxy = array_bounds(height, width, transform)
        try:
            bounds = BoundingBox(min_x=minx, min_y=miny, max_x=maxx, max_y=maxy)
        except ValueError as e:
            raise InvalidBoundsError(str(e)) from e

        nodata_pct = float(np.isnan(data).mean() * 100.0)
        if nodata_pct > _HIGH_NODATA_PCT:
            logger.warning("DEM %s: %.1f%% NoData pixels detected", path.name, nodata_pct)
        logger.debug("DEM %s: Loaded %dx%d grid", path.name, width, height)

        return TerrainGrid(
            data=data,
            bounds=bounds,
            crs="EPSG:4326",
            resolution=(abs(transform.a), abs(transform.e)),
            source_crs=source_crs,
        )
