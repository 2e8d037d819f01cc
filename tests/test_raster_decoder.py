import math

import numpy as np
import pytest
import rasterio
from rasterio.control import GroundControlPoint
from rasterio.crs import CRS

from conftest import STATE_BBOX, write_geotiff
from errors import RasterDecodeError
from raster_module import bbox_from_origin, decode, nodata_mask, output_shape


def test_decode_reads_size_bbox_and_nodata(tmp_path):
    data = np.arange(12, dtype=np.float32).reshape(3, 4)
    path = write_geotiff(tmp_path / "grid.tif", data, nodata=-9999.0)

    raster = decode(path)
    assert (raster.width, raster.height) == (4, 3)
    assert raster.source_size == (4, 3)
    assert raster.nodata == -9999.0
    assert all(math.isclose(a, b, abs_tol=1e-9) for a, b in zip(raster.bbox, STATE_BBOX))
    # Row 0 is the northern row, values row-major
    assert raster.values.tolist() == list(range(12))
    assert raster.grid().shape == (3, 4)


def test_decoded_values_are_read_only(tmp_path):
    path = write_geotiff(tmp_path / "grid.tif", np.ones((2, 2)))
    raster = decode(path)
    with pytest.raises(ValueError):
        raster.values[0] = 5.0


def test_decode_downsamples_with_nearest_neighbour(tmp_path):
    # Alternating columns of data and no-data must stay crisp after downsampling
    data = np.tile(np.array([1.0, -9999.0], dtype=np.float32), (4, 8))
    path = write_geotiff(tmp_path / "grid.tif", data, nodata=-9999.0)

    raster = decode(path, max_output_width=8)
    assert (raster.width, raster.height) == (8, 2)
    assert set(np.unique(raster.values)) <= {1.0, -9999.0}
    assert raster.bbox == pytest.approx(STATE_BBOX)


def test_decode_accepts_bytes(tmp_path):
    path = write_geotiff(tmp_path / "grid.tif", np.full((2, 3), 4.0))
    with open(path, "rb") as f:
        raster = decode(f.read())
    assert (raster.width, raster.height) == (3, 2)


def test_decode_projected_grid_reports_lonlat_bbox(tmp_path):
    # Web Mercator extent roughly covering the main islands
    bbox_3857 = (-17811118.0, 2037548.0, -17143201.0, 2632018.0)
    path = write_geotiff(tmp_path / "merc.tif", np.ones((4, 4)), bbox=bbox_3857, crs="EPSG:3857")
    raster = decode(path)
    minx, miny, maxx, maxy = raster.bbox
    assert -161 < minx < maxx < -153
    assert 17 < miny < maxy < 24


def test_decode_missing_file(tmp_path):
    with pytest.raises(RasterDecodeError):
        decode(str(tmp_path / "missing.tif"))


def test_decode_garbage_bytes():
    with pytest.raises(RasterDecodeError):
        decode(b"not a raster at all")


def write_unreferenced(path, data, gcps=None):
    """GeoTIFF with no geotransform, optionally carrying ground control points."""
    data = np.asarray(data, dtype=np.float32)
    height, width = data.shape
    with rasterio.open(path, "w", driver="GTiff", width=width, height=height, count=1,
                       dtype="float32") as dst:
        if gcps:
            dst.gcps = (gcps, CRS.from_epsg(4326))
        dst.write(data, 1)
    return str(path)


def test_decode_derives_bbox_from_ground_control_points(tmp_path):
    width, height = 60, 50
    minx, miny, maxx, maxy = STATE_BBOX
    gcps = [GroundControlPoint(row=0, col=0, x=minx, y=maxy),
            GroundControlPoint(row=0, col=width, x=maxx, y=maxy),
            GroundControlPoint(row=height, col=0, x=minx, y=miny),
            GroundControlPoint(row=height, col=width, x=maxx, y=miny)]
    path = write_unreferenced(tmp_path / "gcps.tif", np.zeros((height, width)), gcps=gcps)

    raster = decode(path)
    res = ((maxx - minx) / width, -(maxy - miny) / height)
    assert raster.bbox == pytest.approx(bbox_from_origin((minx, maxy), res, width, height), abs=1e-6)
    assert raster.bbox == pytest.approx(STATE_BBOX, abs=1e-6)


def test_decode_rejects_grid_without_georeferencing(tmp_path):
    path = write_unreferenced(tmp_path / "plain.tif", np.ones((3, 4)))
    with pytest.raises(RasterDecodeError, match="no georeferencing"):
        decode(path)


def test_output_shape():
    assert output_shape(400, 200, 560) == (400, 200)
    assert output_shape(1120, 640, 560) == (560, 320)
    assert output_shape(1000, 3, 100) == (100, 1)
    assert output_shape(1000, 500, None) == (1000, 500)


def test_nodata_mask_without_sentinel():
    values = np.array([1.0, np.nan, np.inf, -np.inf, 1e21, -1e21, 1e20, -5.0])
    assert nodata_mask(values).tolist() == [False, True, True, True, True, True, False, False]


def test_nodata_mask_with_sentinel():
    values = np.array([-9999.0, 0.0, np.nan])
    assert nodata_mask(values, nodata=-9999.0).tolist() == [True, False, True]
