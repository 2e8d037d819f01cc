import json
import os

from config import DashboardConfig, load_config, save_config


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(str(tmp_path / "nope.json"))
    assert config == DashboardConfig()
    assert config.output_size == (560, 320)
    assert config.drought_domain == (-3.0, 0.0, 3.0)


def test_corrupt_file_gives_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_config(str(path)) == DashboardConfig()


def test_round_trip(tmp_path):
    path = str(tmp_path / "config.json")
    config = DashboardConfig(data_dir="/srv/dews", timescales=(1, 12), default_period="2024_06")
    save_config(config, path)
    assert load_config(path) == config


def test_unknown_keys_ignored_and_dicts_merged(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"colormaps": {"rainfall": "Blues"}, "theme": "dark",
                                "output_size": [800, 400]}), encoding="utf-8")
    config = load_config(str(path))
    assert config.colormaps["rainfall"] == "Blues"
    assert config.colormaps["drought"] == "RdBu"
    assert config.output_size == (800, 400)
    assert not hasattr(config, "theme")


def test_locations():
    config = DashboardConfig(data_dir="data")
    assert config.raster_location("drought", "2024_06") == os.path.join("data", "drought_2024_06.tif")
    assert config.raster_location("rainfall") == os.path.join("data", "rainfall_latest.tif")
    assert config.timeseries_location("rainfall", "islands", 6) == os.path.join("data", "rainfall_islands_6m.csv")
    assert config.boundary_location("moku") == os.path.join("data", "hawaii_moku.geojson")


def test_http_data_dir():
    config = DashboardConfig(data_dir="https://example.org/dews/")
    assert config.boundary_location("islands") == "https://example.org/dews/hawaii_islands_simplified.geojson"
