import pytest

import map_widget
from dashboard import ClimateDashboard
from map_widget import MapWidget


@pytest.fixture
def board(qapp, config, lookups, catalog):
    board = ClimateDashboard(config, lookups=lookups, catalog=catalog, run_async=False)
    yield board
    board.close()


@pytest.fixture
def conversions(monkeypatch):
    calls = []
    convert = map_widget.qimage_from_pil

    def counting(image):
        calls.append(image)
        return convert(image)

    monkeypatch.setattr(map_widget, "qimage_from_pil", counting)
    return calls


def test_image_converted_once_per_layer(board, conversions):
    widget = MapWidget(board.config.output_size)
    board.mapChanged.connect(widget.set_map_view)
    board.rasterChanged.connect(widget.set_placement)
    board.start()
    assert len(conversions) == 1
    image = widget.raster_image

    board.select_island("Maui")
    board.select_county("Hawaiʻi")
    board.reset()
    assert len(conversions) == 1
    assert widget.raster_image is image
    assert widget.placement is board.placement

    board.set_dataset("drought")
    assert len(conversions) == 2
    assert widget.raster_image_layer is board.layer


def test_no_placement_clears_image(board, conversions):
    widget = MapWidget(board.config.output_size)
    board.rasterChanged.connect(widget.set_placement)
    board.start()
    assert not widget.raster_image.isNull()

    board.set_dataset("temperature")
    assert widget.raster_image.isNull()
    assert widget.raster_image_layer is None
