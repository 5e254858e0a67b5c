import pytest
from PIL import Image
from PySide6.QtGui import QImage

from imagecache import config
from imagecache.costs import bytes_cost, image_cost, payload_cost


def test_pillow_image_cost_uses_four_bytes_per_pixel():
    img = Image.new("RGB", (10, 20))
    assert config.BYTES_PER_PIXEL == 4
    assert image_cost(img) == 10 * 20 * 4


def test_qimage_cost():
    img = QImage(8, 4, QImage.Format_ARGB32)
    assert image_cost(img) == 8 * 4 * 4


def test_null_qimage_costs_nothing():
    assert image_cost(QImage()) == 0


def test_bytes_cost_is_length():
    data = b"\x00" * 123
    assert bytes_cost(data) == 123
    assert bytes_cost(bytearray(data)) == 123
    assert bytes_cost(memoryview(data)) == 123


def test_payload_cost_dispatches():
    assert payload_cost(b"abcd") == 4
    assert payload_cost(Image.new("L", (3, 3))) == 36


@pytest.mark.parametrize("value", [object(), "text", 42])
def test_unknown_payload_raises_type_error(value):
    with pytest.raises(TypeError):
        payload_cost(value)
