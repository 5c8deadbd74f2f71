import pytest
from PIL import Image

from markerkit.core.montage import TRANSPARENT, combine_images, grid_cell


def _tiles(count, size=(4, 3)):
    return [Image.new("RGB", size, (i * 10 % 256, 0, 0)) for i in range(count)]


def test_grid_cells_for_five_by_five():
    assert grid_cell(0, 5, 5) == (0, 0)
    assert grid_cell(4, 5, 5) == (4, 0)
    assert grid_cell(5, 5, 5) == (0, 1)
    assert grid_cell(24, 5, 5) == (4, 4)
    cells = {grid_cell(i, 5, 5) for i in range(25)}
    assert len(cells) == 25


def test_non_square_grid_uses_rows_for_y():
    # column count 2, row count 3: index // rows, not index // columns
    assert [grid_cell(i, 2, 3) for i in range(6)] == [(0, 0), (1, 0), (0, 0), (1, 1), (0, 1), (1, 1)]


def test_canvas_size_and_placement():
    tiles = _tiles(25)
    sprite = combine_images(tiles, 5, 5)
    assert sprite.mode == "RGBA"
    assert sprite.size == (20, 15)
    assert sprite.getpixel((0, 0)) == (0, 0, 0, 255)
    # tile 7 lands at (2, 1)
    assert sprite.getpixel((2 * 4, 1 * 3)) == (70, 0, 0, 255)
    assert sprite.getpixel((4 * 4 + 3, 4 * 3 + 2)) == (240, 0, 0, 255)


def test_uncovered_cells_stay_transparent():
    sprite = combine_images(_tiles(6), 2, 3)
    assert sprite.size == (8, 9)
    assert sprite.getpixel((0, 2 * 3)) == TRANSPARENT
    assert sprite.getpixel((4, 2 * 3)) == TRANSPARENT


@pytest.mark.parametrize(
    "count,columns,rows",
    [(25, 0, 5), (25, 5, 0), (24, 5, 5), (26, 5, 5)],
)
def test_invalid_inputs(count, columns, rows):
    with pytest.raises(ValueError):
        combine_images(_tiles(count), columns, rows)


def test_size_mismatch():
    tiles = _tiles(4)
    tiles[3] = Image.new("RGB", (5, 3))
    with pytest.raises(ValueError):
        combine_images(tiles, 2, 2)
