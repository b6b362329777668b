import numpy as np
import pytest

from mediatoascii.charsets import DEFAULT_RAMP
from mediatoascii.errors import InvalidDimensions
from mediatoascii.sampler import grid_dimensions, sample_frame, to_luminance


def test_identity_sampling_keeps_pixel_dimensions():
    frame = np.random.RandomState(0).randint(0, 256, size=(17, 23, 3), dtype=np.uint8)
    grid = sample_frame(frame, scale_down=1, height_sample_scale=1)
    assert (grid.rows, grid.columns) == (17, 23)


def test_identity_sampling_maps_each_pixel_through_the_ramp():
    frame = np.array([[0, 255], [128, 64]], dtype=np.uint8)
    grid = sample_frame(frame, 1, 1)
    expected = [[DEFAULT_RAMP.index_for(v / 255.0) for v in row] for row in frame.tolist()]
    assert grid.indices.tolist() == expected


def test_height_sample_scale_reduces_rows_only():
    frame = np.zeros((100, 80), dtype=np.uint8)
    grid = sample_frame(frame, scale_down=2, height_sample_scale=2.5)
    assert grid.columns == 40
    assert grid.rows == 20


def test_grid_dimensions_floor():
    assert grid_dimensions(101, 99, 2.0, 2.046) == (50, 24)


def test_box_filter_averages_blocks():
    # Left half black, right half white: each 2x2 block is uniform.
    frame = np.zeros((4, 4), dtype=np.uint8)
    frame[:, 2:] = 255
    grid = sample_frame(frame, 2, 1)
    last = len(DEFAULT_RAMP) - 1
    assert grid.indices.tolist() == [[0, last], [0, last]]


def test_box_filter_mean_of_mixed_block():
    frame = np.array([[0, 255], [0, 255]], dtype=np.uint8)
    grid = sample_frame(frame, 2, 1)
    # mean luminance 0.5 -> floor(0.5 * 9)
    assert grid.indices.tolist() == [[4]]


def test_invert():
    frame = np.full((2, 2), 255, dtype=np.uint8)
    assert sample_frame(frame, 1, 1, invert=True).indices.tolist() == [[0, 0], [0, 0]]


def test_scale_down_larger_than_frame_fails():
    frame = np.zeros((10, 10, 3), dtype=np.uint8)
    with pytest.raises(InvalidDimensions):
        sample_frame(frame, scale_down=11, height_sample_scale=1)


def test_height_sample_scale_larger_than_frame_fails():
    frame = np.zeros((10, 10, 3), dtype=np.uint8)
    with pytest.raises(InvalidDimensions):
        sample_frame(frame, scale_down=1, height_sample_scale=20)


def test_to_luminance_accepts_gray_bgr_and_bgra():
    gray = np.full((3, 3), 200, dtype=np.uint8)
    bgr = np.full((3, 3, 3), 200, dtype=np.uint8)
    bgra = np.full((3, 3, 4), 200, dtype=np.uint8)
    for frame in (gray, bgr, bgra, gray[:, :, None]):
        assert to_luminance(frame).shape == (3, 3)
        assert int(to_luminance(frame)[0, 0]) == 200


def test_grid_text_has_one_line_per_row():
    frame = np.zeros((3, 5), dtype=np.uint8)
    text = sample_frame(frame, 1, 1).to_text()
    assert text == "     \n     \n     \n"
