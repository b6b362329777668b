import pytest
from pydantic import ValidationError

from mediatoascii.config import (
    DEFAULT_HEIGHT_SAMPLE_SCALE,
    ImageConfig,
    Rotation,
    VideoConfig,
    check_file_exists,
    check_valid_file,
    validate_config,
)
from mediatoascii.errors import DecodeError, InvalidConfig, OutputExists


def test_image_defaults():
    config = ImageConfig(image_path="in.png", output_file_path="out.txt")
    assert config.scale_down == 1.0
    assert config.font_size == 12.0
    assert config.height_sample_scale == DEFAULT_HEIGHT_SAMPLE_SCALE
    assert config.invert is False
    assert config.overwrite is False
    assert config.char_set == "standard"


def test_image_requires_an_output():
    with pytest.raises(ValidationError):
        ImageConfig(image_path="in.png")


@pytest.mark.parametrize("field", ["scale_down", "font_size", "height_sample_scale"])
@pytest.mark.parametrize("value", [0, -1.5])
def test_non_positive_numbers_are_invalid(field, value):
    payload = {"image_path": "in.png", "output_file_path": "out.txt", field: value}
    with pytest.raises(InvalidConfig):
        validate_config(ImageConfig, payload)


def test_video_rotation_values():
    for value, expected in [(-1, Rotation.NONE), (0, Rotation.CLOCKWISE_90),
                            (1, Rotation.ROTATE_180), (2, Rotation.COUNTERCLOCKWISE_90)]:
        config = validate_config(VideoConfig, {"video_path": "in.mp4", "output_video_path": "out.mp4",
                                               "rotate": value})
        assert config.rotate is expected


def test_video_rejects_unknown_rotation():
    with pytest.raises(InvalidConfig):
        validate_config(VideoConfig, {"video_path": "in.mp4", "output_video_path": "out.mp4", "rotate": 3})


def test_video_requires_output_and_positive_fps():
    with pytest.raises(InvalidConfig):
        validate_config(VideoConfig, {"video_path": "in.mp4", "output_video_path": ""})
    with pytest.raises(InvalidConfig):
        validate_config(VideoConfig, {"video_path": "in.mp4", "output_video_path": "o.mp4", "max_fps": 0})


def test_unknown_char_set():
    with pytest.raises(InvalidConfig):
        validate_config(ImageConfig, {"image_path": "a", "output_file_path": "b", "char_set": "emoji"})


def test_model_instances_are_revalidated():
    config = ImageConfig.model_construct(image_path="a", output_file_path="b", scale_down=-1.0)
    with pytest.raises(InvalidConfig):
        validate_config(ImageConfig, config)


def test_invalid_config_is_a_value_error():
    assert issubclass(InvalidConfig, ValueError)


def test_file_guards(tmp_path):
    existing = tmp_path / "exists.txt"
    existing.write_text("x")
    with pytest.raises(OutputExists, match="already exists, and overwrite is set to false"):
        check_file_exists(str(existing), overwrite=False)
    check_file_exists(str(existing), overwrite=True)
    check_file_exists(str(tmp_path / "new.txt"), overwrite=False)
    with pytest.raises(DecodeError):
        check_valid_file(str(tmp_path))
