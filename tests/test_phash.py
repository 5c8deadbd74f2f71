import pytest
from PIL import Image

from markerkit.core import phash
from markerkit.core.config import TranscodeConfig
from markerkit.core.errors import DecodeError, InsufficientSamplesError, ReductionError
from markerkit.core.models import SourceMedia

from tests.conftest import FakeEncoder, seek_of


@pytest.fixture
def video():
    return SourceMedia(path="/videos/scene.mp4", duration=100.0, hash="abc123")


def test_sample_times():
    times = phash.sample_times(100.0)
    assert len(times) == 25
    assert times[0] == pytest.approx(5.0)
    assert times[1] - times[0] == pytest.approx(3.6)
    assert times[-1] == pytest.approx(91.4)
    assert all(5.0 <= t < 95.0 for t in times)


def test_sample_times_custom_grid():
    assert phash.sample_times(10.0, 2, 1) == pytest.approx([0.5, 5.0])


def test_generate_samples_every_cell(video):
    encoder = FakeEncoder()
    value = phash.generate(encoder, video)
    assert 0 <= value < 2 ** 64
    assert encoder.call_count == 25
    seeks = [seek_of(args) for args in encoder.calls]
    assert seeks == pytest.approx(phash.sample_times(100.0), abs=1e-3)
    for args in encoder.calls:
        assert args[args.index("-vf") + 1] == "scale=160:-2"
        assert args[-1] == "-"
        assert "bmp" in args
        assert "-hwaccel" not in args


def test_generate_is_deterministic(video):
    assert phash.generate(FakeEncoder(), video) == phash.generate(FakeEncoder(), video)


def test_generate_sprite_size(video):
    sprite = phash.generate_sprite(FakeEncoder(), video)
    assert sprite.size == (160 * 5, 90 * 5)


def test_hardware_decode_hint(video):
    encoder = FakeEncoder()
    phash.generate(encoder, video, config=TranscodeConfig(hardware_acceleration=True))
    for args in encoder.calls:
        i = args.index("-hwaccel")
        assert args[i + 1] == "cuda"
        assert i < args.index("-i")


@pytest.mark.parametrize("duration", [0.0, -3.0])
def test_non_positive_duration(duration):
    encoder = FakeEncoder()
    media = SourceMedia(path="/videos/empty.mp4", duration=duration)
    with pytest.raises(InsufficientSamplesError):
        phash.generate(encoder, media)
    assert encoder.call_count == 0


def test_undecodable_frame(video):
    with pytest.raises(DecodeError):
        phash.generate(FakeEncoder(frame=b"definitely not an image"), video)


def test_empty_frame(video):
    with pytest.raises(DecodeError):
        phash.generate(FakeEncoder(frame=b""), video)


def test_sampling_failure_propagates(video):
    from markerkit.core.errors import ExternalProcessError

    encoder = FakeEncoder(fail=True)
    with pytest.raises(ExternalProcessError):
        phash.generate(encoder, video)
    assert encoder.call_count == 1


def test_reduce_is_stable():
    img = Image.new("RGBA", (64, 64), (0, 0, 0, 255))
    for x in range(32):
        for y in range(64):
            img.putpixel((x, y), (255, 255, 255, 255))
    first = phash.reduce(img)
    assert first == phash.reduce(img.copy())
    assert 0 <= first < 2 ** 64


def test_reduce_rejects_empty_image():
    class Empty:
        size = (0, 0)

    with pytest.raises(ReductionError):
        phash.reduce(Empty())


def test_hamming_distance():
    assert phash.hamming_distance(0, 0) == 0
    assert phash.hamming_distance(0, 0xFF) == 8
    assert phash.hamming_distance(2 ** 64 - 1, 0) == 64
    assert phash.hamming_distance(0b1010, 0b0110) == 2
