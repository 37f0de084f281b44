import numpy as np
import pytest

from color_extract import AverageColorExtractor, TintSlot, extract_average_color
from config import FALLBACK_TINT
from errors import AssetDecodeError

from conftest import encode, oversized_png, solid


def test_average_of_solid_image_is_boosted():
    color = extract_average_color(solid(4, 3, (100, 150, 40)))
    assert color == pytest.approx((100 / 255 * 1.25, 150 / 255 * 1.25,
                                   40 / 255 * 1.25))


def test_average_is_clamped_to_one():
    color = extract_average_color(solid(2, 2, (255, 240, 0)))
    assert color == (1.0, 1.0, 0.0)


def test_average_ignores_alpha():
    rgba = np.zeros((2, 2, 4), dtype=np.uint8)
    rgba[..., :3] = 80
    rgba[..., 3] = np.array([[0, 255], [17, 3]])
    assert extract_average_color(rgba) == pytest.approx((80 / 255 * 1.25,) * 3)


def test_average_of_sixteen_bit_uses_dtype_max():
    img = np.full((2, 2, 3), 65535 // 2, dtype=np.uint16)
    r, _, _ = extract_average_color(img, boost=1.0)
    assert r == pytest.approx(0.5, abs=1e-4)


def test_average_channels_in_unit_range():
    rng = np.random.default_rng(0)
    for _ in range(10):
        img = rng.integers(0, 256, size=(5, 7, 3), dtype=np.uint8)
        assert all(0.0 <= c <= 1.0 for c in extract_average_color(img))


def test_average_rejects_bad_shape():
    with pytest.raises(AssetDecodeError):
        extract_average_color(np.zeros((3, 3, 2), dtype=np.uint8))


def test_extract_from_encoded_bytes_is_rgb_ordered():
    extractor = AverageColorExtractor(boost=1.0)
    r, g, b = extractor.extract(encode(solid(3, 3, (255, 0, 0))))
    assert (r, g, b) == pytest.approx((1.0, 0.0, 0.0))


def test_extract_or_fallback_on_garbage():
    extractor = AverageColorExtractor()
    assert extractor.extract_or_fallback(b"not an image") == FALLBACK_TINT
    assert extractor.extract_or_fallback(b"") == FALLBACK_TINT


def test_slot_rejects_stale_versions():
    slot = TintSlot()
    v1 = slot.begin()
    v2 = slot.begin()
    assert not slot.publish(v1, (0.1, 0.2, 0.3))
    assert slot.is_fallback
    assert slot.publish(v2, (0.4, 0.5, 0.6))
    assert slot.color == (0.4, 0.5, 0.6)
    assert not slot.is_fallback


def test_slot_invalidate_restores_fallback():
    slot = TintSlot()
    slot.publish(slot.begin(), (0.4, 0.5, 0.6))
    slot.invalidate()
    assert slot.color == FALLBACK_TINT
    assert slot.is_fallback


def test_late_slow_request_does_not_overwrite_newer(manual_executor):
    extractor = AverageColorExtractor(manual_executor, boost=1.0)
    slot = TintSlot()
    slow = extractor.request(slot, solid(2, 2, (255, 0, 0)))
    fast = extractor.request(slot, solid(2, 2, (0, 0, 255)))

    manual_executor.run(1)            # fast finishes first
    assert extractor.poll() == [fast]
    assert slot.color == (0.0, 0.0, 1.0)

    manual_executor.run(0)            # slow finishes late
    assert extractor.poll() == []
    assert slot.color == (0.0, 0.0, 1.0)
    assert slow.future.done()
    assert extractor.pending == 0


def test_poll_keeps_unfinished_requests(manual_executor):
    extractor = AverageColorExtractor(manual_executor)
    slot = TintSlot()
    extractor.request(slot, solid(2, 2, (10, 20, 30)))
    assert extractor.poll() == []
    assert extractor.pending == 1
    manual_executor.run_all()
    assert len(extractor.poll()) == 1
    assert extractor.pending == 0


def test_failed_extraction_leaves_fallback(manual_executor):
    extractor = AverageColorExtractor(manual_executor)
    slot = TintSlot()
    extractor.request(slot, b"\x89PNG broken")
    manual_executor.run_all()
    assert extractor.poll() == []
    assert slot.color == FALLBACK_TINT
    assert slot.is_fallback


def test_oversized_image_leaves_fallback(manual_executor):
    extractor = AverageColorExtractor(manual_executor)
    slot = TintSlot()
    assert extractor.extract_or_fallback(oversized_png()) == FALLBACK_TINT
    extractor.request(slot, oversized_png())
    manual_executor.run_all()
    assert extractor.poll() == []
    assert slot.is_fallback


def test_cancel_all_drops_pending(manual_executor):
    extractor = AverageColorExtractor(manual_executor)
    slot = TintSlot()
    req = extractor.request(slot, solid(2, 2, (10, 20, 30)))
    extractor.cancel_all()
    assert req.future.cancelled()
    manual_executor.run_all()
    assert extractor.poll() == []
    assert slot.is_fallback
