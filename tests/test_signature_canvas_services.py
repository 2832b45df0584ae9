import base64
import io

import pytest
from PIL import Image

from siteportal.services.signature_canvas import (
    PNG_DATA_URI_PREFIX,
    CanvasRect,
    SignatureCanvas,
    SignatureTooLarge,
    decode_data_uri,
    image_has_ink,
    is_image_data_uri,
    load_signature_image,
    to_canvas_point,
)


def _image(data_uri):
    return Image.open(io.BytesIO(decode_data_uri(data_uri)))


class TestToCanvasPoint:
    def test_origin_maps_to_origin(self):
        rect = CanvasRect(left=50, top=20, width=200, height=60)
        assert to_canvas_point(50, 20, rect, 400, 120) == (0.0, 0.0)

    def test_far_corner_maps_to_canvas_size(self):
        rect = CanvasRect(left=50, top=20, width=200, height=60)
        assert to_canvas_point(250, 80, rect, 400, 120) == (400.0, 120.0)

    def test_non_uniform_scale(self):
        # Displayed at half width and quarter height of the buffer
        rect = CanvasRect(left=0, top=0, width=200, height=30)
        x, y = to_canvas_point(100, 15, rect, 400, 120)
        assert x == pytest.approx(200.0)
        assert y == pytest.approx(60.0)

    def test_one_to_one_scale_only_offsets(self):
        rect = CanvasRect(left=10, top=10, width=400, height=120)
        assert to_canvas_point(110, 70, rect, 400, 120) == (100.0, 60.0)

    def test_zero_sized_rect(self):
        rect = CanvasRect(left=0, top=0, width=0, height=0)
        assert to_canvas_point(10, 10, rect, 400, 120) == (0.0, 0.0)


class TestSignatureCanvas:
    def test_default_size_from_settings(self):
        canvas = SignatureCanvas()
        assert (canvas.width, canvas.height) == (400, 120)

    def test_new_canvas_has_no_content(self):
        canvas = SignatureCanvas(200, 80)
        assert canvas.has_content is False

    def test_blank_export_is_white_png_of_canvas_size(self):
        canvas = SignatureCanvas(200, 80)
        uri = canvas.export()
        assert uri.startswith(PNG_DATA_URI_PREFIX)
        image = _image(uri)
        assert image.format == "PNG"
        assert image.size == (200, 80)
        assert image_has_ink(image) is False

    def test_stroke_marks_content_and_draws_ink(self):
        canvas = SignatureCanvas(200, 80)
        canvas.start_stroke((10, 10))
        canvas.extend_stroke((150, 60))
        canvas.end_stroke()
        assert canvas.has_content is True
        image = _image(canvas.export())
        assert image_has_ink(image) is True

    def test_start_without_move_has_no_content(self):
        canvas = SignatureCanvas(200, 80)
        canvas.start_stroke((10, 10))
        canvas.end_stroke()
        assert canvas.has_content is False

    def test_extend_without_start_is_ignored(self):
        canvas = SignatureCanvas(200, 80)
        canvas.extend_stroke((50, 50))
        assert canvas.has_content is False
        assert image_has_ink(_image(canvas.export())) is False

    def test_clear_is_a_true_reset(self):
        canvas = SignatureCanvas(200, 80)
        canvas.start_stroke((10, 10))
        canvas.extend_stroke((190, 70))
        canvas.clear()
        assert canvas.has_content is False
        image = _image(canvas.export())
        assert image.size == (200, 80)
        assert image_has_ink(image) is False

    def test_from_strokes_in_canvas_coordinates(self):
        canvas = SignatureCanvas.from_strokes(
            [[(10, 10), (50, 40), (90, 20)], [(100, 10), (120, 60)]], width=200, height=80
        )
        assert canvas.has_content is True

    def test_from_strokes_skips_empty_strokes(self):
        canvas = SignatureCanvas.from_strokes([[], [(5, 5)]], width=200, height=80)
        assert canvas.has_content is False

    def test_from_strokes_scales_viewport_points(self):
        # Element is shown at half size; the stroke lands in the right half
        rect = CanvasRect(left=100, top=100, width=100, height=40)
        canvas = SignatureCanvas.from_strokes(
            [[(160, 110), (195, 135)]], rect=rect, width=200, height=80
        )
        image = _image(canvas.export()).convert("L")
        left_half = image.crop((0, 0, 100, 80))
        right_half = image.crop((100, 0, 200, 80))
        assert left_half.getextrema()[0] == 255
        assert right_half.getextrema()[0] < 255


class TestDataUris:
    def test_is_image_data_uri(self):
        assert is_image_data_uri("data:image/png;base64,AAAA") is True
        assert is_image_data_uri("signed") is False
        assert is_image_data_uri(None) is False

    def test_decode_round_trips_canvas_bytes(self):
        canvas = SignatureCanvas(50, 20)
        assert decode_data_uri(canvas.export()) == canvas.to_png()

    def test_decode_rejects_non_image(self):
        with pytest.raises(ValueError):
            decode_data_uri("signed")

    def test_decode_rejects_bad_base64(self):
        with pytest.raises(ValueError):
            decode_data_uri("data:image/png;base64,***not base64***")

    def test_decode_rejects_non_base64_uri(self):
        with pytest.raises(ValueError):
            decode_data_uri("data:image/svg+xml,<svg/>")

    def test_load_rejects_non_image_bytes(self):
        uri = "data:image/png;base64," + base64.b64encode(b"not a png").decode()
        with pytest.raises(ValueError):
            load_signature_image(uri)

    def test_transparent_image_has_no_ink(self):
        image = Image.new("RGBA", (20, 20), (0, 0, 0, 0))
        assert image_has_ink(image) is False


def _png_uri(image):
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return PNG_DATA_URI_PREFIX + base64.b64encode(buf.getvalue()).decode()


class TestSignatureImageBounds:
    def test_within_bound_loads(self):
        image = load_signature_image(_png_uri(Image.new("1", (40, 20), 1)), 40)
        assert image.size == (40, 20)

    def test_wide_image_rejected_before_decoding(self):
        with pytest.raises(SignatureTooLarge):
            load_signature_image(_png_uri(Image.new("1", (41, 20), 1)), 40)

    def test_tall_image_rejected(self):
        with pytest.raises(SignatureTooLarge):
            load_signature_image(_png_uri(Image.new("1", (20, 41), 1)), 40)

    def test_decompression_bomb_is_too_large(self, monkeypatch):
        uri = _png_uri(Image.new("1", (30, 30), 1))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        with pytest.raises(SignatureTooLarge):
            load_signature_image(uri)
