import io

import pytest
from PIL import Image

from planscale.errors import ImageLoadFailure
from planscale.infra import image_loader
from planscale.infra.image_loader import decode_plan_image, load_plan_image, sniff_raster_format


def _png_bytes(size=(8, 4)):
    buffer = io.BytesIO()
    Image.new("RGB", size, "white").save(buffer, "PNG")
    return buffer.getvalue()


class _FakeResponse:
    def __init__(self, content=b"", content_type="image/png", status_code=200):
        self.content = content
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise image_loader.requests.HTTPError(f"http {self.status_code}")


def test_decode_png_reports_dimensions():
    image = decode_plan_image("https://plans.example.com/a1.png", _png_bytes())
    assert (image.width, image.height, image.format) == (8, 4, "png")


def test_sniff_raster_formats():
    assert sniff_raster_format(b"\xff\xd8\xff\xe0rest") == "jpeg"
    assert sniff_raster_format(b"GIF89a....") == "gif"
    assert sniff_raster_format(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "webp"
    assert sniff_raster_format(b"<html>") is None


def test_pdf_plans_need_rasterization():
    with pytest.raises(ImageLoadFailure, match="rasterization"):
        decode_plan_image("https://plans.example.com/a1.pdf", b"%PDF-1.7 body")


def test_unsupported_or_corrupt_payloads_rejected():
    with pytest.raises(ImageLoadFailure):
        decode_plan_image("u", b"<html>nope</html>")
    with pytest.raises(ImageLoadFailure):
        decode_plan_image("u", b"\x89PNG\r\n\x1a\n" + b"\x00" * 16)
    with pytest.raises(ImageLoadFailure):
        decode_plan_image("u", b"")


def test_load_plan_image_downloads(monkeypatch):
    def fake_get(url, allow_redirects, timeout):
        assert url == "https://plans.example.com/a1.png"
        assert allow_redirects is True
        assert timeout
        return _FakeResponse(content=_png_bytes((20, 10)))

    monkeypatch.setattr(image_loader.requests, "get", fake_get)
    image = load_plan_image("https://plans.example.com/a1.png")

    assert (image.width, image.height) == (20, 10)
    assert image.content_type == "image/png"


def test_load_plan_image_network_failure(monkeypatch):
    def fake_get(url, allow_redirects, timeout):
        raise image_loader.requests.ConnectionError("unreachable")

    monkeypatch.setattr(image_loader.requests, "get", fake_get)
    with pytest.raises(ImageLoadFailure, match="Download failed"):
        load_plan_image("https://plans.example.com/a1.png")


def test_load_plan_image_http_error(monkeypatch):
    monkeypatch.setattr(image_loader.requests, "get", lambda url, **_kw: _FakeResponse(status_code=404))
    with pytest.raises(ImageLoadFailure):
        load_plan_image("https://plans.example.com/missing.png")
