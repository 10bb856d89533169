"""
OCR providers: result assembly, language mapping, Tesseract/EasyOCR output parsing with stand-in engines.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
from PIL import Image

import extraction.ocr as ocr_mod
from core.exceptions import ConfigError, DependencyError, OCRError
from core.models import BoundingBox, ExtractedImage, OCRDetection
from core.schema import OCROptions
from extraction.ocr import (
    EasyOCRProvider,
    TesseractOCRProvider,
    build_result,
    create_ocr_provider,
    create_preprocessor,
    deskew,
    easyocr_languages,
    upscale_small,
    _tesseract_detections,
)
from utils.lazy import LazyBackendPool


def _det(text: str, conf: float, index: int = 0) -> OCRDetection:
    return OCRDetection(text=text, confidence=conf, bbox=BoundingBox(0, 0, 10, 10), image_index=index)


class _TesseractError(Exception):
    pass


class _TesseractNotFound(Exception):
    pass


def _fake_pytesseract(data: dict[str, list[Any]], text: str, *, fail: bool = False, version: str = "5.3.0") -> Any:
    def image_to_data(image: Any, lang: str, config: str, output_type: Any) -> dict[str, list[Any]]:
        if fail:
            raise _TesseractError("failed loading language")
        return data

    def image_to_string(image: Any, lang: str, config: str) -> str:
        return text

    def get_tesseract_version() -> str:
        if version is None:
            raise _TesseractNotFound("tesseract is not installed")
        return version

    return SimpleNamespace(
        image_to_data=image_to_data,
        image_to_string=image_to_string,
        get_tesseract_version=get_tesseract_version,
        Output=SimpleNamespace(DICT="dict"),
        TesseractError=_TesseractError,
        TesseractNotFoundError=_TesseractNotFound,
    )


WORDS = {
    "text": ["", "Town", "of", "Bentley", "  "],
    "conf": ["-1", "96.5", "42", "88", "-1"],
    "left": [0, 10, 60, 90, 0],
    "top": [0, 20, 20, 20, 0],
    "width": [0, 40, 20, 70, 0],
    "height": [0, 12, 12, 12, 0],
}


# ---------------------------------------------------------------------------
# Result assembly
# ---------------------------------------------------------------------------


def test_threshold_filters_detections_only() -> None:
    dets = [_det("Town", 95.0), _det("of", 40.0), _det("Bentley", 85.0)]
    result = build_result(["Town of Bentley"], dets, OCROptions(confidence_threshold=80), "tesseract")
    assert [d.text for d in result.detections] == ["Town", "Bentley"]
    assert result.text == "Town of Bentley"
    assert result.confidence == pytest.approx((95 + 40 + 85) / 3)


def test_text_output_format_omits_detections() -> None:
    result = build_result(["a"], [_det("a", 99.0)], OCROptions(output_format="text"), "tesseract")
    assert result.detections == ()
    assert result.confidence == pytest.approx(99.0)


def test_empty_input_has_zero_confidence() -> None:
    result = build_result([], [], OCROptions(), "tesseract")
    assert result.text == ""
    assert result.confidence == 0.0


def test_texts_joined_per_image_skipping_blanks() -> None:
    result = build_result(["first", "", "third"], [], OCROptions(language="deu"), "easyocr")
    assert result.text == "first\n\nthird"
    assert result.language == "deu"
    assert result.engine == "easyocr"


# ---------------------------------------------------------------------------
# Engine selection and language mapping
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "language, expected",
    [("eng", ("en",)), ("eng+deu", ("en", "de")), ("chi_sim", ("ch_sim",)), ("xx", ("xx",)), ("", ("en",))],
)
def test_easyocr_languages(language: str, expected: tuple[str, ...]) -> None:
    assert easyocr_languages(language) == expected


def test_create_ocr_provider_by_name() -> None:
    assert isinstance(create_ocr_provider("tesseract"), TesseractOCRProvider)
    assert isinstance(create_ocr_provider(" EasyOCR "), EasyOCRProvider)


def test_create_ocr_provider_unknown_engine() -> None:
    with pytest.raises(ConfigError, match="Unknown OCR engine"):
        create_ocr_provider("paddle")


def test_create_preprocessor_kinds() -> None:
    assert create_preprocessor("none").name == "none"
    assert create_preprocessor("pil").name == "grayscale+upscale_small+sharpen_contrast"
    with pytest.raises(ConfigError, match="Unknown preprocessor"):
        create_preprocessor("gpu")


def test_pillow_chain_upscales_small_images() -> None:
    out = create_preprocessor("pil").preprocess(Image.new("RGB", (100, 50), "white"))
    assert out.mode == "L"
    assert out.size == (400, 200)


def test_upscale_leaves_large_images_alone() -> None:
    image = Image.new("L", (800, 1000))
    assert upscale_small(image) is image


def test_deskew_ignores_blank_pages() -> None:
    image = Image.new("L", (200, 200), 255)
    assert deskew(image) is image


# ---------------------------------------------------------------------------
# Tesseract
# ---------------------------------------------------------------------------


def test_tesseract_detections_skip_blank_and_negative_conf() -> None:
    dets = _tesseract_detections(WORDS, index=2, scale=(1.0, 1.0))
    assert [d.text for d in dets] == ["Town", "of", "Bentley"]
    assert dets[0].bbox == BoundingBox(x=10, y=20, width=40, height=12)
    assert all(d.image_index == 2 for d in dets)


def test_tesseract_detections_scaled_back() -> None:
    dets = _tesseract_detections(WORDS, index=0, scale=(0.5, 0.5))
    assert dets[2].bbox == BoundingBox(x=45, y=10, width=35, height=6)


def test_tesseract_recognize(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(ocr_mod, "pytesseract", _fake_pytesseract(WORDS, "Town of Bentley\n"))
    monkeypatch.setattr(ocr_mod, "TESSERACT_AVAILABLE", True)
    image = ExtractedImage(data=bytes(80 * 40), width=80, height=40, channels=1, page_number=1)
    result = TesseractOCRProvider(pool=LazyBackendPool()).recognize([image], "eng")
    assert result.text == "Town of Bentley"
    assert len(result.detections) == 3
    assert result.engine == "tesseract"


def test_tesseract_engine_error_is_ocr_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(ocr_mod, "pytesseract", _fake_pytesseract(WORDS, "", fail=True))
    monkeypatch.setattr(ocr_mod, "TESSERACT_AVAILABLE", True)
    with pytest.raises(OCRError, match="image 0"):
        TesseractOCRProvider(pool=LazyBackendPool()).recognize([Image.new("L", (20, 20))], "xyz")


def test_missing_tesseract_binary(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(ocr_mod, "pytesseract", _fake_pytesseract(WORDS, "", version=None))
    monkeypatch.setattr(ocr_mod, "TESSERACT_AVAILABLE", True)
    provider = TesseractOCRProvider(pool=LazyBackendPool())
    with pytest.raises(DependencyError) as exc:
        provider.recognize([Image.new("L", (20, 20))], "eng")
    assert exc.value.not_installed
    ok, detail = provider.check_available()
    assert ok is False
    assert "not found" in detail


def test_missing_pytesseract(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(ocr_mod, "TESSERACT_AVAILABLE", False)
    ok, detail = TesseractOCRProvider().check_available()
    assert ok is False
    assert detail == "pytesseract is not installed"


def test_tesseract_version_check_runs_once_per_pool(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []
    fake = _fake_pytesseract(WORDS, "x")
    original = fake.get_tesseract_version

    def counting() -> str:
        calls.append(1)
        return original()

    fake.get_tesseract_version = counting
    monkeypatch.setattr(ocr_mod, "pytesseract", fake)
    monkeypatch.setattr(ocr_mod, "TESSERACT_AVAILABLE", True)
    pool = LazyBackendPool()
    for _ in range(3):
        TesseractOCRProvider(pool=pool).recognize([Image.new("L", (20, 20))], "eng")
    assert len(calls) == 1


# ---------------------------------------------------------------------------
# EasyOCR
# ---------------------------------------------------------------------------


class _FakeEasyReader:
    def __init__(self) -> None:
        self.calls = 0

    def readtext(self, arr: Any) -> list[Any]:
        self.calls += 1
        return [
            ([[10, 10], [50, 10], [50, 30], [10, 30]], "Council", 0.91),
            ([[60, 10], [120, 10], [120, 30], [60, 30]], "Minutes", 0.42),
        ]


def test_easyocr_recognize_with_pooled_reader() -> None:
    pytest.importorskip("numpy")
    pool = LazyBackendPool()
    reader = _FakeEasyReader()
    pool.get(("easyocr", ("en",)), "easyocr", lambda: reader)
    result = EasyOCRProvider(pool=pool).recognize(
        [Image.new("RGB", (200, 60), "white")],
        "eng",
        OCROptions(confidence_threshold=50),
    )
    assert result.text == "Council\nMinutes"
    assert [d.text for d in result.detections] == ["Council"]
    assert result.detections[0].confidence == pytest.approx(91.0)
    assert result.detections[0].bbox == BoundingBox(x=10, y=10, width=40, height=20)
    assert reader.calls == 1


def test_easyocr_not_installed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(ocr_mod, "EASYOCR_AVAILABLE", False)
    provider = EasyOCRProvider(pool=LazyBackendPool())
    with pytest.raises(DependencyError) as exc:
        provider.recognize([Image.new("RGB", (20, 20))], "eng")
    assert exc.value.backend == "easyocr"
    assert provider.check_available() == (False, "easyocr is not installed")
