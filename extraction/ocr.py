"""
OCR providers with pluggable engines (Tesseract, EasyOCR) and preprocessing.
ImagePreprocessor (Pillow steps, OpenCV denoise/deskew when installed); IOCRProvider -> TesseractOCRProvider / EasyOCRProvider.
Engine handles are created through a LazyBackendPool so initialization happens once per process.
"""
from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Any, Callable, Sequence

from PIL import Image, ImageEnhance, ImageFilter

from core.exceptions import ConfigError, DependencyError, OCRError
from core.interfaces import IOCRProvider
from core.models import BoundingBox, ExtractedImage, OCRDetection, OCRResult
from core.schema import OCROptions
from extraction.image_io import to_pil_image
from utils.lazy import LazyBackendPool

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Optional dependencies
# ---------------------------------------------------------------------------

try:
    import pytesseract
    TESSERACT_AVAILABLE = True
except ImportError:
    TESSERACT_AVAILABLE = False
    pytesseract = None  # type: ignore

try:
    import cv2
    import numpy as np
    CV2_AVAILABLE = True
except ImportError:
    CV2_AVAILABLE = False
    cv2 = None  # type: ignore
    np = None  # type: ignore

try:
    import easyocr
    EASYOCR_AVAILABLE = True
except ImportError:
    EASYOCR_AVAILABLE = False
    easyocr = None  # type: ignore

TESSERACT_CONFIG = "--oem 3 --psm 3"
MIN_SIDE_PX = 600
MAX_UPSCALE = 4.0
CONTRAST_FACTOR = 1.3
MIN_INK_POINTS = 50
MIN_SKEW_DEG = 0.5

# Tesseract language tags -> EasyOCR codes
EASYOCR_LANGUAGES = {
    "eng": "en",
    "deu": "de",
    "fra": "fr",
    "spa": "es",
    "ita": "it",
    "por": "pt",
    "nld": "nl",
    "rus": "ru",
    "jpn": "ja",
    "kor": "ko",
    "chi_sim": "ch_sim",
    "chi_tra": "ch_tra",
}


# ---------------------------------------------------------------------------
# Preprocessing (enhance_resolution)
# ---------------------------------------------------------------------------

PreprocessStep = Callable[[Image.Image], Image.Image]


def grayscale(image: Image.Image) -> Image.Image:
    return image if image.mode == "L" else image.convert("L")


def upscale_small(image: Image.Image) -> Image.Image:
    """Enlarge so the short side reaches MIN_SIDE_PX, by at most MAX_UPSCALE."""
    short_side = min(image.size)
    if not 0 < short_side < MIN_SIDE_PX:
        return image
    factor = min(MAX_UPSCALE, MIN_SIDE_PX / short_side)
    size = (int(image.width * factor), int(image.height * factor))
    return image.resize(size, Image.Resampling.LANCZOS)


def sharpen_contrast(image: Image.Image) -> Image.Image:
    return ImageEnhance.Contrast(image.filter(ImageFilter.SHARPEN)).enhance(CONTRAST_FACTOR)


def denoise(image: Image.Image) -> Image.Image:
    """Non-local-means denoise on the grayscale plane; identity without OpenCV."""
    if not CV2_AVAILABLE:
        return image
    plane = np.asarray(grayscale(image))
    return Image.fromarray(cv2.fastNlMeansDenoising(plane, None, h=10, templateWindowSize=7, searchWindowSize=21))


def deskew(image: Image.Image) -> Image.Image:
    """Rotate scanned text level using the minimum-area rectangle around the ink."""
    if not CV2_AVAILABLE:
        return image
    plane = np.asarray(grayscale(image))
    ink = plane < 128 if plane.mean() > 127 else plane > 127
    points = np.argwhere(ink)
    if len(points) < MIN_INK_POINTS:
        return image
    try:
        angle = cv2.minAreaRect(points.astype(np.float32))[-1]
    except cv2.error as e:
        logger.debug("Deskew skipped: %s", e)
        return image
    if angle > 45:
        angle -= 90
    elif angle < -45:
        angle += 90
    if abs(angle) < MIN_SKEW_DEG:
        return image
    fill = 255 if image.mode == "L" else (255,) * len(image.getbands())
    return image.rotate(angle, resample=Image.Resampling.BICUBIC, fillcolor=fill)


class ImagePreprocessor:
    """Ordered chain of image steps applied before recognition."""

    def __init__(self, steps: Sequence[PreprocessStep] = ()) -> None:
        self.steps = tuple(steps)

    @property
    def name(self) -> str:
        return "+".join(step.__name__ for step in self.steps) or "none"

    def preprocess(self, image: Image.Image) -> Image.Image:
        for step in self.steps:
            image = step(image)
        return image


def create_preprocessor(kind: str = "auto", deskew_pages: bool = True) -> ImagePreprocessor:
    """kind: 'none' | 'pil' (Pillow steps only) | 'opencv' | 'auto' (OpenCV steps when installed)."""
    k = (kind or "auto").strip().lower()
    if k == "none":
        return ImagePreprocessor()
    if k not in ("pil", "opencv", "auto"):
        raise ConfigError(f"Unknown preprocessor: {kind}. Use none, pil, opencv or auto.")
    use_cv2 = k != "pil" and CV2_AVAILABLE
    if k == "opencv" and not CV2_AVAILABLE:
        logger.warning("OpenCV not installed; preprocessing with Pillow only")
    steps: list[PreprocessStep] = [grayscale]
    if use_cv2 and deskew_pages:
        steps.append(deskew)
    steps += [upscale_small, sharpen_contrast]
    if use_cv2:
        steps.append(denoise)
    return ImagePreprocessor(steps)


# ---------------------------------------------------------------------------
# Result assembly
# ---------------------------------------------------------------------------


def _scaled_box(left: float, top: float, width: float, height: float, sx: float, sy: float) -> BoundingBox:
    return BoundingBox(x=int(left * sx), y=int(top * sy), width=int(width * sx), height=int(height * sy))


def build_result(
    texts: list[str],
    detections: list[OCRDetection],
    options: OCROptions,
    engine: str,
) -> OCRResult:
    """Aggregate per-image output. The threshold filters returned detections only, never text or confidence."""
    confidence = sum(d.confidence for d in detections) / len(detections) if detections else 0.0
    visible: tuple[OCRDetection, ...] = ()
    if options.output_format == "detailed":
        visible = tuple(d for d in detections if d.confidence >= options.confidence_threshold)
    return OCRResult(
        text="\n\n".join(t for t in texts if t),
        confidence=min(100.0, max(0.0, confidence)),
        detections=visible,
        language=options.language,
        engine=engine,
    )


class BaseOCRProvider(IOCRProvider):
    """Shared preprocessing and batching; subclasses implement _recognize_one."""

    def __init__(self, pool: LazyBackendPool | None = None) -> None:
        self._pool = pool or LazyBackendPool()

    def _preprocessor(self, options: OCROptions) -> ImagePreprocessor:
        return create_preprocessor("auto") if options.enhance_resolution else ImagePreprocessor()

    @abstractmethod
    def _backend(self, language: str) -> Any:
        """Initialized engine handle; raises DependencyError."""
        ...

    @abstractmethod
    def _recognize_one(self, backend: Any, image: Image.Image, language: str, index: int, scale: tuple[float, float]) -> tuple[str, list[OCRDetection]]:
        ...

    def recognize(
        self,
        images: Sequence[Image.Image | ExtractedImage],
        language: str,
        options: OCROptions | None = None,
    ) -> OCRResult:
        options = options or OCROptions(language=language)
        backend = self._backend(language)
        preprocessor = self._preprocessor(options)
        logger.debug("OCR: engine=%s preprocessor=%s images=%s", self.name, preprocessor.name, len(images))
        texts: list[str] = []
        detections: list[OCRDetection] = []
        for index, raw in enumerate(images):
            original = to_pil_image(raw)
            prepared = preprocessor.preprocess(original)
            scale = (original.width / prepared.width, original.height / prepared.height)
            text, found = self._recognize_one(backend, prepared, language, index, scale)
            texts.append(text.strip())
            detections.extend(found)
        return build_result(texts, detections, options, self.name)


# ---------------------------------------------------------------------------
# Tesseract
# ---------------------------------------------------------------------------


def probe_tesseract() -> str:
    """Return the Tesseract version; DependencyError when pytesseract or the binary is missing."""
    if not TESSERACT_AVAILABLE or pytesseract is None:
        raise DependencyError("pytesseract is not installed", backend="tesseract", reason=DependencyError.NOT_INSTALLED)
    try:
        return str(pytesseract.get_tesseract_version())
    except pytesseract.TesseractNotFoundError as e:
        raise DependencyError(
            "tesseract binary not found on PATH",
            backend="tesseract",
            reason=DependencyError.NOT_INSTALLED,
        ) from e


def _parse_conf(raw: Any) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return -1.0


def _tesseract_detections(data: dict[str, list[Any]], index: int, scale: tuple[float, float]) -> list[OCRDetection]:
    out: list[OCRDetection] = []
    for i, word in enumerate(data.get("text", [])):
        conf = _parse_conf(data["conf"][i])
        if conf < 0 or not str(word).strip():
            continue
        box = _scaled_box(data["left"][i], data["top"][i], data["width"][i], data["height"][i], *scale)
        out.append(OCRDetection(text=str(word).strip(), confidence=conf, bbox=box, image_index=index))
    return out


class TesseractOCRProvider(BaseOCRProvider):
    """Tesseract via pytesseract. Confidence is Tesseract's per-word 0-100 score."""

    name = "tesseract"

    def __init__(self, pool: LazyBackendPool | None = None, config: str = TESSERACT_CONFIG) -> None:
        super().__init__(pool)
        self._config = config

    def _backend(self, language: str) -> Any:
        return self._pool.get(("tesseract",), "tesseract", probe_tesseract)

    def _recognize_one(self, backend: Any, image: Image.Image, language: str, index: int, scale: tuple[float, float]) -> tuple[str, list[OCRDetection]]:
        try:
            data = pytesseract.image_to_data(
                image, lang=language, config=self._config, output_type=pytesseract.Output.DICT
            )
            text = pytesseract.image_to_string(image, lang=language, config=self._config)
        except pytesseract.TesseractError as e:
            raise OCRError(f"Tesseract failed on image {index}: {e}", provider=self.name) from e
        return text, _tesseract_detections(data, index, scale)

    def check_available(self) -> tuple[bool, str]:
        if not TESSERACT_AVAILABLE:
            return False, "pytesseract is not installed"
        try:
            version = probe_tesseract()
        except DependencyError as e:
            return False, str(e)
        return True, f"tesseract {version}"


# ---------------------------------------------------------------------------
# EasyOCR
# ---------------------------------------------------------------------------


def easyocr_languages(language: str) -> tuple[str, ...]:
    """'eng+deu' -> ('en', 'de'). Unknown tags pass through unchanged."""
    tags = [t.strip() for t in (language or "eng").split("+") if t.strip()]
    return tuple(EASYOCR_LANGUAGES.get(t, t) for t in tags) or ("en",)


def build_easyocr_reader(languages: tuple[str, ...]) -> Any:
    if not EASYOCR_AVAILABLE or easyocr is None:
        raise DependencyError(
            "easyocr is not installed; pip install easyocr",
            backend="easyocr",
            reason=DependencyError.NOT_INSTALLED,
        )
    return easyocr.Reader(list(languages), gpu=False, verbose=False)


class EasyOCRProvider(BaseOCRProvider):
    """EasyOCR. One Reader per language set, created once through the pool."""

    name = "easyocr"

    def _backend(self, language: str) -> Any:
        langs = easyocr_languages(language)
        return self._pool.get(("easyocr", langs), "easyocr", lambda: build_easyocr_reader(langs))

    def _recognize_one(self, backend: Any, image: Image.Image, language: str, index: int, scale: tuple[float, float]) -> tuple[str, list[OCRDetection]]:
        import numpy as np_arr
        arr = np_arr.array(image.convert("RGB"))
        try:
            result = backend.readtext(arr)
        except (RuntimeError, ValueError) as e:
            raise OCRError(f"EasyOCR failed on image {index}: {e}", provider=self.name) from e
        found: list[OCRDetection] = []
        for points, text, conf in result:
            xs = [p[0] for p in points]
            ys = [p[1] for p in points]
            box = _scaled_box(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys), *scale)
            found.append(OCRDetection(text=str(text), confidence=float(conf) * 100.0, bbox=box, image_index=index))
        return "\n".join(d.text for d in found), found

    def check_available(self) -> tuple[bool, str]:
        if not EASYOCR_AVAILABLE:
            return False, "easyocr is not installed"
        return True, "easyocr (models load on first use)"


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_ocr_provider(engine: str = "tesseract", *, pool: LazyBackendPool | None = None) -> IOCRProvider:
    """Create OCR provider by engine name: 'tesseract' | 'easyocr'."""
    e = (engine or "tesseract").strip().lower()
    if e == "tesseract":
        return TesseractOCRProvider(pool=pool)
    if e == "easyocr":
        return EasyOCRProvider(pool=pool)
    raise ConfigError(f"Unknown OCR engine: {engine}. Use tesseract or easyocr.")
