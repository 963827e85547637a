import piexif
import pytest

from verilens.app.errors import MetadataExtractionError
from verilens.app.verification.metadata_extractor import (
    ExifMetadataExtractor,
    extract_metadata,
)
from verilens.tests.fixtures.image_factory import (
    full_exif_dict,
    jpeg_with_app1,
    jpeg_with_exif,
    jpeg_without_exif,
)


def test_full_exif_is_summarized():
    summary = extract_metadata(jpeg_with_exif())

    assert summary.device_make == "Veri"
    assert summary.device_model == "Lens One"
    assert summary.iso == 100
    assert summary.exposure_time == pytest.approx(0.01)
    assert summary.f_number == pytest.approx(1.8)
    assert summary.timestamp == "2024-05-01T10:30:00+00:00"
    assert summary.orientation == 1


def test_gps_is_converted_to_signed_decimal_degrees():
    summary = extract_metadata(jpeg_with_exif())

    assert summary.latitude == pytest.approx(35.5)
    assert summary.longitude == pytest.approx(-120.25)
    assert summary.altitude == pytest.approx(120.0)


def test_jpeg_without_exif_yields_empty_summary():
    summary = extract_metadata(jpeg_without_exif())

    assert summary.model_dump(exclude_none=True) == {}


def test_malformed_capture_time_is_dropped():
    exif = full_exif_dict(with_gps=False)
    exif["Exif"][piexif.ExifIFD.DateTimeOriginal] = b"yesterday"

    summary = extract_metadata(jpeg_with_exif(exif))

    assert summary.timestamp is None
    assert summary.latitude is None


def test_unsupported_container_is_rejected():
    png_header = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16

    with pytest.raises(MetadataExtractionError) as exc_info:
        extract_metadata(png_header)

    assert exc_info.value.code == "METADATA_EXTRACTION_FAILED"


def test_corrupt_exif_segment_raises_extraction_error():
    corrupt = jpeg_with_app1(b"Exif\x00\x00" + b"\x00\x01")

    with pytest.raises(MetadataExtractionError):
        extract_metadata(corrupt)


@pytest.mark.anyio
async def test_async_extractor_delegates_to_parser():
    extractor = ExifMetadataExtractor()

    summary = await extractor.extract(jpeg_with_exif())

    assert summary.device_model == "Lens One"
