"""
EXIF metadata extraction.

Parses the EXIF block of JPEG and TIFF images with piexif and reduces it
to a flat MetadataSummary. Only the container formats piexif can read
from memory are accepted; anything else is rejected up front so that
arbitrary bytes are never interpreted as a file path.

A JPEG without an APP1/EXIF segment is valid input and yields an empty
summary. Corrupt EXIF data raises MetadataExtractionError.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

import piexif

from verilens.app.errors import MetadataExtractionError
from verilens.app.schemas.verification import MetadataSummary

logger = logging.getLogger(__name__)

_JPEG_MAGIC = b"\xff\xd8"
_TIFF_MAGICS = (b"II*\x00", b"MM\x00*")

_EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


class MetadataExtractor(Protocol):
    async def extract(self, image_bytes: bytes) -> MetadataSummary:
        ...


# ----------------------------------------------------------------------
# Tag value coercion
# ----------------------------------------------------------------------

def _text(value: Any) -> Optional[str]:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if not isinstance(value, str):
        return None
    value = value.strip("\x00 ").strip()
    return value or None


def _integer(value: Any) -> Optional[int]:
    # Multi-valued SHORT tags (e.g. ISOSpeedRatings) arrive as tuples
    if isinstance(value, (tuple, list)) and value:
        value = value[0]
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _rational(value: Any) -> Optional[float]:
    if isinstance(value, (tuple, list)) and len(value) == 2:
        numerator, denominator = value
        if not denominator:
            return None
        return numerator / denominator
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


def _degrees(dms: Any, ref: Any) -> Optional[float]:
    if not isinstance(dms, (tuple, list)) or len(dms) != 3:
        return None

    parts = [_rational(part) for part in dms]
    if any(part is None for part in parts):
        return None

    degrees, minutes, seconds = parts
    decimal = degrees + minutes / 60.0 + seconds / 3600.0

    if _text(ref) in {"S", "W"}:
        decimal = -decimal
    return decimal


def _timestamp(value: Any) -> Optional[str]:
    raw = _text(value)
    if raw is None:
        return None
    try:
        parsed = datetime.strptime(raw, _EXIF_DATETIME_FORMAT)
    except ValueError:
        logger.debug("Ignoring malformed DateTimeOriginal: %r", raw)
        return None
    # EXIF carries no zone; treat capture time as UTC
    return parsed.replace(tzinfo=timezone.utc).isoformat()


def _altitude(gps: Dict[int, Any]) -> Optional[float]:
    altitude = _rational(gps.get(piexif.GPSIFD.GPSAltitude))
    if altitude is None:
        return None
    # GPSAltitudeRef 1 means below sea level
    if gps.get(piexif.GPSIFD.GPSAltitudeRef) == 1:
        altitude = -altitude
    return altitude


# ----------------------------------------------------------------------
# Extraction
# ----------------------------------------------------------------------

def summarize_exif(exif: Dict[str, Any]) -> MetadataSummary:
    """Reduce a piexif dictionary to a MetadataSummary."""
    zeroth = exif.get("0th") or {}
    exif_ifd = exif.get("Exif") or {}
    gps = exif.get("GPS") or {}

    return MetadataSummary(
        device_make=_text(zeroth.get(piexif.ImageIFD.Make)),
        device_model=_text(zeroth.get(piexif.ImageIFD.Model)),
        iso=_integer(exif_ifd.get(piexif.ExifIFD.ISOSpeedRatings)),
        exposure_time=_rational(exif_ifd.get(piexif.ExifIFD.ExposureTime)),
        f_number=_rational(exif_ifd.get(piexif.ExifIFD.FNumber)),
        latitude=_degrees(
            gps.get(piexif.GPSIFD.GPSLatitude),
            gps.get(piexif.GPSIFD.GPSLatitudeRef),
        ),
        longitude=_degrees(
            gps.get(piexif.GPSIFD.GPSLongitude),
            gps.get(piexif.GPSIFD.GPSLongitudeRef),
        ),
        altitude=_altitude(gps),
        timestamp=_timestamp(exif_ifd.get(piexif.ExifIFD.DateTimeOriginal)),
        orientation=_integer(zeroth.get(piexif.ImageIFD.Orientation)),
    )


def extract_metadata(image_bytes: bytes) -> MetadataSummary:
    """
    Parse EXIF tags from an in-memory JPEG or TIFF image.

    Raises:
        MetadataExtractionError: unsupported container or unreadable EXIF.
    """
    head = bytes(image_bytes[:4])
    if not (head.startswith(_JPEG_MAGIC) or head in _TIFF_MAGICS):
        raise MetadataExtractionError(
            "Failed to extract metadata: unsupported image container",
            details={"magic": head.hex()},
        )

    try:
        exif = piexif.load(bytes(image_bytes))
    except Exception as exc:
        raise MetadataExtractionError(
            f"Failed to extract metadata: {exc}"
        ) from exc

    summary = summarize_exif(exif)
    logger.debug(
        "Metadata extracted (%d populated fields)",
        len(summary.model_dump(exclude_none=True)),
    )
    return summary


class ExifMetadataExtractor:
    """Default MetadataExtractor backed by piexif."""

    async def extract(self, image_bytes: bytes) -> MetadataSummary:
        return extract_metadata(image_bytes)
