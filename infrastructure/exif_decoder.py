"""Pillow-based EXIF decoder.

Reads the base TIFF IFD, the Exif sub-IFD and the GPS sub-IFD and maps the
tags the application understands onto attribute names. HEIC/HEIF support is
provided by pillow-heif's opener.
"""

from __future__ import annotations

from collections.abc import Callable
import io
from typing import Any

from PIL import ExifTags, Image
from loguru import logger
from pillow_heif import register_heif_opener

from core.models import ImageSource
from core.services.interfaces import MetadataDecodeError
from infrastructure.utils import clean_text, dms_to_degree, parse_exif_datetime, to_number

register_heif_opener()

_IFD = getattr(ExifTags, "IFD", None)
EXIF_IFD_TAG_ID = int(getattr(_IFD, "Exif", 0x8769))
GPS_IFD_TAG_ID = int(getattr(_IFD, "GPSInfo", 0x8825))

# attribute -> (tag id, converter)
_BASE_TAGS: dict[str, tuple[int, Callable[[Any], Any]]] = {
    "ImageWidth": (256, to_number),
    "ImageHeight": (257, to_number),
    "Make": (271, clean_text),
    "Model": (272, clean_text),
    "Orientation": (274, to_number),
    "ModifyDate": (306, parse_exif_datetime),
}

_EXIF_TAGS: dict[str, tuple[int, Callable[[Any], Any]]] = {
    "ExposureTime": (33434, to_number),
    "FNumber": (33437, to_number),
    "ISO": (34855, to_number),
    "DateTimeOriginal": (36867, parse_exif_datetime),
    "CreateDate": (36868, parse_exif_datetime),
    "FocalLength": (37386, to_number),
    "ExifImageWidth": (40962, to_number),
    "ExifImageHeight": (40963, to_number),
    "LensModel": (42036, clean_text),
}

# GPS IFD tag ids
_GPS_LAT_REF, _GPS_LAT, _GPS_LON_REF, _GPS_LON = 1, 2, 3, 4
_GPS_ALT_REF, _GPS_ALT = 5, 6
_GPS_SPEED, _GPS_IMG_DIRECTION = 13, 17


def _read_tags(
    ifd: Any, table: dict[str, tuple[int, Callable[[Any], Any]]]
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, (tag_id, convert) in table.items():
        raw = ifd.get(tag_id)
        if raw is None:
            continue
        value = convert(raw)
        if value is not None:
            out[name] = value
    return out


def _read_gps(gps: dict[int, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    lat = dms_to_degree(gps.get(_GPS_LAT), gps.get(_GPS_LAT_REF))
    lon = dms_to_degree(gps.get(_GPS_LON), gps.get(_GPS_LON_REF))
    if lat is not None and lon is not None:
        out["latitude"] = lat
        out["longitude"] = lon
    alt = to_number(gps.get(_GPS_ALT)) if gps.get(_GPS_ALT) is not None else None
    if alt is not None:
        ref = gps.get(_GPS_ALT_REF)
        # Ref 1 means below sea level
        if ref in (1, b"\x01"):
            alt = -alt
        out["altitude"] = float(alt)
    for name, tag_id in (("GPSSpeed", _GPS_SPEED), ("GPSImgDirection", _GPS_IMG_DIRECTION)):
        raw = gps.get(tag_id)
        value = to_number(raw) if raw is not None else None
        if value is not None:
            out[name] = value
    return out


def _load_ifd(exif: Any, ifd_tag_id: int) -> dict[int, Any]:
    try:
        data = exif.get_ifd(ifd_tag_id)
    except (KeyError, ValueError, TypeError, OSError) as ex:
        logger.debug("IFD {:#x} unreadable: {}", ifd_tag_id, ex)
        return {}
    return data if isinstance(data, dict) else {}


class PillowExifDecoder:
    """Decode EXIF attributes from image files or bytes using Pillow."""

    def decode(self, source: ImageSource) -> dict[str, Any]:
        """Return decoded attributes for `source`.

        Raises:
            MetadataDecodeError: The bytes could not be opened or parsed.
        """
        stream: Any = io.BytesIO(source.data) if source.data is not None else source.path
        if stream is None:
            raise MetadataDecodeError(f"{source.name}: no image data")
        try:
            with Image.open(stream) as im:
                exif = im.getexif()
                width, height = im.size
                attrs = _read_tags(exif, _BASE_TAGS)
                attrs.update(_read_tags(_load_ifd(exif, EXIF_IFD_TAG_ID), _EXIF_TAGS))
                attrs.update(_read_gps(_load_ifd(exif, GPS_IFD_TAG_ID)))
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as ex:
            # UnidentifiedImageError is an OSError subclass
            raise MetadataDecodeError(f"{source.name}: {ex}") from ex

        # Exif dimensions describe the stored pixels better than the TIFF ones
        attrs["ImageWidth"] = attrs.pop("ExifImageWidth", None) or attrs.get("ImageWidth") or width
        attrs["ImageHeight"] = (
            attrs.pop("ExifImageHeight", None) or attrs.get("ImageHeight") or height
        )
        return attrs
