"""
Recording filename parser.

Call recordings are exported as
``<YYYY-MM-DD>_<HH-MM[-SS]>_<call type>_<source phone>_<destination phone>.<ext>``,
e.g. ``2024-01-15_10-30_โทรออก_0811111111_0822222222.mp3``.
"""
import logging
import re
from pathlib import PurePath
from typing import Optional

from call_analyzer.models.call import CallMetadata

logger = logging.getLogger(__name__)

_FILENAME_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})"
    r"_(?P<hour>\d{2})-(?P<minute>\d{2})(?:-(?P<second>\d{2}))?"
    r"_(?P<call_type>[^_]+)"
    r"_(?P<source>[^_]+)"
    r"_(?P<destination>[^_]+)$"
)


def parse_call_filename(filename: Optional[str]) -> Optional[CallMetadata]:
    """
    Extract call metadata from a structured recording filename.

    Returns None when the name does not follow the export pattern; callers
    treat that as "metadata unavailable", never as an error.
    """
    if not filename:
        return None

    # Browsers on Windows may send the full client path
    base_name = PurePath(filename.replace("\\", "/")).name
    stem = base_name.rsplit(".", 1)[0] if "." in base_name else base_name

    match = _FILENAME_PATTERN.match(stem.strip())
    if not match:
        logger.info(f"Filename does not match call export pattern: {base_name}")
        return None

    time = f"{match['hour']}:{match['minute']}"
    if match["second"]:
        time = f"{time}:{match['second']}"

    return CallMetadata(
        date=match["date"],
        time=time,
        call_type=match["call_type"],
        source_phone=match["source"],
        destination_phone=match["destination"],
        original_filename=base_name,
    )
