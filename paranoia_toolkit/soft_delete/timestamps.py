"""Clock and timestamp helpers for the lifecycle column."""

from datetime import datetime
from typing import Optional, Union

import pytz
from dateutil import parser as date_parser

from ..config import get_config

# Lifecycle column value meaning "not deleted".
INFINITY = datetime.max

Stamp = Union[datetime, str]


def current_time() -> datetime:
    """
    Return the current time in the configured timezone.

    The value is naive so it compares consistently with values read back
    from databases that do not store offsets.
    """
    zone = pytz.timezone(get_config().timezone)
    return datetime.now(zone).replace(tzinfo=None)


def parse_stamp(stamp: Optional[Stamp]) -> datetime:
    """Coerce a deletion stamp, defaulting to now and parsing strings."""
    if stamp is None:
        return current_time()
    if isinstance(stamp, str):
        stamp = date_parser.parse(stamp)
    if stamp.tzinfo is not None:
        zone = pytz.timezone(get_config().timezone)
        stamp = stamp.astimezone(zone).replace(tzinfo=None)
    return stamp
