"""
Shared helpers for the content library.

JSON reading and ISO date parsing live here so the loader, the settings
layer, and the validator all agree on what a readable file and a valid
timestamp look like.
"""

import json
import logging
from datetime import date, datetime, timezone

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# JSON I/O
# ---------------------------------------------------------------------------

def read_json(path):
    """Read a JSON file.

    Parameters
    ----------
    path : str or pathlib.Path
        Path to the JSON file.

    Returns
    -------
    object
        Parsed JSON content.  ``OSError`` and ``json.JSONDecodeError``
        propagate; callers wrap them in :class:`LibraryLoadError`.
    """
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

def parse_timestamp(value):
    """Parse an ISO-8601 date or datetime string into a naive UTC datetime.

    Date-only strings become midnight of that day.  A trailing ``Z`` is
    accepted.  Aware datetimes are converted to UTC before the timezone is
    dropped, so any two parsed values can be compared.

    Returns ``None`` if *value* is not a string or cannot be parsed.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed_date = date.fromisoformat(text)
        except ValueError:
            return None
        return datetime(parsed_date.year, parsed_date.month, parsed_date.day)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
