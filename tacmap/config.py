"""Static configuration for the tactical map.

Values are plain module constants. Two can be overridden from the
environment when the module is first imported:

  * ``TACMAP_DATA_DIR``: where the JSON collections are kept.
  * ``TACMAP_LOG_LEVEL``: root log level name (default INFO).

All coordinates use (latitude, longitude) in WGS84.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

DATA_DIR = Path(
    os.environ.get("TACMAP_DATA_DIR", Path.home() / ".tacmap")
).expanduser()

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
LOG_LEVEL = getattr(
    logging, os.environ.get("TACMAP_LOG_LEVEL", "INFO").upper(), logging.INFO
)

# Initial view: Oslo
DEFAULT_CENTER = (59.9139, 10.7522)
DEFAULT_METERS_PER_PIXEL = 20.0
MIN_METERS_PER_PIXEL = 0.5
MAX_METERS_PER_PIXEL = 5000.0

# Click/drag pick radius on screen
HIT_TOLERANCE_PX = 12
# Pointer travel that turns a press into a drag
DRAG_THRESHOLD_PX = 4


def configure_logging() -> None:
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    root_logger.setLevel(LOG_LEVEL)
