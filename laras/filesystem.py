import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def read_score_text(path: str | Path) -> str:
    """
    Read a score file as UTF-8 text.

    A missing or unreadable file is treated as an empty score: the error is
    logged at debug level and ``""`` is returned.
    """
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Could not read score '%s': %s", path, exc)
        return ""
