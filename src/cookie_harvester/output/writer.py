"""
JSON result sink.

Writes the crawl result document once, at the end of a run:

    {
      "startedAt": "...",
      "visited": [...],
      "cookieLog": [{"url", "step", "timestamp", "cookies"}, ...]
    }
"""

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cookie_harvester.core.exceptions import OutputError
from cookie_harvester.utils.logging import get_logger

if TYPE_CHECKING:
    from cookie_harvester.crawler.orchestrator import CrawlResult

logger = get_logger(__name__)


def write_result(
    result: "CrawlResult",
    path: Path | str,
    indent: int = 2,
) -> Path:
    """
    Write the result document, creating parent directories as needed.

    Args:
        result: Finished crawl result
        path: Destination file
        indent: JSON indentation

    Returns:
        Path written

    Raises:
        OutputError: If the directory cannot be created or the file written
    """
    path = Path(path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(
            f"Failed to create output directory: {e}",
            path=str(path.parent),
        ) from e

    document = result.to_dict()

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=indent or None, ensure_ascii=False)
            f.write("\n")
    except (OSError, TypeError, ValueError) as e:
        raise OutputError(
            f"Failed to write results: {e}",
            path=str(path),
        ) from e

    logger.info(f"Results saved to {path}")
    return path


def load_result(path: Path | str) -> dict[str, Any]:
    """
    Read a previously written result document.

    Raises:
        OutputError: If the file is missing or not valid JSON
    """
    path = Path(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise OutputError(
            f"Failed to read results: {e}",
            path=str(path),
        ) from e
