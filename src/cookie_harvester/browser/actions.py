"""
Element interaction helpers.

Reusable checks and best-effort clicks used by the page visitor's
interaction pass.
"""

from playwright.async_api import ElementHandle

from cookie_harvester.utils.logging import get_logger

logger = get_logger(__name__)


async def is_clickable(handle: ElementHandle) -> bool:
    """
    Check if an element is visible, has a non-zero size and is not disabled.

    Any error while inspecting the element (e.g. it was detached by a
    page mutation) counts as not clickable.

    Args:
        handle: Element to inspect

    Returns:
        True if the element should be clicked
    """
    try:
        box = await handle.bounding_box()
        if not box or box["width"] == 0 or box["height"] == 0:
            return False

        if not await handle.is_visible():
            return False

        if await handle.get_attribute("disabled") is not None:
            return False

        return True

    except Exception as e:
        logger.debug(f"Element inspection failed: {e}")
        return False


async def safe_click(
    handle: ElementHandle,
    timeout_ms: int | None = None,
) -> bool:
    """
    Click an element, swallowing and logging any failure.

    Args:
        handle: Element to click
        timeout_ms: Maximum wait for the element to become actionable

    Returns:
        True if click succeeded, False otherwise
    """
    try:
        await handle.click(timeout=timeout_ms)
        return True

    except Exception as e:
        logger.debug(f"Click failed, continuing: {e}")
        return False
