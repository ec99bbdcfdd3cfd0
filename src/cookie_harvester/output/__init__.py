"""
Output module for the Cookie Harvester.

Persists the crawl result as a JSON document.
"""

from cookie_harvester.output.writer import write_result, load_result

__all__ = [
    "write_result",
    "load_result",
]
