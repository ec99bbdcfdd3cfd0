"""
CLI module for the Cookie Harvester.

Provides command-line interface using Typer:
- crawl: Crawl a website and save observed cookies
- report: Summarise a saved result
- config: Configuration management
"""

from cookie_harvester.cli.main import app

__all__ = ["app"]
