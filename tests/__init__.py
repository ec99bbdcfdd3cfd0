"""
Test suite for the Cookie Harvester.

Unit tests for each module plus crawl scenarios run against an
in-memory browsing engine (see conftest.py).
"""
