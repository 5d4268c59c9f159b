"""scrapevault: fetch, render, deduplicate and store web content."""

__version__ = "0.1.0"
