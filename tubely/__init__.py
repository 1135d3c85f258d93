"""Tubely: video and thumbnail ingest service."""

__version__ = "0.1.0"
