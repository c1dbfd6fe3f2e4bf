"""Test suite for the SDHE indicator tracker.

This package contains tests for:
- Unit tests for the classification engine, ingestion, store and views
- Integration tests for S3 publishing and complete workflows
"""
