"""
Test suite for the Product Import Engine.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_markup_service.py -v
"""
