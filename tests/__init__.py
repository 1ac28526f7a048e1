"""
EasyCare Test Suite
===================

Test organization:
- tests/unit/               - Unit tests (configuration, logging)
- tests/services/warranty/  - Warranty service tests (in-memory backends)

Run tests:
    pytest                          # All tests
    pytest tests/unit               # Unit tests only
    pytest --cov=services          # With coverage
"""
