"""
CareSync Test Suite
===================

This package contains all tests for the CareSync adherence engine.

Test Structure:
- test_tools/: Pure helpers (scheduling, statistics, refill, import, PDF)
- test_services/: Service layer against an in-memory database
- test_api/: API endpoint tests for FastAPI routes
- test_config.py: Settings and table naming
- conftest.py: Shared pytest fixtures

Running Tests:
    # Run all tests
    pytest

    # Run specific test module
    pytest tests/test_api/

    # Run only marked tests
    pytest -m "unit"
    pytest -m "api"
    pytest -m "not slow"
"""
