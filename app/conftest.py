"""
Pytest configuration shared by every app under app/.

Tests are marked unit, integration or e2e from their filename, so a quick
run can select e.g. `pytest -m unit`.
"""

import pytest


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full payment lifecycles)
    - test_*_service.py, test_tasks.py, test_registry.py, etc. → integration
    - test_models.py, test_fees.py, test_validators.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    # Filename patterns for each category
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_payment_service.py",
        "test_fee_config_service.py",
        "test_funding_account_service.py",
        "test_registry.py",
        "test_bank_verification.py",
        "test_crypto_service.py",
        "test_tasks.py",
        "test_notifications.py",
        "test_optimistic_locking.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_fees.py",
        "test_validators.py",
        "test_adapters.py",
        "test_exchange_rates.py",
        "test_state_transitions.py",
        "test_locks.py",
        "test_services.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = item.path.name

        # Check patterns in priority order
        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)
