"""Pytest configuration and shared fixtures."""
import pytest

import trackstate.config as config_module
from trackstate import TrackingCollection

from fakes import CustomerNode, EmailNode, EventRecorder, make_customer, make_email


@pytest.fixture(autouse=True)
def reset_tracking_config():
    """Restore the process default tracking config after each test."""
    original_default = config_module._default_config
    yield
    config_module._default_config = original_default


@pytest.fixture
def customer_model():
    """Fresh customer graph: one address, one email."""
    return make_customer()


@pytest.fixture
def customer(customer_model):
    """CustomerNode wrapping customer_model."""
    return CustomerNode(customer_model)


@pytest.fixture
def email_a():
    return EmailNode(make_email("first@fakedomain.com", "first"))


@pytest.fixture
def email_b():
    return EmailNode(make_email("second@fakedomain.com", "second"))


@pytest.fixture
def email_c():
    return EmailNode(make_email("third@fakedomain.com", "third"))


@pytest.fixture
def emails(email_a, email_b):
    """Standalone collection with baseline [email_a, email_b]."""
    return TrackingCollection([email_a, email_b])


@pytest.fixture
def recorder():
    return EventRecorder()
