"""Pytest configuration for serialdaemon tests."""

import pytest

from tests.mocks import FakeSerialDevice


@pytest.fixture
def device():
    fake = FakeSerialDevice()
    yield fake
    fake.release()
