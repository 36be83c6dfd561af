import pytest

from pytest_smartseed import randomness
from pytest_smartseed.configuration import reset


@pytest.fixture(autouse=True)
def _fresh_configuration():
    reset()
    randomness.set_seed(1234)
    yield
    reset()
