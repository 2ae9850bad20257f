"""Shared pytest fixtures for the pricing engine tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from helpers import (  # noqa: E402
    InMemoryPromoCodes,
    InMemoryUsage,
    make_config,
    make_gateway,
    make_promo,
)


@pytest.fixture
def gateway():
    """Gateway serving the fixed USD table through a mocked session."""
    return make_gateway()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def promo_codes():
    return InMemoryPromoCodes(
        make_promo(),
        make_promo(
            id="promo-2",
            promo_code="SAVE20",
            discount_type="percentage",
            discount_value=20.0,
            maximum_discount=25.0,
        ),
    )


@pytest.fixture
def usage():
    return InMemoryUsage()
