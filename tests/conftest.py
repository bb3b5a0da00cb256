from __future__ import annotations

import pytest

from fitsearch.context import ContextKind, ExecutionContext
from tests.fakes import SHOP, FakeTransport, catalog_routes


@pytest.fixture
def storefront_context() -> ExecutionContext:
    return ExecutionContext(kind=ContextKind.STOREFRONT, shop=SHOP, origin=f"https://{SHOP}")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport(catalog_routes())
