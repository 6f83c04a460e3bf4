"""
Shared pytest fixtures for the blinds quote test suite.

The database is forced to in-memory SQLite before the app is imported and
every test starts from empty tables.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlmodel import SQLModel

from blindquote.db.session import get_engine
from blindquote.models.quote import Customer, LineItem


@pytest.fixture(autouse=True)
def fresh_db():
    engine = get_engine()
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from blindquote.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def customer():
    return Customer(name="Jane Citizen", address="12 Example St, Parramatta NSW", phone="0400 000 000",
                    email="jane@example.com")


def _make_item(**overrides):
    data = dict(location="Living Room", product="Roller Blinds", category="Blockout", group=1,
                width=700, drop=1000, width_band=760, drop_band=1200, quantity=2,
                recess="Recess", unit_price=55, total_price=110)
    data.update(overrides)
    return LineItem(**data)


@pytest.fixture
def make_item():
    return _make_item


@pytest.fixture
def item():
    return _make_item()
