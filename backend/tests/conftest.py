"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Settings are read at import time: point the app at SQLite and the
# in-process notifier before anything imports shared.config.settings.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOCAL_TIMEZONE"] = "Europe/Paris"
os.environ["BUSINESS_DAY_START_HOUR"] = "5"

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rest_api.main import app
from shared.infrastructure.db import get_db
from rest_api.models import (
    Base,
    Category,
    Ingredient,
    Product,
    RecipeLine,
    Table,
)
from rest_api.services.events import LocalChangeNotifier, get_change_notifier


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    """In-process notifier recording every published event."""
    return LocalChangeNotifier()


@pytest.fixture(scope="function")
def client(db_session, notifier):
    """
    Create a test client with database session and notifier overrides.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_change_notifier] = lambda: notifier

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def seed_ingredients(db_session):
    """
    Stock in storage units, prices per storage unit.

    Basil starts below its minimum stock.
    """
    ingredients = SimpleNamespace(
        flour=Ingredient(name="Flour", unit="kg", current_stock=10.0, minimum_stock=1.0, unit_price=2.0),
        mozzarella=Ingredient(
            name="Mozzarella", unit="kg", current_stock=3.0, minimum_stock=0.5, unit_price=12.0
        ),
        tomato_sauce=Ingredient(
            name="Tomato sauce", unit="L", current_stock=5.0, minimum_stock=1.0, unit_price=4.0
        ),
        cola=Ingredient(name="Cola can", unit="piece", current_stock=24.0, minimum_stock=6.0, unit_price=0.8),
        basil=Ingredient(name="Basil", unit="g", current_stock=20.0, minimum_stock=50.0, unit_price=0.05),
    )
    db_session.add_all(vars(ingredients).values())
    db_session.commit()
    return ingredients


@pytest.fixture
def seed_catalog(db_session, seed_ingredients):
    """
    Products with recipes.

    Unit costs: margherita 0.4 + 0.32 + 1.2 = 1.92, cola 0.8,
    bruschetta 0.1 + 0.25 = 0.35.
    """
    pizzas = Category(name="Pizzas")
    drinks = Category(name="Drinks")
    db_session.add_all([pizzas, drinks])
    db_session.flush()

    i = seed_ingredients
    margherita = Product(
        name="Margherita",
        sale_price=12.0,
        category_id=pizzas.id,
        is_best_seller=True,
        best_seller_rank=1,
        recipe_lines=[
            RecipeLine(ingredient_id=i.flour.id, position=0, quantity=200.0),
            RecipeLine(ingredient_id=i.tomato_sauce.id, position=1, quantity=80.0),
            RecipeLine(ingredient_id=i.mozzarella.id, position=2, quantity=100.0),
        ],
    )
    cola = Product(
        name="Cola",
        sale_price=3.0,
        category_id=drinks.id,
        is_best_seller=True,
        best_seller_rank=2,
        recipe_lines=[RecipeLine(ingredient_id=i.cola.id, position=0, quantity=1.0)],
    )
    bruschetta = Product(
        name="Bruschetta",
        sale_price=5.0,
        recipe_lines=[
            RecipeLine(ingredient_id=i.flour.id, position=0, quantity=50.0),
            RecipeLine(ingredient_id=i.basil.id, position=1, quantity=5.0),
        ],
    )
    calzone = Product(
        name="Calzone",
        sale_price=14.0,
        category_id=pizzas.id,
        is_available=False,
        recipe_lines=[RecipeLine(ingredient_id=i.flour.id, position=0, quantity=250.0)],
    )
    db_session.add_all([margherita, cola, bruschetta, calzone])
    db_session.commit()

    return SimpleNamespace(
        pizzas=pizzas,
        drinks=drinks,
        margherita=margherita,
        cola=cola,
        bruschetta=bruschetta,
        calzone=calzone,
        ingredients=i,
    )


@pytest.fixture
def seed_tables(db_session):
    """Two free tables."""
    t1 = Table(name="T1", capacity=4)
    t2 = Table(name="T2", capacity=2)
    db_session.add_all([t1, t2])
    db_session.commit()
    return SimpleNamespace(t1=t1, t2=t2)
