import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from campusmart.core.database import Base, make_engine, make_sessionmaker
from campusmart.core.init_db import init_db
from campusmart.main import create_app
from campusmart.models.listing import Listing
from campusmart.models.user import User
from campusmart.websockets.registry import ConnectionRegistry
from tests.helpers import BUYER_ID, LISTING_ID, OUTSIDER_ID, SELLER_ID


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "test.db"
    # Схема и данные создаются синхронно: так им все равно, в каком цикле событий живет приложение
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        session.add_all(
            [
                User(id=BUYER_ID, first_name="Ann", last_name="Buyer"),
                User(id=SELLER_ID, first_name="Sam", last_name="Seller"),
                User(id=OUTSIDER_ID, first_name="Olga", last_name="Outsider"),
            ]
        )
        session.flush()
        session.add(Listing(id=LISTING_ID, seller_id=SELLER_ID, title="Desk lamp", price=15.0))
        session.commit()
    engine.dispose()
    return path


@pytest.fixture
def db_url(db_path):
    return f"sqlite+aiosqlite:///{db_path}"


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def client(db_url, registry):
    app = create_app(database_url=db_url, registry=registry)
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def db_session(db_url):
    engine = make_engine(db_url)
    await init_db(engine)
    factory = make_sessionmaker(engine)
    async with factory() as session:
        yield session
    await engine.dispose()
