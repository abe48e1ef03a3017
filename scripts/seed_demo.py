"""Заполняет базу двумя пользователями и объявлением для ручных проверок."""
import asyncio

from campusmart.core.database import make_engine, make_sessionmaker
from campusmart.core.init_db import init_db
from campusmart.core.security import create_access_token
from campusmart.models.listing import Listing
from campusmart.models.user import User


async def main() -> None:
    engine = make_engine()
    await init_db(engine)
    async with make_sessionmaker(engine)() as session:
        buyer = User(first_name="Ann", last_name="Buyer")
        seller = User(first_name="Sam", last_name="Seller")
        session.add_all([buyer, seller])
        await session.flush()
        listing = Listing(seller_id=seller.id, title="Desk lamp", price=15.0)
        session.add(listing)
        await session.commit()
        print(f"buyer   {buyer.id}  token {create_access_token({'sub': buyer.id})}")
        print(f"seller  {seller.id}  token {create_access_token({'sub': seller.id})}")
        print(f"listing {listing.id}")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
