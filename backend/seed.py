import asyncio
from sqlalchemy import select
from courtqueue import db
from courtqueue.models import Court, Player, User

ADMIN_ID = "club-admin"


async def main():
    db.get_engine()
    async with db.AsyncSessionLocal() as s:
        if await s.get(User, ADMIN_ID) is None:
            s.add(User(id=ADMIN_ID, username="admin", role="admin"))
        if await s.get(User, "front-desk") is None:
            s.add(
                User(id="front-desk", username="frontdesk", role="staff", owner_id=ADMIN_ID)
            )
        await s.commit()

        existing_courts = {
            x.id for x in (await s.execute(select(Court))).scalars().all()
        }
        for cid, name in [
            ("court-1", "Court 1"),
            ("court-2", "Court 2"),
            ("court-3", "Court 3"),
        ]:
            if cid not in existing_courts:
                s.add(Court(id=cid, name=name, active=True, created_by=ADMIN_ID))
        await s.commit()

        existing_players = {
            x.id for x in (await s.execute(select(Player))).scalars().all()
        }
        for pid, name in [
            ("p-ana", "Ana"),
            ("p-ben", "Ben"),
            ("p-cleo", "Cleo"),
            ("p-dev", "Dev"),
            ("p-eli", "Eli"),
            ("p-fay", "Fay"),
        ]:
            if pid not in existing_players:
                s.add(Player(id=pid, full_name=name, created_by=ADMIN_ID))
        await s.commit()
    await db.dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
