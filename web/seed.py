"""Seed the database with the bootstrap admin and a sample event. Run: python -m web.seed"""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from sqlalchemy import func, select

import config
from quizreg.models import Event, User, init_db
from quizreg.models.base import async_session_factory, utcnow
from quizreg.services import catalog
from web.auth import hash_password

logger = logging.getLogger("quizreg.seed")


async def seed() -> None:
    await init_db()
    async with async_session_factory() as session:
        if config.INITIAL_ADMIN_PASSWORD:
            existing = await session.execute(select(User).where(User.username == config.INITIAL_ADMIN_USERNAME))
            if existing.scalar_one_or_none() is None:
                session.add(User(
                    username=config.INITIAL_ADMIN_USERNAME,
                    password_hash=hash_password(config.INITIAL_ADMIN_PASSWORD),
                    role="admin",
                ))
                logger.info("Admin created: %s", config.INITIAL_ADMIN_USERNAME)
        else:
            logger.warning("INITIAL_ADMIN_PASSWORD not set - skipping admin user")

        event_count = (await session.execute(select(func.count(Event.id)))).scalar_one()
        if event_count == 0:
            event = await catalog.create_event(session, {
                "title": "Grand Quiz Tournament",
                "description": "Several rounds: history, science, pop culture and logic",
                "date": (utcnow() + timedelta(days=14)).replace(hour=17, minute=0, second=0, microsecond=0),
                "start_time": "17:00",
                "duration": 240,
                "max_teams": 10,
                "min_team_size": 3,
                "max_team_size": 10,
                "location": "Main hall",
                "price": 15,
            })
            logger.info("Event created: %s", event.title)
        await session.commit()


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)
    asyncio.run(seed())
