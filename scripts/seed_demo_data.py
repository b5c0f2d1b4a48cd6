#!/usr/bin/env python3
"""Seed demo users and a shared trip, then print access tokens.

Usage:
    python -m scripts.seed_demo_data [--title "Lisbon 2026"] [--outsider]

Creates two members (creator + participant) and, with ``--outsider``,
a third user who is not part of the trip. Tokens are printed so the
WebSocket endpoint can be exercised with any client:

    ws://localhost:8000/api/v1/ws?token=<token>
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from uuid import uuid4

from application.services.token_service import TokenService
from domain.trip.entity import Trip
from domain.user.entity import User
from infrastructure.database import create_tables
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


async def seed(title: str, with_outsider: bool) -> int:
    await create_tables()
    suffix = uuid4().hex[:6]
    tokens = TokenService()

    async with SQLAlchemyUnitOfWork() as uow:
        alice = await uow.user_repository.create(User.new("Alice", f"alice-{suffix}@example.com"))
        bob = await uow.user_repository.create(User.new("Bob", f"bob-{suffix}@example.com"))
        users = [alice, bob]
        if with_outsider:
            users.append(
                await uow.user_repository.create(User.new("Mallory", f"mallory-{suffix}@example.com"))
            )
        trip = await uow.trip_repository.create(Trip(id=None, title=title, created_by=alice.id, participants=[bob.id]))

    print(f"trip_id={trip.id} title={trip.title!r}")
    for user in users:
        role = "creator" if user.id == trip.created_by else ("participant" if user.id in trip.participants else "outsider")
        print(f"{user.name:<8} id={user.id:<4} role={role:<11} token={tokens.create_access_token(user)}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--title", default="Demo trip")
    parser.add_argument("--outsider", action="store_true", help="also create a user outside the trip")
    args = parser.parse_args()
    return asyncio.run(seed(args.title, args.outsider))


if __name__ == "__main__":
    sys.exit(main())
