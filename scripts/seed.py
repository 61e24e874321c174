# scripts/seed.py
"""
Seed dummy users and issues around a few city anchors for local development.
Users are get-or-created by username; issues are only added when an anchor
has fewer than the requested count.
"""

import argparse
import asyncio
import logging
import os
import random
import sys
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

# Run from the repo root
sys.path.append(os.path.abspath("."))

from app.db import SessionLocal
from app.models import Issue, IssueActivity, User
from app.schemas.issue import IssueCategory, IssuePriority, IssueSeverity, IssueStatus

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CityAnchor:
    name: str
    lat: float
    lng: float
    jitter: float = 0.03  # ~3km


CITY_ANCHORS: dict[str, CityAnchor] = {
    "pune": CityAnchor("Pune", 18.5204, 73.8567),
    "mumbai": CityAnchor("Mumbai", 19.0760, 72.8777),
    "bengaluru": CityAnchor("Bengaluru", 12.9716, 77.5946),
}

SEED_USERS = [
    ("citizen", "user"),
    ("reviewer", "moderator"),
    ("cityadmin", "admin"),
    ("fieldcrew", "user"),
]

TITLES = {
    IssueCategory.roads: "Pothole near the junction",
    IssueCategory.lighting: "Street light not working",
    IssueCategory.water_supply: "Water pipe leaking",
    IssueCategory.cleanliness: "Garbage not collected",
    IssueCategory.public_safety: "Open manhole on footpath",
    IssueCategory.obstructions: "Fallen tree blocking lane",
}


async def get_or_create_user(session: AsyncSession, username: str, role: str) -> User:
    user = (await session.execute(select(User).where(User.username == username))).scalar_one_or_none()
    if user is None:
        user = User(username=username, email=f"{username}@example.com", role=role)
        session.add(user)
        await session.flush()
    return user


async def seed_anchor(
    session: AsyncSession, anchor: CityAnchor, users: list[User], count: int, rng: random.Random
) -> int:
    lat_min, lat_max = anchor.lat - anchor.jitter, anchor.lat + anchor.jitter
    lng_min, lng_max = anchor.lng - anchor.jitter, anchor.lng + anchor.jitter
    existing = await session.scalar(
        select(func.count(Issue.id)).where(
            Issue.latitude.between(lat_min, lat_max),
            Issue.longitude.between(lng_min, lng_max),
        )
    )
    missing = max(0, count - int(existing or 0))

    for _ in range(missing):
        category = rng.choice(list(IssueCategory))
        anonymous = rng.random() < 0.2
        reporter = None if anonymous else rng.choice(users)
        issue = Issue(
            title=TITLES[category],
            description=f"{TITLES[category]} in {anchor.name}; reported by a resident.",
            category=category.value,
            status=rng.choice([IssueStatus.reported, IssueStatus.in_progress]).value,
            priority=rng.choice(list(IssuePriority)).value,
            severity=rng.choice(list(IssueSeverity)).value,
            latitude=round(rng.uniform(lat_min, lat_max), 6),
            longitude=round(rng.uniform(lng_min, lng_max), 6),
            address=anchor.name,
            reporter_id=None if reporter is None else reporter.id,
            is_anonymous=anonymous,
        )
        session.add(issue)
        await session.flush()
        session.add(
            IssueActivity(
                issue_id=issue.id,
                action="Created",
                details="Issue reported",
                actor_id=None if reporter is None else reporter.id,
                actor_name="Anonymous" if reporter is None else reporter.username,
            )
        )
    return missing


async def main(anchors: list[str], count: int, seed: int) -> None:
    rng = random.Random(seed)
    async with SessionLocal() as session:
        async with session.begin():
            users = [await get_or_create_user(session, name, role) for name, role in SEED_USERS]
            for key in anchors:
                added = await seed_anchor(session, CITY_ANCHORS[key], users, count, rng)
                logger.info("seeded %s: %d new issues", key, added)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed dummy users and issues")
    parser.add_argument(
        "--anchor",
        action="append",
        choices=sorted(CITY_ANCHORS),
        help="City anchor to seed (repeatable, default: all)",
    )
    parser.add_argument("--count", type=int, default=25, help="Issues per anchor")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    asyncio.run(main(args.anchor or sorted(CITY_ANCHORS), args.count, args.seed))
