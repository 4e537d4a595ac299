"""Seed demo Madhubani profiles and a few interests for local development."""
import asyncio
import sys
import uuid
from datetime import timedelta
sys.path.insert(0, ".")

from sqlalchemy import select
from matchcore.database import Base, get_engine, get_session_factory
from matchcore.models import Interest, Profile
from matchcore.utils.timeutils import utcnow


DEMO_PROFILES = [
    {
        "name": "Aarav", "age": 28, "gender": "male", "district": "Madhubani",
        "block": "Jainagar", "village": "Deepa", "education": "Master's Degree",
        "occupation": "Engineer", "skills": ["cooking", "cricket", "technology"],
        "sect": "Maithil Brahmin", "religious_practice": "Daily puja",
        "family_background": "Joint family of teachers and farmers with strong traditional values",
        "family_type": "joint", "marital_status": "single",
        "bio": "Software engineer who loves cricket, music and travelling with family",
    },
    {
        "name": "Priya", "age": 26, "gender": "female", "district": "Madhubani",
        "block": "Pandaul", "village": "Sarisab", "education": "Bachelor's Degree",
        "occupation": "Teacher", "skills": ["painting", "music", "cooking"],
        "sect": "Maithil Brahmin", "religious_practice": "Daily puja",
        "family_background": "Family of teachers with traditional values and Madhubani painting",
        "family_type": "joint", "marital_status": "single",
        "bio": "School teacher who paints Madhubani art and enjoys music and travelling",
    },
    {
        "name": "Neha", "age": 27, "gender": "female", "district": "Darbhanga",
        "block": "Benipur", "village": None, "education": "Doctorate",
        "occupation": "Doctor", "skills": ["reading", "yoga"],
        "sect": "Maithil Brahmin", "religious_practice": "Festivals only",
        "family_background": "Nuclear family of doctors",
        "family_type": "nuclear", "marital_status": "single",
        "bio": "Doctor at a district hospital, reading and yoga every morning",
    },
    {
        "name": "Rohan", "age": 30, "gender": "male", "district": "Sitamarhi",
        "block": "Dumra", "village": None, "education": "Bachelor's Degree",
        "occupation": "Business", "skills": ["travel", "photography"],
        "sect": "Kayastha", "religious_practice": "Weekly temple visits",
        "family_background": "Business family dealing in makhana trade",
        "family_type": "joint", "marital_status": "single",
        "bio": "Running the family makhana business, fond of photography and travel",
    },
]


async def seed():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with get_session_factory()() as session:
        seeded: dict[str, Profile] = {}
        for data in DEMO_PROFILES:
            existing = await session.execute(select(Profile).where(Profile.name == data["name"]))
            profile = existing.scalar_one_or_none()
            if profile is None:
                profile = Profile(
                    user_id=uuid.uuid4(),
                    is_verified=True,
                    is_profile_complete=True,
                    last_active_at=utcnow(),
                    **data,
                )
                session.add(profile)
                print(f"  Seeded profile {data['name']} ({data['district']})")
            else:
                print(f"  Profile {data['name']} already exists, skipping.")
            seeded[data["name"]] = profile
        await session.flush()

        aarav, priya = seeded["Aarav"], seeded["Priya"]
        existing = await session.execute(select(Interest).where(Interest.sender_id == aarav.user_id))
        if existing.first() is None:
            now = utcnow()
            session.add_all([
                Interest(
                    sender_id=aarav.user_id, receiver_id=priya.user_id, status="accepted",
                    message="I also love music and travel", sent_at=now - timedelta(hours=30),
                    responded_at=now - timedelta(hours=20),
                ),
                Interest(
                    sender_id=priya.user_id, receiver_id=aarav.user_id, status="accepted",
                    message="Music and cooking bring our families together", sent_at=now - timedelta(hours=10),
                    responded_at=now - timedelta(hours=2),
                ),
            ])
            print("  Seeded reciprocal interests between Aarav and Priya")
        await session.commit()
    print("Done seeding profiles.")


if __name__ == "__main__":
    asyncio.run(seed())
