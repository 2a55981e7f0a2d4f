"""Database seeding script (demo treasurer and settlement)"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.append(str(Path(__file__).parent.parent))

from app.core.security import hash_password
from app.database import AsyncSessionLocal, init_db
from app.models.settlement import Settlement, SettlementStatus
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.schemas.settlement import SettlementData

DEMO_USER = {
    "email": "treasurer@example.com",
    "username": "treasurer",
    "password": "password123",
    "full_name": "Demo Treasurer",
}

# Dinner for four; Dave paid the wine himself
DEMO_SHEET = {
    "title": "Team dinner",
    "subtitle": "Friday, downtown",
    "participants": [
        {"id": 1, "name": "Alice"},
        {"id": 2, "name": "Bob"},
        {"id": 3, "name": "Carol"},
        {"id": 4, "name": "Dave"},
    ],
    "expenses": [
        {"id": 1, "itemName": "Dinner", "totalCost": 120000,
         "attendees": {"1": True, "2": True, "3": True, "4": True}},
        {"id": 2, "itemName": "Wine", "totalCost": 45000,
         "attendees": {"1": True, "2": True, "4": True}},
        {"id": 3, "itemName": "Taxi", "totalCost": 20000,
         "attendees": {"3": True, "4": True}},
    ],
    "personalDeductionItems": {
        "2": {"id": 2, "itemName": "Wine", "totalCost": 45000,
              "deductingParticipants": {"4": True}},
    },
    "paymentStatus": {"1": True},
}


async def seed():
    """Create the demo treasurer and one active settlement"""
    await init_db()

    async with AsyncSessionLocal() as session:
        user = await UserRepository.get_by_email_or_username(session, DEMO_USER["email"])
        if user:
            print(f"  ⏭️  User '{user.username}' already exists, skipping...")
            return

        user = await UserRepository.create(session, User(
            email=DEMO_USER["email"],
            username=DEMO_USER["username"],
            hashed_password=hash_password(DEMO_USER["password"]),
            full_name=DEMO_USER["full_name"],
            is_active=True
        ))
        print(f"  ✅ Created user '{user.username}' ({user.email})")

        sheet = SettlementData.model_validate(DEMO_SHEET)
        settlement = Settlement(owner_id=user.id, data=sheet.to_blob(), status=SettlementStatus.ACTIVE)
        session.add(settlement)
        await session.commit()
        print(f"  ✅ Created settlement '{sheet.title}' ({settlement.id})")
        print(f"\n🔐 Password for '{user.username}': {DEMO_USER['password']}")


async def main():
    """Main function to run seeding"""
    print("🌱 Seeding database with demo data...\n")

    try:
        await seed()
        print("\n✨ Database seeding completed successfully!")
    except Exception as e:
        print(f"\n❌ Error seeding database: {str(e)}")
        raise


if __name__ == "__main__":
    asyncio.run(main())
