"""
Seed Demo Users

Creates one user per role and prints a bearer token for each, so the API
can be exercised locally without the external sign-in service:
- student@college.edu -> STUDENT
- faculty@college.edu -> FACULTY
- admin@college.edu   -> ADMIN

Run with: researchcell-seed          (create / update, print tokens)
          researchcell-seed list     (list demo users)
"""
import asyncio
import sys

from sqlalchemy import select

from researchcell.core.database import init_db, session_scope
from researchcell.core.security import create_access_token
from researchcell.models.user import User, UserRole


DEMO_USERS = [
    {"email": "student@college.edu", "name": "Demo Student", "role": UserRole.STUDENT},
    {"email": "faculty@college.edu", "name": "Demo Faculty", "role": UserRole.FACULTY},
    {"email": "admin@college.edu", "name": "Demo Admin", "role": UserRole.ADMIN},
]


def token_for(user: User) -> str:
    return create_access_token({"sub": user.id, "email": user.email, "role": user.role.value})


async def seed_demo_users():
    """Create or update demo users"""
    print("=" * 50)
    print("Seeding Demo Users...")
    print("=" * 50)

    await init_db()

    async with session_scope() as db:
        created_count = 0
        updated_count = 0
        users = []

        for user_data in DEMO_USERS:
            email = user_data["email"]
            result = await db.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()

            if user:
                user.name = user_data["name"]
                user.role = user_data["role"]
                user.is_active = True
                updated_count += 1
                print(f"  Updated: {email} ({user_data['role'].value})")
            else:
                user = User(email=email, name=user_data["name"], role=user_data["role"], is_active=True)
                db.add(user)
                created_count += 1
                print(f"  Created: {email} ({user_data['role'].value})")
            users.append(user)

        await db.commit()

        print("=" * 50)
        print("Demo Users Seeded Successfully!")
        print(f"  Created: {created_count}")
        print(f"  Updated: {updated_count}")
        print("=" * 50)
        print("\nBearer tokens:")
        for user in users:
            print(f"  {user.role.value:<8} {token_for(user)}")


async def list_demo_users():
    """List all demo users in the database"""
    await init_db()

    async with session_scope() as db:
        demo_emails = [u["email"] for u in DEMO_USERS]
        result = await db.execute(select(User).where(User.email.in_(demo_emails)))
        users = result.scalars().all()

        print("\nDemo Users in Database:")
        print("-" * 70)
        print(f"{'Email':<30} {'Role':<12} {'Active':<8} {'Id':<36}")
        print("-" * 70)

        for user in users:
            print(f"{user.email:<30} {user.role.value:<12} {str(user.is_active):<8} {user.id:<36}")

        if not users:
            print("No demo users found. Run 'researchcell-seed' to create them.")


def main():
    if len(sys.argv) > 1 and sys.argv[1] == "list":
        asyncio.run(list_demo_users())
    else:
        asyncio.run(seed_demo_users())


if __name__ == "__main__":
    main()
