import asyncio
from datetime import timedelta

from inventrack.core.database import init_db
from inventrack.core.security import create_access_token
from inventrack.models.branch import Branch
from inventrack.services import inventory as inventory_store

DEMO_BRANCH = {
    "branch_id": "BR-001",
    "name": "InvenTrack Central",
    "location": "MG Road, Bengaluru",
    "phone": "080-4000-0001",
}

DEMO_PRODUCTS = [
    {"pid": "P1001", "name": "Basmati Rice 5kg", "brand": "India Gate", "category": "grocery", "price": 649.0, "quantity": 40},
    {"pid": "P1002", "name": "Sunflower Oil 1L", "brand": "Fortune", "category": "grocery", "price": 155.0, "quantity": 60},
    {"pid": "P1003", "name": "Cola 750ml", "brand": "Thums Up", "category": "drink", "price": 40.0, "quantity": 120},
    {"pid": "P1004", "name": "Notebook A5", "brand": "Classmate", "category": "stationery", "price": 55.0, "quantity": 8},
]


async def seed_demo_data() -> dict:
    """Create the demo branch and its stock. Safe to run twice."""
    created = {"branch": False, "products": 0}

    if not await Branch.find_one(Branch.branch_id == DEMO_BRANCH["branch_id"]):
        await Branch(**DEMO_BRANCH).insert()
        created["branch"] = True

    for product in DEMO_PRODUCTS:
        if await inventory_store.find_item(DEMO_BRANCH["branch_id"], product["pid"]):
            continue
        await inventory_store.add_item(DEMO_BRANCH["branch_id"], product)
        created["products"] += 1

    return created


def superadmin_token() -> str:
    return create_access_token(
        {"sub": "superadmin", "name": "Root SuperAdmin", "role": "superadmin", "branchId": None},
        expires_delta=timedelta(hours=12),
    )


async def main():
    print("🌱 Connecting to database...")
    await init_db()

    created = await seed_demo_data()
    print(f"✅ Branch created: {created['branch']}, products added: {created['products']}")
    print("------------------------------------------")
    print(f"🔑 Superadmin token (12h):\n{superadmin_token()}")
    print("------------------------------------------")

if __name__ == "__main__":
    asyncio.run(main())
