# demo accounts and catalog for a fresh database
from typing import Dict, List, Tuple

from wholesale.db import crud, models
from wholesale.db.documents import DocumentStore
from wholesale.db.gateway import TenantGateway
from wholesale.db.identity import IdentityProvider
from wholesale.utils.logger import get_logger
from wholesale.utils.session import IdentityAdapter

_logger = get_logger(__name__)

DEMO_PASSWORD = "demo1234"

# email, role, company, contact
DEMO_USERS: List[Tuple[str, str, str, str]] = [
    ("admin@wholesale.test", "admin", "Wholesale Hub", "Platform Admin"),
    ("supplier@wholesale.test", "wholesaler", "Northwind Supply", "Dana Reyes"),
    ("shop@wholesale.test", "retailer", "Corner Grocer", "Sam Patel"),
]

DEMO_PRODUCTS: List[Dict] = [
    dict(name="Arabica Coffee Beans 1kg", brand="Highland", category="Beverages", price=14.5, moq=10, stock=500),
    dict(name="Green Tea 100 bags", brand="Leafline", category="Beverages", price=4.2, moq=24, stock=300),
    dict(name="Basmati Rice 5kg", brand="Golden Field", category="Grocery", price=9.9, moq=20, stock=400),
    dict(name="Olive Oil 1L", brand="Sole", category="Grocery", price=7.75, moq=12, stock=15),
    dict(name="Paper Towels 12 pack", brand="Softy", category="Household", price=11.0, moq=5, stock=120),
    dict(name="Dish Soap 500ml", brand="Clearwave", category="Household", price=1.8, moq=48, stock=960),
]


async def seed_demo(store: DocumentStore, provider: IdentityProvider, app_id: str) -> bool:
    """
    Create the demo users, their profiles and the supplier's products.
    Does nothing (returns False) when any account already exists.
    """
    if await provider.list_accounts():
        _logger.info("Database already has accounts, skipping demo data.")
        return False

    session = IdentityAdapter(provider)
    gw = TenantGateway(store, session, app_id)

    for email, role, company, contact in DEMO_USERS:
        result = await session.signup(email, DEMO_PASSWORD)
        if not result.success:
            _logger.error(f"Could not create demo user {email}: {result.error}")
            continue
        if role in models.SELF_SERVICE_ROLES:
            await crud.save_profile(gw, company, contact, role=role, email=email)
        else:
            await crud.save_profile(gw, company, contact, email=email)
            await crud.grant_role(store, app_id, session.current.uid, role)
        if role == "wholesaler":
            seller = await crud.get_profile(gw)
            for product in DEMO_PRODUCTS:
                await crud.add_product(gw, seller, description=f"{product['name']} by {product['brand']}.", **product)
        await session.logout()

    await provider.sign_out()
    _logger.info(f"Seeded {len(DEMO_USERS)} demo users (password {DEMO_PASSWORD!r}).")
    return True
