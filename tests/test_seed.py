import unittest

from support import APP_ID, StoreTestCase

from wholesale.db import crud
from wholesale.db.identity import IdentityProvider
from wholesale.db.seed import DEMO_PASSWORD, DEMO_PRODUCTS, DEMO_USERS, seed_demo


class SeedTestCase(StoreTestCase):
    async def test_seed_once(self):
        provider = IdentityProvider(self.db_path)
        self.assertTrue(await seed_demo(self.store, provider, APP_ID))
        self.assertFalse(await seed_demo(self.store, provider, APP_ID))

        accounts = await provider.list_accounts()
        self.assertEqual(sorted(a.email for a in accounts), sorted(u[0] for u in DEMO_USERS))

        session = self.make_session()
        self.assertTrue((await session.login("supplier@wholesale.test", DEMO_PASSWORD)).success)
        gw = self.make_gateway(session)
        self.assertEqual((await crud.get_profile(gw)).role, "wholesaler")
        products = await crud.list_products(gw, wholesaler_id=session.current.uid)
        self.assertEqual(len(products), len(DEMO_PRODUCTS))

        await session.logout()
        self.assertTrue((await session.login("admin@wholesale.test", DEMO_PASSWORD)).success)
        self.assertEqual((await crud.get_profile(gw)).role, "admin")
        self.assertEqual(len(await session.list_users(gw)), len(DEMO_USERS))


if __name__ == "__main__":
    unittest.main()
