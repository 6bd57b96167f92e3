import unittest

from support import PASSWORD, StoreTestCase

from wholesale.db import crud
from wholesale.db.models import SHIPPED, Product
from wholesale.utils.state import EntityCache, FeedSet, GlobalState


class EntityCacheTestCase(unittest.TestCase):
    def test_replace_upsert_remove(self):
        cache = EntityCache()
        self.assertFalse(cache.has("products"))
        self.assertEqual(cache.all("products"), [])

        cache.replace("products", [{"id": "b", "name": "B"}, {"id": "a", "name": "A"}])
        self.assertTrue(cache.has("products"))
        self.assertEqual([d["id"] for d in cache.all("products")], ["b", "a"])

        cache.upsert("products", {"id": "a", "name": "A2"})
        cache.upsert("products", {"id": "c", "name": "C"})
        self.assertEqual(cache.get("products", "a")["name"], "A2")
        cache.remove("products", "b")
        cache.remove("products", "missing")
        self.assertEqual([d["id"] for d in cache.all("products")], ["a", "c"])

        # a replace drops documents that left the feed
        cache.replace("products", [{"id": "c", "name": "C"}])
        self.assertIsNone(cache.get("products", "a"))

        cache.clear()
        self.assertFalse(cache.has("products"))

    def test_project(self):
        cache = EntityCache()
        cache.replace("products", [{"id": "p1", "name": "Tea", "price": 2, "moq": 1, "stock": 3}])
        (tea,) = cache.project("products", Product.from_doc)
        self.assertIsInstance(tea, Product)
        self.assertEqual((tea.name, tea.stock), ("Tea", 3))


class GlobalStateTestCase(StoreTestCase):
    async def test_guest_browses_as_retailer(self):
        session = self.make_session()
        await session.start()
        state = GlobalState(session)
        state.entities.replace("orders", [{"id": "stale"}])

        self.assertEqual(await state.load_profile(self.make_gateway(session)), "retailer")
        self.assertTrue(state.is_guest)
        self.assertIsNone(state.profile)
        self.assertFalse(state.entities.has("orders"))
        self.assertEqual(state.me.company_name, "Guest")
        self.assertEqual(state.me.uid, session.current.uid)

    async def test_role_comes_from_profile(self):
        actor = await self.make_actor("w@example.com", "wholesaler", "Northwind")
        state = GlobalState(actor.session)
        self.assertEqual(await state.load_profile(actor.gw), "wholesaler")
        self.assertFalse(state.is_guest)
        self.assertEqual(state.me.display_name, "Northwind")
        self.assertEqual(state.uid, actor.uid)

        state.reset()
        self.assertIsNone(state.role)
        self.assertIsNone(state.profile)

    async def test_account_without_profile_gets_default_role(self):
        session = self.make_session()
        await session.signup("bare@example.com", "secret123")
        state = GlobalState(session)
        self.assertEqual(await state.load_profile(self.make_gateway(session)), "retailer")
        self.assertFalse(state.is_guest)

    async def test_role_is_not_derived_from_email(self):
        # an email that looks like a supplier still gets the role stored in the profile
        actor = await self.make_actor("wholesale-supplier@example.com", "retailer", "Looks Like A Seller")
        state = GlobalState(actor.session)
        self.assertEqual(await state.load_profile(actor.gw), "retailer")

        admin = await self.make_actor("ops@example.com", "admin", "Hub")
        self.assertEqual(await GlobalState(admin.session).load_profile(admin.gw), "admin")


class FeedSetTestCase(StoreTestCase):
    async def asyncSetUp(self):
        self.seller = await self.make_actor("supplier@example.com", "wholesaler", "Northwind")
        self.product = await crud.add_product(
            self.seller.gw, self.seller.profile, "Coffee Beans", "Highland", "Beverages", 14.5, 10, 500
        )
        # one client whose users take turns, like the running app
        self.session = self.make_session()
        await self.session.start()
        self.gw = self.make_gateway(self.session)
        self.state = GlobalState(self.session)
        self.changes = []
        self.feeds = FeedSet(self.state, self.gw, self.changes.append)

    async def test_previous_users_feed_stops_at_logout(self):
        await self.session.signup("shop@example.com", PASSWORD)
        await crud.save_profile(self.gw, "Corner Grocer", address="5 Market Rd", role="retailer")
        await self.state.load_profile(self.gw)
        order = await crud.place_order(self.gw, self.state.me, self.product, 12)

        await self.feeds.start(["orders"])
        self.assertTrue(self.feeds.active)
        self.assertEqual([o["id"] for o in self.state.entities.all("orders")], [order.id])

        await self.session.logout()
        self.state.reset()
        self.assertFalse(self.feeds.active)

        self.assertTrue((await self.session.login("supplier@example.com", PASSWORD)).success)
        await self.state.load_profile(self.gw)
        seen = len(self.changes)
        # writes to the old user's space no longer reach the shared cache
        await crud.update_order_status(self.seller.gw, order.id, SHIPPED)
        self.assertEqual(len(self.changes), seen)
        self.assertFalse(self.state.entities.has("orders"))

        await self.feeds.start(["orders"])
        self.assertTrue(self.feeds.active)
        orders = self.state.entities.all("orders")
        self.assertEqual([(o["id"], o["status"]) for o in orders], [(order.id, SHIPPED)])
        self.assertEqual(orders[0]["seller_id"], self.state.uid)

    async def test_stop_and_restart_for_same_user(self):
        await self.feeds.start(["products"])
        self.assertEqual(len(self.state.entities.all("products")), 1)
        self.feeds.stop()
        self.assertFalse(self.feeds.active)
        await crud.delete_product(self.seller.gw, self.product)
        self.assertEqual(len(self.state.entities.all("products")), 1)

        await self.feeds.start(["products"])
        self.assertEqual(self.state.entities.all("products"), [])


if __name__ == "__main__":
    unittest.main()
