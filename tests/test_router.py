import unittest

from textual.screen import Screen

from wholesale.main import ROUTES
from wholesale.views.router import Route, ViewRouter


class AScreen(Screen):
    pass


class BScreen(Screen):
    pass


class ViewRouterTestCase(unittest.TestCase):
    def setUp(self):
        self.router = ViewRouter(
            {
                "retailer": [Route("catalog", "Catalog", AScreen), Route("orders", "Orders", BScreen)],
                "admin": [Route("users", "Users", BScreen)],
            }
        )

    def test_default_and_resolve(self):
        self.assertEqual(self.router.default_view("retailer"), "catalog")
        self.assertEqual(self.router.resolve("retailer", "orders").screen, BScreen)
        # unknown keys and other roles' keys land on the default view
        self.assertEqual(self.router.resolve("retailer", "nope").key, "catalog")
        self.assertEqual(self.router.resolve("admin", "catalog").key, "users")
        self.assertFalse(self.router.allowed("admin", "catalog"))
        self.assertTrue(self.router.allowed("retailer", "orders"))

    def test_unknown_role_falls_back_to_default_role(self):
        self.assertEqual(self.router.default_view(None), "catalog")
        self.assertEqual(self.router.nav_items("pirate"), [("catalog", "Catalog"), ("orders", "Orders")])

    def test_screens(self):
        self.assertEqual(
            self.router.screens(), {"catalog": AScreen, "orders": BScreen, "users": BScreen}
        )
        clash = ViewRouter(
            {"retailer": [Route("x", "X", AScreen)], "admin": [Route("x", "X", BScreen)]}
        )
        with self.assertRaises(ValueError):
            clash.screens()

    def test_rejects_empty_tables(self):
        with self.assertRaises(ValueError):
            ViewRouter({})
        with self.assertRaises(ValueError):
            ViewRouter({"retailer": []})


class AppRoutesTestCase(unittest.TestCase):
    def setUp(self):
        self.router = ViewRouter(ROUTES)

    def test_default_views(self):
        self.assertEqual(self.router.default_view("retailer"), "catalog")
        self.assertEqual(self.router.default_view("wholesaler"), "dashboard")
        self.assertEqual(self.router.default_view("admin"), "dashboard")

    def test_role_menus(self):
        keys = {role: [k for k, _ in self.router.nav_items(role)] for role in self.router.roles}
        self.assertEqual(
            keys["retailer"],
            ["catalog", "dashboard", "orders", "rfqs", "saved_lists", "messages", "notifications", "profile"],
        )
        self.assertEqual(
            keys["wholesaler"],
            ["dashboard", "inventory", "orders", "rfq_board", "offers", "messages", "notifications", "profile"],
        )
        self.assertEqual(
            keys["admin"], ["dashboard", "users", "inventory", "messages", "notifications", "profile"]
        )
        self.assertNotIn("inventory", keys["retailer"])
        self.assertNotIn("users", keys["wholesaler"])

    def test_shared_views_use_one_screen(self):
        screens = self.router.screens()
        self.assertEqual(len(screens), 12)


if __name__ == "__main__":
    unittest.main()
