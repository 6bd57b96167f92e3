import asyncio
import unittest
from datetime import date, timedelta

from support import APP_ID, PASSWORD, StoreTestCase

from wholesale.db import crud
from wholesale.db.errors import ValidationError
from wholesale.db.models import CANCELLED, DELIVERED, PENDING, RFQ_CLOSED, SHIPPED, Quote
from wholesale.utils.pure import average_rating, conversation_id


class MarketplaceTestCase(StoreTestCase):
    async def asyncSetUp(self):
        self.seller = await self.make_actor("supplier@example.com", "wholesaler", "Northwind")
        self.buyer = await self.make_actor("shop@example.com", "retailer", "Corner Grocer", "5 Market Rd")
        self.coffee = await crud.add_product(
            self.seller.gw, self.seller.profile, "Coffee Beans", "Highland", "Beverages",
            "14.50", "10", "500", "Arabica, 1kg bags",
        )
        self.rice = await crud.add_product(
            self.seller.gw, self.seller.profile, "Basmati Rice", "Golden", "Grocery", 9.9, 20, 400,
        )

    async def stock_of(self, pid):
        return (await crud.get_product(self.buyer.gw, pid)).stock


class ProductTestCase(MarketplaceTestCase):
    async def test_catalog_filters(self):
        gw = self.buyer.gw
        self.assertEqual([p.name for p in await crud.list_products(gw)], ["Basmati Rice", "Coffee Beans"])
        self.assertEqual([p.id for p in await crud.list_products(gw, category="beverages")], [self.coffee])
        self.assertEqual([p.id for p in await crud.list_products(gw, max_price=9.9)], [self.rice])
        self.assertEqual([p.id for p in await crud.list_products(gw, query="arabica")], [self.coffee])
        self.assertEqual(await crud.list_products(gw, category="Beverages", max_price=5), [])

        coffee = await crud.get_product(gw, self.coffee)
        self.assertEqual((coffee.price, coffee.moq, coffee.stock), (14.5, 10, 500))
        self.assertEqual(coffee.wholesaler_id, self.seller.uid)
        self.assertEqual(coffee.wholesaler_name, "Northwind")

    async def test_product_validation(self):
        with self.assertRaises(ValidationError):
            await crud.add_product(self.seller.gw, self.seller.profile, "", "b", "c", 1, 1, 1)
        with self.assertRaises(ValidationError):
            await crud.add_product(self.seller.gw, self.seller.profile, "X", "b", "c", -1, 1, 1)
        with self.assertRaises(ValidationError):
            await crud.add_product(self.seller.gw, self.seller.profile, "X", "b", "c", 1, 0, 1)
        with self.assertRaises(ValidationError):
            await crud.add_product(self.seller.gw, self.seller.profile, "X", "b", "c", 1, 1, "many")

    async def test_only_owner_edits_product(self):
        rival = await self.make_actor("rival@example.com", "wholesaler", "Rival Foods")
        with self.assertRaises(PermissionError):
            await crud.update_product(rival.gw, self.coffee, price=0.01)
        with self.assertRaises(PermissionError):
            await crud.update_product(self.buyer.gw, self.coffee, stock=0)
        coffee = await crud.get_product(self.buyer.gw, self.coffee)
        self.assertEqual((coffee.price, coffee.stock), (14.5, 500))
        self.assertFalse(await crud.update_product(self.seller.gw, "no-such-product", price=1))

    async def test_only_owner_or_admin_deletes_product(self):
        rival = await self.make_actor("rival@example.com", "wholesaler", "Rival Foods")
        with self.assertRaises(PermissionError):
            await crud.delete_product(rival.gw, self.coffee)
        self.assertIsNotNone(await crud.get_product(self.buyer.gw, self.coffee))

        admin = await self.make_actor("admin@example.com", "admin", "Hub")
        self.assertTrue(await crud.delete_product(admin.gw, self.coffee))
        self.assertIsNone(await crud.get_product(self.buyer.gw, self.coffee))
        # already gone
        self.assertTrue(await crud.delete_product(self.seller.gw, self.coffee))

    async def test_update_and_delete_product(self):
        self.assertTrue(await crud.update_product(self.seller.gw, self.coffee, price="12", stock=450))
        coffee = await crud.get_product(self.buyer.gw, self.coffee)
        self.assertEqual((coffee.name, coffee.price, coffee.stock), ("Coffee Beans", 12.0, 450))
        self.assertFalse(await crud.update_product(self.seller.gw, self.coffee))

        self.assertTrue(await crud.delete_product(self.seller.gw, self.coffee))
        self.assertIsNone(await crud.get_product(self.buyer.gw, self.coffee))


class OrderTestCase(MarketplaceTestCase):
    async def test_order_guards(self):
        with self.assertRaisesRegex(ValidationError, "Minimum order quantity is 10."):
            await crud.place_order(self.buyer.gw, self.buyer.profile, self.coffee, 5)
        with self.assertRaisesRegex(ValidationError, "Only 500 units in stock."):
            await crud.place_order(self.buyer.gw, self.buyer.profile, self.coffee, 501)
        with self.assertRaises(ValidationError):
            await crud.place_order(self.buyer.gw, self.buyer.profile, self.coffee, "lots")
        with self.assertRaises(ValidationError):
            await crud.place_order(self.buyer.gw, self.buyer.profile, "no-such-product", 10)
        self.assertEqual(await self.stock_of(self.coffee), 500)
        self.assertEqual(await crud.list_orders(self.buyer.gw), [])

    async def test_place_order_writes_both_copies(self):
        order = await crud.place_order(self.buyer.gw, self.buyer.profile, self.coffee, 20)
        self.assertEqual(order.status, PENDING)
        self.assertEqual(order.total, 290.0)
        self.assertEqual(order.shipping_address, "5 Market Rd")
        self.assertEqual(await self.stock_of(self.coffee), 480)

        mine = await crud.list_orders(self.buyer.gw)
        theirs = await crud.list_orders(self.seller.gw)
        self.assertEqual([o.id for o in mine], [order.id])
        self.assertEqual([o.id for o in theirs], [order.id])
        self.assertEqual(theirs[0].buyer_name, "Corner Grocer")

        notes = await crud.list_notifications(self.seller.gw)
        self.assertEqual(len(notes), 1)
        self.assertIn("Coffee Beans", notes[0].text)

    async def test_concurrent_orders_never_oversell(self):
        await crud.update_product(self.seller.gw, self.rice, stock=30)
        results = await asyncio.gather(
            crud.place_order(self.buyer.gw, self.buyer.profile, self.rice, 20),
            crud.place_order(self.buyer.gw, self.buyer.profile, self.rice, 20),
            return_exceptions=True,
        )
        placed = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, ValidationError)]
        self.assertEqual((len(placed), len(failed)), (1, 1))
        self.assertEqual(await self.stock_of(self.rice), 10)

    async def test_status_transitions_and_tracking(self):
        order = await crud.place_order(self.buyer.gw, self.buyer.profile, self.coffee, 10)

        # buyers cannot ship
        with self.assertRaises(ValidationError):
            await crud.update_order_status(self.buyer.gw, order.id, SHIPPED)
        with self.assertRaises(ValidationError):
            await crud.update_order_status(self.seller.gw, order.id, DELIVERED)
        with self.assertRaises(ValidationError):
            await crud.update_order_status(self.seller.gw, order.id, "Lost")

        shipped = await crud.update_order_status(self.seller.gw, order.id, SHIPPED)
        self.assertRegex(shipped.tracking_number, r"^TRK[A-Z0-9]{9}$")
        for gw in (self.buyer.gw, self.seller.gw):
            copy = (await crud.list_orders(gw))[0]
            self.assertEqual(copy.status, SHIPPED)
            self.assertEqual(copy.tracking_number, shipped.tracking_number)

        buyer_notes = await crud.list_notifications(self.buyer.gw)
        self.assertTrue(any(shipped.tracking_number in n.text for n in buyer_notes))

        with self.assertRaises(ValidationError):
            await crud.update_order_status(self.buyer.gw, order.id, CANCELLED)

        delivered = await crud.update_order_status(self.seller.gw, order.id, DELIVERED)
        self.assertEqual(delivered.status, DELIVERED)
        self.assertEqual(delivered.tracking_number, shipped.tracking_number)
        with self.assertRaises(ValidationError):
            await crud.update_order_status(self.seller.gw, order.id, SHIPPED)

    async def test_cancel_restocks(self):
        order = await crud.place_order(self.buyer.gw, self.buyer.profile, self.coffee, 40)
        self.assertEqual(await self.stock_of(self.coffee), 460)
        cancelled = await crud.update_order_status(self.buyer.gw, order.id, CANCELLED)
        self.assertEqual(cancelled.status, CANCELLED)
        self.assertIsNone(cancelled.tracking_number)
        self.assertEqual(await self.stock_of(self.coffee), 500)
        self.assertEqual((await crud.list_orders(self.seller.gw))[0].status, CANCELLED)
        with self.assertRaises(ValidationError):
            await crud.update_order_status(self.buyer.gw, order.id, CANCELLED)


class RfqTestCase(MarketplaceTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.seller2 = await self.make_actor("bulk@example.com", "wholesaler", "Bulk Co")
        self.rfq_id = await crud.create_rfq(
            self.buyer.gw, self.buyer.profile, "Olive oil, 200 bottles", "Extra virgin", "Grocery", 200
        )

    async def test_create_and_list(self):
        with self.assertRaises(ValidationError):
            await crud.create_rfq(self.buyer.gw, self.buyer.profile, " ", "", "", 1)
        with self.assertRaises(ValidationError):
            await crud.create_rfq(self.buyer.gw, self.buyer.profile, "T", "", "", 0)

        mine = await crud.list_my_rfqs(self.buyer.gw)
        self.assertEqual([r.id for r in mine], [self.rfq_id])
        self.assertEqual(mine[0].requester_name, "Corner Grocer")
        # own requests are not on the requester's board
        self.assertEqual(await crud.list_open_rfqs(self.buyer.gw), [])
        self.assertEqual([r.id for r in await crud.list_open_rfqs(self.seller.gw)], [self.rfq_id])

    async def test_read_modify_write_loses_a_quote(self):
        def quote_for(actor, price):
            return Quote(actor.uid, actor.profile.display_name, price).to_doc()

        # both sellers read before either writes
        doc1 = await self.seller.gw.fetch_one(crud.RFQS, self.rfq_id, public=True)
        doc2 = await self.seller2.gw.fetch_one(crud.RFQS, self.rfq_id, public=True)
        await self.seller.gw.set_merge(
            crud.RFQS, self.rfq_id, {"quotes": doc1["quotes"] + [quote_for(self.seller, 7.0)]}, public=True
        )
        await self.seller2.gw.set_merge(
            crud.RFQS, self.rfq_id, {"quotes": doc2["quotes"] + [quote_for(self.seller2, 6.5)]}, public=True
        )
        doc = await self.buyer.gw.fetch_one(crud.RFQS, self.rfq_id, public=True)
        self.assertEqual(len(doc["quotes"]), 1)

    async def test_concurrent_quotes_are_all_kept(self):
        await asyncio.gather(
            crud.submit_quote(self.seller.gw, self.seller.profile, self.rfq_id, 7.0, 5, "pallets"),
            crud.submit_quote(self.seller2.gw, self.seller2.profile, self.rfq_id, "6.5", 10),
        )
        mine = (await crud.list_my_rfqs(self.buyer.gw))[0]
        self.assertEqual(sorted(q.price for q in mine.quotes), [6.5, 7.0])
        public = (await crud.list_open_rfqs(self.seller.gw))[0]
        self.assertEqual(len(public.quotes), 2)
        self.assertEqual(len(await crud.list_notifications(self.buyer.gw)), 2)

    async def test_quote_validation(self):
        with self.assertRaises(ValidationError):
            await crud.submit_quote(self.seller.gw, self.seller.profile, self.rfq_id, 0)
        with self.assertRaises(ValidationError):
            await crud.submit_quote(self.seller.gw, self.seller.profile, self.rfq_id, 5, -1)
        with self.assertRaises(ValidationError):
            await crud.submit_quote(self.seller.gw, self.seller.profile, "missing", 5)

    async def test_accept_closes(self):
        await crud.submit_quote(self.seller.gw, self.seller.profile, self.rfq_id, 7.0)
        await crud.submit_quote(self.seller2.gw, self.seller2.profile, self.rfq_id, 6.5)
        with self.assertRaises(ValidationError):
            await crud.accept_quote(self.buyer.gw, self.rfq_id, 5)

        rfq = await crud.accept_quote(self.buyer.gw, self.rfq_id, 1)
        self.assertEqual(rfq.status, RFQ_CLOSED)
        self.assertEqual(rfq.accepted_quote.wholesaler_id, self.seller2.uid)
        self.assertEqual(await crud.list_open_rfqs(self.seller.gw), [])
        notes = await crud.list_notifications(self.seller2.gw)
        self.assertTrue(any("accepted" in n.text for n in notes))

        with self.assertRaises(ValidationError):
            await crud.submit_quote(self.seller.gw, self.seller.profile, self.rfq_id, 5)
        with self.assertRaises(ValidationError):
            await crud.close_rfq(self.buyer.gw, self.rfq_id)

    async def test_close_and_delete(self):
        rfq = await crud.close_rfq(self.buyer.gw, self.rfq_id)
        self.assertEqual(rfq.status, RFQ_CLOSED)
        self.assertIsNone(rfq.accepted_quote)
        await crud.delete_rfq(self.buyer.gw, self.rfq_id)
        self.assertEqual(await crud.list_my_rfqs(self.buyer.gw), [])
        self.assertIsNone(await self.seller.gw.fetch_one(crud.RFQS, self.rfq_id, public=True))


class OfferTestCase(MarketplaceTestCase):
    async def test_save_update_delete(self):
        today = date.today()
        start, end = today.isoformat(), (today + timedelta(days=7)).isoformat()
        gw = self.seller.gw
        offer_id = await crud.save_offer(gw, "Spring", "category", "Beverages", "15", start, end)
        self.assertIsNotNone(offer_id)
        self.assertEqual(
            await crud.save_offer(gw, "Spring sale", "category", "Beverages", 20, start, end, offer_id=offer_id),
            offer_id,
        )
        offers = await crud.list_offers(gw)
        self.assertEqual(len(offers), 1)
        self.assertEqual((offers[0].name, offers[0].discount), ("Spring sale", 20.0))
        # offers are private to the wholesaler
        self.assertEqual(await crud.list_offers(self.buyer.gw), [])

        self.assertTrue(await crud.delete_offer(gw, offer_id))
        self.assertEqual(await crud.list_offers(gw), [])

    async def test_validation(self):
        gw = self.seller.gw
        cases = [
            ("", "product", "x", 10, "2024-01-01", "2024-01-31"),
            ("A", "flash", "x", 10, "2024-01-01", "2024-01-31"),
            ("A", "product", "x", 0, "2024-01-01", "2024-01-31"),
            ("A", "product", "x", 101, "2024-01-01", "2024-01-31"),
            ("A", "product", "x", 10, "01/01/2024", "2024-01-31"),
            ("A", "product", "x", 10, "2024-02-01", "2024-01-31"),
        ]
        for args in cases:
            with self.subTest(args=args), self.assertRaises(ValidationError):
                await crud.save_offer(gw, *args)


class SavedListTestCase(MarketplaceTestCase):
    async def test_lists(self):
        gw = self.buyer.gw
        with self.assertRaises(ValidationError):
            await crud.create_saved_list(gw, "  ")
        list_id = await crud.create_saved_list(gw, "Weekly")
        self.assertTrue(await crud.add_to_saved_list(gw, list_id, self.coffee))
        self.assertTrue(await crud.add_to_saved_list(gw, list_id, self.rice))
        self.assertTrue(await crud.add_to_saved_list(gw, list_id, self.coffee))
        lists = await crud.list_saved_lists(gw)
        self.assertEqual(lists[0].product_ids, (self.coffee, self.rice))

        await crud.remove_from_saved_list(gw, list_id, self.coffee)
        self.assertEqual((await crud.list_saved_lists(gw))[0].product_ids, (self.rice,))
        self.assertTrue(await crud.delete_saved_list(gw, list_id))
        self.assertEqual(await crud.list_saved_lists(gw), [])


class MessageTestCase(MarketplaceTestCase):
    async def test_conversation(self):
        with self.assertRaises(ValidationError):
            await crud.send_message(self.buyer.gw, self.seller.uid, "   ")
        with self.assertRaises(ValidationError):
            await crud.send_message(self.buyer.gw, self.buyer.uid, "hi me")

        await crud.send_message(self.buyer.gw, self.seller.uid, "Do you ship to Leeds?")
        await crud.send_message(self.seller.gw, self.buyer.uid, "Yes, 2 days.")

        for actor, other in ((self.buyer, self.seller), (self.seller, self.buyer)):
            conv = await crud.list_conversation(actor.gw, other.uid)
            self.assertEqual([m.text for m in conv], ["Do you ship to Leeds?", "Yes, 2 days."])
            self.assertEqual(conv[0].conversation_id, conversation_id(self.buyer.uid, self.seller.uid))
            self.assertEqual(await crud.list_partners(actor.gw), [other.uid])

    def test_partners_most_recent_first(self):
        docs = [
            {"sender_id": "me", "receiver_id": "a", "created_at": "2024-01-01"},
            {"sender_id": "b", "receiver_id": "me", "created_at": "2024-01-03"},
            {"sender_id": "a", "receiver_id": "me", "created_at": "2024-01-02"},
        ]
        self.assertEqual(crud.partners_of("me", docs), ["b", "a"])


class ReviewTestCase(MarketplaceTestCase):
    async def test_reviews(self):
        with self.assertRaises(ValidationError):
            await crud.add_review(self.buyer.gw, self.buyer.profile, self.coffee, 6)
        await crud.add_review(self.buyer.gw, self.buyer.profile, self.coffee, 5, "Great")
        await crud.add_review(self.seller.gw, self.seller.profile, self.coffee, "4")
        await crud.add_review(self.buyer.gw, self.buyer.profile, self.rice, 1)
        reviews = await crud.list_reviews(self.buyer.gw, self.coffee)
        self.assertEqual(len(reviews), 2)
        self.assertEqual(average_rating(reviews), 4.5)
        self.assertEqual({r.reviewer_name for r in reviews}, {"Corner Grocer", "Northwind"})


class NotificationTestCase(MarketplaceTestCase):
    async def test_mark_read_and_clear(self):
        await crud.notify(self.buyer.gw, self.buyer.uid, "one")
        await crud.notify(self.seller.gw, self.buyer.uid, "two")
        notes = await crud.list_notifications(self.buyer.gw)
        self.assertEqual(len(notes), 2)
        self.assertFalse(any(n.read for n in notes))

        self.assertTrue(await crud.mark_notification_read(self.buyer.gw, notes[0].id))
        notes = await crud.list_notifications(self.buyer.gw)
        self.assertEqual(sum(n.read for n in notes), 1)

        self.assertEqual(await crud.clear_notifications(self.buyer.gw), 2)
        self.assertEqual(await crud.list_notifications(self.buyer.gw), [])


class ProfileAndAdminTestCase(MarketplaceTestCase):
    async def test_profile_keeps_role_on_edit(self):
        gw = self.buyer.gw
        self.assertTrue(await crud.save_profile(gw, "Corner Grocer Ltd", "Sam", "555", "6 Market Rd"))
        profile = await crud.get_profile(gw)
        self.assertEqual((profile.company_name, profile.role), ("Corner Grocer Ltd", "retailer"))
        self.assertEqual(profile.email, "shop@example.com")
        with self.assertRaises(ValidationError):
            await crud.save_profile(gw, "")
        with self.assertRaises(ValidationError):
            await crud.save_profile(gw, "X", role="superuser")
        # other users' profiles are readable by uid
        self.assertEqual((await crud.get_profile(self.seller.gw, self.buyer.uid)).company_name, "Corner Grocer Ltd")

    async def test_role_is_fixed_once_stored(self):
        with self.assertRaises(ValidationError):
            await crud.save_profile(self.seller.gw, "Northwind", role="admin")
        with self.assertRaises(ValidationError):
            await crud.save_profile(self.buyer.gw, "Corner Grocer", role="wholesaler")
        self.assertEqual((await crud.get_profile(self.seller.gw)).role, "wholesaler")
        self.assertEqual((await crud.get_profile(self.buyer.gw)).role, "retailer")

        # resending the stored role is a plain edit
        self.assertTrue(await crud.save_profile(self.seller.gw, "Northwind Ltd", role="wholesaler"))
        self.assertEqual((await crud.get_profile(self.seller.gw)).company_name, "Northwind Ltd")

    async def test_admin_cannot_be_chosen_at_sign_up(self):
        session = self.make_session()
        await session.signup("eager@example.com", PASSWORD)
        gw = self.make_gateway(session)
        with self.assertRaises(ValidationError):
            await crud.save_profile(gw, "Eager", role="admin")
        self.assertIsNone(await crud.get_profile(gw))

        await crud.grant_role(self.store, APP_ID, session.current.uid, "admin")
        self.assertEqual((await crud.get_profile(gw)).role, "admin")

    async def test_guest_has_no_profile(self):
        guest = self.make_session()
        await guest.start()
        gw = self.make_gateway(guest)
        self.assertIsNone(await crud.get_profile(gw))

    async def test_admin_listing(self):
        with self.assertRaises(PermissionError):
            await crud.list_users(self.buyer.gw, self.buyer.session)

        admin = await self.make_actor("admin@example.com", "admin", "Hub")
        users = await crud.list_users(admin.gw, admin.session)
        self.assertEqual(
            sorted((u.email, u.role) for u in users),
            [
                ("admin@example.com", "admin"),
                ("shop@example.com", "retailer"),
                ("supplier@example.com", "wholesaler"),
            ],
        )

        summary = await crud.platform_summary(admin.gw)
        self.assertEqual((summary["products"], summary["wholesalers"]), (2, 1))

    async def test_watch_feeds(self):
        snapshots = []
        unsubscribe = await crud.watch(self.buyer.gw, "products", snapshots.append)
        self.assertEqual(len(snapshots[-1]), 2)
        await crud.delete_product(self.seller.gw, self.rice)
        self.assertEqual([d["id"] for d in snapshots[-1]], [self.coffee])
        unsubscribe()

        inbox = []
        await crud.watch(self.seller.gw, "messages", inbox.append)
        await crud.send_message(self.buyer.gw, self.seller.uid, "hello")
        self.assertEqual([m["text"] for m in inbox[-1]], ["hello"])
        with self.assertRaises(KeyError):
            await crud.watch(self.buyer.gw, "gossip", inbox.append)


if __name__ == "__main__":
    unittest.main()
