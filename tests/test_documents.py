import asyncio
import unittest

from support import StoreTestCase

from wholesale.db.documents import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    Filter,
    Increment,
    merge_data,
)
from wholesale.db.errors import StoreError

COL = "tenant/app/public/data/things"


class MergeDataTestCase(unittest.TestCase):
    def test_merge_keeps_absent_fields_and_merges_maps(self):
        existing = {"a": 1, "b": {"x": 1, "y": 2}, "c": [1]}
        merged = merge_data(existing, {"b": {"y": 3}, "d": 4}, "now")
        self.assertEqual(merged, {"a": 1, "b": {"x": 1, "y": 3}, "c": [1], "d": 4})
        # input untouched
        self.assertEqual(existing["b"], {"x": 1, "y": 2})

    def test_sentinels(self):
        existing = {"n": 5, "tags": ["a", "b"], "gone": True}
        merged = merge_data(
            existing,
            {
                "n": Increment(-2),
                "tags": ArrayUnion("b", "c"),
                "gone": DELETE_FIELD,
                "ts": SERVER_TIMESTAMP,
                "fresh": ArrayRemove("x"),
            },
            "2024-01-01T00:00:00+00:00",
        )
        self.assertEqual(merged["n"], 3)
        self.assertEqual(merged["tags"], ["a", "b", "c"])
        self.assertNotIn("gone", merged)
        self.assertEqual(merged["ts"], "2024-01-01T00:00:00+00:00")
        self.assertEqual(merged["fresh"], [])

    def test_filter_rejects_unknown_operator(self):
        with self.assertRaises(ValueError):
            Filter("a", "like", "x")

    def test_filter_type_mismatch_never_matches(self):
        self.assertFalse(Filter("price", "<", 10).matches({"price": "cheap"}))
        self.assertTrue(Filter("missing", "!=", 1).matches({}))
        self.assertFalse(Filter("missing", "==", None).matches({}))


class DocumentStoreTestCase(StoreTestCase):
    async def test_set_get_and_merge(self):
        await self.store.set(COL, "d1", {"name": "Beans", "stock": 10, "meta": {"a": 1}})
        await self.store.set(COL, "d1", {"stock": 5, "meta": {"b": 2}}, merge=True)
        doc = await self.store.get(COL, "d1")
        self.assertEqual(doc.data, {"name": "Beans", "stock": 5, "meta": {"a": 1, "b": 2}})
        self.assertEqual(doc.to_dict()["id"], "d1")

        # a plain set replaces the body
        await self.store.set(COL, "d1", {"stock": 1})
        self.assertEqual((await self.store.get(COL, "d1")).data, {"stock": 1})

    async def test_add_generates_ids_and_resolves_timestamp(self):
        id1 = await self.store.add(COL, {"created_at": SERVER_TIMESTAMP})
        id2 = await self.store.add(COL, {"created_at": SERVER_TIMESTAMP})
        self.assertNotEqual(id1, id2)
        self.assertEqual(len(id1), 20)
        doc = await self.store.get(COL, id1)
        self.assertIsInstance(doc.data["created_at"], str)
        self.assertIn("T", doc.data["created_at"])

    async def test_update_requires_existing_document(self):
        with self.assertRaises(StoreError):
            await self.store.update(COL, "nope", {"a": 1})
        await self.store.set(COL, "d1", {"a": 1, "b": 2})
        await self.store.update(COL, "d1", {"a": 3})
        self.assertEqual((await self.store.get(COL, "d1")).data, {"a": 3, "b": 2})

    async def test_delete_missing_document_is_fine(self):
        await self.store.delete(COL, "never-existed")
        await self.store.set(COL, "d1", {"a": 1})
        await self.store.delete(COL, "d1")
        self.assertIsNone(await self.store.get(COL, "d1"))

    async def test_collections_are_separate(self):
        await self.store.set(COL, "d1", {"a": 1})
        await self.store.set(COL + "-other", "d1", {"a": 2})
        self.assertEqual([d.data["a"] for d in await self.store.query(COL)], [1])

    async def test_query_filters_order_and_limit(self):
        rows = [
            ("p1", {"name": "Tea", "price": 4.0, "tags": ["hot"], "cat": "Bev"}),
            ("p2", {"name": "Rice", "price": 9.5, "tags": [], "cat": "Grocery"}),
            ("p3", {"name": "Coffee", "price": 14.0, "tags": ["hot", "beans"], "cat": "Bev"}),
            ("p4", {"name": "Soap", "cat": "Household"}),
        ]
        for doc_id, data in rows:
            await self.store.set(COL, doc_id, data)

        async def ids(**kwargs):
            return [d.id for d in await self.store.query(COL, **kwargs)]

        self.assertEqual(await ids(filters=[Filter("cat", "==", "Bev")]), ["p1", "p3"])
        self.assertEqual(await ids(filters=[Filter("cat", "!=", "Bev")]), ["p2", "p4"])
        self.assertEqual(await ids(filters=[Filter("price", "<", 9.5)]), ["p1"])
        self.assertEqual(await ids(filters=[Filter("price", "<=", 9.5)]), ["p1", "p2"])
        self.assertEqual(await ids(filters=[Filter("price", ">", 9.5)]), ["p3"])
        self.assertEqual(await ids(filters=[Filter("price", ">=", 9.5)]), ["p2", "p3"])
        self.assertEqual(await ids(filters=[Filter("cat", "in", ["Grocery", "Household"])]), ["p2", "p4"])
        self.assertEqual(await ids(filters=[Filter("tags", "array-contains", "hot")]), ["p1", "p3"])
        self.assertEqual(
            await ids(filters=[Filter("cat", "==", "Bev"), Filter("price", ">", 5)]), ["p3"]
        )
        # documents without the sort key go last
        self.assertEqual(await ids(order_by="price", descending=True), ["p3", "p2", "p1", "p4"])
        self.assertEqual(await ids(order_by="name", limit=2), ["p3", "p2"])

    async def test_transaction_commits_all_or_nothing(self):
        await self.store.set(COL, "stock", {"n": 10})

        with self.assertRaises(RuntimeError):
            async with self.store.transaction() as txn:
                txn.set(COL, "stock", {"n": Increment(-3)}, merge=True)
                txn.set(COL, "order", {"qty": 3})
                raise RuntimeError("boom")
        self.assertEqual((await self.store.get(COL, "stock")).data["n"], 10)
        self.assertIsNone(await self.store.get(COL, "order"))

        async with self.store.transaction() as txn:
            current = await txn.get(COL, "stock")
            self.assertEqual(current.data["n"], 10)
            txn.set(COL, "stock", {"n": Increment(-3)}, merge=True)
            txn.set(COL, "order", {"qty": 3})
        self.assertEqual((await self.store.get(COL, "stock")).data["n"], 7)
        self.assertIsNotNone(await self.store.get(COL, "order"))

    async def test_failed_update_rolls_back_earlier_writes(self):
        with self.assertRaises(StoreError):
            async with self.store.transaction() as txn:
                txn.set(COL, "a", {"x": 1})
                txn.update(COL, "missing", {"x": 2})
        self.assertIsNone(await self.store.get(COL, "a"))

    async def test_concurrent_array_unions_keep_every_value(self):
        await self.store.set(COL, "rfq", {"quotes": []})
        await asyncio.gather(
            *(self.store.set(COL, "rfq", {"quotes": ArrayUnion(i)}, merge=True) for i in range(5))
        )
        doc = await self.store.get(COL, "rfq")
        self.assertEqual(sorted(doc.data["quotes"]), [0, 1, 2, 3, 4])


class ListenerTestCase(StoreTestCase):
    async def test_initial_snapshot_updates_and_unsubscribe(self):
        await self.store.set(COL, "d1", {"n": 1})
        snapshots = []
        unsubscribe = await self.store.listen(
            COL, lambda docs: snapshots.append([d.id for d in docs]), order_by="n"
        )
        self.assertEqual(snapshots, [["d1"]])
        self.assertEqual(self.store.listener_count(COL), 1)

        await self.store.set(COL, "d0", {"n": 0})
        self.assertEqual(snapshots[-1], ["d0", "d1"])

        # writes elsewhere do not wake the listener
        await self.store.set(COL + "-other", "x", {"n": 9})
        self.assertEqual(len(snapshots), 2)

        unsubscribe()
        self.assertEqual(self.store.listener_count(COL), 0)
        await self.store.delete(COL, "d0")
        self.assertEqual(len(snapshots), 2)

    async def test_filtered_listener_and_async_callback(self):
        seen = []

        async def on_docs(docs):
            seen.append(sorted(d.id for d in docs))

        await self.store.listen(COL, on_docs, filters=[Filter("open", "==", True)])
        await self.store.set(COL, "a", {"open": True})
        await self.store.set(COL, "b", {"open": False})
        self.assertEqual(seen, [[], ["a"], ["a"]])

    async def test_failing_listener_does_not_break_writer(self):
        good = []

        def bad(_docs):
            raise RuntimeError("listener bug")

        await self.store.listen(COL, bad)
        await self.store.listen(COL, lambda docs: good.append(len(docs)))
        await self.store.set(COL, "d1", {"a": 1})
        self.assertEqual(good, [0, 1])
        self.assertIsNotNone(await self.store.get(COL, "d1"))


if __name__ == "__main__":
    unittest.main()
