# src/wholesale/db/crud.py
from __future__ import annotations

from collections import OrderedDict
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from wholesale.db import models
from wholesale.db.documents import DocumentStore, Filter, Increment, ArrayUnion, new_doc_id, server_now
from wholesale.db.errors import StoreError, ValidationError
from wholesale.db.gateway import TenantGateway, private_path
from wholesale.utils import pure
from wholesale.utils.logger import get_logger
from wholesale.utils.session import IdentityAdapter

_logger = get_logger(__name__)

PROFILE = models.PROFILE_COLLECTION
PROFILE_DOC = models.PROFILE_DOC
PRODUCTS = "products"
ORDERS = "orders"
RFQS = "rfqs"
OFFERS = "offers"
SAVED_LISTS = "saved_lists"
MESSAGES = "messages"
REVIEWS = "reviews"
NOTIFICATIONS = "notifications"


def _to_int(val) -> Optional[int]:
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def _to_float(val) -> Optional[float]:
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


# ---------------------------
# Profiles
# ---------------------------


async def get_profile(gw: TenantGateway, uid: Optional[str] = None) -> Optional[models.Profile]:
    """Profile of ``uid`` (default: signed-in user), None if never saved."""
    uid = uid or gw.uid
    if not uid:
        return None
    doc = await gw.fetch_one(PROFILE, PROFILE_DOC, tenant_id=uid)
    return models.Profile.from_doc(uid, doc) if doc else None


async def save_profile(
    gw: TenantGateway,
    company_name: str,
    contact_name: str = "",
    phone: str = "",
    address: str = "",
    role: Optional[str] = None,
    email: Optional[str] = None,
) -> bool:
    """
    Upsert the signed-in user's profile.

    ``role`` can be picked once, from the self-service roles, while the
    stored profile has none. Resending the stored role is accepted; any
    other change raises ValidationError. Admins are made by ``grant_role``.
    """
    if not (company_name or "").strip():
        raise ValidationError("Company name is required.")
    data: Dict[str, Any] = {
        "company_name": company_name.strip(),
        "contact_name": (contact_name or "").strip(),
        "phone": (phone or "").strip(),
        "address": (address or "").strip(),
    }
    if role is not None:
        if role not in models.ROLES:
            raise ValidationError(f"Unknown role {role!r}.")
        current = await gw.fetch_one(PROFILE, PROFILE_DOC)
        stored = (current or {}).get("role")
        if stored and stored != role:
            raise ValidationError("The role cannot be changed once set.")
        if not stored:
            if role not in models.SELF_SERVICE_ROLES:
                raise ValidationError(f"The {role} role cannot be chosen at sign-up.")
            data["role"] = role
    if email is not None:
        data["email"] = email
    return await gw.set_merge(PROFILE, PROFILE_DOC, data)


async def grant_role(store: DocumentStore, app_id: str, uid: str, role: str) -> None:
    """
    Operator-side role assignment, written straight to the store without a
    user session. The only way an account becomes admin.
    """
    if role not in models.ROLES:
        raise ValidationError(f"Unknown role {role!r}.")
    await store.set(
        private_path(app_id, uid, PROFILE), PROFILE_DOC, {"role": role}, merge=True
    )
    _logger.info(f"Role {role} granted to {uid}")


# ---------------------------
# Products
# ---------------------------


def _validate_product_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    clean: Dict[str, Any] = {}
    for key in ("name", "brand", "category", "description"):
        if key in fields:
            clean[key] = (fields[key] or "").strip()
    if "name" in clean and not clean["name"]:
        raise ValidationError("Product name is required.")
    if "price" in fields:
        price = _to_float(fields["price"])
        if price is None or price < 0:
            raise ValidationError("Price must be a non-negative number.")
        clean["price"] = round(price, 2)
    if "moq" in fields:
        moq = _to_int(fields["moq"])
        if moq is None or moq < 1:
            raise ValidationError("Minimum order quantity must be at least 1.")
        clean["moq"] = moq
    if "stock" in fields:
        stock = _to_int(fields["stock"])
        if stock is None or stock < 0:
            raise ValidationError("Stock must be a non-negative integer.")
        clean["stock"] = stock
    return clean


async def list_products(
    gw: TenantGateway,
    category: Optional[str] = None,
    max_price: Optional[float] = None,
    query: str = "",
    wholesaler_id: Optional[str] = None,
) -> List[models.Product]:
    """Catalog query over the public products collection."""
    filters = [Filter("wholesaler_id", "==", wholesaler_id)] if wholesaler_id else []
    docs = await gw.fetch_all(PRODUCTS, public=True, filters=filters)
    products = [models.Product.from_doc(d) for d in docs]
    return pure.filter_products(products, category, max_price, query)


async def get_product(gw: TenantGateway, product_id: str) -> Optional[models.Product]:
    doc = await gw.fetch_one(PRODUCTS, product_id, public=True)
    return models.Product.from_doc(doc) if doc else None


async def add_product(
    gw: TenantGateway,
    seller: models.Profile,
    name: str,
    brand: str,
    category: str,
    price,
    moq,
    stock,
    description: str = "",
) -> Optional[str]:
    """Publish a product owned by ``seller``; returns the new id or None."""
    fields = _validate_product_fields(
        {
            "name": name,
            "brand": brand,
            "category": category,
            "price": price,
            "moq": moq,
            "stock": stock,
            "description": description,
        }
    )
    fields["wholesaler_id"] = seller.uid
    fields["wholesaler_name"] = seller.display_name
    return await gw.add(PRODUCTS, fields, public=True)


async def _caller_is_admin(txn, gw: TenantGateway) -> bool:
    profile = await txn.get(PROFILE, PROFILE_DOC, tenant_id=gw.uid)
    return bool(profile) and profile.get("role") == models.ADMIN


async def update_product(gw: TenantGateway, product_id: str, **fields) -> bool:
    """
    Merge the given product fields (price, stock, name, ...). Only the
    owning wholesaler may edit; anybody else gets a PermissionError.
    """
    clean = _validate_product_fields(fields)
    if not clean or not gw.ready:
        return False
    try:
        async with gw.transaction() as txn:
            doc = await txn.get(PRODUCTS, product_id, public=True)
            if doc is None:
                return False
            if doc.get("wholesaler_id") != gw.uid:
                raise PermissionError("Only the owner can edit this product.")
            txn.merge(PRODUCTS, product_id, clean, public=True)
    except StoreError as e:
        _logger.error(f"Updating product {product_id} failed: {e}")
        return False
    return True


async def delete_product(gw: TenantGateway, product_id: str) -> bool:
    """
    Remove a product. Allowed for its owner and for admins; a product
    that is already gone counts as deleted.
    """
    if not gw.ready:
        return False
    try:
        async with gw.transaction() as txn:
            doc = await txn.get(PRODUCTS, product_id, public=True)
            if doc is None:
                return True
            if doc.get("wholesaler_id") != gw.uid and not await _caller_is_admin(txn, gw):
                raise PermissionError("Only the owner or an administrator can delete this product.")
            txn.delete(PRODUCTS, product_id, public=True)
    except StoreError as e:
        _logger.error(f"Deleting product {product_id} failed: {e}")
        return False
    return True


# ---------------------------
# Notifications
# ---------------------------


async def notify(gw: TenantGateway, uid: str, text: str) -> Optional[str]:
    """Drop a notification into ``uid``'s private space."""
    return await gw.add(NOTIFICATIONS, {"text": text, "read": False}, tenant_id=uid)


async def list_notifications(gw: TenantGateway) -> List[models.Notification]:
    docs = await gw.fetch_all(NOTIFICATIONS, order_by="created_at", descending=True)
    return [models.Notification.from_doc(d) for d in docs]


async def mark_notification_read(gw: TenantGateway, notification_id: str) -> bool:
    return await gw.set_merge(NOTIFICATIONS, notification_id, {"read": True})


async def clear_notifications(gw: TenantGateway) -> int:
    """Delete every notification; returns how many were removed."""
    removed = 0
    for doc in await gw.fetch_all(NOTIFICATIONS):
        if await gw.delete(NOTIFICATIONS, doc["id"]):
            removed += 1
    return removed


# ---------------------------
# Orders
# ---------------------------


async def place_order(
    gw: TenantGateway,
    buyer: models.Profile,
    product_id: str,
    quantity,
    shipping_address: str = "",
) -> models.Order:
    """
    Create an order and take the quantity out of stock in one transaction.
    The order is written to both the buyer's and the seller's space under
    the same id, and the seller gets a notification.
    """
    qty = _to_int(quantity)
    if qty is None or qty < 1:
        raise ValidationError("Quantity must be a positive integer.")
    address = (shipping_address or "").strip() or buyer.address
    if not address:
        raise ValidationError("A shipping address is required.")

    order_id = new_doc_id()
    async with gw.transaction() as txn:
        doc = await txn.get(PRODUCTS, product_id, public=True)
        if doc is None:
            raise ValidationError("This product is no longer available.")
        product = models.Product.from_doc(doc)
        if qty < product.moq:
            raise ValidationError(f"Minimum order quantity is {product.moq}.")
        if qty > product.stock:
            raise ValidationError(f"Only {product.stock} units in stock.")

        data = {
            "product_id": product.id,
            "product_name": product.name,
            "quantity": qty,
            "price": product.price,
            "status": models.PENDING,
            "buyer_id": buyer.uid,
            "buyer_name": buyer.display_name,
            "seller_id": product.wholesaler_id,
            "seller_name": product.wholesaler_name,
            "shipping_address": address,
            "tracking_number": None,
        }
        txn.merge(PRODUCTS, product.id, {"stock": Increment(-qty)}, public=True)
        txn.set(ORDERS, order_id, data, tenant_id=buyer.uid)
        if product.wholesaler_id != buyer.uid:
            txn.set(ORDERS, order_id, data, tenant_id=product.wholesaler_id)
        txn.set(
            NOTIFICATIONS,
            new_doc_id(),
            {
                "text": f"New order: {qty} x {product.name} from {buyer.display_name}.",
                "read": False,
            },
            tenant_id=product.wholesaler_id,
        )

    _logger.info(f"Order {order_id} placed for {qty} x {product.id}")
    return models.Order.from_doc({"id": order_id, **data})


async def list_orders(gw: TenantGateway) -> List[models.Order]:
    """Orders in the signed-in user's space, newest first."""
    docs = await gw.fetch_all(ORDERS, order_by="created_at", descending=True)
    return [models.Order.from_doc(d) for d in docs]


async def update_order_status(gw: TenantGateway, order_id: str, new_status: str) -> models.Order:
    """
    Move an order along Pending -> Shipped -> Delivered, or Pending ->
    Cancelled. Both copies change in one transaction. Shipping stamps a
    tracking number, cancelling puts the quantity back in stock.
    """
    if new_status not in models.ORDER_STATUSES:
        raise ValidationError(f"Unknown order status {new_status!r}.")

    async with gw.transaction() as txn:
        doc = await txn.get(ORDERS, order_id)
        if doc is None:
            raise ValidationError("Order not found.")
        order = models.Order.from_doc(doc)
        if not pure.can_transition(order.status, new_status):
            raise ValidationError(f"Cannot change an order from {order.status} to {new_status}.")
        if new_status in (models.SHIPPED, models.DELIVERED) and gw.uid != order.seller_id:
            raise ValidationError("Only the seller can ship or deliver an order.")

        changes: Dict[str, Any] = {"status": new_status}
        if new_status == models.SHIPPED:
            changes["tracking_number"] = pure.generate_tracking_number()

        for tenant in OrderedDict.fromkeys([order.buyer_id, order.seller_id]):
            txn.update(ORDERS, order.id, changes, tenant_id=tenant)

        if new_status == models.CANCELLED:
            product = await txn.get(PRODUCTS, order.product_id, public=True)
            if product is not None:
                txn.merge(PRODUCTS, order.product_id, {"stock": Increment(order.quantity)}, public=True)

        other = order.buyer_id if gw.uid == order.seller_id else order.seller_id
        if other and other != gw.uid:
            text = f"Order for {order.product_name} is now {new_status}."
            if "tracking_number" in changes:
                text += f" Tracking: {changes['tracking_number']}."
            txn.set(NOTIFICATIONS, new_doc_id(), {"text": text, "read": False}, tenant_id=other)

    return models.Order.from_doc({**doc, **changes})


# ---------------------------
# RFQs
# ---------------------------


async def create_rfq(
    gw: TenantGateway,
    requester: models.Profile,
    title: str,
    details: str,
    category: str,
    quantity,
) -> str:
    """Create an RFQ in the requester's space plus its public mirror."""
    if not (title or "").strip():
        raise ValidationError("RFQ title is required.")
    qty = _to_int(quantity)
    if qty is None or qty < 1:
        raise ValidationError("Quantity must be a positive integer.")

    rfq_id = new_doc_id()
    data = {
        "requester_id": requester.uid,
        "requester_name": requester.display_name,
        "title": title.strip(),
        "details": (details or "").strip(),
        "category": (category or "").strip(),
        "quantity": qty,
        "status": models.RFQ_OPEN,
        "quotes": [],
        "accepted_quote": None,
    }
    async with gw.transaction() as txn:
        txn.set(RFQS, rfq_id, data)
        txn.set(RFQS, rfq_id, data, public=True)
    return rfq_id


async def list_my_rfqs(gw: TenantGateway) -> List[models.Rfq]:
    docs = await gw.fetch_all(RFQS, order_by="created_at", descending=True)
    return [models.Rfq.from_doc(d) for d in docs]


async def list_open_rfqs(gw: TenantGateway) -> List[models.Rfq]:
    """Open RFQs from the public mirror, excluding the caller's own."""
    docs = await gw.fetch_all(
        RFQS,
        public=True,
        filters=[Filter("status", "==", models.RFQ_OPEN)],
        order_by="created_at",
        descending=True,
    )
    return [models.Rfq.from_doc(d) for d in docs if d.get("requester_id") != gw.uid]


async def submit_quote(
    gw: TenantGateway,
    seller: models.Profile,
    rfq_id: str,
    price,
    lead_time_days=0,
    note: str = "",
) -> models.Quote:
    """
    Append a quote to the RFQ with an atomic array union on both copies,
    so concurrent quotes never overwrite each other.
    """
    amount = _to_float(price)
    if amount is None or amount <= 0:
        raise ValidationError("Quote price must be a positive number.")
    days = _to_int(lead_time_days)
    if days is None or days < 0:
        raise ValidationError("Lead time must be a non-negative number of days.")

    quote = models.Quote(
        wholesaler_id=seller.uid,
        wholesaler_name=seller.display_name,
        price=round(amount, 2),
        lead_time_days=days,
        note=(note or "").strip(),
        submitted_at=server_now(),
    )
    async with gw.transaction() as txn:
        doc = await txn.get(RFQS, rfq_id, public=True)
        if doc is None:
            raise ValidationError("RFQ not found.")
        rfq = models.Rfq.from_doc(doc)
        if rfq.status != models.RFQ_OPEN:
            raise ValidationError("This RFQ is closed.")
        union = {"quotes": ArrayUnion(quote.to_doc())}
        txn.merge(RFQS, rfq_id, union, public=True)
        txn.merge(RFQS, rfq_id, union, tenant_id=rfq.requester_id)
        txn.set(
            NOTIFICATIONS,
            new_doc_id(),
            {
                "text": f"New quote on '{rfq.title}' from {quote.wholesaler_name}: {pure.fmt_money(quote.price)}.",
                "read": False,
            },
            tenant_id=rfq.requester_id,
        )
    return quote


async def _close_rfq(gw: TenantGateway, rfq_id: str, accepted_index: Optional[int]) -> models.Rfq:
    async with gw.transaction() as txn:
        doc = await txn.get(RFQS, rfq_id)
        if doc is None:
            raise ValidationError("RFQ not found.")
        rfq = models.Rfq.from_doc(doc)
        if rfq.status != models.RFQ_OPEN:
            raise ValidationError("This RFQ is already closed.")
        changes: Dict[str, Any] = {"status": models.RFQ_CLOSED}
        if accepted_index is not None:
            if not 0 <= accepted_index < len(rfq.quotes):
                raise ValidationError("No such quote.")
            accepted = rfq.quotes[accepted_index]
            changes["accepted_quote"] = accepted.to_doc()
            txn.set(
                NOTIFICATIONS,
                new_doc_id(),
                {"text": f"Your quote on '{rfq.title}' was accepted.", "read": False},
                tenant_id=accepted.wholesaler_id,
            )
        txn.merge(RFQS, rfq_id, changes)
        txn.merge(RFQS, rfq_id, changes, public=True)
    return models.Rfq.from_doc({**doc, **changes})


async def accept_quote(gw: TenantGateway, rfq_id: str, quote_index: int) -> models.Rfq:
    """Accept one quote, which also closes the RFQ."""
    return await _close_rfq(gw, rfq_id, quote_index)


async def close_rfq(gw: TenantGateway, rfq_id: str) -> models.Rfq:
    return await _close_rfq(gw, rfq_id, None)


async def delete_rfq(gw: TenantGateway, rfq_id: str) -> None:
    async with gw.transaction() as txn:
        txn.delete(RFQS, rfq_id)
        txn.delete(RFQS, rfq_id, public=True)


# ---------------------------
# Offers
# ---------------------------


async def list_offers(gw: TenantGateway) -> List[models.Offer]:
    docs = await gw.fetch_all(OFFERS, order_by="valid_from")
    return [models.Offer.from_doc(d) for d in docs]


async def save_offer(
    gw: TenantGateway,
    name: str,
    offer_type: str,
    target: str,
    discount,
    valid_from: str,
    valid_to: str,
    offer_id: Optional[str] = None,
) -> Optional[str]:
    """Create (or with ``offer_id`` update) an offer; returns its id or None."""
    if not (name or "").strip():
        raise ValidationError("Offer name is required.")
    if offer_type not in models.OFFER_TYPES:
        raise ValidationError(f"Offer type must be one of {', '.join(models.OFFER_TYPES)}.")
    pct = _to_float(discount)
    if pct is None or not 0 < pct <= 100:
        raise ValidationError("Discount must be between 0 and 100 percent.")
    try:
        start = date.fromisoformat((valid_from or "").strip())
        end = date.fromisoformat((valid_to or "").strip())
    except ValueError:
        raise ValidationError("Validity dates must look like YYYY-MM-DD.")
    if end < start:
        raise ValidationError("Offer ends before it starts.")

    data = {
        "name": name.strip(),
        "offer_type": offer_type,
        "target": (target or "").strip(),
        "discount": pct,
        "valid_from": start.isoformat(),
        "valid_to": end.isoformat(),
    }
    if offer_id:
        return offer_id if await gw.set_merge(OFFERS, offer_id, data) else None
    return await gw.add(OFFERS, data)


async def delete_offer(gw: TenantGateway, offer_id: str) -> bool:
    return await gw.delete(OFFERS, offer_id)


# ---------------------------
# Saved lists
# ---------------------------


async def list_saved_lists(gw: TenantGateway) -> List[models.SavedList]:
    docs = await gw.fetch_all(SAVED_LISTS, order_by="name")
    return [models.SavedList.from_doc(d) for d in docs]


async def create_saved_list(gw: TenantGateway, name: str) -> Optional[str]:
    if not (name or "").strip():
        raise ValidationError("List name is required.")
    return await gw.add(SAVED_LISTS, {"name": name.strip(), "product_ids": []})


async def add_to_saved_list(gw: TenantGateway, list_id: str, product_id: str) -> bool:
    """Add a product once; repeated adds keep the original position."""
    return await gw.append(SAVED_LISTS, list_id, "product_ids", product_id)


async def remove_from_saved_list(gw: TenantGateway, list_id: str, product_id: str) -> bool:
    return await gw.remove_values(SAVED_LISTS, list_id, "product_ids", product_id)


async def delete_saved_list(gw: TenantGateway, list_id: str) -> bool:
    return await gw.delete(SAVED_LISTS, list_id)


# ---------------------------
# Messages
# ---------------------------


async def send_message(gw: TenantGateway, receiver_id: str, text: str) -> Optional[str]:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Message is empty.")
    if not receiver_id or receiver_id == gw.uid:
        raise ValidationError("Pick somebody else to message.")
    sender = gw.uid
    if sender is None:
        return None
    return await gw.add(
        MESSAGES,
        {
            "conversation_id": pure.conversation_id(sender, receiver_id),
            "participants": sorted([sender, receiver_id]),
            "sender_id": sender,
            "receiver_id": receiver_id,
            "text": text,
        },
        public=True,
    )


async def list_conversation(gw: TenantGateway, other_uid: str) -> List[models.Message]:
    if gw.uid is None:
        return []
    docs = await gw.fetch_all(
        MESSAGES,
        public=True,
        filters=[Filter("conversation_id", "==", pure.conversation_id(gw.uid, other_uid))],
        order_by="created_at",
    )
    return [models.Message.from_doc(d) for d in docs]


def partners_of(uid: str, messages: List[Dict[str, Any]]) -> List[str]:
    """Conversation partners of ``uid``, most recent conversation first."""
    latest: Dict[str, str] = {}
    for m in messages:
        other = m.get("receiver_id") if m.get("sender_id") == uid else m.get("sender_id")
        if not other:
            continue
        ts = m.get("created_at") or ""
        if ts >= latest.get(other, ""):
            latest[other] = ts
    return sorted(latest, key=lambda k: latest[k], reverse=True)


async def list_partners(gw: TenantGateway) -> List[str]:
    if gw.uid is None:
        return []
    docs = await gw.fetch_all(
        MESSAGES, public=True, filters=[Filter("participants", "array-contains", gw.uid)]
    )
    return partners_of(gw.uid, docs)


# ---------------------------
# Reviews
# ---------------------------


async def add_review(
    gw: TenantGateway, reviewer: models.Profile, product_id: str, rating, text: str = ""
) -> Optional[str]:
    stars = _to_int(rating)
    if stars is None or not 1 <= stars <= 5:
        raise ValidationError("Rating must be between 1 and 5.")
    return await gw.add(
        REVIEWS,
        {
            "product_id": product_id,
            "rating": stars,
            "text": (text or "").strip(),
            "reviewer_id": reviewer.uid,
            "reviewer_name": reviewer.display_name,
        },
        public=True,
    )


async def list_reviews(gw: TenantGateway, product_id: str) -> List[models.Review]:
    docs = await gw.fetch_all(
        REVIEWS,
        public=True,
        filters=[Filter("product_id", "==", product_id)],
        order_by="created_at",
        descending=True,
    )
    return [models.Review.from_doc(d) for d in docs]


# ---------------------------
# Administration
# ---------------------------


async def list_users(gw: TenantGateway, session: IdentityAdapter) -> List[models.UserSummary]:
    """
    Registered users joined with their profiles. Goes through the provider's
    privileged listing, which checks the caller's stored role, so non-admin
    callers get a PermissionError.
    """
    accounts = await session.list_users(gw)
    users = []
    for account in accounts:
        profile = await get_profile(gw, account.uid)
        users.append(
            models.UserSummary(
                uid=account.uid,
                email=account.email or "",
                role=profile.role if profile else "",
                company_name=profile.company_name if profile else "",
                created_at=account.created_at,
            )
        )
    return users


async def platform_summary(gw: TenantGateway) -> Dict[str, int]:
    products = await gw.fetch_all(PRODUCTS, public=True)
    rfqs = await gw.fetch_all(RFQS, public=True)
    messages = await gw.fetch_all(MESSAGES, public=True)
    reviews = await gw.fetch_all(REVIEWS, public=True)
    return {
        "products": len(products),
        "wholesalers": len({p.get("wholesaler_id") for p in products}),
        "open_rfqs": sum(1 for r in rfqs if r.get("status") == models.RFQ_OPEN),
        "rfqs": len(rfqs),
        "messages": len(messages),
        "reviews": len(reviews),
    }


# ---------------------------
# Live feeds
# ---------------------------


FEEDS: Dict[str, Dict[str, Any]] = {
    "products": {"collection": PRODUCTS, "public": True, "order_by": "name"},
    "orders": {"collection": ORDERS, "order_by": "created_at", "descending": True},
    "rfqs": {"collection": RFQS, "order_by": "created_at", "descending": True},
    "open_rfqs": {
        "collection": RFQS,
        "public": True,
        "filters": [Filter("status", "==", models.RFQ_OPEN)],
        "order_by": "created_at",
        "descending": True,
    },
    "offers": {"collection": OFFERS, "order_by": "valid_from"},
    "saved_lists": {"collection": SAVED_LISTS, "order_by": "name"},
    "reviews": {"collection": REVIEWS, "public": True, "order_by": "created_at", "descending": True},
    "notifications": {"collection": NOTIFICATIONS, "order_by": "created_at", "descending": True},
    # filters filled in per session, see watch()
    "messages": {"collection": MESSAGES, "public": True, "order_by": "created_at"},
}


async def watch(
    gw: TenantGateway, kind: str, callback: Callable[[List[Dict[str, Any]]], Any]
) -> Optional[Callable[[], None]]:
    """Subscribe ``callback`` to one of the FEEDS; returns the unsubscribe function."""
    if kind not in FEEDS:
        raise KeyError(f"Unknown feed {kind!r}")
    spec = dict(FEEDS[kind])
    collection = spec.pop("collection")
    if kind == "messages":
        if gw.uid is None:
            return None
        spec["filters"] = [Filter("participants", "array-contains", gw.uid)]
    try:
        return await gw.subscribe(collection, callback, **spec)
    except StoreError as e:
        _logger.error(f"Subscribing to {kind} failed: {e}")
        return None
