# provide dataclass models built from gateway documents (dicts with an "id" key)
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

ROLES = ("retailer", "wholesaler", "admin")
ADMIN = "admin"
# roles a user may pick for themselves at sign-up
SELF_SERVICE_ROLES = ("retailer", "wholesaler")
DEFAULT_ROLE = "retailer"

# private document holding each user's profile
PROFILE_COLLECTION = "profile"
PROFILE_DOC = "details"

PENDING, SHIPPED, DELIVERED, CANCELLED = "Pending", "Shipped", "Delivered", "Cancelled"
ORDER_STATUSES = (PENDING, SHIPPED, DELIVERED, CANCELLED)
# allowed forward moves, everything else is rejected
ORDER_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    PENDING: (SHIPPED, CANCELLED),
    SHIPPED: (DELIVERED,),
    DELIVERED: (),
    CANCELLED: (),
}

RFQ_OPEN, RFQ_CLOSED = "Open", "Closed"
OFFER_TYPES = ("product", "category", "customer_group")


@dataclass(frozen=True)
class Profile:
    uid: str
    company_name: str = ""
    contact_name: str = ""
    phone: str = ""
    address: str = ""
    role: str = DEFAULT_ROLE
    email: str = ""

    @classmethod
    def from_doc(cls, uid: str, doc: Dict[str, Any]) -> "Profile":
        role = doc.get("role")
        return cls(
            uid=uid,
            company_name=doc.get("company_name", ""),
            contact_name=doc.get("contact_name", ""),
            phone=doc.get("phone", ""),
            address=doc.get("address", ""),
            role=role if role in ROLES else DEFAULT_ROLE,
            email=doc.get("email", ""),
        )

    @property
    def display_name(self) -> str:
        return self.company_name or self.contact_name or self.email or self.uid


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    brand: str
    category: str
    price: float
    moq: int
    stock: int
    wholesaler_id: str
    wholesaler_name: str
    description: str = ""

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Product":
        return cls(
            id=doc["id"],
            name=doc.get("name", ""),
            brand=doc.get("brand", ""),
            category=doc.get("category", ""),
            price=float(doc.get("price", 0.0)),
            moq=int(doc.get("moq", 1)),
            stock=int(doc.get("stock", 0)),
            wholesaler_id=doc.get("wholesaler_id", ""),
            wholesaler_name=doc.get("wholesaler_name", ""),
            description=doc.get("description", ""),
        )


@dataclass(frozen=True)
class Order:
    id: str
    product_id: str
    product_name: str
    quantity: int
    price: float  # unit price at time of order
    status: str
    buyer_id: str
    buyer_name: str
    seller_id: str
    seller_name: str
    shipping_address: str = ""
    tracking_number: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Order":
        return cls(
            id=doc["id"],
            product_id=doc.get("product_id", ""),
            product_name=doc.get("product_name", ""),
            quantity=int(doc.get("quantity", 0)),
            price=float(doc.get("price", 0.0)),
            status=doc.get("status", PENDING),
            buyer_id=doc.get("buyer_id", ""),
            buyer_name=doc.get("buyer_name", ""),
            seller_id=doc.get("seller_id", ""),
            seller_name=doc.get("seller_name", ""),
            shipping_address=doc.get("shipping_address", ""),
            tracking_number=doc.get("tracking_number"),
            created_at=doc.get("created_at"),
        )

    @property
    def total(self) -> float:
        return self.quantity * self.price


@dataclass(frozen=True)
class Quote:
    wholesaler_id: str
    wholesaler_name: str
    price: float
    lead_time_days: int = 0
    note: str = ""
    submitted_at: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Quote":
        return cls(
            wholesaler_id=doc.get("wholesaler_id", ""),
            wholesaler_name=doc.get("wholesaler_name", ""),
            price=float(doc.get("price", 0.0)),
            lead_time_days=int(doc.get("lead_time_days", 0)),
            note=doc.get("note", ""),
            submitted_at=doc.get("submitted_at"),
        )

    def to_doc(self) -> Dict[str, Any]:
        return {
            "wholesaler_id": self.wholesaler_id,
            "wholesaler_name": self.wholesaler_name,
            "price": self.price,
            "lead_time_days": self.lead_time_days,
            "note": self.note,
            "submitted_at": self.submitted_at,
        }


@dataclass(frozen=True)
class Rfq:
    id: str
    requester_id: str
    requester_name: str
    title: str
    details: str
    category: str
    quantity: int
    status: str
    quotes: Tuple[Quote, ...] = field(default_factory=tuple)
    accepted_quote: Optional[Quote] = None
    created_at: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Rfq":
        accepted = doc.get("accepted_quote")
        return cls(
            id=doc["id"],
            requester_id=doc.get("requester_id", ""),
            requester_name=doc.get("requester_name", ""),
            title=doc.get("title", ""),
            details=doc.get("details", ""),
            category=doc.get("category", ""),
            quantity=int(doc.get("quantity", 0)),
            status=doc.get("status", RFQ_OPEN),
            quotes=tuple(Quote.from_doc(q) for q in doc.get("quotes") or []),
            accepted_quote=Quote.from_doc(accepted) if accepted else None,
            created_at=doc.get("created_at"),
        )


@dataclass(frozen=True)
class Offer:
    id: str
    name: str
    offer_type: str
    target: str
    discount: float  # percent
    valid_from: str  # ISO date
    valid_to: str  # ISO date

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Offer":
        return cls(
            id=doc["id"],
            name=doc.get("name", ""),
            offer_type=doc.get("offer_type", "product"),
            target=doc.get("target", ""),
            discount=float(doc.get("discount", 0.0)),
            valid_from=doc.get("valid_from", ""),
            valid_to=doc.get("valid_to", ""),
        )


@dataclass(frozen=True)
class SavedList:
    id: str
    name: str
    product_ids: Tuple[str, ...] = ()

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "SavedList":
        return cls(
            id=doc["id"],
            name=doc.get("name", ""),
            product_ids=tuple(doc.get("product_ids") or []),
        )


@dataclass(frozen=True)
class Message:
    id: str
    conversation_id: str
    sender_id: str
    receiver_id: str
    text: str
    created_at: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Message":
        return cls(
            id=doc["id"],
            conversation_id=doc.get("conversation_id", ""),
            sender_id=doc.get("sender_id", ""),
            receiver_id=doc.get("receiver_id", ""),
            text=doc.get("text", ""),
            created_at=doc.get("created_at"),
        )


@dataclass(frozen=True)
class Review:
    id: str
    product_id: str
    rating: int
    text: str
    reviewer_id: str
    reviewer_name: str = ""
    created_at: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Review":
        return cls(
            id=doc["id"],
            product_id=doc.get("product_id", ""),
            rating=int(doc.get("rating", 0)),
            text=doc.get("text", ""),
            reviewer_id=doc.get("reviewer_id", ""),
            reviewer_name=doc.get("reviewer_name", ""),
            created_at=doc.get("created_at"),
        )


@dataclass(frozen=True)
class Notification:
    id: str
    text: str
    read: bool = False
    created_at: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Notification":
        return cls(
            id=doc["id"],
            text=doc.get("text", ""),
            read=bool(doc.get("read", False)),
            created_at=doc.get("created_at"),
        )


@dataclass(frozen=True)
class UserSummary:
    """Row of the admin user list: account joined with its profile."""

    uid: str
    email: str
    role: str
    company_name: str
    created_at: str
