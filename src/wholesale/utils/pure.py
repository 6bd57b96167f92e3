import random
import string
from collections import Counter
from datetime import date
from typing import Dict, Iterable, List, Literal, Optional, Sequence

from wholesale.db.models import (
    CANCELLED,
    DELIVERED,
    ORDER_STATUSES,
    ORDER_TRANSITIONS,
    SHIPPED,
    Offer,
    Order,
    Product,
    Review,
)

TRACKING_PREFIX = "TRK"
TRACKING_SUFFIX_LEN = 9
LOW_STOCK_THRESHOLD = 20


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of strings.
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all center ('c').

    Returns:
        str: Markdown formatted table.
    """
    if not rows:
        return ""

    # If no headers, take the first row as header and remove it from rows
    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = list(map(str, headers))
    rows = [[str(cell).replace("|", "\\|") for cell in row] for row in rows]

    num_cols = len(headers)
    if aligns is None:
        aligns = ["c"] * num_cols
    elif len(aligns) != num_cols:
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {
        "l": ":---",
        "c": ":---:",
        "r": "---:",
    }

    header_line = "| " + " | ".join(headers) + " |"
    align_line = "| " + " | ".join(align_map[a] for a in aligns) + " |"
    row_lines = ["| " + " | ".join(row) + " |" for row in rows]

    return "\n".join([header_line, align_line, *row_lines])


def generate_tracking_number(rng: Optional[random.Random] = None) -> str:
    """``TRK`` + 9 uppercase letters/digits, always 12 characters."""
    rng = rng or random.SystemRandom()
    alphabet = string.ascii_uppercase + string.digits
    return TRACKING_PREFIX + "".join(rng.choice(alphabet) for _ in range(TRACKING_SUFFIX_LEN))


def conversation_id(uid_a: str, uid_b: str) -> str:
    """Same id for both participants: the sorted pair joined by '_'."""
    return "_".join(sorted([uid_a, uid_b]))


def next_statuses(status: str) -> Sequence[str]:
    return ORDER_TRANSITIONS.get(status, ())


def can_transition(old: str, new: str) -> bool:
    return new in next_statuses(old)


def filter_products(
    products: Iterable[Product],
    category: Optional[str] = None,
    max_price: Optional[float] = None,
    query: str = "",
) -> List[Product]:
    """
    Catalog filter: exact (case-insensitive) category, inclusive price cap,
    and a keyword matched against name, brand and description.
    """
    needle = (query or "").strip().lower()
    cat = (category or "").strip().lower()
    result = []
    for p in products:
        if cat and p.category.lower() != cat:
            continue
        if max_price is not None and p.price > max_price:
            continue
        if needle and not any(
            needle in text.lower() for text in (p.name, p.brand, p.description)
        ):
            continue
        result.append(p)
    return sorted(result, key=lambda p: (p.name.lower(), p.id))


def categories_of(products: Iterable[Product]) -> List[str]:
    return sorted({p.category for p in products if p.category}, key=str.lower)


def offer_is_active(offer: Offer, on: Optional[date] = None) -> bool:
    on = on or date.today()
    try:
        start = date.fromisoformat(offer.valid_from)
        end = date.fromisoformat(offer.valid_to)
    except ValueError:
        return False
    return start <= on <= end


def average_rating(reviews: Iterable[Review]) -> Optional[float]:
    ratings = [r.rating for r in reviews]
    if not ratings:
        return None
    return round(sum(ratings) / len(ratings), 2)


def summarize_orders(orders: Iterable[Order]) -> Dict[str, float]:
    """Counts per status plus revenue of orders that were not cancelled."""
    orders = list(orders)
    counts = Counter(o.status for o in orders)
    summary: Dict[str, float] = {s: counts.get(s, 0) for s in ORDER_STATUSES}
    summary["total_orders"] = len(orders)
    summary["revenue"] = round(
        sum(o.total for o in orders if o.status != CANCELLED), 2
    )
    summary["fulfilled_revenue"] = round(
        sum(o.total for o in orders if o.status in (SHIPPED, DELIVERED)), 2
    )
    return summary


def low_stock(products: Iterable[Product], threshold: int = LOW_STOCK_THRESHOLD) -> List[Product]:
    return sorted((p for p in products if p.stock < threshold), key=lambda p: p.stock)


def fmt_money(value: float) -> str:
    return f"${value:,.2f}"


def fmt_timestamp(value: Optional[str]) -> str:
    """ISO timestamp -> 'YYYY-MM-DD HH:MM', empty for missing values."""
    if not value:
        return ""
    return value.replace("T", " ")[:16]
