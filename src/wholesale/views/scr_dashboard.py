from typing import Dict, Tuple

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, MarkdownViewer

from wholesale.db import crud
from wholesale.db.models import ORDER_STATUSES, RFQ_OPEN, Order, Product, Rfq, SavedList
from wholesale.utils.logger import get_logger
from wholesale.utils.messages import NavigateMessage
from wholesale.utils.pure import fmt_money, generate_markdown_table, low_stock, summarize_orders
from wholesale.views.base_screen import BaseScreen

_logger = get_logger(__name__)


def orders_table(orders) -> str:
    summary = summarize_orders(orders)
    rows = [[s, int(summary[s])] for s in ORDER_STATUSES] + [["Total", int(summary["total_orders"])]]
    return generate_markdown_table(["Status", "Orders"], rows, ["l", "r"])


class DashboardScreen(BaseScreen):
    """
    Landing page with a summary for the signed-in role:

    - retailer: own orders by status, open RFQs, saved lists
    - wholesaler: product count, low stock, incoming orders by status, revenue
    - admin: users, products, open RFQs, message volume
    """

    VIEW_KEY = "dashboard"
    VIEW_TITLE = "Dashboard"

    ROLE_FEEDS = {
        "retailer": ("orders", "rfqs", "saved_lists"),
        "wholesaler": ("products", "orders"),
        "admin": (),
    }

    # (button label, view key) shortcuts per role
    SHORTCUTS = {
        "retailer": (("Browse Catalog", "catalog"), ("My RFQs", "rfqs")),
        "wholesaler": (("Inventory", "inventory"), ("RFQ Board", "rfq_board")),
        "admin": (("Users", "users"), ("Products", "inventory")),
    }

    def __init__(self, state, gateway) -> None:
        super().__init__(state, gateway)
        # shortcut button id -> view key
        self._targets: Dict[str, str] = {}

    def feeds(self) -> Tuple[str, ...]:
        return self.ROLE_FEEDS.get(self.state.role, ())

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-dashboard", show_table_of_contents=False)
            with Horizontal(id="hort-shortcuts"):
                for i in range(2):
                    yield Button("", id=f"btn-shortcut-{i}", classes="shortcut", variant="primary")

    def refresh_view(self) -> None:
        shortcuts = self.SHORTCUTS.get(self.state.role, ())
        self._targets = {}
        for i, button in enumerate(self.query(".shortcut").results(Button)):
            button.display = i < len(shortcuts)
            if button.display:
                button.label, self._targets[button.id] = shortcuts[i]
        self.render_summary()

    @on(Button.Pressed, ".shortcut")
    def handle_shortcut(self, event: Button.Pressed) -> None:
        target = self._targets.get(event.button.id)
        if target:
            self.post_message(NavigateMessage(target))

    @work(exclusive=True, group="dashboard")
    async def render_summary(self) -> None:
        state = self.state
        name = state.profile.display_name if state.profile else "Guest"
        md = f"## Welcome, {name}\n\n"
        if state.role == "wholesaler":
            md += self._wholesaler_md()
        elif state.role == "admin":
            md += await self._admin_md()
        else:
            md += self._retailer_md()
        self.query_one("#md-dashboard", MarkdownViewer).document.update(md)

    def _retailer_md(self) -> str:
        entities = self.state.entities
        if self.state.is_guest:
            return "You are browsing as a guest. Sign in to order, request quotes and keep lists.\n"
        orders = entities.project("orders", Order.from_doc)
        rfqs = entities.project("rfqs", Rfq.from_doc)
        lists = entities.project("saved_lists", SavedList.from_doc)
        open_rfqs = [r for r in rfqs if r.status == RFQ_OPEN]
        md = "### My Orders\n\n" + orders_table(orders) + "\n\n"
        md += "### Requests for Quote\n\n"
        md += f"- Open: {len(open_rfqs)}\n"
        md += f"- Quotes waiting: {sum(len(r.quotes) for r in open_rfqs)}\n\n"
        md += "### Saved Lists\n\n"
        if lists:
            md += "\n".join(f"- {sl.name} ({len(sl.product_ids)} products)" for sl in lists) + "\n"
        else:
            md += "_No saved lists yet._\n"
        return md

    def _wholesaler_md(self) -> str:
        uid = self.state.uid
        products = [
            p for p in self.state.entities.project("products", Product.from_doc) if p.wholesaler_id == uid
        ]
        orders = self.state.entities.project("orders", Order.from_doc)
        summary = summarize_orders(orders)
        md = "### Sales\n\n"
        md += f"- Revenue (excluding cancelled): {fmt_money(summary['revenue'])}\n"
        md += f"- Shipped or delivered: {fmt_money(summary['fulfilled_revenue'])}\n\n"
        md += orders_table(orders) + "\n\n"
        md += f"### Products ({len(products)} listed)\n\n"
        low = low_stock(products)
        if low:
            md += "#### Low Stock\n\n" + generate_markdown_table(
                ["Product", "Stock", "MOQ"], [[p.name, p.stock, p.moq] for p in low], ["l", "r", "r"]
            )
        else:
            md += "_Stock levels look fine._\n"
        return md

    async def _admin_md(self) -> str:
        summary = await crud.platform_summary(self.gateway)
        try:
            users = await crud.list_users(self.gateway, self.state.session)
        except PermissionError as e:
            _logger.error(f"Admin dashboard could not list users: {e}")
            users = []
        by_role = {}
        for u in users:
            by_role[u.role or "none"] = by_role.get(u.role or "none", 0) + 1
        rows = [
            ["Registered users", len(users)],
            *[[f"  {role.capitalize()}s", count] for role, count in sorted(by_role.items())],
            ["Products", summary["products"]],
            ["Wholesalers selling", summary["wholesalers"]],
            ["Open RFQs", summary["open_rfqs"]],
            ["RFQs total", summary["rfqs"]],
            ["Messages", summary["messages"]],
            ["Reviews", summary["reviews"]],
        ]
        return "### Platform\n\n" + generate_markdown_table(["Metric", "Value"], rows, ["l", "r"])
