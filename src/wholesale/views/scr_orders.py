from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Label, MarkdownViewer, Select

from wholesale.db import crud
from wholesale.db.errors import StoreError, ValidationError
from wholesale.db.models import CANCELLED, DELIVERED, ORDER_STATUSES, SHIPPED, Order
from wholesale.utils.logger import get_logger
from wholesale.utils.pure import fmt_money, fmt_timestamp, next_statuses
from wholesale.views.base_screen import BaseScreen
from wholesale.views.modal_dialog import DialogModal

_logger = get_logger(__name__)


class OrdersScreen(BaseScreen):
    """
    Orders in the signed-in user's space.

    Retailers see what they bought and can cancel pending orders;
    wholesalers see incoming orders and move them along
    Pending -> Shipped -> Delivered (or cancel).

    Layout:
    - Markdown detail view at the top, showing the highlighted order.
    - Orders table below (newest first), filterable by status.
    """

    VIEW_KEY = "orders"
    VIEW_TITLE = "Orders"
    FEEDS = ("orders",)

    # Show some hints in footer
    BINDINGS = [
        Binding("enter", "noop", "View Order Detail", show=True, key_display="⏎"),
    ]

    def __init__(self, state, gateway) -> None:
        super().__init__(state, gateway)
        self._orders: List[Order] = []
        self._selected: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield Select(
                [(s, s) for s in ORDER_STATUSES],
                prompt="All statuses",
                id="select-status",
            )
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Button("Mark Shipped", id="btn-ship", variant="primary")
            yield Button("Mark Delivered", id="btn-deliver", variant="success")
            yield Button("Cancel Order", id="btn-cancel", variant="error")
            yield Label("", id="label-status")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Date", "Product", "Qty", "Total", "Counterparty", "Status", "Tracking")

    def refresh_view(self) -> None:
        orders = self.state.entities.project("orders", Order.from_doc)
        status = self.query_one("#select-status", Select).value
        if status != Select.BLANK:
            orders = [o for o in orders if o.status == status]
        self._orders = orders

        table = self.query_one(DataTable)
        table.clear()
        seller_view = self.state.role == "wholesaler"
        for o in orders:
            table.add_row(
                fmt_timestamp(o.created_at),
                o.product_name,
                o.quantity,
                fmt_money(o.total),
                o.buyer_name if seller_view else o.seller_name,
                o.status,
                o.tracking_number or "-",
                key=o.id,
            )
        if orders:
            keep = next((i for i, o in enumerate(orders) if o.id == self._selected), 0)
            table.move_cursor(row=keep)
            self._render_detail(orders[keep])
        else:
            self._render_detail(None)

    @on(Select.Changed, "#select-status")
    def handle_status_filter(self) -> None:
        self.refresh_view()

    @on(DataTable.RowHighlighted, "#table-orders")
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        order = self._find(event.row_key.value)
        if order:
            self._render_detail(order)

    def _find(self, order_id) -> Optional[Order]:
        return next((o for o in self._orders if o.id == order_id), None)

    def _render_detail(self, order: Optional[Order]) -> None:
        self._selected = order.id if order else None
        self._refresh_buttons(order)
        viewer = self.query_one("#md-order-detail", MarkdownViewer)
        if not order:
            viewer.document.update("### Select an order to view its details.")
            return
        md = (
            f"### Order {order.id}\n"
            f"Placed: {fmt_timestamp(order.created_at)}  \n"
            f"Buyer: {order.buyer_name}  \n"
            f"Seller: {order.seller_name}  \n"
            f"Ship To: {order.shipping_address}  \n"
            f"Status: **{order.status}**"
        )
        if order.tracking_number:
            md += f"  \nTracking: `{order.tracking_number}`"
        md += (
            "\n\n| Product | Qty | Unit Price | Line Total |\n"
            "|---|---:|---:|---:|\n"
            f"| {order.product_name} | {order.quantity} | {fmt_money(order.price)} | {fmt_money(order.total)} |"
        )
        viewer.document.update(md)

    def _refresh_buttons(self, order: Optional[Order]) -> None:
        allowed = next_statuses(order.status) if order else ()
        is_seller = order is not None and order.seller_id == self.state.uid
        self.query_one("#btn-ship", Button).display = is_seller
        self.query_one("#btn-deliver", Button).display = is_seller
        self.query_one("#btn-ship", Button).disabled = SHIPPED not in allowed
        self.query_one("#btn-deliver", Button).disabled = DELIVERED not in allowed
        self.query_one("#btn-cancel", Button).disabled = CANCELLED not in allowed

    @on(Button.Pressed, "#btn-ship")
    def handle_ship(self) -> None:
        self.change_status(SHIPPED)

    @on(Button.Pressed, "#btn-deliver")
    def handle_deliver(self) -> None:
        self.change_status(DELIVERED)

    @on(Button.Pressed, "#btn-cancel")
    def handle_cancel(self) -> None:
        self.change_status(CANCELLED)

    @work(exclusive=True)
    async def change_status(self, new_status: str) -> None:
        order = self._find(self._selected)
        if order is None:
            return
        if new_status == CANCELLED and not await self.app.push_screen_wait(
            DialogModal(
                f"Cancel the order for {order.product_name}?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            return
        try:
            updated = await crud.update_order_status(self.gateway, order.id, new_status)
        except (ValidationError, StoreError) as e:
            _logger.warning(f"Status change on {order.id} failed: {e}")
            self.report(str(e), ok=False)
            return
        text = f"Order marked {updated.status}."
        if updated.tracking_number and new_status == SHIPPED:
            text += f" Tracking number {updated.tracking_number}."
        self.report(text)
