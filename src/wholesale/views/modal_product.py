from typing import List, Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer, Select

from wholesale.db import crud
from wholesale.db.errors import StoreError, ValidationError
from wholesale.db.gateway import TenantGateway
from wholesale.db.models import Product, Review
from wholesale.utils.logger import get_logger
from wholesale.utils.pure import average_rating, fmt_money, fmt_timestamp, generate_markdown_table
from wholesale.utils.state import GlobalState
from wholesale.views.modal_dialog import DialogModal, PromptModal

_logger = get_logger(__name__)


class ProductDetailModal(ModalScreen[bool]):
    """
    product detail with reviews, plus ordering, saving to a list,
    reviewing and messaging the seller.
    Returns True if an order was placed.
    """

    def __init__(self, state: GlobalState, gateway: TenantGateway, product_id: str) -> None:
        super().__init__()
        self.state = state
        self.gateway = gateway
        self._product_id = product_id
        self._product: Optional[Product] = None
        self._ordered = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical(id="div-prod-actions"):
                yield Label("Quantity")
                yield Input(value="1", id="input-order-qty", type="integer")
                yield Label("Ship to")
                yield Input(placeholder="Delivery address", id="input-order-address")
                yield Button("Place Order", id="btn-order", variant="primary")
                yield Button("Save to List", id="btn-save-list")
                yield Button("Write Review", id="btn-review")
                yield Button("Message Seller", id="btn-message")
                yield Button("Go Back", id="btn-quit")
                yield Label("", id="label-status")

    async def on_mount(self):
        await self.render_product()

        if self._product is None:
            return
        qty_input = self.query_one("#input-order-qty", Input)
        qty_input.value = str(self._product.moq)
        qty_input.validators = [
            Number(minimum=self._product.moq, maximum=max(self._product.stock, self._product.moq))
        ]
        if self.state.profile:
            self.query_one("#input-order-address", Input).value = self.state.profile.address

        if self._product.stock < self._product.moq:
            order_btn = self.query_one("#btn-order", Button)
            order_btn.label = "Out of Stock"
            order_btn.disabled = True
            order_btn.variant = "warning"
        if self._product.wholesaler_id == self.state.uid:
            self.query_one("#btn-message", Button).disabled = True
        qty_input.focus()

    async def render_product(self) -> None:
        self._product = await crud.get_product(self.gateway, self._product_id)
        viewer = self.query_one(MarkdownViewer)
        if self._product is None:
            await viewer.document.update("### This product is no longer available.")
            for button in self.query(Button):
                button.disabled = button.id != "btn-quit"
            return

        p = self._product
        reviews: List[Review] = await crud.list_reviews(self.gateway, p.id)
        avg = average_rating(reviews)

        rows = [
            ["Brand", p.brand],
            ["Category", p.category],
            ["Price", fmt_money(p.price)],
            ["Minimum order", p.moq],
            ["In stock", p.stock],
            ["Seller", p.wholesaler_name],
            ["Rating", f"{avg} / 5 ({len(reviews)} reviews)" if avg else "No reviews yet"],
        ]
        md = f"### {p.name}\n\n" + generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
        if p.description:
            md += f"\n\n{p.description}"
        if reviews:
            md += "\n\n#### Reviews\n\n"
            md += generate_markdown_table(
                ["Rating", "By", "Review", "Date"],
                [["★" * r.rating, r.reviewer_name, r.text, fmt_timestamp(r.created_at)] for r in reviews],
                ["l", "l", "l", "l"],
            )
        await viewer.document.update(md)

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(self._ordered)

    def _needs_account(self) -> bool:
        if self.state.is_guest:
            self.query_one("#label-status", Label).update("Sign in to do this.")
            self.notify("Sign in to do this.", severity="warning")
            return True
        return False

    @on(Button.Pressed, "#btn-order")
    @work(exclusive=True)
    async def handle_order(self):
        if self._needs_account():
            return
        qty = self.query_one("#input-order-qty", Input).value
        address = self.query_one("#input-order-address", Input).value
        if not await self.app.push_screen_wait(
            DialogModal(
                f"Order {qty} x {self._product.name}?",
                primary_text="Place order",
                secondary_text="Cancel",
                tone="positive",
                detail=f"Ship to: {address.strip() or 'the address on your profile'}",
            )
        ):
            return
        try:
            order =await crud.place_order(self.gateway, self.state.me, self._product_id, qty, address)
        except (ValidationError, StoreError) as e:
            _logger.warning(f"Order failed: {e}")
            self.query_one("#label-status", Label).update(str(e))
            self.notify(str(e), severity="error")
            return
        self._ordered = True
        self.query_one("#label-status", Label).update(
            f"Order placed, total {fmt_money(order.total)}."
        )
        self.notify("Order placed.")
        await self.render_product()

    @on(Button.Pressed, "#btn-save-list")
    @work(exclusive=True)
    async def handle_save_to_list(self):
        if self._needs_account():
            return
        lists = await crud.list_saved_lists(self.gateway)
        options = [(sl.name, sl.id) for sl in lists] + [("+ New list", "__new__")]
        list_id = await self.app.push_screen_wait(
            PromptModal("Save to which list?", options=options, confirm_text="Save")
        )
        if list_id is None:
            return
        try:
            if list_id == "__new__":
                name = await self.app.push_screen_wait(PromptModal("New list name", "Weekly restock"))
                if name is None:
                    return
                list_id = await crud.create_saved_list(self.gateway, name)
            ok = bool(list_id) and await crud.add_to_saved_list(self.gateway, list_id, self._product_id)
        except ValidationError as e:
            self.notify(str(e), severity="error")
            return
        self.query_one("#label-status", Label).update(
            "Saved to list." if ok else "Could not save to list."
        )

    @on(Button.Pressed, "#btn-review")
    @work(exclusive=True)
    async def handle_review(self):
        if self._needs_account():
            return
        rating = await self.app.push_screen_wait(
            PromptModal(
                "Your rating",
                options=[("★" * n, str(n)) for n in range(5, 0, -1)],
                confirm_text="Next",
            )
        )
        if rating is None:
            return
        text = await self.app.push_screen_wait(PromptModal("Your review", "Great quality, fast delivery"))
        try:
            review_id = await crud.add_review(self.gateway, self.state.me, self._product_id, rating, text or "")
        except ValidationError as e:
            self.notify(str(e), severity="error")
            return
        self.query_one("#label-status", Label).update(
            "Thanks for the review." if review_id else "Review could not be saved."
        )
        await self.render_product()

    @on(Button.Pressed, "#btn-message")
    @work(exclusive=True)
    async def handle_message(self):
        if self._needs_account():
            return
        text = await self.app.push_screen_wait(
            PromptModal(f"Message {self._product.wholesaler_name}", f"About {self._product.name}...")
        )
        if text is None:
            return
        try:
            sent = await crud.send_message(self.gateway, self._product.wholesaler_id, text)
        except ValidationError as e:
            self.notify(str(e), severity="error")
            return
        self.query_one("#label-status", Label).update(
            "Message sent." if sent else "Message could not be sent."
        )

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(self._ordered)
