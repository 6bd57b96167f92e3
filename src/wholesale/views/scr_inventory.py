from __future__ import annotations

from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label

from wholesale.db import crud
from wholesale.db.errors import ValidationError
from wholesale.db.models import Product
from wholesale.utils.logger import get_logger
from wholesale.utils.pure import LOW_STOCK_THRESHOLD, fmt_money
from wholesale.views.base_screen import BaseScreen
from wholesale.views.modal_dialog import DialogModal

_logger = get_logger(__name__)


class InventoryScreen(BaseScreen):
    """
    Wholesalers add, edit and delete their own products.
    Admins get the same table over every product, for moderation.
    """

    VIEW_KEY = "inventory"
    VIEW_TITLE = "Inventory"
    FEEDS = ("products",)

    FIELDS = ("name", "brand", "category", "price", "moq", "stock", "description")

    current_pid: Optional[str] = None

    def __init__(self, state, gateway) -> None:
        super().__init__(state, gateway)
        self._products: List[Product] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Input(id="input-search", placeholder="Filter products...")
            yield DataTable(id="table-inventory")
            with Horizontal(id="hort-controls"):
                with Vertical():
                    yield Input(placeholder="Name", id="input-name")
                    yield Input(placeholder="Brand", id="input-brand")
                    yield Input(placeholder="Category", id="input-category")
                with Vertical():
                    yield Input(
                        placeholder="Price",
                        id="input-price",
                        type="number",
                        validators=[Number(minimum=0.0)],
                    )
                    yield Input(
                        placeholder="Minimum order qty",
                        id="input-moq",
                        type="integer",
                        validators=[Number(minimum=1)],
                    )
                    yield Input(
                        placeholder="Stock",
                        id="input-stock",
                        type="integer",
                        validators=[Number(minimum=0)],
                    )
                with Vertical(id="div-button"):
                    yield Input(placeholder="Description", id="input-description")
                    yield Button("New", id="btn-new")
                    yield Button("Save", id="btn-save", variant="success")
                    yield Button("Delete", id="btn-delete", variant="error")
            yield Label("", id="label-status")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Name", "Brand", "Category", "Price", "MOQ", "Stock", "Seller")

    @property
    def is_admin(self) -> bool:
        return self.state.role == "admin"

    def refresh_view(self) -> None:
        products = self.state.entities.project("products", Product.from_doc)
        if not self.is_admin:
            products = [p for p in products if p.wholesaler_id == self.state.uid]
        needle = self.query_one("#input-search", Input).value.strip().lower()
        if needle:
            products = [
                p for p in products
                if needle in p.name.lower() or needle in p.category.lower() or needle in p.brand.lower()
            ]
        self._products = products

        # admins moderate, they do not publish
        self.query_one("#btn-new", Button).display = not self.is_admin
        self.query_one("#btn-save", Button).display = not self.is_admin

        table = self.query_one(DataTable)
        table.clear()
        for p in products:
            stock = f"{p.stock} (low)" if p.stock < LOW_STOCK_THRESHOLD else p.stock
            table.add_row(
                p.name, p.brand, p.category, fmt_money(p.price), p.moq, stock, p.wholesaler_name,
                key=p.id,
            )

    @on(Input.Changed, "#input-search")
    def handle_search(self) -> None:
        self.refresh_view()

    @on(DataTable.RowSelected, "#table-inventory")
    def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        product = next((p for p in self._products if p.id == event.row_key.value), None)
        if product is None:
            return
        self.current_pid = product.id
        for name in self.FIELDS:
            value = getattr(product, name)
            self.query_one(f"#input-{name}", Input).value = (
                f"{value:.2f}" if name == "price" else str(value)
            )

    @on(Button.Pressed, "#btn-new")
    def handle_new(self) -> None:
        self.current_pid = None
        for name in self.FIELDS:
            self.query_one(f"#input-{name}", Input).value = ""
        self.query_one("#input-name", Input).focus()

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        values = {name: self.query_one(f"#input-{name}", Input).value for name in self.FIELDS}
        try:
            if self.current_pid is None:
                pid = await crud.add_product(self.gateway, self.state.me, **values)
                ok = pid is not None
                if ok:
                    self.current_pid = pid
                text = "Product added." if ok else "Adding the product failed."
            else:
                ok = await crud.update_product(self.gateway, self.current_pid, **values)
                text = "Product updated." if ok else "Update failed."
        except (ValidationError, PermissionError) as e:
            self.report(str(e), ok=False)
            return
        self.report(text, ok=ok)

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True)
    async def handle_delete(self) -> None:
        if self.current_pid is None:
            self.report("Select a product first.", ok=False)
            return
        if not await self.app.push_screen_wait(
            DialogModal(
                "Delete this product? Existing orders keep their copy.",
                primary_text="Delete",
                secondary_text="Keep",
                tone="error",
            )
        ):
            return
        try:
            ok = await crud.delete_product(self.gateway, self.current_pid)
        except PermissionError as e:
            _logger.warning(f"Delete of {self.current_pid} refused: {e}")
            self.report(str(e), ok=False)
            return
        if ok:
            _logger.info(f"Product {self.current_pid} deleted by {self.state.uid}")
            self.handle_new()
        self.report("Product deleted." if ok else "Delete failed.", ok=ok)
