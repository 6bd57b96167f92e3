from datetime import date, timedelta
from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label, Select

from wholesale.db import crud
from wholesale.db.errors import ValidationError
from wholesale.db.models import OFFER_TYPES, Offer
from wholesale.utils.pure import offer_is_active
from wholesale.views.base_screen import BaseScreen
from wholesale.views.modal_dialog import DialogModal


class OffersScreen(BaseScreen):
    """Wholesaler promotions: a discount on a product, a category or a customer group."""

    VIEW_KEY = "offers"
    VIEW_TITLE = "Offers"
    FEEDS = ("offers",)

    current_offer: Optional[str] = None

    def __init__(self, state, gateway) -> None:
        super().__init__(state, gateway)
        self._offers: List[Offer] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-offers")
            with Horizontal(id="hort-controls"):
                with Vertical():
                    yield Input(placeholder="Offer name", id="input-name")
                    yield Select(
                        [(t.replace("_", " ").capitalize(), t) for t in OFFER_TYPES],
                        value=OFFER_TYPES[0],
                        allow_blank=False,
                        id="select-type",
                    )
                    yield Input(placeholder="Target (product, category or group)", id="input-target")
                with Vertical():
                    yield Input(
                        placeholder="Discount %",
                        id="input-discount",
                        type="number",
                        validators=[Number(minimum=0.01, maximum=100)],
                    )
                    yield Input(placeholder="Valid from (YYYY-MM-DD)", id="input-from")
                    yield Input(placeholder="Valid to (YYYY-MM-DD)", id="input-to")
                with Vertical(id="div-button"):
                    yield Button("New", id="btn-new")
                    yield Button("Save", id="btn-save", variant="success")
                    yield Button("Delete", id="btn-delete", variant="error")
            yield Label("", id="label-status")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Name", "Type", "Target", "Discount", "From", "To", "Active")
        self.handle_new()

    def refresh_view(self) -> None:
        self._offers = self.state.entities.project("offers", Offer.from_doc)
        today = date.today()
        table = self.query_one(DataTable)
        table.clear()
        for o in self._offers:
            table.add_row(
                o.name,
                o.offer_type.replace("_", " "),
                o.target or "-",
                f"{o.discount:g}%",
                o.valid_from,
                o.valid_to,
                "yes" if offer_is_active(o, today) else "no",
                key=o.id,
            )

    @on(DataTable.RowSelected, "#table-offers")
    def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        offer = next((o for o in self._offers if o.id == event.row_key.value), None)
        if offer is None:
            return
        self.current_offer = offer.id
        self.query_one("#input-name", Input).value = offer.name
        self.query_one("#select-type", Select).value = offer.offer_type
        self.query_one("#input-target", Input).value = offer.target
        self.query_one("#input-discount", Input).value = f"{offer.discount:g}"
        self.query_one("#input-from", Input).value = offer.valid_from
        self.query_one("#input-to", Input).value = offer.valid_to

    @on(Button.Pressed, "#btn-new")
    def handle_new(self) -> None:
        self.current_offer = None
        for widget_id in ("#input-name", "#input-target", "#input-discount"):
            self.query_one(widget_id, Input).value = ""
        # a week-long offer starting today
        today = date.today()
        self.query_one("#input-from", Input).value = today.isoformat()
        self.query_one("#input-to", Input).value = (today + timedelta(days=7)).isoformat()

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        try:
            offer_id = await crud.save_offer(
                self.gateway,
                self.query_one("#input-name", Input).value,
                self.query_one("#select-type", Select).value,
                self.query_one("#input-target", Input).value,
                self.query_one("#input-discount", Input).value,
                self.query_one("#input-from", Input).value,
                self.query_one("#input-to", Input).value,
                offer_id=self.current_offer,
            )
        except ValidationError as e:
            self.report(str(e), ok=False)
            return
        if offer_id is None:
            self.report("Saving the offer failed.", ok=False)
            return
        created = self.current_offer is None
        self.current_offer = offer_id
        self.report("Offer created." if created else "Offer updated.")

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True)
    async def handle_delete(self) -> None:
        if self.current_offer is None:
            self.report("Select an offer first.", ok=False)
            return
        if not await self.app.push_screen_wait(
            DialogModal("Delete this offer?", "Delete", "Keep", tone="error")
        ):
            return
        ok = await crud.delete_offer(self.gateway, self.current_offer)
        if ok:
            self.handle_new()
        self.report("Offer deleted." if ok else "Delete failed.", ok=ok)
