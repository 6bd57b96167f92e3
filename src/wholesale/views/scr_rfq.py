from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Input, Label, MarkdownViewer, TextArea

from wholesale.db import crud
from wholesale.db.errors import StoreError, ValidationError
from wholesale.db.models import RFQ_OPEN, Rfq
from wholesale.utils.logger import get_logger
from wholesale.utils.pure import fmt_money, fmt_timestamp, generate_markdown_table
from wholesale.views.base_screen import BaseScreen
from wholesale.views.modal_dialog import DialogModal, PromptModal

_logger = get_logger(__name__)


def render_rfq(rfq: Rfq) -> str:
    md = (
        f"### {rfq.title}\n"
        f"Category: {rfq.category or '-'}  \n"
        f"Quantity: {rfq.quantity}  \n"
        f"Requested by: {rfq.requester_name}  \n"
        f"Status: **{rfq.status}**\n\n"
        f"{rfq.details}\n\n"
    )
    if rfq.quotes:
        rows = [
            [i + 1, q.wholesaler_name, fmt_money(q.price), f"{q.lead_time_days} days", q.note]
            for i, q in enumerate(rfq.quotes)
        ]
        md += "#### Quotes\n\n" + generate_markdown_table(
            ["#", "Wholesaler", "Unit Price", "Lead Time", "Note"], rows, ["r", "l", "r", "r", "l"]
        )
    else:
        md += "_No quotes yet._"
    if rfq.accepted_quote:
        q = rfq.accepted_quote
        md += f"\n\n**Accepted:** {q.wholesaler_name} at {fmt_money(q.price)}"
    return md


class RfqScreen(BaseScreen):
    """
    Retailers post requests for quotes, compare the quotes wholesalers send
    back and accept one (which closes the RFQ).
    """

    VIEW_KEY = "rfqs"
    VIEW_TITLE = "Requests for Quote"
    FEEDS = ("rfqs",)

    def __init__(self, state, gateway) -> None:
        super().__init__(state, gateway)
        self._rfqs: List[Rfq] = []
        self._selected: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal():
            with Vertical(id="div-rfq-list"):
                yield DataTable(id="table-rfqs")
                yield MarkdownViewer(id="md-rfq", show_table_of_contents=False)
                with Horizontal(id="hort-rfq-actions"):
                    yield Button("Accept Quote", id="btn-accept", variant="success")
                    yield Button("Close", id="btn-close", variant="warning")
                    yield Button("Delete", id="btn-delete", variant="error")
            with Vertical(id="div-rfq-form"):
                yield Label("New request")
                yield Input(placeholder="Title", id="input-title")
                yield Input(placeholder="Category", id="input-category")
                yield Input(placeholder="Quantity", id="input-quantity", type="integer")
                yield TextArea(id="text-details")
                yield Button("Submit RFQ", id="btn-submit", variant="primary")
                yield Label("", id="label-status")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Created", "Title", "Qty", "Quotes", "Status")

    def refresh_view(self) -> None:
        self._rfqs = self.state.entities.project("rfqs", Rfq.from_doc)
        table = self.query_one(DataTable)
        table.clear()
        for r in self._rfqs:
            table.add_row(fmt_timestamp(r.created_at), r.title, r.quantity, len(r.quotes), r.status, key=r.id)
        if self._rfqs:
            keep = next((i for i, r in enumerate(self._rfqs) if r.id == self._selected), 0)
            table.move_cursor(row=keep)
            self._render_detail(self._rfqs[keep])
        else:
            self._render_detail(None)

    @on(DataTable.RowHighlighted, "#table-rfqs")
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        rfq = self._find(event.row_key.value)
        if rfq:
            self._render_detail(rfq)

    def _find(self, rfq_id) -> Optional[Rfq]:
        return next((r for r in self._rfqs if r.id == rfq_id), None)

    def _render_detail(self, rfq: Optional[Rfq]) -> None:
        self._selected = rfq.id if rfq else None
        is_open = rfq is not None and rfq.status == RFQ_OPEN
        self.query_one("#btn-accept", Button).disabled = not (is_open and rfq.quotes)
        self.query_one("#btn-close", Button).disabled = not is_open
        self.query_one("#btn-delete", Button).disabled = rfq is None
        viewer = self.query_one("#md-rfq", MarkdownViewer)
        viewer.document.update(render_rfq(rfq) if rfq else "### No request selected.")

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self) -> None:
        if self.state.is_guest:
            self.report("Sign in to post a request.", ok=False)
            return
        title = self.query_one("#input-title", Input)
        try:
            await crud.create_rfq(
                self.gateway,
                self.state.me,
                title.value,
                self.query_one("#text-details", TextArea).text,
                self.query_one("#input-category", Input).value,
                self.query_one("#input-quantity", Input).value,
            )
        except (ValidationError, StoreError) as e:
            self.report(str(e), ok=False)
            return
        for widget_id in ("#input-title", "#input-category", "#input-quantity"):
            self.query_one(widget_id, Input).value = ""
        self.query_one("#text-details", TextArea).text = ""
        self.report("Request posted, wholesalers can now quote.")

    @on(Button.Pressed, "#btn-accept")
    @work(exclusive=True)
    async def handle_accept(self) -> None:
        rfq = self._find(self._selected)
        if rfq is None or not rfq.quotes:
            return
        choice = await self.app.push_screen_wait(
            PromptModal(
                "Accept which quote?",
                options=[
                    (f"{q.wholesaler_name}: {fmt_money(q.price)}", str(i))
                    for i, q in enumerate(rfq.quotes)
                ],
                confirm_text="Accept",
            )
        )
        if choice is None:
            return
        try:
            await crud.accept_quote(self.gateway, rfq.id, int(choice))
        except (ValidationError, StoreError) as e:
            self.report(str(e), ok=False)
            return
        self.report("Quote accepted, the request is closed.")

    @on(Button.Pressed, "#btn-close")
    @work(exclusive=True)
    async def handle_close(self) -> None:
        rfq = self._find(self._selected)
        if rfq is None:
            return
        try:
            await crud.close_rfq(self.gateway, rfq.id)
        except (ValidationError, StoreError) as e:
            self.report(str(e), ok=False)
            return
        self.report("Request closed.")

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True)
    async def handle_delete(self) -> None:
        rfq = self._find(self._selected)
        if rfq is None:
            return
        if not await self.app.push_screen_wait(
            DialogModal(f"Delete '{rfq.title}'?", "Delete", "Keep", tone="error")
        ):
            return
        try:
            await crud.delete_rfq(self.gateway, rfq.id)
        except StoreError as e:
            _logger.error(f"Deleting RFQ {rfq.id} failed: {e}")
            self.report("Delete failed.", ok=False)
            return
        self.report("Request deleted.")
