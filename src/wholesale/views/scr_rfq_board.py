from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label, MarkdownViewer

from wholesale.db import crud
from wholesale.db.errors import StoreError, ValidationError
from wholesale.db.models import Rfq
from wholesale.utils.pure import fmt_timestamp
from wholesale.views.base_screen import BaseScreen
from wholesale.views.scr_rfq import render_rfq


class RfqBoardScreen(BaseScreen):
    """
    Open requests from retailers (public mirror); wholesalers answer with a quote.
    """

    VIEW_KEY = "rfq_board"
    VIEW_TITLE = "RFQ Board"
    FEEDS = ("open_rfqs",)

    def __init__(self, state, gateway) -> None:
        super().__init__(state, gateway)
        self._rfqs: List[Rfq] = []
        self._selected: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-open-rfqs")
            yield MarkdownViewer(id="md-rfq", show_table_of_contents=False)
            with Horizontal(id="hort-quote-form"):
                yield Input(
                    placeholder="Unit price",
                    id="input-price",
                    type="number",
                    validators=[Number(minimum=0.01)],
                )
                yield Input(
                    placeholder="Lead time (days)",
                    id="input-lead-time",
                    type="integer",
                    validators=[Number(minimum=0)],
                )
                yield Input(placeholder="Note", id="input-note")
                yield Button("Send Quote", id="btn-quote", variant="primary")
            yield Label("", id="label-status")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Posted", "Title", "Category", "Qty", "Buyer", "Quotes")

    def refresh_view(self) -> None:
        rfqs = self.state.entities.project("open_rfqs", Rfq.from_doc)
        self._rfqs = [r for r in rfqs if r.requester_id != self.state.uid]
        table = self.query_one(DataTable)
        table.clear()
        for r in self._rfqs:
            table.add_row(
                fmt_timestamp(r.created_at), r.title, r.category, r.quantity, r.requester_name, len(r.quotes),
                key=r.id,
            )
        if self._rfqs:
            keep = next((i for i, r in enumerate(self._rfqs) if r.id == self._selected), 0)
            table.move_cursor(row=keep)
            self._render_detail(self._rfqs[keep])
        else:
            self._render_detail(None)

    @on(DataTable.RowHighlighted, "#table-open-rfqs")
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        rfq = next((r for r in self._rfqs if r.id == event.row_key.value), None)
        if rfq:
            self._render_detail(rfq)

    def _render_detail(self, rfq: Optional[Rfq]) -> None:
        self._selected = rfq.id if rfq else None
        already = rfq is not None and any(q.wholesaler_id == self.state.uid for q in rfq.quotes)
        button = self.query_one("#btn-quote", Button)
        button.disabled = rfq is None
        button.label = "Quote Again" if already else "Send Quote"
        self.query_one("#md-rfq", MarkdownViewer).document.update(
            render_rfq(rfq) if rfq else "### No open requests right now."
        )

    @on(Button.Pressed, "#btn-quote")
    @work(exclusive=True)
    async def handle_quote(self) -> None:
        if self._selected is None:
            return
        try:
            quote = await crud.submit_quote(
                self.gateway,
                self.state.me,
                self._selected,
                self.query_one("#input-price", Input).value,
                self.query_one("#input-lead-time", Input).value or 0,
                self.query_one("#input-note", Input).value,
            )
        except (ValidationError, StoreError) as e:
            self.report(str(e), ok=False)
            return
        for widget_id in ("#input-price", "#input-lead-time", "#input-note"):
            self.query_one(widget_id, Input).value = ""
        self.report(f"Quote of {quote.price:.2f} sent.")
