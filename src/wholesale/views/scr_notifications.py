from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Label

from wholesale.db import crud
from wholesale.db.models import Notification
from wholesale.utils.pure import fmt_timestamp
from wholesale.views.base_screen import BaseScreen
from wholesale.views.modal_dialog import DialogModal


class NotificationsScreen(BaseScreen):
    VIEW_KEY = "notifications"
    VIEW_TITLE = "Notifications"
    FEEDS = ("notifications",)

    def __init__(self, state, gateway) -> None:
        super().__init__(state, gateway)
        self._items: List[Notification] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-notifications")
        with Horizontal(id="hort-table-control"):
            yield Button("Mark Read", id="btn-read", variant="primary")
            yield Button("Mark All Read", id="btn-read-all")
            yield Button("Clear All", id="btn-clear", variant="error")
            yield Label("", id="label-status")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("", "When", "Notification")

    def refresh_view(self) -> None:
        self._items = self.state.entities.project("notifications", Notification.from_doc)
        table = self.query_one(DataTable)
        table.clear()
        for n in self._items:
            table.add_row("" if n.read else "●", fmt_timestamp(n.created_at), n.text, key=n.id)
        unread = sum(1 for n in self._items if not n.read)
        self.sub_title = f"{self.VIEW_TITLE} ({unread} unread)" if unread else self.VIEW_TITLE

    @on(DataTable.RowSelected, "#table-notifications")
    @on(Button.Pressed, "#btn-read")
    @work(exclusive=True)
    async def handle_mark_read(self) -> None:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        await crud.mark_notification_read(self.gateway, row_key.value)

    @on(Button.Pressed, "#btn-read-all")
    @work(exclusive=True)
    async def handle_mark_all(self) -> None:
        for n in self._items:
            if not n.read:
                await crud.mark_notification_read(self.gateway, n.id)

    @on(Button.Pressed, "#btn-clear")
    @work(exclusive=True)
    async def handle_clear(self) -> None:
        if not self._items:
            return
        if not await self.app.push_screen_wait(
            DialogModal("Delete every notification?", "Clear", "Keep", tone="warning")
        ):
            return
        removed = await crud.clear_notifications(self.gateway)
        self.report(f"{removed} notification(s) cleared.")
