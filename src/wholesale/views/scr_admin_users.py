from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Input, Label

from wholesale.db import crud
from wholesale.db.models import UserSummary
from wholesale.utils.logger import get_logger
from wholesale.utils.pure import fmt_timestamp
from wholesale.views.base_screen import BaseScreen

_logger = get_logger(__name__)


class AdminUsersScreen(BaseScreen):
    """Registered accounts joined with their profiles (admin only)."""

    VIEW_KEY = "users"
    VIEW_TITLE = "Users"

    def __init__(self, state, gateway) -> None:
        super().__init__(state, gateway)
        self._users: List[UserSummary] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Input(id="input-search", placeholder="Filter by email, company or role...")
            yield DataTable(id="table-users")
        with Horizontal(id="hort-table-control"):
            yield Button("Reload", id="btn-reload", variant="primary")
            yield Label("", id="label-status")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Email", "Company", "Role", "Joined", "User id")

    def refresh_view(self) -> None:
        self.load_users()

    @on(Button.Pressed, "#btn-reload")
    @work(exclusive=True)
    async def load_users(self) -> None:
        try:
            self._users = await crud.list_users(self.gateway, self.state.session)
        except PermissionError as e:
            _logger.warning(f"User listing refused for {self.state.uid}: {e}")
            self._users = []
            self.report("Only administrators can list users.", ok=False)
        self.render_table()

    @on(Input.Changed, "#input-search")
    def render_table(self) -> None:
        needle = self.query_one("#input-search", Input).value.strip().lower()
        table = self.query_one(DataTable)
        table.clear()
        for u in self._users:
            if needle and not any(needle in v.lower() for v in (u.email, u.company_name, u.role)):
                continue
            table.add_row(u.email, u.company_name or "-", u.role or "-", fmt_timestamp(u.created_at), u.uid, key=u.uid)
