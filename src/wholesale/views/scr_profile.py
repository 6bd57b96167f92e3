from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Button, Input, Label, Markdown

from wholesale.db import crud
from wholesale.db.errors import ValidationError
from wholesale.utils.logger import get_logger
from wholesale.utils.pure import generate_markdown_table
from wholesale.views.base_screen import BaseScreen, Sidebar

_logger = get_logger(__name__)


class ProfileScreen(BaseScreen):
    """Company details. The role is chosen at sign-up and shown read-only."""

    VIEW_KEY = "profile"
    VIEW_TITLE = "Profile"

    FIELDS = ("company_name", "contact_name", "phone", "address")

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-profile"):
            yield Markdown("", id="md-account")
            yield Label("Company name")
            yield Input(id="input-company_name")
            yield Label("Contact name")
            yield Input(id="input-contact_name")
            yield Label("Phone")
            yield Input(id="input-phone")
            yield Label("Address")
            yield Input(id="input-address")
            yield Button("Save", id="btn-save", variant="success")
            yield Label("", id="label-status")

    def refresh_view(self) -> None:
        state = self.state
        rows = [
            ["Role", (state.role or "-").capitalize()],
            ["Email", (state.identity.email if state.identity else None) or "-"],
            ["User id", state.uid or "-"],
        ]
        self.query_one("#md-account", Markdown).update(
            generate_markdown_table(None, rows, ["l", "l"])
        )
        profile = state.profile
        for name in self.FIELDS:
            self.query_one(f"#input-{name}", Input).value = getattr(profile, name) if profile else ""
        self.query_one("#btn-save", Button).disabled = state.is_guest

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        values = {name: self.query_one(f"#input-{name}", Input).value for name in self.FIELDS}
        try:
            ok = await crud.save_profile(self.gateway, **values)
        except ValidationError as e:
            self.report(str(e), ok=False)
            return
        if not ok:
            self.report("Saving the profile failed.", ok=False)
            return
        self.state.profile = await crud.get_profile(self.gateway)
        _logger.info(f"Profile of {self.state.uid} updated")
        await self.query_one(Sidebar).refresh_info()
        self.report("Profile saved.")
