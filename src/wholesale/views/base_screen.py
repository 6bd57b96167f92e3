from typing import Tuple

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from wholesale.db.gateway import TenantGateway
from wholesale.utils.logger import get_logger
from wholesale.utils.messages import EntitiesChangedMessage, NavigateMessage, UserLogoutMessage
from wholesale.utils.pure import generate_markdown_table
from wholesale.utils.state import FeedSet, GlobalState
from wholesale.views.modal_dialog import DialogModal, QuitDialogModal

_logger = get_logger(__name__)


class Sidebar(Container):
    def __init__(self, state: GlobalState) -> None:
        super().__init__()
        self.state = state

    def compose(self) -> ComposeResult:
        yield Label("User Info", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        await self.refresh_info()

    async def refresh_info(self) -> None:
        """user info table and the role's menu"""
        state = self.state
        name = state.profile.display_name if state.profile else "Guest"
        table_rows = [
            ["User", name],
            ["Role", (state.role or "-").capitalize()],
        ]
        if state.identity and state.identity.email:
            table_rows.append(["Email", state.identity.email])
        md_table_str = generate_markdown_table(None, table_rows, ["l", "l"])
        await self.query_one(Markdown).update(md_table_str)

        self.query_one("#btn-logout", Button).label = (
            "Sign in" if state.is_guest else "Log out"
        )

        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [
                ListItem(Label(label), id="list-menu-item-" + key)
                for key, label in self.app.router.nav_items(state.role)
            ]
        )
        self.highlight_item(getattr(self.screen, "VIEW_KEY", ""))

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_view = event.item.id.removeprefix("list-menu-item-")
        self.post_message(NavigateMessage(selected_view))

    @on(Button.Pressed, "#btn-logout")
    @work()
    async def handle_logout(self):
        if not self.state.is_guest and not await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to log out?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, view_key: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = item.id == "list-menu-item-" + view_key


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like headers, footers,
    sidebar and keybindings, and owns the screen's live feeds.

    Subclasses list the feeds they render in ``FEEDS`` (see ``crud.FEEDS``)
    and draw from ``self.state.entities`` in ``refresh_view``.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    VIEW_KEY = ""
    VIEW_TITLE = "Wholesale Hub"
    FEEDS: Tuple[str, ...] = ()

    def __init__(self, state: GlobalState, gateway: TenantGateway):
        super().__init__()
        self.state = state
        self.gateway = gateway
        self.feed_set = FeedSet(state, gateway, lambda kind: self.post_message(EntitiesChangedMessage(kind)))

        self.configure(header_sub_title=self.VIEW_TITLE)

    def configure(
        self,
        header_sub_title: str = "Base Screen",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        """
        self.app.title = "Wholesale Hub"
        self.sub_title = header_sub_title
        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar(self.state)
        yield Header()
        yield Footer(show_command_palette=False)

    def feeds(self) -> Tuple[str, ...]:
        return self.FEEDS

    @on(ScreenResume)
    async def handle_resume(self) -> None:
        if self._show_sidebar:
            await self.query_one(Sidebar).refresh_info()
        if not self.feed_set.active:
            self.start_feeds()
        else:
            self.refresh_view()

    @work(exclusive=True, group="feeds")
    async def start_feeds(self) -> None:
        """(Re)subscribe every feed for the current session."""
        await self.feed_set.start(self.feeds())
        self.refresh_view()

    def on_unmount(self) -> None:
        self.feed_set.stop()

    @on(EntitiesChangedMessage)
    def handle_entities_changed(self, message: EntitiesChangedMessage) -> None:
        self.refresh_view()

    def refresh_view(self) -> None:
        """Redraw from the entity cache; screens with data override this."""

    def report(self, text: str, ok: bool = True) -> None:
        """Inline result line (if the screen has one) plus a toast."""
        for label in self.query("#label-status"):
            label.update(text)
            label.set_class(not ok, "-error")
        self.notify(text, severity="information" if ok else "error")

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
