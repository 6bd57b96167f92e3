import argparse
import asyncio
from typing import Dict, List, Optional

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from wholesale.db.documents import DocumentStore
from wholesale.db.gateway import TenantGateway
from wholesale.db.identity import IdentityProvider
from wholesale.db.seed import seed_demo
from wholesale.utils.config import Settings, load_settings
from wholesale.utils.logger import get_logger
from wholesale.utils.messages import (
    NavigateMessage,
    QuitRequestedMessage,
    UserLogoutMessage,
    ViewSwitchedMessage,
)
from wholesale.utils.session import IdentityAdapter
from wholesale.utils.state import GlobalState
from wholesale.views.router import Route, ViewRouter
from wholesale.views.scr_admin_users import AdminUsersScreen
from wholesale.views.scr_catalog import CatalogScreen
from wholesale.views.scr_dashboard import DashboardScreen
from wholesale.views.scr_inventory import InventoryScreen
from wholesale.views.scr_login import LoginScreen
from wholesale.views.scr_messages import MessagesScreen
from wholesale.views.scr_notifications import NotificationsScreen
from wholesale.views.scr_offers import OffersScreen
from wholesale.views.scr_orders import OrdersScreen
from wholesale.views.scr_profile import ProfileScreen
from wholesale.views.scr_rfq import RfqScreen
from wholesale.views.scr_rfq_board import RfqBoardScreen
from wholesale.views.scr_saved_lists import SavedListsScreen

_logger = get_logger(__name__)

# first route of each role is where it lands after sign-in
ROUTES: Dict[str, List[Route]] = {
    "retailer": [
        Route("catalog", "Catalog", CatalogScreen),
        Route("dashboard", "Dashboard", DashboardScreen),
        Route("orders", "My Orders", OrdersScreen),
        Route("rfqs", "Requests for Quote", RfqScreen),
        Route("saved_lists", "Saved Lists", SavedListsScreen),
        Route("messages", "Messages", MessagesScreen),
        Route("notifications", "Notifications", NotificationsScreen),
        Route("profile", "Profile", ProfileScreen),
    ],
    "wholesaler": [
        Route("dashboard", "Dashboard", DashboardScreen),
        Route("inventory", "Inventory", InventoryScreen),
        Route("orders", "Incoming Orders", OrdersScreen),
        Route("rfq_board", "RFQ Board", RfqBoardScreen),
        Route("offers", "Offers", OffersScreen),
        Route("messages", "Messages", MessagesScreen),
        Route("notifications", "Notifications", NotificationsScreen),
        Route("profile", "Profile", ProfileScreen),
    ],
    "admin": [
        Route("dashboard", "Dashboard", DashboardScreen),
        Route("users", "Users", AdminUsersScreen),
        Route("inventory", "All Products", InventoryScreen),
        Route("messages", "Messages", MessagesScreen),
        Route("notifications", "Notifications", NotificationsScreen),
        Route("profile", "Profile", ProfileScreen),
    ],
}


class WholesaleApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    CSS_PATH = [
        "styles/index.tcss",
        "styles/login.tcss",
        "styles/catalog.tcss",
        "styles/orders.tcss",
        "styles/inventory.tcss",
        "styles/rfq.tcss",
        "styles/lists.tcss",
        "styles/messages.tcss",
    ]

    state: GlobalState
    gateway: TenantGateway
    router: ViewRouter

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__()
        self.settings = settings or load_settings()
        self.store = DocumentStore(self.settings.db_path)
        self.session = IdentityAdapter(
            IdentityProvider(self.settings.db_path), self.settings.auth_token
        )
        self.state = GlobalState(self.session)
        self.gateway = TenantGateway(self.store, self.session, self.settings.app_id)
        self.router = ViewRouter(ROUTES)
        for key, screen in self.router.screens().items():
            self.add_mode(key, lambda screen=screen: screen(self.state, self.gateway))

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    async def go_to(self, view_key: Optional[str]) -> None:
        route = self.router.resolve(self.state.role, view_key)
        if view_key and route.key != view_key:
            _logger.warning(f"View {view_key!r} not available for role {self.state.role}")
        old = self.current_mode
        if old == route.key:
            return
        self.post_message(ViewSwitchedMessage(old, route.key))
        await self.switch_mode(route.key)

    @on(NavigateMessage)
    async def handle_navigate(self, message: NavigateMessage) -> None:
        await self.go_to(message.view_key)

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        was_guest = self.state.is_guest
        await self.session.logout()
        self.state.reset()
        if not was_guest:
            self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        await self.session.close()
        self.exit()

    @work(exclusive=True, group="main-flow")
    async def main_flow(self):
        await self.session.start()
        await self.push_screen_wait(LoginScreen(self.state, self.gateway))
        role = await self.state.load_profile(self.gateway)
        _logger.info(f"Signed in as {self.state.uid} ({role})")
        await self.go_to(self.router.default_view(role))


def run() -> None:
    parser = argparse.ArgumentParser(prog="wholesale", description="B2B wholesale marketplace client")
    parser.add_argument("--seed", action="store_true", help="load demo users and products into an empty database")
    args = parser.parse_args()

    settings = load_settings()
    if args.seed or settings.seed_demo:
        asyncio.run(
            seed_demo(
                DocumentStore(settings.db_path),
                IdentityProvider(settings.db_path),
                settings.app_id,
            )
        )
    WholesaleApp(settings).run()


if __name__ == "__main__":
    run()
