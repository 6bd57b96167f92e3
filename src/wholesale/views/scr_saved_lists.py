from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Label, ListItem, ListView

from wholesale.db import crud
from wholesale.db.errors import ValidationError
from wholesale.db.models import Product, SavedList
from wholesale.utils.pure import fmt_money
from wholesale.views.base_screen import BaseScreen
from wholesale.views.modal_dialog import DialogModal, PromptModal
from wholesale.views.modal_product import ProductDetailModal


class SavedListsScreen(BaseScreen):
    """
    Retailer shopping lists. Lists on the left, the selected list's products
    on the right (joined against the live catalog).
    """

    VIEW_KEY = "saved_lists"
    VIEW_TITLE = "Saved Lists"
    FEEDS = ("saved_lists", "products")

    def __init__(self, state, gateway) -> None:
        super().__init__(state, gateway)
        self._lists: List[SavedList] = []
        self._selected: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal():
            with Vertical(id="div-lists"):
                yield Label("Lists")
                yield ListView(id="list-saved")
                yield Button("New List", id="btn-new-list", variant="primary")
                yield Button("Delete List", id="btn-delete-list", variant="error")
            with Vertical(id="div-list-items"):
                yield DataTable(id="table-list-items")
                with Horizontal(id="hort-table-control"):
                    yield Button("View Product", id="btn-view")
                    yield Button("Remove", id="btn-remove", variant="warning")
                    yield Label("", id="label-status")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Product", "Brand", "Price", "MOQ", "Stock", "Seller")

    def _current(self) -> Optional[SavedList]:
        return next((sl for sl in self._lists if sl.id == self._selected), None)

    def refresh_view(self) -> None:
        self._lists = self.state.entities.project("saved_lists", SavedList.from_doc)
        if self._current() is None:
            self._selected = self._lists[0].id if self._lists else None
        self.refresh_lists()
        self.refresh_items()

    @work(exclusive=True, group="saved-lists-menu")
    async def refresh_lists(self) -> None:
        menu = self.query_one("#list-saved", ListView)
        await menu.clear()
        await menu.extend(
            [ListItem(Label(f"{sl.name} ({len(sl.product_ids)})"), id="saved-" + sl.id) for sl in self._lists]
        )
        for item in menu.children:
            item.highlighted = item.id == f"saved-{self._selected}"

    def refresh_items(self) -> None:
        current = self._current()
        self.query_one("#btn-delete-list", Button).disabled = current is None
        table = self.query_one(DataTable)
        table.clear()
        if current is None:
            return
        for pid in current.product_ids:
            doc = self.state.entities.get("products", pid)
            if doc is None:
                table.add_row("(no longer listed)", "-", "-", "-", "-", "-", key=pid)
                continue
            p = Product.from_doc(doc)
            table.add_row(p.name, p.brand, fmt_money(p.price), p.moq, p.stock, p.wholesaler_name, key=pid)

    @on(ListView.Selected, "#list-saved")
    def handle_list_selected(self, event: ListView.Selected) -> None:
        self._selected = event.item.id.removeprefix("saved-")
        self.refresh_items()

    def _cursor_product(self) -> Optional[str]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return row_key.value

    @on(Button.Pressed, "#btn-new-list")
    @work(exclusive=True)
    async def handle_new_list(self) -> None:
        name = await self.app.push_screen_wait(PromptModal("New list name", "Weekly restock", confirm_text="Create"))
        if name is None:
            return
        try:
            list_id = await crud.create_saved_list(self.gateway, name)
        except ValidationError as e:
            self.report(str(e), ok=False)
            return
        if list_id:
            self._selected = list_id
        self.report(f"List '{name}' created." if list_id else "Creating the list failed.", ok=bool(list_id))

    @on(Button.Pressed, "#btn-delete-list")
    @work(exclusive=True)
    async def handle_delete_list(self) -> None:
        current = self._current()
        if current is None:
            return
        if not await self.app.push_screen_wait(
            DialogModal(f"Delete the list '{current.name}'?", "Delete", "Keep", tone="error")
        ):
            return
        ok = await crud.delete_saved_list(self.gateway, current.id)
        self.report("List deleted." if ok else "Delete failed.", ok=ok)

    @on(Button.Pressed, "#btn-remove")
    @work(exclusive=True)
    async def handle_remove(self) -> None:
        current, pid = self._current(), self._cursor_product()
        if current is None or pid is None:
            return
        ok = await crud.remove_from_saved_list(self.gateway, current.id, pid)
        self.report("Removed from list." if ok else "Remove failed.", ok=ok)

    @on(DataTable.RowSelected, "#table-list-items")
    @on(Button.Pressed, "#btn-view")
    def handle_view(self) -> None:
        pid = self._cursor_product()
        if pid is None or self.state.entities.get("products", pid) is None:
            return
        self.app.push_screen(ProductDetailModal(self.state, self.gateway, pid))
