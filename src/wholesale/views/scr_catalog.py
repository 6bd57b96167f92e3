from textual import events, on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.validation import Number
from textual.widgets import DataTable, Input, Label, Select

from wholesale.db.models import Product
from wholesale.utils.pure import categories_of, filter_products, fmt_money
from wholesale.views.base_screen import BaseScreen
from wholesale.views.modal_product import ProductDetailModal


class CatalogScreen(BaseScreen):
    """
    Product catalog for retailers: keyword, category and max-price filters
    over the live products feed. Enter opens the product detail.
    """

    VIEW_KEY = "catalog"
    VIEW_TITLE = "Product Catalog"
    FEEDS = ("products",)

    # only here to be displayed in footer
    BINDINGS = [
        Binding("enter", "noop", "View Product", show=True, key_display="⏎"),
    ]

    def __init__(self, state, gateway) -> None:
        super().__init__(state, gateway)
        self._categories = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-filters"):
            yield Input(id="input-search", placeholder="Search name, brand...")
            yield Select([], id="select-category", prompt="All categories")
            yield Input(
                id="input-max-price",
                placeholder="Max price",
                type="number",
                validators=[Number(minimum=0)],
            )
        yield DataTable(id="table-products")
        yield Label("", id="label-result-cnt")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Name", "Brand", "Category", "Price", "MOQ", "Stock", "Seller")

        self.query_one("#input-search").focus()

    def _filters(self):
        query = self.query_one("#input-search", Input).value
        category = self.query_one("#select-category", Select).value
        if category == Select.BLANK:
            category = None
        max_price_input = self.query_one("#input-max-price", Input)
        max_price = None
        if max_price_input.value and max_price_input.is_valid:
            max_price = float(max_price_input.value)
        return query, category, max_price

    def refresh_view(self) -> None:
        products = self.state.entities.project("products", Product.from_doc)

        # options only change with the category set, resetting them clears the selection
        categories = categories_of(products)
        if categories != self._categories:
            self._categories = categories
            select = self.query_one("#select-category", Select)
            current = select.value
            with select.prevent(Select.Changed):
                select.set_options([(c, c) for c in categories])
                if current != Select.BLANK and current in categories:
                    select.value = current

        query, category, max_price = self._filters()
        visible = filter_products(products, category, max_price, query)

        table = self.query_one(DataTable)
        table.clear()
        for p in visible:
            table.add_row(
                p.name,
                p.brand,
                p.category,
                fmt_money(p.price),
                p.moq,
                p.stock if p.stock > 0 else "Out of stock",
                p.wholesaler_name,
                key=p.id,
            )
        self.query_one("#label-result-cnt", Label).update(
            f"{len(visible)} of {len(products)} products"
        )

    @on(Input.Changed, "#input-search")
    @on(Input.Changed, "#input-max-price")
    @on(Select.Changed, "#select-category")
    def handle_filter_change(self) -> None:
        self.refresh_view()

    @on(DataTable.RowSelected, "#table-products")
    def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        self.open_detail(event.row_key.value)

    @work()
    async def open_detail(self, product_id: str) -> None:
        await self.app.push_screen_wait(
            ProductDetailModal(self.state, self.gateway, product_id)
        )

    async def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.query_one("#input-search").focus()
