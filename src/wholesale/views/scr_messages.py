from typing import Dict, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Input, Label, ListItem, ListView, Markdown

from wholesale.db import crud
from wholesale.db.errors import ValidationError
from wholesale.db.models import Message
from wholesale.utils.logger import get_logger
from wholesale.utils.pure import conversation_id, fmt_timestamp
from wholesale.views.base_screen import BaseScreen

_logger = get_logger(__name__)


class MessagesScreen(BaseScreen):
    """
    Conversations with other users. A conversation starts from a product
    page ("Message Seller"); replies happen here.
    """

    VIEW_KEY = "messages"
    VIEW_TITLE = "Messages"
    FEEDS = ("messages",)

    def __init__(self, state, gateway) -> None:
        super().__init__(state, gateway)
        self._partner: Optional[str] = None
        self._partners: List[str] = []
        # uid -> display name, filled lazily from profiles
        self._names: Dict[str, str] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal():
            with Vertical(id="div-partners"):
                yield Label("Conversations")
                yield ListView(id="list-partners")
            with Vertical(id="div-conversation"):
                yield Markdown("", id="md-conversation")
                with Horizontal(id="hort-compose"):
                    yield Input(placeholder="Write a message...", id="input-message")
                    yield Button("Send", id="btn-send", variant="primary")
                yield Label("", id="label-status")

    def refresh_view(self) -> None:
        self.load_conversations()

    @work(exclusive=True, group="messages-view")
    async def load_conversations(self) -> None:
        uid = self.state.uid
        docs = self.state.entities.all("messages")
        self._partners = crud.partners_of(uid, docs) if uid else []
        for partner in self._partners:
            if partner not in self._names:
                profile = await crud.get_profile(self.gateway, partner)
                self._names[partner] = profile.display_name if profile else partner
        if self._partner not in self._partners:
            self._partner = self._partners[0] if self._partners else None

        menu = self.query_one("#list-partners", ListView)
        await menu.clear()
        await menu.extend(
            [ListItem(Label(self._names[p]), id="partner-" + p) for p in self._partners]
        )
        for item in menu.children:
            item.highlighted = item.id == f"partner-{self._partner}"
        await self.render_conversation()

    async def render_conversation(self) -> None:
        view = self.query_one("#md-conversation", Markdown)
        self.query_one("#btn-send", Button).disabled = self._partner is None
        if self._partner is None:
            await view.update("### No conversations yet.\n\nMessage a seller from a product page to start one.")
            return
        conv = conversation_id(self.state.uid, self._partner)
        messages: List[Message] = [
            m for m in self.state.entities.project("messages", Message.from_doc) if m.conversation_id == conv
        ]
        lines = [f"### {self._names.get(self._partner, self._partner)}\n"]
        for m in messages:
            who = "You" if m.sender_id == self.state.uid else self._names.get(m.sender_id, m.sender_id)
            lines.append(f"**{who}** _{fmt_timestamp(m.created_at)}_  \n{m.text}\n")
        await view.update("\n".join(lines))

    @on(ListView.Selected, "#list-partners")
    async def handle_partner_selected(self, event: ListView.Selected) -> None:
        self._partner = event.item.id.removeprefix("partner-")
        await self.render_conversation()

    @on(Input.Submitted, "#input-message")
    @on(Button.Pressed, "#btn-send")
    @work(exclusive=True)
    async def handle_send(self) -> None:
        if self._partner is None:
            return
        box = self.query_one("#input-message", Input)
        try:
            sent = await crud.send_message(self.gateway, self._partner, box.value)
        except ValidationError as e:
            self.report(str(e), ok=False)
            return
        if not sent:
            _logger.warning(f"Message to {self._partner} was not stored")
            self.report("Message could not be sent.", ok=False)
            return
        box.value = ""
        self.query_one("#label-status", Label).update("")
