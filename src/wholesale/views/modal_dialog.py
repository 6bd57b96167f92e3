from typing import Dict, List, Literal, Optional, Tuple

from typing_extensions import override

from textual import events, on
from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select

from wholesale.utils.messages import QuitRequestedMessage

Tone = Literal["default", "positive", "warning", "error"]
ButtonVariant = Literal["primary", "default", "success", "warning", "error"]

# tone -> (confirm button, dismiss button)
TONE_VARIANTS: Dict[str, Tuple[ButtonVariant, ButtonVariant]] = {
    "default": ("primary", "default"),
    "positive": ("success", "default"),
    "warning": ("warning", "default"),
    "error": ("error", "primary"),
}


class DialogModal(ModalScreen[bool]):
    """
    Confirm or decline one action. Dismisses with True for the primary
    button, False for the secondary button or escape.
    """

    def __init__(
        self,
        caption: str,
        primary_text: str = "OK",
        secondary_text: str = "",
        tone: Tone = "default",
        detail: str = "",
    ):
        super().__init__()
        self.caption = caption
        self.detail = detail
        self.primary_text = primary_text
        self.secondary_text = secondary_text
        self.tone = tone

    def compose(self) -> ComposeResult:
        confirm_variant, decline_variant = TONE_VARIANTS[self.tone]
        with Container(id="div-dialog"):
            yield Label(self.caption, id="caption")
            if self.detail:
                yield Label(self.detail, id="caption-detail")
            with Horizontal(id="dialog"):
                if self.secondary_text:
                    yield Button(self.secondary_text, variant=decline_variant, id="btn-secondary")
                yield Button(self.primary_text, variant=confirm_variant, id="btn-primary")

    def on_mount(self):
        # destructive dialogs focus the safe option
        safe_first = self.tone == "error" and self.secondary_text
        self.query_one("#btn-secondary" if safe_first else "#btn-primary").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.decline()

    def confirm(self) -> None:
        self.dismiss(True)

    def decline(self) -> None:
        self.dismiss(False)

    @on(Button.Pressed, "#btn-primary")
    def handle_primary(self) -> None:
        self.confirm()

    @on(Button.Pressed, "#btn-secondary")
    def handle_secondary(self) -> None:
        self.decline()


class QuitDialogModal(DialogModal):
    def __init__(self):
        super().__init__("Quit the marketplace?", "Quit", "Stay", "error")

    @override
    def confirm(self) -> None:
        self.post_message(QuitRequestedMessage())
        super().confirm()


class PromptModal(ModalScreen[Optional[str]]):
    """
    Ask for one value, either free text or a choice from ``options``.
    Returns the value, or None when cancelled.
    """

    def __init__(
        self,
        caption: str,
        placeholder: str = "",
        options: Optional[List[Tuple[str, str]]] = None,
        confirm_text: str = "OK",
    ):
        super().__init__()
        self.caption = caption
        self.placeholder = placeholder
        self.options = options
        self.confirm_text = confirm_text

    def compose(self) -> ComposeResult:
        with Container(id="div-dialog"):
            yield Label(self.caption, id="caption")
            if self.options is not None:
                yield Select(self.options, id="prompt-value", prompt=self.placeholder or "Select...")
            else:
                yield Input(placeholder=self.placeholder, id="prompt-value")
            with Horizontal(id="dialog"):
                yield Button("Cancel", id="btn-secondary")
                yield Button(self.confirm_text, variant="primary", id="btn-primary")

    def on_mount(self):
        self.query_one("#prompt-value").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(Input.Submitted, "#prompt-value")
    @on(Button.Pressed, "#btn-primary")
    def handle_confirm(self) -> None:
        widget = self.query_one("#prompt-value")
        if isinstance(widget, Select):
            value = None if widget.value == Select.BLANK else str(widget.value)
        else:
            value = widget.value.strip() or None
        if value is None:
            widget.add_class("-invalid")
            return
        self.dismiss(value)

    @on(Button.Pressed, "#btn-secondary")
    def handle_cancel(self) -> None:
        self.dismiss(None)
