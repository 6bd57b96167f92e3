from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, Select, TabbedContent, TabPane

from wholesale.db import crud
from wholesale.db.errors import ValidationError
from wholesale.db.models import SELF_SERVICE_ROLES
from wholesale.utils.logger import get_logger
from wholesale.views.base_screen import BaseScreen
from wholesale.views.modal_dialog import QuitDialogModal

_logger = get_logger(__name__)


class LoginScreen(BaseScreen):
    """
    Sign in, sign up, or browse as a guest on the anonymous session.
    Dismisses once a session the user wants to keep is in place.
    """

    VIEW_TITLE = "Login"

    def __init__(self, state, gateway):
        super().__init__(state, gateway)
        self.configure(header_sub_title="Login", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Login", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="buyer@example.com", id="input-login-email")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-login-pwd"
                    )
                    yield Label("", id="label-login-error", classes="form-error")
                    with Horizontal(id="div-login-btns"):
                        yield Button("Quit", id="btn-quit")
                        yield Button("Continue as guest", id="btn-guest")
                        yield Button("Login", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Company name")
                    yield Input(placeholder="Acme Traders", id="input-reg-company")
                    yield Label("Contact person")
                    yield Input(placeholder="Jane Doe", id="input-reg-contact")
                    yield Label("I am a")
                    yield Select(
                        [(r.capitalize(), r) for r in SELF_SERVICE_ROLES],
                        value="retailer",
                        allow_blank=False,
                        id="select-reg-role",
                    )
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label("Password")
                    yield Input(
                        placeholder="at least 6 characters",
                        password=True,
                        id="input-reg-pwd",
                    )
                    yield Label("", id="label-reg-error", classes="form-error")
                    with Container(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "enter" and self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()
        if event.key == "enter" and self.focused == self.query_one("#input-reg-pwd"):
            self.handle_registration_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value.strip()
        error_label = self.query_one("#label-login-error", Label)

        if not email or not pwd:
            error_label.update("Email or password cannot be empty!")
            return

        result = await self.state.session.login(email, pwd)
        if result.success:
            error_label.update("")
            self.notify(f"Hello {email}!")
            self.dismiss()
        else:
            error_label.update(result.error)
            input_login_pwd = self.query_one("#input-login-pwd", Input)
            input_login_pwd.value = ""
            input_login_pwd.focus()
            input_login_pwd.add_class("-invalid")

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        company = self.query_one("#input-reg-company", Input).value.strip()
        contact = self.query_one("#input-reg-contact", Input).value.strip()
        role = self.query_one("#select-reg-role", Select).value
        email = self.query_one("#input-reg-email", Input).value.strip()
        pwd = self.query_one("#input-reg-pwd", Input).value.strip()
        error_label = self.query_one("#label-reg-error", Label)

        if not company or not email or not pwd:
            error_label.update("Company, email and password are required.")
            return

        result = await self.state.session.signup(email, pwd)
        if not result.success:
            error_label.update(result.error)
            return

        try:
            saved = await crud.save_profile(
                self.gateway,
                company_name=company,
                contact_name=contact,
                role=str(role),
                email=email.lower(),
            )
        except ValidationError as e:
            saved = False
            _logger.error(f"Profile for new user rejected: {e}")
        if not saved:
            self.notify(
                "Account created, but the profile could not be saved.",
                severity="warning",
            )
        else:
            self.notify("Registration successful.")
        self.dismiss()

    @on(Button.Pressed, "#btn-guest")
    def handle_guest(self) -> None:
        self.notify("Browsing as guest.")
        self.dismiss()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
