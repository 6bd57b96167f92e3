from __future__ import annotations

import inspect
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from wholesale.db.errors import AuthError, ProviderUnavailable
from wholesale.db.identity import Account, IdentityProvider
from wholesale.db.models import ADMIN, PROFILE_COLLECTION, PROFILE_DOC
from wholesale.utils.logger import get_logger

if TYPE_CHECKING:
    from wholesale.db.gateway import TenantGateway

_logger = get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    uid: str
    email: Optional[str] = None
    is_anonymous: bool = False
    # True when the provider was unreachable and the id was made up locally
    is_local: bool = False

    @classmethod
    def from_account(cls, account: Account) -> "Identity":
        return cls(uid=account.uid, email=account.email, is_anonymous=account.is_anonymous)


@dataclass(frozen=True)
class AuthResult:
    success: bool
    error: str = ""


IdentityListener = Callable[[Optional[Identity]], Any]


class IdentityAdapter:
    """
    Wraps the identity provider for the screens.

    The adapter never leaves the client without an identity once ``start``
    has run: failed sign-ins keep (or re-create) an anonymous session, and
    ``logout`` immediately signs in anonymously again.
    """

    def __init__(self, provider: IdentityProvider, bootstrap_token: Optional[str] = None) -> None:
        self._provider = provider
        self._bootstrap_token = bootstrap_token
        self._listeners: List[IdentityListener] = []
        self.current: Optional[Identity] = None

    @property
    def provider(self) -> IdentityProvider:
        return self._provider

    # ---------------------------
    # Session stream
    # ---------------------------

    def subscribe(self, callback: IdentityListener) -> Callable[[], None]:
        """Call ``callback`` now and on every identity change."""
        self._listeners.append(callback)
        self._call(callback, self.current)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _call(self, callback: IdentityListener, identity: Optional[Identity]) -> None:
        try:
            result = callback(identity)
            if inspect.iscoroutine(result):
                # listeners are expected to be plain functions, close un-awaited coroutines
                result.close()
                _logger.warning("Identity listeners must be synchronous, coroutine ignored.")
        except Exception:
            _logger.exception("Identity listener raised")

    def _set(self, identity: Optional[Identity]) -> None:
        if identity == self.current:
            return
        self.current = identity
        _logger.info(f"Session changed: {identity.uid if identity else None}")
        for cb in list(self._listeners):
            self._call(cb, identity)

    # ---------------------------
    # Start-up
    # ---------------------------

    async def start(self) -> Identity:
        """
        Establish a session if none exists: bootstrap token first, then an
        anonymous account, then a locally generated id.
        """
        if self.current:
            return self.current

        if self._bootstrap_token:
            try:
                account = await self._provider.sign_in_with_custom_token(self._bootstrap_token)
                self._set(Identity.from_account(account))
                return self.current
            except AuthError as e:
                _logger.warning(f"Bootstrap token rejected, falling back to anonymous: {e}")

        await self._ensure_session()
        return self.current

    async def _ensure_session(self) -> None:
        if self.current:
            return
        try:
            account = await self._provider.sign_in_anonymously()
            self._set(Identity.from_account(account))
        except AuthError as e:
            _logger.error(f"Anonymous sign-in failed, using a local id: {e}")
            self._set(Identity(uid=f"local-{uuid.uuid4().hex[:12]}", is_anonymous=True, is_local=True))

    # ---------------------------
    # Operations
    # ---------------------------

    async def login(self, email: str, password: str) -> AuthResult:
        if not email or not password:
            await self._ensure_session()
            return AuthResult(False, "Email and password are required.")
        try:
            account = await self._provider.sign_in_with_password(email, password)
        except ProviderUnavailable as e:
            _logger.error(f"Login failed, provider unavailable: {e}")
            await self._ensure_session()
            return AuthResult(False, "Sign-in service unavailable, try again later.")
        except AuthError as e:
            _logger.info(f"Login rejected for {email}: {e}")
            await self._ensure_session()
            return AuthResult(False, str(e))
        self._set(Identity.from_account(account))
        return AuthResult(True)

    async def signup(self, email: str, password: str) -> AuthResult:
        try:
            account = await self._provider.create_user(email, password)
        except ProviderUnavailable as e:
            _logger.error(f"Sign-up failed, provider unavailable: {e}")
            await self._ensure_session()
            return AuthResult(False, "Sign-up service unavailable, try again later.")
        except AuthError as e:
            _logger.info(f"Sign-up rejected for {email}: {e}")
            await self._ensure_session()
            return AuthResult(False, str(e))
        self._set(Identity.from_account(account))
        return AuthResult(True)

    async def logout(self) -> None:
        try:
            await self._provider.sign_out()
        except ProviderUnavailable as e:
            _logger.error(f"Sign-out could not reach the provider: {e}")
        # listeners only ever see the anonymous identity that replaces this one
        self.current = None
        await self._ensure_session()

    async def close(self) -> None:
        """Sign out for good on exit; no anonymous session replaces this one."""
        try:
            await self._provider.sign_out()
        except ProviderUnavailable as e:
            _logger.error(f"Sign-out could not reach the provider: {e}")
        self._set(None)

    async def list_users(self, gateway: "TenantGateway") -> List[Account]:
        """
        Privileged listing of registered accounts. Only served when the
        caller's own stored profile says admin; anybody else gets a
        PermissionError.
        """
        if not self.current or self.current.is_anonymous:
            raise PermissionError("Only administrators can list users.")
        doc = await gateway.fetch_one(PROFILE_COLLECTION, PROFILE_DOC, tenant_id=self.current.uid)
        if not doc or doc.get("role") != ADMIN:
            _logger.warning(f"User listing refused for {self.current.uid}")
            raise PermissionError("Only administrators can list users.")
        return await self._provider.list_accounts()
