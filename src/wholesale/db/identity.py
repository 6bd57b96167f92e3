# src/wholesale/db/identity.py
"""
Identity provider client: password accounts, anonymous accounts and custom
sign-in tokens stored next to the documents. Session state (who is signed
in) lives in ``IdentityProvider.current``; the adapter in
``wholesale.utils.session`` is the only caller outside tests.
"""
from __future__ import annotations

import hashlib
import secrets
import uuid
from dataclasses import dataclass
from typing import List, Optional

import aiosqlite

from wholesale.db.database import connect
from wholesale.db.documents import server_now
from wholesale.db.errors import AuthError, ProviderUnavailable

MIN_PASSWORD_LENGTH = 6
_HASH_ROUNDS = 120_000


@dataclass(frozen=True)
class Account:
    uid: str
    email: Optional[str]
    is_anonymous: bool
    created_at: str


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _hash_password(pwd: str, salt: str) -> str:
    return hashlib.pbkdf2_hmac(
        "sha256", pwd.encode(), bytes.fromhex(salt), _HASH_ROUNDS
    ).hex()


def _row_to_account(row) -> Account:
    return Account(
        uid=row[0], email=row[1], is_anonymous=bool(row[2]), created_at=row[3]
    )


class IdentityProvider:
    def __init__(self, path: Optional[str] = None) -> None:
        self._path = path
        self.current: Optional[Account] = None

    async def _fetch_account(self, conn: aiosqlite.Connection, uid: str) -> Optional[Account]:
        cur = await conn.execute(
            "SELECT uid, email, is_anonymous, created_at FROM accounts WHERE uid = ?;",
            (uid,),
        )
        row = await cur.fetchone()
        await cur.close()
        return _row_to_account(row) if row else None

    async def _discard_anonymous(self, conn: aiosqlite.Connection, keep_uid: Optional[str] = None) -> None:
        # an anonymous account is never signed in again once it is replaced
        if self.current and self.current.is_anonymous and self.current.uid != keep_uid:
            await conn.execute(
                "DELETE FROM accounts WHERE uid = ? AND is_anonymous = 1;", (self.current.uid,)
            )

    async def email_available(self, email: str) -> bool:
        """True if no account is registered with the given email."""
        try:
            async with connect(self._path) as conn:
                cur = await conn.execute(
                    "SELECT 1 FROM accounts WHERE email = ? LIMIT 1;",
                    (normalize_email(email),),
                )
                row = await cur.fetchone()
                await cur.close()
                return row is None
        except aiosqlite.Error as e:
            raise ProviderUnavailable(str(e)) from e

    async def create_user(self, email: str, pwd: str) -> Account:
        """Register a password account and sign it in."""
        email = normalize_email(email)
        if not email or "@" not in email:
            raise AuthError("A valid email address is required.")
        if len(pwd or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters."
            )
        if not await self.email_available(email):
            raise AuthError("Email already in use.")

        uid = uuid.uuid4().hex[:28]
        salt = secrets.token_hex(16)
        try:
            async with connect(self._path) as conn:
                await conn.execute(
                    """
                    INSERT INTO accounts(uid, email, pwd_hash, salt, is_anonymous, created_at)
                    VALUES (?, ?, ?, ?, 0, ?);
                    """,
                    (uid, email, _hash_password(pwd, salt), salt, server_now()),
                )
                await self._discard_anonymous(conn)
                account = await self._fetch_account(conn, uid)
        except aiosqlite.IntegrityError as e:
            raise AuthError("Email already in use.") from e
        except aiosqlite.Error as e:
            raise ProviderUnavailable(str(e)) from e
        self.current = account
        return account

    async def sign_in_with_password(self, email: str, pwd: str) -> Account:
        try:
            async with connect(self._path) as conn:
                cur = await conn.execute(
                    "SELECT uid, pwd_hash, salt FROM accounts WHERE email = ? AND is_anonymous = 0;",
                    (normalize_email(email),),
                )
                row = await cur.fetchone()
                await cur.close()
                if not row or _hash_password(pwd or "", row[2]) != row[1]:
                    raise AuthError("Invalid email or password.")
                await self._discard_anonymous(conn)
                account = await self._fetch_account(conn, row[0])
        except aiosqlite.Error as e:
            raise ProviderUnavailable(str(e)) from e
        self.current = account
        return account

    async def sign_in_anonymously(self) -> Account:
        if self.current and self.current.is_anonymous:
            return self.current
        uid = "anon-" + uuid.uuid4().hex[:23]
        try:
            async with connect(self._path) as conn:
                await conn.execute(
                    "INSERT INTO accounts(uid, email, pwd_hash, salt, is_anonymous, created_at) VALUES (?, NULL, NULL, NULL, 1, ?);",
                    (uid, server_now()),
                )
                account = await self._fetch_account(conn, uid)
        except aiosqlite.Error as e:
            raise ProviderUnavailable(str(e)) from e
        self.current = account
        return account

    async def sign_in_with_custom_token(self, token: str) -> Account:
        try:
            async with connect(self._path) as conn:
                cur = await conn.execute(
                    "SELECT uid FROM custom_tokens WHERE token = ?;", (token,)
                )
                row = await cur.fetchone()
                await cur.close()
                account = await self._fetch_account(conn, row[0]) if row else None
                if account is not None:
                    await self._discard_anonymous(conn, keep_uid=account.uid)
        except aiosqlite.Error as e:
            raise ProviderUnavailable(str(e)) from e
        if account is None:
            raise AuthError("Invalid custom token.")
        self.current = account
        return account

    async def mint_custom_token(self, uid: str) -> str:
        """Issue a sign-in token for an existing account."""
        token = secrets.token_urlsafe(24)
        try:
            async with connect(self._path) as conn:
                if await self._fetch_account(conn, uid) is None:
                    raise AuthError(f"No account {uid}.")
                await conn.execute(
                    "INSERT INTO custom_tokens(token, uid) VALUES (?, ?);", (token, uid)
                )
        except aiosqlite.Error as e:
            raise ProviderUnavailable(str(e)) from e
        return token

    async def sign_out(self) -> None:
        if self.current and self.current.is_anonymous:
            try:
                async with connect(self._path) as conn:
                    await self._discard_anonymous(conn)
            except aiosqlite.Error as e:
                raise ProviderUnavailable(str(e)) from e
        self.current = None

    async def list_accounts(self, include_anonymous: bool = False) -> List[Account]:
        """Every registered account, oldest first."""
        sql = "SELECT uid, email, is_anonymous, created_at FROM accounts"
        if not include_anonymous:
            sql += " WHERE is_anonymous = 0"
        try:
            async with connect(self._path) as conn:
                cur = await conn.execute(sql + " ORDER BY created_at, uid;")
                rows = await cur.fetchall()
                await cur.close()
        except aiosqlite.Error as e:
            raise ProviderUnavailable(str(e)) from e
        return [_row_to_account(r) for r in rows]
