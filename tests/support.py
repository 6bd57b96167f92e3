import os
import tempfile
import unittest
from dataclasses import dataclass

from wholesale.db import crud
from wholesale.db import database as db_database
from wholesale.db.documents import DocumentStore
from wholesale.db.gateway import TenantGateway
from wholesale.db.identity import IdentityProvider
from wholesale.db.models import SELF_SERVICE_ROLES, Profile
from wholesale.utils.session import IdentityAdapter

APP_ID = "test-app"
PASSWORD = "secret123"


@dataclass
class Actor:
    """One signed-in client: its own identity session over the shared store."""

    session: IdentityAdapter
    gw: TenantGateway
    profile: Profile

    @property
    def uid(self) -> str:
        return self.session.current.uid


class StoreTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        # Point the DB to a temporary file
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.DB_PATH = self.db_path
        self.store = DocumentStore(self.db_path)

    def tearDown(self):
        db_database._initialized.discard(self.db_path)
        self.temp_dir.cleanup()

    def make_session(self, token=None) -> IdentityAdapter:
        return IdentityAdapter(IdentityProvider(self.db_path), token)

    def make_gateway(self, session: IdentityAdapter) -> TenantGateway:
        return TenantGateway(self.store, session, APP_ID)

    async def make_actor(self, email: str, role: str, company: str, address: str = "1 Main St") -> Actor:
        session = self.make_session()
        result = await session.signup(email, PASSWORD)
        self.assertTrue(result.success, result.error)
        gw = self.make_gateway(session)
        if role in SELF_SERVICE_ROLES:
            self.assertTrue(await crud.save_profile(gw, company, "Contact", "555-0100", address, role=role, email=email))
        else:
            # admins are provisioned by the operator, not by the user
            self.assertTrue(await crud.save_profile(gw, company, "Contact", "555-0100", address, email=email))
            await crud.grant_role(self.store, APP_ID, session.current.uid, role)
        profile = await crud.get_profile(gw)
        return Actor(session, gw, profile)
