"""End-to-end tests: entity clients against the FastAPI backend over ASGI."""

from __future__ import annotations

import unittest

import httpx
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from entitydesk.client import HttpxTransport, build_entity_clients
from entitydesk.db.dependencies import get_db
from entitydesk.main import create_app
from entitydesk.models import Base, EntityDocument
from entitydesk.schemas.query import QueryDescriptor


class EntitiesApiTests(unittest.IsolatedAsyncioTestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    async def asyncSetUp(self) -> None:
        with self.SessionLocal() as db:
            db.execute(delete(EntityDocument))
            db.commit()

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        self.app = create_app()
        self.app.dependency_overrides[get_db] = override_get_db
        self.http = httpx.AsyncClient(transport=httpx.ASGITransport(app=self.app), base_url="http://testserver")
        self.transport = HttpxTransport(self.http)
        self.clients = build_entity_clients(self.transport)

    async def asyncTearDown(self) -> None:
        await self.transport.aclose()

    async def test_health(self) -> None:
        response = await self.http.get("/health")

        self.assertEqual(response.json(), {"status": "ok"})

    async def test_account_crud_round(self) -> None:
        accounts = self.clients["accounts"]
        for name in ("Ada", "Grace", "Alan"):
            created = await accounts.create({"name": name, "active": name != "Alan"}, organization_id="org-1")
            self.assertEqual(created.status, 201)
            self.assertEqual(created.data["organizationId"], "org-1")
        await accounts.create({"name": "Elsewhere"}, organization_id="org-2")

        listing = await accounts.fetch_all(
            QueryDescriptor(page=1, page_size=2, sort_field="name"),
            organization_id="org-1",
        )
        self.assertIsNone(listing.error)
        self.assertEqual([row["name"] for row in listing.data.data], ["Ada", "Alan"])
        self.assertEqual((listing.data.total_count, listing.data.total_pages), (3, 2))

        inactive = await accounts.fetch_all(QueryDescriptor(page=1, page_size=10, active=False), organization_id="org-1")
        self.assertEqual([row["name"] for row in inactive.data.data], ["Alan"])

        ada = listing.data.data[0]
        updated = await accounts.update({"_id": ada["_id"], "name": "Ada Lovelace"}, organization_id="org-1")
        self.assertTrue(updated.ok)
        self.assertEqual(updated.data["name"], "Ada Lovelace")

        fetched = await accounts.fetch(ada["_id"], organization_id="org-1")
        self.assertEqual(fetched.data["name"], "Ada Lovelace")

        ids = [row["_id"] for row in listing.data.data]
        removed = await accounts.delete_many(ids, organization_id="org-1")
        self.assertEqual(removed.data, {"deletedCount": 2})

        remaining = await accounts.fetch_all(QueryDescriptor(page=1, page_size=10), organization_id="org-1")
        self.assertEqual([row["name"] for row in remaining.data.data], ["Grace"])

    async def test_not_found_is_reported_with_server_message(self) -> None:
        result = await self.clients["accounts"].fetch("missing", organization_id="org-1")

        self.assertEqual(result.status, 404)
        self.assertEqual(result.error, "accounts record not found")

        deletion = await self.clients["accounts"].delete("missing", organization_id="org-1")
        self.assertEqual(deletion.status, 404)

    async def test_tasks_list_is_a_bare_array(self) -> None:
        tasks = self.clients["tasks"]
        for title in ("One", "Two", "Three"):
            await tasks.create({"title": title}, organization_id="org-1")

        raw = await tasks.fetch_all(QueryDescriptor(page=1, page_size=2), raw_data_only=True, organization_id="org-1")
        self.assertIsInstance(raw, list)
        self.assertEqual(len(raw), 3)

        normalized = await tasks.fetch_all(QueryDescriptor(page=1, page_size=2), organization_id="org-1")
        self.assertEqual((normalized.data.total_count, normalized.data.total_pages), (3, 1))

    async def test_org_scoped_route_requires_organization(self) -> None:
        response = await self.http.get("/accounts")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"message": "organizationId is required"})

    async def test_invalid_body_returns_message_list(self) -> None:
        response = await self.http.request("DELETE", "/accounts", params={"organizationId": "org-1"}, json={"ids": []})

        self.assertEqual(response.status_code, 400)
        self.assertIsInstance(response.json()["message"], list)

    async def test_current_organization(self) -> None:
        organizations = self.clients["organizations"]

        missing = await organizations.fetch()
        self.assertEqual(missing.status, 404)

        first = await organizations.create({"name": "Riverside"})
        await organizations.create({"name": "Hillside"})

        current = await organizations.fetch()
        self.assertEqual(current.data["_id"], first.data["_id"])

    async def test_patch_entity_merges_dynamic_fields(self) -> None:
        contacts = self.clients["contacts"]
        created = await contacts.create(
            {"firstName": "Ada", "dynamicFields": {"team": "red", "shirt": 7}},
            organization_id="org-1",
        )

        updated = await contacts.update(
            {"_id": created.data["_id"], "dynamicFields": {"shirt": 9}},
            organization_id="org-1",
        )

        self.assertEqual(updated.data["dynamicFields"], {"team": "red", "shirt": 9})


if __name__ == "__main__":
    unittest.main()
