"""Service-level tests for entity document storage and listing."""

from __future__ import annotations

import unittest

from sqlalchemy import create_engine, delete
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from entitydesk.models import Base, EntityDocument
from entitydesk.services.documents import (
    create_document,
    delete_document,
    delete_documents,
    get_document,
    get_oldest_document,
    list_documents,
    update_document,
)


class DocumentServiceTests(unittest.TestCase):
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

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        self.db.execute(delete(EntityDocument))
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def _seed_accounts(self) -> list[dict]:
        rows = [
            {"name": "Ada Byron", "role": "admin", "age": 36, "active": True, "dynamicFields": {"tier": "gold"}},
            {"name": "Grace Hopper", "role": "coach", "age": 85, "active": True, "dynamicFields": {"tier": "silver"}},
            {"name": "Alan Turing", "role": "member", "age": 41, "active": False},
            {"name": "Edsger Dijkstra", "role": "member", "age": 72, "active": True},
        ]
        return [create_document(self.db, "accounts", row, organization_id="org-1") for row in rows]

    def test_create_serializes_system_fields(self) -> None:
        created = create_document(
            self.db,
            "accounts",
            {"_id": "ignored", "name": "Ada", "createdAt": "yesterday", "organizationId": "other"},
            organization_id="org-1",
        )

        self.assertNotEqual(created["_id"], "ignored")
        self.assertEqual(created["name"], "Ada")
        self.assertEqual(created["organizationId"], "org-1")
        self.assertIsNotNone(created["createdAt"])
        self.assertIsNotNone(created["updatedAt"])
        self.assertEqual(get_document(self.db, "accounts", created["_id"], organization_id="org-1"), created)

    def test_documents_are_scoped_by_type_and_organization(self) -> None:
        self._seed_accounts()
        create_document(self.db, "accounts", {"name": "Other Org"}, organization_id="org-2")
        create_document(self.db, "courses", {"name": "Swimming"}, organization_id="org-1")

        page = list_documents(self.db, "accounts", organization_id="org-1", page_size=10)

        self.assertEqual(page.total_count, 4)
        self.assertTrue(all(row["organizationId"] == "org-1" for row in page.data))

    def test_paging_and_sorting(self) -> None:
        self._seed_accounts()

        first = list_documents(self.db, "accounts", organization_id="org-1", page=1, page_size=3, sort_field="age")
        second = list_documents(self.db, "accounts", organization_id="org-1", page=2, page_size=3, sort_field="age")

        self.assertEqual([row["age"] for row in first.data], [36, 41, 72])
        self.assertEqual([row["age"] for row in second.data], [85])
        self.assertEqual((first.total_count, first.total_pages), (4, 2))

        by_name_desc = list_documents(
            self.db, "accounts", organization_id="org-1", sort_field="name", sort_direction="desc"
        )
        self.assertEqual(by_name_desc.data[0]["name"], "Grace Hopper")

    def test_search_matches_configured_fields_case_insensitively(self) -> None:
        self._seed_accounts()

        page = list_documents(
            self.db,
            "accounts",
            organization_id="org-1",
            search="HOPPER",
            search_fields=("name", "email"),
        )

        self.assertEqual([row["name"] for row in page.data], ["Grace Hopper"])

    def test_filters_support_booleans_ranges_sets_and_nested_keys(self) -> None:
        self._seed_accounts()

        def names(filters: list[tuple[str, str]]) -> list[str]:
            page = list_documents(self.db, "accounts", organization_id="org-1", sort_field="name", filters=filters)
            return [row["name"] for row in page.data]

        self.assertEqual(names([("active", "false")]), ["Alan Turing"])
        self.assertEqual(names([("age__gte", "40"), ("age__lte", "80")]), ["Alan Turing", "Edsger Dijkstra"])
        self.assertEqual(names([("role", "admin"), ("role", "coach")]), ["Ada Byron", "Grace Hopper"])
        self.assertEqual(names([("role", "mem")]), ["Alan Turing", "Edsger Dijkstra"])
        self.assertEqual(names([("dynamicFields.tier", "gold")]), ["Ada Byron"])
        self.assertEqual(names([("age", "abc")]), [])

    def test_unpaged_listing_returns_every_row(self) -> None:
        self._seed_accounts()

        page = list_documents(self.db, "accounts", organization_id="org-1", page_size=None)

        self.assertEqual(len(page.data), 4)
        self.assertEqual(page.total_pages, 1)

    def test_update_merges_dynamic_fields(self) -> None:
        ada = self._seed_accounts()[0]

        updated = update_document(
            self.db,
            "accounts",
            ada["_id"],
            {"_id": ada["_id"], "role": "owner", "dynamicFields": {"color": "blue"}},
            organization_id="org-1",
        )

        self.assertEqual(updated["role"], "owner")
        self.assertEqual(updated["dynamicFields"], {"tier": "gold", "color": "blue"})
        self.assertEqual(updated["name"], "Ada Byron")
        self.assertIsNone(update_document(self.db, "accounts", ada["_id"], {"role": "x"}, organization_id="org-2"))

    def test_delete_and_bulk_delete(self) -> None:
        rows = self._seed_accounts()

        self.assertTrue(delete_document(self.db, "accounts", rows[0]["_id"], organization_id="org-1"))
        self.assertFalse(delete_document(self.db, "accounts", rows[0]["_id"], organization_id="org-1"))

        deleted = delete_documents(
            self.db,
            "accounts",
            [rows[1]["_id"], rows[2]["_id"], "missing"],
            organization_id="org-1",
        )
        self.assertEqual(deleted, 2)
        remaining = list_documents(self.db, "accounts", organization_id="org-1")
        self.assertEqual([row["_id"] for row in remaining.data], [rows[3]["_id"]])

    def test_oldest_document_is_current(self) -> None:
        self.assertIsNone(get_oldest_document(self.db, "organizations"))
        first = create_document(self.db, "organizations", {"name": "First"})
        create_document(self.db, "organizations", {"name": "Second"})

        self.assertEqual(get_oldest_document(self.db, "organizations")["_id"], first["_id"])


if __name__ == "__main__":
    unittest.main()
