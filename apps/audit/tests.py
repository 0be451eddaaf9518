from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase
from rest_framework.test import APITestCase

from apps.audit.models import AuditAction, AuditCollection, AuditLog, AuditLogImmutableError
from apps.audit.services import get_audit_log, query_audit_logs, record_audit
from apps.geography.models import Country

User = get_user_model()


class AuditRecorderTests(TestCase):
    def setUp(self):
        self.actor = User.objects.create_user(
            username="auditor", password="admin123", role="ADMIN", first_name="Ada", last_name="Lovelace"
        )

    def test_create_entry_is_returned_with_the_snapshots_passed_in(self):
        record_audit(
            actor=self.actor,
            action=AuditAction.CREATE,
            collection=AuditCollection.COUNTRIES,
            entity_code="C1",
            changes="create-country",
            before=None,
            after={"name": "Wakanda"},
        )

        entries, total = query_audit_logs(filters={"collection": "COUNTRIES"})
        self.assertEqual(total, 1)
        entry = entries[0]
        self.assertEqual(entry.entity_code, "C1")
        self.assertEqual(entry.action, AuditAction.CREATE)
        self.assertEqual(entry.changes, "create-country")
        self.assertIsNone(entry.before)
        self.assertEqual(entry.after, {"name": "Wakanda"})
        self.assertEqual(entry.actor, self.actor)
        self.assertEqual(entry.actor_name, "Ada Lovelace")
        self.assertTrue(entry.entry_code.startswith("AUDIT-"))
        self.assertIsNotNone(entry.recorded_at)

    def test_nested_snapshots_are_kept_as_given(self):
        before = {"name": "Goa", "country": {"name": "India", "iso2": "IN"}, "tags": [1, 2]}
        after = {"name": "Goa State", "country": {"name": "India", "iso2": "IN"}, "tags": [1, 2, 3]}
        record_audit(
            actor=self.actor,
            action="UPDATE",
            collection="STATES",
            entity_code="STATE-1",
            changes="update-state",
            before=before,
            after=after,
        )

        entries, _ = query_audit_logs(filters={"entity_code": "STATE-1"})
        self.assertEqual(entries[0].before, before)
        self.assertEqual(entries[0].after, after)

    def test_session_actions_do_not_keep_snapshots(self):
        record_audit(
            actor=self.actor,
            action=AuditAction.LOGIN,
            collection=AuditCollection.USERS,
            entity_code=self.actor.user_code,
            changes="login-user",
            after={"ignored": True},
        )

        entry = AuditLog.objects.get()
        self.assertIsNone(entry.before)
        self.assertIsNone(entry.after)

    def test_unknown_action_or_collection_is_a_programming_error(self):
        with self.assertRaises(ValueError):
            record_audit(
                actor=self.actor,
                action="ARCHIVE",
                collection=AuditCollection.COUNTRIES,
                entity_code="C1",
                changes="archive-country",
            )
        with self.assertRaises(ValueError):
            record_audit(
                actor=self.actor,
                action=AuditAction.CREATE,
                collection="PLANETS",
                entity_code="P1",
                changes="create-planet",
                after={"name": "Mars"},
            )
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_snapshots_must_fit_the_action(self):
        with self.assertRaises(ValueError):
            record_audit(
                actor=self.actor,
                action=AuditAction.CREATE,
                collection=AuditCollection.COUNTRIES,
                entity_code="C1",
                changes="create-country",
                before={"name": "Old"},
                after={"name": "New"},
            )
        with self.assertRaises(ValueError):
            record_audit(
                actor=self.actor,
                action=AuditAction.DELETE,
                collection=AuditCollection.COUNTRIES,
                entity_code="C1",
                changes="delete-country",
            )
        with self.assertRaises(ValueError):
            record_audit(
                actor=self.actor,
                action=AuditAction.UPDATE,
                collection=AuditCollection.COUNTRIES,
                entity_code="C1",
                changes="update-country",
                after={"name": "New"},
            )

    def test_storage_failure_is_logged_and_not_raised(self):
        with mock.patch.object(AuditLog.objects, "create", side_effect=DatabaseError("storage down")):
            with self.assertLogs("apps.audit.services", level="ERROR") as logs:
                result = record_audit(
                    actor=self.actor,
                    action=AuditAction.CREATE,
                    collection=AuditCollection.COUNTRIES,
                    entity_code="C1",
                    changes="create-country",
                    after={"name": "Wakanda"},
                )

        self.assertIsNone(result)
        self.assertIn("C1", logs.output[0])
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_unserializable_snapshot_is_logged_and_not_raised(self):
        with self.assertLogs("apps.audit.services", level="ERROR"):
            record_audit(
                actor=self.actor,
                action=AuditAction.CREATE,
                collection=AuditCollection.COUNTRIES,
                entity_code="C1",
                changes="create-country",
                after={"value": object()},
            )
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_circular_snapshot_is_logged_and_not_raised(self):
        after = {"name": "Loop"}
        after["self"] = after
        with self.assertLogs("apps.audit.services", level="ERROR"):
            record_audit(
                actor=self.actor,
                action=AuditAction.CREATE,
                collection=AuditCollection.COUNTRIES,
                entity_code="C1",
                changes="create-country",
                after=after,
            )
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_entries_are_write_once(self):
        record_audit(
            actor=self.actor,
            action=AuditAction.CREATE,
            collection=AuditCollection.COUNTRIES,
            entity_code="C1",
            changes="create-country",
            after={"name": "Wakanda"},
        )
        entry = AuditLog.objects.get()
        original_recorded_at = entry.recorded_at

        entry.changes = "tampered"
        entry.after = {"name": "Atlantis"}
        with self.assertRaises(AuditLogImmutableError):
            entry.save()
        with self.assertRaises(AuditLogImmutableError):
            entry.delete()
        with self.assertRaises(AuditLogImmutableError):
            AuditLog.objects.filter(pk=entry.pk).update(action=AuditAction.DELETE)
        with self.assertRaises(AuditLogImmutableError):
            AuditLog.objects.all().delete()

        stored = AuditLog.objects.get(pk=entry.pk)
        self.assertEqual(stored.changes, "create-country")
        self.assertEqual(stored.after, {"name": "Wakanda"})
        self.assertEqual(stored.action, AuditAction.CREATE)
        self.assertEqual(stored.recorded_at, original_recorded_at)

    def test_entry_codes_are_unique(self):
        for index in range(5):
            record_audit(
                actor=self.actor,
                action=AuditAction.CREATE,
                collection=AuditCollection.COUNTRIES,
                entity_code=f"C{index}",
                changes="create-country",
                after={"index": index},
            )
        codes = set(AuditLog.objects.values_list("entry_code", flat=True))
        self.assertEqual(len(codes), 5)

    def test_update_then_delete_lists_newest_first(self):
        record_audit(
            actor=self.actor,
            action=AuditAction.UPDATE,
            collection=AuditCollection.CITIES,
            entity_code="CITY-1",
            changes="update-city",
            before={"name": "Pune"},
            after={"name": "Poona"},
        )
        record_audit(
            actor=self.actor,
            action=AuditAction.DELETE,
            collection=AuditCollection.CITIES,
            entity_code="CITY-1",
            changes="delete-city",
            before={"name": "Poona"},
        )

        entries, total = query_audit_logs(
            filters={"entity_code": "CITY-1"}, sort_field="recorded_at", sort_order="desc"
        )
        self.assertEqual(total, 2)
        self.assertEqual([entry.action for entry in entries], [AuditAction.DELETE, AuditAction.UPDATE])

        entries, _ = query_audit_logs(filters={"entity_code": "CITY-1"}, sort_order="asc")
        self.assertEqual([entry.action for entry in entries], [AuditAction.UPDATE, AuditAction.DELETE])

    def test_pagination_counts_the_whole_match_set(self):
        for index in range(25):
            record_audit(
                actor=self.actor,
                action=AuditAction.CREATE,
                collection=AuditCollection.COUNTRIES,
                entity_code=f"COUNTRY-{index}",
                changes="create-country",
                after={"index": index},
            )

        second_page, total = query_audit_logs(page=2, page_size=10)
        self.assertEqual(len(second_page), 10)
        self.assertEqual(total, 25)

        last_page, total = query_audit_logs(page=3, page_size=10)
        self.assertEqual(len(last_page), 5)
        self.assertEqual(total, 25)

        beyond, total = query_audit_logs(page=9, page_size=10)
        self.assertEqual(beyond, [])
        self.assertEqual(total, 25)

        for page_size in (1, 7, 25, 40):
            seen = []
            page = 1
            while True:
                entries, total = query_audit_logs(page=page, page_size=page_size)
                self.assertEqual(total, 25)
                if not entries:
                    break
                seen.extend(entry.entry_code for entry in entries)
                page += 1
            self.assertEqual(len(seen), 25)
            self.assertEqual(len(set(seen)), 25)

    def test_keyword_is_ored_across_text_fields(self):
        record_audit(
            actor=self.actor,
            action=AuditAction.CREATE,
            collection=AuditCollection.USERS,
            entity_code="A",
            changes="bulk-delete-review",
            after={"name": "A"},
        )
        record_audit(
            actor=self.actor,
            action=AuditAction.DELETE,
            collection=AuditCollection.CITIES,
            entity_code="B",
            changes="remove-city",
            before={"name": "B"},
        )
        record_audit(
            actor=self.actor,
            action=AuditAction.UPDATE,
            collection=AuditCollection.COUNTRIES,
            entity_code="C",
            changes="update-country",
            before={"name": "C"},
            after={"name": "C2"},
        )

        entries, total = query_audit_logs(keyword="DeLeTe")
        self.assertEqual(total, 2)
        self.assertEqual({entry.entity_code for entry in entries}, {"A", "B"})

    def test_keyword_matches_actor_display_name(self):
        other = User.objects.create_user(username="clerk", password="clerk123", role="STAFF")
        record_audit(
            actor=other,
            action=AuditAction.LOGIN,
            collection=AuditCollection.USERS,
            entity_code=other.user_code,
            changes="login-user",
        )
        record_audit(
            actor=self.actor,
            action=AuditAction.LOGIN,
            collection=AuditCollection.USERS,
            entity_code=self.actor.user_code,
            changes="login-user",
        )

        entries, total = query_audit_logs(keyword="lovelace")
        self.assertEqual(total, 1)
        self.assertEqual(entries[0].actor, self.actor)

    def test_filter_by_actor_code(self):
        other = User.objects.create_user(username="clerk", password="clerk123", role="STAFF")
        for user in (self.actor, other, other):
            record_audit(
                actor=user,
                action=AuditAction.LOGIN,
                collection=AuditCollection.USERS,
                entity_code=user.user_code,
                changes="login-user",
            )

        _, total = query_audit_logs(filters={"actor": other.user_code})
        self.assertEqual(total, 2)

    def test_empty_result_is_not_an_error(self):
        entries, total = query_audit_logs(filters={"collection": "STATES"}, keyword="nothing")
        self.assertEqual(entries, [])
        self.assertEqual(total, 0)

    def test_invalid_query_arguments_are_rejected(self):
        with self.assertRaises(ValueError):
            query_audit_logs(sort_field="before")
        with self.assertRaises(ValueError):
            query_audit_logs(sort_order="sideways")
        with self.assertRaises(ValueError):
            query_audit_logs(page=0)
        with self.assertRaises(ValueError):
            query_audit_logs(page_size=0)
        with self.assertRaises(ValueError):
            query_audit_logs(filters={"before": "x"})

    def test_target_resolves_to_live_entity_only(self):
        country = Country.objects.create(name="wakanda", iso2="WK", iso3="WKA")
        record_audit(
            actor=self.actor,
            action=AuditAction.CREATE,
            collection=AuditCollection.COUNTRIES,
            entity_code=country.country_code,
            changes="create-country",
            after={"name": country.name},
        )
        entry = get_audit_log(AuditLog.objects.get().entry_code)

        self.assertEqual(entry.target.collection, AuditCollection.COUNTRIES)
        self.assertEqual(entry.target.resolve(), country)

        country.delete()
        self.assertIsNone(entry.target.resolve())

    def test_blank_keyword_matches_everything_and_padded_keyword_is_kept(self):
        record_audit(
            actor=self.actor,
            action=AuditAction.CREATE,
            collection=AuditCollection.COUNTRIES,
            entity_code="A",
            changes="create-country",
            after={"name": "A"},
        )
        record_audit(
            actor=self.actor,
            action=AuditAction.UPDATE,
            collection=AuditCollection.COUNTRIES,
            entity_code="B",
            changes="update country",
            before={"name": "B"},
            after={"name": "B2"},
        )

        _, total = query_audit_logs(keyword="   ")
        self.assertEqual(total, 2)

        entries, total = query_audit_logs(keyword=" country")
        self.assertEqual(total, 1)
        self.assertEqual(entries[0].entity_code, "B")

    def test_deleting_the_actor_leaves_entries_untouched(self):
        clerk = User.objects.create_user(username="clerk", password="clerk123", role="STAFF", first_name="Cleo")
        record_audit(
            actor=clerk,
            action=AuditAction.LOGIN,
            collection=AuditCollection.USERS,
            entity_code=clerk.user_code,
            changes="login-user",
        )

        clerk.delete()

        entries, total = query_audit_logs(keyword="cleo")
        self.assertEqual(total, 1)
        self.assertEqual(entries[0].actor_name, "Cleo")


class AuditLogApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_audit", password="admin123", role="ADMIN")
        self.teacher = User.objects.create_user(username="teacher_audit", password="teacher123", role="TEACHER")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def record_countries(self, count):
        for index in range(count):
            record_audit(
                actor=self.admin,
                action=AuditAction.CREATE,
                collection=AuditCollection.COUNTRIES,
                entity_code=f"COUNTRY-{index}",
                changes="create-country",
                after={"index": index},
            )

    def test_admin_lists_audit_entries_with_filters_and_pagination(self):
        self.record_countries(3)
        self.auth_as("admin_audit", "admin123")

        response = self.client.get("/api/v1/audit-logs/", {"collection": "COUNTRIES", "page_size": 2})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 3)
        self.assertEqual(response.data["page"], 1)
        self.assertEqual(len(response.data["results"]), 2)
        self.assertEqual(response.data["results"][0]["entity_code"], "COUNTRY-2")
        self.assertEqual(response.data["results"][0]["actor_code"], self.admin.user_code)

        second = self.client.get("/api/v1/audit-logs/", {"collection": "COUNTRIES", "page_size": 2, "page": 2})
        self.assertEqual(second.data["count"], 3)
        self.assertEqual(len(second.data["results"]), 1)
        self.assertEqual(second.data["results"][0]["entity_code"], "COUNTRY-0")

    def test_admin_sorts_and_searches(self):
        self.record_countries(3)
        self.auth_as("admin_audit", "admin123")

        response = self.client.get(
            "/api/v1/audit-logs/",
            {"keyword": "country", "sort_field": "entity_code", "sort_order": "asc"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            [item["entity_code"] for item in response.data["results"]],
            ["COUNTRY-0", "COUNTRY-1", "COUNTRY-2"],
        )

    def test_admin_retrieves_entry_by_code(self):
        self.record_countries(1)
        entry = AuditLog.objects.get(collection=AuditCollection.COUNTRIES)
        self.auth_as("admin_audit", "admin123")

        response = self.client.get(f"/api/v1/audit-logs/{entry.entry_code}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["entry_code"], entry.entry_code)
        self.assertEqual(response.data["after"], {"index": 0})
        self.assertIsNone(response.data["before"])

        missing = self.client.get("/api/v1/audit-logs/AUDIT-missing/")
        self.assertEqual(missing.status_code, 404)

    def test_entries_report_whether_their_target_still_exists(self):
        country = Country.objects.create(name="Wakanda", iso2="WK", iso3="WKA")
        record_audit(
            actor=self.admin,
            action=AuditAction.CREATE,
            collection=AuditCollection.COUNTRIES,
            entity_code=country.country_code,
            changes="create-country",
            after={"name": country.name},
        )
        entry = AuditLog.objects.get(entity_code=country.country_code)
        self.auth_as("admin_audit", "admin123")

        live = self.client.get(f"/api/v1/audit-logs/{entry.entry_code}/")
        self.assertTrue(live.data["target_exists"])

        country.delete()
        gone = self.client.get("/api/v1/audit-logs/", {"entity_code": country.country_code})
        self.assertEqual(gone.status_code, 200)
        self.assertFalse(gone.data["results"][0]["target_exists"])

    def test_invalid_query_parameters_return_400(self):
        self.auth_as("admin_audit", "admin123")

        bad_sort = self.client.get("/api/v1/audit-logs/", {"sort_field": "before"})
        self.assertEqual(bad_sort.status_code, 400)
        self.assertEqual(bad_sort.data["code"], "parse_error")

        bad_page = self.client.get("/api/v1/audit-logs/", {"page": "zero"})
        self.assertEqual(bad_page.status_code, 400)

    def test_page_size_is_capped(self):
        self.auth_as("admin_audit", "admin123")
        response = self.client.get("/api/v1/audit-logs/", {"page_size": 1000})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["page_size"], 100)

    def test_audit_trail_is_read_only_over_the_api(self):
        self.record_countries(1)
        entry = AuditLog.objects.get(collection=AuditCollection.COUNTRIES)
        self.auth_as("admin_audit", "admin123")

        created = self.client.post("/api/v1/audit-logs/", {"action": "CREATE"}, format="json")
        self.assertEqual(created.status_code, 405)
        patched = self.client.patch(f"/api/v1/audit-logs/{entry.entry_code}/", {"changes": "x"}, format="json")
        self.assertEqual(patched.status_code, 405)
        deleted = self.client.delete(f"/api/v1/audit-logs/{entry.entry_code}/")
        self.assertEqual(deleted.status_code, 405)
        self.assertTrue(AuditLog.objects.filter(entry_code=entry.entry_code, changes="create-country").exists())

    def test_non_admin_cannot_read_audit_trail(self):
        self.auth_as("teacher_audit", "teacher123")
        response = self.client.get("/api/v1/audit-logs/")
        self.assertEqual(response.status_code, 403)

    def test_anonymous_cannot_read_audit_trail(self):
        response = self.client.get("/api/v1/audit-logs/")
        self.assertEqual(response.status_code, 401)
