from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import SimpleTestCase
from rest_framework.test import APITestCase

from apps.audit.models import AuditAction, AuditCollection, AuditLog
from apps.geography.models import City, Country, State, capitalize_words

User = get_user_model()


class GeographyApiTestCase(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_geo", password="admin123", role="ADMIN")
        self.teacher = User.objects.create_user(username="teacher_geo", password="teacher123", role="TEACHER")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")


class CountryApiTests(GeographyApiTestCase):
    def test_country_create_update_delete_are_audited_with_response_snapshots(self):
        self.auth_as("admin_geo", "admin123")
        created = self.client.post(
            "/api/v1/countries/",
            {"name": "united states", "iso2": "us", "iso3": "usa"},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["name"], "United States")
        self.assertEqual(created.data["iso2"], "US")
        self.assertEqual(created.data["iso3"], "USA")
        country_code = created.data["country_code"]
        self.assertTrue(country_code.startswith("COUNTRY-"))

        updated = self.client.patch(f"/api/v1/countries/{country_code}/", {"name": "United States Of America"}, format="json")
        self.assertEqual(updated.status_code, 200)

        deleted = self.client.delete(f"/api/v1/countries/{country_code}/")
        self.assertEqual(deleted.status_code, 204)

        create_entry = AuditLog.objects.get(action=AuditAction.CREATE, entity_code=country_code)
        self.assertEqual(create_entry.collection, AuditCollection.COUNTRIES)
        self.assertEqual(create_entry.changes, "create-country")
        self.assertIsNone(create_entry.before)
        self.assertEqual(create_entry.after, created.data)
        self.assertEqual(create_entry.actor, self.admin)

        update_entry = AuditLog.objects.get(action=AuditAction.UPDATE, entity_code=country_code)
        self.assertEqual(update_entry.changes, "update-country")
        self.assertEqual(update_entry.before["name"], "United States")
        self.assertEqual(update_entry.after, updated.data)

        delete_entry = AuditLog.objects.get(action=AuditAction.DELETE, entity_code=country_code)
        self.assertEqual(delete_entry.changes, "delete-country")
        self.assertEqual(delete_entry.before["name"], "United States Of America")
        self.assertIsNone(delete_entry.after)

    def test_country_create_succeeds_when_audit_storage_fails(self):
        self.auth_as("admin_geo", "admin123")
        with mock.patch.object(AuditLog.objects, "create", side_effect=DatabaseError("storage down")):
            with self.assertLogs("apps.audit.services", level="ERROR"):
                response = self.client.post(
                    "/api/v1/countries/",
                    {"name": "Wakanda", "iso2": "WK", "iso3": "WKA"},
                    format="json",
                )

        self.assertEqual(response.status_code, 201)
        self.assertTrue(Country.objects.filter(country_code=response.data["country_code"]).exists())
        self.assertFalse(AuditLog.objects.filter(collection=AuditCollection.COUNTRIES).exists())

    def test_duplicate_country_is_rejected_case_insensitively(self):
        Country.objects.create(name="India", iso2="IN", iso3="IND")
        self.auth_as("admin_geo", "admin123")

        response = self.client.post(
            "/api/v1/countries/",
            {"name": "india", "iso2": "in", "iso3": "ind"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("name", response.data["fields"])
        self.assertIn("iso2", response.data["fields"])
        self.assertIn("iso3", response.data["fields"])
        self.assertEqual(Country.objects.count(), 1)
        self.assertFalse(AuditLog.objects.filter(collection=AuditCollection.COUNTRIES).exists())

    def test_iso_codes_must_be_letters_of_the_right_length(self):
        self.auth_as("admin_geo", "admin123")
        response = self.client.post(
            "/api/v1/countries/",
            {"name": "Nowhere", "iso2": "1", "iso3": "N0W"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("iso2", response.data["fields"])
        self.assertIn("iso3", response.data["fields"])

    def test_country_list_search_and_ordering(self):
        Country.objects.create(name="India", iso2="IN", iso3="IND")
        Country.objects.create(name="Indonesia", iso2="ID", iso3="IDN")
        Country.objects.create(name="Japan", iso2="JP", iso3="JPN")
        self.auth_as("teacher_geo", "teacher123")

        response = self.client.get("/api/v1/countries/", {"q": "ind", "ordering": "-name"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual([item["name"] for item in response.data["results"]], ["Indonesia", "India"])

    def test_teacher_can_read_but_not_write(self):
        country = Country.objects.create(name="India", iso2="IN", iso3="IND")
        self.auth_as("teacher_geo", "teacher123")

        detail = self.client.get(f"/api/v1/countries/{country.country_code}/")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.data["iso3"], "IND")

        created = self.client.post(
            "/api/v1/countries/",
            {"name": "Japan", "iso2": "JP", "iso3": "JPN"},
            format="json",
        )
        self.assertEqual(created.status_code, 403)


class StateAndCityApiTests(GeographyApiTestCase):
    def setUp(self):
        super().setUp()
        self.india = Country.objects.create(name="India", iso2="IN", iso3="IND")

    def test_state_references_country_by_code_and_nests_it(self):
        self.auth_as("admin_geo", "admin123")
        response = self.client.post(
            "/api/v1/states/",
            {"name": "maharashtra", "iso": "mh", "country_code": self.india.country_code},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["name"], "Maharashtra")
        self.assertEqual(response.data["iso"], "MH")
        self.assertEqual(response.data["country"]["country_code"], self.india.country_code)
        self.assertNotIn("country_code", response.data)

        entry = AuditLog.objects.get(collection=AuditCollection.STATES, entity_code=response.data["state_code"])
        self.assertEqual(entry.after["country"]["name"], "India")

    def test_state_with_unknown_country_is_rejected(self):
        self.auth_as("admin_geo", "admin123")
        response = self.client.post(
            "/api/v1/states/",
            {"name": "Atlantis", "iso": "AT", "country_code": "COUNTRY-missing"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("country_code", response.data["fields"])
        self.assertFalse(AuditLog.objects.filter(collection=AuditCollection.STATES).exists())

    def test_city_takes_its_country_from_the_state(self):
        state = State.objects.create(name="Maharashtra", iso="MH", country=self.india)
        self.auth_as("admin_geo", "admin123")

        response = self.client.post(
            "/api/v1/cities/",
            {"name": "pune", "state_code": state.state_code},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["name"], "Pune")
        self.assertEqual(response.data["state"]["state_code"], state.state_code)
        self.assertEqual(response.data["country"]["country_code"], self.india.country_code)

        city = City.objects.get(city_code=response.data["city_code"])
        self.assertEqual(city.country, self.india)

    def test_city_list_filters_by_state(self):
        maharashtra = State.objects.create(name="Maharashtra", iso="MH", country=self.india)
        goa = State.objects.create(name="Goa", iso="GA", country=self.india)
        City.objects.create(name="Pune", state=maharashtra)
        City.objects.create(name="Mumbai", state=maharashtra)
        City.objects.create(name="Panaji", state=goa)
        self.auth_as("teacher_geo", "teacher123")

        response = self.client.get("/api/v1/cities/", {"state_code": maharashtra.state_code})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual([item["name"] for item in response.data["results"]], ["Mumbai", "Pune"])

    def test_referenced_country_cannot_be_deleted(self):
        State.objects.create(name="Maharashtra", iso="MH", country=self.india)
        self.auth_as("admin_geo", "admin123")

        response = self.client.delete(f"/api/v1/countries/{self.india.country_code}/")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "reference_exists")
        self.assertTrue(Country.objects.filter(pk=self.india.pk).exists())
        self.assertFalse(AuditLog.objects.filter(action=AuditAction.DELETE).exists())

    def test_state_update_then_delete_read_back_newest_first(self):
        state = State.objects.create(name="Goa", iso="GA", country=self.india)
        self.auth_as("admin_geo", "admin123")

        self.client.patch(f"/api/v1/states/{state.state_code}/", {"name": "Goa State"}, format="json")
        self.client.delete(f"/api/v1/states/{state.state_code}/")

        history = self.client.get("/api/v1/audit-logs/", {"entity_code": state.state_code})
        self.assertEqual(history.status_code, 200)
        self.assertEqual(history.data["count"], 2)
        self.assertEqual([item["action"] for item in history.data["results"]], ["DELETE", "UPDATE"])
        self.assertEqual(history.data["results"][1]["before"]["name"], "Goa")
        self.assertEqual(history.data["results"][1]["after"]["name"], "Goa State")


class CapitalizeWordsTests(SimpleTestCase):
    def test_capitalizes_first_letter_of_each_word(self):
        self.assertEqual(capitalize_words("  new   south wales "), "New South Wales")
        self.assertEqual(capitalize_words("iNDIA"), "INDIA")
        self.assertEqual(capitalize_words(""), "")
