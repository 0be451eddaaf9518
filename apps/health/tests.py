from unittest import mock

from django.db import DatabaseError
from rest_framework.test import APITestCase


class HealthTests(APITestCase):
    def test_health_is_public(self):
        response = self.client.get("/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {"status": "ok", "database": "ok"})

    def test_health_reports_database_outage(self):
        with mock.patch("apps.health.views.connection") as connection:
            connection.cursor.side_effect = DatabaseError("down")
            with self.assertLogs("apps.health.views", level="ERROR"):
                response = self.client.get("/health/")
        self.assertEqual(response.status_code, 503)
