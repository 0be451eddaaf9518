from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from rest_framework.test import APITestCase

from apps.audit.models import AuditAction, AuditCollection, AuditLog

User = get_user_model()


class AuthenticationAuditTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="teacher_auth", password="teacher123", role="TEACHER")

    def login(self, username="teacher_auth", password="teacher123"):
        return self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )

    def test_login_is_audited_without_snapshots(self):
        response = self.login()
        self.assertEqual(response.status_code, 200)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)

        entry = AuditLog.objects.get(action=AuditAction.LOGIN)
        self.assertEqual(entry.collection, AuditCollection.USERS)
        self.assertEqual(entry.entity_code, self.user.user_code)
        self.assertEqual(entry.actor, self.user)
        self.assertEqual(entry.changes, "login-user")
        self.assertIsNone(entry.before)
        self.assertIsNone(entry.after)

    def test_failed_login_is_not_audited(self):
        response = self.login(password="wrong-password")
        self.assertEqual(response.status_code, 401)
        self.assertFalse(AuditLog.objects.exists())

    def test_login_succeeds_when_audit_storage_fails(self):
        with mock.patch.object(AuditLog.objects, "create", side_effect=DatabaseError("storage down")):
            with self.assertLogs("apps.audit.services", level="ERROR"):
                response = self.login()
        self.assertEqual(response.status_code, 200)
        self.assertIn("access", response.data)

    def test_logout_blacklists_refresh_token_and_is_audited(self):
        tokens = self.login().data
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        response = self.client.post("/api/v1/auth/logout/", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(response.status_code, 204)
        self.assertTrue(
            AuditLog.objects.filter(action=AuditAction.LOGOUT, entity_code=self.user.user_code).exists()
        )

        self.client.credentials()
        refresh = self.client.post("/api/v1/auth/token/refresh/", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(refresh.status_code, 401)

    def test_logout_rejects_someone_elses_refresh_token(self):
        User.objects.create_user(username="other_auth", password="other123", role="STAFF")
        other_tokens = self.login("other_auth", "other123").data
        tokens = self.login().data
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        response = self.client.post("/api/v1/auth/logout/", {"refresh": other_tokens["refresh"]}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("refresh", response.data["fields"])
        self.assertFalse(AuditLog.objects.filter(action=AuditAction.LOGOUT).exists())

    def test_change_password_is_audited(self):
        tokens = self.login().data
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        response = self.client.post(
            "/api/v1/auth/change-password/",
            {"current_password": "teacher123", "new_password": "Chalk-and-Board-42"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)

        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("Chalk-and-Board-42"))
        entry = AuditLog.objects.get(action=AuditAction.CHANGE_PASSWORD)
        self.assertEqual(entry.entity_code, self.user.user_code)
        self.assertIsNone(entry.before)
        self.assertIsNone(entry.after)

    def test_change_password_requires_current_password(self):
        tokens = self.login().data
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        response = self.client.post(
            "/api/v1/auth/change-password/",
            {"current_password": "nope", "new_password": "Chalk-and-Board-42"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("current_password", response.data["fields"])
        self.assertFalse(AuditLog.objects.filter(action=AuditAction.CHANGE_PASSWORD).exists())


class UserApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin_users", password="admin123", role="ADMIN")
        self.staff = User.objects.create_user(username="staff_users", password="staff123", role="STAFF")

    def auth_as(self, username, password):
        token = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        ).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def test_admin_can_crud_users_and_each_step_is_audited(self):
        self.auth_as("admin_users", "admin123")
        created = self.client.post(
            "/api/v1/users/",
            {
                "username": "new_teacher",
                "password": "Blackboard-Rules-7",
                "first_name": "Maria",
                "last_name": "Montessori",
                "role": "TEACHER",
            },
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertNotIn("password", created.data)
        user_code = created.data["user_code"]
        self.assertTrue(user_code.startswith("USER-"))
        self.assertTrue(User.objects.get(user_code=user_code).check_password("Blackboard-Rules-7"))

        updated = self.client.patch(f"/api/v1/users/{user_code}/", {"role": "STAFF"}, format="json")
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.data["role"], "STAFF")

        deleted = self.client.delete(f"/api/v1/users/{user_code}/")
        self.assertEqual(deleted.status_code, 204)
        self.assertFalse(User.objects.filter(user_code=user_code).exists())

        create_entry = AuditLog.objects.get(action=AuditAction.CREATE, entity_code=user_code)
        self.assertEqual(create_entry.changes, "create-user")
        self.assertEqual(create_entry.after, created.data)
        self.assertEqual(create_entry.actor, self.admin)
        self.assertNotIn("password", create_entry.after)

        update_entry = AuditLog.objects.get(action=AuditAction.UPDATE, entity_code=user_code)
        self.assertEqual(update_entry.before["role"], "TEACHER")
        self.assertEqual(update_entry.after["role"], "STAFF")

        delete_entry = AuditLog.objects.get(action=AuditAction.DELETE, entity_code=user_code)
        self.assertEqual(delete_entry.before["username"], "new_teacher")
        self.assertIsNone(delete_entry.after)

    def test_admin_cannot_delete_own_account(self):
        self.auth_as("admin_users", "admin123")
        response = self.client.delete(f"/api/v1/users/{self.admin.user_code}/")
        self.assertEqual(response.status_code, 400)
        self.assertTrue(User.objects.filter(pk=self.admin.pk).exists())
        self.assertFalse(AuditLog.objects.filter(action=AuditAction.DELETE).exists())

    def test_weak_password_is_rejected(self):
        self.auth_as("admin_users", "admin123")
        response = self.client.post(
            "/api/v1/users/",
            {"username": "weak_user", "password": "123", "role": "STAFF"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(User.objects.filter(username="weak_user").exists())

    def test_staff_can_list_but_not_create_users(self):
        self.auth_as("staff_users", "staff123")
        listed = self.client.get("/api/v1/users/", {"q": "admin"})
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(listed.data["count"], 1)

        created = self.client.post(
            "/api/v1/users/",
            {"username": "sneaky", "password": "Blackboard-Rules-7", "role": "ADMIN"},
            format="json",
        )
        self.assertEqual(created.status_code, 403)
