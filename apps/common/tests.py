from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIRequestFactory

from apps.common.codes import generate_code
from apps.common.permissions import RolePermission

User = get_user_model()


class GenerateCodeTests(SimpleTestCase):
    def test_code_carries_normalized_prefix(self):
        code = generate_code(" country ")
        self.assertTrue(code.startswith("COUNTRY-"))
        self.assertEqual(len(code), len("COUNTRY-") + 36)

    def test_codes_do_not_repeat(self):
        codes = {generate_code("AUDIT") for _ in range(1000)}
        self.assertEqual(len(codes), 1000)


class RolePermissionTests(TestCase):
    class View:
        action = "create"
        capability_map = {"list": ["geography.view"], "create": ["geography.manage"]}

    def request_for(self, user):
        request = APIRequestFactory().post("/")
        request.user = user
        return request

    def test_capabilities_follow_role(self):
        admin = User.objects.create_user(username="admin_perm", password="admin123", role="ADMIN")
        teacher = User.objects.create_user(username="teacher_perm", password="teacher123", role="TEACHER")

        self.assertTrue(RolePermission().has_permission(self.request_for(admin), self.View()))
        self.assertFalse(RolePermission().has_permission(self.request_for(teacher), self.View()))

    def test_group_membership_overrides_role_field(self):
        teacher = User.objects.create_user(username="promoted", password="teacher123", role="TEACHER")
        teacher.groups.add(Group.objects.create(name="ADMIN"))

        self.assertTrue(RolePermission().has_permission(self.request_for(teacher), self.View()))
