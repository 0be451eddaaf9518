from django.contrib.auth.models import AbstractUser
from django.db import models

from apps.common.codes import generate_code


def new_user_code():
    return generate_code("USER")


class UserRole(models.TextChoices):
    ADMIN = "ADMIN", "Admin"
    TEACHER = "TEACHER", "Teacher"
    STAFF = "STAFF", "Staff"


class User(AbstractUser):
    user_code = models.CharField(max_length=64, unique=True, default=new_user_code, editable=False)
    role = models.CharField(max_length=20, choices=UserRole.choices, default=UserRole.STAFF)

    @property
    def display_name(self):
        return self.get_full_name() or self.username
