from typing import NamedTuple

from django.apps import apps as django_apps
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from apps.common.codes import generate_code


def new_entry_code():
    return generate_code("AUDIT")


class AuditLogImmutableError(Exception):
    pass


class AuditAction(models.TextChoices):
    CREATE = "CREATE", "Create"
    UPDATE = "UPDATE", "Update"
    DELETE = "DELETE", "Delete"
    LOGIN = "LOGIN", "Login"
    LOGOUT = "LOGOUT", "Logout"
    CHANGE_PASSWORD = "CHANGE_PASSWORD", "Change password"


class AuditCollection(models.TextChoices):
    USERS = "USERS", "Users"
    COUNTRIES = "COUNTRIES", "Countries"
    STATES = "STATES", "States"
    CITIES = "CITIES", "Cities"


# (model label, business code field) each collection points at.
COLLECTION_TARGETS = {
    AuditCollection.USERS: ("accounts.User", "user_code"),
    AuditCollection.COUNTRIES: ("geography.Country", "country_code"),
    AuditCollection.STATES: ("geography.State", "state_code"),
    AuditCollection.CITIES: ("geography.City", "city_code"),
}


class AuditTarget(NamedTuple):
    collection: AuditCollection
    entity_code: str

    def resolve(self):
        model_label, code_field = COLLECTION_TARGETS[self.collection]
        model = django_apps.get_model(model_label)
        return model.objects.filter(**{code_field: self.entity_code}).first()


class AuditLogQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise AuditLogImmutableError("Audit log entries cannot be updated.")

    def delete(self):
        raise AuditLogImmutableError("Audit log entries cannot be deleted.")


class AuditLog(models.Model):
    entry_code = models.CharField(max_length=64, unique=True, default=new_entry_code, editable=False)
    action = models.CharField(max_length=32, choices=AuditAction.choices)
    collection = models.CharField(max_length=32, choices=AuditCollection.choices)
    entity_code = models.CharField(max_length=80)
    changes = models.CharField(max_length=255)
    before = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    after = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="audit_entries",
    )
    actor_name = models.CharField(max_length=255, blank=True)
    recorded_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        ordering = ["-recorded_at", "-id"]
        indexes = [
            models.Index(fields=["action", "recorded_at"], name="audit_action_recorded_idx"),
            models.Index(fields=["collection", "entity_code"], name="audit_entity_lookup_idx"),
        ]

    def __str__(self):
        return f"{self.entry_code} {self.action} {self.collection}:{self.entity_code}"

    @property
    def target(self):
        return AuditTarget(AuditCollection(self.collection), self.entity_code)

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AuditLogImmutableError("Audit log entries cannot be updated.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AuditLogImmutableError("Audit log entries cannot be deleted.")
