from django.db.models import ProtectedError

from apps.audit.models import AuditAction
from apps.audit.services import record_audit
from apps.common.exceptions import ReferenceExists


class AuditedModelMixin:
    audit_collection = None
    audit_entity = None

    def audit_snapshot(self, instance):
        return self.get_serializer(instance).data

    def audit(self, action, instance_code, before=None, after=None):
        record_audit(
            actor=self.request.user,
            action=action,
            collection=self.audit_collection,
            entity_code=instance_code,
            changes=f"{action.lower()}-{self.audit_entity}",
            before=before,
            after=after,
        )

    def perform_create(self, serializer):
        instance = serializer.save()
        self.audit(AuditAction.CREATE, getattr(instance, self.lookup_field), after=self.audit_snapshot(instance))

    def perform_update(self, serializer):
        before = self.audit_snapshot(serializer.instance)
        instance = serializer.save()
        self.audit(
            AuditAction.UPDATE,
            getattr(instance, self.lookup_field),
            before=before,
            after=self.audit_snapshot(instance),
        )

    def perform_destroy(self, instance):
        before = self.audit_snapshot(instance)
        instance_code = getattr(instance, self.lookup_field)
        try:
            instance.delete()
        except ProtectedError as exc:
            raise ReferenceExists() from exc
        self.audit(AuditAction.DELETE, instance_code, before=before)
