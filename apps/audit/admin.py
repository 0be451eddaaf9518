from django.contrib import admin

from apps.audit.models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("entry_code", "action", "collection", "entity_code", "changes", "actor_name", "recorded_at")
    list_filter = ("action", "collection")
    search_fields = ("entry_code", "entity_code", "changes", "actor_name")
    readonly_fields = [field.name for field in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
