from rest_framework import serializers

from apps.audit.models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    actor_code = serializers.SerializerMethodField()
    target_exists = serializers.SerializerMethodField()

    class Meta:
        model = AuditLog
        fields = [
            "entry_code",
            "action",
            "collection",
            "entity_code",
            "target_exists",
            "changes",
            "before",
            "after",
            "actor_code",
            "actor_name",
            "recorded_at",
        ]
        read_only_fields = fields

    def get_actor_code(self, obj):
        return obj.actor.user_code if obj.actor else None

    def get_target_exists(self, obj):
        return obj.target.resolve() is not None
