from rest_framework import serializers

from clinic_core.audit.models import AuditEvent


class AuditEventSerializer(serializers.ModelSerializer):
    # API field name is "timestamp"; model field is occurred_at
    timestamp = serializers.DateTimeField(source="occurred_at", read_only=True)
    actor_user_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = AuditEvent
        fields = [
            "id",
            "clinic_id",
            "entity_type",
            "entity_id",
            "event_code",
            "actor_user_id",
            "timestamp",
            "metadata",
        ]
        read_only_fields = fields
