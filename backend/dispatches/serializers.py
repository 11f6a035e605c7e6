from rest_framework import serializers

from backend.projects.serializers import UserSummarySerializer
from .models import Dispatch


class DispatchTaskSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = serializers.CharField()
    status = serializers.CharField()
    priority = serializers.CharField()


class DispatchSerializer(serializers.ModelSerializer):
    sender_detail = UserSummarySerializer(source='sender', read_only=True)
    recipient_detail = UserSummarySerializer(source='recipient', read_only=True)
    task_detail = DispatchTaskSerializer(source='task', read_only=True, allow_null=True)

    class Meta:
        model = Dispatch
        fields = ['id', 'content', 'description', 'link', 'urgency_level', 'due_date', 'status',
                  'sender', 'sender_detail', 'recipient', 'recipient_detail', 'read_at', 'in_progress_at',
                  'resolved_at', 'resolution_note', 'task', 'task_detail', 'created_at', 'updated_at']
        read_only_fields = ['status', 'sender', 'read_at', 'in_progress_at', 'resolved_at', 'resolution_note',
                            'task', 'created_at', 'updated_at']

    def validate_recipient(self, value):
        organization = self.context.get('organization')
        if not value.is_active or (organization and value.organization_id != organization.id):
            raise serializers.ValidationError('Recipient not found or inactive.')
        return value


class DispatchPatchSerializer(serializers.ModelSerializer):
    """Recipient edits; conversion to a task has its own endpoint"""
    status = serializers.ChoiceField(
        choices=[choice for choice in Dispatch.STATUS_CHOICES if choice[0] != 'CONVERTED_TO_TASK'],
        required=False,
    )

    class Meta:
        model = Dispatch
        fields = ['content', 'description', 'link', 'urgency_level', 'due_date', 'status', 'resolution_note']


class DispatchResolveSerializer(serializers.Serializer):
    resolution_note = serializers.CharField(required=False, allow_blank=True)


class DispatchConvertSerializer(serializers.Serializer):
    project_id = serializers.IntegerField(required=False, allow_null=True)
