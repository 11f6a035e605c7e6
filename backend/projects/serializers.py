from django.contrib.auth import get_user_model
from rest_framework import serializers

from backend.core.roles import is_sprint_member_role
from .models import Expense, Project, Sprint, Task, TaskComment, TimeEntry

User = get_user_model()


class UserSummarySerializer(serializers.ModelSerializer):
    role_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'role_name']


def _organization_users(context, ids, active_only=False):
    """Resolve user ids inside the organization of the serializer context"""
    organization = context.get('organization')
    queryset = User.objects.filter(pk__in=ids)
    if organization is not None:
        queryset = queryset.filter(organization=organization)
    if active_only:
        queryset = queryset.filter(is_active=True)
    users = {user.id: user for user in queryset.select_related('role')}
    missing = [pk for pk in ids if pk not in users]
    return [users[pk] for pk in ids if pk in users], missing


class ProjectSerializer(serializers.ModelSerializer):
    owner = UserSummarySerializer(read_only=True)
    co_owners = UserSummarySerializer(many=True, read_only=True)
    members = UserSummarySerializer(many=True, read_only=True)
    client_name = serializers.CharField(source='client.name', read_only=True, allow_null=True)
    owner_ids = serializers.ListField(child=serializers.IntegerField(), write_only=True, required=False)
    member_ids = serializers.ListField(child=serializers.IntegerField(), write_only=True, required=False)
    tasks_count = serializers.SerializerMethodField()
    sprints_count = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = ['id', 'name', 'description', 'status', 'start_date', 'end_date', 'owner', 'co_owners',
                  'members', 'client', 'client_name', 'owner_ids', 'member_ids', 'tasks_count',
                  'sprints_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_tasks_count(self, obj):
        return obj.tasks.count()

    def get_sprints_count(self, obj):
        return obj.sprints.count()

    def validate_client(self, value):
        organization = self.context.get('organization')
        if value and organization and value.organization_id != organization.id:
            raise serializers.ValidationError('Client does not belong to this organization.')
        return value

    def validate_owner_ids(self, value):
        if not value:
            raise serializers.ValidationError('At least one owner is required.')
        owners, missing = _organization_users(self.context, list(dict.fromkeys(value)), active_only=True)
        if missing:
            raise serializers.ValidationError(f'Owners not found in this organization: {missing}')
        return owners

    def validate_member_ids(self, value):
        members, missing = _organization_users(self.context, list(dict.fromkeys(value)))
        if missing:
            raise serializers.ValidationError(f'Members not found in this organization: {missing}')
        return members

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': 'End date cannot be before start date.'})
        return attrs

    def _save_people(self, project, owners, members):
        if owners is not None:
            project.owner = owners[0]
            project.save(update_fields=['owner', 'updated_at'])
            project.co_owners.set(owners[1:])
        if members is not None:
            project.members.set(members)

    def create(self, validated_data):
        owners = validated_data.pop('owner_ids', None)
        members = validated_data.pop('member_ids', None)
        if owners is None:
            owners = [self.context['request'].user]
        project = Project.objects.create(**validated_data)
        self._save_people(project, owners, members)
        return project

    def update(self, instance, validated_data):
        owners = validated_data.pop('owner_ids', None)
        members = validated_data.pop('member_ids', None)
        instance = super().update(instance, validated_data)
        self._save_people(instance, owners, members)
        return instance


class ProjectStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Project.STATUS_CHOICES)


class SprintSerializer(serializers.ModelSerializer):
    project_name = serializers.CharField(source='project.name', read_only=True)
    members = UserSummarySerializer(many=True, read_only=True)
    member_ids = serializers.ListField(child=serializers.IntegerField(), write_only=True, required=False)
    tasks_count = serializers.SerializerMethodField()

    class Meta:
        model = Sprint
        fields = ['id', 'project', 'project_name', 'name', 'goal', 'start_date', 'end_date', 'members',
                  'member_ids', 'tasks_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_tasks_count(self, obj):
        return obj.tasks.count()

    def validate_project(self, value):
        organization = self.context.get('organization')
        if value.deleted_at is not None or (organization and value.organization_id != organization.id):
            raise serializers.ValidationError('Project not found.')
        if self.instance is not None and value.pk != self.instance.project_id:
            raise serializers.ValidationError('A sprint cannot be moved to another project.')
        return value

    def validate_member_ids(self, value):
        members, missing = _organization_users(self.context, list(dict.fromkeys(value)))
        if missing:
            raise serializers.ValidationError(f'Members not found in this organization: {missing}')
        invalid = [user.username for user in members if not is_sprint_member_role(user.role_name)]
        if invalid:
            raise serializers.ValidationError('Only developers and operators can be assigned to sprints.')
        return members

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end <= start:
            raise serializers.ValidationError({'end_date': 'End date must be after start date.'})
        return attrs

    def create(self, validated_data):
        members = validated_data.pop('member_ids', None)
        sprint = Sprint.objects.create(**validated_data)
        if members:
            sprint.members.set(members)
        return sprint

    def update(self, instance, validated_data):
        members = validated_data.pop('member_ids', None)
        instance = super().update(instance, validated_data)
        if members is not None:
            instance.members.set(members)
        return instance


class TaskCommentSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = TaskComment
        fields = ['id', 'task', 'user', 'content', 'created_at']
        read_only_fields = ['task', 'created_at']

    def validate_content(self, value):
        if not value.strip():
            raise serializers.ValidationError('Comment cannot be empty.')
        return value.strip()


class TaskSerializer(serializers.ModelSerializer):
    project_name = serializers.CharField(source='project.name', read_only=True)
    sprint_name = serializers.CharField(source='sprint.name', read_only=True, allow_null=True)
    assignee_detail = UserSummarySerializer(source='assignee', read_only=True)
    reporter_detail = UserSummarySerializer(source='reporter', read_only=True)
    comments_count = serializers.SerializerMethodField()
    initial_comment = serializers.CharField(write_only=True, required=False, allow_blank=True)
    position = serializers.IntegerField(required=False)

    class Meta:
        model = Task
        fields = ['id', 'project', 'project_name', 'sprint', 'sprint_name', 'title', 'description',
                  'status', 'priority', 'assignee', 'assignee_detail', 'reporter', 'reporter_detail',
                  'position', 'due_date', 'estimated_hours', 'actual_hours', 'drive_link',
                  'comments_count', 'initial_comment', 'created_at', 'updated_at']
        read_only_fields = ['reporter', 'created_at', 'updated_at']

    def get_comments_count(self, obj):
        return obj.comments.count()

    def validate_project(self, value):
        organization = self.context.get('organization')
        if value.deleted_at is not None or (organization and value.organization_id != organization.id):
            raise serializers.ValidationError('Project not found.')
        return value

    def validate_assignee(self, value):
        organization = self.context.get('organization')
        if value is None:
            return value
        if not value.is_active or (organization and value.organization_id != organization.id):
            raise serializers.ValidationError('Assignee not found.')
        return value

    def validate(self, attrs):
        project = attrs.get('project', getattr(self.instance, 'project', None))
        sprint = attrs.get('sprint', getattr(self.instance, 'sprint', None))
        if sprint is not None and project is not None and sprint.project_id != project.id:
            raise serializers.ValidationError({'sprint': 'Sprint not found in this project.'})
        return attrs


class TaskMoveSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Task.STATUS_CHOICES)
    position = serializers.IntegerField(min_value=0)


class TaskAssignSerializer(serializers.Serializer):
    assignee = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())

    def validate_assignee(self, value):
        organization = self.context.get('organization')
        if not value.is_active or (organization and value.organization_id != organization.id):
            raise serializers.ValidationError('Assignee not found.')
        return value


def _validate_organization_project(context, value):
    organization = context.get('organization')
    if value is None:
        return value
    if value.deleted_at is not None or (organization and value.organization_id != organization.id):
        raise serializers.ValidationError('Project not found.')
    return value


class ExpenseSerializer(serializers.ModelSerializer):
    user_detail = UserSummarySerializer(source='user', read_only=True)
    project_name = serializers.CharField(source='project.name', read_only=True, allow_null=True)

    class Meta:
        model = Expense
        fields = ['id', 'description', 'amount', 'category', 'currency', 'date', 'status', 'user',
                  'user_detail', 'project', 'project_name', 'receipt_url', 'approved_by', 'approved_at',
                  'reimbursed_at', 'created_at', 'updated_at']
        read_only_fields = ['user', 'approved_by', 'approved_at', 'reimbursed_at', 'created_at', 'updated_at']

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Amount must be greater than zero.')
        return value

    def validate_currency(self, value):
        return value.upper()

    def validate_project(self, value):
        return _validate_organization_project(self.context, value)


class TimeEntrySerializer(serializers.ModelSerializer):
    user_detail = UserSummarySerializer(source='user', read_only=True)
    project_name = serializers.CharField(source='project.name', read_only=True, allow_null=True)
    task_title = serializers.CharField(source='task.title', read_only=True, allow_null=True)

    class Meta:
        model = TimeEntry
        fields = ['id', 'description', 'hours', 'date', 'status', 'user', 'user_detail', 'project',
                  'project_name', 'task', 'task_title', 'created_at', 'updated_at']
        read_only_fields = ['user', 'created_at', 'updated_at']

    def validate_hours(self, value):
        if value <= 0 or value > 24:
            raise serializers.ValidationError('Hours must be between 0 and 24.')
        return value

    def validate_project(self, value):
        return _validate_organization_project(self.context, value)

    def validate_task(self, value):
        organization = self.context.get('organization')
        if value is not None and organization and value.organization_id != organization.id:
            raise serializers.ValidationError('Task not found.')
        return value

    def validate(self, attrs):
        project = attrs.get('project', getattr(self.instance, 'project', None))
        task = attrs.get('task', getattr(self.instance, 'task', None))
        if task is not None:
            if project is None:
                attrs['project'] = task.project
            elif task.project_id != project.id:
                raise serializers.ValidationError({'task': 'Task not found in this project.'})
        return attrs
