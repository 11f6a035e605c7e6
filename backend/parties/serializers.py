from rest_framework import serializers
from .models import Client, Supplier


class ClientSerializer(serializers.ModelSerializer):
    projects_count = serializers.IntegerField(read_only=True)
    invoices_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Client
        fields = ['id', 'name', 'client_code', 'tax_id', 'address', 'phone', 'email', 'contact',
                  'is_active', 'projects_count', 'invoices_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class ClientDetailSerializer(ClientSerializer):
    """Client with its latest projects and invoices"""
    recent_projects = serializers.SerializerMethodField()
    recent_invoices = serializers.SerializerMethodField()

    class Meta(ClientSerializer.Meta):
        fields = ClientSerializer.Meta.fields + ['recent_projects', 'recent_invoices']

    def get_recent_projects(self, obj):
        projects = obj.projects.filter(deleted_at__isnull=True).order_by('-created_at')[:5]
        return [{'id': p.id, 'name': p.name, 'status': p.status} for p in projects]

    def get_recent_invoices(self, obj):
        invoices = obj.invoices.order_by('-issue_date')[:5]
        return [
            {'id': i.id, 'number': i.number, 'total': str(i.total), 'status': i.status, 'issue_date': i.issue_date}
            for i in invoices
        ]


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = ['id', 'name', 'tax_id', 'address', 'phone', 'email', 'contact', 'bank_details',
                  'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
