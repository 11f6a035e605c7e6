from django.contrib import admin
from .models import Client, Supplier


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ['name', 'organization', 'client_code', 'tax_id', 'email', 'phone', 'is_active', 'created_at']
    list_filter = ['is_active', 'organization']
    search_fields = ['name', 'client_code', 'tax_id', 'email', 'contact']
    ordering = ['name']


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'organization', 'tax_id', 'email', 'phone', 'contact', 'is_active', 'created_at']
    list_filter = ['is_active', 'organization']
    search_fields = ['name', 'tax_id', 'email', 'contact']
    ordering = ['name']
