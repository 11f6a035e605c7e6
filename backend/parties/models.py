from django.db import models
from backend.core.models import Organization


class Client(models.Model):
    """Customers that projects, receivables and invoices are billed to"""
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='clients')
    name = models.CharField(max_length=255)
    client_code = models.CharField(max_length=50, blank=True, null=True)
    tax_id = models.CharField(max_length=20, blank=True, null=True, help_text="RFC")
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    contact = models.CharField(max_length=200, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'clients'
        ordering = ['name']


class Supplier(models.Model):
    """Suppliers that payables and purchase orders are owed to"""
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='suppliers')
    name = models.CharField(max_length=255)
    tax_id = models.CharField(max_length=20, blank=True, null=True, help_text="RFC")
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    contact = models.CharField(max_length=200, blank=True)
    bank_details = models.TextField(blank=True, help_text="Bank name, account and CLABE")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'suppliers'
        ordering = ['name']
