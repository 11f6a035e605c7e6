from django.contrib import admin
from .models import (
    Category, AccountReceivable, AccountPayable, PaymentComplement, Invoice,
    Quote, QuoteItem, FixedCost, PurchaseOrder, Account, JournalEntry, JournalLine, FlowRecovery,
)


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'organization', 'color', 'created_at']
    list_filter = ['organization']
    search_fields = ['name']
    ordering = ['name']


class PaymentComplementInline(admin.TabularInline):
    model = PaymentComplement
    extra = 0
    fields = ['amount', 'payment_date', 'payment_method', 'reference']
    readonly_fields = ['amount', 'payment_date', 'payment_method', 'reference']
    can_delete = False


@admin.register(AccountReceivable)
class AccountReceivableAdmin(admin.ModelAdmin):
    list_display = ['concept', 'organization', 'client', 'project', 'amount', 'amount_paid', 'amount_remaining', 'status', 'due_date']
    list_filter = ['status', 'organization', 'due_date']
    search_fields = ['concept', 'notes', 'client__name']
    readonly_fields = ['amount_paid', 'amount_remaining', 'created_at', 'updated_at']
    inlines = [PaymentComplementInline]
    ordering = ['-created_at']


@admin.register(AccountPayable)
class AccountPayableAdmin(admin.ModelAdmin):
    list_display = ['concept', 'organization', 'supplier', 'category', 'amount', 'amount_paid', 'status', 'paid', 'due_date']
    list_filter = ['status', 'paid', 'authorized', 'organization']
    search_fields = ['concept', 'notes', 'payment_reference', 'supplier__name']
    readonly_fields = ['amount_paid', 'amount_remaining', 'created_at', 'updated_at']
    inlines = [PaymentComplementInline]
    ordering = ['-created_at']


@admin.register(PaymentComplement)
class PaymentComplementAdmin(admin.ModelAdmin):
    list_display = ['id', 'organization', 'account_receivable', 'account_payable', 'amount', 'payment_date', 'payment_method', 'legacy_id']
    list_filter = ['payment_method', 'organization', 'payment_date']
    search_fields = ['reference', 'notes', 'cfdi_uuid']
    readonly_fields = ['created_at', 'updated_at']
    date_hierarchy = 'payment_date'


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['number', 'organization', 'client', 'total', 'currency', 'status', 'issue_date']
    list_filter = ['status', 'currency', 'organization']
    search_fields = ['number', 'cfdi_uuid', 'client__name']
    date_hierarchy = 'issue_date'


class QuoteItemInline(admin.TabularInline):
    model = QuoteItem
    extra = 0
    readonly_fields = ['line_total']


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    list_display = ['number', 'organization', 'client', 'amount', 'status', 'date', 'valid_until']
    list_filter = ['status', 'organization']
    search_fields = ['number', 'notes', 'client__name']
    inlines = [QuoteItemInline]


@admin.register(FixedCost)
class FixedCostAdmin(admin.ModelAdmin):
    list_display = ['name', 'organization', 'category', 'amount', 'periodicity', 'due_day', 'is_active']
    list_filter = ['periodicity', 'is_active', 'organization']
    search_fields = ['name', 'category']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['folio', 'organization', 'supplier', 'project', 'total', 'status', 'created_by', 'authorized_by', 'created_at']
    list_filter = ['status', 'includes_vat', 'organization']
    search_fields = ['folio', 'description', 'comments', 'supplier__name']
    readonly_fields = ['subtotal', 'vat', 'total', 'authorized_by', 'authorized_at', 'created_at', 'updated_at']
    ordering = ['-created_at']


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'organization', 'type', 'balance']
    list_filter = ['type', 'organization']
    search_fields = ['code', 'name']
    readonly_fields = ['balance', 'created_at', 'updated_at']
    ordering = ['type', 'code']


class JournalLineInline(admin.TabularInline):
    model = JournalLine
    extra = 0
    fields = ['debit_account', 'credit_account', 'amount', 'description']
    readonly_fields = ['debit_account', 'credit_account', 'amount']
    can_delete = False


@admin.register(JournalEntry)
class JournalEntryAdmin(admin.ModelAdmin):
    list_display = ['date', 'description', 'organization', 'reference', 'is_locked', 'created_by']
    list_filter = ['is_locked', 'organization', 'date']
    search_fields = ['description', 'reference']
    inlines = [JournalLineInline]


@admin.register(FlowRecovery)
class FlowRecoveryAdmin(admin.ModelAdmin):
    list_display = ['client', 'period', 'organization', 'initial_amount', 'actual_recoveries', 'recovered_percentage']
    list_filter = ['organization']
    search_fields = ['client__name', 'period', 'notes']
