import django_filters
from django.db.models import Q
from .models import (
    AccountReceivable, AccountPayable, Invoice, Quote, FixedCost, PurchaseOrder, Account, JournalEntry,
    FlowRecovery,
)


class AccountReceivableFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = AccountReceivable
        fields = ['status', 'client', 'project']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(concept__icontains=value) | Q(notes__icontains=value))


class AccountPayableFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = AccountPayable
        fields = ['status', 'supplier', 'category', 'paid']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(concept__icontains=value) |
            Q(notes__icontains=value) |
            Q(payment_reference__icontains=value)
        )


class InvoiceFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    date_from = django_filters.DateFilter(field_name='issue_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='issue_date', lookup_expr='lte')

    class Meta:
        model = Invoice
        fields = ['status', 'client']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(number__icontains=value) | Q(cfdi_uuid__icontains=value))


class QuoteFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Quote
        fields = ['status', 'client']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(number__icontains=value) | Q(notes__icontains=value))


class FixedCostFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    category = django_filters.CharFilter(field_name='category', lookup_expr='iexact')

    class Meta:
        model = FixedCost
        fields = ['category', 'is_active', 'periodicity']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(name__icontains=value) | Q(notes__icontains=value))


class PurchaseOrderFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = PurchaseOrder
        fields = ['status', 'supplier', 'project']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(folio__icontains=value) |
            Q(description__icontains=value) |
            Q(comments__icontains=value)
        )


class AccountFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Account
        fields = ['type']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(code__icontains=value) | Q(name__icontains=value))


class JournalEntryFilter(django_filters.FilterSet):
    start_date = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    end_date = django_filters.DateFilter(field_name='date', lookup_expr='lte')

    class Meta:
        model = JournalEntry
        fields = ['is_locked']


class FlowRecoveryFilter(django_filters.FilterSet):
    period = django_filters.CharFilter(lookup_expr='icontains')

    class Meta:
        model = FlowRecovery
        fields = ['client']
