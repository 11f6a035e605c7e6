from rest_framework import serializers
from decimal import Decimal
from .models import (
    Category, AccountReceivable, AccountPayable, PaymentComplement, Invoice,
    Quote, QuoteItem, FixedCost, PurchaseOrder, Account, JournalEntry, JournalLine, FlowRecovery,
    PAYMENT_METHOD_CHOICES, PAYMENT_EPSILON,
)


class OrganizationScopedSerializerMixin:
    """Reject related rows that belong to another organization"""
    scoped_fields = ()

    def validate(self, attrs):
        attrs = super().validate(attrs)
        organization = self.context.get('organization')
        if organization is not None:
            for name in self.scoped_fields:
                value = attrs.get(name)
                if value is not None and value.organization_id != organization.id:
                    raise serializers.ValidationError({name: 'Does not belong to this organization.'})
        return attrs


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'color', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class PaymentComplementSerializer(serializers.ModelSerializer):
    account_receivable_concept = serializers.CharField(source='account_receivable.concept', read_only=True, allow_null=True)
    account_payable_concept = serializers.CharField(source='account_payable.concept', read_only=True, allow_null=True)
    client_name = serializers.SerializerMethodField()
    supplier_name = serializers.SerializerMethodField()

    class Meta:
        model = PaymentComplement
        fields = ['id', 'account_receivable', 'account_receivable_concept', 'account_payable',
                  'account_payable_concept', 'client_name', 'supplier_name', 'amount', 'payment_date',
                  'payment_method', 'reference', 'notes', 'cfdi_uuid', 'cfdi_url', 'legacy_id',
                  'created_at', 'updated_at']
        read_only_fields = ['amount', 'payment_date', 'payment_method', 'reference', 'notes', 'cfdi_uuid',
                            'cfdi_url', 'legacy_id', 'account_receivable', 'account_payable',
                            'created_at', 'updated_at']

    def get_client_name(self, obj):
        ar = obj.account_receivable
        return ar.client.name if ar and ar.client_id else None

    def get_supplier_name(self, obj):
        ap = obj.account_payable
        return ap.supplier.name if ap and ap.supplier_id else None


class PaymentRegistrationSerializer(serializers.Serializer):
    """Input of a payment registration; the target account is resolved by the service"""
    account_receivable = serializers.IntegerField(required=False, allow_null=True)
    account_payable = serializers.IntegerField(required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    payment_date = serializers.DateField(required=False)
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHOD_CHOICES, required=False)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=200)
    notes = serializers.CharField(required=False, allow_blank=True)
    cfdi_uuid = serializers.CharField(required=False, allow_blank=True, max_length=64)
    cfdi_url = serializers.URLField(required=False, allow_blank=True, max_length=500)


class AccountReceivableSerializer(OrganizationScopedSerializerMixin, serializers.ModelSerializer):
    scoped_fields = ('client', 'project')

    client_name = serializers.CharField(source='client.name', read_only=True, allow_null=True)
    project_name = serializers.CharField(source='project.name', read_only=True, allow_null=True)
    payment_complements = serializers.SerializerMethodField()

    class Meta:
        model = AccountReceivable
        fields = ['id', 'client', 'client_name', 'project', 'project_name', 'concept', 'amount',
                  'amount_paid', 'amount_remaining', 'due_date', 'status', 'notes', 'legacy_id',
                  'payment_complements', 'created_at', 'updated_at']
        read_only_fields = ['amount_paid', 'amount_remaining', 'created_at', 'updated_at']

    def get_payment_complements(self, obj):
        limit = self.context.get('payments_limit', 5)
        payments = obj.payment_complements.all()
        if limit is not None:
            payments = payments[:limit]
        return PaymentComplementSerializer(payments, many=True).data

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Amount must be greater than 0.')
        return value

    def create(self, validated_data):
        validated_data.setdefault('amount_remaining', validated_data['amount'])
        return super().create(validated_data)


class AccountPayableSerializer(OrganizationScopedSerializerMixin, serializers.ModelSerializer):
    scoped_fields = ('supplier', 'category')

    supplier_name = serializers.CharField(source='supplier.name', read_only=True, allow_null=True)
    category_name = serializers.CharField(source='category.name', read_only=True, allow_null=True)
    payment_complements = serializers.SerializerMethodField()

    class Meta:
        model = AccountPayable
        fields = ['id', 'supplier', 'supplier_name', 'category', 'category_name', 'concept', 'amount',
                  'amount_paid', 'amount_remaining', 'due_date', 'status', 'paid', 'payment_date',
                  'payment_method', 'payment_reference', 'invoice_url', 'receipt_url', 'authorized',
                  'notes', 'payment_complements', 'created_at', 'updated_at']
        read_only_fields = ['amount_paid', 'amount_remaining', 'created_at', 'updated_at']

    def get_payment_complements(self, obj):
        limit = self.context.get('payments_limit', 5)
        payments = obj.payment_complements.all()
        if limit is not None:
            payments = payments[:limit]
        return PaymentComplementSerializer(payments, many=True).data

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Amount must be greater than 0.')
        return value

    def create(self, validated_data):
        validated_data.setdefault('amount_remaining', validated_data['amount'])
        return super().create(validated_data)


class InvoiceSerializer(OrganizationScopedSerializerMixin, serializers.ModelSerializer):
    scoped_fields = ('client',)

    client_name = serializers.CharField(source='client.name', read_only=True, allow_null=True)

    class Meta:
        model = Invoice
        fields = ['id', 'number', 'client', 'client_name', 'amount', 'subtotal', 'tax', 'total',
                  'currency', 'status', 'issue_date', 'due_date', 'cfdi_uuid', 'cfdi_url', 'pdf_url',
                  'payment_form', 'payment_method', 'cfdi_use', 'notes', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class QuoteItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuoteItem
        fields = ['id', 'description', 'quantity', 'unit_price', 'line_total']
        read_only_fields = ['line_total']


class QuoteSerializer(OrganizationScopedSerializerMixin, serializers.ModelSerializer):
    scoped_fields = ('client',)

    client_name = serializers.CharField(source='client.name', read_only=True, allow_null=True)
    items = QuoteItemSerializer(many=True, required=False)

    class Meta:
        model = Quote
        fields = ['id', 'number', 'client', 'client_name', 'date', 'valid_until', 'status', 'amount',
                  'notes', 'items', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def _save_items(self, quote, items_data):
        quote.items.all().delete()
        for item_data in items_data:
            QuoteItem.objects.create(quote=quote, **item_data)
        quote.amount = quote.get_items_total()
        quote.save(update_fields=['amount', 'updated_at'])

    def create(self, validated_data):
        items_data = validated_data.pop('items', None)
        quote = Quote.objects.create(**validated_data)
        if items_data:
            self._save_items(quote, items_data)
        return quote

    def update(self, instance, validated_data):
        items_data = validated_data.pop('items', None)
        instance = super().update(instance, validated_data)
        if items_data is not None:
            self._save_items(instance, items_data)
        return instance


class FixedCostSerializer(serializers.ModelSerializer):
    class Meta:
        model = FixedCost
        fields = ['id', 'name', 'category', 'amount', 'periodicity', 'due_day', 'is_active',
                  'last_payment', 'next_payment', 'notes', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_due_day(self, value):
        if value is not None and not 1 <= value <= 31:
            raise serializers.ValidationError('Due day must be between 1 and 31.')
        return value


class PurchaseOrderSerializer(OrganizationScopedSerializerMixin, serializers.ModelSerializer):
    scoped_fields = ('supplier', 'project')

    supplier_name = serializers.CharField(source='supplier.name', read_only=True, allow_null=True)
    project_name = serializers.CharField(source='project.name', read_only=True, allow_null=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, allow_null=True)
    authorized_by_username = serializers.CharField(source='authorized_by.username', read_only=True, allow_null=True)
    status_label = serializers.CharField(read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = ['id', 'folio', 'description', 'amount', 'includes_vat', 'subtotal', 'vat', 'total',
                  'comments', 'supplier', 'supplier_name', 'project', 'project_name',
                  'min_payment_date', 'max_payment_date', 'status', 'status_label',
                  'created_by', 'created_by_username', 'authorized_by', 'authorized_by_username',
                  'authorized_at', 'created_at', 'updated_at']
        read_only_fields = ['subtotal', 'vat', 'total', 'status', 'created_by', 'authorized_by',
                            'authorized_at', 'created_at', 'updated_at']

    def validate_amount(self, value):
        if value <= Decimal('0'):
            raise serializers.ValidationError('Amount must be greater than 0.')
        return value

    def validate(self, attrs):
        attrs = super().validate(attrs)
        min_date = attrs.get('min_payment_date', getattr(self.instance, 'min_payment_date', None))
        max_date = attrs.get('max_payment_date', getattr(self.instance, 'max_payment_date', None))
        if min_date and max_date and max_date < min_date:
            raise serializers.ValidationError({'max_payment_date': 'Maximum payment date cannot be before the minimum payment date.'})
        return attrs


class AccountSerializer(serializers.ModelSerializer):
    debit_lines_count = serializers.IntegerField(read_only=True)
    credit_lines_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Account
        fields = ['id', 'code', 'name', 'type', 'description', 'balance',
                  'debit_lines_count', 'credit_lines_count', 'created_at', 'updated_at']
        read_only_fields = ['balance', 'created_at', 'updated_at']


class JournalLineSerializer(serializers.ModelSerializer):
    debit_account = serializers.PrimaryKeyRelatedField(queryset=Account.objects.all())
    credit_account = serializers.PrimaryKeyRelatedField(queryset=Account.objects.all())
    debit_account_name = serializers.CharField(source='debit_account.name', read_only=True)
    credit_account_name = serializers.CharField(source='credit_account.name', read_only=True)
    amount = serializers.DecimalField(max_digits=16, decimal_places=2, min_value=PAYMENT_EPSILON)

    class Meta:
        model = JournalLine
        fields = ['id', 'debit_account', 'debit_account_name', 'credit_account', 'credit_account_name',
                  'amount', 'description']

    def validate(self, attrs):
        if attrs['debit_account'] == attrs['credit_account']:
            raise serializers.ValidationError({'credit_account': 'Debit and credit accounts must differ.'})
        return attrs


class JournalEntrySerializer(serializers.ModelSerializer):
    lines = JournalLineSerializer(many=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, allow_null=True)

    class Meta:
        model = JournalEntry
        fields = ['id', 'description', 'date', 'reference', 'is_locked', 'lines',
                  'created_by', 'created_by_username', 'created_at', 'updated_at']
        read_only_fields = ['is_locked', 'created_by', 'created_at', 'updated_at']


class JournalEntryUpdateSerializer(serializers.ModelSerializer):
    """Header fields only; lines are fixed once posted"""
    class Meta:
        model = JournalEntry
        fields = ['description', 'date', 'reference']


class FlowRecoverySerializer(OrganizationScopedSerializerMixin, serializers.ModelSerializer):
    scoped_fields = ('client',)

    client_name = serializers.CharField(source='client.name', read_only=True)

    class Meta:
        model = FlowRecovery
        fields = ['id', 'client', 'client_name', 'period', 'initial_amount', 'actual_recoveries',
                  'recovered_percentage', 'notes', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {'recovered_percentage': {'required': False}}

    def validate_initial_amount(self, value):
        if value < 0:
            raise serializers.ValidationError('Initial amount cannot be negative.')
        return value

    def validate_actual_recoveries(self, value):
        if value < 0:
            raise serializers.ValidationError('Recoveries cannot be negative.')
        return value

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if 'recovered_percentage' not in attrs and ('initial_amount' in attrs or 'actual_recoveries' in attrs):
            initial = attrs.get('initial_amount', getattr(self.instance, 'initial_amount', None))
            recovered = attrs.get('actual_recoveries', getattr(self.instance, 'actual_recoveries', None)) or Decimal('0')
            if initial:
                attrs['recovered_percentage'] = (recovered * 100 / initial).quantize(Decimal('0.01'))
        return attrs
