from django.db import models
from decimal import Decimal
from backend.core.models import Organization, User
from backend.parties.models import Client, Supplier
from backend.projects.models import Project

# Tolerance for comparing money amounts
PAYMENT_EPSILON = Decimal('0.01')

VAT_RATE = Decimal('0.16')

PAYMENT_STATUS_CHOICES = [
    ('PENDING', 'Pending'),
    ('PARTIAL', 'Partial'),
    ('PAID', 'Paid'),
    ('OVERDUE', 'Overdue'),
    ('CANCELLED', 'Cancelled'),
]

PAYMENT_METHOD_CHOICES = [
    ('TRANSFER', 'Transfer'),
    ('CASH', 'Cash'),
    ('CHECK', 'Check'),
    ('CARD', 'Card'),
    ('OTHER', 'Other'),
]


def derive_payment_status(paid, remaining):
    """PAID when nothing is left, PARTIAL when something was paid, else PENDING"""
    if remaining <= PAYMENT_EPSILON:
        return 'PAID'
    if paid > PAYMENT_EPSILON:
        return 'PARTIAL'
    return 'PENDING'


class Category(models.Model):
    """Accounts payable category"""
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='ap_categories')
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    color = models.CharField(max_length=20, blank=True, help_text="Hex color used by the UI")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'ap_categories'
        ordering = ['name']
        verbose_name_plural = 'categories'


class AccountReceivable(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='accounts_receivable')
    client = models.ForeignKey(Client, on_delete=models.SET_NULL, null=True, blank=True, related_name='accounts_receivable')
    project = models.ForeignKey(Project, on_delete=models.SET_NULL, null=True, blank=True, related_name='accounts_receivable')
    concept = models.CharField(max_length=500)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    amount_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    amount_remaining = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='PENDING')
    notes = models.TextField(blank=True)
    legacy_id = models.IntegerField(null=True, blank=True, db_index=True, help_text="Row id in the legacy MySQL system")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.concept

    class Meta:
        db_table = 'accounts_receivable'
        ordering = ['-created_at']
        verbose_name = 'account receivable'
        verbose_name_plural = 'accounts receivable'


class AccountPayable(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='accounts_payable')
    supplier = models.ForeignKey(Supplier, on_delete=models.SET_NULL, null=True, blank=True, related_name='accounts_payable')
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='accounts_payable')
    concept = models.CharField(max_length=500)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    amount_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    amount_remaining = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='PENDING')
    paid = models.BooleanField(default=False)
    payment_date = models.DateField(null=True, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, blank=True)
    payment_reference = models.CharField(max_length=200, blank=True)
    invoice_url = models.URLField(max_length=500, blank=True)
    receipt_url = models.URLField(max_length=500, blank=True)
    authorized = models.BooleanField(default=False)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.concept

    class Meta:
        db_table = 'accounts_payable'
        ordering = ['-created_at']
        verbose_name = 'account payable'
        verbose_name_plural = 'accounts payable'


class PaymentComplement(models.Model):
    """A payment applied to exactly one receivable or one payable"""
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='payment_complements')
    account_receivable = models.ForeignKey(AccountReceivable, on_delete=models.CASCADE, null=True, blank=True, related_name='payment_complements')
    account_payable = models.ForeignKey(AccountPayable, on_delete=models.CASCADE, null=True, blank=True, related_name='payment_complements')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    payment_date = models.DateField()
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='TRANSFER')
    reference = models.CharField(max_length=200, blank=True)
    notes = models.TextField(blank=True)
    cfdi_uuid = models.CharField(max_length=64, blank=True)
    cfdi_url = models.URLField(max_length=500, blank=True)
    legacy_id = models.IntegerField(null=True, blank=True, unique=True, help_text="Row id in the legacy complementos_pago table")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Payment {self.amount} on {self.payment_date}"

    class Meta:
        db_table = 'payment_complements'
        ordering = ['-payment_date', '-created_at']
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(account_receivable__isnull=False, account_payable__isnull=True) |
                    models.Q(account_receivable__isnull=True, account_payable__isnull=False)
                ),
                name='payment_complement_single_account',
            ),
        ]


class Invoice(models.Model):
    STATUS_CHOICES = [
        ('DRAFT', 'Draft'),
        ('SENT', 'Sent'),
        ('PAID', 'Paid'),
        ('OVERDUE', 'Overdue'),
        ('CANCELLED', 'Cancelled'),
    ]

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='invoices')
    number = models.CharField(max_length=100)
    client = models.ForeignKey(Client, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    currency = models.CharField(max_length=3, default='MXN')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='DRAFT')
    issue_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)
    cfdi_uuid = models.CharField(max_length=64, blank=True)
    cfdi_url = models.URLField(max_length=500, blank=True)
    pdf_url = models.URLField(max_length=500, blank=True)
    payment_form = models.CharField(max_length=10, blank=True, help_text="SAT forma de pago")
    payment_method = models.CharField(max_length=10, blank=True, help_text="SAT metodo de pago (PUE/PPD)")
    cfdi_use = models.CharField(max_length=10, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.number

    class Meta:
        db_table = 'invoices'
        ordering = ['-issue_date', '-created_at']


class Quote(models.Model):
    STATUS_CHOICES = [
        ('DRAFT', 'Draft'),
        ('SENT', 'Sent'),
        ('ACCEPTED', 'Accepted'),
        ('REJECTED', 'Rejected'),
        ('EXPIRED', 'Expired'),
    ]

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='quotes')
    number = models.CharField(max_length=100)
    client = models.ForeignKey(Client, on_delete=models.SET_NULL, null=True, blank=True, related_name='quotes')
    date = models.DateField()
    valid_until = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='DRAFT')
    amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.number

    def get_items_total(self):
        return sum((item.line_total for item in self.items.all()), Decimal('0.00'))

    class Meta:
        db_table = 'quotes'
        ordering = ['-date', '-created_at']


class QuoteItem(models.Model):
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='items')
    description = models.CharField(max_length=500)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('1.00'))
    unit_price = models.DecimalField(max_digits=14, decimal_places=2)
    line_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))

    def __str__(self):
        return self.description

    def save(self, *args, **kwargs):
        self.line_total = (self.quantity * self.unit_price).quantize(Decimal('0.01'))
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'quote_items'
        ordering = ['id']


class FixedCost(models.Model):
    PERIODICITY_CHOICES = [
        ('MONTHLY', 'Monthly'),
        ('BIMONTHLY', 'Bimonthly'),
        ('QUARTERLY', 'Quarterly'),
        ('SEMIANNUAL', 'Semiannual'),
        ('ANNUAL', 'Annual'),
    ]

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='fixed_costs')
    name = models.CharField(max_length=255)
    category = models.CharField(max_length=100, blank=True)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    periodicity = models.CharField(max_length=20, choices=PERIODICITY_CHOICES, default='MONTHLY')
    due_day = models.PositiveSmallIntegerField(null=True, blank=True, help_text="Day of month (1-31)")
    is_active = models.BooleanField(default=True)
    last_payment = models.DateField(null=True, blank=True)
    next_payment = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'fixed_costs'
        ordering = ['name']


class PurchaseOrder(models.Model):
    STATUS_CHOICES = [
        ('DRAFT', 'Draft'),
        ('PENDING', 'Pending'),
        ('APPROVED', 'Approved'),
        ('REJECTED', 'Rejected'),
        ('PAID', 'Paid'),
    ]

    STATUS_LABELS = {
        'DRAFT': 'Borrador',
        'PENDING': 'Pendiente de Aprobación',
        'APPROVED': 'Aprobada',
        'REJECTED': 'Rechazada',
        'PAID': 'Pagada',
    }

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='purchase_orders')
    folio = models.CharField(max_length=100, unique=True)
    description = models.TextField()
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    includes_vat = models.BooleanField(default=False)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    vat = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    comments = models.TextField(blank=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_orders')
    project = models.ForeignKey(Project, on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_orders')
    min_payment_date = models.DateField(null=True, blank=True)
    max_payment_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='DRAFT')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_purchase_orders')
    authorized_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='authorized_purchase_orders')
    authorized_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.folio

    @property
    def status_label(self):
        return self.STATUS_LABELS.get(self.status, self.status)

    def calculate_amounts(self):
        """Split ``amount`` into subtotal, VAT and total at the 16% rate"""
        amount = Decimal(self.amount)
        if self.includes_vat:
            total = amount
            subtotal = (total / (Decimal('1') + VAT_RATE)).quantize(Decimal('0.01'))
            vat = total - subtotal
        else:
            subtotal = amount
            vat = Decimal('0.00')
            total = subtotal
        self.subtotal = subtotal
        self.vat = vat
        self.total = total

    def save(self, *args, **kwargs):
        self.calculate_amounts()
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'purchase_orders'
        ordering = ['-created_at']


class Account(models.Model):
    """Chart-of-accounts entry. ``balance`` is debits minus credits."""
    TYPE_CHOICES = [
        ('ASSET', 'Asset'),
        ('LIABILITY', 'Liability'),
        ('EQUITY', 'Equity'),
        ('REVENUE', 'Revenue'),
        ('EXPENSE', 'Expense'),
    ]
    # Types whose natural balance is on the debit side
    DEBIT_NORMAL_TYPES = ('ASSET', 'EXPENSE')

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='accounts')
    code = models.CharField(max_length=50)
    name = models.CharField(max_length=200)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    description = models.TextField(blank=True)
    balance = models.DecimalField(max_digits=16, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def is_debit_normal(self):
        return self.type in self.DEBIT_NORMAL_TYPES

    class Meta:
        db_table = 'accounts'
        ordering = ['type', 'code']
        constraints = [
            models.UniqueConstraint(fields=['organization', 'code'], name='unique_account_code_per_organization'),
        ]


class JournalEntry(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='journal_entries')
    description = models.CharField(max_length=500)
    date = models.DateField()
    reference = models.CharField(max_length=200, blank=True)
    is_locked = models.BooleanField(default=False)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='journal_entries')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.date} {self.description}"

    class Meta:
        db_table = 'journal_entries'
        ordering = ['-date', '-id']
        verbose_name_plural = 'journal entries'


class JournalLine(models.Model):
    """One double-entry movement: ``amount`` debited to one account and credited to another"""
    journal_entry = models.ForeignKey(JournalEntry, on_delete=models.CASCADE, related_name='lines')
    debit_account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name='debit_lines')
    credit_account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name='credit_lines')
    amount = models.DecimalField(max_digits=16, decimal_places=2)
    description = models.CharField(max_length=500, blank=True)

    def __str__(self):
        return f"{self.debit_account.code} / {self.credit_account.code}: {self.amount}"

    class Meta:
        db_table = 'journal_lines'
        ordering = ['id']


class FlowRecovery(models.Model):
    """Cash recovered from a client over a period against the amount initially owed"""
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='flow_recoveries')
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='flow_recoveries')
    period = models.CharField(max_length=50, help_text="Free-form period label, e.g. 2025-03 or Q1 2025")
    initial_amount = models.DecimalField(max_digits=14, decimal_places=2)
    actual_recoveries = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    recovered_percentage = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.client} {self.period}"

    class Meta:
        db_table = 'flow_recoveries'
        ordering = ['-created_at']
        verbose_name_plural = 'flow recoveries'
