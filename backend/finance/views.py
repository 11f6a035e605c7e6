import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count, Sum
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from decimal import Decimal

from backend.core.pagination import paginated_response
from backend.core.permissions import HasFinancialAccess, permission_codes, resource_permission
from backend.core.tenancy import get_request_organization
from backend.core.utils import create_audit_log, date_query_param, json_safe
from backend.parties.models import Client, Supplier
from .filters import (
    AccountReceivableFilter, AccountPayableFilter, InvoiceFilter, QuoteFilter,
    FixedCostFilter, PurchaseOrderFilter, AccountFilter, JournalEntryFilter, FlowRecoveryFilter,
)
from .models import (
    Category, AccountReceivable, AccountPayable, PaymentComplement, Invoice,
    Quote, FixedCost, PurchaseOrder, Account, JournalEntry, FlowRecovery,
)
from .pdf import render_purchase_order_pdf
from .serializers import (
    CategorySerializer, AccountReceivableSerializer, AccountPayableSerializer,
    PaymentComplementSerializer, PaymentRegistrationSerializer, InvoiceSerializer,
    QuoteSerializer, FixedCostSerializer, PurchaseOrderSerializer, AccountSerializer,
    JournalLineSerializer, JournalEntrySerializer, JournalEntryUpdateSerializer, FlowRecoverySerializer,
)
from .accounting import (
    post_journal_entry, delete_journal_entry, account_totals, signed_balance, trial_balance,
    income_statement, balance_sheet, general_ledger, cash_flow,
)
from .services import (
    register_payment, transition_purchase_order, purchase_order_statistics, get_finance_dashboard,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')

FINANCE_PERMISSIONS = [IsAuthenticated, HasFinancialAccess, resource_permission('finance')]
FINANCE_UPDATE_PERMISSIONS = [IsAuthenticated, HasFinancialAccess, permission_codes('finance:update')]
FINANCE_APPROVE_PERMISSIONS = [IsAuthenticated, HasFinancialAccess, permission_codes('finance:approve')]


def _sum(queryset, field):
    return queryset.aggregate(total=Sum(field))['total'] or ZERO


def _context(request, organization, **extra):
    context = {'request': request, 'organization': organization}
    context.update(extra)
    return context


def _audit(request, action, obj, model_name, name, changes=None):
    create_audit_log(request=request, action=action, model_name=model_name,
                     object_id=obj.id if hasattr(obj, 'id') else obj, object_name=name,
                     changes=json_safe(changes) if changes else None)


# Category views
@api_view(['GET', 'POST'])
@permission_classes(FINANCE_PERMISSIONS)
def category_list_create(request):
    """List AP categories or create one"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        categories = Category.objects.filter(organization=organization)
        return Response(CategorySerializer(categories, many=True).data)
    else:
        serializer = CategorySerializer(data=request.data)
        if serializer.is_valid():
            category = serializer.save(organization=organization)
            _audit(request, 'create', category, 'Category', category.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(FINANCE_PERMISSIONS)
def category_detail(request, pk):
    """Retrieve, update or delete an AP category"""
    organization = get_request_organization(request)
    category = get_object_or_404(Category, pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(CategorySerializer(category).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            _audit(request, 'update', category, 'Category', category.name, serializer.validated_data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        category_id, category_name = category.id, category.name
        category.delete()
        _audit(request, 'delete', category_id, 'Category', category_name)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Accounts receivable views
@api_view(['GET', 'POST'])
@permission_classes(FINANCE_PERMISSIONS)
def account_receivable_list_create(request):
    """List accounts receivable with filtering or create one"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = (AccountReceivable.objects.filter(organization=organization)
                    .select_related('client', 'project')
                    .prefetch_related('payment_complements'))
        queryset = AccountReceivableFilter(request.query_params, queryset=queryset).qs
        return paginated_response(request, queryset, AccountReceivableSerializer,
                                  context=_context(request, organization))
    else:
        serializer = AccountReceivableSerializer(data=request.data, context=_context(request, organization))
        if serializer.is_valid():
            ar = serializer.save(organization=organization)
            _audit(request, 'create', ar, 'AccountReceivable', ar.concept, {'amount': ar.amount})
            return Response(AccountReceivableSerializer(ar).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(FINANCE_PERMISSIONS)
def account_receivable_detail(request, pk):
    """Retrieve (with every payment), update or delete an account receivable"""
    organization = get_request_organization(request)
    ar = get_object_or_404(AccountReceivable, pk=pk, organization=organization)

    if request.method == 'GET':
        serializer = AccountReceivableSerializer(ar, context=_context(request, organization, payments_limit=None))
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = AccountReceivableSerializer(
            ar, data=request.data, partial=request.method == 'PATCH',
            context=_context(request, organization, payments_limit=None)
        )
        if serializer.is_valid():
            serializer.save()
            _audit(request, 'update', ar, 'AccountReceivable', ar.concept, serializer.validated_data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        ar_id, concept = ar.id, ar.concept
        ar.delete()
        _audit(request, 'delete', ar_id, 'AccountReceivable', concept)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def account_receivable_statistics(request):
    """Pending and overdue receivable balances"""
    organization = get_request_organization(request)
    queryset = AccountReceivable.objects.filter(organization=organization)
    return Response({
        'total_pending': _sum(queryset.filter(status='PENDING'), 'amount_remaining'),
        'total_overdue': _sum(queryset.filter(status='OVERDUE'), 'amount_remaining'),
    })


# Accounts payable views
@api_view(['GET', 'POST'])
@permission_classes(FINANCE_PERMISSIONS)
def account_payable_list_create(request):
    """List accounts payable with filtering or create one"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = (AccountPayable.objects.filter(organization=organization)
                    .select_related('supplier', 'category')
                    .prefetch_related('payment_complements'))
        queryset = AccountPayableFilter(request.query_params, queryset=queryset).qs
        return paginated_response(request, queryset, AccountPayableSerializer,
                                  context=_context(request, organization))
    else:
        serializer = AccountPayableSerializer(data=request.data, context=_context(request, organization))
        if serializer.is_valid():
            ap = serializer.save(organization=organization)
            _audit(request, 'create', ap, 'AccountPayable', ap.concept, {'amount': ap.amount})
            return Response(AccountPayableSerializer(ap).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(FINANCE_PERMISSIONS)
def account_payable_detail(request, pk):
    """Retrieve (with every payment), update or delete an account payable"""
    organization = get_request_organization(request)
    ap = get_object_or_404(AccountPayable, pk=pk, organization=organization)

    if request.method == 'GET':
        serializer = AccountPayableSerializer(ap, context=_context(request, organization, payments_limit=None))
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = AccountPayableSerializer(
            ap, data=request.data, partial=request.method == 'PATCH',
            context=_context(request, organization, payments_limit=None)
        )
        if serializer.is_valid():
            serializer.save()
            _audit(request, 'update', ap, 'AccountPayable', ap.concept, serializer.validated_data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        ap_id, concept = ap.id, ap.concept
        ap.delete()
        _audit(request, 'delete', ap_id, 'AccountPayable', concept)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def account_payable_statistics(request):
    """Unpaid and paid payable totals"""
    organization = get_request_organization(request)
    queryset = AccountPayable.objects.filter(organization=organization)
    return Response({
        'total_pending': _sum(queryset.filter(paid=False), 'amount'),
        'total_paid': _sum(queryset.filter(paid=True), 'amount'),
    })


# Payment complement views
def _payments(organization):
    return (PaymentComplement.objects.filter(organization=organization)
            .select_related('account_receivable__client', 'account_payable__supplier')
            .order_by('-payment_date', '-created_at'))


@api_view(['GET', 'POST'])
@permission_classes(FINANCE_PERMISSIONS)
def payment_complement_list_create(request):
    """List every payment of the organization or register a new one"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        return paginated_response(request, _payments(organization), PaymentComplementSerializer, default_limit=50)
    else:
        serializer = PaymentRegistrationSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        payment = register_payment(organization, serializer.validated_data, request=request)
        return Response(PaymentComplementSerializer(payment).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def payment_complement_detail(request, pk):
    organization = get_request_organization(request)
    payment = get_object_or_404(_payments(organization), pk=pk)
    return Response(PaymentComplementSerializer(payment).data)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def payment_complements_by_receivable(request, ar_id):
    organization = get_request_organization(request)
    ar = get_object_or_404(AccountReceivable, pk=ar_id, organization=organization)
    payments = _payments(organization).filter(account_receivable=ar)
    return Response(PaymentComplementSerializer(payments, many=True).data)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def payment_complements_by_payable(request, ap_id):
    organization = get_request_organization(request)
    ap = get_object_or_404(AccountPayable, pk=ap_id, organization=organization)
    payments = _payments(organization).filter(account_payable=ap)
    return Response(PaymentComplementSerializer(payments, many=True).data)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def payment_complements_by_client(request, client_id):
    organization = get_request_organization(request)
    client = get_object_or_404(Client, pk=client_id, organization=organization)
    payments = _payments(organization).filter(account_receivable__client=client)
    return Response(PaymentComplementSerializer(payments, many=True).data)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def payment_complements_by_supplier(request, supplier_id):
    organization = get_request_organization(request)
    supplier = get_object_or_404(Supplier, pk=supplier_id, organization=organization)
    payments = _payments(organization).filter(account_payable__supplier=supplier)
    return Response(PaymentComplementSerializer(payments, many=True).data)


# Invoice views
@api_view(['GET', 'POST'])
@permission_classes(FINANCE_PERMISSIONS)
def invoice_list_create(request):
    """List invoices with filtering or create one"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = Invoice.objects.filter(organization=organization).select_related('client')
        queryset = InvoiceFilter(request.query_params, queryset=queryset).qs
        return paginated_response(request, queryset, InvoiceSerializer)
    else:
        serializer = InvoiceSerializer(data=request.data, context=_context(request, organization))
        if serializer.is_valid():
            invoice = serializer.save(organization=organization)
            _audit(request, 'create', invoice, 'Invoice', invoice.number, {'total': invoice.total})
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(FINANCE_PERMISSIONS)
def invoice_detail(request, pk):
    """Retrieve, update or delete an invoice"""
    organization = get_request_organization(request)
    invoice = get_object_or_404(Invoice, pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(InvoiceSerializer(invoice).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = InvoiceSerializer(invoice, data=request.data, partial=request.method == 'PATCH',
                                       context=_context(request, organization))
        if serializer.is_valid():
            serializer.save()
            _audit(request, 'update', invoice, 'Invoice', invoice.number, serializer.validated_data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        invoice_id, number = invoice.id, invoice.number
        invoice.delete()
        _audit(request, 'delete', invoice_id, 'Invoice', number)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def invoice_statistics(request):
    organization = get_request_organization(request)
    queryset = Invoice.objects.filter(organization=organization).exclude(status='CANCELLED')
    return Response({
        'total_invoiced': _sum(queryset, 'total'),
        'total_paid': _sum(queryset.filter(status='PAID'), 'total'),
        'total_overdue': _sum(queryset.filter(status='OVERDUE'), 'total'),
        'count': queryset.count(),
    })


# Quote views
@api_view(['GET', 'POST'])
@permission_classes(FINANCE_PERMISSIONS)
def quote_list_create(request):
    """List quotes with filtering or create one with its line items"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = Quote.objects.filter(organization=organization).select_related('client').prefetch_related('items')
        queryset = QuoteFilter(request.query_params, queryset=queryset).qs
        return paginated_response(request, queryset, QuoteSerializer)
    else:
        serializer = QuoteSerializer(data=request.data, context=_context(request, organization))
        if serializer.is_valid():
            quote = serializer.save(organization=organization)
            _audit(request, 'create', quote, 'Quote', quote.number, {'amount': quote.amount})
            return Response(QuoteSerializer(quote).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(FINANCE_PERMISSIONS)
def quote_detail(request, pk):
    """Retrieve, update or delete a quote"""
    organization = get_request_organization(request)
    quote = get_object_or_404(Quote, pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(QuoteSerializer(quote).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = QuoteSerializer(quote, data=request.data, partial=request.method == 'PATCH',
                                     context=_context(request, organization))
        if serializer.is_valid():
            quote = serializer.save()
            _audit(request, 'update', quote, 'Quote', quote.number, {'amount': quote.amount})
            return Response(QuoteSerializer(quote).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        quote_id, number = quote.id, quote.number
        quote.delete()
        _audit(request, 'delete', quote_id, 'Quote', number)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def quote_statistics(request):
    """Count and amount of quotes per status"""
    organization = get_request_organization(request)
    queryset = Quote.objects.filter(organization=organization)
    stats = {'total': queryset.count(), 'total_amount': _sum(queryset, 'amount')}
    for code, _ in Quote.STATUS_CHOICES:
        by_status = queryset.filter(status=code)
        stats[code.lower()] = by_status.count()
        stats[f'{code.lower()}_amount'] = _sum(by_status, 'amount')
    return Response(stats)


# Fixed cost views
@api_view(['GET', 'POST'])
@permission_classes(FINANCE_PERMISSIONS)
def fixed_cost_list_create(request):
    """List fixed costs with filtering or create one"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = FixedCost.objects.filter(organization=organization)
        queryset = FixedCostFilter(request.query_params, queryset=queryset).qs
        return paginated_response(request, queryset, FixedCostSerializer)
    else:
        serializer = FixedCostSerializer(data=request.data)
        if serializer.is_valid():
            cost = serializer.save(organization=organization)
            _audit(request, 'create', cost, 'FixedCost', cost.name, {'amount': cost.amount})
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(FINANCE_PERMISSIONS)
def fixed_cost_detail(request, pk):
    """Retrieve, update or delete a fixed cost"""
    organization = get_request_organization(request)
    cost = get_object_or_404(FixedCost, pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(FixedCostSerializer(cost).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = FixedCostSerializer(cost, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            _audit(request, 'update', cost, 'FixedCost', cost.name, serializer.validated_data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        cost_id, name = cost.id, cost.name
        cost.delete()
        _audit(request, 'delete', cost_id, 'FixedCost', name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def fixed_cost_statistics(request):
    organization = get_request_organization(request)
    active = FixedCost.objects.filter(organization=organization, is_active=True)
    return Response({
        'total_monthly': _sum(active.filter(periodicity='MONTHLY'), 'amount'),
        'active_count': active.count(),
    })


# Purchase order views
@api_view(['GET', 'POST'])
@permission_classes(FINANCE_PERMISSIONS)
def purchase_order_list_create(request):
    """List purchase orders with filtering or create a draft"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = (PurchaseOrder.objects.filter(organization=organization)
                    .select_related('supplier', 'project', 'created_by', 'authorized_by'))
        queryset = PurchaseOrderFilter(request.query_params, queryset=queryset).qs
        return paginated_response(request, queryset, PurchaseOrderSerializer)
    else:
        serializer = PurchaseOrderSerializer(data=request.data, context=_context(request, organization))
        if serializer.is_valid():
            po = serializer.save(organization=organization, created_by=request.user)
            _audit(request, 'create', po, 'PurchaseOrder', po.folio, {'total': po.total})
            return Response(PurchaseOrderSerializer(po).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(FINANCE_PERMISSIONS)
def purchase_order_detail(request, pk):
    """Retrieve, update or delete a purchase order"""
    organization = get_request_organization(request)
    po = get_object_or_404(PurchaseOrder, pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(PurchaseOrderSerializer(po).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = PurchaseOrderSerializer(po, data=request.data, partial=request.method == 'PATCH',
                                             context=_context(request, organization))
        if serializer.is_valid():
            po = serializer.save()
            _audit(request, 'update', po, 'PurchaseOrder', po.folio, serializer.validated_data)
            return Response(PurchaseOrderSerializer(po).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        po_id, folio = po.id, po.folio
        po.delete()
        _audit(request, 'delete', po_id, 'PurchaseOrder', folio)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST', 'PATCH'])
@permission_classes(FINANCE_UPDATE_PERMISSIONS)
def purchase_order_submit(request, pk):
    """Submit a draft purchase order for approval"""
    organization = get_request_organization(request)
    po = get_object_or_404(PurchaseOrder, pk=pk, organization=organization)
    po = transition_purchase_order(po, 'submit', request=request)
    return Response(PurchaseOrderSerializer(po).data)


@api_view(['POST', 'PATCH'])
@permission_classes(FINANCE_APPROVE_PERMISSIONS)
def purchase_order_approve(request, pk):
    """Approve a pending purchase order"""
    organization = get_request_organization(request)
    po = get_object_or_404(PurchaseOrder, pk=pk, organization=organization)
    po = transition_purchase_order(po, 'approve', request=request)
    return Response(PurchaseOrderSerializer(po).data)


@api_view(['POST', 'PATCH'])
@permission_classes(FINANCE_APPROVE_PERMISSIONS)
def purchase_order_reject(request, pk):
    """Reject a pending purchase order"""
    organization = get_request_organization(request)
    po = get_object_or_404(PurchaseOrder, pk=pk, organization=organization)
    po = transition_purchase_order(po, 'reject', request=request)
    return Response(PurchaseOrderSerializer(po).data)


@api_view(['POST', 'PATCH'])
@permission_classes(FINANCE_UPDATE_PERMISSIONS)
def purchase_order_mark_paid(request, pk):
    """Mark an approved purchase order as paid"""
    organization = get_request_organization(request)
    po = get_object_or_404(PurchaseOrder, pk=pk, organization=organization)
    po = transition_purchase_order(po, 'mark_paid', request=request)
    return Response(PurchaseOrderSerializer(po).data)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def purchase_order_statistics_view(request):
    organization = get_request_organization(request)
    return Response(purchase_order_statistics(organization))


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def purchase_order_pdf(request, pk):
    """Download a purchase order as PDF"""
    organization = get_request_organization(request)
    po = get_object_or_404(
        PurchaseOrder.objects.select_related('supplier', 'project', 'created_by', 'authorized_by'),
        pk=pk, organization=organization
    )
    content = render_purchase_order_pdf(po)
    response = HttpResponse(content, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="orden-compra-{po.folio}.pdf"'
    return response


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def finance_dashboard(request):
    """Headline finance totals of the organization"""
    organization = get_request_organization(request)
    return Response(get_finance_dashboard(organization))


# Chart of accounts views
def _accounts(organization):
    return (Account.objects.filter(organization=organization)
            .annotate(debit_lines_count=Count('debit_lines', distinct=True),
                      credit_lines_count=Count('credit_lines', distinct=True)))


def _duplicate_code(organization, code, exclude_pk=None):
    accounts = Account.objects.filter(organization=organization, code=code)
    if exclude_pk is not None:
        accounts = accounts.exclude(pk=exclude_pk)
    return accounts.exists()


@api_view(['GET', 'POST'])
@permission_classes(FINANCE_PERMISSIONS)
def account_list_create(request):
    """List the chart of accounts or add an account"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        filterset = AccountFilter(request.query_params, queryset=_accounts(organization))
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(AccountSerializer(filterset.qs.order_by('type', 'code'), many=True).data)
    else:
        serializer = AccountSerializer(data=request.data)
        if serializer.is_valid():
            code = serializer.validated_data['code']
            if _duplicate_code(organization, code):
                return Response({'error': f'Account code "{code}" already exists.'},
                                status=status.HTTP_409_CONFLICT)
            account = serializer.save(organization=organization)
            _audit(request, 'create', account, 'Account', str(account))
            return Response(AccountSerializer(account).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(FINANCE_PERMISSIONS)
def account_detail(request, pk):
    """Retrieve an account with its latest movements, update or delete it"""
    organization = get_request_organization(request)
    account = get_object_or_404(_accounts(organization), pk=pk)

    if request.method == 'GET':
        data = AccountSerializer(account).data
        data['recent_debit_lines'] = JournalLineSerializer(
            account.debit_lines.select_related('debit_account', 'credit_account').order_by('-journal_entry__date', '-id')[:10],
            many=True
        ).data
        data['recent_credit_lines'] = JournalLineSerializer(
            account.credit_lines.select_related('debit_account', 'credit_account').order_by('-journal_entry__date', '-id')[:10],
            many=True
        ).data
        return Response(data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = AccountSerializer(account, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            code = serializer.validated_data.get('code')
            if code and _duplicate_code(organization, code, exclude_pk=account.pk):
                return Response({'error': f'Account code "{code}" already exists.'},
                                status=status.HTTP_409_CONFLICT)
            serializer.save()
            _audit(request, 'update', account, 'Account', str(account), serializer.validated_data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if account.debit_lines.exists() or account.credit_lines.exists():
            return Response({'error': 'Accounts with journal lines cannot be deleted.'},
                            status=status.HTTP_409_CONFLICT)
        account_id, name = account.id, str(account)
        account.delete()
        _audit(request, 'delete', account_id, 'Account', name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def account_balance(request, pk):
    """Balance of an account on its natural side, recomputed from the journal"""
    organization = get_request_organization(request)
    account = get_object_or_404(Account, pk=pk, organization=organization)
    debit, credit = account_totals(account)
    return Response({
        'account_id': account.id,
        'code': account.code,
        'name': account.name,
        'type': account.type,
        'debit_total': debit,
        'credit_total': credit,
        'balance': signed_balance(account.type, debit, credit),
    })


# Journal entry views
def _journal_entries(organization):
    return (JournalEntry.objects.filter(organization=organization)
            .select_related('created_by')
            .prefetch_related('lines__debit_account', 'lines__credit_account'))


@api_view(['GET', 'POST'])
@permission_classes(FINANCE_PERMISSIONS)
def journal_entry_list_create(request):
    """List journal entries or post a new one with its lines"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        filterset = JournalEntryFilter(request.query_params, queryset=_journal_entries(organization))
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginated_response(request, filterset.qs.order_by('-date', '-id'), JournalEntrySerializer)
    else:
        serializer = JournalEntrySerializer(data=request.data)
        if serializer.is_valid():
            lines = serializer.validated_data.pop('lines')
            entry = post_journal_entry(organization, serializer.validated_data, lines, user=request.user)
            total = sum((line['amount'] for line in lines), ZERO)
            _audit(request, 'create', entry, 'JournalEntry', entry.description,
                   {'lines': len(lines), 'amount': total})
            return Response(JournalEntrySerializer(_journal_entries(organization).get(pk=entry.pk)).data,
                            status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes(FINANCE_PERMISSIONS)
def journal_entry_detail(request, pk):
    """Retrieve a journal entry, edit its header or delete it. Locked entries are read-only."""
    organization = get_request_organization(request)
    entry = get_object_or_404(_journal_entries(organization), pk=pk)

    if request.method == 'GET':
        return Response(JournalEntrySerializer(entry).data)

    if entry.is_locked:
        return Response({'error': 'Journal entry is locked.'}, status=status.HTTP_409_CONFLICT)

    if request.method == 'PATCH':
        serializer = JournalEntryUpdateSerializer(entry, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            _audit(request, 'update', entry, 'JournalEntry', entry.description, serializer.validated_data)
            return Response(JournalEntrySerializer(_journal_entries(organization).get(pk=entry.pk)).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        entry_id, description = entry.id, entry.description
        delete_journal_entry(entry)
        _audit(request, 'delete', entry_id, 'JournalEntry', description)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST', 'PATCH'])
@permission_classes(FINANCE_UPDATE_PERMISSIONS)
def journal_entry_lock(request, pk):
    """Lock a journal entry against edits and deletion"""
    organization = get_request_organization(request)
    entry = get_object_or_404(_journal_entries(organization), pk=pk)
    if not entry.is_locked:
        entry.is_locked = True
        entry.save(update_fields=['is_locked', 'updated_at'])
        _audit(request, 'status_change', entry, 'JournalEntry', entry.description, {'is_locked': True})
    return Response(JournalEntrySerializer(entry).data)


# Financial statement views
@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def report_trial_balance(request):
    organization = get_request_organization(request)
    return Response(trial_balance(organization, date_query_param(request, 'as_of_date')))


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def report_income_statement(request):
    """Revenue against expenses between two dates (both required)"""
    organization = get_request_organization(request)
    start_date = date_query_param(request, 'start_date')
    end_date = date_query_param(request, 'end_date')
    if start_date is None or end_date is None:
        return Response({'error': 'start_date and end_date are required.'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(income_statement(organization, start_date, end_date))


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def report_balance_sheet(request):
    organization = get_request_organization(request)
    return Response(balance_sheet(organization, date_query_param(request, 'as_of_date')))


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def report_general_ledger(request, account_id):
    organization = get_request_organization(request)
    account = get_object_or_404(Account, pk=account_id, organization=organization)
    return Response(general_ledger(account, date_query_param(request, 'start_date'),
                                   date_query_param(request, 'end_date')))


@api_view(['GET'])
@permission_classes(FINANCE_PERMISSIONS)
def report_cash_flow(request):
    organization = get_request_organization(request)
    return Response(cash_flow(organization, date_query_param(request, 'start_date'),
                              date_query_param(request, 'end_date')))


# Flow recovery views
@api_view(['GET', 'POST'])
@permission_classes(FINANCE_PERMISSIONS)
def flow_recovery_list_create(request):
    """List client flow recoveries or record one"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = FlowRecovery.objects.filter(organization=organization).select_related('client')
        filterset = FlowRecoveryFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginated_response(request, filterset.qs, FlowRecoverySerializer)
    else:
        serializer = FlowRecoverySerializer(data=request.data, context=_context(request, organization))
        if serializer.is_valid():
            recovery = serializer.save(organization=organization)
            _audit(request, 'create', recovery, 'FlowRecovery', str(recovery),
                   {'initial_amount': recovery.initial_amount})
            return Response(FlowRecoverySerializer(recovery).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(FINANCE_PERMISSIONS)
def flow_recovery_detail(request, pk):
    organization = get_request_organization(request)
    recovery = get_object_or_404(FlowRecovery.objects.select_related('client'), pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(FlowRecoverySerializer(recovery).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = FlowRecoverySerializer(recovery, data=request.data, partial=request.method == 'PATCH',
                                            context=_context(request, organization))
        if serializer.is_valid():
            recovery = serializer.save()
            _audit(request, 'update', recovery, 'FlowRecovery', str(recovery), serializer.validated_data)
            return Response(FlowRecoverySerializer(recovery).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        recovery_id, name = recovery.id, str(recovery)
        recovery.delete()
        _audit(request, 'delete', recovery_id, 'FlowRecovery', name)
        return Response(status=status.HTTP_204_NO_CONTENT)
