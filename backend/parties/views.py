from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q, Sum, Count
from django.shortcuts import get_object_or_404
from decimal import Decimal

from backend.core.pagination import paginated_response
from backend.core.permissions import resource_permission
from backend.core.tenancy import get_request_organization
from backend.core.utils import create_audit_log
from .models import Client, Supplier
from .serializers import ClientSerializer, ClientDetailSerializer, SupplierSerializer

CLIENT_PERMISSIONS = [IsAuthenticated, resource_permission('clients')]
SUPPLIER_PERMISSIONS = [IsAuthenticated, resource_permission('suppliers')]

ZERO = Decimal('0.00')


def _filter_parties(request, queryset):
    """Apply the shared ``search`` and ``is_active`` query params"""
    search = request.query_params.get('search', None)
    if search:
        queryset = queryset.filter(
            Q(name__icontains=search) |
            Q(tax_id__icontains=search) |
            Q(email__icontains=search) |
            Q(contact__icontains=search)
        )
    is_active = request.query_params.get('is_active', None)
    if is_active is not None:
        queryset = queryset.filter(is_active=is_active.lower() == 'true')
    return queryset


def _clients(organization):
    return Client.objects.filter(organization=organization).annotate(
        projects_count=Count('projects', filter=Q(projects__deleted_at__isnull=True), distinct=True),
        invoices_count=Count('invoices', distinct=True),
    )


# Client views
@api_view(['GET', 'POST'])
@permission_classes(CLIENT_PERMISSIONS)
def client_list_create(request):
    """List clients of the organization or create a new client"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = _filter_parties(request, _clients(organization)).order_by('-created_at')
        return paginated_response(request, queryset, ClientSerializer)
    else:
        serializer = ClientSerializer(data=request.data)
        if serializer.is_valid():
            client = serializer.save(organization=organization)
            create_audit_log(request=request, action='create', model_name='Client',
                             object_id=client.id, object_name=client.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(CLIENT_PERMISSIONS)
def client_detail(request, pk):
    """Retrieve, update or delete a client"""
    organization = get_request_organization(request)
    client = get_object_or_404(_clients(organization), pk=pk)

    if request.method == 'GET':
        return Response(ClientDetailSerializer(client).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ClientSerializer(client, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Client',
                             object_id=client.id, object_name=client.name,
                             changes={k: str(v) for k, v in request.data.items()})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request=request, action='delete', model_name='Client',
                         object_id=client.id, object_name=client.name)
        client.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes(CLIENT_PERMISSIONS)
def client_statistics(request, pk):
    """Invoiced, paid and outstanding totals from the client's invoices"""
    organization = get_request_organization(request)
    client = get_object_or_404(Client, pk=pk, organization=organization)
    invoices = client.invoices.filter(organization=organization)
    total_invoiced = invoices.aggregate(total=Sum('total'))['total'] or ZERO
    total_paid = invoices.filter(status='PAID').aggregate(total=Sum('total'))['total'] or ZERO
    return Response({
        'total_invoiced': total_invoiced,
        'total_paid': total_paid,
        'outstanding_balance': total_invoiced - total_paid,
    })


# Supplier views
@api_view(['GET', 'POST'])
@permission_classes(SUPPLIER_PERMISSIONS)
def supplier_list_create(request):
    """List suppliers of the organization or create a new supplier"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = _filter_parties(request, Supplier.objects.filter(organization=organization)).order_by('name')
        return paginated_response(request, queryset, SupplierSerializer)
    else:
        serializer = SupplierSerializer(data=request.data)
        if serializer.is_valid():
            supplier = serializer.save(organization=organization)
            create_audit_log(request=request, action='create', model_name='Supplier',
                             object_id=supplier.id, object_name=supplier.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(SUPPLIER_PERMISSIONS)
def supplier_detail(request, pk):
    """Retrieve, update or delete a supplier"""
    organization = get_request_organization(request)
    supplier = get_object_or_404(Supplier, pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(SupplierSerializer(supplier).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SupplierSerializer(supplier, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Supplier',
                             object_id=supplier.id, object_name=supplier.name,
                             changes={k: str(v) for k, v in request.data.items()})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request=request, action='delete', model_name='Supplier',
                         object_id=supplier.id, object_name=supplier.name)
        supplier.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes(SUPPLIER_PERMISSIONS)
def supplier_statistics(request, pk):
    """Payable, paid and outstanding totals from the supplier's accounts payable"""
    organization = get_request_organization(request)
    supplier = get_object_or_404(Supplier, pk=pk, organization=organization)
    totals = supplier.accounts_payable.filter(organization=organization).aggregate(
        payable=Sum('amount'), paid=Sum('amount_paid')
    )
    total_payable = totals['payable'] or ZERO
    total_paid = totals['paid'] or ZERO
    return Response({
        'total_payable': total_payable,
        'total_paid': total_paid,
        'outstanding_balance': total_payable - total_paid,
        'accounts_count': supplier.accounts_payable.count(),
    })
