"""
Test suite for the parties module
Tests: client and supplier CRUD, search, statistics, tenant isolation
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.parties.models import Client, Supplier


def D(value):
    return Decimal(str(value))


class ClientAPITests(TestCase):
    """Test client endpoints"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.org, role='CEO')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/clients/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_client(self):
        response = self.client.post('/api/v1/clients/', {
            'name': 'Constructora Norte',
            'tax_id': 'CNO010101AAA',
            'email': 'contacto@norte.mx',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        client = Client.objects.get(pk=response.data['id'])
        self.assertEqual(client.organization, self.org)
        self.assertTrue(client.is_active)
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Client', object_id=str(client.id)).exists())

    def test_create_requires_name(self):
        response = self.client.post('/api/v1/clients/', {'email': 'x@y.mx'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)

    def test_list_is_scoped_and_paginated(self):
        TestDataFactory.create_client(self.org, name='Mine')
        other = TestDataFactory.create_organization()
        TestDataFactory.create_client(other, name='Theirs')

        response = self.client.get('/api/v1/clients/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['page_size'], 20)
        self.assertEqual(response.data['results'][0]['name'], 'Mine')

    def test_search_and_active_filter(self):
        TestDataFactory.create_client(self.org, name='Alpha', contact='Maria Lopez')
        TestDataFactory.create_client(self.org, name='Beta', tax_id='BET990101XYZ')
        TestDataFactory.create_client(self.org, name='Gamma', is_active=False)

        response = self.client.get('/api/v1/clients/', {'search': 'lopez'})
        self.assertEqual([c['name'] for c in response.data['results']], ['Alpha'])

        response = self.client.get('/api/v1/clients/', {'search': 'BET99'})
        self.assertEqual([c['name'] for c in response.data['results']], ['Beta'])

        response = self.client.get('/api/v1/clients/', {'is_active': 'false'})
        self.assertEqual([c['name'] for c in response.data['results']], ['Gamma'])

    def test_detail_includes_counts(self):
        client = TestDataFactory.create_client(self.org)
        TestDataFactory.create_project(self.org, owner=self.user, client=client)
        TestDataFactory.create_invoice(self.org, client=client)
        TestDataFactory.create_invoice(self.org, client=client)

        response = self.client.get(f'/api/v1/clients/{client.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['projects_count'], 1)
        self.assertEqual(response.data['invoices_count'], 2)
        self.assertEqual(len(response.data['recent_invoices']), 2)
        self.assertEqual(len(response.data['recent_projects']), 1)

    def test_other_organization_client_not_found(self):
        other = TestDataFactory.create_organization()
        client = TestDataFactory.create_client(other)
        response = self.client.get(f'/api/v1/clients/{client.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_and_delete(self):
        client = TestDataFactory.create_client(self.org, name='Old')
        response = self.client.patch(f'/api/v1/clients/{client.id}/', {'name': 'New'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        client.refresh_from_db()
        self.assertEqual(client.name, 'New')

        response = self.client.delete(f'/api/v1/clients/{client.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Client.objects.filter(pk=client.id).exists())
        self.assertTrue(AuditLog.objects.filter(action='delete', model_name='Client').exists())

    def test_statistics(self):
        client = TestDataFactory.create_client(self.org)
        TestDataFactory.create_invoice(self.org, client=client, total=D('1160.00'), status='PAID')
        TestDataFactory.create_invoice(self.org, client=client, total=D('500.00'), status='SENT')

        response = self.client.get(f'/api/v1/clients/{client.id}/statistics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(D(response.data['total_invoiced']), D('1660.00'))
        self.assertEqual(D(response.data['total_paid']), D('1160.00'))
        self.assertEqual(D(response.data['outstanding_balance']), D('500.00'))

    def test_statistics_without_invoices(self):
        client = TestDataFactory.create_client(self.org)
        response = self.client.get(f'/api/v1/clients/{client.id}/statistics/')
        self.assertEqual(D(response.data['total_invoiced']), D('0'))
        self.assertEqual(D(response.data['outstanding_balance']), D('0'))


class SupplierAPITests(TestCase):
    """Test supplier endpoints"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.org, role='CFO')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_supplier(self):
        response = self.client.post('/api/v1/suppliers/', {
            'name': 'Aceros del Bajio',
            'bank_details': 'BBVA 012345678901234567',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        supplier = Supplier.objects.get(pk=response.data['id'])
        self.assertEqual(supplier.organization, self.org)
        self.assertEqual(supplier.bank_details, 'BBVA 012345678901234567')

    def test_invalid_email(self):
        response = self.client.post('/api/v1/suppliers/', {'name': 'X', 'email': 'not-an-email'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_search(self):
        TestDataFactory.create_supplier(self.org, name='Cementos', email='ventas@cementos.mx')
        TestDataFactory.create_supplier(self.org, name='Pinturas')
        response = self.client.get('/api/v1/suppliers/', {'search': 'ventas@'})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['name'], 'Cementos')

    def test_update_other_organization_supplier(self):
        other = TestDataFactory.create_organization()
        supplier = TestDataFactory.create_supplier(other)
        response = self.client.put(f'/api/v1/suppliers/{supplier.id}/', {'name': 'Hijack'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_full_update(self):
        supplier = TestDataFactory.create_supplier(self.org, name='Before', contact='Ana')
        response = self.client.put(f'/api/v1/suppliers/{supplier.id}/', {'name': 'After'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        supplier.refresh_from_db()
        self.assertEqual(supplier.name, 'After')

    def test_statistics(self):
        supplier = TestDataFactory.create_supplier(self.org)
        TestDataFactory.create_account_payable(self.org, supplier=supplier, amount=D('1000.00'),
                                               amount_paid=D('400.00'), amount_remaining=D('600.00'),
                                               status='PARTIAL')
        TestDataFactory.create_account_payable(self.org, supplier=supplier, amount=D('250.00'))

        response = self.client.get(f'/api/v1/suppliers/{supplier.id}/statistics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(D(response.data['total_payable']), D('1250.00'))
        self.assertEqual(D(response.data['total_paid']), D('400.00'))
        self.assertEqual(D(response.data['outstanding_balance']), D('850.00'))
        self.assertEqual(response.data['accounts_count'], 2)

    def test_contador_reads_but_cannot_write(self):
        contador = TestDataFactory.create_user(organization=self.org, role='Contador')
        self.client.authenticate_user(contador)
        TestDataFactory.create_supplier(self.org, name='Readable')
        response = self.client.get('/api/v1/suppliers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/suppliers/', {'name': 'Blocked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
