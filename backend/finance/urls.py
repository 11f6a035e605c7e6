from django.urls import path
from . import views

urlpatterns = [
    # Category endpoints
    path('categories/', views.category_list_create, name='category-list-create'),
    path('categories/<int:pk>/', views.category_detail, name='category-detail'),

    # Accounts receivable endpoints
    path('accounts-receivable/', views.account_receivable_list_create, name='ar-list-create'),
    path('accounts-receivable/statistics/', views.account_receivable_statistics, name='ar-statistics'),
    path('accounts-receivable/<int:pk>/', views.account_receivable_detail, name='ar-detail'),

    # Accounts payable endpoints
    path('accounts-payable/', views.account_payable_list_create, name='ap-list-create'),
    path('accounts-payable/statistics/', views.account_payable_statistics, name='ap-statistics'),
    path('accounts-payable/<int:pk>/', views.account_payable_detail, name='ap-detail'),

    # Payment complement endpoints
    path('payment-complements/', views.payment_complement_list_create, name='payment-complement-list-create'),
    path('payment-complements/<int:pk>/', views.payment_complement_detail, name='payment-complement-detail'),
    path('payment-complements/account-receivable/<int:ar_id>/', views.payment_complements_by_receivable, name='payment-complements-by-ar'),
    path('payment-complements/account-payable/<int:ap_id>/', views.payment_complements_by_payable, name='payment-complements-by-ap'),
    path('payment-complements/client/<int:client_id>/', views.payment_complements_by_client, name='payment-complements-by-client'),
    path('payment-complements/supplier/<int:supplier_id>/', views.payment_complements_by_supplier, name='payment-complements-by-supplier'),

    # Invoice endpoints
    path('invoices/', views.invoice_list_create, name='invoice-list-create'),
    path('invoices/statistics/', views.invoice_statistics, name='invoice-statistics'),
    path('invoices/<int:pk>/', views.invoice_detail, name='invoice-detail'),

    # Quote endpoints
    path('quotes/', views.quote_list_create, name='quote-list-create'),
    path('quotes/statistics/', views.quote_statistics, name='quote-statistics'),
    path('quotes/<int:pk>/', views.quote_detail, name='quote-detail'),

    # Fixed cost endpoints
    path('fixed-costs/', views.fixed_cost_list_create, name='fixed-cost-list-create'),
    path('fixed-costs/statistics/', views.fixed_cost_statistics, name='fixed-cost-statistics'),
    path('fixed-costs/<int:pk>/', views.fixed_cost_detail, name='fixed-cost-detail'),

    # Purchase order endpoints
    path('purchase-orders/', views.purchase_order_list_create, name='purchase-order-list-create'),
    path('purchase-orders/statistics/', views.purchase_order_statistics_view, name='purchase-order-statistics'),
    path('purchase-orders/<int:pk>/', views.purchase_order_detail, name='purchase-order-detail'),
    path('purchase-orders/<int:pk>/submit/', views.purchase_order_submit, name='purchase-order-submit'),
    path('purchase-orders/<int:pk>/approve/', views.purchase_order_approve, name='purchase-order-approve'),
    path('purchase-orders/<int:pk>/reject/', views.purchase_order_reject, name='purchase-order-reject'),
    path('purchase-orders/<int:pk>/mark-paid/', views.purchase_order_mark_paid, name='purchase-order-mark-paid'),
    path('purchase-orders/<int:pk>/pdf/', views.purchase_order_pdf, name='purchase-order-pdf'),

    # Chart of accounts and journal endpoints
    path('accounts/', views.account_list_create, name='account-list-create'),
    path('accounts/<int:pk>/', views.account_detail, name='account-detail'),
    path('accounts/<int:pk>/balance/', views.account_balance, name='account-balance'),
    path('journal-entries/', views.journal_entry_list_create, name='journal-entry-list-create'),
    path('journal-entries/<int:pk>/', views.journal_entry_detail, name='journal-entry-detail'),
    path('journal-entries/<int:pk>/lock/', views.journal_entry_lock, name='journal-entry-lock'),

    # Financial statements
    path('finance/reports/trial-balance/', views.report_trial_balance, name='report-trial-balance'),
    path('finance/reports/income-statement/', views.report_income_statement, name='report-income-statement'),
    path('finance/reports/balance-sheet/', views.report_balance_sheet, name='report-balance-sheet'),
    path('finance/reports/ledger/<int:account_id>/', views.report_general_ledger, name='report-general-ledger'),
    path('finance/reports/cashflow/', views.report_cash_flow, name='report-cash-flow'),

    # Flow recovery endpoints
    path('flow-recoveries/', views.flow_recovery_list_create, name='flow-recovery-list-create'),
    path('flow-recoveries/<int:pk>/', views.flow_recovery_detail, name='flow-recovery-detail'),

    # Dashboard
    path('finance/dashboard/', views.finance_dashboard, name='finance-dashboard'),
]
