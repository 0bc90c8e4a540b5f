"""initial schema: contabilidad, ventas, compras, partners y eventos

Revision ID: 20260101_01
Revises:
Create Date: 2026-01-01

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20260101_01'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade():
    # ===== Empresas y usuarios =====
    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False, unique=True),
        sa.Column('rut', sa.String(length=20), nullable=True, unique=True),
        sa.Column('country_code', sa.String(length=2), nullable=True),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_companies_id', 'companies', ['id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('password_hash', sa.String(length=200), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=True),
        sa.Column('nombre', sa.String(length=100), nullable=True),
        sa.Column('correo', sa.String(length=255), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'user_companies',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), primary_key=True),
    )

    # ===== Plan de cuentas y configuración =====
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('level', sa.Integer(), nullable=True),
        sa.Column('type', sa.Enum('ACTIVO', 'PASIVO', 'PATRIMONIO', 'INGRESO', 'GASTO', name='accounttype'), nullable=False),
        sa.Column('parent_code', sa.String(length=20), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=True),
        sa.UniqueConstraint('company_id', 'code', name='uq_company_account_code'),
    )
    op.create_index('ix_accounts_company_id', 'accounts', ['company_id'])
    op.create_index('ix_accounts_code', 'accounts', ['code'])

    op.create_table(
        'tax_configs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('country_code', sa.String(length=2), nullable=False),
        sa.Column('code', sa.String(length=30), nullable=False),
        sa.Column('rate', sa.Numeric(6, 2), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_tax_configs_country_code', 'tax_configs', ['country_code'])

    op.create_table(
        'bank_accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('bank_name', sa.String(length=100), nullable=False),
        sa.Column('account_number', sa.String(length=50), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_bank_accounts_company_id', 'bank_accounts', ['company_id'])
    op.create_index('ix_bank_accounts_account_id', 'bank_accounts', ['account_id'])

    op.create_table(
        'sequence_counters',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('sequence', sa.String(length=50), nullable=False),
        sa.Column('value', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('company_id', 'sequence', name='uq_company_sequence'),
    )
    op.create_index('ix_sequence_counters_company_id', 'sequence_counters', ['company_id'])

    # ===== Ejercicios, períodos y auditoría de cierres =====
    op.create_table(
        'fiscal_years',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('closed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('company_id', 'year', name='uq_company_fiscal_year'),
    )
    op.create_index('ix_fiscal_years_company_id', 'fiscal_years', ['company_id'])

    op.create_table(
        'periods',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('fiscal_year_id', sa.Integer(), sa.ForeignKey('fiscal_years.id'), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('allows_entries', sa.Boolean(), nullable=True),
        sa.Column('total_debit', sa.Numeric(14, 2), nullable=True),
        sa.Column('total_credit', sa.Numeric(14, 2), nullable=True),
        sa.Column('entry_count', sa.Integer(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('closed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('close_reason', sa.String(length=500), nullable=True),
        sa.Column('reopened_at', sa.DateTime(), nullable=True),
        sa.Column('reopened_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('reopen_reason', sa.String(length=500), nullable=True),
    )
    op.create_index('ix_periods_company_id', 'periods', ['company_id'])
    op.create_index('ix_periods_fiscal_year_id', 'periods', ['fiscal_year_id'])
    op.create_index('ix_periods_start_date', 'periods', ['start_date'])
    op.create_index('ix_periods_end_date', 'periods', ['end_date'])

    op.create_table(
        'closure_audits',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('closure_type', sa.String(length=20), nullable=False),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('period_id', sa.Integer(), sa.ForeignKey('periods.id'), nullable=True),
        sa.Column('fiscal_year_id', sa.Integer(), sa.ForeignKey('fiscal_years.id'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('reason', sa.String(length=500), nullable=True),
        sa.Column('observations', sa.Text(), nullable=True),
        sa.Column('previous_status', sa.String(length=20), nullable=True),
        sa.Column('new_status', sa.String(length=20), nullable=False),
        sa.Column('total_debit', sa.Numeric(14, 2), nullable=True),
        sa.Column('total_credit', sa.Numeric(14, 2), nullable=True),
        sa.Column('entry_count', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_closure_audits_company_id', 'closure_audits', ['company_id'])
    op.create_index('ix_closure_audits_period_id', 'closure_audits', ['period_id'])
    op.create_index('ix_closure_audits_fiscal_year_id', 'closure_audits', ['fiscal_year_id'])
    op.create_index('ix_closure_audits_created_at', 'closure_audits', ['created_at'])

    # ===== Libro diario =====
    op.create_table(
        'journal_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('number', sa.String(length=20), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('period_id', sa.Integer(), sa.ForeignKey('periods.id'), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('reference', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('origin', sa.String(length=50), nullable=True),
        sa.Column('supporting_document', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('company_id', 'number', name='uq_company_entry_number'),
    )
    op.create_index('ix_journal_entries_company_id', 'journal_entries', ['company_id'])
    op.create_index('ix_journal_entries_number', 'journal_entries', ['number'])
    op.create_index('ix_journal_entries_date', 'journal_entries', ['date'])
    op.create_index('ix_journal_entries_reference', 'journal_entries', ['reference'])
    op.create_index('ix_journal_entries_created_by', 'journal_entries', ['created_by'])

    op.create_table(
        'entry_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('entry_id', sa.Integer(), sa.ForeignKey('journal_entries.id'), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('debit', sa.Numeric(14, 2), nullable=True),
        sa.Column('credit', sa.Numeric(14, 2), nullable=True),
        sa.Column('memo', sa.String(length=250), nullable=True),
    )
    op.create_index('ix_entry_lines_entry_id', 'entry_lines', ['entry_id'])
    op.create_index('ix_entry_lines_account_id', 'entry_lines', ['account_id'])

    # ===== Ventas =====
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('document_type', sa.String(length=10), nullable=True),
        sa.Column('document_number', sa.String(length=30), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('company_id', 'document_number', name='uq_company_customer_doc'),
    )
    op.create_index('ix_customers_company_id', 'customers', ['company_id'])
    op.create_index('ix_customers_document_number', 'customers', ['document_number'])

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('document_type', sa.String(length=10), nullable=True),
        sa.Column('document_number', sa.String(length=30), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('supplier_type', sa.String(length=20), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('company_id', 'document_number', name='uq_company_supplier_doc'),
    )
    op.create_index('ix_suppliers_company_id', 'suppliers', ['company_id'])
    op.create_index('ix_suppliers_document_number', 'suppliers', ['document_number'])

    op.create_table(
        'partners',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('external_id', sa.String(length=100), nullable=True),
        sa.Column('document_number', sa.String(length=30), nullable=False),
        sa.Column('legal_name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('commission_rate', sa.Numeric(6, 2), nullable=True),
        sa.Column('billing_frequency', sa.String(length=20), nullable=True),
        sa.Column('billing_day', sa.Integer(), nullable=True),
        sa.Column('next_billing_date', sa.DateTime(), nullable=True),
        sa.Column('last_billing_date', sa.DateTime(), nullable=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=True),
        sa.Column('bank_account_id', sa.Integer(), sa.ForeignKey('bank_accounts.id'), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('company_id', 'document_number', name='uq_company_partner_doc'),
    )
    op.create_index('ix_partners_company_id', 'partners', ['company_id'])
    op.create_index('ix_partners_external_id', 'partners', ['external_id'])
    op.create_index('ix_partners_document_number', 'partners', ['document_number'])

    op.create_table(
        'sales_invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('series', sa.String(length=10), nullable=True),
        sa.Column('number', sa.String(length=20), nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=True),
        sa.Column('tax_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('total', sa.Numeric(14, 2), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('external_order_id', sa.String(length=100), nullable=True),
        sa.Column('dgi_sent', sa.Boolean(), nullable=True),
        sa.Column('dgi_cae', sa.String(length=100), nullable=True),
        sa.Column('dgi_response', sa.JSON(), nullable=True),
        sa.Column('dgi_sent_at', sa.DateTime(), nullable=True),
        sa.Column('journal_entry_id', sa.Integer(), sa.ForeignKey('journal_entries.id'), nullable=True),
        sa.Column('payment_entry_id', sa.Integer(), sa.ForeignKey('journal_entries.id'), nullable=True),
        sa.Column('credit_note_id', sa.Integer(), nullable=True),
        sa.Column('hidden_in_lists', sa.Boolean(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('company_id', 'series', 'number', name='uq_company_sales_invoice_number'),
    )
    op.create_index('ix_sales_invoices_company_id', 'sales_invoices', ['company_id'])
    op.create_index('ix_sales_invoices_customer_id', 'sales_invoices', ['customer_id'])
    op.create_index('ix_sales_invoices_number', 'sales_invoices', ['number'])
    op.create_index('ix_sales_invoices_issue_date', 'sales_invoices', ['issue_date'])
    op.create_index('ix_sales_invoices_external_order_id', 'sales_invoices', ['external_order_id'])

    op.create_table(
        'sales_invoice_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('sales_invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 4), nullable=True),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('tax_rate', sa.Numeric(6, 2), nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=True),
        sa.Column('tax_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('total', sa.Numeric(14, 2), nullable=True),
        sa.Column('partner_id', sa.Integer(), sa.ForeignKey('partners.id'), nullable=True),
    )
    op.create_index('ix_sales_invoice_lines_invoice_id', 'sales_invoice_lines', ['invoice_id'])

    op.create_table(
        'credit_notes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('sales_invoice_id', sa.Integer(), sa.ForeignKey('sales_invoices.id'), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('series', sa.String(length=10), nullable=True),
        sa.Column('number', sa.String(length=20), nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('type', sa.String(length=10), nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=False),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=True),
        sa.Column('tax_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('total', sa.Numeric(14, 2), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('journal_entry_id', sa.Integer(), sa.ForeignKey('journal_entries.id'), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_credit_notes_company_id', 'credit_notes', ['company_id'])
    op.create_index('ix_credit_notes_sales_invoice_id', 'credit_notes', ['sales_invoice_id'])
    op.create_index('ix_credit_notes_customer_id', 'credit_notes', ['customer_id'])
    op.create_index('ix_credit_notes_number', 'credit_notes', ['number'])

    op.create_table(
        'credit_note_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('credit_note_id', sa.Integer(), sa.ForeignKey('credit_notes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invoice_line_id', sa.Integer(), sa.ForeignKey('sales_invoice_lines.id'), nullable=True),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 4), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('tax_rate', sa.Numeric(6, 2), nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('total', sa.Numeric(14, 2), nullable=False),
    )
    op.create_index('ix_credit_note_lines_credit_note_id', 'credit_note_lines', ['credit_note_id'])

    # ===== Compras y cuentas por pagar =====
    op.create_table(
        'purchase_invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False),
        sa.Column('partner_id', sa.Integer(), sa.ForeignKey('partners.id'), nullable=True),
        sa.Column('series', sa.String(length=10), nullable=True),
        sa.Column('number', sa.String(length=20), nullable=False),
        sa.Column('invoice_type', sa.String(length=30), nullable=True),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=True),
        sa.Column('tax_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('total', sa.Numeric(14, 2), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('settlement_data', sa.JSON(), nullable=True),
        sa.Column('journal_entry_id', sa.Integer(), sa.ForeignKey('journal_entries.id'), nullable=True),
        sa.Column('hidden_in_lists', sa.Boolean(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('company_id', 'series', 'number', name='uq_company_purchase_invoice_number'),
    )
    op.create_index('ix_purchase_invoices_company_id', 'purchase_invoices', ['company_id'])
    op.create_index('ix_purchase_invoices_supplier_id', 'purchase_invoices', ['supplier_id'])
    op.create_index('ix_purchase_invoices_partner_id', 'purchase_invoices', ['partner_id'])
    op.create_index('ix_purchase_invoices_number', 'purchase_invoices', ['number'])
    op.create_index('ix_purchase_invoices_issue_date', 'purchase_invoices', ['issue_date'])

    op.create_table(
        'purchase_invoice_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('purchase_invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 4), nullable=True),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('tax_rate', sa.Numeric(6, 2), nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=True),
        sa.Column('tax_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('total', sa.Numeric(14, 2), nullable=True),
    )
    op.create_index('ix_purchase_invoice_lines_invoice_id', 'purchase_invoice_lines', ['invoice_id'])

    op.create_table(
        'accounts_payable',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False),
        sa.Column('purchase_invoice_id', sa.Integer(), sa.ForeignKey('purchase_invoices.id'), nullable=False),
        sa.Column('number', sa.String(length=30), nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(14, 2), nullable=True),
        sa.Column('balance', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_accounts_payable_company_id', 'accounts_payable', ['company_id'])
    op.create_index('ix_accounts_payable_supplier_id', 'accounts_payable', ['supplier_id'])
    op.create_index('ix_accounts_payable_purchase_invoice_id', 'accounts_payable', ['purchase_invoice_id'])
    op.create_index('ix_accounts_payable_number', 'accounts_payable', ['number'])

    op.create_table(
        'supplier_payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('payable_id', sa.Integer(), sa.ForeignKey('accounts_payable.id'), nullable=False),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False),
        sa.Column('bank_account_id', sa.Integer(), sa.ForeignKey('bank_accounts.id'), nullable=True),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('payment_type', sa.String(length=30), nullable=False),
        sa.Column('reference', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('journal_entry_id', sa.Integer(), sa.ForeignKey('journal_entries.id'), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_supplier_payments_company_id', 'supplier_payments', ['company_id'])
    op.create_index('ix_supplier_payments_payable_id', 'supplier_payments', ['payable_id'])
    op.create_index('ix_supplier_payments_supplier_id', 'supplier_payments', ['supplier_id'])

    # ===== Comisiones y eventos externos =====
    op.create_table(
        'partner_commissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('partner_id', sa.Integer(), sa.ForeignKey('partners.id'), nullable=False),
        sa.Column('sales_invoice_id', sa.Integer(), sa.ForeignKey('sales_invoices.id'), nullable=True),
        sa.Column('sales_invoice_line_id', sa.Integer(), sa.ForeignKey('sales_invoice_lines.id'), nullable=True),
        sa.Column('purchase_invoice_id', sa.Integer(), sa.ForeignKey('purchase_invoices.id'), nullable=True),
        sa.Column('order_id', sa.String(length=100), nullable=True),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('sale_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('commission_rate', sa.Numeric(6, 2), nullable=False),
        sa.Column('commission_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('commission_status', sa.String(length=20), nullable=True),
        sa.Column('payment_status', sa.String(length=20), nullable=True),
        sa.Column('expense_entry_id', sa.Integer(), sa.ForeignKey('journal_entries.id'), nullable=True),
        sa.Column('hidden_in_lists', sa.Boolean(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_partner_commissions_company_id', 'partner_commissions', ['company_id'])
    op.create_index('ix_partner_commissions_partner_id', 'partner_commissions', ['partner_id'])
    op.create_index('ix_partner_commissions_sales_invoice_id', 'partner_commissions', ['sales_invoice_id'])
    op.create_index('ix_partner_commissions_purchase_invoice_id', 'partner_commissions', ['purchase_invoice_id'])
    op.create_index('ix_partner_commissions_sale_date', 'partner_commissions', ['sale_date'])

    op.create_table(
        'external_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=True),
        sa.Column('event_type', sa.String(length=50), nullable=False),
        sa.Column('source', sa.String(length=30), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('processed', sa.Boolean(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('retries', sa.Integer(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('sales_invoice_id', sa.Integer(), sa.ForeignKey('sales_invoices.id'), nullable=True),
        sa.Column('credit_note_id', sa.Integer(), sa.ForeignKey('credit_notes.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_external_events_company_id', 'external_events', ['company_id'])
    op.create_index('ix_external_events_event_type', 'external_events', ['event_type'])
    op.create_index('ix_external_events_processed', 'external_events', ['processed'])
    op.create_index('ix_external_events_created_at', 'external_events', ['created_at'])


def downgrade():
    # Orden inverso por claves foráneas
    for table in (
        'external_events', 'partner_commissions', 'supplier_payments', 'accounts_payable',
        'purchase_invoice_lines', 'purchase_invoices', 'credit_note_lines', 'credit_notes',
        'sales_invoice_lines', 'sales_invoices', 'partners', 'suppliers', 'customers',
        'entry_lines', 'journal_entries', 'closure_audits', 'periods', 'fiscal_years',
        'sequence_counters', 'bank_accounts', 'tax_configs', 'accounts', 'user_companies',
        'users', 'companies',
    ):
        op.drop_table(table)
    sa.Enum(name='accounttype').drop(op.get_bind(), checkfirst=True)
