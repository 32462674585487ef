from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

revision = "0001_rent_ledger"
down_revision = None
branch_labels = None
depends_on = None


def _insp():
    return inspect(op.get_bind())


def _has_table(name: str) -> bool:
    return name in _insp().get_table_names()


def _has_index(table: str, index_name: str) -> bool:
    idx = [i["name"] for i in _insp().get_indexes(table)]
    return index_name in idx


def upgrade() -> None:
    # -------------------------
    # Tenancy
    # -------------------------
    if not _has_table("organizations"):
        op.create_table(
            "organizations",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("slug", sa.String(length=80), nullable=False, unique=True),
            sa.Column("name", sa.String(length=160), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)

    if not _has_table("user_profiles"):
        op.create_table(
            "user_profiles",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
            sa.Column("full_name", sa.String(length=160), nullable=True),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("phone_number", sa.String(length=40), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="tenant"),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_user_profiles_organization_id", "user_profiles", ["organization_id"])
        op.create_index("ix_user_profiles_email", "user_profiles", ["email"])

    if not _has_table("audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
            sa.Column("actor_user_id", sa.String(length=36), nullable=True),
            sa.Column("action", sa.String(length=80), nullable=False),
            sa.Column("entity_type", sa.String(length=80), nullable=False),
            sa.Column("entity_id", sa.String(length=80), nullable=False),
            sa.Column("before_json", sa.Text(), nullable=True),
            sa.Column("after_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_audit_events_org_id", "audit_events", ["org_id"])

    # -------------------------
    # Buildings / units
    # -------------------------
    if not _has_table("apartment_buildings"):
        op.create_table(
            "apartment_buildings",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
            sa.Column("name", sa.String(length=160), nullable=False),
            sa.Column("location", sa.String(length=200), nullable=True),
        )
        op.create_index("ix_apartment_buildings_organization_id", "apartment_buildings", ["organization_id"])

    if not _has_table("apartment_units"):
        op.create_table(
            "apartment_units",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
            sa.Column("building_id", sa.String(length=36), sa.ForeignKey("apartment_buildings.id"), nullable=False),
            sa.Column("unit_number", sa.String(length=40), nullable=False),
        )
        op.create_index("ix_apartment_units_organization_id", "apartment_units", ["organization_id"])
        op.create_index("ix_apartment_units_building_id", "apartment_units", ["building_id"])

    # -------------------------
    # Ledger
    # -------------------------
    if not _has_table("leases"):
        op.create_table(
            "leases",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
            sa.Column("tenant_user_id", sa.String(length=36), sa.ForeignKey("user_profiles.id"), nullable=True),
            sa.Column("unit_id", sa.String(length=36), sa.ForeignKey("apartment_units.id"), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("monthly_rent", sa.Float(), nullable=False, server_default="0"),
            sa.Column("rent_paid_until", sa.Date(), nullable=True),
            sa.Column("next_rent_due_date", sa.Date(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_leases_organization_id", "leases", ["organization_id"])
        op.create_index("ix_leases_tenant_user_id", "leases", ["tenant_user_id"])
        op.create_index("ix_leases_unit_id", "leases", ["unit_id"])

    if not _has_table("invoices"):
        op.create_table(
            "invoices",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
            sa.Column("lease_id", sa.String(length=36), sa.ForeignKey("leases.id"), nullable=False),
            sa.Column("invoice_type", sa.String(length=20), nullable=False, server_default="rent"),
            sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("period_start", sa.Date(), nullable=False),
            sa.Column("due_date", sa.Date(), nullable=False),
            sa.Column("status", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("status_text", sa.String(length=20), nullable=True, server_default="unpaid"),
            sa.Column("months_covered", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("total_paid", sa.Float(), nullable=False, server_default="0"),
            sa.Column("description", sa.String(length=300), nullable=True),
            sa.Column("payment_date", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("lease_id", "invoice_type", "period_start", name="uq_invoices_lease_type_period"),
        )
        op.create_index("ix_invoices_organization_id", "invoices", ["organization_id"])
        op.create_index("ix_invoices_lease_id", "invoices", ["lease_id"])

    if not _has_index("invoices", "ix_invoices_org_due"):
        op.create_index("ix_invoices_org_due", "invoices", ["organization_id", "due_date"])

    if not _has_table("payments"):
        op.create_table(
            "payments",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
            sa.Column("invoice_id", sa.String(length=36), sa.ForeignKey("invoices.id"), nullable=True),
            sa.Column("tenant_user_id", sa.String(length=36), sa.ForeignKey("user_profiles.id"), nullable=True),
            sa.Column("amount_paid", sa.Float(), nullable=False, server_default="0"),
            sa.Column("payment_method", sa.String(length=30), nullable=True),
            sa.Column("payment_date", sa.DateTime(), nullable=True),
            sa.Column("months_paid", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("mpesa_receipt_number", sa.String(length=40), nullable=True),
            sa.Column("bank_reference_number", sa.String(length=60), nullable=True),
            sa.Column("mpesa_response_code", sa.String(length=10), nullable=True),
            sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("verified_by", sa.String(length=36), nullable=True),
            sa.Column("verified_at", sa.DateTime(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_payments_organization_id", "payments", ["organization_id"])
        op.create_index("ix_payments_invoice_id", "payments", ["invoice_id"])
        op.create_index("ix_payments_tenant_user_id", "payments", ["tenant_user_id"])

    if not _has_table("water_bills"):
        op.create_table(
            "water_bills",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
            sa.Column("unit_id", sa.String(length=36), sa.ForeignKey("apartment_units.id"), nullable=False),
            sa.Column("billing_month", sa.Date(), nullable=False),
            sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("units_consumed", sa.Float(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
            sa.Column("added_to_invoice_id", sa.String(length=36), sa.ForeignKey("invoices.id"), nullable=True),
            sa.Column("added_by", sa.String(length=36), nullable=True),
            sa.Column("added_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_water_bills_organization_id", "water_bills", ["organization_id"])
        op.create_index("ix_water_bills_unit_id", "water_bills", ["unit_id"])

    if not _has_table("communications"):
        op.create_table(
            "communications",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("organization_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=True),
            sa.Column("sender_user_id", sa.String(length=36), nullable=True),
            sa.Column("recipient_user_id", sa.String(length=36), nullable=True),
            sa.Column("recipient_phone", sa.String(length=40), nullable=True),
            sa.Column("message_text", sa.Text(), nullable=False),
            sa.Column("message_type", sa.String(length=20), nullable=False, server_default="sms"),
            sa.Column("related_entity_type", sa.String(length=40), nullable=True),
            sa.Column("related_entity_id", sa.String(length=36), nullable=True),
            sa.Column("delivery_status", sa.String(length=20), nullable=False, server_default="sent"),
            sa.Column("error", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_communications_organization_id", "communications", ["organization_id"])
        op.create_index("ix_communications_recipient_user_id", "communications", ["recipient_user_id"])


def downgrade() -> None:
    for table in (
        "communications",
        "water_bills",
        "payments",
        "invoices",
        "leases",
        "apartment_units",
        "apartment_buildings",
        "audit_events",
        "user_profiles",
        "organizations",
    ):
        if _has_table(table):
            op.drop_table(table)
