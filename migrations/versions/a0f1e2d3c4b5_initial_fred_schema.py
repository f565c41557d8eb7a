"""Initial FRED schema: users, reference data, rentals, purchase orders, audit.

Revision ID: a0f1e2d3c4b5
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a0f1e2d3c4b5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CHARTFIELD_COLUMNS = (
    ("cf_dept_nbr", 32),
    ("cf_acct_nbr", 32),
    ("cf_approp_yr", 8),
    ("cf_approp_class", 32),
    ("cf_fund", 32),
    ("cf_bus_unit", 32),
    ("cf_proj", 32),
    ("cf_actv", 32),
    ("cf_src_type", 32),
    ("cf_task", 32),
)


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing = set(insp.get_table_names())

    if "districts" not in existing:
        op.create_table(
            "districts",
            sa.Column("dist_nbr", sa.Integer(), primary_key=True, autoincrement=False),
            sa.Column("dist_nm", sa.String(128), nullable=False),
            sa.Column("dist_abrvn", sa.String(8), nullable=True),
        )

    if "sections" not in existing:
        op.create_table(
            "sections",
            sa.Column("sect_id", sa.Integer(), primary_key=True),
            sa.Column("dist_nbr", sa.Integer(), nullable=False),
            sa.Column("sect_nbr", sa.String(16), nullable=True),
            sa.Column("sect_nm", sa.String(128), nullable=True),
            sa.ForeignKeyConstraint(["dist_nbr"], ["districts.dist_nbr"], ondelete="CASCADE"),
        )
        op.create_index("idx_sections_dist_nbr", "sections", ["dist_nbr"])

    if "nigp_codes" not in existing:
        op.create_table(
            "nigp_codes",
            sa.Column("nigp_cd", sa.String(16), primary_key=True),
            sa.Column("dscr", sa.String(255), nullable=True),
            sa.Column("avg_monthly_rate", sa.Numeric(12, 2), nullable=True),
        )

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("username", sa.String(64), nullable=False),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("role", sa.String(32), nullable=False, server_default="ES"),
            sa.Column("first_name", sa.String(128), nullable=True),
            sa.Column("last_name", sa.String(128), nullable=True),
            sa.Column("email", sa.String(320), nullable=True),
            sa.Column("phone", sa.String(32), nullable=True),
            sa.Column("dist_nbr", sa.Integer(), nullable=True),
            sa.Column("sect_id", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.Column("updated_by_user_id", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["dist_nbr"], ["districts.dist_nbr"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["sect_id"], ["sections.sect_id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["updated_by_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.UniqueConstraint("username"),
        )
        op.create_index("idx_users_role", "users", ["role"])

    if "audit_events" not in existing:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("actor_username", sa.String(64), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
        )

    if "rentals" not in existing:
        op.create_table(
            "rentals",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("dist_nbr", sa.Integer(), nullable=False),
            sa.Column("sect_id", sa.Integer(), nullable=False),
            sa.Column("nigp_cd", sa.String(16), nullable=True),
            sa.Column("eqpmt_qty", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("eqpmt_make", sa.String(128), nullable=True),
            sa.Column("eqpmt_model", sa.String(128), nullable=True),
            sa.Column("eqpmt_cmnt", sa.Text(), nullable=True),
            sa.Column("eqpmt_atchmt", sa.String(255), nullable=True),
            sa.Column("dlvry_rqst_dt", sa.Date(), nullable=True),
            sa.Column("dur_lngth", sa.Integer(), nullable=True),
            sa.Column("dur_uom", sa.String(16), nullable=True),
            sa.Column("dlvry_locn", sa.String(255), nullable=True),
            sa.Column("rental_due_dt", sa.Date(), nullable=True),
            sa.Column("poc_nm", sa.String(128), nullable=True),
            sa.Column("poc_phn_nbr", sa.String(32), nullable=True),
            *[sa.Column(name, sa.String(length), nullable=True) for name, length in CHARTFIELD_COLUMNS],
            sa.Column("spcl_inst", sa.Text(), nullable=True),
            sa.Column("rent_status", sa.String(32), nullable=False, server_default="Submitted"),
            sa.Column("rqst_by", sa.String(64), nullable=True),
            sa.Column("rcvd_by", sa.String(64), nullable=True),
            sa.Column("trouble_rent_flg", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("submit_dt", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.Column("updated_by_user_id", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["dist_nbr"], ["districts.dist_nbr"]),
            sa.ForeignKeyConstraint(["sect_id"], ["sections.sect_id"]),
            sa.ForeignKeyConstraint(["nigp_cd"], ["nigp_codes.nigp_cd"]),
            sa.ForeignKeyConstraint(["updated_by_user_id"], ["users.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_rentals_status", "rentals", ["rent_status"])
        op.create_index("idx_rentals_rqst_by", "rentals", ["rqst_by"])
        op.create_index("idx_rentals_submit_dt", "rentals", ["submit_dt"])

    if "rental_status_history" not in existing:
        op.create_table(
            "rental_status_history",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("rental_id", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(32), nullable=False),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("actor_name", sa.String(255), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["rental_id"], ["rentals.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_rental_status_history_rental", "rental_status_history", ["rental_id"])

    if "purchase_orders" not in existing:
        op.create_table(
            "purchase_orders",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("po_rlse_nbr", sa.String(64), nullable=True),
            sa.Column("po_bu_nbr", sa.String(16), nullable=True),
            sa.Column("e_rqstn_nbr", sa.String(64), nullable=True),
            sa.Column("po_rcvd_by", sa.String(64), nullable=True),
            sa.Column("po_status", sa.String(32), nullable=True),
            sa.Column("po_type", sa.String(32), nullable=True),
            sa.Column("po_start_dt", sa.Date(), nullable=True),
            sa.Column("po_expir_dt", sa.Date(), nullable=True),
            sa.Column("vendr_nm", sa.String(255), nullable=True),
            sa.Column("vendor_mail", sa.String(320), nullable=True),
            sa.Column("vendor_phn_nbr", sa.String(32), nullable=True),
            sa.Column("mnth_eq_rate", sa.Numeric(12, 2), nullable=True),
            sa.Column("spcl_evnt", sa.String(255), nullable=True),
            sa.Column("txdot_gps", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("chart_fields_flg", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("user_rqst_via_purch_flg", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.Column("updated_by_user_id", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["updated_by_user_id"], ["users.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_purchase_orders_status", "purchase_orders", ["po_status"])
        op.create_index("idx_purchase_orders_vendor", "purchase_orders", ["vendr_nm"])

    if "rental_purchase_orders" not in existing:
        op.create_table(
            "rental_purchase_orders",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("rental_id", sa.Integer(), nullable=False),
            sa.Column("po_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["rental_id"], ["rentals.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["po_id"], ["purchase_orders.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("rental_id", "po_id", name="uq_rental_po"),
        )


def downgrade() -> None:
    op.drop_table("rental_purchase_orders")
    op.drop_index("idx_purchase_orders_vendor", table_name="purchase_orders")
    op.drop_index("idx_purchase_orders_status", table_name="purchase_orders")
    op.drop_table("purchase_orders")
    op.drop_index("idx_rental_status_history_rental", table_name="rental_status_history")
    op.drop_table("rental_status_history")
    op.drop_index("idx_rentals_submit_dt", table_name="rentals")
    op.drop_index("idx_rentals_rqst_by", table_name="rentals")
    op.drop_index("idx_rentals_status", table_name="rentals")
    op.drop_table("rentals")
    op.drop_table("audit_events")
    op.drop_index("idx_users_role", table_name="users")
    op.drop_table("users")
    op.drop_table("nigp_codes")
    op.drop_index("idx_sections_dist_nbr", table_name="sections")
    op.drop_table("sections")
    op.drop_table("districts")
