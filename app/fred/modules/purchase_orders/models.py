from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fred.models import Base

if TYPE_CHECKING:
    from app.fred.modules.rentals.models import Rental


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    __table_args__ = (
        Index("idx_purchase_orders_status", "po_status"),
        Index("idx_purchase_orders_vendor", "vendr_nm"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    po_rlse_nbr: Mapped[str | None] = mapped_column(String(64), nullable=True)  # PO release number
    po_bu_nbr: Mapped[str | None] = mapped_column(String(16), nullable=True)  # business unit
    e_rqstn_nbr: Mapped[str | None] = mapped_column(String(64), nullable=True)  # e-requisition number
    po_rcvd_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    po_status: Mapped[str | None] = mapped_column(String(32), nullable=True)  # see constants.PO_STATUSES
    po_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    po_start_dt: Mapped[date | None] = mapped_column(Date, nullable=True)
    po_expir_dt: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Vendor
    vendr_nm: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vendor_mail: Mapped[str | None] = mapped_column(String(320), nullable=True)
    vendor_phn_nbr: Mapped[str | None] = mapped_column(String(32), nullable=True)

    mnth_eq_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    spcl_evnt: Mapped[str | None] = mapped_column(String(255), nullable=True)
    txdot_gps: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    chart_fields_flg: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    user_rqst_via_purch_flg: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    rental_links: Mapped[list["RentalPurchaseOrder"]] = relationship(
        back_populates="purchase_order",
        lazy="selectin",
    )

    @property
    def label(self) -> str:
        return self.po_rlse_nbr or f"PO #{self.id}"


class RentalPurchaseOrder(Base):
    __tablename__ = "rental_purchase_orders"
    __table_args__ = (UniqueConstraint("rental_id", "po_id", name="uq_rental_po"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rental_id: Mapped[int] = mapped_column(ForeignKey("rentals.id", ondelete="CASCADE"), nullable=False)
    po_id: Mapped[int] = mapped_column(ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    rental: Mapped["Rental"] = relationship("Rental", back_populates="po_links", lazy="selectin")
    purchase_order: Mapped[PurchaseOrder] = relationship(back_populates="rental_links", lazy="selectin")
