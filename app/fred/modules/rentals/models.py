from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fred.models import Base

if TYPE_CHECKING:
    from app.fred.modules.purchase_orders.models import RentalPurchaseOrder
    from app.fred.modules.reference.models import District, NigpCode, Section


class Rental(Base):
    __tablename__ = "rentals"
    __table_args__ = (
        Index("idx_rentals_status", "rent_status"),
        Index("idx_rentals_rqst_by", "rqst_by"),
        Index("idx_rentals_submit_dt", "submit_dt"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Location
    dist_nbr: Mapped[int] = mapped_column(ForeignKey("districts.dist_nbr"), nullable=False)
    sect_id: Mapped[int] = mapped_column(ForeignKey("sections.sect_id"), nullable=False)

    # Equipment
    nigp_cd: Mapped[str | None] = mapped_column(ForeignKey("nigp_codes.nigp_cd"), nullable=True)
    eqpmt_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    eqpmt_make: Mapped[str | None] = mapped_column(String(128), nullable=True)
    eqpmt_model: Mapped[str | None] = mapped_column(String(128), nullable=True)
    eqpmt_cmnt: Mapped[str | None] = mapped_column(Text, nullable=True)
    eqpmt_atchmt: Mapped[str | None] = mapped_column(String(255), nullable=True)  # attachments requested with the unit

    # Delivery / duration
    dlvry_rqst_dt: Mapped[date | None] = mapped_column(Date, nullable=True)
    dur_lngth: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dur_uom: Mapped[str | None] = mapped_column(String(16), nullable=True)  # Days, Weeks, Months
    dlvry_locn: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rental_due_dt: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Point of contact
    poc_nm: Mapped[str | None] = mapped_column(String(128), nullable=True)
    poc_phn_nbr: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Chartfields
    cf_dept_nbr: Mapped[str | None] = mapped_column(String(32), nullable=True)
    cf_acct_nbr: Mapped[str | None] = mapped_column(String(32), nullable=True)
    cf_approp_yr: Mapped[str | None] = mapped_column(String(8), nullable=True)
    cf_approp_class: Mapped[str | None] = mapped_column(String(32), nullable=True)
    cf_fund: Mapped[str | None] = mapped_column(String(32), nullable=True)
    cf_bus_unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    cf_proj: Mapped[str | None] = mapped_column(String(32), nullable=True)
    cf_actv: Mapped[str | None] = mapped_column(String(32), nullable=True)
    cf_src_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    cf_task: Mapped[str | None] = mapped_column(String(32), nullable=True)

    spcl_inst: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Workflow
    rent_status: Mapped[str] = mapped_column(String(32), nullable=False, default="Submitted")
    rqst_by: Mapped[str | None] = mapped_column(String(64), nullable=True)  # requester username
    rcvd_by: Mapped[str | None] = mapped_column(String(64), nullable=True)  # RC who activated it
    trouble_rent_flg: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    submit_dt: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    district: Mapped["District"] = relationship("District", lazy="selectin")
    section: Mapped["Section"] = relationship("Section", lazy="selectin")
    nigp: Mapped[Optional["NigpCode"]] = relationship("NigpCode", lazy="selectin")
    history: Mapped[list["RentalStatusHistory"]] = relationship(
        back_populates="rental",
        cascade="all, delete-orphan",
        order_by="RentalStatusHistory.created_at",
        lazy="selectin",
    )
    po_links: Mapped[list["RentalPurchaseOrder"]] = relationship(
        "RentalPurchaseOrder",
        back_populates="rental",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def equipment_label(self) -> str:
        return (self.nigp.dscr if self.nigp and self.nigp.dscr else None) or "Equipment Rental"


class RentalStatusHistory(Base):
    """Append-only log of a rental's status changes."""

    __tablename__ = "rental_status_history"
    __table_args__ = (Index("idx_rental_status_history_rental", "rental_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rental_id: Mapped[int] = mapped_column(ForeignKey("rentals.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)  # includes "Resubmitted"
    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    rental: Mapped[Rental] = relationship(back_populates="history")
