from __future__ import annotations

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fred.models import Base


class District(Base):
    __tablename__ = "districts"

    dist_nbr: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    dist_nm: Mapped[str] = mapped_column(String(128), nullable=False)
    dist_abrvn: Mapped[str | None] = mapped_column(String(8), nullable=True)  # e.g. "PAR"

    sections: Mapped[list["Section"]] = relationship(
        back_populates="district",
        order_by="Section.sect_nbr",
        lazy="selectin",
    )


class Section(Base):
    __tablename__ = "sections"
    __table_args__ = (Index("idx_sections_dist_nbr", "dist_nbr"),)

    sect_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    dist_nbr: Mapped[int] = mapped_column(ForeignKey("districts.dist_nbr", ondelete="CASCADE"), nullable=False)
    sect_nbr: Mapped[str | None] = mapped_column(String(16), nullable=True)
    sect_nm: Mapped[str | None] = mapped_column(String(128), nullable=True)

    district: Mapped[District] = relationship(back_populates="sections", lazy="selectin")


class NigpCode(Base):
    """Commodity code identifying an equipment type."""

    __tablename__ = "nigp_codes"

    nigp_cd: Mapped[str] = mapped_column(String(16), primary_key=True)
    dscr: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avg_monthly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
