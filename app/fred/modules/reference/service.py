from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.fred.modules.reference.models import District, NigpCode, Section
from app.fred.results import Failure, Result, Success

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DistrictOption:
    dist_nbr: int
    dist_nm: str


@dataclass(frozen=True)
class SectionOption:
    sect_id: int
    sect_nbr: str | None
    sect_nm: str | None

    @property
    def label(self) -> str:
        return " - ".join(p for p in (self.sect_nbr, self.sect_nm) if p) or str(self.sect_id)


@dataclass(frozen=True)
class NigpOption:
    nigp_cd: str
    dscr: str | None
    avg_monthly_rate: float | None


def list_districts(s: "Session") -> Result[list[DistrictOption]]:
    try:
        rows = s.execute(select(District.dist_nbr, District.dist_nm).order_by(District.dist_nbr.asc())).all()
    except SQLAlchemyError:
        logger.exception("Error fetching districts")
        s.rollback()
        return Failure("Failed to fetch districts")
    return Success([DistrictOption(dist_nbr=r.dist_nbr, dist_nm=r.dist_nm) for r in rows])


def list_sections_by_district(s: "Session", dist_nbr: int) -> Result[list[SectionOption]]:
    try:
        rows = s.execute(
            select(Section.sect_id, Section.sect_nbr, Section.sect_nm)
            .where(Section.dist_nbr == dist_nbr)
            .order_by(Section.sect_nbr.asc())
        ).all()
    except SQLAlchemyError:
        logger.exception("Error fetching sections (dist_nbr=%s)", dist_nbr)
        s.rollback()
        return Failure("Failed to fetch sections")
    return Success([SectionOption(sect_id=r.sect_id, sect_nbr=r.sect_nbr, sect_nm=r.sect_nm) for r in rows])


def list_nigp_codes(s: "Session") -> Result[list[NigpOption]]:
    try:
        rows = s.execute(
            select(NigpCode.nigp_cd, NigpCode.dscr, NigpCode.avg_monthly_rate).order_by(NigpCode.dscr.asc())
        ).all()
    except SQLAlchemyError:
        logger.exception("Error fetching NIGP codes")
        s.rollback()
        return Failure("Failed to fetch NIGP codes")
    return Success(
        [
            NigpOption(
                nigp_cd=r.nigp_cd,
                dscr=r.dscr,
                avg_monthly_rate=float(r.avg_monthly_rate) if r.avg_monthly_rate is not None else None,
            )
            for r in rows
        ]
    )


def section_belongs_to_district(s: "Session", sect_id: int, dist_nbr: int) -> bool:
    section = s.get(Section, sect_id)
    return section is not None and section.dist_nbr == dist_nbr
