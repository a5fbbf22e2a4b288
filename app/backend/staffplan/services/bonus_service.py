"""Bonus listing and payment marking."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from staffplan.engine.temporal import format_year_month, month_bounds
from staffplan.models.entities import Bonus
from staffplan.repositories.staffing_repository import StaffingRepository
from staffplan.services.snapshot_service import money, parse_month_or_422, parse_uuid_or_404

logger = logging.getLogger(__name__)

ALREADY_PAID_DETAIL = "Bonus has already been paid."


class BonusService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = StaffingRepository(db)

    @staticmethod
    def serialize_bonus(bonus: Bonus, person_name: str | None = None) -> dict[str, object]:
        return {
            "id": str(bonus.id),
            "person_id": str(bonus.staff_member_id),
            "person_name": person_name,
            "bonus_date": bonus.bonus_date.isoformat(),
            "amount": money(bonus.amount),
            "description": bonus.description,
            "paid": bonus.paid,
            "paid_at": bonus.paid_at.isoformat() if bonus.paid_at else None,
            "payslip_ref": bonus.payslip_ref,
        }

    def list_for_month(self, month: str) -> dict[str, object]:
        month_start = parse_month_or_422(month)
        first, last = month_bounds(month_start)
        bonuses = self.repo.list_bonuses(first, last)
        members = self.repo.staff_members_by_ids({bonus.staff_member_id for bonus in bonuses})

        total = sum((bonus.amount for bonus in bonuses), Decimal("0"))
        unpaid = sum((bonus.amount for bonus in bonuses if not bonus.paid), Decimal("0"))
        return {
            "month": format_year_month(month_start),
            "items": [
                self.serialize_bonus(
                    bonus,
                    members[bonus.staff_member_id].name if bonus.staff_member_id in members else None,
                )
                for bonus in bonuses
            ],
            "total_amount": money(total),
            "unpaid_amount": money(unpaid),
        }

    def mark_paid(self, bonus_id: str, payslip_ref: str | None) -> Bonus:
        bonus = self.repo.get_bonus(parse_uuid_or_404(bonus_id, "Bonus not found."))
        if bonus is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bonus not found.")
        if bonus.paid:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ALREADY_PAID_DETAIL)

        # Conditional on the stored paid flag, not on this session's copy.
        if not self.repo.mark_bonus_paid(bonus.id, paid_at=datetime.now(timezone.utc), payslip_ref=payslip_ref):
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ALREADY_PAID_DETAIL)
        self.db.commit()
        self.db.refresh(bonus)
        logger.info("Bonus %s marked as paid", bonus.id, extra={"person_id": str(bonus.staff_member_id)})
        return bonus
