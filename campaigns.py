"""
Campaign ledger rule.

Raised totals are always computed from the donation table at read time, so
recording a donation never has to touch the campaign row.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List

from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import ConflictError, InternalError, NotFoundError, ValidationError
from models import Campaign, CampaignStatus, Donation, generate_id
from money import percentage, to_decimal
from schemas import Campaign as CampaignView, CampaignFinancials, CampaignTotal

logger = logging.getLogger(__name__)


def raised_totals(db: Session):
    """Subquery of ``(camp_id, raised)`` summed over all donations."""
    return (
        db.query(Donation.camp_id.label("camp_id"), func.sum(Donation.amount).label("raised"))
        .group_by(Donation.camp_id)
        .subquery()
    )


def _with_raised(db: Session):
    totals = raised_totals(db)
    return db.query(Campaign, totals.c.raised).outerjoin(totals, totals.c.camp_id == Campaign.camp_id)


def _view(campaign: Campaign, raised) -> CampaignView:
    return CampaignView(
        camp_id=campaign.camp_id,
        name=campaign.name,
        status=campaign.status,
        start_date=campaign.start_date,
        end_date=campaign.end_date,
        goal_amount=to_decimal(campaign.goal_amount),
        raised_amount=to_decimal(raised),
        manager_staff_id=campaign.manager_staff_id,
    )


def create_campaign(
    db: Session, name: str, goal: Decimal, start: date, end: date, manager_id: str
) -> str:
    if goal is None or goal <= 0:
        raise ValidationError("goal_amount must be greater than zero")
    if start >= end:
        raise ValidationError("start_date must be before end_date")
    if db.query(Campaign.camp_id).filter(Campaign.name == name).first():
        raise ConflictError("A campaign with this name already exists.")

    camp_id = generate_id("CAMP")
    db.add(Campaign(
        camp_id=camp_id,
        name=name,
        status=CampaignStatus.ACTIVE.value,
        start_date=start,
        end_date=end,
        goal_amount=goal,
        manager_staff_id=manager_id,
    ))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("A campaign with this name already exists.")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating campaign %r", name)
        raise InternalError("Internal server error while creating campaign.")

    logger.info("Campaign %s (%s) created by %s", camp_id, name, manager_id)
    return camp_id


def set_status(db: Session, camp_id: str, new_status) -> CampaignStatus:
    """Move a campaign to any status in the enum. No transition rules apply."""
    try:
        status = CampaignStatus(new_status.upper() if isinstance(new_status, str) else new_status)
    except ValueError:
        raise ValidationError("Invalid status provided.")

    try:
        updated = (
            db.query(Campaign)
            .filter(Campaign.camp_id == camp_id)
            .update({Campaign.status: status.value}, synchronize_session=False)
        )
        if updated == 0:
            db.rollback()
            raise NotFoundError("Campaign not found.")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating status of campaign %s", camp_id)
        raise InternalError("Internal server error while updating campaign status.")

    logger.info("Campaign %s status set to %s", camp_id, status.value)
    return status


def get_campaign(db: Session, camp_id: str) -> CampaignView:
    row = _with_raised(db).filter(Campaign.camp_id == camp_id).first()
    if row is None:
        raise NotFoundError("Campaign not found.")
    return _view(*row)


def list_campaigns(db: Session) -> List[CampaignView]:
    rows = _with_raised(db).order_by(desc(Campaign.start_date)).all()
    return [_view(campaign, raised) for campaign, raised in rows]


def list_active(db: Session) -> List[CampaignView]:
    rows = (
        _with_raised(db)
        .filter(Campaign.status == CampaignStatus.ACTIVE.value)
        .order_by(desc(Campaign.start_date))
        .all()
    )
    return [_view(campaign, raised) for campaign, raised in rows]


def raised_summary(db: Session) -> List[CampaignTotal]:
    rows = _with_raised(db).order_by(Campaign.name).all()
    return [
        CampaignTotal(
            camp_id=c.camp_id,
            name=c.name,
            goal_amount=to_decimal(c.goal_amount),
            status=c.status,
            total_raised=to_decimal(raised),
        )
        for c, raised in rows
    ]


def financial_summary(db: Session) -> List[CampaignFinancials]:
    rows = _with_raised(db).order_by(Campaign.status, Campaign.name).all()
    return [
        CampaignFinancials(
            camp_id=c.camp_id,
            name=c.name,
            goal_amount=to_decimal(c.goal_amount),
            status=c.status,
            total_raised=to_decimal(raised),
            percent_met=percentage(raised, c.goal_amount),
        )
        for c, raised in rows
    ]
