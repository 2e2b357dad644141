"""
Donation recording and the read-only donation projections.

A donation row is append-only. Because campaign totals are summed from these
rows on read, inserting the row is the whole write; there is no second
statement that could be lost or half-applied.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import ConflictError, ForbiddenError, InternalError, NotFoundError, ValidationError
from models import Campaign, CampaignStatus, Credential, Donation, Donor, Role, generate_id
from money import to_decimal
from schemas import DonationRecord, DonorSummary, ReceiptView

logger = logging.getLogger(__name__)


def record_donation(
    db: Session, donor_id: str, camp_id: str, amount: Decimal, payment_method: str = "ONLINE"
) -> str:
    if amount is None or amount <= 0:
        raise ValidationError("amount must be greater than zero")

    try:
        # row lock serialises the status check against concurrent status changes
        campaign = (
            db.query(Campaign)
            .filter(Campaign.camp_id == camp_id)
            .with_for_update()
            .one_or_none()
        )
        if campaign is None:
            db.rollback()
            raise NotFoundError("Campaign not found.")
        if campaign.status != CampaignStatus.ACTIVE.value:
            db.rollback()
            raise ConflictError("Campaign is not currently active.")

        don_id = generate_id("DON")
        db.add(Donation(
            don_id=don_id,
            donor_id=donor_id,
            camp_id=camp_id,
            amount=amount,
            payment_method=payment_method,
        ))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Unknown donor or campaign.")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error recording donation to campaign %s", camp_id)
        raise InternalError("Internal server error while recording donation.")

    logger.info("Donation %s of %s recorded for campaign %s", don_id, amount, camp_id)
    return don_id


def _donation_rows(db: Session):
    return db.query(Donation, Campaign.name).join(Campaign, Donation.camp_id == Campaign.camp_id)


def _record(donation: Donation, campaign_name: str) -> DonationRecord:
    return DonationRecord(
        don_id=donation.don_id,
        donor_id=donation.donor_id,
        camp_id=donation.camp_id,
        campaign_name=campaign_name,
        amount=to_decimal(donation.amount),
        payment_method=donation.payment_method,
        donation_date=donation.donation_date,
    )


def donation_history(db: Session, role: Role, profile_id: str) -> List[DonationRecord]:
    """Staff see every donation; donors only their own."""
    query = _donation_rows(db)
    if role is Role.DONOR:
        query = query.filter(Donation.donor_id == profile_id)
    rows = query.order_by(desc(Donation.donation_date)).all()
    return [_record(donation, name) for donation, name in rows]


def get_receipt(db: Session, don_id: str, caller_role: Role, caller_profile_id: str) -> ReceiptView:
    row = (
        db.query(Donation, Campaign.name, Donor, Credential.email)
        .join(Campaign, Donation.camp_id == Campaign.camp_id)
        .join(Donor, Donation.donor_id == Donor.donor_id)
        .join(Credential, Donor.user_id == Credential.user_id)
        .filter(Donation.don_id == don_id)
        .first()
    )
    if row is None:
        raise NotFoundError("Donation not found.")

    donation, campaign_name, donor, email = row
    if caller_role is Role.DONOR and donation.donor_id != caller_profile_id:
        raise ForbiddenError("Access denied. You do not own this receipt.")

    donor_name = " ".join(part for part in (donor.first_name, donor.last_name) if part)
    return ReceiptView(
        **_record(donation, campaign_name).model_dump(),
        donor_name=donor_name,
        donor_email=email,
    )


def donor_summary(db: Session) -> List[DonorSummary]:
    totals = (
        db.query(Donation.donor_id.label("donor_id"), func.sum(Donation.amount).label("total"))
        .group_by(Donation.donor_id)
        .subquery()
    )
    rows = (
        db.query(Donor, Credential.email, Credential.national_id, totals.c.total)
        .join(Credential, Donor.user_id == Credential.user_id)
        .outerjoin(totals, totals.c.donor_id == Donor.donor_id)
        .all()
    )
    summary = [
        DonorSummary(
            donor_id=donor.donor_id,
            first_name=donor.first_name,
            last_name=donor.last_name,
            email=email,
            national_id=national_id,
            total_given=to_decimal(total),
        )
        for donor, email, national_id, total in rows
    ]
    summary.sort(key=lambda d: d.total_given, reverse=True)
    return summary


EXPORT_COLUMNS = [
    "Donation ID", "Donor ID", "Donor Name", "Campaign ID", "Campaign",
    "Amount", "Payment Method", "Donated At",
]


def export_rows(db: Session, camp_id: Optional[str] = None) -> List[dict]:
    """Flatten the donation ledger for CSV/Excel export."""
    query = (
        db.query(Donation, Campaign.name, Donor)
        .join(Campaign, Donation.camp_id == Campaign.camp_id)
        .join(Donor, Donation.donor_id == Donor.donor_id)
    )
    if camp_id:
        query = query.filter(Donation.camp_id == camp_id)

    data = []
    for donation, campaign_name, donor in query.order_by(desc(Donation.donation_date)).all():
        data.append({
            "Donation ID": donation.don_id,
            "Donor ID": donation.donor_id,
            "Donor Name": " ".join(p for p in (donor.first_name, donor.last_name) if p),
            "Campaign ID": donation.camp_id,
            "Campaign": campaign_name,
            "Amount": float(to_decimal(donation.amount)),
            "Payment Method": donation.payment_method,
            "Donated At": donation.donation_date.strftime("%Y-%m-%d %H:%M:%S"),
        })
    return data
