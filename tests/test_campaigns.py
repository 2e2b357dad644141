from datetime import date
from decimal import Decimal

import pytest

from errors import ConflictError, NotFoundError, ValidationError
from models import Campaign, CampaignStatus
import campaigns
import donations


def test_create_campaign_starts_active_with_nothing_raised(db, staff_id):
    camp_id = campaigns.create_campaign(
        db, "School Books", Decimal("2500.50"), date(2026, 3, 1), date(2026, 6, 1), staff_id
    )

    view = campaigns.get_campaign(db, camp_id)
    assert camp_id.startswith("CAMP_")
    assert view.status == "ACTIVE"
    assert view.raised_amount == 0
    assert view.goal_amount == 2500.5
    assert view.manager_staff_id == staff_id


def test_create_campaign_validates_goal_and_dates(db, staff_id):
    with pytest.raises(ValidationError):
        campaigns.create_campaign(db, "Zero", Decimal("0"), date(2026, 1, 1), date(2026, 2, 1), staff_id)
    with pytest.raises(ValidationError):
        campaigns.create_campaign(db, "Backwards", Decimal("10"), date(2026, 2, 1), date(2026, 1, 1), staff_id)
    with pytest.raises(ValidationError):
        campaigns.create_campaign(db, "Same day", Decimal("10"), date(2026, 2, 1), date(2026, 2, 1), staff_id)


def test_duplicate_campaign_name_is_a_conflict(db, staff_id, campaign_id):
    with pytest.raises(ConflictError):
        campaigns.create_campaign(
            db, "Clean Water", Decimal("500"), date(2027, 1, 1), date(2027, 2, 1), staff_id
        )
    assert db.query(Campaign).count() == 1


def test_any_status_is_reachable_from_any_status(db, campaign_id):
    for status in ("CANCELLED", "ACTIVE", "COMPLETED", "active"):
        campaigns.set_status(db, campaign_id, status)
        assert campaigns.get_campaign(db, campaign_id).status == status.upper()


def test_set_status_rejects_unknown_status_and_campaign(db, campaign_id):
    with pytest.raises(ValidationError):
        campaigns.set_status(db, campaign_id, "PAUSED")
    with pytest.raises(NotFoundError):
        campaigns.set_status(db, "CAMP_MISSING", CampaignStatus.COMPLETED)


def test_list_active_only_returns_active_newest_first(db, staff_id):
    older = campaigns.create_campaign(db, "Older", Decimal("100"), date(2025, 1, 1), date(2025, 6, 1), staff_id)
    newer = campaigns.create_campaign(db, "Newer", Decimal("100"), date(2026, 1, 1), date(2026, 6, 1), staff_id)
    cancelled = campaigns.create_campaign(db, "Gone", Decimal("100"), date(2027, 1, 1), date(2027, 6, 1), staff_id)
    campaigns.set_status(db, cancelled, "CANCELLED")

    assert [c.camp_id for c in campaigns.list_active(db)] == [newer, older]
    assert len(campaigns.list_campaigns(db)) == 3


def test_financial_summary_goal_met_beyond_hundred_percent(db, campaign_id, donor_id):
    for amount in ("5000", "3000", "1500", "1000"):
        donations.record_donation(db, donor_id, campaign_id, Decimal(amount))

    (row,) = campaigns.financial_summary(db)
    assert row.total_raised == 10500
    assert row.percent_met == 105.0


def test_financial_summary_rounds_to_two_places(db, staff_id, donor_id):
    camp_id = campaigns.create_campaign(db, "Thirds", Decimal("300"), date(2026, 1, 1), date(2026, 2, 1), staff_id)
    donations.record_donation(db, donor_id, camp_id, Decimal("100"))

    (row,) = campaigns.financial_summary(db)
    assert row.percent_met == 33.33


def test_financial_summary_zero_goal_is_zero_percent(db, staff_id):
    db.add(Campaign(
        camp_id="CAMP_ZERO",
        name="Legacy import",
        status="ACTIVE",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 2, 1),
        goal_amount=Decimal("0"),
        manager_staff_id=staff_id,
    ))
    db.commit()

    (row,) = campaigns.financial_summary(db)
    assert row.percent_met == 0
    assert row.total_raised == 0


def test_raised_summary_includes_campaigns_without_donations(db, staff_id, campaign_id, donor_id):
    empty = campaigns.create_campaign(db, "Empty", Decimal("50"), date(2026, 1, 1), date(2026, 2, 1), staff_id)
    donations.record_donation(db, donor_id, campaign_id, Decimal("40"))

    totals = {row.camp_id: row.total_raised for row in campaigns.raised_summary(db)}
    assert totals == {campaign_id: 40, empty: 0}
