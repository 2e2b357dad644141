"""
Project budget rule.

``record_expense`` enforces ``spent <= budget`` with a single conditional
UPDATE so two concurrent expenses can never both pass a stale check.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import case, desc, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import BudgetExceededError, InternalError, NotFoundError, ValidationError
from models import Campaign, Project, ProjectStatus, generate_id
from money import percentage, to_decimal
from schemas import ExpenseResult, Project as ProjectView, ProjectProgress

logger = logging.getLogger(__name__)


def _campaign_exists(db: Session, camp_id: str) -> bool:
    return db.query(Campaign.camp_id).filter(Campaign.camp_id == camp_id).first() is not None


def create_project(
    db: Session,
    name: str,
    budget: Decimal,
    start: date,
    manager_id: str,
    camp_id: Optional[str] = None,
) -> str:
    if budget is None or budget <= 0:
        raise ValidationError("budget must be greater than zero")
    if camp_id is not None and not _campaign_exists(db, camp_id):
        raise ValidationError("Invalid Campaign ID provided.")

    proj_id = generate_id("PROJ")
    db.add(Project(
        proj_id=proj_id,
        name=name,
        budget=budget,
        spent=Decimal("0"),
        status=ProjectStatus.ONGOING.value,
        start_date=start,
        overseer_staff_id=manager_id,
        camp_id=camp_id,
    ))
    try:
        db.commit()
    except IntegrityError:
        # the campaign vanished between the check and the insert
        db.rollback()
        raise ValidationError("Invalid Campaign ID provided.")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating project %r", name)
        raise InternalError("Internal server error while creating project.")

    logger.info("Project %s (%s) created by %s, campaign=%s", proj_id, name, manager_id, camp_id)
    return proj_id


def record_expense(db: Session, proj_id: str, amount: Decimal) -> ExpenseResult:
    if amount is None or amount <= 0:
        raise ValidationError("Invalid expense amount provided.")

    # rounded in SQL so REAL-backed stores (SQLite) compare whole cents
    new_spent = func.round(Project.spent + amount, 2, type_=Project.spent.type)
    rounded_budget = func.round(Project.budget, 2, type_=Project.budget.type)
    stmt = (
        update(Project)
        .where(Project.proj_id == proj_id, new_spent <= rounded_budget)
        .values(
            spent=new_spent,
            status=case(
                (new_spent >= rounded_budget, ProjectStatus.COMPLETED.value),
                else_=Project.status,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.execute(stmt)
        if result.rowcount == 0:
            db.rollback()
            project = db.get(Project, proj_id)
            if project is None:
                raise NotFoundError("Project not found.")
            budget = to_decimal(project.budget)
            spent = to_decimal(project.spent)
            logger.info(
                "Expense of %s rejected for project %s (budget %s, spent %s)",
                amount, proj_id, budget, spent,
            )
            raise BudgetExceededError(remaining=budget - spent, attempted=to_decimal(amount), budget=budget)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error recording expense for project %s", proj_id)
        raise InternalError("Internal server error while recording expense.")

    project = db.get(Project, proj_id, populate_existing=True)
    logger.info("Expense of %s recorded for project %s", amount, proj_id)
    return ExpenseResult(
        message=f"Expense of {to_decimal(amount):,.2f} successfully added to project '{project.name}'.",
        proj_id=proj_id,
        new_spent_total=to_decimal(project.spent),
        status=project.status,
    )


def link_campaign(db: Session, proj_id: str, camp_id: str):
    if not camp_id:
        raise ValidationError("Campaign ID is required for linking.")

    project = db.get(Project, proj_id)
    if project is None:
        raise NotFoundError("Project not found.")
    if not _campaign_exists(db, camp_id):
        raise NotFoundError("Campaign not found.")

    project.camp_id = camp_id
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Invalid Campaign ID provided.")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error linking project %s to campaign %s", proj_id, camp_id)
        raise InternalError("Internal server error while linking project.")

    logger.info("Project %s linked to campaign %s", proj_id, camp_id)


def list_projects(db: Session) -> List[ProjectView]:
    projects = db.query(Project).order_by(desc(Project.start_date)).all()
    return [ProjectView.model_validate(p) for p in projects]


def progress(db: Session) -> List[ProjectProgress]:
    projects = db.query(Project).order_by(desc(Project.spent)).all()
    return [
        ProjectProgress(
            **ProjectView.model_validate(p).model_dump(),
            spending_percent=percentage(p.spent, p.budget),
        )
        for p in projects
    ]
