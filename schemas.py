from pydantic import BaseModel, EmailStr, validator
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
import re

from models import Role, CampaignStatus

MAX_AMOUNT = Decimal("9999999999.99")


def _positive_money(v: Decimal, field: str) -> Decimal:
    if v is None or v <= 0:
        raise ValueError(f'{field} must be greater than zero')
    if v > MAX_AMOUNT:
        raise ValueError(f'{field} is too large')
    if v != v.quantize(Decimal("0.01")):
        raise ValueError(f'{field} can have at most 2 decimal places')
    return v


# ---------- Identity ----------

class SignupRequest(BaseModel):
    email: EmailStr
    national_id: str
    password: str
    role: Role
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @validator('role', pre=True)
    def normalise_role(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
            if v not in Role.__members__:
                raise ValueError('Invalid user type. Must be STAFF or DONOR')
        return v

    @validator('national_id')
    def validate_national_id(cls, v):
        v = v.strip()
        if not re.match(r'^\d{12}$', v):
            raise ValueError('National id must be exactly 12 digits')
        return v

    @validator('password')
    def validate_password(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters')
        # bcrypt only looks at the first 72 bytes
        if len(v.encode('utf-8')) > 72:
            raise ValueError('Password must be at most 72 bytes')
        return v

    @validator('first_name', 'last_name')
    def strip_names(cls, v):
        if v is None:
            return None
        v = v.strip()
        if len(v) > 100:
            raise ValueError('Names must be less than 100 characters')
        return v or None


class SignupResponse(BaseModel):
    message: str
    profile_id: str
    role: Role


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str
    role: Role
    profile_id: str


class TokenData(BaseModel):
    subject_id: str
    profile_id: str
    role: Role


# ---------- Campaigns ----------

class CampaignCreate(BaseModel):
    name: str
    goal_amount: Decimal
    start_date: date
    end_date: date

    @validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Campaign name is required')
        if len(v.strip()) > 200:
            raise ValueError('Campaign name must be less than 200 characters')
        return v.strip()

    @validator('goal_amount')
    def validate_goal(cls, v):
        return _positive_money(v, 'Goal amount')


class CampaignStatusUpdate(BaseModel):
    status: CampaignStatus

    @validator('status', pre=True)
    def normalise_status(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
            if v not in CampaignStatus.__members__:
                raise ValueError('Invalid status provided')
        return v


class Campaign(BaseModel):
    camp_id: str
    name: str
    status: str
    start_date: date
    end_date: date
    goal_amount: float
    raised_amount: float
    manager_staff_id: str


class CampaignTotal(BaseModel):
    camp_id: str
    name: str
    goal_amount: float
    status: str
    total_raised: float


class CampaignFinancials(CampaignTotal):
    percent_met: float


# ---------- Projects ----------

class ProjectCreate(BaseModel):
    name: str
    budget: Decimal
    start_date: date
    camp_id: Optional[str] = None

    @validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Project name is required')
        return v.strip()

    @validator('budget')
    def validate_budget(cls, v):
        return _positive_money(v, 'Budget')

    @validator('camp_id')
    def blank_campaign_is_none(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()


class ExpenseRequest(BaseModel):
    expense_amount: Decimal

    @validator('expense_amount')
    def validate_expense(cls, v):
        return _positive_money(v, 'Expense amount')


class LinkCampaignRequest(BaseModel):
    camp_id: str

    @validator('camp_id')
    def validate_camp_id(cls, v):
        if not v.strip():
            raise ValueError('Campaign ID is required for linking')
        return v.strip()


class Project(BaseModel):
    proj_id: str
    name: str
    budget: float
    spent: float
    status: str
    start_date: date
    overseer_staff_id: str
    camp_id: Optional[str] = None

    class Config:
        from_attributes = True


class ProjectProgress(Project):
    spending_percent: float


class ExpenseResult(BaseModel):
    message: str
    proj_id: str
    new_spent_total: float
    status: str


# ---------- Donations ----------

class DonationCreate(BaseModel):
    camp_id: str
    amount: Decimal
    payment_method: str = "ONLINE"

    @validator('camp_id')
    def validate_camp_id(cls, v):
        if not v.strip():
            raise ValueError('Campaign ID is required')
        return v.strip()

    @validator('amount')
    def validate_amount(cls, v):
        return _positive_money(v, 'Amount')

    @validator('payment_method')
    def validate_payment_method(cls, v):
        v = v.strip().upper()
        if not re.match(r'^[A-Z_]{2,20}$', v):
            raise ValueError('Payment method must be 2-20 letters')
        return v


class DonationRecord(BaseModel):
    don_id: str
    donor_id: str
    camp_id: str
    campaign_name: str
    amount: float
    payment_method: str
    donation_date: datetime


class ReceiptView(DonationRecord):
    donor_name: str
    donor_email: str


class DonorSummary(BaseModel):
    donor_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    national_id: str
    total_given: float
