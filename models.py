from sqlalchemy import Column, String, Date, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, date
import enum
import uuid

# Import Base from database module to ensure consistency
from database import Base

MONEY = Numeric(12, 2)


class Role(str, enum.Enum):
    STAFF = "STAFF"
    DONOR = "DONOR"


class CampaignStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ProjectStatus(str, enum.Enum):
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"


def generate_id(prefix: str) -> str:
    """Return a fresh identifier such as ``CAMP_3F2A9C0D1B7E``."""
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"


class Credential(Base):
    __tablename__ = "credentials"

    user_id = Column(String(40), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    national_id = Column(String(12), unique=True, index=True, nullable=False)
    hashed_password = Column(String(100), nullable=False)
    role = Column(String(10), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    staff = relationship("Staff", back_populates="credential", uselist=False)
    donor = relationship("Donor", back_populates="credential", uselist=False)


class Staff(Base):
    __tablename__ = "staff"

    staff_id = Column(String(40), primary_key=True)
    user_id = Column(String(40), ForeignKey("credentials.user_id"), unique=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    date_joined = Column(Date, default=date.today, nullable=False)

    credential = relationship("Credential", back_populates="staff")


class Donor(Base):
    __tablename__ = "donor"

    donor_id = Column(String(40), primary_key=True)
    user_id = Column(String(40), ForeignKey("credentials.user_id"), unique=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    credential = relationship("Credential", back_populates="donor")


class Campaign(Base):
    __tablename__ = "campaign"

    camp_id = Column(String(40), primary_key=True)
    name = Column(String(200), unique=True, index=True, nullable=False)
    status = Column(String(20), nullable=False, default=CampaignStatus.ACTIVE.value)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    goal_amount = Column(MONEY, nullable=False)
    # Raised totals are never stored; they are summed from donation rows on read.
    manager_staff_id = Column(String(40), ForeignKey("staff.staff_id"), nullable=False)


class Project(Base):
    __tablename__ = "project"

    proj_id = Column(String(40), primary_key=True)
    name = Column(String(200), nullable=False)
    budget = Column(MONEY, nullable=False)
    spent = Column(MONEY, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=ProjectStatus.ONGOING.value)
    start_date = Column(Date, nullable=False)
    overseer_staff_id = Column(String(40), ForeignKey("staff.staff_id"), nullable=False)
    camp_id = Column(String(40), ForeignKey("campaign.camp_id"), nullable=True, index=True)


class Donation(Base):
    __tablename__ = "donation"

    don_id = Column(String(40), primary_key=True)
    donor_id = Column(String(40), ForeignKey("donor.donor_id"), nullable=False, index=True)
    camp_id = Column(String(40), ForeignKey("campaign.camp_id"), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    payment_method = Column(String(20), nullable=False, default="ONLINE")
    donation_date = Column(DateTime, default=datetime.utcnow, nullable=False)
