"""Signup and login: credentials plus exactly one role profile per user."""

import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from auth import get_password_hash, verify_password
from errors import AuthError, ConflictError, InternalError
from models import Credential, Donor, Role, Staff, generate_id
from schemas import SignupRequest, TokenData

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "This email or national id number is already registered."


def register(db: Session, signup: SignupRequest) -> str:
    """Create a credential and its role profile in one transaction.

    Returns the role-scoped profile id (``S_...`` for staff, ``D_...`` for donors).
    """
    email = signup.email.lower()
    existing = (
        db.query(Credential.user_id)
        .filter(or_(Credential.email == email, Credential.national_id == signup.national_id))
        .first()
    )
    if existing:
        raise ConflictError(DUPLICATE_MESSAGE)

    user_id = generate_id(signup.role.value)
    credential = Credential(
        user_id=user_id,
        email=email,
        national_id=signup.national_id,
        hashed_password=get_password_hash(signup.password),
        role=signup.role.value,
    )
    if signup.role is Role.STAFF:
        profile_id = generate_id("S")
        profile = Staff(
            staff_id=profile_id,
            user_id=user_id,
            first_name=signup.first_name,
            last_name=signup.last_name,
        )
    else:
        profile_id = generate_id("D")
        profile = Donor(
            donor_id=profile_id,
            user_id=user_id,
            first_name=signup.first_name,
            last_name=signup.last_name,
        )

    try:
        db.add(credential)
        db.flush()
        db.add(profile)
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent signup for the same email or national id
        db.rollback()
        raise ConflictError(DUPLICATE_MESSAGE)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Signup failed for role %s", signup.role.value)
        raise InternalError("Internal server error during registration.")

    logger.info("Registered %s profile %s", signup.role.value, profile_id)
    return profile_id


def authenticate(db: Session, email: str, password: str) -> TokenData:
    """Check a login and resolve the caller's role profile. Never mutates state."""
    credential = db.query(Credential).filter(Credential.email == email.lower()).first()
    if credential is None or not verify_password(password, credential.hashed_password):
        raise AuthError("Incorrect email or password")

    role = Role(credential.role)
    profile = credential.staff if role is Role.STAFF else credential.donor
    if profile is None:
        logger.error("Credential %s has no %s profile", credential.user_id, role.value)
        raise InternalError("User profile not found after login.")

    profile_id = profile.staff_id if role is Role.STAFF else profile.donor_id
    return TokenData(subject_id=credential.user_id, profile_id=profile_id, role=role)
