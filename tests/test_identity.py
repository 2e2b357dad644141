from datetime import timedelta
from decimal import Decimal

import pytest
from jose import jwt
from pydantic import ValidationError as SchemaError

from auth import ALGORITHM, SECRET_KEY, create_access_token, get_password_hash, is_authorized, verify_password, verify_token
from errors import AuthError, ConflictError
from models import Credential, Donor, Role, Staff
from schemas import ExpenseRequest, SignupRequest, TokenData
import identity

from conftest import signup


def test_register_staff_creates_credential_and_profile(db):
    profile_id = signup(db, "staff", "Lead@NGO.org", "123456789012", "Meera", "Iyer")

    assert profile_id.startswith("S_")
    staff = db.get(Staff, profile_id)
    assert staff.first_name == "Meera"
    assert staff.credential.email == "lead@ngo.org"
    assert staff.credential.role == "STAFF"
    assert staff.credential.hashed_password != "secret123"
    assert staff.date_joined is not None


def test_register_donor_returns_donor_profile(db):
    profile_id = signup(db, "DONOR", "giver@example.com", "123456789012")

    assert profile_id.startswith("D_")
    assert db.get(Donor, profile_id) is not None


@pytest.mark.parametrize("email,national_id", [
    ("donor.a@example.com", "999999999999"),
    ("someone.else@example.com", "222222222222"),
    ("DONOR.A@example.com", "999999999999"),
])
def test_duplicate_email_or_national_id_is_a_conflict(db, donor_id, email, national_id):
    before = db.query(Credential).count()

    with pytest.raises(ConflictError):
        signup(db, "DONOR", email, national_id)

    assert db.query(Credential).count() == before


@pytest.mark.parametrize("field,value", [
    ("national_id", "12345"),
    ("national_id", "12345678901a"),
    ("email", "not-an-email"),
    ("password", "short"),
    ("role", "ADMIN"),
])
def test_signup_request_rejects_malformed_input(field, value):
    data = dict(email="x@example.com", national_id="123456789012", password="secret123", role="DONOR")
    data[field] = value
    with pytest.raises(SchemaError):
        SignupRequest(**data)


def test_authenticate_resolves_role_profile(db, staff_id):
    user = identity.authenticate(db, "STAFF@ngo.org", "secret123")

    assert user.role is Role.STAFF
    assert user.profile_id == staff_id
    assert user.subject_id.startswith("STAFF_")


def test_authenticate_rejects_wrong_password_and_unknown_email(db, donor_id):
    with pytest.raises(AuthError):
        identity.authenticate(db, "donor.a@example.com", "wrong-password")
    with pytest.raises(AuthError):
        identity.authenticate(db, "nobody@example.com", "secret123")


def test_password_hash_round_trip():
    hashed = get_password_hash("correct horse")
    assert verify_password("correct horse", hashed)
    assert not verify_password("battery staple", hashed)
    assert not verify_password("correct horse", "not-a-bcrypt-hash")


def test_token_carries_identity():
    identity_in = TokenData(subject_id="DONOR_1", profile_id="D_1", role=Role.DONOR)
    assert verify_token(create_access_token(identity_in)) == identity_in


def test_expired_or_malformed_tokens_fail_closed():
    expired = create_access_token(
        TokenData(subject_id="DONOR_1", profile_id="D_1", role=Role.DONOR),
        expires_delta=timedelta(seconds=-5),
    )
    with pytest.raises(AuthError):
        verify_token(expired)
    with pytest.raises(AuthError):
        verify_token("not.a.token")


def test_token_without_expiry_is_rejected():
    token = jwt.encode({"sub": "DONOR_1", "pid": "D_1", "role": "DONOR"}, SECRET_KEY, algorithm=ALGORITHM)
    with pytest.raises(AuthError):
        verify_token(token)


@pytest.mark.parametrize("value,accepted", [
    ("1.000", True),
    ("12.50", True),
    ("0.01", True),
    ("1.005", False),
    ("0.001", False),
])
def test_money_precision_is_checked_by_value(value, accepted):
    if accepted:
        assert ExpenseRequest(expense_amount=value).expense_amount == Decimal(value)
    else:
        with pytest.raises(SchemaError):
            ExpenseRequest(expense_amount=value)


def test_role_predicate():
    assert is_authorized(Role.STAFF, {Role.STAFF})
    assert is_authorized(Role.DONOR, {Role.STAFF, Role.DONOR})
    assert not is_authorized(Role.DONOR, {Role.STAFF})
