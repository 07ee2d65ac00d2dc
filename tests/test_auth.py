from datetime import datetime, timedelta

import pytest

from taxidesk import auth, models
from taxidesk.auth import (
    AuthStep,
    CodeExpiredError,
    InvalidCodeError,
    InvalidPhoneError,
    OtpService,
    PhoneAuthState,
    ProfileDetailsRequiredError,
    TooManyAttemptsError,
)


class Outbox:
    def __init__(self):
        self.sent = []

    def send(self, phone, code):
        self.sent.append((phone, code))

    @property
    def code(self):
        return self.sent[-1][1]


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def service(outbox):
    return OtpService(sender=outbox, max_attempts=3)


def wrong(code):
    return "000000" if code != "000000" else "111111"


def test_issue_code_normalizes_phone_and_sends_six_digits(db, service, outbox):
    issued = service.issue_code(db, " 98765 43210 ")
    assert issued.phone == "9876543210"
    assert issued.is_new_user is True
    phone, code = outbox.sent[0]
    assert phone == "9876543210"
    assert len(code) == 6 and code.isdigit()
    challenge = db.query(models.OtpChallenge).one()
    assert challenge.code_hash != code


def test_short_phone_is_rejected(db, service):
    with pytest.raises(InvalidPhoneError):
        service.issue_code(db, "12345")


def test_first_profile_becomes_admin(db, service, outbox):
    service.issue_code(db, "9876543210")
    profile = service.verify_code(db, "9876543210", outbox.code, full_name="Owner", role="driver2")
    assert profile.role == "admin"
    assert profile.full_name == "Owner"


def test_admin_only_granted_when_none_exists(db, service, outbox):
    service.issue_code(db, "9876543210")
    service.verify_code(db, "9876543210", outbox.code, full_name="Owner", role="admin")

    service.issue_code(db, "9000000001")
    second = service.verify_code(db, "9000000001", outbox.code, full_name="Driver", role="admin")
    assert second.role == "driver1"

    service.issue_code(db, "9000000002")
    third = service.verify_code(db, "9000000002", outbox.code, full_name="Other", role="driver3")
    assert third.role == "driver3"


def test_returning_user_is_not_new(db, service, outbox):
    service.issue_code(db, "9876543210")
    service.verify_code(db, "9876543210", outbox.code, full_name="Owner")
    assert service.issue_code(db, "9876543210").is_new_user is False
    profile = service.verify_code(db, "9876543210", outbox.code)
    assert profile.full_name == "Owner"


def test_new_user_needs_a_name(db, service, outbox):
    service.issue_code(db, "9876543210")
    with pytest.raises(ProfileDetailsRequiredError):
        service.verify_code(db, "9876543210", outbox.code)


def test_wrong_code_then_lockout(db, service, outbox):
    service.issue_code(db, "9876543210")
    bad = wrong(outbox.code)
    with pytest.raises(InvalidCodeError):
        service.verify_code(db, "9876543210", bad, full_name="Owner")
    with pytest.raises(InvalidCodeError):
        service.verify_code(db, "9876543210", bad, full_name="Owner")
    with pytest.raises(TooManyAttemptsError):
        service.verify_code(db, "9876543210", bad, full_name="Owner")
    # the right code no longer works either
    with pytest.raises(InvalidCodeError):
        service.verify_code(db, "9876543210", outbox.code, full_name="Owner")


def test_expired_code(db, service, outbox):
    service.issue_code(db, "9876543210", now=datetime.utcnow() - timedelta(hours=1))
    with pytest.raises(CodeExpiredError):
        service.verify_code(db, "9876543210", outbox.code, full_name="Owner")


def test_code_is_single_use(db, service, outbox):
    service.issue_code(db, "9876543210")
    code = outbox.code
    service.verify_code(db, "9876543210", code, full_name="Owner")
    with pytest.raises(InvalidCodeError):
        service.verify_code(db, "9876543210", code)


def test_new_code_replaces_old_one(db, service, outbox):
    service.issue_code(db, "9876543210")
    first = outbox.code
    service.issue_code(db, "9876543210")
    if first != outbox.code:
        with pytest.raises(InvalidCodeError):
            service.verify_code(db, "9876543210", first, full_name="Owner")
    assert service.verify_code(db, "9876543210", outbox.code, full_name="Owner").id


# ---------------- state machine ----------------

def test_state_happy_path(db, service, outbox):
    state = PhoneAuthState()
    state = auth.request_code(state, db, service, "98765 43210")
    assert state.step is AuthStep.OTP_ENTRY
    assert state.phone == "9876543210"
    assert state.is_new_user is True

    state = auth.verify_code(state, db, service, outbox.code, full_name="Owner", role="admin")
    assert state.step is AuthStep.AUTHENTICATED
    assert state.user_id is not None


def test_request_failure_stays_on_phone_entry(db, service):
    state = auth.request_code(PhoneAuthState(), db, service, "123")
    assert state.step is AuthStep.PHONE_ENTRY
    assert state.error


def test_verify_failure_stays_on_code_entry(db, service, outbox):
    state = auth.request_code(PhoneAuthState(), db, service, "9876543210")
    state = auth.verify_code(state, db, service, wrong(outbox.code), full_name="Owner")
    assert state.step is AuthStep.OTP_ENTRY
    assert state.error == "Invalid code. Please try again."
    assert state.is_new_user is True


def test_verify_ignored_outside_code_entry(db, service):
    state = PhoneAuthState()
    assert auth.verify_code(state, db, service, "123456") == state


def test_change_number_returns_to_phone_entry(db, service):
    state = auth.request_code(PhoneAuthState(), db, service, "9876543210")
    state = auth.change_number(state)
    assert state.step is AuthStep.PHONE_ENTRY
    assert state.is_new_user is False


def test_state_session_round_trip():
    state = PhoneAuthState(AuthStep.OTP_ENTRY, "9876543210", True, "oops")
    assert PhoneAuthState.from_dict(state.to_dict()) == state
    assert PhoneAuthState.from_dict({"step": "nonsense"}) == PhoneAuthState()
    assert PhoneAuthState.from_dict(None) == PhoneAuthState()
