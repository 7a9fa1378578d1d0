import pytest

from app import enquiry

COMPANY = {"id": 7, "email": "hr@acme.test", "user_type": "company"}


@pytest.fixture
def gateway(monkeypatch):
    """Stub storage calls and record what the enquiry flow does."""
    state = {
        "verdict": {"can_contact": True, "reason": "subscription_valid"},
        "payments": [],
        "usage": [],
        "existing": None,
    }

    monkeypatch.setattr(enquiry, "get_admin_settings", lambda: {"enquiry_fee": 5.0})
    monkeypatch.setattr(enquiry, "can_user_contact_professional", lambda uid: state["verdict"])
    monkeypatch.setattr(enquiry, "find_enquiry_payment", lambda company_id, professional_id: state["existing"])

    def fake_payment(company_id, professional_id, amount, method, transaction_id=None, payment_data=None):
        state["payments"].append(
            {"amount": amount, "method": method, "transaction_id": transaction_id, "data": payment_data}
        )
        return 99

    monkeypatch.setattr(enquiry, "process_enquiry_payment", fake_payment)
    monkeypatch.setattr(enquiry, "increment_subscription_usage", lambda uid, kind: state["usage"].append((uid, kind)))
    return state


@pytest.mark.parametrize("fee,flow", [(0, "free"), (None, "free"), (0.0, "free"), (5, "paid"), (0.01, "paid")])
def test_enquiry_flow(fee, flow):
    assert enquiry.enquiry_flow(fee) == flow


def test_contact_button_label():
    assert enquiry.contact_button_label(0) == "Send Message"
    assert enquiry.contact_button_label(5) == "Pay £5 & Contact"
    assert enquiry.contact_button_label(2.5) == "Pay £2.50 & Contact"


def test_free_flow_records_zero_payment_and_counts_usage(gateway):
    completed = []
    outcome = enquiry.contact_professional(COMPANY, 42, fee=0, on_complete=completed.append)

    assert outcome.ok is True
    assert outcome.flow == "free"
    assert outcome.payment_id == 99
    assert gateway["payments"][0]["amount"] == 0
    assert gateway["payments"][0]["method"] == "free"
    assert gateway["payments"][0]["transaction_id"] is None
    assert gateway["payments"][0]["data"]["type"] == "free_enquiry"
    assert gateway["usage"] == [(7, "contact")]
    assert completed == [99]


def test_paid_flow_uses_admin_fee_and_simulated_gateway(gateway):
    outcome = enquiry.contact_professional(COMPANY, 42)

    assert outcome.ok is True
    assert outcome.flow == "paid"
    payment = gateway["payments"][0]
    assert payment["amount"] == 5.0
    assert payment["method"] == "simulated_payment"
    assert payment["transaction_id"].startswith("txn_")
    assert payment["data"]["currency"] == "GBP"
    assert payment["data"]["payment_gateway"] == "simulated"


def test_no_user_needs_authentication(gateway):
    outcome = enquiry.contact_professional(None, 42)
    assert outcome.ok is False
    assert outcome.error == enquiry.AUTH_REQUIRED
    assert gateway["payments"] == []


def test_no_subscription_stops_before_payment(gateway):
    gateway["verdict"] = {"can_contact": False, "reason": "no_subscription"}
    completed = []
    outcome = enquiry.contact_professional(COMPANY, 42, fee=0, on_complete=completed.append)

    assert outcome.ok is False
    assert "active subscription" in outcome.error
    assert gateway["payments"] == []
    assert gateway["usage"] == []
    assert completed == []


def test_contact_limit_message_shows_usage(gateway):
    gateway["verdict"] = {"can_contact": False, "reason": "contact_limit_exceeded", "contacts_used": 10, "contacts_limit": 10}
    outcome = enquiry.contact_professional(COMPANY, 42, fee=0)
    assert "(10/10)" in outcome.error


def test_other_denials_use_generic_message(gateway):
    gateway["verdict"] = {"can_contact": False, "reason": "invalid_user_type"}
    outcome = enquiry.contact_professional(COMPANY, 42, fee=0)
    assert outcome.error == enquiry.NOT_AUTHORIZED


def test_permission_check_failure(gateway, monkeypatch):
    def boom(uid):
        raise RuntimeError("db down")

    monkeypatch.setattr(enquiry, "can_user_contact_professional", boom)
    outcome = enquiry.contact_professional(COMPANY, 42, fee=0)
    assert outcome.ok is False
    assert outcome.error == enquiry.CHECK_FAILED


def test_payment_failure_does_not_count_usage(gateway, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("gateway down")

    monkeypatch.setattr(enquiry, "process_enquiry_payment", boom)
    outcome = enquiry.contact_professional(COMPANY, 42, fee=5)
    assert outcome.ok is False
    assert outcome.error == enquiry.PAYMENT_FAILED
    assert outcome.flow == "paid"
    assert gateway["usage"] == []


def test_unexpected_error_is_reported(gateway):
    def broken_callback(payment_id):
        raise RuntimeError("ui gone")

    outcome = enquiry.contact_professional(COMPANY, 42, fee=0, on_complete=broken_callback)
    assert outcome.ok is False
    assert outcome.error == enquiry.UNEXPECTED_ERROR


def test_repeat_enquiry_reuses_payment_without_counting(gateway):
    gateway["existing"] = 31
    gateway["verdict"] = {"can_contact": False, "reason": "contact_limit_exceeded", "contacts_used": 1, "contacts_limit": 1}
    completed = []

    outcome = enquiry.contact_professional(COMPANY, 42, fee=5, on_complete=completed.append)

    assert outcome.ok is True
    assert outcome.payment_id == 31
    assert gateway["payments"] == []
    assert gateway["usage"] == []
    assert completed == [31]


def test_usage_counter_failure_still_completes_enquiry(gateway, monkeypatch, caplog):
    def broken_counter(uid, kind):
        raise RuntimeError("counter table locked")

    monkeypatch.setattr(enquiry, "increment_subscription_usage", broken_counter)
    completed = []

    with caplog.at_level("WARNING"):
        outcome = enquiry.contact_professional(COMPANY, 42, fee=5, on_complete=completed.append)

    assert outcome.ok is True
    assert outcome.payment_id == 99
    assert completed == [99]
    assert len(gateway["payments"]) == 1
    assert any("Could not count contact" in rec.message for rec in caplog.records)
