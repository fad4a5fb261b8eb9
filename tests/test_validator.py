from app.payouts.validator import BELOW_MINIMUM, PARTNER_NOT_FOUND, validate_payout_request


def test_below_minimum(partners):
    r = validate_payout_request(partners, "partner-1", 500, min_amount_cents=1000)
    assert not r.ok
    assert r.error_code == BELOW_MINIMUM
    assert r.message == "Minimum payout amount is $10.00"


def test_minimum_is_inclusive(partners):
    r = validate_payout_request(partners, "partner-1", 1000, min_amount_cents=1000)
    assert r.ok
    assert r.partner.id == "partner-1"


def test_unknown_partner(partners):
    r = validate_payout_request(partners, "non-existent", 10_000, min_amount_cents=1000)
    assert not r.ok
    assert r.error_code == PARTNER_NOT_FOUND


def test_amount_is_checked_before_partner_lookup(partners):
    r = validate_payout_request(partners, "non-existent", 500, min_amount_cents=1000)
    assert r.error_code == BELOW_MINIMUM
