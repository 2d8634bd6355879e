from types import SimpleNamespace

import pytest

from backend.services.dedupe import (
    DuplicateIndex,
    normalize_email,
    normalize_phone,
    strip_vendor_prefix,
)


def make_lead(id, phone="", email=None, external_id=None, is_deleted=False):
    return SimpleNamespace(
        id=id,
        contact_number=phone,
        email=email,
        external_lead_id=external_id,
        is_deleted=is_deleted,
    )


@pytest.mark.parametrize("raw, expected", [
    ("p:+91 98765 43210", "+919876543210"),
    ("P: 98765-43210", "9876543210"),
    ("(555) 123-4567", "5551234567"),
    ("+1 555 123 4567", "+15551234567"),
    ("", ""),
    (None, ""),
    ("p:", ""),
])
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_strip_vendor_prefix_keeps_formatting():
    assert strip_vendor_prefix("p:+91 98765 43210") == "+91 98765 43210"


def test_normalize_email():
    assert normalize_email("  Jane@Example.COM ") == "jane@example.com"
    assert normalize_email(None) == ""


def test_match_reports_first_matching_key():
    index = DuplicateIndex.build([
        make_lead("a", phone="+91 98765 43210", email="jane@example.com", external_id="l:1"),
    ])

    assert index.match(external_id="l:1") == "external_id"
    assert index.match(email="JANE@example.com") == "email"
    assert index.match(phone="p:+919876543210") == "phone"
    assert index.match(external_id="l:2", email="other@example.com", phone="111") is None


def test_phone_with_and_without_plus_are_distinct():
    index = DuplicateIndex.build([make_lead("a", phone="+919876543210")])

    assert index.match(phone="919876543210") is None


def test_deleted_leads_are_not_indexed():
    index = DuplicateIndex.build([make_lead("a", phone="12345", is_deleted=True)])

    assert len(index) == 0
    assert index.match(phone="12345") is None


def test_add_makes_lead_visible_to_later_rows():
    index = DuplicateIndex()
    assert index.match(phone="12345") is None

    index.add(make_lead("a", phone="12345"))

    assert index.match(phone="123-45") == "phone"
    assert len(index) == 1


def test_empty_keys_never_match():
    index = DuplicateIndex.build([make_lead("a", phone="", email="", external_id="")])

    assert index.match(external_id="", email="", phone="") is None
    assert index.is_duplicate(SimpleNamespace(external_id=None, email=None, phone="")) is False
