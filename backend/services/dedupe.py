"""
Identity matching for imported leads.

A lead's identity is any of: external (source-system) id, email, normalized
phone. The index is built once per import run from the active leads, so each
row is checked with three dict lookups instead of a scan over every lead.
"""

import re
from typing import Dict, Iterable, Optional


_VENDOR_PREFIX = re.compile(r"^\s*p:", re.IGNORECASE)
_NON_DIGITS = re.compile(r"\D")


def strip_vendor_prefix(phone: Optional[str]) -> str:
    """Drop the literal 'p:' token some lead-ad exports put before numbers."""
    if not phone:
        return ""
    return _VENDOR_PREFIX.sub("", str(phone)).strip()


def normalize_phone(phone: Optional[str]) -> str:
    cleaned = strip_vendor_prefix(phone)
    if not cleaned:
        return ""

    digits = _NON_DIGITS.sub("", cleaned)
    if not digits:
        return ""

    return ("+" if cleaned.startswith("+") else "") + digits


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def normalize_external_id(external_id: Optional[str]) -> str:
    return (external_id or "").strip()


class DuplicateIndex:

    def __init__(self):
        self.by_external_id: Dict[str, str] = {}
        self.by_email: Dict[str, str] = {}
        self.by_phone: Dict[str, str] = {}

    @classmethod
    def build(cls, leads: Iterable) -> "DuplicateIndex":
        index = cls()
        for lead in leads:
            if getattr(lead, "is_deleted", False):
                continue
            index.add(lead)
        return index

    def __len__(self):
        return len(
            set(self.by_external_id.values())
            | set(self.by_email.values())
            | set(self.by_phone.values())
        )

    def add(self, lead) -> None:
        ext = normalize_external_id(lead.external_lead_id)
        email = normalize_email(lead.email)
        phone = normalize_phone(lead.contact_number)

        if ext:
            self.by_external_id.setdefault(ext, lead.id)
        if email:
            self.by_email.setdefault(email, lead.id)
        if phone:
            self.by_phone.setdefault(phone, lead.id)

    def match(
        self,
        external_id: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[str]:
        """Return which identity key matched ('external_id', 'email', 'phone'), or None."""

        ext = normalize_external_id(external_id)
        if ext and ext in self.by_external_id:
            return "external_id"

        mail = normalize_email(email)
        if mail and mail in self.by_email:
            return "email"

        ph = normalize_phone(phone)
        if ph and ph in self.by_phone:
            return "phone"

        return None

    def is_duplicate(self, candidate) -> bool:
        return self.match(
            external_id=candidate.external_id,
            email=candidate.email,
            phone=candidate.phone,
        ) is not None
