"""
Spreadsheet row -> lead payload.

Sheet feeds name the same column several ways (``name`` / ``full_name``,
``phone`` / ``phone_number`` ...). ``resolve_row`` collapses a raw row into a
typed ``CandidateRow`` before any dedupe or insert logic sees it, and
``to_lead_payload`` applies the mapping rules for the lead store.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional

import pandas as pd

from backend.services.dedupe import normalize_phone, strip_vendor_prefix
from backend.services.exceptions import RowValidationError


# Canonical field -> accepted column names, first non-empty wins
COLUMN_ALIASES: Dict[str, tuple] = {
    "external_id": ("id", "external_id", "lead_id"),
    "name": ("name", "client_name", "full_name"),
    "phone": ("phone", "phone_number", "contact_number"),
    "email": ("email",),
    "source": ("source",),
    "interested_areas": ("interested_areas",),
    "interested_projects": ("interested_projects",),
    "ownership": ("ownership",),
    "furnishing": ("furnishing",),
    "assigned_user_id": ("assigned_user_id",),
    "platform": ("platform",),
    "campaign_name": ("campaign_name",),
    "ad_name": ("ad_name",),
    "adset_name": ("adset_name",),
    "form_name": ("form_name",),
    "configuration_requested": (
        "configuration_requested",
        "configuration_you_are_looking_for",
    ),
    "is_organic": ("is_organic",),
    "lead_created_time": ("lead_created_time", "created_time"),
    "lead_status": ("lead_status",),
}

TEST_NAME_PREFIX = "<test lead"
TEST_PHONE_PREFIX = "p:<test lead"
TEST_EMAIL_PREFIX = "test@"
TEST_ID_PREFIX = "<test"

_TRUE_VALUES = ("true", "1", "yes", "y")
_FALSE_VALUES = ("false", "0", "no", "n")

_HEADER_JUNK = re.compile(r"[^a-z0-9]+")


def normalize_header(name) -> str:
    """'Phone Number' -> 'phone_number', 'configuration you are looking for?' -> 'configuration_you_are_looking_for'"""
    return _HEADER_JUNK.sub("_", str(name).strip().lower()).strip("_")


def normalize_columns(raw: Mapping) -> Dict[str, str]:
    row = {}
    for key, value in raw.items():
        col = normalize_header(key)
        if not col:
            continue
        text = "" if value is None else str(value).strip()
        # Keep the first non-empty value when two headers normalize alike
        if col not in row or not row[col]:
            row[col] = text
    return row


@dataclass
class CandidateRow:
    name: str = ""
    phone: str = ""
    external_id: Optional[str] = None
    email: Optional[str] = None
    source: Optional[str] = None
    interested_areas: List[str] = field(default_factory=list)
    interested_projects: List[str] = field(default_factory=list)
    ownership: str = ""
    furnishing: str = ""
    assigned_user_id: Optional[str] = None
    platform: Optional[str] = None
    campaign_name: Optional[str] = None
    ad_name: Optional[str] = None
    adset_name: Optional[str] = None
    form_name: Optional[str] = None
    configuration_requested: Optional[str] = None
    is_organic: Optional[bool] = None
    lead_created_time: Optional[datetime] = None
    lead_status: Optional[str] = None

    # Unmodified name/phone, kept for the test-sentinel checks
    raw_name: str = ""
    raw_phone: str = ""


def _first(row: Mapping[str, str], canonical: str) -> str:
    for alias in COLUMN_ALIASES[canonical]:
        value = row.get(alias)
        if value:
            return value
    return ""


def _split_list(value: str) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_bool(value: str) -> Optional[bool]:
    v = (value or "").strip().lower()
    if v in _TRUE_VALUES:
        return True
    if v in _FALSE_VALUES:
        return False
    return None


def parse_timestamp(value: str) -> Optional[datetime]:
    if not value:
        return None

    ts = pd.to_datetime(value, errors="coerce", utc=True)
    if pd.isna(ts):
        return None

    return ts.tz_convert("UTC").tz_localize(None).to_pydatetime()


def is_placeholder_email(email: str) -> bool:
    """Blank, filler ("N/A", "-", "none") or template test addresses."""
    e = (email or "").strip().lower()
    return (
        not e
        or "@" not in e
        or e.startswith(TEST_EMAIL_PREFIX)
    )


def resolve_row(raw: Mapping) -> CandidateRow:
    """Collapse column aliases of a raw sheet row into a CandidateRow."""

    row = normalize_columns(raw)

    raw_name = _first(row, "name")
    raw_phone = _first(row, "phone")

    external_id = _first(row, "external_id")
    if external_id.lower().startswith(TEST_ID_PREFIX):
        external_id = ""

    email = _first(row, "email")
    if is_placeholder_email(email):
        email = ""

    return CandidateRow(
        name=raw_name.strip(),
        phone=strip_vendor_prefix(raw_phone),
        external_id=external_id or None,
        email=email or None,
        source=_first(row, "source") or None,
        interested_areas=_split_list(_first(row, "interested_areas")),
        interested_projects=_split_list(_first(row, "interested_projects")),
        ownership=_first(row, "ownership"),
        furnishing=_first(row, "furnishing"),
        assigned_user_id=_first(row, "assigned_user_id") or None,
        platform=_first(row, "platform") or None,
        campaign_name=_first(row, "campaign_name") or None,
        ad_name=_first(row, "ad_name") or None,
        adset_name=_first(row, "adset_name") or None,
        form_name=_first(row, "form_name") or None,
        configuration_requested=_first(row, "configuration_requested") or None,
        is_organic=parse_bool(_first(row, "is_organic")),
        lead_created_time=parse_timestamp(_first(row, "lead_created_time")),
        lead_status=_first(row, "lead_status") or None,
        raw_name=raw_name,
        raw_phone=raw_phone,
    )


def validate_candidate(candidate: CandidateRow) -> None:
    """Raise RowValidationError for rows that must not become leads."""

    if not candidate.name or candidate.raw_name.strip().lower().startswith(TEST_NAME_PREFIX):
        raise RowValidationError("Invalid or test name")

    raw_phone = candidate.raw_phone.strip().lower()
    if (
        not normalize_phone(candidate.phone)
        or raw_phone.startswith(TEST_PHONE_PREFIX)
        or candidate.phone.lower().startswith(TEST_NAME_PREFIX)
    ):
        raise RowValidationError("Invalid or test phone number")


def map_ownership(value: str) -> str:
    return "investment" if (value or "").strip().lower() == "investment" else "self"


def map_furnishing(value: str) -> str:
    v = (value or "").strip().lower()
    if v in ("fully", "full"):
        return "fully"
    if v == "semi":
        return "semi"
    return "unfurnished"


def to_lead_payload(
    candidate: CandidateRow,
    *,
    assigned_user_id: str,
    source_label: str,
) -> dict:
    """Keyword arguments for ``LeadRepository.create``."""

    payload = {
        "client_name": candidate.name,
        "contact_number": candidate.phone,
        "email": candidate.email,
        "external_lead_id": candidate.external_id,
        "source": candidate.source or source_label,
        "interested_areas": list(candidate.interested_areas),
        "interested_projects": list(candidate.interested_projects),
        "ownership": map_ownership(candidate.ownership),
        "furnishing": map_furnishing(candidate.furnishing),
        "assigned_user_id": assigned_user_id,
    }

    provenance = {
        "platform": candidate.platform,
        "campaign_name": candidate.campaign_name,
        "ad_name": candidate.ad_name,
        "adset_name": candidate.adset_name,
        "form_name": candidate.form_name,
        "configuration_requested": candidate.configuration_requested,
        "is_organic": candidate.is_organic,
        "lead_created_time": candidate.lead_created_time,
        "lead_status": candidate.lead_status,
    }
    payload.update({k: v for k, v in provenance.items() if v is not None})

    return payload
