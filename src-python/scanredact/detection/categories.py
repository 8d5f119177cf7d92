"""Category vocabulary — maps the classifier's free-text labels onto PIIType.

The classifier is free to answer "Mobile Number" or "aadhar"; the core only
ever sees the closed ``PIIType`` enum. Lookup is case-insensitive over an
explicit synonym table; anything unrecognised becomes ``SENSITIVE``.
"""

from __future__ import annotations

import logging
from typing import Iterable

from scanredact.models.schemas import PIIType

logger = logging.getLogger(__name__)

CATEGORY_SYNONYMS: dict[str, PIIType] = {
    # Names
    "name": PIIType.NAME,
    "person": PIIType.NAME,
    "full name": PIIType.NAME,
    "person name": PIIType.NAME,
    "first name": PIIType.NAME,
    "last name": PIIType.NAME,
    # Phone
    "phone": PIIType.PHONE,
    "phone number": PIIType.PHONE,
    "mobile": PIIType.PHONE,
    "mobile number": PIIType.PHONE,
    "telephone": PIIType.PHONE,
    "contact number": PIIType.PHONE,
    # Email
    "email": PIIType.EMAIL,
    "email address": PIIType.EMAIL,
    # Address
    "address": PIIType.ADDRESS,
    "location": PIIType.ADDRESS,
    "residence": PIIType.ADDRESS,
    "home address": PIIType.ADDRESS,
    # National ID
    "national id": PIIType.NATIONAL_ID,
    "national_id": PIIType.NATIONAL_ID,
    "aadhaar": PIIType.NATIONAL_ID,
    "aadhar": PIIType.NATIONAL_ID,
    "uid": PIIType.NATIONAL_ID,
    "aadhaar number": PIIType.NATIONAL_ID,
    # Tax ID
    "tax id": PIIType.TAX_ID,
    "tax_id": PIIType.TAX_ID,
    "pan": PIIType.TAX_ID,
    "pan number": PIIType.TAX_ID,
    "permanent account number": PIIType.TAX_ID,
    # Cards
    "credit card": PIIType.CREDIT_CARD,
    "credit_card": PIIType.CREDIT_CARD,
    "card number": PIIType.CREDIT_CARD,
    "debit card": PIIType.CREDIT_CARD,
    # Date of birth
    "dob": PIIType.DOB,
    "date of birth": PIIType.DOB,
    "birth date": PIIType.DOB,
    "birthday": PIIType.DOB,
    # Medical
    "medical": PIIType.MEDICAL,
    "health": PIIType.MEDICAL,
    "diagnosis": PIIType.MEDICAL,
    "disease": PIIType.MEDICAL,
    "medication": PIIType.MEDICAL,
    "medical condition": PIIType.MEDICAL,
    "prescription": PIIType.MEDICAL,
    # Generic
    "sensitive": PIIType.SENSITIVE,
}


def _lookup(label: str) -> PIIType | None:
    key = " ".join((label or "").lower().split())
    if not key:
        return None
    found = CATEGORY_SYNONYMS.get(key)
    if found is not None:
        return found
    try:
        return PIIType(key.upper().replace(" ", "_"))
    except ValueError:
        return None


def map_category(label: str | None) -> PIIType:
    """Map a free-text category onto the closed vocabulary."""
    return _lookup(label or "") or PIIType.SENSITIVE


def resolve_required_fields(fields: Iterable[str | PIIType] | None) -> set[PIIType]:
    """Turn caller-supplied "keep visible" names into PIIType members.

    Unlike :func:`map_category`, unknown names are ignored rather than
    widened to ``SENSITIVE`` so a typo never unmasks every generic zone.
    """
    resolved: set[PIIType] = set()
    for field in fields or ():
        if isinstance(field, PIIType):
            resolved.add(field)
            continue
        pii_type = _lookup(str(field))
        if pii_type is None:
            logger.warning("Ignoring unknown required field %r", field)
            continue
        resolved.add(pii_type)
    return resolved
