"""
Resolves the member behind an access event.
Used by event_processor. A miss returns None and is not an error:
events from unmapped people are dropped from attendance.
"""

from typing import Optional
from sqlalchemy.orm import Session
from gym_access.models.person_mapping import PersonMapping


def lookup_mapping_by_person(db: Session, person_id: str) -> Optional[PersonMapping]:
    return db.query(PersonMapping).filter(PersonMapping.person_id == person_id).first()


def lookup_mapping_by_card(db: Session, card_no: str) -> Optional[PersonMapping]:
    return db.query(PersonMapping).filter(PersonMapping.card_no == card_no).first()


def resolve_member(db: Session, person_id: Optional[str], card_no: Optional[str] = None) -> Optional[str]:
    """Member id for a vendor person id, falling back to the card number."""
    mapping = None
    if person_id:
        mapping = lookup_mapping_by_person(db, person_id)
    if mapping is None and card_no:
        mapping = lookup_mapping_by_card(db, card_no)
    return mapping.member_id if mapping else None
