# Overview: Resolves polymorphic (kind, id) party references to records and display names.

from __future__ import annotations

from ..extensions import db
from ..models import AdjustmentReason, Customer, Store, Supplier
from posting_engine.constants import PartyKind
from posting_engine.validation import ValidationError, require_party_kind


PARTY_MODELS = {
    PartyKind.STORE: Store,
    PartyKind.CUSTOMER: Customer,
    PartyKind.SUPPLIER: Supplier,
    PartyKind.ADJUSTMENT_REASON: AdjustmentReason,
}


def get_party(kind, party_id: int):
    """Load the record behind a party reference, or None."""
    model = PARTY_MODELS[require_party_kind(kind)]
    return db.session.get(model, party_id)


def describe_party(kind, party_id: int) -> str:
    """Display name written to movement logs for a party reference."""
    party = get_party(kind, party_id)
    if party is None:
        raise ValidationError(f"{require_party_kind(kind).value} {party_id} not found")
    if isinstance(party, (Customer, Supplier)):
        return party.display_name
    return party.name
