# Overview: Service-layer operations for document numbers.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence

INVOICE = "INVOICE"
PURCHASE_ORDER = "PURCHASE_ORDER"


def next_document_number(*, document_type: str, prefix: str, pad: int = 6) -> str:
    """
    Allocate the next number for a document type, e.g. "INV-000042".

    Must run inside the caller's transaction so the number is only consumed
    if the document commits. The counter row is bumped with a single atomic
    UPDATE; concurrent first-time inserts surface as IntegrityError, which
    atomic() reports as a Conflict.
    """
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        number = current - 1
    else:
        db.session.add(DocumentSequence(document_type=document_type, next_number=2))
        db.session.flush()
        number = 1

    return f"{prefix}-{str(number).zfill(pad)}"
