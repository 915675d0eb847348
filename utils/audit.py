import json
import logging

from flask import has_request_context, request
from models import db
from models.audit_log import AuditLog

logger = logging.getLogger("audit")


def log_event(action: str, user_id=None, entity=None, entity_id=None, metadata=None, commit=True):
    """
    Record an audit row. Pass commit=False inside transaction() so the row is
    written (or discarded) together with the change it describes.
    """
    ip = None
    user_agent = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        user_agent = request.headers.get("User-Agent", "")

    row = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=ip,
        user_agent=user_agent[:255] if user_agent else None,
        metadata_json=json.dumps(metadata, default=str) if metadata else None
    )
    db.session.add(row)
    if commit:
        db.session.commit()

    logger.info("%s user=%s %s=%s", action, user_id, entity or "-", entity_id or "-")
    return row
