from sqlalchemy.orm import Session
from models.log import Log

# Stage an audit entry in the caller's transaction; it commits (or rolls back) with the event
def write_log(db: Session, *, actor, action, resource, status="SUCCESS", meta=None):
    entry = Log(actor=actor, action=action, resource=resource, status=status, meta=meta or {})
    db.add(entry)
    return entry
