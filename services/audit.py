from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models import AuditLog

logger = logging.getLogger(__name__)

ELIGIBILITY_BYPASS_ENABLED = "ELIGIBILITY_BYPASS_ENABLED"
STATUS_CHANGED = "STATUS_CHANGED"
SOFT_QUOTE_ISSUED = "SOFT_QUOTE_ISSUED"
SOFT_QUOTE_DECLINED = "SOFT_QUOTE_DECLINED"
ELIGIBILITY_REJECTED = "ELIGIBILITY_REJECTED"
NEEDS_LIST_REVIEWED = "NEEDS_LIST_REVIEWED"
NEEDS_LIST_ITEM_ADDED = "NEEDS_LIST_ITEM_ADDED"


async def record_audit(
    session: AsyncSession,
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    actor: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """Append one audit row to the current transaction. The caller commits."""
    entry = AuditLog(
        id=f"aud-{uuid.uuid4().hex[:12]}",
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor=actor,
        details=details,
        created_at=datetime.now(timezone.utc),
    )
    session.add(entry)
    await session.flush()
    logger.debug("Audit %s %s/%s by %s", action, entity_type, entity_id, actor or "system")
    return entry
