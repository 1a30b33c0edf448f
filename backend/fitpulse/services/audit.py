"""Trail of user-initiated writes. Derived rows (records, badges, progress) are not audited."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


async def record_action(
    session: AsyncSession,
    user_id: int,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    details: dict | None = None,
) -> AuditLog:
    entry = AuditLog(user_id=user_id, action=action, entity_type=entity_type, entity_id=entity_id, details=details)
    session.add(entry)
    await session.flush()
    logger.debug("User %s %s %s %s", user_id, action, entity_type, entity_id)
    return entry
