"""
Audit log of alias mutations.

Append-only record of every mutation the converger attempted (node, old
alias, new alias, timestamp, outcome). Nothing here feeds back into a pass;
each pass recomputes from live inventory.
"""

import datetime

import peewee

from aliasync.db.base import BaseModel, db
from aliasync.models.plan import MutationRecord
from aliasync.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Audit Entry Model
# =============================================================================


class AuditEntry(BaseModel):
    """
    One attempted alias mutation.

    Attributes:
        pass_id: Reconciliation pass that issued the mutation.
        node: Instance name.
        action: Plan action (converge / clear_only).
        old_alias: Alias before the mutation (null = none).
        new_alias: Alias after the mutation (null = none).
        outcome: applied / partial / failed.
    """

    pass_id = peewee.CharField(index=True)
    node = peewee.CharField(index=True)
    action = peewee.CharField()
    old_alias = peewee.CharField(null=True)
    new_alias = peewee.CharField(null=True)
    outcome = peewee.CharField()
    collision = peewee.BooleanField(default=False)
    error = peewee.TextField(null=True)
    created_at = peewee.DateTimeField(default=datetime.datetime.now, index=True)

    class Meta:
        table_name = "audit_entries"

    def to_dict(self) -> dict:
        return {
            "pass_id": self.pass_id,
            "node": self.node,
            "action": self.action,
            "old_alias": self.old_alias,
            "new_alias": self.new_alias,
            "outcome": self.outcome,
            "collision": self.collision,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# =============================================================================
# Audit Log
# =============================================================================


class AuditLog:
    """Insert-only writer used by the reconciliation pass."""

    def record(self, records: list[MutationRecord], pass_id: str) -> int:
        """Persist mutation records. Returns the number of rows written."""
        if not records:
            return 0

        rows = [
            {
                "pass_id": pass_id,
                "node": record.node,
                "action": record.action.value,
                "old_alias": record.old_alias,
                "new_alias": record.new_alias,
                "outcome": record.outcome.value,
                "collision": record.collision,
                "error": record.error,
                "created_at": record.timestamp,
            }
            for record in records
        ]
        with db.atomic():
            AuditEntry.insert_many(rows).execute()

        logger.debug(f"Recorded {len(rows)} audit entries for pass {pass_id}")
        return len(rows)


def recent_entries(limit: int = 50, node: str | None = None) -> list[AuditEntry]:
    """Return the newest audit entries, optionally for one node."""
    query = AuditEntry.select().order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())
    if node:
        query = query.where(AuditEntry.node == node)
    return list(query.limit(limit))
