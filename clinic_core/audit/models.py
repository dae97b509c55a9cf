from django.db import models

from clinic_core.common.models import UUIDModel


class AuditEvent(UUIDModel):
    """
    Immutable audit record of every ledger and reconciliation mutation.
    """
    event_code = models.CharField(max_length=128, db_index=True)  # e.g. "payment.voided"
    entity_type = models.CharField(max_length=128, db_index=True)  # e.g. "Payment"
    entity_id = models.UUIDField(db_index=True)

    actor_user_id = models.IntegerField(null=True, blank=True, db_index=True)

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["entity_type", "entity_id"]),
            models.Index(fields=["event_code", "occurred_at"]),
        ]
