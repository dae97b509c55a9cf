# clinic_core/patients/services.py
from __future__ import annotations

from django.db import IntegrityError, transaction
from rest_framework.exceptions import ValidationError

from clinic_core.audit.services import AuditService
from clinic_core.patients.models import Patient


class PatientService:
    @staticmethod
    @transaction.atomic
    def create_patient(
        *,
        full_name: str,
        national_id: str,
        phone: str = "",
        email: str = "",
        actor_user_id: int | None = None,
    ) -> Patient:
        try:
            with transaction.atomic():
                patient = Patient.objects.create(
                    full_name=full_name,
                    national_id=national_id,
                    phone=phone or "",
                    email=email or "",
                )
        except IntegrityError:
            raise ValidationError({"national_id": "A patient with this national id already exists."})

        AuditService.log(
            event_code="patient.created",
            entity_type="Patient",
            entity_id=patient.id,
            actor_user_id=actor_user_id,
            metadata={"national_id": national_id},
        )
        return patient
