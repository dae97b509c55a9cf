from django.apps import AppConfig


class ClinicSessionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "clinic_core.sessions"
    # "sessions" is taken by django.contrib.sessions
    label = "clinic_sessions"
    verbose_name = "Clinic sessions"
