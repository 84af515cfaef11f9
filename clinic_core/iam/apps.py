from django.apps import AppConfig


class IamConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "clinic_core.iam"

    def ready(self) -> None:
        # keeps Role.user_count in step with MembershipRole deletes
        from clinic_core.iam import signals  # noqa: F401
        # registers the OpenAPI auth extension
        from clinic_core.iam import openapi  # noqa: F401
