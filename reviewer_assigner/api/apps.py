from django.apps import AppConfig


class ApiConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'reviewer_assigner.api'
    label = 'api'
    verbose_name = 'Reviewer assignment'
