from flask import current_app

from clinic.services.container import ClinicServices

SERVICES_EXTENSION = "clinic_services"


def get_services() -> ClinicServices:
    """Services registered on the current app by ``create_app``."""
    return current_app.extensions[SERVICES_EXTENSION]
