"""Registration subsystem — one-time agent registration tokens."""

from lxc_runner.registration.client import RegistrationClient, registration_url, token_endpoint
from lxc_runner.registration.models import RegistrationToken

__all__ = [
    "RegistrationClient",
    "RegistrationToken",
    "registration_url",
    "token_endpoint",
]
