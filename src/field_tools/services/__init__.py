"""Business services"""

from field_tools.services.authenticator import Authenticator, hash_quick_pin
from field_tools.services.country_config import CountryConfigService
from field_tools.services.field_check import FieldCheckService
from field_tools.services.rate_limiter import RateLimiter
from field_tools.services.ussd import USSDService
from field_tools.services.whapi import WhapiClient
from field_tools.services.whatsapp import WhatsAppService

__all__ = [
    "Authenticator",
    "hash_quick_pin",
    "RateLimiter",
    "FieldCheckService",
    "USSDService",
    "WhatsAppService",
    "WhapiClient",
    "CountryConfigService",
]
