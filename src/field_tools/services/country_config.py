"""Country configuration (informational values only)"""

from field_tools.config.settings import Settings, get_settings


class CountryConfigService:
    """Exposes the USSD shortcode and enabled gateways for display"""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def get_ussd_shortcode(self) -> str:
        return self.settings.ussd_shortcode

    def get_ussd_gateways(self) -> list[str]:
        return self.settings.ussd_gateways
