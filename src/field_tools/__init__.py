"""CRMS field tools: USSD and WhatsApp field-query engine"""

__version__ = "1.0.0"
