"""
                        Services Module

Business logic, one module per resource, plus the integrations that
follow the hybrid Mock/Real pattern:
    - payment: Stripe payment processing
    - notifications: Twilio SMS and SendGrid email
    - geo: IP geolocation for login history
    - excel_manager: file-locked Excel ledger and report export
"""

from dinehub.services.excel_manager import ExcelManager

__all__ = ["ExcelManager"]
