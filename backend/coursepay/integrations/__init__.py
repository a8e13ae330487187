"""Third-party integration clients."""

from .chapa_client import ChapaClient, GatewayError, GatewayUnavailable, GatewayVerification

__all__ = ["ChapaClient", "GatewayError", "GatewayUnavailable", "GatewayVerification"]
