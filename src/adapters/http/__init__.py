"""HTTP adapters - Remote authentication API and authorized client."""

from .client import SessionAuth, create_api_client, create_gateway_client
from .gateway import HttpAuthGateway

__all__ = ["HttpAuthGateway", "SessionAuth", "create_api_client", "create_gateway_client"]
