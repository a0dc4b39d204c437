"""Entrypoint for services package."""

from src.services.channel_api_client import ChannelAPIClient
from src.services.config_service import ConfigService
from src.services.request_engine import RequestEngine

__all__ = ["ChannelAPIClient", "ConfigService", "RequestEngine"]
