"""Client package: auth client and webhook relay."""

from kiteauth.client.auth_client import KiteAuthClient  # noqa: F401
from kiteauth.client.webhook import WebhookNotifier  # noqa: F401
