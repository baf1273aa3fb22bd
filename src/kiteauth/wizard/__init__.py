"""Wizard package: login step machine, session cache and dashboard."""

from kiteauth.wizard.dashboard import Dashboard, WebhookStatus  # noqa: F401
from kiteauth.wizard.flow import AuthStep, AuthWizard, WizardEvent, next_step  # noqa: F401
from kiteauth.wizard.session import SessionCache  # noqa: F401
