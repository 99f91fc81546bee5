"""Per-chat credentials, their resolution, and the configuration wizard."""

from .credentials import CredentialResolver
from .store import ChatApiConfig, ChatConfigStore
from .wizard import ConfigWizard, WizardOutcome, WizardState, render_panel

__all__ = [
    "ChatApiConfig",
    "ChatConfigStore",
    "ConfigWizard",
    "CredentialResolver",
    "WizardOutcome",
    "WizardState",
    "render_panel",
]
