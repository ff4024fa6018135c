# followup/automation/factory.py
from followup.automation.base import BaseAutomation
from followup.automation.browser import PlaywrightAutomation
from followup.core.config import Settings, settings
from followup.models.enums import AuthMode
from followup.models.site import SiteAutomationProfile


def create_automation_handler(profile: SiteAutomationProfile, config: Settings = settings) -> BaseAutomation:
    """Session for ``profile``; site differences live in its selector map."""
    return PlaywrightAutomation(profile, config)


def is_automation_available(profile: SiteAutomationProfile) -> bool:
    """True when the profile holds enough to drive its portal."""
    if not profile.search_url or not profile.active:
        return False
    if profile.auth_mode == AuthMode.FORM_LOGIN and not profile.has_credentials:
        return False
    return True
