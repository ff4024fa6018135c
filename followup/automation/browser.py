# followup/automation/browser.py
"""Headless-browser portal driver.

Every portal is handled by the same code; what differs between sites is
the profile's selector map (where the login fields, search inputs, result
rows, report link and message box live) and its credentials.
"""

from typing import List, Optional, Tuple
from urllib.parse import urljoin

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    Response,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from followup.automation.base import AutomationResult, BaseAutomation
from followup.core.config import Settings, settings
from followup.core.constants import REPORT_CONTENT_TYPES
from followup.core.exceptions import (
    PortalConnectionError,
    PortalNavigationError,
    PortalTimeoutError,
)
from followup.core.logging import get_logger
from followup.models.enums import AuthMode, AutomationState
from followup.models.site import SiteAutomationProfile

logger = get_logger(__name__)

NETWORK_IDLE = "networkidle"


class PlaywrightAutomation(BaseAutomation):
    """Chromium session driven through Playwright's async API."""

    def __init__(self, profile: SiteAutomationProfile, config: Settings = settings):
        super().__init__(profile)
        self.config = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._matched_row = None
        self._report_responses: List[Response] = []

    # ===================
    # Session Setup
    # ===================

    async def _open_page(self) -> Page:
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.BROWSER_HEADLESS,
            executable_path=self.config.BROWSER_EXECUTABLE_PATH or None,
            args=[
                "--no-sandbox",
                "--disable-setuid-sandbox",
                "--disable-dev-shm-usage",
                "--disable-gpu",
            ],
        )
        self._context = await self._browser.new_context(
            user_agent=self.config.BROWSER_USER_AGENT,
            viewport={"width": 1920, "height": 1080},
            ignore_https_errors=True,
        )
        return await self._context.new_page()

    def _on_response(self, response: Response):
        content_type = response.headers.get("content-type", "")
        if any(kind in content_type for kind in REPORT_CONTENT_TYPES):
            self._report_responses.append(response)

    async def connect(self) -> AutomationResult:
        action = "connect"
        blocked = self._out_of_order(action, AutomationState.DISCONNECTED)
        if blocked:
            return blocked
        if not self.profile.search_url:
            return self._failure(PortalConnectionError(action, "profile has no search URL"))

        try:
            page = await self._open_page()
            self._page = page
            page.set_default_timeout(self.config.BROWSER_TIMEOUT_MS)
            page.set_default_navigation_timeout(self.config.BROWSER_TIMEOUT_MS)
            page.on("response", self._on_response)

            if self.profile.auth_mode == AuthMode.API_KEY:
                await self._apply_api_key(page)

            await page.goto(self.profile.search_url, wait_until=NETWORK_IDLE)

            if self.profile.auth_mode == AuthMode.FORM_LOGIN:
                await self._perform_login(page)

            navigation_path = self.profile.selector("navigation_path")
            if navigation_path:
                await page.goto(urljoin(self.profile.search_url, navigation_path), wait_until=NETWORK_IDLE)
        except PortalConnectionError as e:
            return self._failure(e)
        except PlaywrightTimeoutError as e:
            return self._failure(PortalConnectionError(action, f"timed out: {e}"))
        except PlaywrightError as e:
            return self._failure(PortalConnectionError(action, str(e)))

        self.state = AutomationState.CONNECTED
        logger.info(f"[{self.profile.name}] Connected ({self.profile.auth_mode.value})")
        return AutomationResult(
            success=True,
            action=action,
            details={"url": self.profile.search_url, "auth_mode": self.profile.auth_mode.value},
        )

    async def _apply_api_key(self, page: Page):
        api_key = self.profile.credential("api_key", "token")
        if not api_key:
            raise PortalConnectionError("connect", "api_key credential is missing")
        header = self.profile.selector("api_key_header")
        if header:
            await page.set_extra_http_headers({header: api_key})
        else:
            await page.set_extra_http_headers({"Authorization": f"Bearer {api_key}"})

    async def _perform_login(self, page: Page):
        username_field = self.profile.selector("login_username")
        password_field = self.profile.selector("login_password")
        if not username_field or not password_field:
            raise PortalConnectionError("connect", "login form selectors are not configured")

        login = self.profile.credential("login", "username", "email")
        password = self.profile.credential("password")
        if not login or not password:
            raise PortalConnectionError("connect", "portal credentials are incomplete")

        await page.wait_for_selector(username_field, timeout=self.config.LOGIN_FIELD_TIMEOUT_MS)
        await page.fill(username_field, login)
        await page.fill(password_field, password)

        submit = self.profile.selector("login_submit")
        if submit:
            await page.click(submit)
        else:
            await page.press(password_field, "Enter")
        await page.wait_for_load_state(NETWORK_IDLE, timeout=self.config.LOGIN_SUBMIT_TIMEOUT_MS)

    # ===================
    # Search
    # ===================

    def _search_target(
        self, primary_key: Optional[str], secondary_key: Optional[str]
    ) -> Tuple[Optional[str], Optional[str]]:
        """Pick the input field and the key to type into it."""
        claim_field = self.profile.selector("search_input_claim_number")
        if claim_field and primary_key:
            return claim_field, primary_key

        plate_field = self.profile.selector("search_input_plate")
        if plate_field and secondary_key:
            return plate_field, secondary_key

        generic_field = self.profile.selector("search_input")
        if generic_field:
            return generic_field, primary_key or secondary_key

        return None, None

    async def _locate_record(self, page: Page) -> bool:
        no_results = self.profile.selector("no_results")
        if no_results and await page.query_selector(no_results) is not None:
            return False

        row_selector = self.profile.selector("result_row")
        if not row_selector:
            return True

        rows = await page.query_selector_all(row_selector)
        if not rows:
            return False
        self._matched_row = rows[0]
        return True

    async def search(self, primary_key: Optional[str], secondary_key: Optional[str] = None) -> AutomationResult:
        action = "search"
        blocked = self._out_of_order(action, AutomationState.CONNECTED)
        if blocked:
            return blocked

        field, key = self._search_target(primary_key, secondary_key)
        if field and not key:
            return self._failure(PortalNavigationError(action, "no search key supplied"))

        page = self._page
        try:
            if field:
                await page.wait_for_selector(field)
                await page.fill(field, key)
                submit = self.profile.selector("search_submit")
                if submit:
                    await page.click(submit)
                else:
                    await page.press(field, "Enter")
                await page.wait_for_load_state(NETWORK_IDLE)

            found = await self._locate_record(page)
        except PlaywrightTimeoutError as e:
            return self._failure(PortalTimeoutError(action, str(e)))
        except PlaywrightError as e:
            return self._failure(PortalNavigationError(action, str(e)))

        details = {"search_field": field, "search_key": key}
        if not found:
            logger.info(f"[{self.profile.name}] No record for {key}")
            return AutomationResult(success=True, action=action, found=False, details=details)

        self.state = AutomationState.SEARCHED
        return AutomationResult(success=True, action=action, found=True, details=details)

    # ===================
    # Report
    # ===================

    async def _captured_report(self) -> Tuple[Optional[bytes], Optional[str]]:
        for response in reversed(self._report_responses):
            try:
                return await response.body(), response.url
            except PlaywrightError as e:
                logger.warning(f"[{self.profile.name}] Could not read report response: {e}")
        return None, None

    async def check_and_retrieve_report(self) -> AutomationResult:
        action = "report"
        blocked = self._out_of_order(action, AutomationState.SEARCHED)
        if blocked:
            return blocked

        page = self._page
        link_selector = self.profile.selector("report_link")
        try:
            if self._matched_row is not None:
                await self._matched_row.click()
                await page.wait_for_load_state(NETWORK_IDLE)

            documents_tab = self.profile.selector("documents_tab")
            if documents_tab:
                tab = await page.query_selector(documents_tab)
                if tab is not None:
                    await tab.click()
                    await page.wait_for_load_state(NETWORK_IDLE)

            if not link_selector:
                return AutomationResult(success=True, action=action, found=False, details={"report_selector": None})

            link = await page.query_selector(link_selector)
            if link is None:
                return AutomationResult(
                    success=True, action=action, found=False, details={"report_selector": link_selector}
                )

            href = await link.get_attribute("href") or await link.get_attribute("path")
            self._report_responses.clear()
            await link.click()
            await page.wait_for_load_state(NETWORK_IDLE)
            content, captured_url = await self._captured_report()
        except PlaywrightTimeoutError as e:
            return self._failure(PortalTimeoutError(action, str(e)))
        except PlaywrightError as e:
            return self._failure(PortalNavigationError(action, str(e)))

        url = urljoin(page.url, href) if href else captured_url
        self.state = AutomationState.REPORT_FOUND
        logger.info(f"[{self.profile.name}] Report found ({len(content) if content else 0} bytes captured)")
        return AutomationResult(
            success=True,
            action=action,
            found=True,
            content=content,
            url=url,
            details={"captured": content is not None, "size": len(content) if content else 0},
        )

    # ===================
    # Message
    # ===================

    async def send_message(self, body: str) -> AutomationResult:
        action = "message"
        blocked = self._out_of_order(action, AutomationState.SEARCHED)
        if blocked:
            return blocked

        textarea = self.profile.selector("message_textarea")
        if not textarea:
            self.state = AutomationState.MESSAGE_SENT
            return AutomationResult(
                success=True,
                action=action,
                message="Portal has no message form",
                details={"no_message_form": True},
            )

        page = self._page
        try:
            await page.wait_for_selector(textarea)
            await page.fill(textarea, body)
            submit = self.profile.selector("message_submit")
            if submit:
                await page.click(submit)
                await page.wait_for_load_state(NETWORK_IDLE)
        except PlaywrightTimeoutError as e:
            return self._failure(PortalTimeoutError(action, str(e)))
        except PlaywrightError as e:
            return self._failure(PortalNavigationError(action, str(e)))

        self.state = AutomationState.MESSAGE_SENT
        return AutomationResult(success=True, action=action, details={"message_length": len(body)})

    # ===================
    # Cleanup
    # ===================

    async def cleanup(self) -> None:
        closers = [
            ("page", self._page.close if self._page else None),
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        ]
        for name, close in closers:
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.warning(f"[{self.profile.name}] Cleanup of {name} failed: {e}")

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        self._matched_row = None
        self._report_responses = []
        self.state = AutomationState.RELEASED
