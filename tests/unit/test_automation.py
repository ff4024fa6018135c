# tests/unit/test_automation.py
import asyncio
from typing import Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from followup.automation.browser import PlaywrightAutomation
from followup.automation.factory import create_automation_handler, is_automation_available
from followup.models.enums import AutomationState
from followup.models.site import SiteAutomationProfile


class FakeResponse:
    def __init__(self, url: str, content_type: str, content: bytes):
        self.url = url
        self.headers = {"content-type": content_type}
        self._content = content

    async def body(self) -> bytes:
        return self._content


class FakeElement:
    def __init__(self, page: "FakePage", selector: str, attributes: Optional[Dict[str, str]] = None):
        self.page = page
        self.selector = selector
        self.attributes = attributes or {}

    async def click(self):
        await self.page.click(self.selector)

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)


class FakePage:
    """Just enough of playwright's Page for the portal driver."""

    def __init__(self, present=(), attributes=None, responses=None, errors=None):
        self.url = "https://portal.example.com/search"
        self.present = set(present)
        self.attributes = attributes or {}
        self.responses = responses or {}
        self.errors = errors or {}
        self.handlers = []
        self.actions: List[tuple] = []
        self.closed = False

    def _check(self, action: str, selector: str):
        error = self.errors.get((action, selector))
        if error is not None:
            raise error

    def set_default_timeout(self, timeout):
        self.actions.append(("default_timeout", timeout))

    def set_default_navigation_timeout(self, timeout):
        pass

    def on(self, event, handler):
        self.handlers.append(handler)

    async def set_extra_http_headers(self, headers):
        self.actions.append(("headers", headers))

    async def goto(self, url, wait_until=None):
        self.actions.append(("goto", url))

    async def wait_for_selector(self, selector, timeout=None):
        self._check("wait", selector)
        if selector not in self.present:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        self.actions.append(("wait", selector, timeout))

    async def fill(self, selector, value):
        self._check("fill", selector)
        self.actions.append(("fill", selector, value))

    async def click(self, selector):
        self._check("click", selector)
        self.actions.append(("click", selector))
        for response in self.responses.get(selector, []):
            for handler in self.handlers:
                handler(response)

    async def press(self, selector, key):
        self.actions.append(("press", selector, key))

    async def wait_for_load_state(self, state=None, timeout=None):
        pass

    async def query_selector(self, selector):
        if selector not in self.present:
            return None
        return FakeElement(self, selector, self.attributes.get(selector))

    async def query_selector_all(self, selector):
        element = await self.query_selector(selector)
        return [element] if element else []

    async def close(self):
        self.closed = True


class FakePageAutomation(PlaywrightAutomation):
    def __init__(self, profile, page: FakePage):
        super().__init__(profile)
        self.fake_page = page

    async def _open_page(self):
        return self.fake_page


SELECTORS = {
    "login_username": "#user",
    "login_password": "#pass",
    "login_submit": "#login",
    "search_input_claim_number": "#claim",
    "search_input_plate": "#plate",
    "search_submit": "#go",
    "result_row": "tr.result",
    "no_results": ".empty",
    "report_link": "a.report",
    "message_textarea": "#message",
    "message_submit": "#send",
}


def make_profile(**overrides) -> SiteAutomationProfile:
    values = {
        "id": "site_1",
        "name": "Expert Portal",
        "search_url": "https://portal.example.com/search",
        "auth_mode": "form_login",
        "credentials": {"login": "garage", "password": "hunter22"},
        "selectors": SELECTORS,
    }
    values.update(overrides)
    return SiteAutomationProfile(**values)


def run(coro):
    return asyncio.run(coro)


def test_follow_up_logs_in_searches_and_posts_the_message():
    page = FakePage(present={"#user", "#claim", "tr.result", "#message"})
    automation = FakePageAutomation(make_profile(), page)

    result = run(automation.execute_follow_up("SIN-42", "AB-123-CD", "Please send the report"))

    assert result.success is True
    assert result.action == "message"
    assert automation.state == AutomationState.MESSAGE_SENT
    assert ("fill", "#user", "garage") in page.actions
    assert ("fill", "#pass", "hunter22") in page.actions
    assert ("wait", "#user", 10000) in page.actions
    assert ("fill", "#claim", "SIN-42") in page.actions
    assert ("click", "tr.result") in page.actions
    assert ("fill", "#message", "Please send the report") in page.actions
    assert ("click", "#send") in page.actions

    run(automation.cleanup())
    run(automation.cleanup())
    assert page.closed is True
    assert automation.state == AutomationState.RELEASED


def test_plate_is_used_when_no_claim_number_is_given():
    page = FakePage(present={"#user", "#plate", "tr.result"})
    automation = FakePageAutomation(make_profile(), page)

    run(automation.connect())
    result = run(automation.search(None, "AB-123-CD"))

    assert result.found is True
    assert result.details["search_field"] == "#plate"
    assert ("fill", "#plate", "AB-123-CD") in page.actions


def test_missing_login_field_is_a_connection_failure():
    page = FakePage(present=set())
    automation = FakePageAutomation(make_profile(), page)

    result = run(automation.execute_follow_up("SIN-42", None, "msg"))

    assert result.success is False
    assert result.action == "connect"
    assert result.error.startswith("Portal connection failed")
    assert result.details["error_code"] == "PORTAL_CONNECTION_ERROR"
    assert automation.state == AutomationState.DISCONNECTED
    assert not any(a[0] == "fill" and a[1] == "#claim" for a in page.actions)


def test_credential_values_never_reach_the_error():
    page = FakePage(
        present={"#user"},
        errors={("fill", "#pass"): PlaywrightError("fill('#pass', 'hunter22') failed")},
    )
    automation = FakePageAutomation(make_profile(), page)

    result = run(automation.connect())

    assert result.success is False
    assert "hunter22" not in result.error


def test_no_results_means_not_found_and_aborts_follow_up():
    page = FakePage(present={"#user", "#claim", ".empty"})
    automation = FakePageAutomation(make_profile(), page)

    run(automation.connect())
    search = run(automation.search("SIN-42"))
    assert search.success is True
    assert search.found is False
    assert automation.state == AutomationState.CONNECTED

    page = FakePage(present={"#user", "#claim", ".empty"})
    automation = FakePageAutomation(make_profile(), page)
    result = run(automation.execute_follow_up("SIN-42", None, "msg"))
    assert result.success is False
    assert result.action == "search"
    assert not any(a[0] == "fill" and a[1] == "#message" for a in page.actions)


def test_report_found_short_circuits_with_captured_bytes():
    pdf = FakeResponse("https://portal.example.com/download/42", "application/pdf", b"%PDF-1.4")
    page = FakePage(
        present={"#user", "#claim", "tr.result", "a.report", "#message"},
        attributes={"a.report": {"href": "/files/report-42.pdf"}},
        responses={"a.report": [pdf]},
    )
    automation = FakePageAutomation(make_profile(), page)

    result = run(automation.execute_follow_up("SIN-42", None, "msg"))

    assert result.success is True
    assert result.action == "report_retrieved"
    assert result.found is True
    assert result.content == b"%PDF-1.4"
    assert result.url == "https://portal.example.com/files/report-42.pdf"
    assert automation.state == AutomationState.REPORT_FOUND
    assert not any(a[0] == "fill" and a[1] == "#message" for a in page.actions)


def test_portal_without_message_form_is_a_no_op_success():
    selectors = {k: v for k, v in SELECTORS.items() if not k.startswith("message_")}
    page = FakePage(present={"#user", "#claim", "tr.result"})
    automation = FakePageAutomation(make_profile(selectors=selectors), page)

    result = run(automation.execute_follow_up("SIN-42", None, "msg"))

    assert result.success is True
    assert result.details["no_message_form"] is True


def test_search_timeout_maps_to_timeout_error():
    page = FakePage(
        present={"#user", "#claim"},
        errors={("click", "#go"): PlaywrightTimeoutError("Timeout 30000ms exceeded")},
    )
    automation = FakePageAutomation(make_profile(), page)

    run(automation.connect())
    result = run(automation.search("SIN-42"))

    assert result.success is False
    assert result.error.startswith("Portal timed out")
    assert result.details["error_code"] == "PORTAL_TIMEOUT"


def test_operations_out_of_order_fail():
    automation = FakePageAutomation(make_profile(), FakePage())

    assert run(automation.search("SIN-42")).success is False
    assert run(automation.send_message("msg")).success is False
    assert "requires state searched" in run(automation.check_and_retrieve_report()).error

    run(automation.cleanup())
    assert run(automation.connect()).success is False


def test_api_key_profile_sends_a_bearer_header():
    page = FakePage(present={"#claim", "tr.result"})
    profile = make_profile(auth_mode="api_key", credentials={"api_key": "k-123"})
    automation = FakePageAutomation(profile, page)

    assert run(automation.connect()).success is True
    assert ("headers", {"Authorization": "Bearer k-123"}) in page.actions


def test_cleanup_swallows_close_errors():
    class BrokenPage(FakePage):
        async def close(self):
            raise PlaywrightError("target closed")

    automation = FakePageAutomation(make_profile(auth_mode="none", credentials={}), BrokenPage())
    run(automation.connect())
    run(automation.cleanup())
    assert automation.state == AutomationState.RELEASED


def test_availability_rules():
    assert is_automation_available(make_profile())
    assert not is_automation_available(make_profile(search_url=None))
    assert not is_automation_available(make_profile(active=False))
    assert not is_automation_available(make_profile(credentials={}))
    assert is_automation_available(make_profile(auth_mode="none", credentials={}))


def test_factory_builds_a_browser_session():
    handler = create_automation_handler(make_profile())
    assert isinstance(handler, PlaywrightAutomation)
    assert handler.state == AutomationState.DISCONNECTED
