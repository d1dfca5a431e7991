"""Tests for the blocklist match policy and the dual-channel enforcer."""

import pytest

from focus_engine.actions.focus_mode import build_rules, hostname_of, is_blocked_url, matches
from focus_engine.actions.models import SessionType
from focus_engine.telemetry.browser_bridge import BrowserEvent, BrowserSignal, RedirectRule

from conftest import open_tabs

BLOCKED = "chrome-extension://pomofocus/blocked/blocked.html"


class TestMatchPolicy:
    @pytest.mark.parametrize("hostname", ["x.com", "www.x.com", "a.b.x.com"])
    def test_domain_and_subdomains_match(self, hostname):
        assert matches(hostname, "x.com")

    @pytest.mark.parametrize("hostname", ["notx.com", "x.com.evil.io", "x.co"])
    def test_lookalikes_do_not_match(self, hostname):
        assert not matches(hostname, "x.com")

    def test_blocked_url(self):
        assert is_blocked_url("https://mobile.x.com/home?q=1", ["x.com"])
        assert not is_blocked_url("https://example.org/x.com", ["x.com"])

    @pytest.mark.parametrize("url", ["", "not a url", "http://[::1", "about:blank"])
    def test_malformed_urls_never_block(self, url):
        assert not is_blocked_url(url, ["x.com"])

    def test_hostname_of_malformed(self):
        assert hostname_of("http://[::1") is None
        assert hostname_of("https://Mail.Google.com/u/0") == "mail.google.com"

    def test_build_rules_numbers_from_one(self):
        rules = build_rules(["x.com", "y.com"], BLOCKED)
        assert [r.id for r in rules] == [1, 2]
        assert rules[0].to_dict()["condition"] == {
            "requestDomains": ["x.com"],
            "resourceTypes": ["main_frame"],
        }
        assert rules[1].to_dict()["action"]["redirect"]["url"] == BLOCKED


class TestActivate:
    async def test_installs_one_rule_per_domain(self, enforcer, bridge, repo):
        await repo.save_settings({"blockedDomains": ["x.com", "y.com"]})
        assert await enforcer.activate() == 2
        rules = await bridge.get_dynamic_rules()
        assert [(r.id, r.domain) for r in rules] == [(1, "x.com"), (2, "y.com")]
        assert enforcer.active

    async def test_replaces_stale_rules_in_one_update(self, enforcer, bridge, repo):
        await bridge.update_dynamic_rules([], [
            RedirectRule(id=99, domain="old.com", redirect_url=BLOCKED),
            RedirectRule(id=100, domain="older.com", redirect_url=BLOCKED),
        ])
        version = bridge.rules_version
        await repo.save_settings({"blockedDomains": ["x.com"]})

        await enforcer.activate()

        assert [r.id for r in await bridge.get_dynamic_rules()] == [1]
        assert bridge.rules_version == version + 1

    async def test_activate_twice_registers_one_listener(self, enforcer, bridge, repo, timer):
        await repo.save_settings({"blockedDomains": ["x.com"]})
        await timer.start_session(SessionType.FOCUS)
        await enforcer.activate()
        await enforcer.activate()
        await open_tabs(bridge, "https://example.org")
        bridge.drain_commands()

        await bridge.apply(BrowserSignal(kind="tab_updated", tab_id=1, url="https://x.com/"))

        assert bridge.drain_commands() == [{"tabId": 1, "url": BLOCKED}]
        assert bridge.has_listener(BrowserEvent.TAB_UPDATED, enforcer._on_tab_updated)

    async def test_empty_blocklist_is_a_noop(self, enforcer, bridge, repo):
        await repo.save_settings({"blockedDomains": []})
        assert await enforcer.activate() == 0
        assert await bridge.get_dynamic_rules() == []
        assert bridge.rules_version == 0
        assert not enforcer.active

    async def test_sweeps_open_tabs(self, enforcer, bridge, repo):
        await repo.save_settings({"blockedDomains": ["x.com"]})
        await open_tabs(bridge, "https://x.com/home", "https://example.org", "https://www.x.com/a")

        await enforcer.activate()

        assert bridge.drain_commands() == [
            {"tabId": 1, "url": BLOCKED},
            {"tabId": 3, "url": BLOCKED},
        ]
        assert enforcer.redirected_tabs == {1: "https://x.com/home", 3: "https://www.x.com/a"}


class TestDeactivate:
    async def test_restores_redirected_tabs(self, enforcer, bridge, repo):
        await repo.save_settings({"blockedDomains": ["x.com"]})
        await open_tabs(bridge, "https://x.com/home", "https://example.org")
        await enforcer.activate()
        bridge.drain_commands()

        assert await enforcer.deactivate() == 1

        assert bridge.drain_commands() == [{"tabId": 1, "url": "https://x.com/home"}]
        assert await bridge.get_dynamic_rules() == []
        assert enforcer.redirected_tabs == {}
        assert not bridge.has_listener(BrowserEvent.TAB_UPDATED, enforcer._on_tab_updated)

    async def test_closed_tab_is_skipped(self, enforcer, bridge, repo):
        await repo.save_settings({"blockedDomains": ["x.com"]})
        await open_tabs(bridge, "https://x.com/home", "https://x.com/other")
        await enforcer.activate()
        await bridge.apply(BrowserSignal(kind="tab_removed", tab_id=1))
        bridge.drain_commands()

        assert await enforcer.deactivate() == 1
        assert bridge.drain_commands() == [{"tabId": 2, "url": "https://x.com/other"}]

    async def test_deactivate_without_rules(self, enforcer, bridge):
        assert await enforcer.deactivate() == 0
        assert bridge.rules_version == 0


class TestFallbackListener:
    @pytest.fixture()
    async def focused(self, enforcer, bridge, repo, timer):
        await repo.save_settings({"blockedDomains": ["x.com"]})
        await open_tabs(bridge, "https://example.org")
        await timer.start_session(SessionType.FOCUS)
        await enforcer.activate()
        bridge.drain_commands()
        return enforcer

    async def test_redirects_blocked_navigation(self, focused, bridge):
        await bridge.apply(BrowserSignal(kind="tab_updated", tab_id=1, url="https://www.x.com/"))
        assert bridge.drain_commands() == [{"tabId": 1, "url": BLOCKED}]
        assert focused.fallback_redirects == 1

    async def test_allowed_navigation_untouched(self, focused, bridge):
        await bridge.apply(BrowserSignal(kind="tab_updated", tab_id=1, url="https://docs.python.org/"))
        assert bridge.drain_commands() == []
        assert focused.fallback_redirects == 0

    async def test_blocked_page_is_not_redirected_again(self, focused, bridge):
        await bridge.apply(BrowserSignal(kind="tab_updated", tab_id=1, url=BLOCKED))
        assert bridge.drain_commands() == []

    async def test_ignored_outside_focus(self, focused, bridge, timer):
        await timer.stop_session()
        await bridge.apply(BrowserSignal(kind="tab_updated", tab_id=1, url="https://x.com/"))
        assert bridge.drain_commands() == []

    async def test_ignored_after_deactivate(self, focused, bridge):
        await focused.deactivate()
        bridge.drain_commands()
        await bridge.apply(BrowserSignal(kind="tab_updated", tab_id=1, url="https://x.com/"))
        assert bridge.drain_commands() == []
