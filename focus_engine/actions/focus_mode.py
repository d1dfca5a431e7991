"""
Focus Mode — enforces the blocklist while a focus session runs.

Two channels cooperate:
  * a declarative redirect rule table, mirrored by the extension into the
    browser's request-blocking API (top-level navigations only);
  * a reactive listener on tab URL changes, which catches navigations the
    declarative rules miss while they are still propagating to new tabs.

Both use matches() so they always agree on what is blocked.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse

from ..config import Config, config as default_config
from ..errors import BrowserError
from ..storage.repository import StateRepository
from ..telemetry.browser_bridge import BrowserEvent, BrowserHost, RedirectRule

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Domain match policy
# ---------------------------------------------------------------------------

def hostname_of(url: str) -> Optional[str]:
    try:
        host = urlparse(url).hostname
    except (ValueError, AttributeError):
        return None
    return host or None


def matches(hostname: str, domain: str) -> bool:
    """True for *domain* itself or any subdomain of it."""
    return hostname == domain or hostname.endswith("." + domain)


def is_blocked_url(url: str, domains: Iterable[str]) -> bool:
    host = hostname_of(url)
    if not host:
        return False
    return any(matches(host, d) for d in domains)


def build_rules(domains: List[str], redirect_url: str) -> List[RedirectRule]:
    return [
        RedirectRule(id=index + 1, domain=domain, redirect_url=redirect_url)
        for index, domain in enumerate(domains)
    ]


# ---------------------------------------------------------------------------
# Enforcer
# ---------------------------------------------------------------------------

class FocusEnforcer:

    def __init__(
        self,
        repo: StateRepository,
        browser: BrowserHost,
        cfg: Optional[Config] = None,
    ):
        self._repo = repo
        self._browser = browser
        self._config = cfg or default_config
        self._active = False
        # tab id → URL before we redirected it; process-local, lost on restart
        self._redirected_tabs: Dict[int, str] = {}
        self.fallback_redirects = 0

    @property
    def active(self) -> bool:
        return self._active

    @property
    def blocked_page_url(self) -> str:
        return self._config.blocked_page_url

    @property
    def redirected_tabs(self) -> Dict[int, str]:
        return dict(self._redirected_tabs)

    async def activate(self) -> int:
        """Install rules, register the listener, sweep open tabs. Returns the rule count."""
        domains = await self._repo.get_blocked_domains()
        if not domains:
            logger.info("No blocked domains configured; focus enforcement skipped")
            return 0

        rules = build_rules(domains, self.blocked_page_url)
        existing = await self._browser.get_dynamic_rules()
        await self._browser.update_dynamic_rules(
            remove_rule_ids=[r.id for r in existing],
            add_rules=rules,
        )

        if not self._browser.has_listener(BrowserEvent.TAB_UPDATED, self._on_tab_updated):
            self._browser.add_listener(BrowserEvent.TAB_UPDATED, self._on_tab_updated)
        self._active = True

        redirected = await self._sweep_tabs(domains)
        logger.info(
            "Focus enforcement active: %d rules, %d open tabs redirected",
            len(rules), redirected,
        )
        return len(rules)

    async def deactivate(self) -> int:
        """Remove rules and listener, restore redirected tabs. Returns tabs restored."""
        existing = await self._browser.get_dynamic_rules()
        if existing:
            await self._browser.update_dynamic_rules(
                remove_rule_ids=[r.id for r in existing],
                add_rules=[],
            )
        self._browser.remove_listener(BrowserEvent.TAB_UPDATED, self._on_tab_updated)
        self._active = False

        restored = 0
        for tab_id, url in self._redirected_tabs.items():
            try:
                await self._browser.update_tab(tab_id, url)
                restored += 1
            except BrowserError as exc:
                logger.debug("Could not restore tab %s: %s", tab_id, exc)
        self._redirected_tabs.clear()
        logger.info("Focus enforcement off: %d tabs restored", restored)
        return restored

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _sweep_tabs(self, domains: List[str]) -> int:
        redirected = 0
        for tab in await self._browser.query_tabs():
            if not tab.url or not is_blocked_url(tab.url, domains):
                continue
            original = tab.url
            try:
                await self._browser.update_tab(tab.id, self.blocked_page_url)
            except BrowserError:
                continue
            self._redirected_tabs.setdefault(tab.id, original)
            redirected += 1
        return redirected

    async def _on_tab_updated(self, tab_id: int, url: str) -> None:
        if not self._active or not url or url.startswith(self.blocked_page_url):
            return

        # Checked against persisted state so a stop issued elsewhere wins.
        if not (await self._repo.get_timer_state()).is_focus:
            return

        domains = await self._repo.get_blocked_domains()
        if not is_blocked_url(url, domains):
            return

        rules = await self._browser.get_dynamic_rules()
        if is_blocked_url(url, [r.domain for r in rules]):
            self.fallback_redirects += 1
            logger.info(
                "Fallback listener redirected tab %s (%s) past an installed rule",
                tab_id, hostname_of(url),
            )
        try:
            await self._browser.update_tab(tab_id, self.blocked_page_url)
        except BrowserError as exc:
            logger.debug("Fallback redirect of tab %s failed: %s", tab_id, exc)
