"""
User settings — blocked domains and tag colours, persisted in the store.

The store may hold a partial or stale settings object; merge_settings() lays
it over DEFAULTS on every read.  normalize_settings() is applied on write.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

DEFAULT_BLOCKED_DOMAINS: List[str] = [
    "x.com",
    "web.whatsapp.com",
    "mail.google.com",
]

DEFAULTS: Dict[str, Any] = {
    "blockedDomains": DEFAULT_BLOCKED_DOMAINS,
    "tags": {},                 # tag → {"displayName": str, "color": str}
}


def merge_settings(saved: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return DEFAULTS overlaid with *saved* (top-level keys only)."""
    merged = copy.deepcopy(DEFAULTS)
    if isinstance(saved, dict):
        merged.update(copy.deepcopy(saved))
    return merged


def normalize_domain(entry: str) -> str:
    entry = entry.strip().lower()
    if "://" in entry:
        entry = (urlparse(entry).hostname or "").lower()
    return entry.rstrip(".")


def normalize_domains(domains: List[str]) -> List[str]:
    """Ordered, de-duplicated list of bare hostnames."""
    seen: List[str] = []
    for raw in domains:
        if not isinstance(raw, str):
            continue
        domain = normalize_domain(raw)
        if domain and domain not in seen:
            seen.append(domain)
    return seen


def normalize_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    result = merge_settings(settings)
    result["blockedDomains"] = normalize_domains(result.get("blockedDomains") or [])
    if not isinstance(result.get("tags"), dict):
        result["tags"] = {}
    return result
