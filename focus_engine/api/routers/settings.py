"""
/settings — read and update the blocklist and tag colours.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ...api.schemas import SettingsPatch
from ...settings import DEFAULTS

router = APIRouter(prefix="/settings", tags=["settings"])


def _get_repo(request: Request):
    return request.app.state.controller.repo


@router.get("")
async def read_settings(repo=Depends(_get_repo)):
    """Return current settings with their defaults for reference."""
    return {"settings": await repo.get_settings(), "defaults": DEFAULTS}


@router.put("")
async def write_settings(patch: SettingsPatch, repo=Depends(_get_repo)):
    """Apply a partial update; blocked domains are normalised before saving."""
    current = await repo.get_settings()
    data = {k: v for k, v in patch.model_dump().items() if v is not None}
    current.update(data)
    return {"settings": await repo.save_settings(current)}
