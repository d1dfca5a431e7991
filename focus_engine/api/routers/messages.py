"""
/messages — the extension's request/response channel.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["messages"])


def _get_dispatcher(request: Request):
    return request.app.state.dispatcher


@router.post("/messages")
async def post_message(payload: Any = Body(None), dispatcher=Depends(_get_dispatcher)):
    """Dispatch one message; errors come back as {"error": ...} with status 200."""
    result = await dispatcher.dispatch(payload)
    return JSONResponse(content=result)
