"""
/browser — the extension's side of the ExtensionBridge: it reports tab and
window events and polls for redirect rules and queued navigations.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ...api.schemas import BrowserEventIn, CommandsOut, RulesOut
from ...telemetry.sources.browser import parse_browser_event

router = APIRouter(prefix="/browser", tags=["browser"])


def _get_bridge(request: Request):
    return request.app.state.bridge


def _get_controller(request: Request):
    return request.app.state.controller


@router.post("/events", status_code=status.HTTP_202_ACCEPTED)
async def ingest_event(
    event: BrowserEventIn,
    bridge=Depends(_get_bridge),
    controller=Depends(_get_controller),
):
    """Accept a single event from the extension."""
    signal = parse_browser_event({"type": event.type, "data": event.data})
    if signal is None:
        raise HTTPException(status_code=422, detail=f"Unrecognised event type: {event.type!r}")

    if signal.kind == "idle_state":
        await controller.on_idle_state(signal.idle_state)
    else:
        await bridge.apply(signal)
    return {"status": "accepted"}


@router.get("/rules", response_model=RulesOut)
async def get_rules(bridge=Depends(_get_bridge)):
    rules = await bridge.get_dynamic_rules()
    return RulesOut(version=bridge.rules_version, rules=[r.to_dict() for r in rules])


@router.get("/commands", response_model=CommandsOut)
def get_commands(bridge=Depends(_get_bridge)):
    """Pending tab navigations; each is returned exactly once."""
    return CommandsOut(commands=bridge.drain_commands())
