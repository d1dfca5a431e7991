"""
/timer — session lifecycle, countdown display and toolbar badge.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ...actions import session_clock
from ...actions.models import Session, TimerState, to_iso
from ...api.schemas import (
    BadgeOut,
    SessionOut,
    StartSessionRequest,
    StreakOut,
    SuggestedNextOut,
    TimerStateOut,
)

router = APIRouter(prefix="/timer", tags=["timer"])


def _get_controller(request: Request):
    return request.app.state.controller


def _timer_out(state: TimerState, controller) -> TimerStateOut:
    now = controller.now()
    return TimerStateOut(
        status=state.status.value,
        type=state.type.value if state.type else None,
        started_at=to_iso(state.started_at),
        duration=state.duration,
        cycle_position=state.cycle_position,
        session_id=state.session_id,
        alarm_fired=state.alarm_fired,
        remaining_seconds=session_clock.get_remaining(state, now),
        overtime=session_clock.is_overtime(state, now),
        display=session_clock.display(state, now),
    )


def _session_out(session: Session) -> SessionOut:
    return SessionOut(
        id=session.id,
        type=session.type.value,
        started_at=to_iso(session.started_at),
        ended_at=to_iso(session.ended_at),
        status=session.status.value,
        cycle_position=session.cycle_position,
    )


@router.get("", response_model=TimerStateOut)
async def get_timer(controller=Depends(_get_controller)):
    state = await controller.repo.get_timer_state()
    return _timer_out(state, controller)


@router.get("/badge", response_model=BadgeOut)
def get_badge(controller=Depends(_get_controller)):
    """Last badge computed by the periodic refresh; never touches the store."""
    text, color = controller.badge
    return BadgeOut(text=text, color=color)


@router.post("/start", response_model=TimerStateOut)
async def start_timer(req: StartSessionRequest, controller=Depends(_get_controller)):
    state, _ = await controller.start_session(req.type)
    return _timer_out(state, controller)


@router.post("/stop")
async def stop_timer(controller=Depends(_get_controller)):
    session = await controller.stop_session()
    return {"session": _session_out(session).model_dump() if session else None}


@router.get("/suggested", response_model=SuggestedNextOut)
async def get_suggested(controller=Depends(_get_controller)):
    return SuggestedNextOut(type=(await controller.timer.suggest_next()).value)


@router.get("/streak", response_model=StreakOut)
async def get_streak(controller=Depends(_get_controller)):
    return StreakOut(streak=await controller.timer.compute_streak())
