from __future__ import annotations

from typing import List, Optional

from fastapi import FastAPI, HTTPException, Response, status
from pydantic import BaseModel, Field

from tapeviz.control import DEFAULT_STEP_DELAY
from tapeviz.controller import RunInProgress
from tapeviz.interpreter import TraceEvent

from .session import SessionRecord, SessionStore


def _event_to_dict(event: TraceEvent) -> dict:
    return {
        "kind": event.kind.value,
        "cell_index": event.cell_index,
        "cell_content": event.cell_content,
        "position": event.position,
        "reason": event.reason,
    }


class SessionConfiguration(BaseModel):
    code: str = ""
    step_delay_ms: float = Field(default=DEFAULT_STEP_DELAY * 1000, ge=0)
    history_limit: int = Field(default=200, ge=1)


class StartRequest(BaseModel):
    code: Optional[str] = None


class SpeedRequest(BaseModel):
    delay_ms: float = Field(ge=0)


class InputRequest(BaseModel):
    value: str


class TraceEventModel(BaseModel):
    kind: str
    cell_index: int
    cell_content: int
    position: int
    reason: Optional[str]


class SessionPayload(BaseModel):
    session_id: str
    code: str
    tape: List[int]
    pointer: Optional[int]
    output: str
    highlight: Optional[int]
    fault: Optional[str]
    running: bool
    paused: bool
    finished: bool
    awaiting_input: bool
    input_cell: Optional[int]
    step_delay_ms: float
    events: List[TraceEventModel]


def create_app(store: Optional[SessionStore] = None) -> FastAPI:
    session_store = store or SessionStore()
    app = FastAPI(title="tapeviz session API", version="0.1.0")

    def _get_record(session_id: str) -> SessionRecord:
        try:
            return session_store.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    def _build_payload(record: SessionRecord) -> SessionPayload:
        view = record.view
        state = view.snapshot()
        return SessionPayload(
            session_id=record.session_id,
            code=record.code,
            tape=state.tape,
            pointer=state.pointer,
            output=state.output,
            highlight=state.highlight,
            fault=state.fault,
            running=record.is_running(),
            paused=record.is_paused(),
            finished=view.finished,
            awaiting_input=record.awaiting_input,
            input_cell=record.input_cell,
            step_delay_ms=record.controller.step_delay * 1000,
            events=[TraceEventModel(**_event_to_dict(event)) for event in view.recent_events()],
        )

    @app.post("/api/session", response_model=SessionPayload, status_code=status.HTTP_201_CREATED)
    def create_session(payload: SessionConfiguration) -> SessionPayload:
        record = session_store.create_session(
            code=payload.code,
            step_delay=payload.step_delay_ms / 1000.0,
            history_limit=payload.history_limit,
        )
        return _build_payload(record)

    @app.get("/api/session/{session_id}", response_model=SessionPayload)
    def get_session(session_id: str) -> SessionPayload:
        return _build_payload(_get_record(session_id))

    @app.post("/api/session/{session_id}/start", response_model=SessionPayload)
    def start_session(session_id: str, payload: Optional[StartRequest] = None) -> SessionPayload:
        record = _get_record(session_id)
        code = payload.code if payload is not None else None
        try:
            record.start(code)
        except RunInProgress as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return _build_payload(record)

    @app.post("/api/session/{session_id}/pause", response_model=SessionPayload)
    def pause_session(session_id: str) -> SessionPayload:
        record = _get_record(session_id)
        record.controller.pause()
        return _build_payload(record)

    @app.post("/api/session/{session_id}/resume", response_model=SessionPayload)
    def resume_session(session_id: str) -> SessionPayload:
        record = _get_record(session_id)
        record.controller.resume()
        return _build_payload(record)

    @app.post("/api/session/{session_id}/step", response_model=SessionPayload)
    def step_session(session_id: str) -> SessionPayload:
        record = _get_record(session_id)
        record.controller.step()
        return _build_payload(record)

    @app.post("/api/session/{session_id}/speed", response_model=SessionPayload)
    def set_speed(session_id: str, payload: SpeedRequest) -> SessionPayload:
        record = _get_record(session_id)
        record.controller.set_speed(payload.delay_ms)
        return _build_payload(record)

    @app.post("/api/session/{session_id}/input", response_model=SessionPayload)
    def send_input(session_id: str, payload: InputRequest) -> SessionPayload:
        record = _get_record(session_id)
        try:
            record.answer(payload.value)
        except LookupError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return _build_payload(record)

    @app.post("/api/session/{session_id}/reset", response_model=SessionPayload)
    def reset_session(session_id: str) -> SessionPayload:
        record = _get_record(session_id)
        record.reset()
        return _build_payload(record)

    @app.delete("/api/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_session(session_id: str) -> Response:
        removed = session_store.remove(session_id)
        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown session id: {session_id}",
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
