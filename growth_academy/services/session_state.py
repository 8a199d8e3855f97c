"""Session guard transitions.

`transition` is pure: it maps the current state and an event to the next
state plus the commands the guard has to carry out. Events that make no
sense in the current phase leave the state untouched and issue nothing, so
late notifications after a terminal transition are harmless.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple, Union

from growth_academy.models import SessionRecord


class SessionPhase(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    VALIDATING = "validating"
    ESTABLISHING = "establishing"
    ACTIVE = "active"
    EXPIRED = "expired"
    LOGGING_OUT = "logging_out"


MONITORED_PHASES = (SessionPhase.VALIDATING, SessionPhase.ESTABLISHING, SessionPhase.ACTIVE)


@dataclass(frozen=True)
class SessionState:
    phase: SessionPhase = SessionPhase.UNAUTHENTICATED
    identity: Optional[str] = None
    local_token: Optional[str] = None


# Events

@dataclass(frozen=True)
class Authenticated:
    identity: str
    local_token: Optional[str]
    fresh_token: str  # used only when no local token exists


@dataclass(frozen=True)
class Poll:
    pass


@dataclass(frozen=True)
class RemoteObserved:
    record: Optional[SessionRecord]


@dataclass(frozen=True)
class RemoteUnavailable:
    reason: str = ""


@dataclass(frozen=True)
class SessionEstablished:
    pass


@dataclass(frozen=True)
class ExpiryAcknowledged:
    pass


@dataclass(frozen=True)
class LogoutRequested:
    pass


@dataclass(frozen=True)
class LogoutCompleted:
    pass


@dataclass(frozen=True)
class IdentityChanged:
    identity: Optional[str]


Event = Union[
    Authenticated, Poll, RemoteObserved, RemoteUnavailable, SessionEstablished,
    ExpiryAcknowledged, LogoutRequested, LogoutCompleted, IdentityChanged,
]


# Commands

@dataclass(frozen=True)
class LoadRemoteRecord:
    identity: str


@dataclass(frozen=True)
class StoreLocalToken:
    token: str


@dataclass(frozen=True)
class UpsertSessionRecord:
    identity: str
    token: str


@dataclass(frozen=True)
class ClearLocalToken:
    pass


@dataclass(frozen=True)
class DeleteSessionRecord:
    identity: str


@dataclass(frozen=True)
class SignOut:
    pass


@dataclass(frozen=True)
class ShowExpiredNotice:
    pass


Command = Union[
    LoadRemoteRecord, StoreLocalToken, UpsertSessionRecord, ClearLocalToken,
    DeleteSessionRecord, SignOut, ShowExpiredNotice,
]

Transition = Tuple[SessionState, List[Command]]


def tokens_match(state: SessionState, record: Optional[SessionRecord]) -> bool:
    return (
        record is not None
        and state.local_token is not None
        and record.active_session_id == state.local_token
    )


def _expire(state: SessionState) -> Transition:
    return replace(state, phase=SessionPhase.EXPIRED), [ShowExpiredNotice()]


def _signed_out(commands: List[Command]) -> Transition:
    return SessionState(), commands


def transition(state: SessionState, event: Event) -> Transition:
    phase = state.phase

    if isinstance(event, Authenticated):
        if phase != SessionPhase.UNAUTHENTICATED:
            return state, []
        if event.local_token is None:
            establishing = SessionState(SessionPhase.ESTABLISHING, event.identity, event.fresh_token)
            return establishing, [
                StoreLocalToken(event.fresh_token),
                UpsertSessionRecord(event.identity, event.fresh_token),
            ]
        validating = SessionState(SessionPhase.VALIDATING, event.identity, event.local_token)
        return validating, [LoadRemoteRecord(event.identity)]

    if isinstance(event, Poll):
        if phase in (SessionPhase.VALIDATING, SessionPhase.ACTIVE):
            return state, [LoadRemoteRecord(state.identity)]
        if phase == SessionPhase.ESTABLISHING:
            return state, [UpsertSessionRecord(state.identity, state.local_token)]
        return state, []

    if isinstance(event, RemoteObserved):
        if phase in (SessionPhase.VALIDATING, SessionPhase.ACTIVE):
            if tokens_match(state, event.record):
                return replace(state, phase=SessionPhase.ACTIVE), []
            return _expire(state)
        if phase == SessionPhase.ESTABLISHING and tokens_match(state, event.record):
            return replace(state, phase=SessionPhase.ACTIVE), []
        # While establishing, a foreign record is the one our upsert is about to replace
        return state, []

    if isinstance(event, RemoteUnavailable):
        # Transient store failures never end a session
        return state, []

    if isinstance(event, SessionEstablished):
        if phase == SessionPhase.ESTABLISHING:
            return replace(state, phase=SessionPhase.ACTIVE), []
        return state, []

    if isinstance(event, ExpiryAcknowledged):
        if phase != SessionPhase.EXPIRED:
            return state, []
        return _signed_out([ClearLocalToken(), SignOut()])

    if isinstance(event, LogoutRequested):
        if phase in (SessionPhase.ACTIVE, SessionPhase.ESTABLISHING):
            return replace(state, phase=SessionPhase.LOGGING_OUT), [
                DeleteSessionRecord(state.identity), ClearLocalToken(), SignOut(),
            ]
        if phase in (SessionPhase.VALIDATING, SessionPhase.EXPIRED):
            # The shared record belongs to another context, leave it alone
            return replace(state, phase=SessionPhase.LOGGING_OUT), [ClearLocalToken(), SignOut()]
        return state, []

    if isinstance(event, LogoutCompleted):
        if phase != SessionPhase.LOGGING_OUT:
            return state, []
        return _signed_out([])

    if isinstance(event, IdentityChanged):
        if event.identity is None and phase in MONITORED_PHASES:
            return _signed_out([ClearLocalToken()])
        return state, []

    raise TypeError(f"Unknown session event: {event!r}")
