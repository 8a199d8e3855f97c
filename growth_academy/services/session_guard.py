"""Single-active-session enforcement for one client context."""

from collections import deque
from typing import Callable, List, Optional
import asyncio
import logging
import secrets

from growth_academy.config import settings
from growth_academy.database import RecordStore
from growth_academy.errors import StoreUnavailable
from growth_academy.models import Identity, SessionRecord
from growth_academy.services.identity import IdentityProvider
from growth_academy.services.session_state import (
    MONITORED_PHASES, Authenticated, ClearLocalToken, Command, DeleteSessionRecord,
    Event, ExpiryAcknowledged, IdentityChanged, LoadRemoteRecord, LogoutCompleted,
    LogoutRequested, Poll, RemoteObserved, RemoteUnavailable, SessionEstablished,
    SessionPhase, SessionState, ShowExpiredNotice, SignOut, StoreLocalToken,
    UpsertSessionRecord, transition,
)
from growth_academy.utils.time_utils import get_ist_time

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = (
    "Your session has been terminated because this account was logged into from "
    "another device. Please log in again to continue."
)


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


class LocalTokenHolder:
    """The session token kept by one client context; never shared through the store"""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str):
        self._token = token

    def clear(self):
        self._token = None


class SessionGuard:
    """Runs the session state machine against the store, the token holder and the identity provider.

    Every store call is synchronous, so a dispatch completes within a single
    event-loop turn. Events raised while a dispatch is running (for example
    the push notification for our own upsert) are queued behind it.
    """

    def __init__(
        self,
        store: RecordStore,
        identity_provider: IdentityProvider,
        token_holder: LocalTokenHolder,
        poll_interval: Optional[float] = None,
        use_push: bool = True,
    ):
        self.store = store
        self.identity_provider = identity_provider
        self.token_holder = token_holder
        self.poll_interval = poll_interval if poll_interval is not None else settings.session_poll_interval
        self.use_push = use_push

        self.state = SessionState()
        self.identity: Optional[Identity] = None
        self.notice: Optional[str] = None
        self.expired = asyncio.Event()

        self._pending: deque = deque()
        self._dispatching = False
        self._poll_task: Optional[asyncio.Task] = None
        self._unsubscribe_record: Optional[Callable[[], None]] = None
        self._unsubscribe_identity: Optional[Callable[[], None]] = None
        self._expiry_listeners: List[Callable[[str], None]] = []

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    @property
    def is_active(self) -> bool:
        return self.state.phase == SessionPhase.ACTIVE

    def add_expiry_listener(self, listener: Callable[[str], None]):
        self._expiry_listeners.append(listener)

    # Public operations

    def on_authenticated(self, identity: Identity) -> SessionPhase:
        """Validate or establish the session after the identity provider accepted a login"""
        if self.phase != SessionPhase.UNAUTHENTICATED:
            logger.warning(f"Ignoring login for {identity.id} while session is {self.phase.value}")
            return self.phase

        self.identity = identity
        self.notice = None
        self.expired.clear()
        self._subscribe(identity.id)
        self.dispatch(Authenticated(identity.id, self.token_holder.get(), generate_session_token()))
        return self.phase

    def check(self) -> SessionPhase:
        """Compare the local token against the shared record once"""
        self.dispatch(Poll())
        return self.phase

    def acknowledge_expiry(self) -> SessionPhase:
        self.dispatch(ExpiryAcknowledged())
        return self.phase

    def logout(self) -> SessionPhase:
        self.dispatch(LogoutRequested())
        self.dispatch(LogoutCompleted())
        return self.phase

    def start_monitoring(self):
        """Re-check every poll interval; requires a running event loop"""
        if self._poll_task and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._poll_loop())

    def close(self):
        """Tear down polling and subscriptions without touching the session"""
        self._stop_monitoring()

    # State machine plumbing

    def dispatch(self, event: Event):
        self._pending.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._pending:
                current = self._pending.popleft()
                previous = self.state
                self.state, commands = transition(previous, current)
                if self.state.phase != previous.phase:
                    logger.info(
                        f"Session for {self.state.identity or previous.identity}: "
                        f"{previous.phase.value} -> {self.state.phase.value}"
                    )
                for command in commands:
                    self._execute(command)
        finally:
            self._dispatching = False

        if self.state.phase not in MONITORED_PHASES:
            self._stop_monitoring()
        if self.state.phase == SessionPhase.UNAUTHENTICATED:
            self.notice = None
            self.expired.clear()

    def _execute(self, command: Command):
        if isinstance(command, LoadRemoteRecord):
            self._load_remote(command.identity)
        elif isinstance(command, StoreLocalToken):
            self.token_holder.set(command.token)
        elif isinstance(command, UpsertSessionRecord):
            self._upsert_remote(command.identity, command.token)
        elif isinstance(command, ClearLocalToken):
            self.token_holder.clear()
        elif isinstance(command, DeleteSessionRecord):
            self._delete_remote(command.identity)
        elif isinstance(command, SignOut):
            self._sign_out()
        elif isinstance(command, ShowExpiredNotice):
            self._show_expired_notice()
        else:
            raise TypeError(f"Unknown session command: {command!r}")

    def _load_remote(self, identity: str):
        try:
            data = self.store.get(settings.sessions_collection, identity)
            record = SessionRecord.from_store(data)
        except StoreUnavailable as e:
            logger.warning(f"Session check for {identity} deferred: {e}")
            self.dispatch(RemoteUnavailable(str(e)))
            return
        except ValueError as e:
            logger.error(f"Malformed session record for {identity}: {e}")
            self.dispatch(RemoteUnavailable(str(e)))
            return
        self.dispatch(RemoteObserved(record))

    def _upsert_remote(self, identity: str, token: str):
        record = SessionRecord(active_session_id=token, last_login=get_ist_time())
        try:
            self.store.upsert(settings.sessions_collection, identity, record.to_store())
        except StoreUnavailable as e:
            logger.warning(f"Could not establish session for {identity}, retrying on next check: {e}")
            self.dispatch(RemoteUnavailable(str(e)))
            return
        self.dispatch(SessionEstablished())

    def _delete_remote(self, identity: str):
        try:
            self.store.delete(settings.sessions_collection, identity)
        except StoreUnavailable as e:
            logger.error(f"Could not delete session record for {identity}: {e}")

    def _sign_out(self):
        try:
            self.identity_provider.sign_out()
        except Exception as e:
            logger.warning(f"Identity provider sign-out failed: {e}")

    def _show_expired_notice(self):
        self.notice = SESSION_EXPIRED_MESSAGE
        self.expired.set()
        for listener in list(self._expiry_listeners):
            try:
                listener(self.notice)
            except Exception as e:
                logger.error(f"Session expiry listener failed: {e}")

    # Change detection

    def _subscribe(self, identity: str):
        self._unsubscribe_all()
        if self.use_push:
            self._unsubscribe_record = self.store.subscribe(
                settings.sessions_collection, self._on_record_change, record_id=identity
            )
        try:
            self._unsubscribe_identity = self.identity_provider.on_identity_change(self._on_identity_change)
        except Exception as e:
            logger.warning(f"Identity change notifications unavailable: {e}")

    def _on_record_change(self, record_id: str, value: Optional[dict]):
        if self.phase not in MONITORED_PHASES:
            return
        try:
            record = SessionRecord.from_store(value)
        except ValueError as e:
            logger.error(f"Ignoring malformed session record for {record_id}: {e}")
            return
        self.dispatch(RemoteObserved(record))

    def _on_identity_change(self, identity: Optional[Identity]):
        self.dispatch(IdentityChanged(identity.id if identity else None))

    async def _poll_loop(self):
        while self.phase in MONITORED_PHASES:
            try:
                await asyncio.sleep(self.poll_interval)
                self.check()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in session check: {e}")

    def _unsubscribe_all(self):
        for attr in ("_unsubscribe_record", "_unsubscribe_identity"):
            unsubscribe = getattr(self, attr)
            if unsubscribe:
                try:
                    unsubscribe()
                except Exception as e:
                    logger.warning(f"Unsubscribe failed: {e}")
                setattr(self, attr, None)

    def _stop_monitoring(self):
        self._unsubscribe_all()
        task = self._poll_task
        self._poll_task = None
        if task and not task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            # A loop that stops itself exits on its own phase check
            if task is not current:
                task.cancel()
