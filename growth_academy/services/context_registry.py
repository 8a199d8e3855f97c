"""In-memory registry of client contexts (one per browser tab)."""

from typing import Callable, Dict, Optional
import asyncio
import logging
import secrets
import time

from growth_academy.config import settings
from growth_academy.database import RecordStore
from growth_academy.services.attempts import AttemptRecorder
from growth_academy.services.identity import IdentityProvider
from growth_academy.services.quiz_engine import QuizEngine
from growth_academy.services.session_guard import LocalTokenHolder, SessionGuard

logger = logging.getLogger(__name__)


class ClientContext:
    def __init__(self, context_id: str, guard: SessionGuard, identity_provider: IdentityProvider):
        self.context_id = context_id
        self.guard = guard
        self.identity_provider = identity_provider
        self.quiz_runs: Dict[str, QuizEngine] = {}
        self.created_at = time.time()
        self.last_seen = self.created_at

    def touch(self):
        self.last_seen = time.time()

    def add_quiz_run(self, engine: QuizEngine) -> str:
        run_id = secrets.token_hex(8)
        self.quiz_runs[run_id] = engine
        return run_id

    def close_quiz_run(self, run_id: str) -> Optional[QuizEngine]:
        engine = self.quiz_runs.pop(run_id, None)
        if engine:
            engine.close()
        return engine

    def close(self):
        self.guard.close()
        for run_id in list(self.quiz_runs):
            self.close_quiz_run(run_id)


class ContextRegistry:
    def __init__(
        self,
        store: RecordStore,
        identity_factory: Callable[[], IdentityProvider] = IdentityProvider,
        poll_interval: Optional[float] = None,
        use_push: bool = True,
    ):
        self.store = store
        self.identity_factory = identity_factory
        self.poll_interval = poll_interval
        self.use_push = use_push
        self.recorder = AttemptRecorder(store)
        self.contexts: Dict[str, ClientContext] = {}
        self._cleanup_task: Optional[asyncio.Task] = None

    def create(self) -> ClientContext:
        context_id = secrets.token_urlsafe(16)
        while context_id in self.contexts:
            context_id = secrets.token_urlsafe(16)

        identity_provider = self.identity_factory()
        guard = SessionGuard(
            self.store,
            identity_provider,
            LocalTokenHolder(),
            poll_interval=self.poll_interval,
            use_push=self.use_push,
        )
        context = ClientContext(context_id, guard, identity_provider)
        self.contexts[context_id] = context
        logger.info(f"Created client context {context_id}")
        return context

    def get(self, context_id: Optional[str]) -> Optional[ClientContext]:
        if not context_id:
            return None
        context = self.contexts.get(context_id)
        if context:
            context.touch()
        return context

    def remove(self, context_id: str):
        context = self.contexts.pop(context_id, None)
        if context:
            context.close()
            logger.info(f"Removed client context {context_id}")

    def cleanup_stale(self, max_age: Optional[int] = None) -> int:
        max_age = settings.context_max_age if max_age is None else max_age
        cutoff = time.time() - max_age
        stale = [cid for cid, ctx in self.contexts.items() if ctx.last_seen < cutoff]
        for context_id in stale:
            self.remove(context_id)
        return len(stale)

    def start_background_tasks(self):
        if self._cleanup_task:
            self._cleanup_task.cancel()
        self._cleanup_task = asyncio.create_task(self.periodic_cleanup())

    async def periodic_cleanup(self):
        """Periodic cleanup of contexts nobody has used for a while"""
        while True:
            try:
                await asyncio.sleep(settings.cleanup_interval)
                removed = self.cleanup_stale()
                if removed:
                    logger.info(f"Cleaned up {removed} stale client contexts")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in periodic cleanup: {e}")

    def close_all(self):
        if self._cleanup_task:
            self._cleanup_task.cancel()
            self._cleanup_task = None
        for context_id in list(self.contexts):
            self.remove(context_id)
