from __future__ import annotations

from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
)

from .cancellation import Context
from .errors import Phase, StateRollbackError
from .logs import get_logger
from .ports import (
    AsyncAtomicContext,
    AsyncEventSink,
    AsyncStorageBackend,
    AtomicContext,
    ContextFactory,
    EventSink,
    LoggerPort,
    StorageBackend,
)

T = TypeVar("T", bound=AtomicContext)
AT = TypeVar("AT", bound=AsyncAtomicContext)
R = TypeVar("R")

# Anything that is not an Exception (KeyboardInterrupt, SystemExit,
# asyncio.CancelledError) is re-raised unchanged after rollback.
DEFAULT_FAILURE_TYPES: Tuple[Type[BaseException], ...] = (Exception,)


class _Orchestrator:
    """
    Shared configuration and diagnostics of the sync and async unit of work.

    Construction:
      - storage: source of transaction handles
      - new_context: adapts a raw handle into the caller's atomic context
      - event_sink: receives the events of a successful attempt
      - logger: diagnostics for cleanup failures (default: stdlib `unitwork`)
      - failure_types: exceptions from the body meaning "logic failed";
        anything else is re-raised unchanged after rollback
    """

    def __init__(
        self,
        storage: Any,
        new_context: ContextFactory[Any, Any],
        event_sink: Any,
        *,
        logger: Optional[LoggerPort] = None,
        failure_types: Tuple[Type[BaseException], ...] = DEFAULT_FAILURE_TYPES,
    ) -> None:
        self._storage = storage
        self._new_context = new_context
        self._event_sink = event_sink
        self._logger: LoggerPort = logger or get_logger()
        self._failure_types = failure_types

    def _is_failure(self, exc: BaseException) -> bool:
        return isinstance(exc, self._failure_types)

    def _rollback_failed(self, err: Exception, phase: Phase) -> None:
        self._logger.error(
            "failed to rollback transaction", error=repr(err), phase=phase.value
        )

    def _rolled_back(self, phase: Phase) -> None:
        self._logger.debug("transaction rolled back", phase=phase.value)

    def _close_failed(self, err: Exception) -> None:
        self._logger.error("failed to close atomic context", error=repr(err))

    def _publish_failed(self, err: Exception, events: Sequence[Any]) -> None:
        self._logger.error(
            "failed to publish events", error=repr(err), count=len(events)
        )


class UnitOfWork(_Orchestrator, Generic[T]):
    """
    Runs business logic inside one storage transaction and publishes the
    events it recorded once the transaction committed.

    Execution contract of `atomic(ctx, body)`:
      - begin/context-construction failures raise StateRollbackError
      - the body runs with a child of `ctx` that is cancelled on return
      - failure_types raised by the body: rollback, raise StateRollbackError
      - any other exception: rollback, re-raise unchanged
      - success: commit, drain events, close, publish; sink errors propagate
        unwrapped since the data is already durable
    """

    def __init__(
        self,
        storage: StorageBackend,
        new_context: ContextFactory[Any, T],
        event_sink: EventSink,
        *,
        logger: Optional[LoggerPort] = None,
        failure_types: Tuple[Type[BaseException], ...] = DEFAULT_FAILURE_TYPES,
    ) -> None:
        super().__init__(
            storage,
            new_context,
            event_sink,
            logger=logger,
            failure_types=failure_types,
        )

    def atomic(self, ctx: Context, body: Callable[[Context, T], R]) -> R:
        try:
            ctx.raise_if_cancelled()
            tx = self._storage.begin(ctx)
        except Exception as exc:
            raise StateRollbackError(Phase.BEGIN, exc) from exc

        try:
            atomic_ctx: T = self._new_context(tx)
        except BaseException as exc:
            self._rollback(tx, Phase.BUILD_CONTEXT)
            if isinstance(exc, Exception):
                raise StateRollbackError(Phase.BUILD_CONTEXT, exc) from exc
            raise

        self._logger.debug("transaction started")
        tx_ctx, cancel = ctx.with_cancel()
        try:
            try:
                result = body(tx_ctx, atomic_ctx)
            except BaseException as exc:
                self._rollback(tx, Phase.BODY)
                if self._is_failure(exc):
                    raise StateRollbackError(Phase.BODY, exc) from exc
                raise

            try:
                atomic_ctx.commit()
            except BaseException as exc:
                self._rollback(tx, Phase.COMMIT)
                if isinstance(exc, Exception):
                    raise StateRollbackError(Phase.COMMIT, exc) from exc
                raise
            self._logger.debug("transaction committed")

            events = list(atomic_ctx.collect_events())
        finally:
            cancel()
            self._close(atomic_ctx)

        self._publish(events)
        return result

    # Cleanup ------------------------------------------------------------------

    def _rollback(self, tx: Any, phase: Phase) -> None:
        try:
            tx.rollback()
        except Exception as err:
            self._rollback_failed(err, phase)
        else:
            self._rolled_back(phase)

    def _close(self, atomic_ctx: T) -> None:
        try:
            atomic_ctx.close()
        except Exception as err:
            self._close_failed(err)

    def _publish(self, events: Sequence[Any]) -> None:
        try:
            self._event_sink.publish_events(*events)
        except Exception as err:
            self._publish_failed(err, events)
            raise
        self._logger.debug("events published", count=len(events))


class AsyncUnitOfWork(_Orchestrator, Generic[AT]):
    """
    Asynchronous unit of work.

    Execution contract mirrors UnitOfWork; storage, handle, commit/close and
    the event sink are awaited. `asyncio.CancelledError` raised inside the body
    is not a failure type: the transaction is rolled back and the
    cancellation propagates.
    """

    def __init__(
        self,
        storage: AsyncStorageBackend,
        new_context: ContextFactory[Any, AT],
        event_sink: AsyncEventSink,
        *,
        logger: Optional[LoggerPort] = None,
        failure_types: Tuple[Type[BaseException], ...] = DEFAULT_FAILURE_TYPES,
    ) -> None:
        super().__init__(
            storage,
            new_context,
            event_sink,
            logger=logger,
            failure_types=failure_types,
        )

    async def atomic(
        self, ctx: Context, body: Callable[[Context, AT], Awaitable[R]]
    ) -> R:
        try:
            ctx.raise_if_cancelled()
            tx = await self._storage.begin(ctx)
        except Exception as exc:
            raise StateRollbackError(Phase.BEGIN, exc) from exc

        try:
            atomic_ctx: AT = self._new_context(tx)
        except BaseException as exc:
            await self._rollback(tx, Phase.BUILD_CONTEXT)
            if isinstance(exc, Exception):
                raise StateRollbackError(Phase.BUILD_CONTEXT, exc) from exc
            raise

        self._logger.debug("transaction started")
        tx_ctx, cancel = ctx.with_cancel()
        try:
            try:
                result = await body(tx_ctx, atomic_ctx)
            except BaseException as exc:
                await self._rollback(tx, Phase.BODY)
                if self._is_failure(exc):
                    raise StateRollbackError(Phase.BODY, exc) from exc
                raise

            try:
                await atomic_ctx.commit()
            except BaseException as exc:
                await self._rollback(tx, Phase.COMMIT)
                if isinstance(exc, Exception):
                    raise StateRollbackError(Phase.COMMIT, exc) from exc
                raise
            self._logger.debug("transaction committed")

            events = list(atomic_ctx.collect_events())
        finally:
            cancel()
            await self._close(atomic_ctx)

        await self._publish(events)
        return result

    # Cleanup ------------------------------------------------------------------

    async def _rollback(self, tx: Any, phase: Phase) -> None:
        try:
            await tx.rollback()
        except Exception as err:
            self._rollback_failed(err, phase)
        else:
            self._rolled_back(phase)

    async def _close(self, atomic_ctx: AT) -> None:
        try:
            await atomic_ctx.close()
        except Exception as err:
            self._close_failed(err)

    async def _publish(self, events: Sequence[Any]) -> None:
        try:
            await self._event_sink.publish_events(*events)
        except Exception as err:
            self._publish_failed(err, events)
            raise
        self._logger.debug("events published", count=len(events))
