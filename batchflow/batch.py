"""Batch operation manager for batchflow."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set, Tuple, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .config import BatchDefaults
from .constants import BATCH_ID_PREFIX, ESTIMATED_SECONDS_PER_ITEM
from .contracts import (
    OPERATION_TYPES,
    TARGET_TYPES,
    BatchError,
    BatchOperation,
    BatchOptions,
    BatchRequest,
    BatchStats,
    utcnow,
)
from .errors import (
    BatchflowError,
    GatewayError,
    InvalidRequest,
    OperationNotFound,
    ValidationError,
)
from .events import (
    BaseEventBus,
    BatchCompletedEvent,
    BatchCreatedEvent,
    BatchProgressEvent,
)
from .gateway import EntityGateway
from .utils.cancellation import CancellationToken
from .utils.tasks import log_task_failure
from .validation import validate_item

if TYPE_CHECKING:
    from .workflows import WorkflowEngine

logger = logging.getLogger(__name__)


class BatchOperationManager:
    """Apply create/update/delete operations to many items in the background.

    Each operation runs as its own task with at most ``max_concurrency`` items
    in flight. Only that task mutates the stored :class:`BatchOperation`;
    callers receive copies.
    """

    def __init__(
        self,
        gateway: EntityGateway,
        event_bus: BaseEventBus,
        defaults: Optional[BatchDefaults] = None,
        workflow_engine: Optional["WorkflowEngine"] = None,
    ) -> None:
        self._gateway = gateway
        self._event_bus = event_bus
        self._defaults = defaults or BatchDefaults()
        self._workflow_engine = workflow_engine
        self._operations: Dict[str, BatchOperation] = {}
        self._tokens: Dict[str, CancellationToken] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._results: Dict[str, List[Tuple[Any, Any]]] = {}

    # ------------------------------------------------------------------
    # Submission and lookup
    async def create_batch_operation(
        self, request: Union[BatchRequest, Mapping[str, Any]]
    ) -> str:
        """Register a batch and start it in the background.

        Returns:
            The operation id, before any item is processed.

        Raises:
            InvalidRequest: If the request has no items or an unknown type.
        """
        request = self._parse_request(request)
        options = self._resolve_options(request.options)

        operation = BatchOperation(
            id=f"{BATCH_ID_PREFIX}-{uuid.uuid4()}",
            type=request.type,
            target_type=request.target_type,
            items=list(request.items),
            options=options,
            total_items=len(request.items),
            metadata=dict(request.metadata),
            created_by=request.created_by,
            estimated_duration=ESTIMATED_SECONDS_PER_ITEM.get(request.type, 1.0)
            * len(request.items),
        )
        token = CancellationToken()
        self._operations[operation.id] = operation
        self._tokens[operation.id] = token
        self._results[operation.id] = []
        logger.info(
            f"Batch {operation.id} created: {operation.type} {operation.total_items} "
            f"{operation.target_type} item(s) by {operation.created_by}"
        )

        await self._event_bus.publish(
            BatchCreatedEvent(operation=operation.model_copy(deep=True))
        )

        task = asyncio.create_task(
            self._run(operation, token), name=f"batch-{operation.id}"
        )
        task.add_done_callback(log_task_failure)
        task.add_done_callback(lambda _: self._forget(operation.id))
        self._tasks[operation.id] = task
        return operation.id

    def _forget(self, operation_id: str) -> None:
        """Drop the task handle and token of a finished operation; the record stays."""
        self._tasks.pop(operation_id, None)
        self._tokens.pop(operation_id, None)

    def get_batch_operation(self, operation_id: str) -> Optional[BatchOperation]:
        operation = self._operations.get(operation_id)
        return operation.model_copy(deep=True) if operation else None

    def get_all_batch_operations(self) -> List[BatchOperation]:
        """Return every known operation in submission order."""
        return [op.model_copy(deep=True) for op in self._operations.values()]

    def cancel_batch_operation(self, operation_id: str) -> bool:
        """Request cooperative cancellation of a running operation.

        Items already dispatched finish; nothing new is dispatched and the
        operation ends as ``cancelled``. Cancelling an operation that is not
        running does nothing.

        Returns:
            ``True`` if a cancellation was requested by this call.

        Raises:
            OperationNotFound: If no operation has ``operation_id``.
        """
        operation = self._operations.get(operation_id)
        if operation is None:
            raise OperationNotFound(f"Batch operation not found: {operation_id}")
        token = self._tokens.get(operation_id)
        if operation.status != "running" or token is None or token.cancelled:
            return False
        token.cancel()
        logger.info(f"Cancellation requested for batch {operation_id}")
        return True

    def get_batch_stats(self) -> BatchStats:
        operations = list(self._operations.values())
        processed = sum(op.processed_items for op in operations)
        successful = sum(op.successful_items for op in operations)
        return BatchStats(
            total_operations=len(operations),
            running_operations=sum(op.status == "running" for op in operations),
            completed_operations=sum(op.status == "completed" for op in operations),
            failed_operations=sum(op.status == "failed" for op in operations),
            total_items_processed=processed,
            success_rate=successful / processed if processed else 0.0,
        )

    async def wait_for_operation(
        self, operation_id: str, timeout: Optional[float] = None
    ) -> Optional[BatchOperation]:
        """Wait until the operation is terminal and return its final record."""
        task = self._tasks.get(operation_id)
        if task is None:
            return self.get_batch_operation(operation_id)
        await asyncio.wait_for(asyncio.shield(task), timeout)
        return self.get_batch_operation(operation_id)

    async def drain(self) -> None:
        """Wait for all running operations to finish."""
        pending = [t for t in self._tasks.values() if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Request handling
    @staticmethod
    def _parse_request(request: Union[BatchRequest, Mapping[str, Any]]) -> BatchRequest:
        if not isinstance(request, BatchRequest):
            try:
                request = BatchRequest.model_validate(request)
            except PydanticValidationError as exc:
                raise InvalidRequest(str(exc)) from exc

        if request.type not in OPERATION_TYPES:
            raise InvalidRequest(f"Unsupported operation type: {request.type}")
        if request.target_type not in TARGET_TYPES:
            raise InvalidRequest(f"Unsupported target type: {request.target_type}")
        if not request.items:
            raise InvalidRequest("A batch needs at least one item")
        return request

    def _resolve_options(self, options: Optional[BatchOptions]) -> BatchOptions:
        """Fill options the caller left unset from the configured defaults."""
        merged = self._defaults.model_dump()
        if options is not None:
            merged.update(options.model_dump(exclude_unset=True))
        try:
            return BatchOptions(**merged)
        except PydanticValidationError as exc:
            raise InvalidRequest(str(exc)) from exc

    # ------------------------------------------------------------------
    # Execution
    async def _run(self, operation: BatchOperation, token: CancellationToken) -> None:
        operation.status = "running"
        operation.started_at = utcnow()
        options = operation.options
        logger.info(
            f"Batch {operation.id} running (max_concurrency={options.max_concurrency}, "
            f"continue_on_error={options.continue_on_error})"
        )

        rejected: Set[int] = set()
        if options.validate_first:
            for index, item in enumerate(operation.items):
                result = validate_item(operation.type, operation.target_type, item)
                if not result.valid:
                    rejected.add(index)
                    self._record_failure(operation, index, result.reason or "invalid item")
            if rejected:
                logger.warning(
                    f"Batch {operation.id}: {len(rejected)} item(s) failed validation"
                )
                # Rejected before processing started: errors only, no progress
                if not options.continue_on_error:
                    await self._finalize(operation, token)
                    return
                for index in sorted(rejected):
                    self._mark_processed(operation)
                    await self._publish_progress(operation, index, succeeded=False)

        semaphore = asyncio.Semaphore(options.max_concurrency)
        in_flight: Set[asyncio.Task] = set()

        def _release(task: asyncio.Task) -> None:
            in_flight.discard(task)
            semaphore.release()

        dispatched = 0
        for index, item in enumerate(operation.items):
            if index in rejected:
                continue
            if self._should_stop(operation, token):
                break
            if options.delay > 0 and dispatched:
                if await token.sleep(options.delay):
                    break
            await semaphore.acquire()
            if self._should_stop(operation, token):
                semaphore.release()
                break

            task = asyncio.create_task(
                self._process_item(operation, index, item, validated=options.validate_first)
            )
            in_flight.add(task)
            task.add_done_callback(_release)
            dispatched += 1

        if in_flight:
            await asyncio.gather(*list(in_flight))

        await self._finalize(operation, token)

    @staticmethod
    def _should_stop(operation: BatchOperation, token: CancellationToken) -> bool:
        if token.cancelled:
            return True
        return not operation.options.continue_on_error and operation.failed_items > 0

    async def _process_item(
        self, operation: BatchOperation, index: int, item: Any, validated: bool
    ) -> None:
        try:
            if not validated:
                result = validate_item(operation.type, operation.target_type, item)
                if not result.valid:
                    raise ValidationError(result.reason)
            entity = await self._dispatch(operation, item)
        except Exception as exc:
            self._record_failure(operation, index, str(exc) or type(exc).__name__)
            logger.warning(f"Batch {operation.id} item {index} failed: {exc}")
            succeeded = False
        else:
            operation.successful_items += 1
            self._results[operation.id].append((item, entity))
            succeeded = True

        self._mark_processed(operation)
        await self._publish_progress(operation, index, succeeded)

    async def _dispatch(self, operation: BatchOperation, item: Mapping[str, Any]) -> Any:
        """Invoke the gateway call matching the operation's type and target."""
        target = operation.target_type
        try:
            if operation.type == "create":
                return await getattr(self._gateway, f"create_{target}")(dict(item))
            payload = {k: v for k, v in item.items() if k != "id"}
            if operation.type == "update":
                return await getattr(self._gateway, f"update_{target}")(item["id"], payload)
            await getattr(self._gateway, f"delete_{target}")(item["id"])
            return None
        except BatchflowError:
            raise
        except Exception as exc:
            raise GatewayError(str(exc) or type(exc).__name__) from exc

    def _record_failure(self, operation: BatchOperation, index: int, message: str) -> None:
        operation.errors.append(BatchError(item_index=index, message=message))
        operation.failed_items += 1

    @staticmethod
    def _mark_processed(operation: BatchOperation) -> None:
        operation.processed_items += 1
        operation.progress = operation.processed_items / operation.total_items

    async def _publish_progress(
        self, operation: BatchOperation, index: int, succeeded: bool
    ) -> None:
        await self._event_bus.publish(
            BatchProgressEvent(
                operation_id=operation.id,
                item_index=index,
                succeeded=succeeded,
                progress=operation.progress,
                processed_items=operation.processed_items,
                total_items=operation.total_items,
            )
        )

    async def _finalize(self, operation: BatchOperation, token: CancellationToken) -> None:
        if token.cancelled:
            operation.status = "cancelled"
        elif operation.failed_items and (
            not operation.options.continue_on_error or operation.successful_items == 0
        ):
            operation.status = "failed"
        else:
            operation.status = "completed"

        operation.skipped_items = (
            operation.total_items - operation.successful_items - operation.failed_items
        )
        operation.completed_at = utcnow()
        logger.info(
            f"Batch {operation.id} {operation.status}: "
            f"{operation.successful_items}/{operation.total_items} succeeded, "
            f"{operation.failed_items} failed, {operation.skipped_items} skipped"
        )
        await self._event_bus.publish(
            BatchCompletedEvent(operation=operation.model_copy(deep=True))
        )

        results = self._results.pop(operation.id, [])
        if operation.status == "completed" and self._workflow_engine is not None:
            await self._fire_triggers(operation, results)

    async def _fire_triggers(
        self, operation: BatchOperation, results: List[Tuple[Any, Any]]
    ) -> None:
        """Start workflows reacting to the entities this batch changed."""
        for item, entity in results:
            trigger = _derive_trigger(operation.type, operation.target_type, item)
            if trigger is None:
                continue
            context = {
                **operation.metadata,
                operation.target_type: _as_dict(entity if entity is not None else item),
            }
            execution_ids = await self._workflow_engine.trigger_workflows(trigger, context)
            if execution_ids:
                logger.info(
                    f"Batch {operation.id} triggered {trigger}: {', '.join(execution_ids)}"
                )


def _derive_trigger(op_type: str, target_type: str, item: Any) -> Optional[str]:
    if op_type == "create" and target_type == "epic":
        return "epic_created"
    status = item.get("status") if isinstance(item, Mapping) else None
    if op_type == "update" and target_type == "story" and status == "completed":
        return "story_completed"
    if op_type == "update" and target_type == "task" and status == "failed":
        return "task_failed"
    return None


def _as_dict(entity: Any) -> Dict[str, Any]:
    if isinstance(entity, BaseModel):
        return entity.model_dump()
    if isinstance(entity, Mapping):
        return dict(entity)
    return {"value": entity}
