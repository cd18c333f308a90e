"""Step execution recorder.

Wraps a single step invocation inside an execution: times it, binds the
execution context into structlog, and leaves exactly one ExecutionStepLog
row describing the outcome. Failures are recorded and then surfaced to the
caller unchanged.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError

from changewatch.core.errors import ChangewatchError
from changewatch.models.execution import ExecutionStepLog, StepStatus

logger = structlog.get_logger()


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass
class StepContext:
    """Identifies one step invocation inside an execution."""

    execution_id: str
    node_id: str
    node_type: str
    user_id: str | None = None


@dataclass
class StepResult:
    """Outcome of a step: a payload on success, a typed error otherwise."""

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, data: dict[str, Any]) -> "StepResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: ChangewatchError) -> "StepResult":
        return cls(success=False, error=error.message, error_code=error.code)

    def to_output(self) -> dict[str, Any]:
        """Render the payload stored in the log and returned to callers."""
        if self.success:
            return {"success": True, **self.data}
        return {
            "success": False,
            "error": self.error,
            "errorCode": self.error_code,
        }


class Step(Protocol):
    """What the recorder needs from a step."""

    @property
    def node_type(self) -> str: ...

    def parse_input(self, raw: dict[str, Any]) -> Any: ...

    async def run(self, input_data: Any, context: StepContext) -> StepResult: ...


class StepLogSink(Protocol):
    async def add(self, log: ExecutionStepLog) -> ExecutionStepLog: ...


class StepExecutionRecorder:
    """Runs steps and records one trace row per invocation.

    Outcomes:
    - successful StepResult: logged as success, returned
    - failed StepResult: logged as error, returned (not raised)
    - raised exception: logged as error, re-raised

    Example usage:
        recorder = StepExecutionRecorder(ExecutionLogService(session))
        result = await recorder.record(
            StepContext(execution_id=execution.id, node_id="n1",
                        node_type="figma/get-activity-logs"),
            step,
            {"figmaFileUrl": "https://www.figma.com/design/abc123/Name"},
        )
    """

    def __init__(self, sink: StepLogSink) -> None:
        self._sink = sink

    async def record(
        self,
        context: StepContext,
        step: Step,
        raw_input: dict[str, Any],
    ) -> StepResult:
        """Invoke the step exactly once and persist its outcome.

        Args:
            context: Execution and node identity
            step: Step to run
            raw_input: Unvalidated step input

        Returns:
            The step's result, successful or not

        Raises:
            Exception: Whatever the step raised, after it has been recorded
        """
        started_at = utc_now()
        start = time.monotonic()

        with structlog.contextvars.bound_contextvars(
            execution_id=context.execution_id,
            node_id=context.node_id,
            node_type=context.node_type,
        ):
            logger.debug("step_started")

            try:
                try:
                    parsed = step.parse_input(raw_input)
                except ChangewatchError as e:
                    result = StepResult.fail(e)
                else:
                    result = await step.run(parsed, context)
            except Exception as e:
                await self._persist(
                    context,
                    raw_input,
                    status=StepStatus.ERROR,
                    output=None,
                    error=str(e) or type(e).__name__,
                    started_at=started_at,
                    start=start,
                )
                logger.exception("step_raised")
                raise

            if result.success:
                await self._persist(
                    context,
                    raw_input,
                    status=StepStatus.SUCCESS,
                    output=result.to_output(),
                    error=None,
                    started_at=started_at,
                    start=start,
                )
                logger.info("step_succeeded")
            else:
                await self._persist(
                    context,
                    raw_input,
                    status=StepStatus.ERROR,
                    output=result.to_output(),
                    error=result.error,
                    started_at=started_at,
                    start=start,
                )
                logger.info("step_failed", error_code=result.error_code)

            return result

    async def _persist(
        self,
        context: StepContext,
        raw_input: dict[str, Any],
        status: StepStatus,
        output: dict[str, Any] | None,
        error: str | None,
        started_at: datetime,
        start: float,
    ) -> None:
        duration_ms = int((time.monotonic() - start) * 1000)
        completed_at = utc_now()

        log = ExecutionStepLog(
            execution_id=context.execution_id,
            node_id=context.node_id,
            node_type=context.node_type,
            status=status,
            error=error,
            duration_ms=duration_ms,
            started_at=started_at,
            completed_at=completed_at,
            timestamp=completed_at,
        )
        log.set_input_data(raw_input)
        if output is not None:
            log.set_output_data(output)

        try:
            await self._sink.add(log)
        except SQLAlchemyError:
            logger.exception("step_log_persist_failed", status=status.value)
