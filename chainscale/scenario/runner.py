"""
Run orchestration.

The Runner owns a deployed cluster for exactly one run: it drives every
workload as its own task until the run deadline, broadcasts a shared stop
signal, evaluates every expectation once, and always releases the
deployment, whatever happened before.
"""

from __future__ import annotations

import asyncio
import time

from chainscale.logging import Logger

from .cleanup import CleanupStack
from .context import RunContext
from .errors import CleanupError, RunError, WorkloadAbortError
from .expectation import Expectation, ExpectationVerdict
from .logging_models import (
    ExpectationInfo,
    ExpectationWarning,
    RunnerError,
    RunnerInfo,
    RunnerWarning,
    WorkloadError,
)
from .results import RunHandle, RunOutcome, RunResult, WorkloadReport
from .scenario import Scenario
from .workload import Workload

DEFAULT_GRACE_PERIOD = 5.0


class Runner:
    def __init__(
        self,
        context: RunContext,
        cleanup: CleanupStack,
        grace_period: float = DEFAULT_GRACE_PERIOD,
    ) -> None:
        self.context = context
        self._cleanup = cleanup
        self._grace_period = grace_period
        self._used = False
        self._logger = Logger()

    @property
    def deployment_id(self) -> str:
        return self.context.deployment_id

    async def run(self, scenario: Scenario) -> RunHandle:
        if self._used:
            raise RunError("runner has already been used for a run")

        self._used = True
        cleanup_error: CleanupError | None = None

        try:
            outcome = await self._execute(scenario)

        finally:
            cleanup_error = await self._release()

        if cleanup_error is not None:
            outcome.cleanup_error = str(cleanup_error)

        return RunHandle(outcome)

    async def release(self) -> None:
        """Tear the deployment down without running anything."""
        self._used = True
        await self._release()

    async def _release(self) -> CleanupError | None:
        try:
            await self._cleanup.cleanup()

        except CleanupError as err:
            await self._logger.log(
                RunnerError(
                    message=f"Cleanup incomplete: {err}",
                    deployment_id=self.deployment_id,
                )
            )
            return err

        return None

    async def _execute(self, scenario: Scenario) -> RunOutcome:
        ctx = self.context
        started = time.monotonic()

        required = set(scenario.capabilities)
        for spec in scenario.workloads:
            required.update(spec.requires)

        missing = required - ctx.capabilities()
        if missing:
            names = ", ".join(sorted(capability.value for capability in missing))
            raise RunError(f"run context is missing required capabilities: {names}")

        workloads = [spec.create() for spec in scenario.workloads]
        expectations: list[Expectation] = []
        for workload in workloads:
            expectations.extend(workload.expectations())

        expectations.extend(spec.create() for spec in scenario.expectations)

        for workload in workloads:
            try:
                await workload.init(ctx)

            except Exception as err:
                raise RunError(f"workload {workload.name} setup failed: {err}") from err

        await self._logger.log(
            RunnerInfo(
                message=f"Starting run of {scenario.duration:.1f}s with {len(workloads)} workload(s) and {len(expectations)} expectation(s)",
                deployment_id=self.deployment_id,
            )
        )

        capture_errors: dict[int, Exception] = {}
        for expectation in expectations:
            try:
                await expectation.start_capture(ctx)

            except Exception as err:
                capture_errors[id(expectation)] = err
                await self._logger.log(
                    ExpectationWarning(
                        message=f"Capture failed to start: {err}",
                        expectation=expectation.name,
                    )
                )

        reports = [WorkloadReport(name=workload.name) for workload in workloads]
        abort_error: WorkloadAbortError | None = None

        try:
            abort_error = await self._drive(scenario, workloads, reports, started)

        finally:
            for expectation in expectations:
                try:
                    await expectation.stop_capture()

                except Exception as err:
                    await self._logger.log(
                        ExpectationWarning(
                            message=f"Capture failed to stop: {err}",
                            expectation=expectation.name,
                        )
                    )

        verdicts = [
            await self._evaluate(expectation, capture_errors.get(id(expectation)))
            for expectation in expectations
        ]

        aborted = abort_error is not None
        passed = not aborted and all(verdict.passed for verdict in verdicts)

        outcome = RunOutcome(
            result=RunResult.PASSED if passed else RunResult.FAILED,
            verdicts=verdicts,
            workloads=reports,
            duration_seconds=time.monotonic() - started,
            aborted=aborted,
            error=str(abort_error) if abort_error else None,
        )

        await self._logger.log(
            RunnerInfo(
                message=f"Run {outcome.result.value} with {len(outcome.failed_verdicts)}/{len(verdicts)} failed expectation(s)",
                deployment_id=self.deployment_id,
            )
        )

        return outcome

    async def _drive(
        self,
        scenario: Scenario,
        workloads: list[Workload],
        reports: list[WorkloadReport],
        started: float,
    ) -> WorkloadAbortError | None:
        stop = asyncio.Event()
        deadline = started + scenario.duration

        tasks: dict[asyncio.Task, int] = {
            asyncio.create_task(workload.execute(self.context, stop)): idx
            for idx, workload in enumerate(workloads)
        }

        pending: set[asyncio.Task] = set(tasks)
        abort_error: WorkloadAbortError | None = None

        try:
            while pending and abort_error is None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break

                done, pending = await asyncio.wait(
                    pending,
                    timeout=remaining,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                for task in done:
                    error = await self._collect(task, workloads[tasks[task]], reports[tasks[task]])
                    if isinstance(error, WorkloadAbortError) and abort_error is None:
                        abort_error = error

            if abort_error is None:
                remaining = deadline - time.monotonic()
                if remaining > 0:
                    await asyncio.sleep(remaining)

            stop.set()
            for workload in workloads:
                workload.signal_stop()

            if pending:
                done, pending = await asyncio.wait(pending, timeout=self._grace_period)
                for task in done:
                    await self._collect(task, workloads[tasks[task]], reports[tasks[task]])

        finally:
            stop.set()
            for task in pending:
                task.cancel()
                reports[tasks[task]].forced_stop = True

            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                await self._logger.log(
                    RunnerWarning(
                        message=f"Force-stopped {len(pending)} workload(s) after {self._grace_period:.1f}s grace period",
                        deployment_id=self.deployment_id,
                    )
                )

            for workload, report in zip(workloads, reports):
                report.state = workload.state

        return abort_error

    async def _collect(
        self,
        task: asyncio.Task,
        workload: Workload,
        report: WorkloadReport,
    ) -> Exception | None:
        if task.cancelled():
            report.forced_stop = True
            return None

        error = task.exception()
        if error is None:
            return None

        report.error = f"{type(error).__name__}: {error}"
        await self._logger.log(
            WorkloadError(
                message=f"Workload failed: {error}",
                workload=workload.name,
            )
        )

        return error

    async def _evaluate(
        self,
        expectation: Expectation,
        capture_error: Exception | None,
    ) -> ExpectationVerdict:
        if capture_error is not None:
            return ExpectationVerdict.failure(
                expectation.name,
                f"capture failed: {capture_error}",
                error=repr(capture_error),
            )

        try:
            verdict = await expectation.evaluate(self.context)

        except Exception as err:
            verdict = ExpectationVerdict.failure(
                expectation.name,
                f"evaluation raised {type(err).__name__}: {err}",
                error=repr(err),
            )

        await self._logger.log(
            ExpectationInfo(
                message=f"{'PASS' if verdict.passed else 'FAIL'}: {verdict.message}",
                expectation=expectation.name,
            )
        )

        return verdict
