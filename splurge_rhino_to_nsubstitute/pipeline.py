"""Step, Task, Job and Pipeline composition.

A ``Step`` is one transformation of its input, a ``Task`` threads data
through a list of steps, a ``Job`` runs tasks and a ``Pipeline`` runs
jobs. Every level returns a :class:`~.result.Result` and stops at the
first error, merging warnings from the levels below it.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from .context import PipelineContext
from .events import (
    ErrorEvent,
    EventBus,
    JobCompletedEvent,
    JobStartedEvent,
    PipelineCompletedEvent,
    PipelineStartedEvent,
    StepCompletedEvent,
    StepStartedEvent,
    TaskCompletedEvent,
    TaskStartedEvent,
)
from .result import Result

T = TypeVar("T")
R = TypeVar("R")


def _merge_warnings(results: list[Result[Any]]) -> list[str]:
    warnings: list[str] = []
    for result in results:
        if result.warnings:
            warnings.extend(result.warnings)
    return warnings


def _finish(results: list[Result[Any]]) -> Result[Any]:
    """Turn the last result into the combined result of a level."""
    final_result = results[-1]
    warnings = _merge_warnings(results)
    if warnings:
        return Result.warning(final_result.data, warnings, final_result.metadata)
    if final_result.is_skipped():
        return final_result
    return Result.success(final_result.data, final_result.metadata)


class Step(ABC, Generic[T, R]):
    """Atomic operation with a single responsibility.

    Subclasses implement :meth:`execute`; callers use :meth:`run`, which
    publishes start/completion events and turns exceptions into error
    results.
    """

    def __init__(self, name: str, event_bus: EventBus) -> None:
        self.name = name
        self.event_bus = event_bus
        self._logger = logging.getLogger(f"{__name__}.{name}")

    @abstractmethod
    def execute(self, context: PipelineContext, input_data: T) -> Result[R]:
        """Transform ``input_data``.

        Args:
            context: Pipeline execution context.
            input_data: Output of the previous step.

        Returns:
            ``Result`` containing the transformed data or an error.
        """

    def run(self, context: PipelineContext, input_data: T) -> Result[R]:
        self.event_bus.publish(
            StepStartedEvent(
                timestamp=time.time(),
                run_id=context.run_id,
                context=context,
                step_name=self.name,
                step_type=self.__class__.__name__,
            )
        )
        start_time = time.time()

        try:
            self._logger.debug(f"Starting step: {self.name}")
            result = self.execute(context, input_data)
            self._logger.debug(f"Completed step: {self.name} ({result.status.value})")
        except Exception as e:
            self._logger.error(f"Exception in step {self.name}: {e}", exc_info=True)
            self.event_bus.publish(
                ErrorEvent(
                    timestamp=time.time(),
                    run_id=context.run_id,
                    context=context,
                    error=e,
                    error_type=type(e).__name__,
                    component=self.name,
                )
            )
            result = Result.failure(e, {"step": self.name, "context": context.run_id})

        self.event_bus.publish(
            StepCompletedEvent(
                timestamp=time.time(),
                run_id=context.run_id,
                context=context,
                step_name=self.name,
                step_type=self.__class__.__name__,
                result=result,
                duration_ms=(time.time() - start_time) * 1000,
            )
        )
        return result


class Task(Generic[T, R]):
    """Run steps in order, feeding each step the previous step's data."""

    def __init__(self, name: str, steps: list[Step[Any, Any]], event_bus: EventBus) -> None:
        self.name = name
        self.steps = steps
        self.event_bus = event_bus
        self._logger = logging.getLogger(f"{__name__}.{name}")

    def execute(self, context: PipelineContext, input_data: T) -> Result[R]:
        """Execute the steps, stopping at the first error.

        A skipped step ends the task early with its skipped result.

        Args:
            context: Pipeline execution context.
            input_data: Input for the first step.

        Returns:
            The final step's data with the warnings of all steps, or the
            first error.
        """
        self.event_bus.publish(
            TaskStartedEvent(
                timestamp=time.time(),
                run_id=context.run_id,
                context=context,
                task_name=self.name,
                step_count=len(self.steps),
            )
        )
        self._logger.debug(f"Starting task: {self.name} with {len(self.steps)} steps")

        final = self._run_steps(context, input_data)
        self.event_bus.publish(
            TaskCompletedEvent(timestamp=time.time(), run_id=context.run_id, context=context, task_name=self.name, final_result=final)
        )
        return final

    def _run_steps(self, context: PipelineContext, input_data: Any) -> Result[Any]:
        if not self.steps:
            return Result.success(input_data)

        current_data = input_data
        step_results: list[Result[Any]] = []
        for i, step in enumerate(self.steps):
            self._logger.debug(f"Executing step {i + 1}/{len(self.steps)}: {step.name}")
            result = step.run(context, current_data)

            if result.is_error():
                self._logger.error(f"Step {step.name} failed, aborting task {self.name}")
                error = result.error or RuntimeError(f"Task {self.name} failed at step {step.name}")
                return Result.failure(
                    error,
                    {**result.metadata, "task": self.name, "failed_step": step.name, "step_index": i},
                )

            step_results.append(result)
            if result.is_skipped():
                self._logger.info(f"Step {step.name} skipped: {result.metadata.get('skip_reason')}")
                break
            if result.data is not None:
                current_data = result.data

        return _finish(step_results)

    def add_step(self, step: Step[Any, Any]) -> None:
        self.steps.append(step)


class Job(Generic[T, R]):
    """Run tasks in order, threading data between them."""

    def __init__(self, name: str, tasks: list[Task[Any, Any]], event_bus: EventBus) -> None:
        self.name = name
        self.tasks = tasks
        self.event_bus = event_bus
        self._logger = logging.getLogger(f"{__name__}.{name}")

    def execute(self, context: PipelineContext, initial_input: Any = None) -> Result[R]:
        """Execute all tasks, stopping at the first error.

        Args:
            context: Pipeline execution context.
            initial_input: Input for the first task.

        Returns:
            The final task's data with merged warnings, or the first error.
        """
        self.event_bus.publish(
            JobStartedEvent(
                timestamp=time.time(),
                run_id=context.run_id,
                context=context,
                job_name=self.name,
                job_type=self.__class__.__name__,
                task_count=len(self.tasks),
            )
        )
        self._logger.info(f"Starting job: {self.name} with {len(self.tasks)} tasks")
        start_time = time.time()

        final = self._run_tasks(context, initial_input)
        self.event_bus.publish(
            JobCompletedEvent(
                timestamp=time.time(),
                run_id=context.run_id,
                context=context,
                job_name=self.name,
                job_type=self.__class__.__name__,
                final_result=final,
                duration_ms=(time.time() - start_time) * 1000,
            )
        )
        return final

    def _run_tasks(self, context: PipelineContext, initial_input: Any) -> Result[Any]:
        if not self.tasks:
            return Result.success(initial_input)

        current_input = initial_input
        task_results: list[Result[Any]] = []
        for i, task in enumerate(self.tasks):
            result = task.execute(context, current_input)
            if result.is_error():
                self._logger.error(f"Task {task.name} failed, aborting job {self.name}")
                error = result.error or RuntimeError(f"Job {self.name} failed at task {task.name}")
                return Result.failure(error, {**result.metadata, "job": self.name, "failed_task": task.name, "task_index": i})
            task_results.append(result)
            if result.is_skipped():
                break
            if result.data is not None:
                current_input = result.data

        return _finish(task_results)

    def add_task(self, task: Task[Any, Any]) -> None:
        self.tasks.append(task)


class Pipeline(Generic[T, R]):
    """Run jobs in order for one source file."""

    def __init__(self, name: str, jobs: list[Job[Any, Any]], event_bus: EventBus) -> None:
        self.name = name
        self.jobs = jobs
        self.event_bus = event_bus
        self._logger = logging.getLogger(f"{__name__}.{name}")

    def execute(self, context: PipelineContext, initial_input: Any = None) -> Result[R]:
        """Execute all jobs, stopping at the first error or skip.

        Args:
            context: Pipeline execution context.
            initial_input: Input for the first job.

        Returns:
            The final job's data with merged warnings, or the first error.
        """
        self.event_bus.publish(PipelineStartedEvent(timestamp=time.time(), run_id=context.run_id, context=context))
        self._logger.info(f"Starting pipeline: {self.name} with {len(self.jobs)} jobs")
        start_time = time.time()

        final = self._run_jobs(context, initial_input)
        self.event_bus.publish(
            PipelineCompletedEvent(
                timestamp=time.time(),
                run_id=context.run_id,
                context=context,
                final_result=final,
                duration_ms=(time.time() - start_time) * 1000,
            )
        )
        return final

    def _run_jobs(self, context: PipelineContext, initial_input: Any) -> Result[Any]:
        if not self.jobs:
            return Result.success(initial_input)

        current_input = initial_input
        job_results: list[Result[Any]] = []
        for i, job in enumerate(self.jobs):
            self._logger.debug(f"Executing job {i + 1}/{len(self.jobs)}: {job.name}")
            result = job.execute(context, current_input)
            if result.is_error():
                self._logger.error(f"Job {job.name} failed, aborting pipeline {self.name}")
                error = result.error or RuntimeError(f"Pipeline {self.name} failed at job {job.name}")
                return Result.failure(
                    error,
                    {**result.metadata, "pipeline": self.name, "failed_job": job.name, "job_index": i},
                )
            job_results.append(result)
            if result.is_skipped():
                break
            if result.data is not None:
                current_input = result.data

        return _finish(job_results)

    def add_job(self, job: Job[Any, Any]) -> None:
        self.jobs.append(job)


class PipelineFactory:
    """Create pipeline components that share one event bus."""

    def __init__(self, event_bus: EventBus) -> None:
        self.event_bus = event_bus

    def create_step(self, name: str, step_class: type[Step[Any, Any]], **kwargs: Any) -> Step[Any, Any]:
        return step_class(name, self.event_bus, **kwargs)

    def create_task(self, name: str, steps: list[Step[Any, Any]]) -> Task[Any, Any]:
        return Task(name, steps, self.event_bus)

    def create_job(self, name: str, tasks: list[Task[Any, Any]]) -> Job[Any, Any]:
        return Job(name, tasks, self.event_bus)

    def create_pipeline(self, name: str, jobs: list[Job[Any, Any]]) -> Pipeline[Any, Any]:
        return Pipeline(name, jobs, self.event_bus)
