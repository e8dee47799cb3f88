"""Build invocation orchestration.

Plans work units for every (variant, output) pair, registers them with the
task engine and runs the resulting graph. Everything here lives for exactly
one build invocation.
"""

import threading
import uuid
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from crashmap.config.models import CrashmapConfig
from crashmap.core.errors import InputAbsentError, PlanningError, UploadError
from crashmap.core.structlog_logger import StructlogMixin
from crashmap.delivery.client import apply_failure_policy
from crashmap.delivery.envelope import EnvelopeBuilder, EnvelopeInputs
from crashmap.delivery.models import DeliveryEnvelope, EnvelopeSkip
from crashmap.delivery.pool import UploadClientPool
from crashmap.host.engine import ExecutionReport, TaskEngine, TaskState
from crashmap.manifest.info import load_manifest_info, manifest_info_path, write_manifest_info
from crashmap.models.variants import HostContext, OutputDescriptor, VariantDescriptor
from crashmap.models.work_units import (
    PROJECT_SCOPE,
    FeatureSet,
    WorkUnit,
    WorkUnitKind,
    WorkUnitState,
    task_name_for,
    work_unit_key,
)
from crashmap.ndk.jni_libs import JniLibsInstaller, jni_libs_destination
from crashmap.planning.features import evaluate_features
from crashmap.planning.planner import plan_requirements
from crashmap.planning.registry import WorkUnitRegistry
from crashmap.planning.wiring import DependencyWirer
from crashmap.release.metadata import ReleaseMetadataCollector


@dataclass
class PlannedPair:
    """Planning result of one (variant, output) pair."""

    variant: VariantDescriptor
    output: OutputDescriptor
    features: FeatureSet
    kinds: list[WorkUnitKind]

    def to_dict(self) -> dict[str, Any]:
        return {
            "variant": self.variant.name,
            "output": self.output.name,
            "features": {
                "minifyEnabled": self.features.minify_enabled,
                "ndkEnabled": self.features.ndk_enabled,
                "isDebugExcluded": self.features.is_debug_excluded,
                "userEnabled": self.features.user_enabled,
            },
            "kinds": [kind.value for kind in self.kinds],
        }


@dataclass
class BuildPlan:
    registry: WorkUnitRegistry
    pairs: list[PlannedPair] = field(default_factory=list)
    planning_errors: dict[str, PlanningError] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pairs": [pair.to_dict() for pair in self.pairs],
            "units": [unit.to_dict() for unit in self.registry.units()],
            "planningErrors": {name: str(error) for name, error in self.planning_errors.items()},
        }


@dataclass
class BuildReport:
    """Outcome of one build invocation."""

    units: list[WorkUnit] = field(default_factory=list)
    failures: dict[str, list[str]] = field(default_factory=dict)
    request_count: int = 0
    execution: ExecutionReport | None = None

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def states(self) -> dict[str, str]:
        return {unit.key: unit.state.value for unit in self.units}

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "requestCount": self.request_count,
            "units": [
                {**unit.to_dict(), "detail": unit.detail} for unit in self.units
            ],
            "failures": {name: list(messages) for name, messages in self.failures.items()},
        }


def _default_uuid() -> str:
    return str(uuid.uuid4())


class PipelineOrchestrator(StructlogMixin):
    """Plan, register and run the work units of one build invocation."""

    def __init__(
        self,
        config: CrashmapConfig,
        host: HostContext,
        pool: UploadClientPool,
        metadata: ReleaseMetadataCollector | None = None,
        uuid_source: Callable[[], str] = _default_uuid,
        dry_run: bool = False,
    ) -> None:
        super().__init__()
        self.config = config
        self.host = host
        self.pool = pool
        self.metadata = metadata or ReleaseMetadataCollector(
            config, host.host_version, project_dir=host.project_dir
        )
        self.uuid_source = uuid_source
        self.dry_run = dry_run
        self.wirer = DependencyWirer(host)
        self.builder = EnvelopeBuilder(config, host, self.metadata)
        self._lock = threading.Lock()
        self._request_count = 0
        self._failures: dict[str, list[str]] = {}
        self._cancel_event: threading.Event | None = None

    # Planning

    def plan(self, variants: Iterable[VariantDescriptor], max_workers: int = 1) -> BuildPlan:
        """Evaluate, plan, deduplicate and wire units for every (variant, output) pair."""
        variants = list(variants)
        build_plan = BuildPlan(registry=WorkUnitRegistry())
        build_plan.planning_errors.update(self._shared_output_errors(variants))
        pairs = [
            (variant, output)
            for variant in variants
            if variant.name not in build_plan.planning_errors
            for output in variant.outputs
        ]

        if max_workers > 1 and len(pairs) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                planned = list(
                    executor.map(lambda pair: self._plan_pair(build_plan, *pair), pairs)
                )
        else:
            planned = [self._plan_pair(build_plan, variant, output) for variant, output in pairs]
        build_plan.pairs = planned

        self._plan_jni_libs_install(build_plan)
        self.logger.info(
            "build_planned",
            pairs=len(build_plan.pairs),
            units=len(build_plan.registry),
            planning_errors=len(build_plan.planning_errors),
        )
        return build_plan

    def _shared_output_errors(
        self, variants: list[VariantDescriptor]
    ) -> dict[str, PlanningError]:
        """Errors for variants reusing an output name already taken by another variant.

        Native symbol and release units are keyed by output name, so such a
        variant would silently share units with the first one. It is not planned.
        """
        owners: dict[str, str] = {}
        errors: dict[str, PlanningError] = {}
        for variant in variants:
            for output in variant.outputs:
                owner = owners.setdefault(output.name, variant.name)
                if owner != variant.name and variant.name not in errors:
                    errors[variant.name] = PlanningError(
                        f"Output '{output.name}' of variant '{variant.name}' "
                        f"is already an output of variant '{owner}'",
                        variant_name=variant.name,
                    )
                    self.logger.error(
                        "planning_failed", variant=variant.name, error=str(errors[variant.name])
                    )
        return errors

    def _plan_pair(
        self, build_plan: BuildPlan, variant: VariantDescriptor, output: OutputDescriptor
    ) -> PlannedPair:
        features = evaluate_features(variant, output, self.config, self.host)
        kinds = plan_requirements(features, self.config)

        if WorkUnitKind.NATIVE_SYMBOLS in kinds and not variant.native_builds():
            error = PlanningError(
                f"Native symbol upload is enabled for variant '{variant.name}' "
                "but it has no native build step",
                variant_name=variant.name,
            )
            with self._lock:
                if variant.name not in build_plan.planning_errors:
                    build_plan.planning_errors[variant.name] = error
                    self.logger.error("planning_failed", variant=variant.name, error=str(error))
            kinds = [kind for kind in kinds if kind is not WorkUnitKind.NATIVE_SYMBOLS]

        for kind in kinds:
            key = work_unit_key(kind, variant.name, output.name)
            build_plan.registry.get_or_create(
                kind,
                key,
                self._unit_factory(kind, key, variant, output, kinds),
                requester=output.name,
            )
        return PlannedPair(variant=variant, output=output, features=features, kinds=kinds)

    def _unit_factory(
        self,
        kind: WorkUnitKind,
        key: str,
        variant: VariantDescriptor,
        output: OutputDescriptor,
        planned: list[WorkUnitKind],
    ) -> Callable[[], WorkUnit]:
        def factory() -> WorkUnit:
            scope = variant.name if kind.is_variant_scoped else output.name
            unit = WorkUnit(
                kind=kind,
                key=key,
                variant_name=variant.name,
                output_name=output.name,
                task_name=task_name_for(kind, scope),
            )
            if kind is WorkUnitKind.MANIFEST:
                unit.build_uuid = self.uuid_source()
            self.wirer.wire(unit, variant, output, planned)
            return unit

        return factory

    def _plan_jni_libs_install(self, build_plan: BuildPlan) -> None:
        if not self.config.shared_object_archives:
            return
        native_variants = {
            pair.variant.name: pair.variant
            for pair in build_plan.pairs
            if WorkUnitKind.NATIVE_SYMBOLS in pair.kinds
        }
        if not native_variants:
            return

        kind = WorkUnitKind.INSTALL_JNI_LIBS
        key = work_unit_key(kind, PROJECT_SCOPE, PROJECT_SCOPE)

        def factory() -> WorkUnit:
            unit = WorkUnit(
                kind=kind,
                key=key,
                variant_name=PROJECT_SCOPE,
                output_name=PROJECT_SCOPE,
                task_name=task_name_for(kind, PROJECT_SCOPE),
            )
            self.wirer.wire_jni_libs_install(unit, native_variants.values())
            return unit

        build_plan.registry.get_or_create(kind, key, factory)

    # Registration

    def register(self, build_plan: BuildPlan, engine: TaskEngine) -> dict[str, WorkUnit]:
        """Register every planned unit as an engine task.

        Returns:
            Mapping of task name to work unit
        """
        variants = {pair.variant.name: pair.variant for pair in build_plan.pairs}
        outputs = {(pair.variant.name, pair.output.name): pair.output for pair in build_plan.pairs}
        by_task: dict[str, WorkUnit] = {}
        units = build_plan.registry.units()
        unit_tasks = {unit.task_name for unit in units}

        for unit in units:
            edges = unit.edges
            for name in (
                edges.depends_on | edges.must_run_after | edges.runs_after
                | edges.finalizes | edges.required_by
            ):
                if name not in engine and name not in unit_tasks:
                    engine.register(name, external=True)

            engine.register(
                unit.task_name,
                self._action_for(unit, build_plan, variants, outputs),
                depends_on=edges.depends_on,
                must_run_after=edges.must_run_after,
                runs_after=edges.runs_after,
            )
            for name in edges.finalizes:
                engine.register(name, finalized_by={unit.task_name})
            for name in edges.required_by:
                engine.register(name, depends_on={unit.task_name})
            by_task[unit.task_name] = unit

        return by_task

    def _action_for(
        self,
        unit: WorkUnit,
        build_plan: BuildPlan,
        variants: dict[str, VariantDescriptor],
        outputs: dict[tuple[str, str], OutputDescriptor],
    ) -> Callable[[], None]:
        if unit.kind is WorkUnitKind.MANIFEST:
            return lambda: self._run_manifest(unit, variants[unit.variant_name])
        if unit.kind is WorkUnitKind.INSTALL_JNI_LIBS:
            return lambda: self._run_jni_libs_install(unit)
        return lambda: self._run_upload(
            unit,
            build_plan.registry,
            variants[unit.variant_name],
            outputs[unit.variant_name, unit.output_name],
        )

    # Actions

    def _run_manifest(self, unit: WorkUnit, variant: VariantDescriptor) -> None:
        try:
            if unit.build_uuid is None:
                raise PlanningError(
                    f"Manifest unit {unit.key} has no build UUID", variant_name=unit.variant_name
                )
            info = write_manifest_info(variant, unit.build_uuid, self.config, self.host)
        except PlanningError as e:
            self._fail(unit, str(e))
            raise
        unit.mark(WorkUnitState.SUCCEEDED, result=info)

    def _run_jni_libs_install(self, unit: WorkUnit) -> None:
        installer = JniLibsInstaller(
            list(self.config.shared_object_archives), jni_libs_destination(self.host)
        )
        try:
            installed = installer.install()
        except InputAbsentError as e:
            self._fail(unit, str(e))
            raise
        unit.mark(WorkUnitState.SUCCEEDED, result=installed)

    def _run_upload(
        self,
        unit: WorkUnit,
        registry: WorkUnitRegistry,
        variant: VariantDescriptor,
        output: OutputDescriptor,
    ) -> None:
        info_path = manifest_info_path(self.host, variant.name)
        if not info_path.is_file():
            self._input_absent(unit, f"Manifest info {info_path} does not exist")
            return

        inputs = EnvelopeInputs(
            variant=variant,
            output=output,
            manifest_info=load_manifest_info(info_path),
            jvm_mapping_included=self._provider_succeeded(
                registry, WorkUnitKind.JVM_MAPPING, variant, output
            ),
            ndk_symbols_included=self._provider_succeeded(
                registry, WorkUnitKind.NATIVE_SYMBOLS, variant, output
            ),
        )
        outcome = self.builder.build(unit, inputs)
        if isinstance(outcome, EnvelopeSkip):
            self._input_absent(unit, outcome.reason)
            return

        envelopes = outcome if isinstance(outcome, list) else [outcome]
        record = self.builder.write_request_record(unit, envelopes)
        with self._lock:
            self._request_count += len(envelopes)

        if self.dry_run:
            self.logger.info("upload_recorded", key=unit.key, record=str(record))
            unit.mark(WorkUnitState.SUCCEEDED, result=record, detail="dry run")
            return

        self._deliver(unit, envelopes)

    def _deliver(self, unit: WorkUnit, envelopes: list[DeliveryEnvelope]) -> None:
        results = []
        for envelope in envelopes:
            client = self.pool.client_for(envelope.category)
            result = client.deliver(envelope, cancel_event=self._cancel_event)
            results.append(result)
            if result.cancelled:
                apply_failure_policy(result, envelope, unit.kind.value, unit.key)
                unit.mark(WorkUnitState.SKIPPED, result=results, detail="cancelled")
                return
            try:
                apply_failure_policy(result, envelope, unit.kind.value, unit.key)
            except UploadError as e:
                self._fail(unit, str(e))
                raise

        failed = [result for result in results if not result.succeeded]
        if failed:
            unit.mark(WorkUnitState.FAILED, result=results, detail=failed[0].error)
        else:
            self.logger.info("upload_delivered", key=unit.key, requests=len(results))
            unit.mark(WorkUnitState.SUCCEEDED, result=results)

    @staticmethod
    def _provider_succeeded(
        registry: WorkUnitRegistry,
        kind: WorkUnitKind,
        variant: VariantDescriptor,
        output: OutputDescriptor,
    ) -> bool:
        provider = registry.get(work_unit_key(kind, variant.name, output.name))
        return provider is not None and provider.state is WorkUnitState.SUCCEEDED

    def _input_absent(self, unit: WorkUnit, reason: str) -> None:
        if self.config.fail_on_upload_error:
            self._fail(unit, reason)
            raise InputAbsentError(reason, kind=unit.kind.value, key=unit.key)
        self.logger.warning("upload_skipped", key=unit.key, reason=reason)
        unit.mark(WorkUnitState.SKIPPED, detail=reason)

    def _fail(self, unit: WorkUnit, message: str) -> None:
        unit.mark(WorkUnitState.FAILED, detail=message)
        with self._lock:
            self._failures.setdefault(unit.variant_name, []).append(message)

    # Running

    def run(
        self,
        variants: Iterable[VariantDescriptor],
        engine: TaskEngine | None = None,
        max_workers: int = 1,
        cancel_event: threading.Event | None = None,
        targets: Iterable[str] | None = None,
    ) -> BuildReport:
        """Plan, register and execute one build invocation."""
        if not self.config.enabled:
            self.logger.info("crashmap_disabled")
            return BuildReport()

        self._cancel_event = cancel_event
        build_plan = self.plan(variants, max_workers=max_workers)
        engine = engine or TaskEngine()
        by_task = self.register(build_plan, engine)
        execution = engine.execute(targets, max_workers=max_workers, cancel_event=cancel_event)

        for task_name, unit in by_task.items():
            if unit.state.is_terminal:
                continue
            state = execution.states.get(task_name)
            if state is TaskState.FAILED:
                self._fail(unit, str(execution.errors.get(task_name)))
            elif state in (TaskState.SKIPPED, TaskState.CANCELLED):
                unit.mark(WorkUnitState.SKIPPED, detail=f"task {state.value}")

        failures = {name: [str(error)] for name, error in build_plan.planning_errors.items()}
        for name, messages in self._failures.items():
            failures.setdefault(name, []).extend(messages)

        report = BuildReport(
            units=build_plan.registry.units(),
            failures=failures,
            request_count=self._request_count,
            execution=execution,
        )
        self.logger.info(
            "build_finished",
            succeeded=report.succeeded,
            units=len(report.units),
            requests=report.request_count,
        )
        return report
