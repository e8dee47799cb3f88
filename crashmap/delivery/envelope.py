"""Delivery envelope assembly.

Turns a work unit and its resolved inputs into wire payloads plus delivery
policy. Assembly is deterministic: identical inputs produce byte-identical
serialized envelopes, which keeps retries idempotent and request records
comparable across runs.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from crashmap.config.models import CrashmapConfig
from crashmap.core.structlog_logger import get_struct_logger
from crashmap.delivery.models import DeliveryEnvelope, EnvelopeSkip, FailurePolicy
from crashmap.manifest.info import ManifestInfo
from crashmap.models.variants import HostContext, OutputDescriptor, VariantDescriptor
from crashmap.models.work_units import WorkUnit, WorkUnitKind
from crashmap.ndk.symbols import find_shared_objects
from crashmap.release.metadata import ReleaseMetadataCollector


logger = get_struct_logger(__name__)

BuildOutcome = DeliveryEnvelope | list[DeliveryEnvelope] | EnvelopeSkip


@dataclass(frozen=True)
class EnvelopeInputs:
    """Resolved inputs of a terminal-ready work unit."""

    variant: VariantDescriptor
    output: OutputDescriptor
    manifest_info: ManifestInfo
    jvm_mapping_included: bool = False
    ndk_symbols_included: bool = False


class EnvelopeBuilder:
    """Build delivery envelopes for upload work units."""

    def __init__(
        self,
        config: CrashmapConfig,
        host: HostContext,
        metadata: ReleaseMetadataCollector,
    ) -> None:
        self.config = config
        self.host = host
        self.metadata = metadata

    def build(self, unit: WorkUnit, inputs: EnvelopeInputs) -> BuildOutcome:
        """Build the envelope(s) for *unit* or a skip signal.

        Raises:
            ValueError: For kinds that are not delivered over HTTP
        """
        if unit.kind is WorkUnitKind.JVM_MAPPING:
            return self.build_jvm_mapping(unit, inputs)
        if unit.kind is WorkUnitKind.NATIVE_SYMBOLS:
            return self.build_native_symbols(unit, inputs)
        if unit.kind is WorkUnitKind.RELEASE:
            return self.build_release(unit, inputs)
        raise ValueError(f"{unit.kind.value} units have no delivery envelope")

    def _envelope(
        self,
        category: str,
        payload: dict[str, Any],
        attachments: dict[str, Path] | None = None,
    ) -> DeliveryEnvelope:
        return DeliveryEnvelope(
            category=category,
            endpoint=self.config.resolve_endpoint(category),
            payload=payload,
            attachments=attachments or {},
            retry_count=self.config.retry_count,
            timeout_millis=self.config.request_timeout_ms,
            failure_policy=FailurePolicy.from_flag(self.config.fail_on_upload_error),
        )

    @staticmethod
    def _identity(info: ManifestInfo) -> dict[str, Any]:
        return {
            "apiKey": info.api_key,
            "appId": info.app_id,
            "versionCode": info.version_code,
            "versionName": info.version_name,
            "buildUUID": info.build_uuid,
        }

    def find_mapping_file(self, variant: VariantDescriptor) -> Path | None:
        """First existing mapping file among the variant's packaging steps."""
        for output in variant.outputs:
            packaging = output.packaging
            if packaging is not None and packaging.mapping_file is not None:
                if packaging.mapping_file.is_file():
                    return packaging.mapping_file
        return None

    def build_jvm_mapping(
        self, unit: WorkUnit, inputs: EnvelopeInputs
    ) -> DeliveryEnvelope | EnvelopeSkip:
        mapping_file = self.find_mapping_file(inputs.variant)
        if mapping_file is None:
            return EnvelopeSkip(
                f"No mapping file found for variant '{inputs.variant.name}' although minification is enabled"
            )
        return self._envelope(
            "proguard",
            self._identity(inputs.manifest_info),
            # The "proguard" part name marks a JVM mapping upload; no separate flag field is sent
            {"proguard": mapping_file},
        )

    def build_native_symbols(
        self, unit: WorkUnit, inputs: EnvelopeInputs
    ) -> list[DeliveryEnvelope] | EnvelopeSkip:
        shared_objects = find_shared_objects(inputs.output.native_builds, abi=inputs.output.abi)
        if not shared_objects:
            return EnvelopeSkip(
                f"No shared objects found for output '{inputs.output.name}'"
            )

        project_root = str(self.config.project_root or self.host.project_dir)
        envelopes = []
        for shared_object in shared_objects:
            payload = self._identity(inputs.manifest_info)
            payload.update(
                {
                    "arch": shared_object.arch,
                    "sharedObjectName": shared_object.name,
                    "projectRoot": project_root,
                }
            )
            envelopes.append(
                self._envelope("ndk", payload, {"soSymbolFile": shared_object.path})
            )
        return envelopes

    def build_release(self, unit: WorkUnit, inputs: EnvelopeInputs) -> DeliveryEnvelope:
        info = inputs.manifest_info
        payload = {
            "apiKey": info.api_key,
            "appVersion": info.version_name,
            "appVersionCode": info.version_code,
            "buildUUID": info.build_uuid,
            "builderName": self.metadata.builder_name(),
            "sourceControl": self.metadata.source_control(),
            "metadata": self.metadata.environment_metadata(),
            "jvmMappingsUploaded": inputs.jvm_mapping_included,
            "ndkSymbolsUploaded": inputs.ndk_symbols_included,
        }
        return self._envelope("releases", payload)

    def request_record_path(self, unit: WorkUnit) -> Path:
        prefix = {
            WorkUnitKind.JVM_MAPPING: "proguard",
            WorkUnitKind.NATIVE_SYMBOLS: "ndk",
            WorkUnitKind.RELEASE: "releases",
        }[unit.kind]
        scope = unit.scope_name[:1].upper() + unit.scope_name[1:]
        return self.host.intermediates_dir / "requests" / f"{prefix}For{scope}.json"

    def write_request_record(
        self, unit: WorkUnit, envelopes: list[DeliveryEnvelope]
    ) -> Path:
        """Write the serialized envelopes of *unit* to the build directory."""
        path = self.request_record_path(unit)
        path.parent.mkdir(parents=True, exist_ok=True)
        records = [json.loads(envelope.serialize()) for envelope in envelopes]
        path.write_text(json.dumps(records, indent=2, sort_keys=True), encoding="utf-8")
        logger.debug("request_record_written", key=unit.key, path=str(path))
        return path
