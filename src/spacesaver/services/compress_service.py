"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/compress_service.py
Dry-run over scan results: which files could be transcoded, by whom, and why not.
Nothing here modifies files.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from spacesaver.compression.registry import PluginRegistry
from spacesaver.core.filters import FilterSpec, merge_extensions
from spacesaver.core.models import FileDescriptor
from spacesaver.exceptions import PluginNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompressibleFile:
    """estimated_compressed_size is None when the transcoder gave no estimate."""
    path: str
    original_size: int
    estimated_compressed_size: Optional[int]
    plugin_name: str
    reason: Optional[str] = None

    @property
    def estimated_savings(self) -> Optional[int]:
        if self.estimated_compressed_size is None:
            return None
        return self.original_size - self.estimated_compressed_size


@dataclass(frozen=True)
class Rejection:
    plugin_name: str
    reason: str


@dataclass(frozen=True)
class RejectedFile:
    path: str
    size: int
    extension: str
    reasons: List[Rejection]


@dataclass
class CompressibilityReport:
    compressible: List[CompressibleFile] = field(default_factory=list)
    rejected: List[RejectedFile] = field(default_factory=list)

    @property
    def estimated_savings(self) -> int:
        """Sum over files with an estimate; files without one add nothing."""
        return sum(item.estimated_savings or 0 for item in self.compressible)


class CompressService:
    """
    Asks the active transcoders about each file.

    The first active transcoder (in the given order) that accepts a file claims it.
    For files nobody accepts, every relevant active transcoder's reason is collected.
    """

    def __init__(self, registry: PluginRegistry):
        self.registry = registry

    def resolve_active(self, active_plugins: Optional[Sequence[str]] = None) -> List[str]:
        """Validates names; None means every registered transcoder in registration order."""
        if active_plugins is None:
            return self.registry.names()
        known = set(self.registry.names())
        for name in active_plugins:
            if name not in known:
                raise PluginNotFoundError(f"Active transcoder not found: {name}")
        return list(active_plugins)

    def candidate_filter(self,
                         active_plugins: Optional[Sequence[str]] = None,
                         filter_spec: Optional[FilterSpec] = None) -> FilterSpec:
        """The caller's filter narrowed to extensions the active transcoders know."""
        active = self.resolve_active(active_plugins)
        return merge_extensions(filter_spec, self.registry.all_extensions(active))

    def scan_compressible(self,
                          descriptors: Sequence[FileDescriptor],
                          active_plugins: Optional[Sequence[str]] = None) -> CompressibilityReport:
        active = self.resolve_active(active_plugins)
        report = CompressibilityReport()

        for descriptor in descriptors:
            claimed = self._first_acceptance(descriptor, active)
            if claimed is not None:
                report.compressible.append(claimed)
                continue

            reasons = self._rejection_reasons(descriptor, active)
            if reasons:
                report.rejected.append(RejectedFile(
                    path=descriptor.path,
                    size=descriptor.size,
                    extension=descriptor.extension.lstrip("."),
                    reasons=reasons,
                ))

        logger.debug(f"Compressibility scan: {len(report.compressible)} compressible, "
                     f"{len(report.rejected)} rejected")
        return report

    def _first_acceptance(self, descriptor: FileDescriptor, active: List[str]) -> Optional[CompressibleFile]:
        for name in active:
            report = self.registry.check_capability(descriptor.path, name)
            if report is None or not report.can_handle:
                continue
            estimated = None
            if report.estimate_ratio is not None:
                estimated = int(descriptor.size * (1.0 - report.estimate_ratio))
            return CompressibleFile(
                path=descriptor.path,
                original_size=descriptor.size,
                estimated_compressed_size=estimated,
                plugin_name=report.metadata.name,
                reason=report.reason,
            )
        return None

    def _rejection_reasons(self, descriptor: FileDescriptor, active: List[str]) -> List[Rejection]:
        """
        Transcoders that list the file's extension are asked first; if none of the
        active ones does, every active transcoder explains itself.
        """
        by_extension = {meta.name for meta in self.registry.plugins_by_extension(descriptor.extension)}
        candidates = [name for name in self.registry.names() if name in by_extension and name in active]
        if not candidates:
            candidates = [name for name in self.registry.names() if name in active]

        reasons = []
        for name in candidates:
            report = self.registry.check_capability(Path(descriptor.path), name)
            if report is not None and not report.can_handle:
                reasons.append(Rejection(name, report.reason or "Unknown reason"))
        return reasons
