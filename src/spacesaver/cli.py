#!/usr/bin/env python3
"""
SpaceSaver CLI: find duplicate files and shrink images, image archives and GIFs.
Deleting duplicates moves them to the system trash, never a permanent erase.
Transcoding never loses data: a failed or pointless conversion leaves the file as it was.
"""
from __future__ import annotations  # Enable postponed evaluation of annotations (PEP 563)
import argparse
import asyncio
import dataclasses
import logging
import os
import sys
import time
from collections import OrderedDict
from pathlib import Path
from typing import List, NoReturn, Optional

from spacesaver.aliases import (
    ALGORITHM_CHOICES, ALGORITHM_HELP_TEXT, EPILOG_TEXT, PLUGIN_HELP_TEXT, resolve_plugin_name)
from spacesaver.commands import DeduplicationCommand, DeduplicationParams
from spacesaver.compression.registry import PluginRegistry, build_registry
from spacesaver.config import AppConfig, load_config
from spacesaver.core.filters import FilterSpec
from spacesaver.core.cache import SqliteHashCache
from spacesaver.core.models import BatchOutcome, DuplicateGroup, FileKind
from spacesaver.core.scanner import FileScannerImpl
from spacesaver.services.compress_service import CompressService
from spacesaver.services.duplicate_service import DuplicateService
from spacesaver.services.file_service import FileService
from spacesaver.services.progress import Progress, ProgressEvent
from spacesaver.services.scheduler import Scheduler
from spacesaver.services.stats_service import StatsService
from spacesaver.utils.convert_utils import ConvertUtils

LOG_FORMAT = "%(levelname)-8s | %(name)-25s | %(message)s"

logger = logging.getLogger(__name__)


class CLIApplication:
    """Main CLI application controller."""

    def __init__(self):
        self.start_time: float = time.time()
        self.verbose: bool = False
        self.quiet: bool = False
        self.config: AppConfig = AppConfig()
        self._registry: Optional[PluginRegistry] = None

        # Fix encoding for Windows consoles to prevent UnicodeEncodeError
        for stream in (sys.stdout, sys.stderr):
            if hasattr(stream, "reconfigure"):
                stream.reconfigure(encoding='utf-8')

    @staticmethod
    def parse_args(args=None) -> argparse.Namespace:
        """Parse command-line arguments."""
        parser = argparse.ArgumentParser(
            prog="spacesaver",
            description="SpaceSaver: duplicate finder and lossless-safe image transcoder",
            formatter_class=argparse.RawTextHelpFormatter,
            epilog=EPILOG_TEXT
        )
        parser.add_argument("--config", type=str, metavar='PATH',
                            help="Configuration file (TOML). Default: $SPACESAVER_CONFIG or "
                                 "~/.config/spacesaver/config.toml")
        parser.add_argument("--quiet", "-q", action="store_true", help="Suppress non-essential output")
        parser.add_argument("--verbose", "-v", action="store_true", help="Show detailed statistics and progress")

        subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

        # duplicates
        dup = subparsers.add_parser(
            "duplicates", help="Find byte-identical files",
            formatter_class=argparse.RawTextHelpFormatter)
        dup.add_argument("paths", nargs="+", help="Directories to scan")
        _add_filter_arguments(dup)
        dup.add_argument("--algorithm", choices=ALGORITHM_CHOICES, help=ALGORITHM_HELP_TEXT)
        _add_scan_arguments(dup)
        dup.add_argument("--keep-one", action="store_true",
                         help="Keep the first file of every group and move the rest to trash.\n"
                              "Always shows preview before deletion for safety.")
        dup.add_argument("--force", action="store_true",
                         help="Skip confirmation prompt when used with --keep-one (for automation/scripts)")
        dup.add_argument("--dry-run", action="store_true",
                         help="With --keep-one: show what would be deleted, delete nothing")

        # stats
        stats = subparsers.add_parser(
            "stats", help="Count files and bytes per kind (images, videos, documents, archives)",
            formatter_class=argparse.RawTextHelpFormatter)
        stats.add_argument("paths", nargs="+", help="Directories to scan")
        _add_filter_arguments(stats)
        _add_scan_arguments(stats)

        # plugins
        subparsers.add_parser("plugins", help="List available transcoders")

        # check
        check = subparsers.add_parser(
            "check", help="Report which files could be shrunk and why others cannot",
            formatter_class=argparse.RawTextHelpFormatter)
        check.add_argument("paths", nargs="+", help="Directories to scan")
        check.add_argument("--plugins", nargs="+", metavar='NAME', help=PLUGIN_HELP_TEXT)
        _add_scan_arguments(check)

        # compress
        compress = subparsers.add_parser(
            "compress", help="Shrink files with the available transcoders",
            formatter_class=argparse.RawTextHelpFormatter)
        compress.add_argument("paths", nargs="+", help="Files or directories to process")
        compress.add_argument("--output-dir", "-o", type=str, metavar='',
                              help="Where still-image conversions are written.\n"
                                   "Default: next to each source file")
        compress.add_argument("--order", nargs="+", metavar='NAME', help=PLUGIN_HELP_TEXT)
        compress.add_argument("--jobs", "-j", type=int, metavar='',
                              help="Files processed concurrently. Default: max_concurrent_tasks from config")
        compress.add_argument("--discard-backups", action="store_true",
                              help="Move archive backups (*.zip.backup) to trash after success")
        _add_scan_arguments(compress)

        return parser.parse_args(args)

    # ---- Setup -----------------------------------------------------------------

    def configure(self, args: argparse.Namespace) -> None:
        """Loads configuration and sets up logging."""
        self.verbose = args.verbose
        self.quiet = args.quiet
        if self.verbose and self.quiet:
            self.error_exit("--verbose and --quiet cannot be used together")

        try:
            self.config = load_config(args.config)
        except (OSError, ValueError) as e:
            self.error_exit(f"Configuration error: {e}")

        level = self.config.logging_level
        if self.verbose:
            level = logging.DEBUG
        elif self.quiet:
            level = logging.ERROR
        logging.basicConfig(format=LOG_FORMAT)
        logging.getLogger().setLevel(level)

    def registry(self) -> PluginRegistry:
        """Frozen registry built from the loaded configuration, created on first use."""
        if self._registry is None:
            self._registry = build_registry(config=self.config)
            self._registry.freeze()
        return self._registry

    def resolve_plugins(self, names: Optional[List[str]]) -> Optional[List[str]]:
        """Maps aliases to transcoder names and rejects unknown ones."""
        if not names:
            return None
        resolved = [resolve_plugin_name(name) for name in names]
        known = self.registry().names()
        for original, name in zip(names, resolved):
            if name not in known:
                self.error_exit(
                    f"Unknown transcoder: '{original}'. Valid options: "
                    f"zip, webp, gif or one of: {', '.join(known)}"
                )
        return resolved

    def create_scanner(self, args: argparse.Namespace) -> FileScannerImpl:
        scan = self.config.scan
        return FileScannerImpl(
            max_depth=args.max_depth if args.max_depth is not None else scan.max_depth,
            follow_links=args.follow_links or scan.follow_links,
            excluded_dirs=list(scan.excluded_dirs) + list(args.excluded_dirs),
        )

    def validate_directories(self, paths: List[str]) -> None:
        for item in paths:
            path = Path(item).expanduser()
            if not path.exists():
                self.error_exit(f"Directory not found: {item}")
            if not path.is_dir():
                self.error_exit(f"Path is not a directory: {item}")

    # ---- duplicates ------------------------------------------------------------------

    def create_filter(self, args: argparse.Namespace) -> FilterSpec:
        try:
            min_size = ConvertUtils.human_to_bytes(args.min_size) if args.min_size else None
            max_size = ConvertUtils.human_to_bytes(args.max_size) if args.max_size else None
            return FilterSpec(
                min_size=min_size,
                max_size=max_size,
                extensions=set(args.extensions),
                name_pattern=args.pattern,
            )
        except ValueError as e:
            self.error_exit(f"Invalid filter: {e}")

    def run_duplicates(self, args: argparse.Namespace) -> int:
        if args.force and not args.keep_one:
            self.error_exit("--force can only be used with --keep-one")
        if args.dry_run and not args.keep_one:
            self.error_exit("--dry-run can only be used with --keep-one")
        if args.keep_one and not (args.force or args.dry_run):
            if not sys.stdin.isatty() or not sys.stdout.isatty():
                self.error_exit(
                    "Cannot request interactive confirmation in non-interactive session.\n"
                    "Use --force flag to proceed without confirmation when piping output or running in scripts."
                )
        self.validate_directories(args.paths)

        scan = self.config.scan
        try:
            params = DeduplicationParams(
                roots=args.paths,
                filter_spec=self.create_filter(args),
                max_depth=args.max_depth if args.max_depth is not None else scan.max_depth,
                follow_links=args.follow_links or scan.follow_links,
                excluded_dirs=list(scan.excluded_dirs) + list(args.excluded_dirs),
            )
        except ValueError as e:
            self.error_exit(f"Parameter error: {e}")

        config = self.config
        if args.algorithm:
            config = dataclasses.replace(config, hash_algorithm=args.algorithm)

        if not self.quiet:
            print(f"Scanning: {', '.join(params.roots)}")

        command = DeduplicationCommand(config.create_hasher())
        try:
            groups, stats = command.execute(
                params,
                progress_callback=self.progress_callback if self.verbose else None,
                stopped_flag=self.stopped_flag
            )
        except RuntimeError as e:
            self.error_exit(f"Deduplication failed: {e}")

        if self.verbose:
            sys.stderr.write("\n")
            print()
            print(stats.summary())

        if args.keep_one:
            return self.execute_keep_one(groups, force=args.force, dry_run=args.dry_run)
        self.output_groups(groups)
        return 0

    def output_groups(self, groups: List[DuplicateGroup]) -> None:
        """Output duplicate groups as plain text."""
        if self.quiet:
            return

        if not groups:
            print("No duplicate groups found.")
            return

        total_files = sum(g.count for g in groups)
        wasted = sum(g.wasted_space for g in groups)
        print(f"\nFound {len(groups)} duplicate groups ({total_files} files, "
              f"{ConvertUtils.bytes_to_human(wasted)} wasted)")

        for idx, group in enumerate(groups, 1):
            print(f"\n📁 Group {idx} | Size: {ConvertUtils.bytes_to_human(group.size)} | "
                  f"Files: {group.count} | Wasted: {ConvertUtils.bytes_to_human(group.wasted_space)}")
            for file in group.members:
                if self.verbose:
                    print(f"   {file.path}  ({ConvertUtils.timestamp_to_human(file.modified)})")
                else:
                    print(f"   {file.path}")

    def execute_keep_one(self, groups: List[DuplicateGroup], force: bool = False, dry_run: bool = False) -> int:
        """Keep one file per group, trash the rest. Always shows preview before deletion."""
        if not groups:
            if not self.quiet:
                print("No duplicate groups found.")
            return 0

        files_to_delete, _ = DuplicateService.keep_only_one_file_per_group(groups)
        space_saved_str = ConvertUtils.bytes_to_human(
            DuplicateService.calculate_space_savings(groups, files_to_delete))

        print()
        for idx, group in enumerate(groups, 1):
            print(f"📁 Group {idx} | Size: {ConvertUtils.bytes_to_human(group.size)} | Files: {group.count}")
            print("-" * 60)
            print(f"   [KEEP] {group.members[0].path}")
            for file in group.members[1:]:
                print(f"   [DEL]  {file.path}")
            print()

        print("=" * 60)
        print(f"Summary: Keep 1 file per group ({len(groups)} files preserved, "
              f"{len(files_to_delete)} files deleted)")
        print(f"Total space saved: {space_saved_str}")
        print()

        if dry_run:
            print("Dry run: nothing was deleted.")
            return 0

        if force:
            print("⚠️  WARNING: --force flag skips confirmation. Proceeding with deletion...")
        else:
            response = input(f"Are you sure you want to move {len(files_to_delete)} files to trash? [y/N]: ")
            if response.strip().lower() not in ("y", "yes"):
                print("Deletion cancelled by user.")
                return 0

        print(f"\nMoving {len(files_to_delete)} files to trash...")
        deleted_count = 0
        failed_files = []
        for i, path in enumerate(files_to_delete, 1):
            if self.verbose:
                print(f"  [{i}/{len(files_to_delete)}] {os.path.basename(path)}")
            try:
                FileService.move_to_trash(path)
                deleted_count += 1
            except RuntimeError as e:
                failed_files.append((path, str(e)))
                self.warning(f"Failed to delete {path}: {e}")

        if failed_files:
            print(f"\n⚠️  Partial success: {deleted_count}/{len(files_to_delete)} files moved to trash.")
            print(f"Failed to delete {len(failed_files)} file(s):")
            for path, error in failed_files[:5]:
                print(f"  • {os.path.basename(path)}: {error.split(':')[-1].strip()}")
            if len(failed_files) > 5:
                print(f"  ...and {len(failed_files) - 5} more files")
            return 1

        print(f"✅ Successfully moved {deleted_count} files to trash.")
        print(f"Total space saved: {space_saved_str}")
        return 0

    # ---- stats ---------------------------------------------------------------------

    def run_stats(self, args: argparse.Namespace) -> int:
        self.validate_directories(args.paths)
        files = self.create_scanner(args).scan_many(args.paths, self.stopped_flag,
                                                    self.progress_callback if self.verbose else None)
        stats = StatsService.storage_stats(files, self.create_filter(args))

        if self.quiet:
            return 0
        if self.verbose:
            sys.stderr.write("\n")

        print(f"\nTotal: {stats.total_files} files, {ConvertUtils.bytes_to_human(stats.total_size)}")
        for kind in FileKind:
            count = stats.count(kind)
            if count:
                size = ConvertUtils.bytes_to_human(stats.size_by_kind.get(kind, 0))
                print(f"   {kind.display_name + ':':<10} {count} files, {size}")
        print(f"Empty files: {stats.empty_files}")
        return 0

    # ---- plugins ---------------------------------------------------------------------

    def run_plugins(self, args: argparse.Namespace) -> int:
        registry = self.registry()
        for meta in registry.plugins():
            extensions = ", ".join(sorted(registry.supported_extensions(meta.name)))
            print(f"{meta.name} v{meta.version}")
            print(f"   {meta.description}")
            print(f"   Extensions: {extensions}")
        return 0

    # ---- check ------------------------------------------------------------------------

    def run_check(self, args: argparse.Namespace) -> int:
        self.validate_directories(args.paths)
        active = self.resolve_plugins(args.plugins)
        service = CompressService(self.registry())

        candidates = service.candidate_filter(active).apply(
            self.create_scanner(args).scan_many(args.paths, self.stopped_flag,
                                                self.progress_callback if self.verbose else None)
        )
        report = service.scan_compressible(candidates, active)

        if self.quiet:
            return 0
        if self.verbose:
            sys.stderr.write("\n")

        print(f"\nCompressible files: {len(report.compressible)}")
        for item in report.compressible:
            print(f"   {item.path}")
            if item.estimated_compressed_size is None:
                estimate = "no estimate"
            else:
                estimate = f"~{ConvertUtils.bytes_to_human(item.estimated_compressed_size)}"
            print(f"      {item.plugin_name} | {ConvertUtils.bytes_to_human(item.original_size)} → {estimate}")
        print(f"Estimated savings: {ConvertUtils.bytes_to_human(report.estimated_savings)}")

        print(f"\nRejected files: {len(report.rejected)}")
        for item in report.rejected:
            print(f"   {item.path}")
            for rejection in item.reasons:
                print(f"      {rejection.plugin_name}: {rejection.reason}")
        return 0

    # ---- compress ---------------------------------------------------------------------

    def collect_sources(self, args: argparse.Namespace) -> List[Path]:
        """Explicit files are taken as given; directories are scanned for files a transcoder knows."""
        spec = CompressService(self.registry()).candidate_filter()
        scanner = self.create_scanner(args)
        sources = []
        for item in args.paths:
            path = Path(item).expanduser()
            if path.is_file():
                sources.append(path)
            elif path.is_dir():
                sources.extend(Path(d.path) for d in spec.apply(scanner.scan(path, self.stopped_flag)))
            else:
                self.error_exit(f"Path not found: {item}")
        return sources

    def run_compress(self, args: argparse.Namespace) -> int:
        order = self.resolve_plugins(args.order)
        jobs = args.jobs if args.jobs is not None else self.config.max_concurrent_tasks
        if jobs < 1:
            self.error_exit("--jobs must be at least 1")

        sources = self.collect_sources(args)
        if not sources:
            if not self.quiet:
                print("No files to process.")
            return 0

        if args.output_dir:
            batches = OrderedDict([(Path(args.output_dir).expanduser(), sources)])
        else:
            batches = OrderedDict()
            for source in sources:
                batches.setdefault(source.parent, []).append(source)

        outcomes = asyncio.run(self.compress_batches(batches, order, jobs))
        return self.report_outcomes(outcomes, discard_backups=args.discard_backups)

    async def compress_batches(self, batches: "OrderedDict[Path, List[Path]]",
                               order: Optional[List[str]], jobs: int) -> List[BatchOutcome]:
        scheduler = Scheduler(registry=self.registry(), max_concurrent=jobs)
        if self.verbose:
            scheduler.add_listener(self.progress_listener)

        outcomes = []
        try:
            for output_dir, sources in batches.items():
                outcomes.extend(await scheduler.process_batch(sources, output_dir, order))
        finally:
            await scheduler.shutdown()
        return outcomes

    def report_outcomes(self, outcomes: List[BatchOutcome], discard_backups: bool = False) -> int:
        if self.verbose:
            sys.stderr.write("\n")

        saved = 0
        failed = [o for o in outcomes if not o.ok]
        for outcome in outcomes:
            if not outcome.ok:
                self.warning(f"{outcome.source}: {outcome.error}")
                continue
            result = outcome.result
            saved += result.saved_bytes
            if not self.quiet:
                print(f"✅ {outcome.source} → {result.output_path} [{result.plugin_name}] "
                      f"-{ConvertUtils.ratio_to_percent(result.ratio)}")
            if discard_backups:
                try:
                    FileService.discard_backup(result)
                except RuntimeError as e:
                    self.warning(f"Could not discard backup of {result.output_path}: {e}")

        self.forget_cached_hashes([o for o in outcomes if o.ok])

        if not self.quiet:
            print(f"\nProcessed {len(outcomes) - len(failed)}/{len(outcomes)} files, "
                  f"saved {ConvertUtils.bytes_to_human(saved)}")
        return 1 if failed else 0

    def forget_cached_hashes(self, outcomes: List[BatchOutcome]) -> None:
        """Transcoded paths now hold new content or nothing; their persisted hashes are stale."""
        db_path = Path(self.config.hash_cache_path).expanduser() if self.config.hash_cache_path else None
        if not outcomes or db_path is None or not db_path.is_file():
            return
        with SqliteHashCache(db_path) as cache:
            for outcome in outcomes:
                for path in {str(outcome.source), str(outcome.result.output_path)}:
                    cache.forget(path)
        logger.debug(f"Dropped cached hashes of {len(outcomes)} transcoded files")

    # ---- Output helpers ------------------------------------------------------------------

    def progress_callback(self, stage: str, current: int, total: Optional[int]) -> None:
        """CLI progress callback - shows progress in console."""
        if not self.verbose:
            return

        if total and total > 0:
            percent = (current / total) * 100
            sys.stderr.write(f"\r  [{stage}] {current}/{total} ({percent:.1f}%)")
        else:
            sys.stderr.write(f"\r  [{stage}] {current} files processed...")
        sys.stderr.flush()

    def progress_listener(self, event: ProgressEvent) -> None:
        if isinstance(event, Progress):
            self.progress_callback("compress", event.current, event.total)

    @staticmethod
    def stopped_flag() -> bool:
        """Check if operation should stop (placeholder for signal handling)."""
        return False

    def warning(self, message: str) -> None:
        """Print a warning message to stderr."""
        if not self.quiet:
            print(f"⚠️  {message}", file=sys.stderr)

    @staticmethod
    def error_exit(message: str, code: int = 1) -> NoReturn:
        """Print error and exit."""
        print(f"❌ Error: {message}", file=sys.stderr)
        sys.exit(code)

    def run(self, argv=None) -> int:
        """Main entry point; returns the process exit code."""
        args = self.parse_args(argv)
        self.configure(args)

        handlers = {
            "duplicates": self.run_duplicates,
            "stats": self.run_stats,
            "plugins": self.run_plugins,
            "check": self.run_check,
            "compress": self.run_compress,
        }
        code = handlers[args.command](args)

        if self.verbose:
            print(f"\n✅ Completed in {ConvertUtils.format_duration(time.time() - self.start_time)}")
        return code


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--min-size", "-m", type=str, metavar='',
                        help="Minimum file size (e.g., 500KB, 1MB)")
    parser.add_argument("--max-size", "-M", type=str, metavar='',
                        help="Maximum file size (e.g., 10MB, 1GB)")
    parser.add_argument("--extensions", "-x", nargs="+", default=[], type=str, metavar='',
                        help="File extensions (space separated) to include (e.g., jpg .png)")
    parser.add_argument("--pattern", type=str, metavar='',
                        help="File name filter: substring, or glob if it contains * ? [")


def _add_scan_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--max-depth", type=int, metavar='',
                        help="Directory levels to descend below each root (0 = root only)")
    parser.add_argument("--follow-links", action="store_true", help="Follow symbolic links")
    parser.add_argument("--excluded-dirs", "-e", nargs="+", default=[], type=str, metavar='',
                        dest="excluded_dirs", help="Excluded/ignored directories (space separated)")


def main() -> None:
    """Application entry point."""
    app = CLIApplication()
    try:
        sys.exit(app.run())
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user (Ctrl+C)")
        sys.exit(130)
    except Exception as e:
        if os.environ.get("DEBUG"):
            raise
        print(f"❌ Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
