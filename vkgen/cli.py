"""Command-line driver: configuration, the generate pipeline and its report.

Usage:
    python gen.py --out bindings/src/vk
    python gen.py --path temp/registry/vulkan --update --out out/vk --rustfmt
    python gen.py --list-features --filter KHR
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path

from .emit import EmitSettings, FileWriteResult, PackageWriteResult, emit
from .errors import ConfigError, VkgenError
from .load import (
    DEFAULT_PATH,
    DEFAULT_URL,
    fetch_registry,
    needs_fetch,
    read_registry,
    registry_file,
)
from .model import FeatureHandle, FeatureKind, Vulkan
from .registry import Registry
from .trans import link

# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    path: Path
    url: str
    update: bool
    output_dir: Path
    rustfmt: bool


@dataclass(frozen=True)
class DiscoveryConfig:
    path: Path
    url: str
    update: bool
    filter_text: str | None


class _ArgumentParser(argparse.ArgumentParser):
    """argparse reports bad arguments through ConfigError instead of exiting."""

    def error(self, message):
        raise ConfigError(
            "BAD_CMD_ARG",
            f"Bad command-line argument: {message}",
            "Run with --help to list the accepted flags.",
        )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(description="Generate Rust FFI bindings from vk.xml")

    parser.add_argument("--path", type=Path, default=DEFAULT_PATH)
    parser.add_argument("--url", type=str, default=DEFAULT_URL)
    parser.add_argument("--update", action="store_true", default=False)
    parser.add_argument("--out", type=Path, default=None)
    parser.add_argument("--rustfmt", action="store_true", default=False)

    parser.add_argument("--list-features", action="store_true", default=False)
    parser.add_argument("--filter", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    if args.filter is not None and not args.list_features:
        raise ConfigError(
            "BAD_CMD_ARG",
            "--filter requires --list-features.",
            "Add --list-features or remove --filter.",
        )

    if args.list_features:
        if args.out is not None or args.rustfmt:
            raise ConfigError(
                "BAD_CMD_ARG",
                "Generate flags cannot be combined with --list-features.",
                "Drop --out and --rustfmt when listing features.",
            )
        return DiscoveryConfig(
            path=args.path,
            url=args.url,
            update=bool(args.update),
            filter_text=args.filter,
        )

    if args.out is None:
        raise ConfigError(
            "REQ_CMD_ARG",
            "Generate mode requires --out.",
            "Pass the output directory: --out /path/to/bindings",
        )

    return GenerateConfig(
        path=args.path,
        url=args.url,
        update=bool(args.update),
        output_dir=args.out,
        rustfmt=bool(args.rustfmt),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Pipeline stages ---=== #


def load_stage(path: Path, url: str, update: bool) -> Registry:
    """Fetch vk.xml when absent or when an update is forced, then parse it."""
    target = registry_file(path)
    if needs_fetch(target, update):
        print(f"Fetching: {url}")
        size = fetch_registry(url, target)
        print(f"  Saved: {size:,} bytes to {target}")
    print(f"Parsing: {target}")
    registry = read_registry(target)
    print(f"  Registry: {len(registry.items)} items")
    return registry


def link_stage(registry: Registry) -> Vulkan:
    vk = link(registry)
    print(
        f"  Linked: {len(vk.types)} types, {len(vk.commands)} commands, "
        f"{len(vk.constants)} constants, {len(vk.features)} features"
    )
    for warning in vk.warnings:
        print(f"  Warning: {warning}")
    return vk


def run_generate(config: GenerateConfig) -> PackageWriteResult:
    """Execute load -> link -> emit for a GenerateConfig and print the report.

    Args:
        config: Validated generation settings.

    Returns:
        The package write result that the summary was built from.

    Raises:
        VkgenError: Any layer's failure; nothing is caught here.
    """
    registry = load_stage(config.path, config.url, config.update)
    vk = link_stage(registry)

    settings = EmitSettings(output_dir=config.output_dir, rustfmt=config.rustfmt)
    result = emit(vk, settings)
    print(
        f"  Written: {len(result.files)} files, "
        f"{result.total_lines} lines to {result.output_dir}"
    )

    summary = build_generation_summary(vk, result)
    print_generation_summary(summary)
    return result


# ===--- Discovery ---=== #


@dataclass(frozen=True)
class FeatureSummary:
    name: str
    output_name: str
    kind: str
    type_count: int
    command_count: int


def gather_feature_summaries(vk: Vulkan) -> list[FeatureSummary]:
    return [
        FeatureSummary(
            name=feature.header.name,
            output_name=feature.header.output_name,
            kind=feature.kind.value,
            type_count=len(feature.types),
            command_count=len(feature.commands),
        )
        for _, feature in vk.features
    ]


def filter_features_by_text(
    summaries: list[FeatureSummary], text: str
) -> list[FeatureSummary]:
    needle = text.lower()
    return [s for s in summaries if needle in s.name.lower()]


def source_label(vk: Vulkan) -> str:
    if vk.header_version is None:
        return "vk.xml"
    return f"vk.xml (header version {vk.header_version})"


def format_features_table(summaries: list[FeatureSummary], source: str) -> str:
    """Return the complete --list-features output as a string.

    Output format:

        3 features in vk.xml (header version 283):

          VK_VERSION_1_0        core       vk10                  52 types  120 cmds
          VK_KHR_surface        extension  VK_KHR_surface         5 types    5 cmds
    """
    lines = [f"{len(summaries)} features in {source}:", ""]
    if not summaries:
        lines.append("")
        return "\n".join(lines)

    name_width = max(len(s.name) for s in summaries)
    output_width = max(len(s.output_name) for s in summaries)
    for s in summaries:
        lines.append(
            f"  {s.name:<{name_width}}  {s.kind:<9}  {s.output_name:<{output_width}}"
            f"  {s.type_count:>4} types  {s.command_count:>4} cmds"
        )
    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    registry = load_stage(config.path, config.url, config.update)
    vk = link_stage(registry)
    summaries = gather_feature_summaries(vk)
    if config.filter_text is not None:
        summaries = filter_features_by_text(summaries, config.filter_text)
    print()
    print(format_features_table(summaries, source_label(vk)), end="")


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class CategoryCount:
    """Items in one category, split by where they were introduced.

    Invariant: core + ext == total. Items never required by any feature
    count as core.
    """

    total: int
    core: int
    ext: int


@dataclass(frozen=True)
class GenerationCounts:
    base_types: CategoryCount
    enums: CategoryCount
    bitmasks: CategoryCount
    handles: CategoryCount
    structs: CategoryCount
    unions: CategoryCount
    commands: CategoryCount
    constants: CategoryCount


@dataclass(frozen=True)
class GenerationSummary:
    source_label: str
    output_dir: str
    counts: GenerationCounts
    files: tuple[FileWriteResult, ...]


def is_extension_feature(vk: Vulkan, feature: FeatureHandle | None) -> bool:
    if feature is None:
        return False
    return vk.features[feature].kind is not FeatureKind.CORE


def _count(flags: list[bool]) -> CategoryCount:
    ext = sum(1 for flag in flags if flag)
    return CategoryCount(total=len(flags), core=len(flags) - ext, ext=ext)


def build_generation_counts(vk: Vulkan) -> GenerationCounts:
    types = vk.types

    def _types(handles) -> CategoryCount:
        return _count([is_extension_feature(vk, types[h].head.feature) for h in handles])

    base_handles = (
        types.base_types + types.fnptr_types + types.alias_types + types.opaque_types
    )
    return GenerationCounts(
        base_types=_types(base_handles),
        enums=_types(types.enum_types),
        bitmasks=_types(types.bitmask_types),
        handles=_types(types.handle_types),
        structs=_types(types.struct_types),
        unions=_types(types.union_types),
        commands=_count(
            [is_extension_feature(vk, c.head.feature) for _, c in vk.commands]
        ),
        constants=_count([is_extension_feature(vk, c.feature) for c in vk.constants]),
    )


def build_generation_summary(
    vk: Vulkan, write_result: PackageWriteResult
) -> GenerationSummary:
    return GenerationSummary(
        source_label=source_label(vk),
        output_dir=str(write_result.output_dir),
        counts=build_generation_counts(vk),
        files=write_result.files,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render the post-generation console report.

    Split annotations appear only when ext > 0. Line counts use thousands
    separators. Returns a string with exactly one trailing newline.
    """
    lines: list[str] = []
    lines.append("Vulkan bindings generated:")
    lines.append("")
    lines.append(f"  Source:     {summary.source_label}")
    lines.append(f"  Output:     {summary.output_dir}")
    lines.append("")
    lines.append("  Items generated:")

    def _type_row(label: str, cc: CategoryCount) -> str:
        count_str = f"{cc.total:>6}"
        if cc.ext > 0:
            return f"    {label:<11}{count_str}  ({cc.core} core + {cc.ext} from extensions)"
        return f"    {label:<11}{count_str}"

    counts = summary.counts
    lines.append(_type_row("Base types:", counts.base_types))
    lines.append(_type_row("Enums:", counts.enums))
    lines.append(_type_row("Bitmasks:", counts.bitmasks))
    lines.append(_type_row("Handles:", counts.handles))
    lines.append(_type_row("Structs:", counts.structs))
    lines.append(_type_row("Unions:", counts.unions))
    lines.append(_type_row("Commands:", counts.commands))
    lines.append(_type_row("Constants:", counts.constants))

    lines.append("")
    lines.append("  Files written:")
    for file_result in summary.files:
        line_str = f"{file_result.line_count:>6,} lines"
        lines.append(f"    {file_result.filename:<28} {line_str}")

    total_lines = sum(f.line_count for f in summary.files)
    lines.append("")
    lines.append(f"  Total: {total_lines:,} lines across {len(summary.files)} files")
    lines.append("")

    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Main ---=== #


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        message = f"Config error [{err.code}]: {err.message}"
        if err.suggestion:
            message += f" (hint: {err.suggestion})"
        print(message, file=sys.stderr)
        raise SystemExit(1) from err

    try:
        if isinstance(config, DiscoveryConfig):
            run_discovery(config)
        else:
            run_generate(config)
    except VkgenError as err:
        print(str(err), file=sys.stderr)
        raise SystemExit(1) from err
