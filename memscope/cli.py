#!/usr/bin/env python3
"""
MemScope CLI Interface

Command-line interface for sampling a process and summarizing exports.
"""

import argparse
import json
import sys
import time
from pathlib import Path

from . import __version__
from .config import MemoryBudget, ProfilerConfig
from .engine import MemoryProfilerEngine
from .performance import format_bytes, format_bytes_per_second
from .sampling import NullHeapProvider, PsutilHeapProvider
from .store import ImportDataError


def create_parser():
    """Create the argument parser for MemScope CLI."""
    parser = argparse.ArgumentParser(
        prog='memscope',
        description='MemScope - Memory and Performance Profiler',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  memscope watch --pid 4242 --interval 0.5 --duration 60 --budget-mb 256
  memscope watch --duration 10 --output profile.json
  memscope summary profile.json --json
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Watch command
    watch_parser = subparsers.add_parser('watch', help='Sample a process and report memory behaviour')
    watch_parser.add_argument('--pid', type=int, default=None,
                              help='Process id to sample (default: this process)')
    watch_parser.add_argument('--interval', '-i', type=float, default=1.0,
                              help='Sampling interval in seconds (default: 1.0)')
    watch_parser.add_argument('--duration', '-d', type=float, default=10.0,
                              help='How long to sample in seconds (default: 10)')
    watch_parser.add_argument('--budget-mb', type=float, default=None,
                              help='Heap budget in MB; breaches raise alerts')
    watch_parser.add_argument('--output', '-o', type=str,
                              help='Write the export document to this file')

    # Summary command
    summary_parser = subparsers.add_parser('summary', help='Summarize an exported document')
    summary_parser.add_argument('file', type=str, help='Export document (JSON)')
    summary_parser.add_argument('--json', action='store_true',
                                help='Output in JSON format')

    return parser


def build_summary(engine):
    """Collect the headline numbers of an engine's current state."""
    store = engine.store
    return {
        'measurements': len(store.timeline.measurements),
        'current_memory_mb': round(engine.get_current_memory_usage_mb(), 2),
        'memory_trend': engine.get_memory_trend(),
        'memory_pressure': engine.get_memory_pressure_level(),
        'growth_rate_bytes_per_s': engine.get_memory_growth_rate(),
        'stats': engine.get_memory_stats(),
        'top_components': [
            {'name': c.name, 'total_memory': c.total_memory, 'instances': c.instance_count}
            for c in engine.get_components_by_memory_usage()[:5]
        ],
        'leaks': len(store.leaks),
        'leak_patterns': len(store.leak_patterns),
        'alerts': [a.message for a in store.alerts],
        'suggestions': [s.description for s in store.suggestions.values()],
        'budget_violations': [
            {'target': v.budget.target, 'usage_mb': round(v.current_usage_mb, 2),
             'budget_mb': v.budget.budget_mb}
            for v in engine.get_budget_violations()
        ],
    }


def format_summary_text(summary):
    """Format a summary for text output."""
    lines = []
    lines.append("MemScope Summary")
    lines.append("=" * 16)
    lines.append(f"Measurements: {summary['measurements']}")
    lines.append(f"Memory: {summary['current_memory_mb']:.1f}MB "
                 f"(trend: {summary['memory_trend']}, pressure: {summary['memory_pressure']})")

    stats = summary['stats']
    if summary['measurements']:
        lines.append(f"Range: {format_bytes(stats['min'])} - {format_bytes(stats['max'])} "
                     f"over {stats['duration']:.0f}s")
        lines.append(f"Growth: {format_bytes_per_second(summary['growth_rate_bytes_per_s'])}")

    if summary['top_components']:
        lines.append("")
        lines.append("Top components:")
        for c in summary['top_components']:
            lines.append(f"  {c['name']}: {format_bytes(c['total_memory'])} ({c['instances']} instances)")

    lines.append("")
    lines.append(f"Leaks: {summary['leaks']}  Patterns: {summary['leak_patterns']}")

    if summary['budget_violations']:
        lines.append("Budget violations:")
        for v in summary['budget_violations']:
            lines.append(f"  {v['target']}: {v['usage_mb']:.1f}MB / {v['budget_mb']:g}MB")

    if summary['alerts']:
        lines.append("Alerts:")
        for message in summary['alerts']:
            lines.append(f"  - {message}")

    if summary['suggestions']:
        lines.append("Suggestions:")
        for description in summary['suggestions']:
            lines.append(f"  - {description}")

    return "\n".join(lines)


def cmd_watch(args):
    """Handle watch command."""
    try:
        provider = PsutilHeapProvider(args.pid)
    except Exception as e:
        print(f"Cannot inspect process: {e}")
        return 1

    config = ProfilerConfig.from_env().merge(sampling_interval_s=args.interval)
    if args.budget_mb is not None:
        config = config.merge(budgets=(MemoryBudget(budget_mb=args.budget_mb),))

    own_process = args.pid is None
    engine = MemoryProfilerEngine(
        config=config,
        heap_provider=provider,
        gc_trigger=None,
        observe_gc=own_process,
    )

    print(f"Sampling pid {provider.pid} every {config.sampling_interval_s}s for {args.duration}s...")
    try:
        engine.sample()
        engine.start()
        time.sleep(args.duration)
    except KeyboardInterrupt:
        print("Interrupted")
    finally:
        engine.stop()

    print(format_summary_text(build_summary(engine)))

    if args.output:
        try:
            Path(args.output).write_text(engine.export_data())
        except OSError as e:
            print(f"Failed to write {args.output}: {e}")
            return 1
        print(f"Export saved to {args.output}")

    return 0


def cmd_summary(args):
    """Handle summary command."""
    try:
        text = Path(args.file).read_text()
    except OSError as e:
        print(f"Failed to read {args.file}: {e}")
        return 1

    engine = MemoryProfilerEngine(heap_provider=NullHeapProvider(), gc_trigger=None, observe_gc=False)
    try:
        result = engine.import_data(text)
    except ImportDataError as e:
        print(f"Failed to load {args.file}: {e}")
        return 1

    summary = build_summary(engine)
    if result.failed:
        summary['import_errors'] = result.failed

    if args.json:
        print(json.dumps(summary, indent=2, default=str))
    else:
        print(format_summary_text(summary))
        for section, error in result.failed.items():
            print(f"Warning: section '{section}' skipped ({error})")

    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # Dispatch to command handlers
    handlers = {
        'watch': cmd_watch,
        'summary': cmd_summary,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
