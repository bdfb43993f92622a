#=============================================================================
# File        : tests/test_cli.py
# Project     : MemScope v1.0
# Component   : CLI Test Suite
# Description : Argument parsing and the summary command
# Author      : MemScope Contributors
# Version     : 1.0.0
# Created     : 2026-10-18
#=============================================================================

import json
import sys
from pathlib import Path

import pytest

# Add memscope to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from memscope.cli import build_summary, create_parser, format_summary_text, main
from memscope.introspection import ComponentNode


@pytest.fixture
def export_file(tmp_path, make_engine, provider, clock):
    engine = make_engine()
    engine.sample()
    clock.advance(1)
    provider.set(heap_used=12 * 1024 * 1024)
    engine.sample()
    engine.analyze_tree(ComponentNode("Dashboard", props={"title": "Overview"}))
    path = tmp_path / "profile.json"
    path.write_text(engine.export_data())
    return path


class TestParser:

    def test_watch_defaults(self):
        args = create_parser().parse_args(['watch'])
        assert args.command == 'watch'
        assert args.interval == 1.0
        assert args.duration == 10.0
        assert args.pid is None

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()


class TestSummaryCommand:

    def test_text_summary(self, export_file, capsys):
        assert main(['summary', str(export_file)]) == 0
        out = capsys.readouterr().out
        assert "MemScope Summary" in out
        assert "Measurements: 2" in out
        assert "Growth: 2 MB/s" in out
        assert "Dashboard" in out

    def test_json_summary(self, export_file, capsys):
        assert main(['summary', str(export_file), '--json']) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary['measurements'] == 2
        assert summary['current_memory_mb'] == 12.0
        assert summary['growth_rate_bytes_per_s'] == pytest.approx(2 * 1024 * 1024)
        assert summary['top_components'][0]['name'] == "Dashboard"

    def test_missing_file(self, tmp_path, capsys):
        assert main(['summary', str(tmp_path / "missing.json")]) == 1

    def test_invalid_file(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("{broken")
        assert main(['summary', str(path)]) == 1
        assert "Failed to load" in capsys.readouterr().out


class TestFormatting:

    def test_empty_engine_summary(self, make_engine):
        text = format_summary_text(build_summary(make_engine()))
        assert "Measurements: 0" in text
        assert "Leaks: 0" in text
