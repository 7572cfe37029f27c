import json

import pytest
import yaml

from cbtoolbox.core.models import BatchResult, FileFailure, SysInfo
from cbtoolbox.core.reporting import (
    render,
    render_sysinfo,
    save_analysis,
    save_batch_summary,
    save_comparison,
)
from cbtoolbox.coreinfo.compare import compare_cores
from cbtoolbox.coreinfo.threads import normalize_analysis
from cbtoolbox.coreinfo.transcript import parse_transcript


@pytest.fixture
def analysis(transcript):
    return normalize_analysis(parse_transcript(transcript, "/cores/core.4242", timestamp="2026-03-01T10:00:00Z"))


def test_save_analysis_yaml(tmp_path, analysis):
    path = save_analysis(analysis, tmp_path, "yaml", metadata={"script": "basic"})

    assert path.name.startswith("core_analysis_core.4242_")
    assert path.suffix == ".yaml"
    report = yaml.safe_load(path.read_text())
    assert report["cbtoolbox_report"] is True
    assert report["kind"] == "core_analysis"
    assert report["metadata"] == {"script": "basic"}
    assert report["data"]["core_file"] == "/cores/core.4242"
    assert report["data"]["signal_info"]["signal_name"] == "SIGSEGV"
    # insertion order is kept
    assert list(report) == ["cbtoolbox_report", "version", "kind", "generated_at", "metadata", "data"]


def test_save_analysis_json(tmp_path, analysis):
    path = save_analysis(analysis, tmp_path / "nested", "json")
    report = json.loads(path.read_text())
    assert "metadata" not in report
    assert report["data"]["basic_info"]["binary"] == "postgres"
    assert report["data"]["threads"][1]["is_crashed"] is True


def test_save_comparison(tmp_path, analysis):
    other = analysis.model_copy(update={"core_file": "/cores/core.4243"})
    path = save_comparison(compare_cores([analysis, other]), tmp_path, "json")
    assert path.name.startswith("core_comparison_")
    data = json.loads(path.read_text())["data"]
    assert data["crash_patterns"][0]["occurrence_count"] == 2


def test_batch_summary_lists_failures_and_skips_transcripts(tmp_path, analysis):
    batch = BatchResult(
        analyses=[analysis],
        failures=[FileFailure(core_file="/cores/core.9", error="DebuggerTimeout", message="timed out")],
        transcripts={"/cores/core.4242": "raw gdb output"},
    )
    path = save_batch_summary(batch, tmp_path, "yaml", report_paths={"/cores/core.4242": "r.yaml"})
    data = yaml.safe_load(path.read_text())["data"]

    assert data["analysed"] == [
        {"core_file": "/cores/core.4242", "signal": "SIGSEGV", "binary": "postgres", "report": "r.yaml"}
    ]
    assert data["failures"][0]["error"] == "DebuggerTimeout"
    assert data["patterns"] == 0
    assert "transcripts" not in batch.model_dump()


def test_render_rejects_unknown_format():
    with pytest.raises(ValueError, match="invalid format: xml"):
        render({"a": 1}, "xml")


def test_render_sysinfo_omits_uncollected_database_facts():
    info = SysInfo(os="linux", architecture="x86_64", cpus=8, memory_stats={"MemTotal": "15.5 GiB"})
    data = json.loads(render_sysinfo(info, "json"))["data"]
    assert data["os"] == "linux"
    assert data["memory_stats"] == {"MemTotal": "15.5 GiB"}
    assert "gphome" not in data
    assert "pg_config_configure" not in data
    assert "postgres_version" not in data
