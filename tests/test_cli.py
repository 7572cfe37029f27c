import json

import pytest
from typer.testing import CliRunner

from cbtoolbox.cli.app import app
from cbtoolbox.coreinfo import pipeline
from cbtoolbox.sysinfo import collector

runner = CliRunner()


def _flat(text):
    return " ".join(text.split())


@pytest.fixture
def fake_gdb(monkeypatch, transcript):
    monkeypatch.setattr(pipeline, "check_gdb_available", lambda cfg: "/usr/bin/gdb")
    monkeypatch.setattr(pipeline, "run_gdb", lambda core_file, binary, script_path, cfg: transcript)


@pytest.fixture
def cores(tmp_path):
    d = tmp_path / "cores"
    d.mkdir()
    for name in ("core.1", "core.2", "notes.txt"):
        (d / name).write_text("x")
    return d


def test_coreinfo_prints_summary_and_saves_reports(tmp_path, cores, fake_file_tool, fake_gdb):
    out = tmp_path / "out"
    result = runner.invoke(app, ["coreinfo", str(cores), "--output-dir", str(out), "--format", "json"])

    assert result.exit_code == 0, result.output
    text = _flat(result.output)
    assert "- Signal: SIGSEGV (Segmentation fault)" in text
    assert "- Faulting Address: 0x0" in text
    assert "- Thread ID: 1" in text

    names = sorted(p.name for p in out.iterdir())
    assert len([n for n in names if n.startswith("core_analysis_core.1_")]) == 1
    assert len([n for n in names if n.startswith("core_analysis_core.2_")]) == 1
    assert any(n.startswith("core_comparison_") for n in names)
    summary = next(out.glob("coreinfo_summary_*.json"))
    assert len(json.loads(summary.read_text())["data"]["analysed"]) == 2


def test_coreinfo_show_output(tmp_path, cores, fake_file_tool, fake_gdb):
    result = runner.invoke(app, ["coreinfo", str(cores / "core.1"), "--no-save", "--show-output"])
    assert result.exit_code == 0, result.output
    assert "Detailed GDB Output" in result.output
    assert "Program terminated with signal SIGSEGV" in _flat(result.output)


def test_coreinfo_without_paths(fake_gdb):
    result = runner.invoke(app, ["coreinfo", "--no-save"])
    assert result.exit_code == 1
    assert "no core files or directories provided" in _flat(result.output)


def test_coreinfo_no_valid_cores(tmp_path, fake_file_tool, fake_gdb):
    text = tmp_path / "notes.txt"
    text.write_text("x")
    result = runner.invoke(app, ["coreinfo", str(text), "--no-save"])
    assert result.exit_code == 1
    assert "no valid core files provided" in _flat(result.output)


def test_coreinfo_missing_script(tmp_path, cores, fake_file_tool, fake_gdb):
    result = runner.invoke(
        app, ["coreinfo", str(cores), "--no-save", "--gdb-script", str(tmp_path / "missing.gdb")]
    )
    assert result.exit_code == 1
    assert "gdb command script not found" in _flat(result.output)


def test_coreinfo_fail_on_error(tmp_path, cores, fake_file_tool, monkeypatch):
    def gdb_exits(core_file, binary, script_path, cfg):
        from cbtoolbox.core.errors import DebuggerExecutionFailed

        raise DebuggerExecutionFailed(core_file, 1)

    monkeypatch.setattr(pipeline, "check_gdb_available", lambda cfg: "/usr/bin/gdb")
    monkeypatch.setattr(pipeline, "run_gdb", gdb_exits)

    lenient = runner.invoke(app, ["coreinfo", str(cores), "--no-save"])
    assert lenient.exit_code == 0
    assert "2 core file(s) failed" in _flat(lenient.output)

    strict = runner.invoke(app, ["coreinfo", str(cores), "--no-save", "--fail-on-error"])
    assert strict.exit_code == 1


def test_invalid_format(cores):
    result = runner.invoke(app, ["coreinfo", str(cores), "--format", "xml"])
    assert result.exit_code == 1
    assert "invalid format: xml" in _flat(result.output)


def test_gphome_must_be_a_directory(monkeypatch, tmp_path):
    monkeypatch.setenv("GPHOME", str(tmp_path / "missing"))
    result = runner.invoke(app, ["gdb-script", "basic", "--output", str(tmp_path / "x.txt")])
    assert result.exit_code == 1
    assert "GPHOME directory does not exist" in _flat(result.output)


def test_gdb_script_extract(tmp_path):
    out = tmp_path / "gdb_commands_detailed.txt"
    result = runner.invoke(app, ["gdb-script", "detailed", "--output", str(out)])
    assert result.exit_code == 0, result.output
    assert "info registers" in out.read_text()


def test_gdb_script_unknown_name(tmp_path):
    result = runner.invoke(app, ["gdb-script", "fancy", "--output", str(tmp_path / "x.txt")])
    assert result.exit_code == 1
    assert not (tmp_path / "x.txt").exists()


@pytest.fixture
def fake_facts(monkeypatch):
    monkeypatch.setattr(collector, "get_kernel_version", lambda: "Linux 5.14.0")
    monkeypatch.setattr(collector, "get_os_version", lambda path: "Rocky Linux 9.3")
    monkeypatch.setattr(collector, "get_memory_stats", lambda path: {"MemTotal": "15.5 GiB"})
    monkeypatch.setattr(collector, "get_pg_config_configure", lambda gphome: ["--enable-debug"])
    monkeypatch.setattr(collector, "get_postgres_version", lambda gphome: "postgres (Apache Cloudberry) 14.4")
    monkeypatch.setattr(collector, "get_gp_version", lambda gphome: "postgres (Apache Cloudberry) 1.6.0")


def test_sysinfo_without_gphome(fake_facts):
    result = runner.invoke(app, ["sysinfo"])
    assert result.exit_code == 1
    assert "kernel: Linux 5.14.0" in result.output
    assert "GPHOME environment variable is not set" in _flat(result.output)


def test_sysinfo_with_gphome_json(monkeypatch, tmp_path, fake_facts):
    monkeypatch.setenv("GPHOME", str(tmp_path))
    result = runner.invoke(app, ["sysinfo", "--format", "json"])
    assert result.exit_code == 0, result.output
    assert '"postgres_version": "postgres (Apache Cloudberry) 14.4"' in result.output
    assert '"pg_config_configure": [' in result.output
