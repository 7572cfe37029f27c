import pytest

from cbtoolbox.core import config as config_module
from cbtoolbox.core.config import Config

BASIC_TRANSCRIPT = """\
Reading symbols from /usr/local/cloudberry-db/bin/postgres...
[New LWP 4242]
[New LWP 4243]
[Thread debugging using libthread_db enabled]
Using host libthread_db library "/lib64/libthread_db.so.1".
Core was generated by `postgres:  7000, gpadmin testdb [local] con12 cmd5 SELECT'.
Program terminated with signal SIGSEGV, Segmentation fault.
#0  0x00007f3a1c2d4e2b in raise () from /lib64/libc.so.6
[Current thread is 1 (Thread 0x7f3a1e8b7880 (LWP 4242))]
===== THREADS =====
  Id   Target Id                                   Frame
* 1    Thread 0x7f3a1e8b7880 (LWP 4242) "postgres" 0x00007f3a1c2d4e2b in raise () from /lib64/libc.so.6
  2    Thread 0x7f3a0f7fe700 (LWP 4243) "postgres" 0x00007f3a1c39b0e3 in poll () from /lib64/libc.so.6
===== SIGINFO =====
$1 = {si_signo = 11, si_errno = 0, si_code = 1, _sifields = {_sigfault = {si_addr = 0x0, _addr_lsb = 0}}}
===== BACKTRACE =====

Thread 2 (Thread 0x7f3a0f7fe700 (LWP 4243)):
#0  0x00007f3a1c39b0e3 in poll () from /lib64/libc.so.6
#1  0x0000000000c1a2b3 in rxThreadFunc (arg=<optimized out>) at ic_udpifc.c:6512
#2  0x00007f3a1d0a6ea5 in start_thread () from /lib64/libpthread.so.0
#3  0x00007f3a1c3a5b0d in clone () from /lib64/libc.so.6

Thread 1 (Thread 0x7f3a1e8b7880 (LWP 4242)):
#0  0x00007f3a1c2d4e2b in raise () from /lib64/libc.so.6
#1  0x0000000000b7c9d1 in StandardHandlerForSigillSigsegvSigbus_OnMainThread (processName=<optimized out>, postgres_signal_arg=11) at elog.c:5170
#2  <signal handler called>
#3  0x00000000007d1e2a in ExecScanFetch (node=0x2a4c1e8) at execScan.c:95
#4  0x00000000007d1f10 in ExecScan (node=0x2a4c1e8, accessMtd=0x7e1a30 <SeqNext>, recheckMtd=0x7e1a00 <SeqRecheck>) at execScan.c:234
#5  0x00000000007c4a12 in ExecProcNode (node=0x2a4c1e8) at execProcnode.c:1021
#6  0x00000000009a0b3c in PostgresMain (argc=1, argv=0x2a1e3f0, dbname=0x2a1e2d8 "testdb", username=0x2a1e2b8 "gpadmin") at postgres.c:5374
#7  0x000000000091fa2e in BackendStartup (port=0x2a18f30) at postmaster.c:4928
#8  0x000000000091f5b1 in ServerLoop () at postmaster.c:2018
#9  0x0000000000921d4e in PostmasterMain (argc=5, argv=0x29f3c40) at postmaster.c:1528
#10 0x00000000006b2a3d in main (argc=5, argv=0x29f3c40) at main.c:205
"""

DETAILED_EXTRA = """\
===== REGISTERS =====
rax            0x0                 0
rbx            0x2a4c1e8           44351976
rip            0x7d1e2a            0x7d1e2a <ExecScanFetch+58>
eflags         0x10246             [ PF ZF IF RF ]
===== SHARED LIBRARIES =====
From                To                  Syms Read   Shared Object Library
0x00007f3a1c2a1630  0x00007f3a1c3f0f6f  Yes         /lib64/libc.so.6
0x00007f3a1d0a2b70  0x00007f3a1d0b0f51  Yes (*)     /lib64/libpthread.so.0
0x00007f3a1e2c0ab0  0x00007f3a1e2e1b20  No          /usr/local/cloudberry-db/lib/libpq.so.5
"""

CORE_FILE_OUTPUT = (
    "{path}: ELF 64-bit LSB core file, x86-64, version 1 (SYSV), SVR4-style, "
    "from 'postgres:  7000, gpadmin testdb [local] con12 cmd5 SELECT', "
    "real uid: 1000, effective uid: 1000, real gid: 1001, effective gid: 1001, "
    "execfn: '/usr/local/cloudberry-db/bin/postgres', platform: 'x86_64'\n"
)

TEXT_FILE_OUTPUT = "{path}: ASCII text\n"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment and .env files out of every test."""
    monkeypatch.setattr(config_module, "_env_loaded", True)
    for name in (
        "GPHOME",
        "CBTOOLBOX_BINARY",
        "CBTOOLBOX_GDB",
        "CBTOOLBOX_FILE_TOOL",
        "CBTOOLBOX_OUTPUT_DIR",
        "CBTOOLBOX_FORMAT",
        "CBTOOLBOX_GDB_TIMEOUT",
        "CBTOOLBOX_MAX_WORKERS",
        "CBTOOLBOX_VERBOSE",
        "CBTOOLBOX_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def cfg(tmp_path):
    return Config(output_dir=tmp_path / "reports")


@pytest.fixture
def transcript():
    return BASIC_TRANSCRIPT


@pytest.fixture
def detailed_transcript():
    return BASIC_TRANSCRIPT + DETAILED_EXTRA


@pytest.fixture
def fake_file_tool(monkeypatch):
    """
    Replace the ``file`` utility: names starting with ``core`` classify as
    core dumps, everything else as text.
    """
    from cbtoolbox.coreinfo import classifier

    calls = []

    def run(path, cfg):
        calls.append(path)
        name = path.rsplit("/", 1)[-1]
        template = CORE_FILE_OUTPUT if name.startswith("core") else TEXT_FILE_OUTPUT
        return template.format(path=path)

    monkeypatch.setattr(classifier, "_run_file_command", run)
    return calls
