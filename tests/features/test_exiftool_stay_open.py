import asyncio
import json
from pathlib import Path

import pytest

from metatag_backend.adapters.tools import exiftool as m


class _FakeStdin:
    def __init__(self, proc):
        self.proc = proc
        self.buffer = b""
        self.closed = False

    def write(self, data):
        self.buffer += data

    async def drain(self):
        data, self.buffer = self.buffer, b""
        self.proc.receive(data)

    def close(self):
        self.closed = True


class _FakeProcess:
    """
    Scripted stand-in for ``exiftool -stay_open True -@ -``.

    ``responder(args)`` returns ``(stdout, stderr)``, ``"hang"`` to never answer,
    or ``("exit", code, stderr)`` to die mid-command.
    """

    def __init__(self, responder):
        self.responder = responder
        self.stdin = _FakeStdin(self)
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.returncode = None
        self.pid = 4242
        self.commands: list[list[str]] = []
        self.killed = False
        self._exited = asyncio.Event()

    def receive(self, data: bytes):
        lines = data.decode("utf-8").splitlines()
        if lines[:2] == ["-stay_open", "False"]:
            self._exit(0)
            return
        marker = lines[lines.index("-echo4") + 1]
        args = lines[: lines.index("-echo4")]
        self.commands.append(args)
        reply = self.responder(args)
        if reply == "hang":
            return
        if reply[0] == "exit":
            _, code, stderr = reply
            self.stderr.feed_data(stderr.encode("utf-8"))
            self._exit(code)
            return
        stdout, stderr = reply
        self.stdout.feed_data(f"{stdout}{marker}\n".encode("utf-8"))
        self.stderr.feed_data(f"{stderr}{marker}\n".encode("utf-8"))

    def _exit(self, code):
        self.returncode = code
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    def kill(self):
        self.killed = True
        if self.returncode is None:
            self._exit(-9)

    async def wait(self):
        await self._exited.wait()
        return self.returncode


@pytest.fixture
def tool(monkeypatch):
    monkeypatch.setattr(m.ExifTool, "_check_available", lambda self: True)
    return m.ExifTool(bin_name="exiftool", timeout_ms=200)


def _install(tool, monkeypatch, responder):
    spawned: list[_FakeProcess] = []

    async def _spawn(self):
        proc = _FakeProcess(responder)
        spawned.append(proc)
        return proc

    monkeypatch.setattr(m.ExifTool, "_spawn_process", _spawn)
    return spawned


def test_tag_and_option_validation_helpers():
    assert m._is_safe_exiftool_tag("XMP-photoshop:Location") is True
    assert m._is_safe_exiftool_tag("Caption-Abstract") is True
    assert m._is_safe_exiftool_tag("-bad") is False
    assert m._is_safe_exiftool_tag("bad tag") is False
    assert m._is_safe_exiftool_option("-overwrite_original") is True
    assert m._is_safe_exiftool_option("-o; rm") is False


def test_stderr_excerpt_is_single_line_without_quotes():
    assert m._stderr_excerpt("Error: can't\n  open") == 'Error: can"t open'
    assert len(m._stderr_excerpt("x" * 2000)) == 500


def test_build_write_args_replaces_lists(tool, monkeypatch):
    monkeypatch.setattr(m.os, "name", "posix")
    args = tool._build_write_args(
        "/p/a.jpg",
        {"Keywords": ["a", "b"], "Description": "Sunset"},
        [m.OVERWRITE_ORIGINAL],
    )
    assert args == [
        "-overwrite_original",
        "-Keywords=",
        "-Keywords+=a",
        "-Keywords+=b",
        "-Description=Sunset",
        "/p/a.jpg",
    ]


def test_build_write_args_escapes_newlines(tool, monkeypatch):
    monkeypatch.setattr(m.os, "name", "posix")
    args = tool._build_write_args("/p/a.jpg", {"Description": "line1\nline2"}, [])
    assert args[0] == "-ec"
    assert "-Description=line1\\nline2" in args


def test_executable_resolution_helpers(monkeypatch, tmp_path: Path):
    exep = tmp_path / "exiftool"
    exep.write_text("x")

    monkeypatch.setattr(m.shutil, "which", lambda raw: str(exep) if raw == "exiftool" else None)
    assert m.ExifTool._is_safe_executable_name("exiftool") is True
    assert m.ExifTool._is_safe_executable_name("bad|x") is False
    assert m.ExifTool._resolve_executable_path("exiftool") == str(exep)
    assert m.ExifTool._looks_like_exiftool_name(str(exep)) is True
    assert m.ExifTool._looks_like_exiftool_name("/usr/bin/python") is False


def test_trusted_dirs(tmp_path: Path):
    d = tmp_path / "bin"
    d.mkdir()
    f = d / "exiftool"
    f.write_text("x")
    other = tmp_path / "other"
    other.mkdir()
    assert m.ExifTool._is_under_trusted_dirs(str(f), str(d)) is True
    assert m.ExifTool._is_under_trusted_dirs(str(f), str(other)) is False
    assert m.ExifTool._is_under_trusted_dirs(str(f), "") is True


def test_parse_read_output_variants():
    ok = m.ExifTool._parse_read_output(json.dumps([{"SourceFile": "a", "Keywords": ["x"]}]), "", "a")
    assert ok.ok and ok.data["Keywords"] == ["x"]

    embedded = m.ExifTool._parse_read_output(json.dumps([{"Error": "File format error"}]), "", "a")
    assert not embedded.ok
    assert embedded.error == "ExifTool reported: 'Error: File format error'"

    empty = m.ExifTool._parse_read_output("", "Error: File not found - a", "a")
    assert empty.error == "ExifTool reported: 'Error: File not found - a'"

    junk = m.ExifTool._parse_read_output("not json", "", "a")
    assert junk.error.startswith("Failed to parse ExifTool output")


def test_parse_write_output_variants():
    assert m.ExifTool._parse_write_output("1 image files updated", "Warning: minor", "a").ok
    failed = m.ExifTool._parse_write_output(
        "0 image files updated\n1 files weren't updated due to errors", "Error: Unknown file type", "a"
    )
    assert not failed.ok
    assert failed.error == "ExifTool reported: 'Error: Unknown file type'"


@pytest.mark.asyncio
async def test_read_and_write_share_one_process(tool, monkeypatch):
    def responder(args):
        if args[0] == "-j":
            return json.dumps([{"SourceFile": args[-1], "Keywords": "solo"}]), ""
        return "    1 image files updated\n", ""

    spawned = _install(tool, monkeypatch, responder)

    read = await tool.read("/p/a.jpg")
    assert read.ok and read.data["Keywords"] == "solo"

    write = await tool.write("/p/a.jpg", {"Keywords": ["a"]}, [m.OVERWRITE_ORIGINAL])
    assert write.ok and write.data is True

    assert len(spawned) == 1
    assert spawned[0].commands[1][-1] == "/p/a.jpg"
    assert tool.is_running


@pytest.mark.asyncio
async def test_timeout_kills_and_respawns(tool, monkeypatch):
    replies = iter(["hang", ("[]", "")])
    spawned = _install(tool, monkeypatch, lambda args: next(replies))

    res = await tool.read("/p/a.jpg")
    assert not res.ok
    assert res.error == "ExifTool read timed out after 200ms"
    assert spawned[0].killed

    res = await tool.read("/p/a.jpg")
    assert len(spawned) == 2
    assert res.error == "No metadata returned by ExifTool"


@pytest.mark.asyncio
async def test_process_exit_reports_status_and_stderr(tool, monkeypatch):
    _install(tool, monkeypatch, lambda args: ("exit", 1, "Unknown file type\n"))

    res = await tool.write("/p/a.jpg", {"Description": "x"})
    assert not res.ok
    assert res.error == "ExifTool process exited with status 1, stderr: 'Unknown file type'"
    assert res.meta["return_code"] == 1
    assert not tool.is_running


@pytest.mark.asyncio
async def test_write_rejects_unsafe_keys_and_options(tool, monkeypatch):
    spawned = _install(tool, monkeypatch, lambda args: ("", ""))
    bad_key = await tool.write("/p/a.jpg", {"bad tag": "x"})
    assert bad_key.error == "Invalid ExifTool tag format"
    bad_opt = await tool.write("/p/a.jpg", {"Description": "x"}, ["-o; rm"])
    assert bad_opt.error == "Invalid ExifTool option"
    assert spawned == []


@pytest.mark.asyncio
async def test_unavailable_tool_reports_start_failure(monkeypatch):
    monkeypatch.setattr(m.ExifTool, "_check_available", lambda self: False)
    t = m.ExifTool(bin_name="exiftool")
    res = await t.read("/p/a.jpg")
    assert res.error.startswith("ExifTool process could not be started")


@pytest.mark.asyncio
async def test_end_is_idempotent_and_blocks_new_commands(tool, monkeypatch):
    spawned = _install(tool, monkeypatch, lambda args: ("[]", ""))
    await tool.read("/p/a.jpg")

    first = await tool.end()
    second = await tool.end()
    assert first.ok and second.ok
    assert spawned[0].returncode == 0
    assert spawned[0].stdin.closed

    res = await tool.read("/p/a.jpg")
    assert "shut down" in res.error
    assert len(spawned) == 1
