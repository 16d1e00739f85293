"""
ExifTool adapter for reading and writing metadata.

One ExifTool process is kept alive in ``-stay_open`` mode and fed argument
blocks over stdin. ExifTool handles one block at a time, so commands are
serialized behind an ``asyncio.Lock``.
"""
import asyncio
import json
import os
import re
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ...config import (
    EXIFTOOL_BIN,
    EXIFTOOL_MAX_OUTPUT_BYTES,
    EXIFTOOL_TIMEOUT_MS,
    EXIFTOOL_TRUSTED_DIRS,
)
from ...shared import Result, get_logger

logger = get_logger(__name__)

# Adapter-level failure code. The metadata writer classifies the message text
# into the public error taxonomy; this code never leaves the backend.
EXIFTOOL_ERROR = "EXIFTOOL_ERROR"

OVERWRITE_ORIGINAL = "-overwrite_original"

_TAG_SAFE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_:-]*$")
_OPTION_SAFE_PATTERN = re.compile(r"^-[A-Za-z0-9_:=.-]+$")
_STDERR_EXCERPT_MAX = 500


def _decode_bytes_best_effort(blob: Optional[bytes]) -> Tuple[str, bool]:
    """
    Decode subprocess bytes robustly across Windows code pages.

    Returns:
      (text, had_replacement_chars)
    """
    if blob is None:
        return "", False
    if not isinstance(blob, (bytes, bytearray)):
        text = str(blob)
        return text, ("\ufffd" in text)

    raw = bytes(blob)
    if not raw:
        return "", False

    for enc in ("utf-8", "utf-8-sig"):
        try:
            return raw.decode(enc, errors="strict"), False
        except UnicodeDecodeError:
            pass

    # Windows consoles may emit stderr in the local codepage.
    try:
        return raw.decode("cp1252", errors="strict"), False
    except UnicodeDecodeError:
        pass

    utf_text = raw.decode("utf-8", errors="replace")
    return utf_text, "\ufffd" in utf_text


def _is_safe_exiftool_tag(tag: str) -> bool:
    """
    Return True if a tag/key looks safe to pass to ExifTool as ``-TAG=...``.

    ExifTool tags commonly contain group separators (``XMP-photoshop:Location``),
    dashes (``Caption-Abstract``) and underscores. Whitespace and anything that
    could start another option are rejected.
    """
    if not tag or not isinstance(tag, str):
        return False
    s = tag.strip()
    if not s or s.startswith("-"):
        return False
    if "\x00" in s or "\n" in s or "\r" in s or "\t" in s:
        return False
    return bool(_TAG_SAFE_PATTERN.match(s))


def _is_safe_exiftool_option(option: str) -> bool:
    return isinstance(option, str) and bool(_OPTION_SAFE_PATTERN.match(option))


def _stderr_excerpt(text: str) -> str:
    """Single-line excerpt that survives the ``'...'`` quoting."""
    flat = " ".join((text or "").split())
    flat = flat.replace("'", '"')
    if len(flat) > _STDERR_EXCERPT_MAX:
        flat = flat[: _STDERR_EXCERPT_MAX - 3] + "..."
    return flat


def _error_lines(stderr: str) -> List[str]:
    return [line.strip() for line in (stderr or "").splitlines() if line.strip().startswith("Error")]


def _warning_lines(stderr: str) -> List[str]:
    return [line.strip() for line in (stderr or "").splitlines() if line.strip().startswith("Warning")]


def _needs_c_escapes(values: List[str]) -> bool:
    return any("\n" in v or "\r" in v for v in values)


def _c_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\r", "\\r").replace("\n", "\\n")


class ExifTool:
    """
    ExifTool wrapper for metadata operations.

    Never raises exceptions - always returns Result. Failure messages follow
    fixed formats that the metadata writer pattern-matches:

    - ``ExifTool <operation> timed out after <N>ms``
    - ``ExifTool process exited with status <N>, stderr: '<text>'``
    - ``ExifTool reported: '<text>'``
    - ``ExifTool process could not be started: <reason>``
    """

    def __init__(
        self,
        bin_name: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        max_output_bytes: Optional[int] = None,
    ):
        """
        Initialize ExifTool adapter. The process itself is spawned on first use.

        Args:
            bin_name: ExifTool binary name or path
            timeout_ms: Per-command timeout in milliseconds
            max_output_bytes: Largest response accepted from one command
        """
        self.bin = bin_name or EXIFTOOL_BIN or "exiftool"
        self.timeout_ms = int(timeout_ms) if timeout_ms is not None else int(EXIFTOOL_TIMEOUT_MS)
        self.max_output_bytes = int(max_output_bytes or EXIFTOOL_MAX_OUTPUT_BYTES)
        self._available = self._check_available()
        self._process: Optional[asyncio.subprocess.Process] = None
        self._lock = asyncio.Lock()
        self._seq = 0
        self._closed = False

    # ── executable resolution ─────────────────────────────────────────────

    def _resolve_executable(self, bin_name: str) -> Optional[str]:
        """
        Resolve and validate the exiftool executable.

        Guards against configuration values that are command strings rather
        than a path to an actual exiftool binary.
        """
        raw = (bin_name or "").strip()
        if not self._is_safe_executable_name(raw):
            return None
        resolved = self._resolve_executable_path(raw)
        if not resolved:
            return None
        if not self._is_under_trusted_dirs(resolved):
            return None
        return resolved if self._looks_like_exiftool_name(resolved) else None

    @staticmethod
    def _is_safe_executable_name(raw: str) -> bool:
        if not raw:
            return False
        if "\x00" in raw or "\n" in raw or "\r" in raw:
            return False
        return not any(ch in raw for ch in ("&", "|", ";", ">", "<"))

    @staticmethod
    def _resolve_executable_path(raw: str) -> Optional[str]:
        resolved = shutil.which(raw)
        if resolved:
            return resolved
        try:
            candidate = Path(raw)
            if candidate.is_file():
                return str(candidate.resolve(strict=True))
        except (OSError, RuntimeError, ValueError):
            return None
        return None

    @staticmethod
    def _is_under_trusted_dirs(resolved: str, trusted_dirs_raw: Optional[str] = None) -> bool:
        raw = EXIFTOOL_TRUSTED_DIRS if trusted_dirs_raw is None else trusted_dirs_raw
        raw = str(raw or "").strip()
        if not raw:
            return True
        try:
            resolved_path = Path(resolved).resolve(strict=True)
        except (OSError, RuntimeError):
            return False
        trusted_roots = ExifTool._trusted_roots(raw)
        if not trusted_roots:
            return True
        return any(resolved_path == root or root in resolved_path.parents for root in trusted_roots)

    @staticmethod
    def _trusted_roots(trusted_dirs_raw: str) -> List[Path]:
        roots: List[Path] = []
        for item in trusted_dirs_raw.split(os.pathsep):
            item = item.strip()
            if not item:
                continue
            try:
                roots.append(Path(item).expanduser().resolve(strict=True))
            except (OSError, RuntimeError):
                continue
        return roots

    @staticmethod
    def _looks_like_exiftool_name(resolved: str) -> bool:
        return Path(resolved).name.lower().startswith("exiftool")

    def _check_available(self) -> bool:
        """Check if ExifTool is available in PATH."""
        resolved = self._resolve_executable(self.bin)
        if not resolved:
            logger.warning("ExifTool executable not usable: %s", self.bin)
            return False
        self.bin = resolved
        return True

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    # ── process lifecycle ─────────────────────────────────────────────────

    async def _spawn_process(self) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            self.bin,
            "-stay_open",
            "True",
            "-@",
            "-",
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=self.max_output_bytes,
        )

    async def _ensure_process(self) -> Result[asyncio.subprocess.Process]:
        """Return the running process, spawning it if needed. Caller holds the lock."""
        if self._closed:
            return Result.Err(EXIFTOOL_ERROR, "ExifTool process could not be started: adapter has been shut down")
        if self.is_running:
            return Result.Ok(self._process)
        if not self._available:
            return Result.Err(
                EXIFTOOL_ERROR,
                f"ExifTool process could not be started: executable '{self.bin}' not found",
            )
        try:
            self._process = await self._spawn_process()
        except (OSError, ValueError) as exc:
            logger.error("Failed to spawn ExifTool: %s", exc)
            self._process = None
            return Result.Err(EXIFTOOL_ERROR, f"ExifTool process could not be started: {exc}")
        logger.debug("ExifTool process started (pid=%s)", self._process.pid)
        return Result.Ok(self._process)

    async def _kill_process(self) -> None:
        proc = self._process
        self._process = None
        if proc is None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        try:
            await asyncio.wait_for(proc.wait(), timeout=2.0)
        except asyncio.TimeoutError:
            logger.warning("ExifTool process %s did not exit after kill", proc.pid)

    async def _reap_exited_process(self, stderr_partial: bytes = b"") -> Tuple[Optional[int], str]:
        """Collect exit status and leftover stderr of a process that died mid-command."""
        proc = self._process
        self._process = None
        if proc is None:
            return None, ""
        chunks = [stderr_partial or b""]
        if proc.stderr is not None:
            try:
                chunks.append(await asyncio.wait_for(proc.stderr.read(), timeout=1.0))
            except (asyncio.TimeoutError, ValueError, OSError):
                pass
        returncode: Optional[int] = proc.returncode
        if returncode is None:
            try:
                returncode = await asyncio.wait_for(proc.wait(), timeout=1.0)
            except asyncio.TimeoutError:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
        text, _ = _decode_bytes_best_effort(b"".join(chunks))
        return returncode, text

    # ── command execution ─────────────────────────────────────────────────

    @staticmethod
    async def _read_response(proc: asyncio.subprocess.Process, marker: bytes) -> Tuple[bytes, bytes]:
        assert proc.stdout is not None and proc.stderr is not None
        stdout = await proc.stdout.readuntil(marker)
        try:
            stderr = await proc.stderr.readuntil(marker)
        except asyncio.IncompleteReadError as exc:
            # stdout completed but stderr closed: surface as an exit with what we have
            raise _StderrClosed(exc.partial) from exc
        return stdout[: -len(marker)], stderr[: -len(marker)]

    async def execute(self, args: List[str], operation: str) -> Result[Tuple[str, str]]:
        """
        Run one argument block through the stay_open process.

        Args:
            args: ExifTool arguments, one per line (no newlines inside)
            operation: Label used in timeout messages ("read", "write")

        Returns:
            Result with (stdout, stderr) text
        """
        async with self._lock:
            proc_res = await self._ensure_process()
            if not proc_res.ok:
                return proc_res.cast_err()
            proc = proc_res.data
            assert proc is not None and proc.stdin is not None

            self._seq += 1
            marker_text = f"{{ready{self._seq}}}"
            payload = "\n".join([*args, "-echo4", marker_text, f"-execute{self._seq}"]) + "\n"

            try:
                proc.stdin.write(payload.encode("utf-8"))
                await proc.stdin.drain()
                stdout_b, stderr_b = await asyncio.wait_for(
                    self._read_response(proc, marker_text.encode("utf-8")),
                    timeout=self.timeout_ms / 1000.0,
                )
            except asyncio.TimeoutError:
                logger.error("ExifTool %s timed out after %sms; restarting process", operation, self.timeout_ms)
                await self._kill_process()
                return Result.Err(
                    EXIFTOOL_ERROR,
                    f"ExifTool {operation} timed out after {self.timeout_ms}ms",
                    operation=operation,
                    timeout_ms=self.timeout_ms,
                )
            except asyncio.LimitOverrunError:
                logger.error("ExifTool %s output exceeded %s bytes; restarting process", operation, self.max_output_bytes)
                await self._kill_process()
                return Result.Err(
                    EXIFTOOL_ERROR,
                    f"ExifTool output exceeded {self.max_output_bytes} bytes",
                    operation=operation,
                )
            except _StderrClosed as exc:
                return await self._process_exit_error(operation, exc.partial)
            except asyncio.IncompleteReadError:
                return await self._process_exit_error(operation, b"")
            except (BrokenPipeError, ConnectionResetError):
                return await self._process_exit_error(operation, b"")

        stdout, stdout_rep = _decode_bytes_best_effort(stdout_b)
        stderr, stderr_rep = _decode_bytes_best_effort(stderr_b)
        if stdout_rep or stderr_rep:
            logger.warning("ExifTool %s output contained decoding replacement characters", operation)
        return Result.Ok((stdout.strip(), stderr.strip()))

    async def _process_exit_error(self, operation: str, stderr_partial: bytes) -> Result[Tuple[str, str]]:
        returncode, stderr = await self._reap_exited_process(stderr_partial)
        status = returncode if returncode is not None else "unknown"
        excerpt = _stderr_excerpt(stderr)
        logger.error("ExifTool process exited during %s (status %s): %s", operation, status, excerpt)
        return Result.Err(
            EXIFTOOL_ERROR,
            f"ExifTool process exited with status {status}, stderr: '{excerpt}'",
            operation=operation,
            return_code=returncode,
            stderr=excerpt,
        )

    # ── read ──────────────────────────────────────────────────────────────

    @staticmethod
    def _build_read_args(path: str) -> List[str]:
        args = ["-j"]
        if os.name == "nt":
            args.extend(["-charset", "filename=utf8"])
        args.append(str(path))
        return args

    @staticmethod
    def _parse_read_output(stdout: str, stderr: str, path: str) -> Result[Dict[str, Any]]:
        errors = _error_lines(stderr)
        if not stdout.strip():
            if errors:
                return Result.Err(
                    EXIFTOOL_ERROR,
                    f"ExifTool reported: '{_stderr_excerpt(' '.join(errors))}'",
                    stderr=_stderr_excerpt(stderr),
                )
            return Result.Err(EXIFTOOL_ERROR, "ExifTool returned empty output")
        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as exc:
            logger.error("ExifTool JSON parse error for %s: %s", path, exc)
            return Result.Err(EXIFTOOL_ERROR, f"Failed to parse ExifTool output: {exc}")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return Result.Err(EXIFTOOL_ERROR, "No metadata returned by ExifTool")
        record = data[0]
        embedded_error = record.get("Error")
        if embedded_error:
            return Result.Err(
                EXIFTOOL_ERROR,
                f"ExifTool reported: '{_stderr_excerpt(f'Error: {embedded_error}')}'",
                stderr=_stderr_excerpt(str(embedded_error)),
            )
        for warning in _warning_lines(stderr):
            logger.warning("ExifTool read warning for %s: %s", path, warning)
        return Result.Ok(record)

    async def read(self, path: str) -> Result[Dict[str, Any]]:
        """
        Read all metadata of a file.

        Args:
            path: File path

        Returns:
            Result with the ExifTool JSON record (tag name -> value)
        """
        if not path or "\x00" in str(path):
            return Result.Err(EXIFTOOL_ERROR, "Invalid file path")
        res = await self.execute(self._build_read_args(path), "read")
        if not res.ok:
            return res.cast_err()
        stdout, stderr = res.data or ("", "")
        return self._parse_read_output(stdout, stderr, path)

    # ── write ─────────────────────────────────────────────────────────────

    @staticmethod
    def _invalid_write_keys(metadata: dict) -> List[str]:
        invalid_keys: List[str] = []
        for key in (metadata or {}).keys():
            if not isinstance(key, str):
                invalid_keys.append(str(key))
                continue
            if not _is_safe_exiftool_tag(key.strip()):
                invalid_keys.append(key.strip())
        return invalid_keys

    @staticmethod
    def _flatten_values(metadata: dict) -> List[str]:
        values: List[str] = []
        for value in (metadata or {}).values():
            if isinstance(value, (list, tuple)):
                values.extend(str(v) for v in value if v is not None)
            elif value is not None:
                values.append(str(value))
        return values

    @staticmethod
    def _append_metadata_write_args(cmd: List[str], metadata: dict, escape: bool) -> None:
        def _text(value: Any) -> str:
            text = str(value)
            return _c_escape(text) if escape else text

        for key, value in (metadata or {}).items():
            if value is None:
                cmd.append(f"-{key}=")
                continue
            if isinstance(value, (list, tuple)):
                cmd.append(f"-{key}=")
                for item in value:
                    if item is None:
                        continue
                    text = str(item).strip()
                    if text:
                        cmd.append(f"-{key}+={_text(text)}")
                continue
            cmd.append(f"-{key}={_text(value)}")

    def _build_write_args(self, path: str, metadata: dict, options: List[str]) -> List[str]:
        args: List[str] = list(options)
        escape = _needs_c_escapes(self._flatten_values(metadata))
        if escape:
            args.append("-ec")
        self._append_metadata_write_args(args, metadata, escape)
        if os.name == "nt":
            args.extend(["-charset", "filename=utf8"])
        args.append(str(path))
        return args

    @staticmethod
    def _parse_write_output(stdout: str, stderr: str, path: str) -> Result[bool]:
        errors = _error_lines(stderr)
        failed = bool(errors) or "weren't updated due to errors" in stdout
        if failed:
            detail = " ".join(errors) or stdout
            logger.warning("ExifTool write error for %s: %s", path, detail)
            return Result.Err(
                EXIFTOOL_ERROR,
                f"ExifTool reported: '{_stderr_excerpt(detail)}'",
                stderr=_stderr_excerpt(detail),
            )
        for warning in _warning_lines(stderr):
            logger.warning("ExifTool write warning for %s: %s", path, warning)
        logger.debug("ExifTool write output for %s: %s", path, stdout)
        return Result.Ok(True)

    async def write(self, path: str, metadata: dict, options: Optional[List[str]] = None) -> Result[bool]:
        """
        Write tag values into a file.

        Args:
            path: File path
            metadata: Tag name -> value (lists replace the whole list tag)
            options: Extra ExifTool options such as ``-overwrite_original``

        Returns:
            Result with success boolean
        """
        if not path or "\x00" in str(path):
            return Result.Err(EXIFTOOL_ERROR, "Invalid file path")

        invalid_keys = self._invalid_write_keys(metadata)
        if invalid_keys:
            return Result.Err(EXIFTOOL_ERROR, "Invalid ExifTool tag format", invalid_tags=invalid_keys)

        opts = list(options or [])
        bad_opts = [o for o in opts if not _is_safe_exiftool_option(o)]
        if bad_opts:
            return Result.Err(EXIFTOOL_ERROR, "Invalid ExifTool option", invalid_options=bad_opts)

        res = await self.execute(self._build_write_args(path, metadata, opts), "write")
        if not res.ok:
            return res.cast_err()
        stdout, stderr = res.data or ("", "")
        return self._parse_write_output(stdout, stderr, path)

    # ── shutdown ──────────────────────────────────────────────────────────

    async def end(self, timeout: float = 5.0) -> Result[bool]:
        """
        Ask the stay_open process to exit, killing it if it does not.

        Safe to call more than once.
        """
        async with self._lock:
            self._closed = True
            proc = self._process
            if proc is None or proc.returncode is not None:
                self._process = None
                return Result.Ok(True)
            try:
                if proc.stdin is not None:
                    proc.stdin.write(b"-stay_open\nFalse\n")
                    await proc.stdin.drain()
                    proc.stdin.close()
                await asyncio.wait_for(proc.wait(), timeout=timeout)
            except (asyncio.TimeoutError, BrokenPipeError, ConnectionResetError) as exc:
                logger.warning("ExifTool did not exit cleanly (%s); killing", type(exc).__name__)
                await self._kill_process()
                return Result.Ok(True)
            self._process = None
            logger.debug("ExifTool process exited with status %s", proc.returncode)
            return Result.Ok(True)


class _StderrClosed(Exception):
    def __init__(self, partial: bytes):
        super().__init__("ExifTool stderr closed")
        self.partial = partial
