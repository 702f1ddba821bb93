# kiosk_agent/infrastructure/android/adb_bridge.py
import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from kiosk_agent.core.config import settings

logger = logging.getLogger(__name__)

TIMEOUT_RC = 124


class AdbUnavailableError(RuntimeError):
    pass


@dataclass(frozen=True)
class CmdResult:
    rc: int
    out: str
    err: str

    @property
    def ok(self) -> bool:
        return self.rc == 0


class AdbBridge:
    """Blocking `adb shell` runner.

    Calls block for up to the configured timeout, so callers route them
    through the UI executor rather than the event loop thread.
    """

    def __init__(
        self,
        adb_path: Optional[str] = None,
        serial: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        executable = adb_path or settings.ADB_PATH
        resolved = shutil.which(executable)
        if resolved is None:
            raise AdbUnavailableError(f"adb executable not found: {executable}")

        self.adb_path = resolved
        self.serial = serial if serial is not None else settings.ADB_SERIAL
        self.timeout = timeout or settings.ADB_TIMEOUT

    def _base_cmd(self) -> List[str]:
        cmd = [self.adb_path]
        if self.serial:
            cmd += ["-s", self.serial]
        return cmd

    def run(self, args: List[str], timeout: Optional[float] = None) -> CmdResult:
        cmd = self._base_cmd() + list(args)
        try:
            p = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("adb call timed out: %s", " ".join(args))
            return CmdResult(TIMEOUT_RC, "", "timeout")
        except OSError as exc:
            logger.error("adb call failed to start: %s", exc)
            return CmdResult(127, "", str(exc))

        result = CmdResult(p.returncode, p.stdout, p.stderr)
        if not result.ok:
            logger.debug("adb rc=%s args=%s err=%s", result.rc, args, result.err.strip())
        return result

    def shell(self, *args: str, timeout: Optional[float] = None) -> CmdResult:
        return self.run(["shell", *args], timeout=timeout)
