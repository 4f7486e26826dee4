"""Foreground window probes for the supported desktop platforms."""

from __future__ import annotations

import logging
import re
import subprocess
import sys
from typing import Optional, Protocol

import psutil

from .models import ActiveWindow

logger = logging.getLogger(__name__)


class ForegroundProbe(Protocol):
    def get_active_window(self) -> Optional[ActiveWindow]:
        """Return the focused window, or ``None`` when it cannot be read."""
        ...


def _describe_process(pid: int) -> tuple[Optional[str], str]:
    """Return the display name and executable path for ``pid``."""
    if not pid:
        return None, ""
    try:
        process = psutil.Process(pid)
        name = process.name()
        try:
            exe = process.exe()
        except psutil.AccessDenied:
            exe = ""
    except (psutil.Error, ProcessLookupError):
        return None, ""
    return name, exe or name


class WindowsActiveWindowProbe:
    """Retrieves the foreground window title and owning executable."""

    def __init__(self) -> None:
        import ctypes
        from ctypes import wintypes

        self._ctypes = ctypes
        self._wintypes = wintypes
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]

    def get_active_window(self) -> Optional[ActiveWindow]:
        ctypes, wintypes = self._ctypes, self._wintypes
        hwnd = self._user32.GetForegroundWindow()
        if not hwnd:
            return None

        length = self._user32.GetWindowTextLengthW(hwnd)
        buffer = ctypes.create_unicode_buffer(length + 1)
        self._user32.GetWindowTextW(hwnd, buffer, length + 1)
        window_title = buffer.value.strip()

        pid = wintypes.DWORD()
        self._user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        process_name, exe = _describe_process(pid.value)
        if process_name is None:
            return None
        return ActiveWindow(app=_display_name(process_name), title=window_title, path=exe)


class X11ActiveWindowProbe:
    """Reads the focused window through ``xprop`` on X11 desktops."""

    _WINDOW_ID = re.compile(r"0x[0-9a-fA-F]+")
    _WM_CLASS = re.compile(r'"([^"]*)",\s*"([^"]*)"')
    _QUOTED = re.compile(r'=\s*"(.*)"\s*$')
    _PID = re.compile(r"=\s*(\d+)")

    def __init__(self, timeout: float = 1.0) -> None:
        self._timeout = timeout

    def get_active_window(self) -> Optional[ActiveWindow]:
        root = self._xprop("-root", "_NET_ACTIVE_WINDOW")
        if root is None:
            return None
        match = self._WINDOW_ID.search(root)
        if not match or int(match.group(0), 16) == 0:
            return None

        props = self._xprop("-id", match.group(0), "WM_CLASS", "_NET_WM_NAME", "_NET_WM_PID")
        if props is None:
            return None

        wm_class = ""
        title = ""
        pid = 0
        for line in props.splitlines():
            if line.startswith("WM_CLASS"):
                class_match = self._WM_CLASS.search(line)
                if class_match:
                    wm_class = class_match.group(2)
            elif line.startswith("_NET_WM_NAME"):
                name_match = self._QUOTED.search(line)
                if name_match:
                    title = name_match.group(1)
            elif line.startswith("_NET_WM_PID"):
                pid_match = self._PID.search(line)
                if pid_match:
                    pid = int(pid_match.group(1))

        process_name, exe = _describe_process(pid)
        app = wm_class or process_name or ""
        return ActiveWindow(app=app, title=title.strip(), path=exe or app)

    def _xprop(self, *args: str) -> Optional[str]:
        try:
            result = subprocess.run(
                ["xprop", *args],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return None
        if result.returncode != 0:
            return None
        return result.stdout


class UnsupportedPlatformProbe:
    """Placeholder for platforms without a probe; never reports a window."""

    def get_active_window(self) -> Optional[ActiveWindow]:
        return None


def _display_name(process_name: str) -> str:
    if process_name.lower().endswith(".exe"):
        return process_name[: -len(".exe")]
    return process_name


def create_default_probe() -> ForegroundProbe:
    """Pick the probe matching the running platform."""
    if sys.platform.startswith("win"):
        return WindowsActiveWindowProbe()
    if sys.platform.startswith("linux"):
        return X11ActiveWindowProbe()
    logger.warning("No foreground probe for platform %s; nothing will be tracked.", sys.platform)
    return UnsupportedPlatformProbe()
