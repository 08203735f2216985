"""Utilities for managing the Chromium runtime used for report captures."""
from __future__ import annotations

import glob
import logging
import os
import shutil
import subprocess
import sys
from typing import Iterable, Protocol

import psutil
from playwright.sync_api import sync_playwright


# Known fragments that indicate the Playwright browser executable is missing.
_MISSING_BROWSER_MARKERS: tuple[str, ...] = (
    "executable doesn't exist at",
    "playwright install",
    "download new browsers",
)


class LoggerLike(Protocol):
    def info(self, msg: str, *args, **kwargs) -> None: ...
    def warning(self, msg: str, *args, **kwargs) -> None: ...
    def error(self, msg: str, *args, **kwargs) -> None: ...
    def debug(self, msg: str, *args, **kwargs) -> None: ...


def is_missing_browser_error(exc: BaseException | None) -> bool:
    """Return ``True`` when *exc* suggests the Chromium binary is missing."""
    if exc is None:
        return False
    lowered = (str(exc) or "").lower()
    return any(marker in lowered for marker in _MISSING_BROWSER_MARKERS)


def _run_install_command(command: Iterable[str], logger: LoggerLike) -> bool:
    command = list(command)
    try:
        completed = subprocess.run(command, check=True, capture_output=True, text=True)
    except FileNotFoundError:
        logger.debug("Playwright CLI not found when running %s", " ".join(command))
        return False
    except subprocess.CalledProcessError as err:
        stderr = (err.stderr or err.stdout or str(err)).strip()
        logger.error("Playwright install command failed (%s): %s", " ".join(command), stderr)
        return False

    logger.info("Successfully executed '%s'", " ".join(command))
    if completed.stdout:
        logger.debug(completed.stdout.strip())
    return True


def ensure_chromium_installed(logger: LoggerLike | None = None) -> bool:
    """Install the Chromium build Playwright expects; ``True`` on success."""
    logger = logger or logging.getLogger(__name__)
    commands = [
        (sys.executable, "-m", "playwright", "install", "chromium"),
        ("playwright", "install", "chromium"),
    ]
    for command in commands:
        if _run_install_command(command, logger):
            return True
    logger.error("Unable to install Playwright chromium automatically")
    return False


def cleanup_browser_processes(logger: LoggerLike) -> None:
    """Terminate Chromium processes this process spawned and did not reap."""
    for proc in psutil.Process().children(recursive=True):
        try:
            name = (proc.name() or "").lower()
            if "chrom" in name or "headless_shell" in name:
                logger.info("Terminating browser process: %s (PID: %s)", name, proc.pid)
                proc.terminate()
                proc.wait(timeout=3)
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.TimeoutExpired):
            pass

    for pattern in ("/tmp/.playwright", "/tmp/playwright-*"):
        for path in glob.glob(pattern):
            try:
                if os.path.isdir(path):
                    shutil.rmtree(path, ignore_errors=True)
                elif os.path.isfile(path):
                    os.unlink(path)
            except OSError as e:
                logger.warning(f"Failed to clean temp files {path}: {e}")


def verify_playwright_installation(logger: LoggerLike) -> bool:
    """Check that the Chromium executable Playwright resolves actually exists."""
    try:
        with sync_playwright() as p:
            browser_path = p.chromium.executable_path
            if os.path.exists(browser_path):
                logger.info(f"Playwright browser executable found at: {browser_path}")
                return True
            logger.error(f"Playwright browser executable not found at: {browser_path}")
            return False
    except Exception as e:
        logger.error(f"Playwright browser verification failed: {e}")
        return False


def available_memory_mb() -> float:
    return psutil.virtual_memory().available / 1024 / 1024


__all__ = [
    "available_memory_mb",
    "cleanup_browser_processes",
    "ensure_chromium_installed",
    "is_missing_browser_error",
    "verify_playwright_installation",
]
