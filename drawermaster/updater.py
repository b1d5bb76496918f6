"""
updater.py – application auto-update against a JSON release feed.

Feed document::

    {"version": "1.4.0", "url": "https://.../DrawerMaster-1.4.0.exe",
     "sha256": "...", "release_date": "2025-06-01", "release_notes": "..."}

Independent of the drawer core, shares no state with it.
Status changes are pushed to listeners as (event, data) pairs.
"""

from __future__ import annotations
import hashlib
import logging
import os
import signal
import subprocess
import threading
import time
from importlib import metadata
from pathlib import Path
from typing import Callable, List, Optional
from urllib.parse import urlparse

import requests
from packaging.version import InvalidVersion, Version
from pydantic import ValidationError

from .config import Settings, get_settings
from .enums import UpdateEvent
from .errors import UpdateError
from .models import ReleaseInfo
from .state import UpdateStatus

log = logging.getLogger("AutoUpdate")

DIST_NAME = "drawermaster"
DEFAULT_APP_VERSION = "0.0.0"
CHUNK_SIZE = 64 * 1024

Listener = Callable[[str, dict], None]


def get_app_version(default: str = DEFAULT_APP_VERSION) -> str:
    """Installed distribution version, with a safe fallback."""
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        log.warning("Distribution %s is not installed, reporting version %s", DIST_NAME, default)
        return default


class AutoUpdateService:
    request_timeout = 30.0

    def __init__(self, settings: Settings | None = None,
                 session: requests.Session | None = None,
                 current_version: str | None = None):
        self.settings = settings or get_settings()
        self._session = session or requests.Session()
        self._current_version = current_version or get_app_version()
        self._lock = threading.Lock()
        self._checking = False
        self._downloading = False
        self._available: Optional[ReleaseInfo] = None
        self._downloaded: Optional[Path] = None
        self._listeners: List[Listener] = []
        self._periodic_stop: Optional[threading.Event] = None

        log.info("Auto-updater initialized")
        log.info("App version: %s", self._current_version)

    # ───── events ──────────────────────────────────────────────
    def add_listener(self, fn: Listener) -> None:
        self._listeners.append(fn)

    def _emit(self, event: UpdateEvent, **data) -> None:
        for fn in list(self._listeners):
            try:
                fn(event.value, data)
            except Exception:
                log.exception("Update listener failed on %s", event.value)

    # ───── checking ────────────────────────────────────────────
    def check_for_updates(self) -> Optional[ReleaseInfo]:
        """
        Ask the feed for the latest release.
        Returns the release when it is newer than the running version, else None.
        A check while another check or a download runs is skipped.
        """
        return self._check(notify_errors=True)

    def check_for_updates_quietly(self) -> Optional[ReleaseInfo]:
        """Background variant: errors are logged, never raised or broadcast."""
        try:
            return self._check(notify_errors=False)
        except UpdateError as e:
            log.error("Error in automatic update check: %s", e)
            return None

    def _check(self, notify_errors: bool) -> Optional[ReleaseInfo]:
        with self._lock:
            if self._checking or self._downloading:
                log.info("Update check already in progress")
                return None
            self._checking = True

        log.info("Checking for updates at %s", self.settings.update_feed_url)
        self._emit(UpdateEvent.CHECKING, message="Checking for updates...")
        try:
            release = self._fetch_release()
            newer = self._is_newer(release)
        except UpdateError as e:
            log.error("Update check failed: %s", e)
            if notify_errors:
                self._emit(UpdateEvent.ERROR, message="Error checking for updates", error=e.message)
            raise
        finally:
            self._checking = False

        if newer:
            log.info("Update available: %s", release.version)
            self._available = release
            self._emit(
                UpdateEvent.AVAILABLE,
                message="A new version is available!",
                version=release.version,
                release_date=release.release_date,
                release_notes=release.release_notes,
                current_version=self._current_version,
            )
            return release

        log.info("Update not available, latest is %s", release.version)
        self._available = None
        self._emit(
            UpdateEvent.NOT_AVAILABLE,
            message="You are using the latest version.",
            version=release.version,
            current_version=self._current_version,
        )
        return None

    def _fetch_release(self) -> ReleaseInfo:
        try:
            resp = self._session.get(self.settings.update_feed_url, timeout=self.request_timeout)
            resp.raise_for_status()
            return ReleaseInfo.model_validate(resp.json())
        except requests.RequestException as e:
            raise UpdateError(f"Failed to check for updates: {e}") from e
        except (ValueError, ValidationError) as e:
            raise UpdateError(f"Invalid release feed: {e}") from e

    def _is_newer(self, release: ReleaseInfo) -> bool:
        try:
            latest = Version(release.version)
            current = Version(self._current_version)
        except InvalidVersion as e:
            raise UpdateError(f"Invalid version in release feed: {e}") from e
        if latest.is_prerelease and not self.settings.allow_prerelease:
            return False
        return latest > current

    # ───── downloading ─────────────────────────────────────────
    def download_update(self) -> Optional[Path]:
        with self._lock:
            if self._downloading:
                log.info("Download already in progress")
                return None
            release = self._available
            if release is None:
                raise UpdateError("No update available to download")
            self._downloading = True

        log.info("Starting update download: %s", release.url)
        self._emit(UpdateEvent.DOWNLOAD_STARTED, message="Downloading update...",
                   version=release.version)
        try:
            path = self._fetch_installer(release)
        except UpdateError as e:
            log.error("Error downloading update: %s", e)
            self._emit(UpdateEvent.ERROR, message="Failed to download update", error=e.message)
            raise
        finally:
            self._downloading = False

        self._downloaded = path
        log.info("Update downloaded to %s", path)
        self._emit(
            UpdateEvent.DOWNLOADED,
            message="Update downloaded. Restart to install.",
            version=release.version,
            release_notes=release.release_notes,
            path=str(path),
        )
        return path

    def _fetch_installer(self, release: ReleaseInfo) -> Path:
        target_dir = Path(self.settings.download_dir)
        name = Path(urlparse(release.url).path).name or f"drawermaster-{release.version}"
        target = target_dir / name
        part = target.with_name(target.name + ".part")
        digest = hashlib.sha256()
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            resp = self._session.get(release.url, stream=True, timeout=self.request_timeout)
            try:
                resp.raise_for_status()
                total = int(resp.headers.get("Content-Length") or 0)
                transferred = 0
                started = time.monotonic()
                with open(part, "wb") as fh:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if not chunk:
                            continue
                        fh.write(chunk)
                        digest.update(chunk)
                        transferred += len(chunk)
                        elapsed = max(time.monotonic() - started, 1e-6)
                        self._emit(
                            UpdateEvent.PROGRESS,
                            percent=round(transferred * 100 / total, 1) if total else None,
                            transferred=transferred,
                            total=total or None,
                            bytes_per_second=int(transferred / elapsed),
                        )
            finally:
                resp.close()
        except (requests.RequestException, OSError) as e:
            part.unlink(missing_ok=True)
            raise UpdateError(f"Failed to download update: {e}") from e

        if release.sha256 and digest.hexdigest().lower() != release.sha256.lower():
            part.unlink(missing_ok=True)
            raise UpdateError("Checksum mismatch for downloaded update")
        part.replace(target)
        return target

    # ───── installing ──────────────────────────────────────────
    def install_and_restart(self) -> None:
        """Launch the downloaded installer detached, then terminate this process."""
        path = self._downloaded
        if path is None or not path.exists():
            raise UpdateError("No downloaded update to install")

        log.info("Quitting and installing update from %s", path)
        try:
            if os.name == "posix":
                path.chmod(path.stat().st_mode | 0o111)
            self._launch([str(path)])
        except OSError as e:
            raise UpdateError(f"Failed to launch installer: {e}") from e
        self._request_exit()

    def _launch(self, args: list[str]) -> None:
        if os.name == "posix":
            subprocess.Popen(args, start_new_session=True)
        else:
            subprocess.Popen(args, creationflags=getattr(subprocess, "DETACHED_PROCESS", 0))

    def _request_exit(self) -> None:
        # SIGTERM lets uvicorn run the lifespan shutdown, which closes the drawer port
        os.kill(os.getpid(), signal.SIGTERM)

    # ───── periodic checks ─────────────────────────────────────
    def start_periodic_checks(self) -> None:
        if self._periodic_stop is not None or self.settings.update_check_interval <= 0:
            return
        stop = threading.Event()
        self._periodic_stop = stop
        threading.Thread(target=self._periodic_loop, args=(stop,),
                         name="auto-update-checker", daemon=True).start()
        log.info("Periodic update checks every %.0f s", self.settings.update_check_interval)

    def stop_periodic_checks(self) -> None:
        if self._periodic_stop is not None:
            self._periodic_stop.set()
            self._periodic_stop = None

    def _periodic_loop(self, stop: threading.Event) -> None:
        delay = self.settings.update_initial_delay
        while not stop.wait(delay):
            self.check_for_updates_quietly()
            delay = self.settings.update_check_interval

    # ───── status ──────────────────────────────────────────────
    def get_current_version(self) -> str:
        return self._current_version

    def is_update_available(self) -> bool:
        return self._available is not None

    def get_status(self) -> UpdateStatus:
        return UpdateStatus(
            checking=self._checking,
            downloading=self._downloading,
            current_version=self._current_version,
        )
