"""
Background service support for Prefix Organizer.

Installs the organizer as a per-user service that starts at login and
restarts if it dies.

**macOS** — runs via a launchd LaunchAgent:
    prefix-organizer service install    (writes plist, bootstraps it)
    prefix-organizer service start      (launchctl bootstrap / load)
    prefix-organizer service stop       (launchctl bootout / unload)
    prefix-organizer service uninstall  (stops and deletes plist)

**Linux** — runs as a systemd user unit:
    prefix-organizer service install    (writes unit, enables, starts)
    prefix-organizer service start|stop|restart
    prefix-organizer service uninstall

``service status`` reports the state, PID and log files on both
platforms; ``service logs`` follows the logs until Ctrl+C.
"""

import logging
import os
import subprocess
import sys
from pathlib import Path

from prefix_organizer.config import get_config_path, get_log_path
from prefix_organizer.platform_utils import IS_LINUX, IS_MACOS, get_config_dir

logger = logging.getLogger(__name__)

# ---- macOS launchd constants -------------------------------------------

_LAUNCHD_LABEL = "com.prefix"
_PLIST_DIR = Path.home() / "Library" / "LaunchAgents"
_PLIST_PATH = _PLIST_DIR / f"{_LAUNCHD_LABEL}.plist"
_MACOS_LOG_DIR = Path.home() / "Library" / "Logs"

# ---- Linux systemd constants -------------------------------------------

_SYSTEMD_SERVICE_NAME = "prefix.service"
_SYSTEMD_USER_DIR = Path.home() / ".config" / "systemd" / "user"
_SYSTEMD_SERVICE_PATH = _SYSTEMD_USER_DIR / _SYSTEMD_SERVICE_NAME


def _program_arguments() -> list[str]:
    """Command line the service manager runs."""
    return [sys.executable, "-m", "prefix_organizer", "run"]


def _run(cmd: list[str]) -> bool:
    """Run *cmd* quietly and return whether it succeeded."""
    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError as exc:
        logger.debug("Could not run %s: %s", cmd[0], exc)
        return False
    return result.returncode == 0


def _output(cmd: list[str]) -> str:
    """Run *cmd* and return its standard output ("" if it failed)."""
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as exc:
        logger.debug("Could not run %s: %s", cmd[0], exc)
        return ""
    return result.stdout if result.returncode == 0 else ""


def _follow(cmd: list[str]) -> int:
    """Run *cmd* attached to the terminal until it exits or Ctrl+C."""
    try:
        return subprocess.run(cmd, check=False).returncode
    except KeyboardInterrupt:
        return 0
    except OSError as exc:
        print(f"Error: could not run {cmd[0]}: {exc}")
        return 1


def _format_size(size: float) -> str:
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def _report_log(label: str, path: Path, missing: str) -> None:
    try:
        size = path.stat().st_size
    except OSError:
        print(f"  {label}: {path} ({missing})")
    else:
        print(f"  {label}: {path} ({_format_size(size)})")


def _report_logs(output_log: Path, error_log: Path) -> None:
    print("Logs:")
    _report_log("Output", output_log, "not created yet")
    _report_log("Errors", error_log, "no errors")
    _report_log("App log", get_log_path(), "not created yet")


def _report_pid(pid: str) -> None:
    if pid:
        print(f"  PID: {pid}")


def _report_config() -> None:
    config_path = get_config_path()
    print(f"Config: {config_path}")
    if config_path.exists():
        print("  ✓ Config file exists")
    else:
        print("  ✗ Config file missing")


# ======================================================================
# macOS launchd helpers
# ======================================================================

def _launchd_domain() -> str:
    return f"gui/{os.getuid()}"


def _macos_log_paths() -> tuple[Path, Path]:
    return _MACOS_LOG_DIR / "prefix.log", _MACOS_LOG_DIR / "prefix.error.log"


def _macos_pid() -> str:
    # launchctl list prints "PID  Status  Label"; PID is "-" when not running.
    for line in _output(["launchctl", "list"]).splitlines():
        fields = line.split()
        if len(fields) == 3 and fields[2] == _LAUNCHD_LABEL and fields[0] != "-":
            return fields[0]
    return ""


def macos_plist_content() -> str:
    """Generate the launchd plist XML for the current Python environment."""
    args = "\n".join(
        f"        <string>{arg}</string>" for arg in _program_arguments()
    )
    output_log, error_log = _macos_log_paths()
    return f"""\
<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN"
  "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>Label</key>
    <string>{_LAUNCHD_LABEL}</string>
    <key>ProgramArguments</key>
    <array>
{args}
    </array>
    <key>RunAtLoad</key>
    <true/>
    <key>KeepAlive</key>
    <true/>
    <key>StandardOutPath</key>
    <string>{output_log}</string>
    <key>StandardErrorPath</key>
    <string>{error_log}</string>
    <key>WorkingDirectory</key>
    <string>{Path.home()}</string>
    <key>ProcessType</key>
    <string>Background</string>
    <key>Nice</key>
    <integer>1</integer>
</dict>
</plist>
"""


def _macos_is_loaded() -> bool:
    return _run(["launchctl", "print", f"{_launchd_domain()}/{_LAUNCHD_LABEL}"])


def _macos_bootstrap() -> bool:
    if _run(["launchctl", "bootstrap", _launchd_domain(), str(_PLIST_PATH)]):
        return True
    return _run(["launchctl", "load", "-w", str(_PLIST_PATH)])


def _macos_bootout() -> bool:
    if _run(["launchctl", "bootout", f"{_launchd_domain()}/{_LAUNCHD_LABEL}"]):
        return True
    return _run(["launchctl", "unload", str(_PLIST_PATH)])


def _macos_install() -> int:
    _PLIST_DIR.mkdir(parents=True, exist_ok=True)
    _MACOS_LOG_DIR.mkdir(parents=True, exist_ok=True)
    _PLIST_PATH.write_text(macos_plist_content(), encoding="utf-8")
    print(f"Installed launchd plist: {_PLIST_PATH}")
    if _macos_bootstrap():
        print("✓ LaunchAgent installed and started")
    else:
        print("⚠ LaunchAgent installed but failed to start automatically")
        print(f"  Try: launchctl load -w {_PLIST_PATH}")
    print(f"  Logs: {_macos_log_paths()[0]}")
    return 0


def _macos_uninstall() -> int:
    if not _PLIST_PATH.exists():
        print("LaunchAgent not found")
        return 0
    _macos_bootout()
    _PLIST_PATH.unlink()
    print("✓ LaunchAgent uninstalled")
    return 0


def _macos_start() -> int:
    if not _PLIST_PATH.exists():
        print("Error: LaunchAgent not installed. Run 'service install' first.")
        return 1
    if _macos_is_loaded():
        print("Service is already running")
        return 0
    if _macos_bootstrap():
        print("✓ Service started")
        return 0
    print("✗ Failed to start service")
    return 1


def _macos_stop() -> int:
    if not _PLIST_PATH.exists():
        print("Error: LaunchAgent not installed")
        return 1
    if not _macos_is_loaded():
        print("Service is not running")
        return 0
    if _macos_bootout():
        print("✓ Service stopped")
        return 0
    print("✗ Failed to stop service")
    return 1


def _macos_restart() -> int:
    if not _PLIST_PATH.exists():
        print("Error: LaunchAgent not installed")
        return 1
    _macos_bootout()
    if _macos_bootstrap():
        print("✓ Service restarted")
        return 0
    print("✗ Failed to restart service")
    return 1


def _macos_status() -> int:
    if not _PLIST_PATH.exists():
        print("Status: Not installed")
    elif _macos_is_loaded():
        print("Status: Running")
        _report_pid(_macos_pid())
    else:
        print("Status: Stopped")
    _report_config()
    _report_logs(*_macos_log_paths())
    return 0


def _macos_logs() -> int:
    paths = [p for p in (get_log_path(), _macos_log_paths()[0]) if p.exists()]
    if not paths:
        print("Log file not found. Service may not be running.")
        return 1
    return _follow(["tail", "-f", *map(str, paths)])


# ======================================================================
# Linux systemd helpers
# ======================================================================

def _linux_log_paths() -> tuple[Path, Path]:
    log_dir = get_config_dir()
    return log_dir / "prefix.out.log", log_dir / "prefix.error.log"


def _linux_pid() -> str:
    pid = _output([
        "systemctl", "--user", "show", "-p", "MainPID", "--value",
        _SYSTEMD_SERVICE_NAME,
    ]).strip()
    return "" if pid in ("", "0") else pid


def systemd_unit_content() -> str:
    """Generate the systemd user unit for the current Python environment."""
    output_log, error_log = _linux_log_paths()
    exec_start = " ".join(_program_arguments())
    return f"""\
[Unit]
Description=Prefix File Organizer
After=network.target

[Service]
Type=simple
ExecStart={exec_start}
Restart=always
RestartSec=10
WorkingDirectory={Path.home()}
StandardOutput=append:{output_log}
StandardError=append:{error_log}

[Install]
WantedBy=default.target
"""


def _systemctl(*args: str) -> bool:
    return _run(["systemctl", "--user", *args])


def _linux_install() -> int:
    if not _systemctl("--version"):
        print("Error: systemd user services not available")
        return 1
    _SYSTEMD_USER_DIR.mkdir(parents=True, exist_ok=True)
    get_config_dir().mkdir(parents=True, exist_ok=True)
    _SYSTEMD_SERVICE_PATH.write_text(systemd_unit_content(), encoding="utf-8")
    _systemctl("daemon-reload")
    if not _systemctl("enable", _SYSTEMD_SERVICE_NAME):
        print("✗ Failed to enable service")
        return 1
    print("✓ Systemd service installed and enabled")
    if _systemctl("start", _SYSTEMD_SERVICE_NAME):
        print("✓ Service started")
    else:
        print("⚠ Service installed but failed to start")
        print(f"  Check logs: journalctl --user -u {_SYSTEMD_SERVICE_NAME}")
    print("Note: To enable user services at boot, ensure logind is configured:")
    print("  sudo loginctl enable-linger $(whoami)")
    return 0


def _linux_uninstall() -> int:
    if not _SYSTEMD_SERVICE_PATH.exists():
        print("Service not found")
        return 0
    _systemctl("stop", _SYSTEMD_SERVICE_NAME)
    _systemctl("disable", _SYSTEMD_SERVICE_NAME)
    _SYSTEMD_SERVICE_PATH.unlink()
    _systemctl("daemon-reload")
    print("✓ Systemd service uninstalled")
    return 0


_PAST_TENSE = {"start": "started", "stop": "stopped", "restart": "restarted"}


def _linux_control(action: str) -> int:
    if not _SYSTEMD_SERVICE_PATH.exists():
        print("Error: Service not installed. Run 'service install' first.")
        return 1
    running = _systemctl("is-active", "--quiet", _SYSTEMD_SERVICE_NAME)
    if action == "start" and running:
        print("Service is already running")
        return 0
    if action == "stop" and not running:
        print("Service is not running")
        return 0
    if _systemctl(action, _SYSTEMD_SERVICE_NAME):
        print(f"✓ Service {_PAST_TENSE[action]}")
        return 0
    print(f"✗ Failed to {action} service")
    return 1


def _linux_status() -> int:
    if not _SYSTEMD_SERVICE_PATH.exists():
        print("Status: Not installed")
    elif _systemctl("is-active", "--quiet", _SYSTEMD_SERVICE_NAME):
        print("Status: Running")
        _report_pid(_linux_pid())
    else:
        print("Status: Stopped")
    _report_config()
    _report_logs(*_linux_log_paths())
    return 0


def _linux_logs() -> int:
    if not _SYSTEMD_SERVICE_PATH.exists():
        print("Service not installed. Run: prefix-organizer service install")
        return 1
    return _follow(["journalctl", "--user", "-u", _SYSTEMD_SERVICE_NAME, "-f"])


# ======================================================================
# CLI entry
# ======================================================================

COMMANDS = ("install", "uninstall", "start", "stop", "restart", "status", "logs")


def main(cmd: str) -> int:
    """Dispatch a ``service`` sub-command.  Returns an exit code."""
    if cmd not in COMMANDS:
        _show_help()
        return 2

    if IS_MACOS:
        actions = {
            "install": _macos_install,
            "uninstall": _macos_uninstall,
            "start": _macos_start,
            "stop": _macos_stop,
            "restart": _macos_restart,
            "status": _macos_status,
            "logs": _macos_logs,
        }
        return actions[cmd]()

    if IS_LINUX:
        if cmd == "install":
            return _linux_install()
        if cmd == "uninstall":
            return _linux_uninstall()
        if cmd == "status":
            return _linux_status()
        if cmd == "logs":
            return _linux_logs()
        return _linux_control(cmd)

    print("Error: Unsupported operating system")
    return 1


def _show_help() -> None:
    platform = "macOS" if IS_MACOS else ("Linux" if IS_LINUX else "unsupported")
    print(f"Prefix Organizer — Background Service  ({platform})")
    print()
    print("Usage:")
    print("  prefix-organizer service install     Install and start the service")
    print("  prefix-organizer service uninstall   Stop and remove the service")
    print("  prefix-organizer service start       Start the service")
    print("  prefix-organizer service stop        Stop the service")
    print("  prefix-organizer service restart     Restart the service")
    print("  prefix-organizer service status      Show service status")
    print("  prefix-organizer service logs        Follow the service logs")
