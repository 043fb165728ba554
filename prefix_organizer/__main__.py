"""Entry point for Prefix Organizer.

Usage:
    python -m prefix_organizer [--config PATH] [run]     Watch the dump folder
    python -m prefix_organizer [--config PATH] once      Run a single organize pass
    python -m prefix_organizer service <command>         Manage the background service
                                                         (macOS launchd or Linux systemd)
"""

import sys
from pathlib import Path

USAGE = __doc__


def main(argv: list[str] | None = None) -> None:
    """Parse the command line and exit with the command's status."""
    args = list(sys.argv[1:] if argv is None else argv)

    config_path = None
    if "--config" in args:
        index = args.index("--config")
        if index + 1 >= len(args):
            print("--config needs a path", file=sys.stderr)
            sys.exit(2)
        config_path = Path(args[index + 1]).expanduser()
        del args[index:index + 2]

    cmd = args[0] if args else "run"

    if cmd in ("-h", "--help", "help"):
        print(USAGE)
        sys.exit(0)

    if cmd == "service":
        from prefix_organizer.service import main as service_main

        sys.exit(service_main(args[1] if len(args) > 1 else ""))

    if cmd not in ("run", "once") or len(args) > 1:
        print(USAGE, file=sys.stderr)
        sys.exit(2)

    from prefix_organizer.app import App

    app = App(config_path)
    sys.exit(app.run() if cmd == "run" else app.organize_once())


if __name__ == "__main__":
    main()
