"""CLI entry point: dispatches to subcommands."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m cli <command>")
        print("Commands: build, view")
        sys.exit(1)

    cmd = sys.argv[1]
    # Remove the subcommand from argv so argparse in each module works
    sys.argv = [sys.argv[0]] + sys.argv[2:]

    if cmd == "build":
        from cli.build_world import main
        main()
    elif cmd == "view":
        from cli.view import main
        main()
    else:
        print(f"Unknown command: {cmd}")
        sys.exit(1)
