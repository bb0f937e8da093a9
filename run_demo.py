# -*- coding: utf-8 -*-
import argparse
import sys
from pathlib import Path

from jobs import ControllerState, JobStatus
from server import build_controller


def _print_state(state: ControllerState) -> None:
    line = f"[{state.status.value:<12}] {state.human_message}"
    if state.last_error:
        line += f" | error: {state.last_error}"
    if state.download_url:
        line += f" | download: {state.download_url}"
    print(line, flush=True)


def main() -> int:
    parser = argparse.ArgumentParser(description="Upload a file and follow its job until it finishes")
    parser.add_argument("path", help="File to upload")
    parser.add_argument("--timeout", type=float, default=600.0, help="Seconds to wait for a terminal status")
    args = parser.parse_args()

    path = Path(args.path)
    if not path.is_file():
        print(f"File not found: {path}", file=sys.stderr)
        return 2

    controller = build_controller()
    controller.subscribe(_print_state)
    try:
        controller.select_file(path.name)
        controller.submit_file(path)
        if not controller.wait(timeout=args.timeout):
            print("Timed out waiting for the job to finish", file=sys.stderr)
            return 1
    finally:
        controller.close()
        controller.api.close()

    state = controller.state()
    return 1 if state.last_error or state.status is JobStatus.FAILED else 0


if __name__ == "__main__":
    sys.exit(main())
