"""Command line capture client (`quickthoughts-capture`)."""

import argparse
import asyncio
import logging
import sys
import threading
from typing import List, Optional

from quickthoughts.client.api import QuickThoughtsAPI
from quickthoughts.client.capture import CaptureController
from quickthoughts.client.store import Memo, NoteStore, SyncState
from quickthoughts.config import ClientSettings
from quickthoughts.exceptions import QuickThoughtsError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quickthoughts-capture")
    parser.add_argument("--api-url", help="Server base URL (QUICKTHOUGHTS_API_BASE_URL).")
    parser.add_argument("--token", help="Access token (QUICKTHOUGHTS_ACCESS_TOKEN).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="command")

    record_cmd = sub.add_parser("record", help="Record from the microphone.")
    record_cmd.add_argument(
        "--max-seconds",
        type=int,
        help="Recording ceiling in seconds. Press Enter to stop earlier.",
    )

    upload_cmd = sub.add_parser("upload", help="Transcribe an existing audio file.")
    upload_cmd.add_argument("path", help="Audio file (wav, webm, mp3, ...).")

    sub.add_parser("list", help="List memos, newest first.")
    sub.add_parser("folders", help="List folders.")

    delete_cmd = sub.add_parser("delete", help="Delete a memo.")
    delete_cmd.add_argument("memo_id")

    onboard_cmd = sub.add_parser("onboard", help="Pick a username and folders.")
    onboard_cmd.add_argument("username")
    onboard_cmd.add_argument("folders", nargs="+")

    return parser


def print_memos(memos: List[Memo]) -> None:
    if not memos:
        print("No memos.")
        return
    for memo in memos:
        marker = " (not saved)" if memo.sync == SyncState.FAILED else ""
        print(f"{memo.date:>6}  [{memo.folder}] {memo.title}{marker}")
        print(f"        {memo.transcription or ''}")
        print(f"        id={memo.id}")


async def _wait_for_stop(controller: CaptureController) -> None:
    """Returns on Enter or when the recorder's ceiling has fired."""
    loop = asyncio.get_running_loop()
    pressed = asyncio.Event()

    def read_enter() -> None:
        sys.stdin.readline()
        loop.call_soon_threadsafe(pressed.set)

    threading.Thread(target=read_enter, daemon=True).start()
    while controller.recorder.is_recording and not pressed.is_set():
        await asyncio.sleep(0.1)


async def run(args: argparse.Namespace, cfg: ClientSettings) -> int:
    async with QuickThoughtsAPI(
        base_url=args.api_url,
        access_token=args.token,
        client_settings=cfg,
    ) as api:
        store = NoteStore(api, fallback_folder=cfg.fallback_folder)

        if args.command == "folders":
            for folder in await api.list_folders():
                print(folder.name)
            return 0

        if args.command == "onboard":
            result = await api.complete_onboarding(args.username, args.folders)
            print(f"Welcome, {result.username}. Folders: {', '.join(f.name for f in result.folders)}")
            return 0

        if args.command == "delete":
            await api.delete_memo(args.memo_id)
            print(f"Deleted {args.memo_id}")
            return 0

        await store.refresh()
        if args.command == "list":
            print_memos(store.memos)
            return 0

        controller = CaptureController(api, store, client_settings=cfg)
        if args.command == "upload":
            memos = await controller.submit_file(args.path)
        else:
            if args.max_seconds:
                controller.recorder.max_duration = args.max_seconds
            await controller.start_capture()
            print(f"Recording... press Enter to stop (max {controller.recorder.max_duration}s)")
            await _wait_for_stop(controller)
            controller.stop_capture()
            print("Transcribing...")
            memos = await controller.wait_idle()

        await store.drain()
        if controller.last_error is not None:
            print(f"Error: {controller.last_error.message}", file=sys.stderr)
            return 1
        print_memos(memos)
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    cfg = ClientSettings()
    try:
        return asyncio.run(run(args, cfg))
    except QuickThoughtsError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
