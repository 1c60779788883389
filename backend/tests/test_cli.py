"""
Quick Thoughts Client: Console Entry Point Tests
"""

from unittest.mock import AsyncMock, patch

import pytest

from quickthoughts.client.api import FolderRecord
from quickthoughts.client.cli import build_parser, main, run
from quickthoughts.config import ClientSettings


class TestParser:
    def test_record_options(self):
        args = build_parser().parse_args(["--api-url", "http://srv", "record", "--max-seconds", "30"])
        assert args.command == "record"
        assert args.api_url == "http://srv"
        assert args.max_seconds == 30

    def test_onboard_takes_folder_list(self):
        args = build_parser().parse_args(["onboard", "sam_1", "Work", "Ideas"])
        assert args.username == "sam_1"
        assert args.folders == ["Work", "Ideas"]

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 2
        assert "quickthoughts-capture" in capsys.readouterr().out


class TestRun:
    @pytest.mark.asyncio
    async def test_folders_command(self, capsys):
        args = build_parser().parse_args(["--token", "tok", "folders"])
        folders = [FolderRecord(id="1", name="Unsorted"), FolderRecord(id="2", name="Work")]

        with patch(
            "quickthoughts.client.cli.QuickThoughtsAPI.list_folders",
            new=AsyncMock(return_value=folders),
        ):
            assert await run(args, ClientSettings()) == 0

        assert capsys.readouterr().out.split() == ["Unsorted", "Work"]
