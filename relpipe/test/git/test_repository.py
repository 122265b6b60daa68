"""Tests for relpipe.git.repository."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from relpipe.core.result import Err, Ok
from relpipe.git.repository import Repository


def make_completed_process(
    stdout: str = "", stderr: str = "", returncode: int = 0
) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(
        args=["git"], returncode=returncode, stdout=stdout, stderr=stderr
    )


class TestDescribePreviousTagMocked:
    @patch("subprocess.run")
    def test_returns_tag(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [
            make_completed_process(stdout="a" * 40 + "\n"),  # rev-parse tag
            make_completed_process(stdout="b" * 40 + "\n"),  # rev-parse tag^
            make_completed_process(stdout="v1.0.0\n"),  # describe
        ]
        result = Repository(tmp_path).describe_previous_tag("v1.1.0")
        assert result == Ok("v1.0.0")

        describe_cmd = mock_run.call_args_list[2][0][0]
        assert describe_cmd[-4:] == ["describe", "--tags", "--abbrev=0", "v1.1.0^"]

    @patch("subprocess.run")
    def test_no_names_found_is_none(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [
            make_completed_process(stdout="a" * 40),
            make_completed_process(stdout="b" * 40),
            make_completed_process(
                returncode=128, stderr="fatal: No names found, cannot describe anything."
            ),
        ]
        assert Repository(tmp_path).describe_previous_tag("v0.1.0") == Ok(None)

    @patch("subprocess.run")
    def test_other_failure_is_error(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [
            make_completed_process(stdout="a" * 40),
            make_completed_process(stdout="b" * 40),
            make_completed_process(returncode=128, stderr="fatal: not a git repository"),
        ]
        result = Repository(tmp_path).describe_previous_tag("v1.0.0")
        assert isinstance(result, Err)
        assert result.error.command == "describe"
        assert "not a git repository" in result.error.message

    @patch("subprocess.run")
    def test_unknown_tag_is_error(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(returncode=1)
        result = Repository(tmp_path).describe_previous_tag("v9.9.9")
        assert isinstance(result, Err)
        assert result.error.command == "rev-parse"


class TestLogSubjectsMocked:
    @patch("subprocess.run")
    def test_splits_lines_and_drops_blanks(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(stdout="third\nsecond\n\nfirst")
        assert Repository(tmp_path).log_subjects("v1..v2") == Ok(["third", "second", "first"])

        cmd = mock_run.call_args[0][0]
        assert cmd[-3:] == ["log", "--pretty=format:%s", "v1..v2"]

    @patch("subprocess.run")
    def test_failure(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(returncode=128, stderr="bad range")
        result = Repository(tmp_path).log_subjects("nope")
        assert isinstance(result, Err)
        assert result.error.message == "bad range"


@pytest.mark.git
class TestRealRepository:
    def test_describe_previous_tag(self, history) -> None:
        history.commit("A")
        history.tag("v1.0.0")
        history.commit("C")
        history.tag("v1.1.0")

        repo = Repository(history.root)
        assert repo.describe_previous_tag("v1.1.0") == Ok("v1.0.0")

    def test_first_tag_has_no_previous(self, history) -> None:
        history.commit("one")
        history.commit("two")
        history.tag("v0.1.0")

        assert Repository(history.root).describe_previous_tag("v0.1.0") == Ok(None)

    def test_tag_on_root_commit(self, history) -> None:
        history.commit("root")
        history.tag("v0.0.1")

        repo = Repository(history.root)
        assert repo.has_parent("v0.0.1") is False
        assert repo.describe_previous_tag("v0.0.1") == Ok(None)

    def test_rev_parse(self, history) -> None:
        sha = history.commit("one")
        history.tag("v0.1.0")
        assert Repository(history.root).rev_parse("v0.1.0") == Ok(sha)
