"""Tests for VCS backends and repository detection."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from srccrawl.models import Revision
from srccrawl.vcs import (
    BZR_DATE,
    ISO8601_DATE,
    Bzr,
    Git,
    Hg,
    RepositoryDetector,
    parse_bzr_revision,
    parse_revision,
)


def test_parse_revision() -> None:
    text = "1234\n2014-05-26 15:30:45 -0700\nKamil Kisiel <kamil@kamilkisiel.net>"

    revision = parse_revision(text)

    assert revision == Revision(
        id="1234",
        author="Kamil Kisiel <kamil@kamilkisiel.net>",
        date=datetime.strptime("2014-05-26 15:30:45 -0700", ISO8601_DATE),
    )


def test_parse_revision_rejects_partial_output() -> None:
    assert parse_revision("") == Revision()
    assert parse_revision("1234\n2014-05-26 15:30:45 -0700") == Revision()


def test_parse_revision_tolerates_bad_date() -> None:
    revision = parse_revision("1234\nyesterday\nsomeone")
    assert revision.id == "1234"
    assert revision.date is None


def test_parse_bzr_revision() -> None:
    text = """------------------------------------------------------------
revno: 4
committer: Gustavo Niemeyer <gustavo@niemeyer.net>
branch nick: twik
timestamp: Tue 2013-07-16 19:19:43 -0300
message:
\tAdd a package doc.
"""

    revision = parse_bzr_revision(text)

    assert revision == Revision(
        id="4",
        author="Gustavo Niemeyer <gustavo@niemeyer.net>",
        date=datetime.strptime("Tue 2013-07-16 19:19:43 -0300", BZR_DATE),
    )


def test_git_backend_issues_expected_commands(tmp_path: Path) -> None:
    calls: list[tuple[list[str], Path]] = []

    def runner(args, cwd):  # type: ignore[no-untyped-def]
        calls.append((list(args), Path(cwd)))
        if args[1] == "log":
            return "abc1234\n2020-01-02 03:04:05 +0000\nDev <dev@example.com>"
        if args[1] == "rev-parse":
            return str(tmp_path)
        return "https://example.com/repo.git"

    git = Git(runner)

    assert git.revision(tmp_path).id == "abc1234"
    assert git.root(tmp_path) == str(tmp_path)
    assert git.url(tmp_path) == "https://example.com/repo.git"
    assert calls[0][0] == ["git", "log", "--pretty=format:%h%n%ai%n%an <%ae>", "-1"]
    assert calls[1][0] == ["git", "rev-parse", "--show-toplevel"]
    assert calls[2][0] == ["git", "config", "--get", "remote.origin.url"]
    assert all(cwd == tmp_path for _, cwd in calls)


def test_backend_skips_missing_directory(tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def runner(args, cwd):  # type: ignore[no-untyped-def]
        calls.append(list(args))
        return "should not be used"

    assert Hg(runner).revision(tmp_path / "missing") == Revision()
    assert not calls


def _failing_runner(args, cwd):  # type: ignore[no-untyped-def]
    return ""


def _hg_runner(args, cwd):  # type: ignore[no-untyped-def]
    if args[1] == "log":
        return "deadbeef\n2019-03-04 05:06:07 +0100\nHg User <hg@example.com>"
    if args[1] == "root":
        return str(Path(cwd).parent)
    if args[1:] == ["paths", "default"]:
        return "https://hg.example.com/repo"
    return ""


def test_detector_falls_back_to_next_backend(tmp_path: Path) -> None:
    src = tmp_path / "src"
    package_dir = src / "example.org" / "repo" / "pkg"
    package_dir.mkdir(parents=True)
    hg = Hg(_hg_runner)
    detector = RepositoryDetector(src, [Git(_failing_runner), hg, Bzr(_failing_runner)])

    info = detector.detect("example.org/repo/pkg")

    expected = hg.revision(package_dir)
    assert info.vcs_type == "hg"
    assert info.revision == expected
    assert info.root == "example.org/repo"
    assert info.url == "https://hg.example.com/repo"


def test_detector_returns_empty_info_without_vcs(tmp_path: Path) -> None:
    src = tmp_path / "src"
    (src / "plain").mkdir(parents=True)
    detector = RepositoryDetector(src, [Git(_failing_runner), Hg(_failing_runner)])

    info = detector.detect("plain")

    assert info.vcs_type == ""
    assert info.revision == Revision()
    assert info.root == ""
    assert info.url == ""


def test_detector_preselects_backends_by_prefix(tmp_path: Path) -> None:
    git, hg, bzr = Git(_failing_runner), Hg(_failing_runner), Bzr(_failing_runner)
    detector = RepositoryDetector(tmp_path, [git, hg, bzr])

    assert detector.candidates("github.com/user/repo") == [git]
    assert detector.candidates("launchpad.net/twik") == [bzr]
    assert detector.candidates("bitbucket.org/user/repo") == [git, hg]
    assert detector.candidates("example.org/x") == [git, hg, bzr]
