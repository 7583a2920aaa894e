"""End-to-end tests of the tagdb command line through click's CliRunner."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from tagdb.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def store_dir(tmp_path, runner):
    root = tmp_path / "db"
    result = runner.invoke(cli, ["--store", str(root), "init"])
    assert result.exit_code == 0, result.output
    return str(root)


@pytest.fixture
def songs(tmp_path):
    music = tmp_path / "music"
    music.mkdir()
    paths = []
    for name in ("a.mp3", "b.mp3", "c.ogg"):
        p = music / name
        p.write_text(name)
        paths.append(str(p.resolve()))
    return paths


@pytest.fixture
def tagdb(runner, store_dir):
    """Invoke ``tagdb --store <tmp> ARGS...``."""
    def _invoke(*args):
        return runner.invoke(cli, ["--store", store_dir, *args])
    return _invoke


class TestInit:
    def test_creates_layout(self, runner, tmp_path):
        root = tmp_path / "db"
        result = runner.invoke(cli, ["--store", str(root), "init", "music"])
        assert result.exit_code == 0
        assert "Store successfully created" in result.output
        assert (root / "tags").is_dir()
        assert (root / "files").is_dir()
        assert 'name = "music"' in (root / "tagdb.toml").read_text()

    def test_second_init_is_noop(self, tagdb):
        result = tagdb("init")
        assert result.exit_code == 0
        assert "nothing to do" in result.output

    def test_uninitialized_store_warns(self, runner, tmp_path):
        result = runner.invoke(cli, ["--store", str(tmp_path / "none"), "list"])
        assert "Try 'tagdb init'" in result.output


class TestCreateAndList:
    def test_create_then_list(self, tagdb):
        result = tagdb("create", "mp3", "music")
        assert result.exit_code == 0
        assert "2 tag(s) successfully created, 0 tag(s) ignored." in result.output
        result = tagdb("list")
        assert result.output.splitlines() == ["mp3", "music"]

    def test_empty_database(self, tagdb):
        assert "No tag in database." in tagdb("list").output
        assert "No file has been tagged yet." in tagdb("files").output

    def test_quiet_suppresses_status_lines(self, tagdb):
        result = tagdb("--quiet", "create", "mp3")
        assert result.exit_code == 0
        assert result.output == ""

    def test_create_in_file_mode_fails(self, tagdb):
        result = tagdb("--files", "create", "x")
        assert result.exit_code == 1
        assert "only on tag elements" in result.output

    def test_empty_argument(self, tagdb):
        result = tagdb("create", "")
        assert result.exit_code == 2
        assert "Empty argument" in result.output


class TestTagAndQuery:
    def test_tag_command(self, tagdb, songs):
        result = tagdb("tag", "+mp3", "+music", songs[0])
        assert result.exit_code == 0, result.output
        assert "2 tag(s) added to 1 file(s)." in result.output
        assert tagdb("query", songs[0]).output.splitlines() == ["mp3", "music"]

    def test_shorthand(self, tagdb, songs):
        result = tagdb("+mp3", songs[0], songs[1])
        assert result.exit_code == 0, result.output
        result = tagdb("-mp3", songs[1])
        assert result.exit_code == 0, result.output
        assert tagdb("--files", "query", "mp3").output.splitlines() == [songs[0]]

    def test_boolean_query(self, tagdb, songs):
        tagdb("+mp3", songs[0], songs[1])
        tagdb("+music", songs[1])
        result = tagdb("--files", "query", "mp3 & !music")
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [songs[0]]

    def test_query_without_matches(self, tagdb, songs):
        tagdb("+mp3", songs[0])
        tagdb("create", "jazz")
        result = tagdb("--files", "query", "jazz")
        assert "No file currently tagged with given tag(s)." in result.output

    def test_query_unknown_tag_fails(self, tagdb, songs):
        tagdb("+mp3", songs[0])
        result = tagdb("--files", "query", "mp3 & jazz")
        assert result.exit_code == 1
        assert "Tag 'jazz' does not exist." in result.output

    def test_bad_query_fails(self, tagdb, songs):
        tagdb("+mp3", songs[0])
        result = tagdb("--files", "query", "mp3 & (jazz")
        assert result.exit_code == 1
        assert "Unable to interpret query" in result.output

    def test_tag_without_files(self, tagdb):
        result = tagdb("tag", "+mp3")
        assert "Nothing to do." in result.output


class TestLifecycle:
    def test_delete_and_recover(self, tagdb, songs):
        tagdb("+rock", songs[0])
        result = tagdb("delete", "rock")
        assert "1 tag(s) successfully deleted, 0 tag(s) ignored." in result.output
        assert tagdb("--trash", "list").output.splitlines() == ["rock"]
        assert "No tag currently applied" in tagdb("query", songs[0]).output

        result = tagdb("recover", "rock")
        assert "1 tag(s) successfully recovered" in result.output
        assert tagdb("query", songs[0]).output.splitlines() == ["rock"]

    def test_delete_missing(self, tagdb):
        result = tagdb("delete", "ghost")
        assert "Tag 'ghost' not found" in result.output
        assert "0 tag(s) successfully deleted, 1 tag(s) ignored." in result.output

    def test_rename(self, tagdb, songs):
        tagdb("+rokc", songs[0])
        result = tagdb("rename", "rokc", "rock")
        assert result.exit_code == 0, result.output
        assert tagdb("list").output.splitlines() == ["rock"]

    def test_clone_and_merge(self, tagdb, songs):
        tagdb("+rock", songs[0])
        tagdb("+pop", songs[1])
        assert tagdb("clone", "rock", "classic").exit_code == 0
        assert "2 tags successfully merged." in tagdb("merge", "rock", "pop").output
        assert tagdb("--files", "query", "classic").output.splitlines() == [songs[0]]
        assert tagdb("--files", "query", "pop").output.splitlines() == songs[:2]


class TestStatusAndCheck:
    def test_status(self, tagdb, songs):
        tagdb("+mp3", songs[0])
        result = tagdb("status")
        assert result.exit_code == 0
        assert "Tags" in result.output
        assert "Files" in result.output

    def test_check_clean(self, tagdb, songs):
        tagdb("+mp3", songs[0])
        result = tagdb("check")
        assert result.exit_code == 0
        assert "All relations are symmetric." in result.output

    def test_check_reports(self, tagdb, store_dir, songs):
        tagdb("+mp3", songs[0])
        record = next((Path(store_dir) / "tags").iterdir())
        record.write_text(record.read_text() + "+" + songs[1] + "\n")
        result = tagdb("check")
        assert result.exit_code == 1
        assert "1 inconsistent relation(s)" in result.output

    def test_undecodable_record_is_reported(self, tagdb, store_dir):
        tagdb("create", "mp3")
        record = next((Path(store_dir) / "tags").iterdir())
        record.write_bytes(b"mp3\n+caf\xe9\n")
        result = tagdb("list")
        assert result.exit_code == 1
        assert "not valid UTF-8" in result.output
        assert str(record) in result.output
        assert not isinstance(result.exception, UnicodeDecodeError)


class TestLocalStore:
    def test_local_store_keeps_relative_names(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "song.mp3").write_text("x")
        assert runner.invoke(cli, ["--local", "init"]).exit_code == 0
        assert (tmp_path / ".tagdb" / "tags").is_dir()
        result = runner.invoke(cli, ["--local", "+mp3", "song.mp3"])
        assert result.exit_code == 0, result.output
        assert runner.invoke(cli, ["--local", "files"]).output.splitlines() == ["song.mp3"]
