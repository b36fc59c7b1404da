"""End-to-end tests for the modmanager command line."""

import json
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from modmanager import cli
from modmanager.core.model import ArtifactRecord, Group, Kind, LookupResult
from modmanager.core.store import RecordStore


class FakeLookup:
    def resolve(self, record, game_version):
        return LookupResult(ok=True, version=f"{record.identity}-{game_version}",
                            url=f"https://cdn.example/{record.identity}-{game_version}.jar")


class FakeUpstream:
    @classmethod
    def from_settings(cls, settings, session=None):
        return FakeLookup()


@pytest.fixture
def workspace(tmp_path):
    db = tmp_path / "modlist.csv"
    RecordStore([
        ArtifactRecord(kind=Kind.MOD, group=Group.REQUIRED, identity="sodium", loader="fabric",
                       current_game_version="1.21.4", available_game_versions=["1.21.4", "1.21.5"],
                       file_name="sodium.jar"),
        ArtifactRecord(kind=Kind.MOD, group=Group.OPTIONAL, identity="zoomify", loader="fabric",
                       current_game_version="1.21.4", available_game_versions=["1.21.4"],
                       file_name="zoomify.jar"),
        ArtifactRecord(kind=Kind.MOD, group=Group.REQUIRED, identity="iris", loader="fabric",
                       current_game_version="1.21.5"),
    ], path=db).save()
    return tmp_path


def run(workspace, *args):
    argv = ["--db", str(workspace / "modlist.csv"), "--config", str(workspace / "config.json")]
    return cli.main(argv + list(args))


def test_majority(workspace, capsys):
    assert run(workspace, "majority") == 0
    out = capsys.readouterr().out
    assert "Majority version: 1.21.4" in out
    assert "Next version: 1.21.5" in out


def test_update_versions(workspace, monkeypatch, capsys):
    monkeypatch.setattr(cli, "UpstreamLookup", FakeUpstream)
    before = (workspace / "modlist.csv").read_bytes()

    assert run(workspace, "update-versions", "--dry-run") == 0
    assert (workspace / "modlist.csv").read_bytes() == before

    report = workspace / "update.md"
    assert run(workspace, "update-versions", "--report", str(report)) == 0
    assert "Target 1.21.5: 2 via API, 1 fallback" in capsys.readouterr().out
    assert report.read_text(encoding="utf-8").startswith("# Version Update Report")
    assert list((workspace / "backups").glob("modlist.*.bak.csv"))

    records = {r.identity: r for r in RecordStore.load(workspace / "modlist.csv")}
    assert records["sodium"].next_game_version == "1.21.5"
    assert records["sodium"].next_version == "sodium-1.21.5"
    assert records["zoomify"].next_version == "zoomify-1.21.4"
    assert records["zoomify"].latest_game_version == "1.21.4"


def test_expected(workspace, capsys):
    assert run(workspace, "expected", "--target", "1.21.5") == 0
    assert capsys.readouterr().out.splitlines() == ["mods/sodium.jar"]

    out_file = workspace / "expected.txt"
    assert run(workspace, "expected", "--target", "1.21.4", "--out", str(out_file)) == 0
    assert out_file.read_text(encoding="utf-8").splitlines() == ["mods/optional/zoomify.jar", "mods/sodium.jar"]


def test_reconcile_exit_codes(workspace):
    release = workspace / "release"
    (release / "mods" / "optional").mkdir(parents=True)
    (release / "mods" / "sodium-0.6.jar").write_bytes(b"x")

    report = workspace / "check.json"
    assert run(workspace, "reconcile", "--target", "1.21.4", "--dir", str(release),
               "--report", str(report)) == 1
    data = json.loads(report.read_text(encoding="utf-8"))
    assert data["missing"] == ["mods/optional/zoomify.jar", "mods/sodium.jar"]
    assert data["extra"] == ["mods/sodium-0.6.jar"]

    (release / "mods" / "optional" / "zoomify.jar").write_bytes(b"x")
    (release / "mods" / "sodium.jar").write_bytes(b"x")
    assert run(workspace, "reconcile", "--target", "1.21.4", "--dir", str(release)) == 0


def test_reconcile_relaxed_mode(workspace, capsys):
    release = workspace / "release"
    (release / "mods").mkdir(parents=True)
    (release / "mods" / "sodium-0.6.jar").write_bytes(b"x")
    RecordStore([
        ArtifactRecord(kind=Kind.MOD, group=Group.REQUIRED, identity="sodium", loader="fabric",
                       current_game_version="1.21.5", file_name="sodium-0.5.jar"),
    ], path=workspace / "modlist.csv").save()

    assert run(workspace, "reconcile", "--target", "1.21.5", "--dir", str(release)) == 1
    assert run(workspace, "reconcile", "--target", "1.21.5", "--dir", str(release),
               "--mode", "relaxed-version") == 0
    assert "drift:   mods/sodium-0.5.jar -> mods/sodium-0.6.jar" in capsys.readouterr().out


def test_assemble(workspace):
    cache = workspace / "cache"
    (cache / "1.21.4" / "mods" / "optional").mkdir(parents=True)
    (cache / "1.21.4" / "mods" / "sodium.jar").write_bytes(b"sodium")
    (cache / "1.21.4" / "mods" / "optional" / "zoomify.jar").write_bytes(b"zoomify")
    output = workspace / "out"

    assert run(workspace, "assemble", "--target", "1.21.4", "--cache", str(cache),
               "--output", str(output), "--policy", "strict", "--zip") == 0
    assert (output / "1.21.4" / "mods" / "sodium.jar").exists()
    assert (output / "1.21.4.zip").exists()

    (cache / "1.21.4" / "mods" / "sodium.jar").unlink()
    assert run(workspace, "assemble", "--target", "1.21.4", "--cache", str(cache),
               "--output", str(output)) == 1

    assert run(workspace, "assemble", "--target", "1.21.4", "--cache", str(cache),
               "--output", str(cache)) == cli.EXIT_USAGE
    assert (cache / "1.21.4" / "mods" / "optional" / "zoomify.jar").exists()


def test_add_and_remove(workspace):
    assert run(workspace, "add", "--type", "mod", "--id", "lithium", "--loader", "fabric",
               "--group", "optional", "--name", "Lithium", "--game-version", "1.21.5") == 0
    records = {r.identity: r for r in RecordStore.load(workspace / "modlist.csv")}
    assert records["lithium"].group is Group.OPTIONAL
    assert records["lithium"].current_game_version == "1.21.5"

    assert run(workspace, "add", "--type", "mod", "--id", "lithium", "--loader", "fabric") == cli.EXIT_STORE

    assert run(workspace, "remove", "--type", "mod", "--id", "lithium", "--loader", "fabric") == 0
    assert run(workspace, "remove", "--type", "mod", "--id", "lithium", "--loader", "fabric") == cli.EXIT_STORE
    assert "lithium" not in {r.identity for r in RecordStore.load(workspace / "modlist.csv")}


def test_add_infrastructure_defaults_group(tmp_path):
    argv = ["--db", str(tmp_path / "new.csv"), "--config", str(tmp_path / "config.json")]
    assert cli.main(argv + ["add", "--type", "jdk", "--id", "21", "--loader", "temurin"]) == 0
    record = RecordStore.load(tmp_path / "new.csv").records[0]
    assert record.group is Group.INFRASTRUCTURE
    assert record.kind is Kind.JDK


def test_missing_database(tmp_path):
    argv = ["--db", str(tmp_path / "none.csv"), "--config", str(tmp_path / "config.json"), "majority"]
    assert cli.main(argv) == cli.EXIT_STORE


def test_usage_errors(workspace):
    with pytest.raises(SystemExit) as excinfo:
        run(workspace, "reconcile", "--target", "1.21.5", "--dir", ".", "--mode", "fuzzy")
    assert excinfo.value.code == 2
