import hashlib
import shlex
import sys

import pytest

from zupdate.cli import main
from zupdate.updater import read_current_version, save_version

_APPLY_SCRIPT = (
    "import pathlib, shutil, sys\n"
    "shutil.copy(sys.argv[1], pathlib.Path(sys.argv[2]) / 'applied.bin')\n"
)


@pytest.fixture
def setup(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    root = tmp_path / "server"
    root.mkdir()
    patch_data = b"patch payload"
    (root / "p12.zpatch").write_bytes(patch_data)
    md5 = hashlib.md5(patch_data).hexdigest()
    (root / "manifest.xml").write_text(
        "<zupdater><builds>"
        "<build><version>2</version><desc>Two</desc></build>"
        "<build><version>1</version><desc>One</desc></build>"
        "</builds><patches>"
        "<patch><source_version>1</source_version>"
        "<destination_version>2</destination_version>"
        f"<file>p12.zpatch</file><size>13</size><md5>{md5}</md5></patch>"
        "</patches></zupdater>",
        encoding="utf-8",
    )
    app = tmp_path / "app"
    app.mkdir()
    script = tmp_path / "apply.py"
    script.write_text(_APPLY_SCRIPT, encoding="utf-8")
    command = shlex.join([sys.executable, str(script), "{patch}", "{target}"])
    version_file = tmp_path / "app.zversion"
    save_version(version_file, 1)
    base_args = [
        (root / "manifest.xml").as_uri(),
        "--target-dir", str(app),
        "--version-file", str(version_file),
        "--download-dir", str(tmp_path),
        "--updates-dir", str(tmp_path / "updates"),
    ]
    return base_args, command, app, version_file, patch_data


def test_updates_and_applies(setup):
    base_args, command, app, version_file, patch_data = setup
    assert main(base_args + ["--apply-command", command]) == 0
    assert read_current_version(version_file) == 2
    assert (app / "applied.bin").read_bytes() == patch_data


def test_failing_command_exits_with_error(setup):
    base_args, _, _, version_file, _ = setup
    failing = shlex.join([sys.executable, "-c", "raise SystemExit(3)"])
    assert main(base_args + ["--apply-command", failing]) == 1
    assert read_current_version(version_file) == 1


def test_missing_applier_is_an_error(setup, capsys):
    base_args, _, _, version_file, _ = setup
    assert main(base_args) == 1
    assert "--apply-command" in capsys.readouterr().err
    assert read_current_version(version_file) == 1


def test_up_to_date_needs_no_applier(setup, capsys):
    base_args, _, _, version_file, _ = setup
    save_version(version_file, 2)
    assert main(base_args) == 0
    assert "Latest version available for download: 2" in capsys.readouterr().out


def test_bad_update_url(setup, capsys):
    base_args, _, _, _, _ = setup
    assert main(["noslash"] + base_args[1:]) == 1
    assert "An error occurred while checking for updates." in capsys.readouterr().err


def test_corrupt_version_file(setup, capsys):
    base_args, _, _, version_file, _ = setup
    version_file.write_bytes(b"\x00")
    assert main(base_args) == 1
    assert (
        "An error occurred while getting current application version."
        in capsys.readouterr().err
    )


def test_empty_apply_command_rejected(setup):
    base_args, _, _, _, _ = setup
    with pytest.raises(SystemExit) as info:
        main(base_args + ["--apply-command", ""])
    assert info.value.code == 2