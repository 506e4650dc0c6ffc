"""
Backup and restore tests.
"""

import os
import shutil
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

import pytest

from conftest import build_instance_tree, snapshot
from ente_selfhost.backup import (
    backup_instance,
    copy_tree,
    remove_tree,
    restore_instance,
    validate_absolute_path,
)
from ente_selfhost.errors import (
    CopyFailedError,
    DestinationAlreadyExistsError,
    EnteSelfhostError,
    IncompleteBackupError,
    InstanceNotFoundError,
    MissingArgumentError,
    PathNotAbsoluteError,
    PermissionChangeError,
    SourceNotFoundError,
)
from ente_selfhost.instance import Instance


@pytest.fixture
def instance(tmp_path):
    build_instance_tree(tmp_path / "site" / "my-ente")
    return Instance(tmp_path / "site" / "my-ente")


class TestValidateAbsolutePath:
    def test_missing(self):
        with pytest.raises(MissingArgumentError):
            validate_absolute_path(None, "Backup")
        with pytest.raises(MissingArgumentError):
            validate_absolute_path("", "Backup")

    def test_relative(self):
        with pytest.raises(PathNotAbsoluteError, match="relative/path"):
            validate_absolute_path("relative/path", "Backup")

    def test_absolute(self):
        assert validate_absolute_path("/srv/backups/ente", "Backup") == Path("/srv/backups/ente")


class TestRelativePathsRejectedBeforeIO:
    def test_backup(self, tmp_path):
        runner = MagicMock()
        missing = Instance(tmp_path / "does-not-exist")

        with pytest.raises(PathNotAbsoluteError):
            backup_instance(missing, "relative/path", runner)

        runner.down.assert_not_called()

    def test_restore(self, tmp_path):
        target = Instance(tmp_path / "restored" / "my-ente")

        with patch("pathlib.Path.is_dir") as mock_is_dir, patch("pathlib.Path.exists") as mock_exists:
            with pytest.raises(PathNotAbsoluteError):
                restore_instance("relative/path", target, 0o755)
            mock_is_dir.assert_not_called()
            mock_exists.assert_not_called()

        assert not (tmp_path / "restored").exists()


class TestBackup:
    def test_stops_stack_and_copies_everything(self, tmp_path, instance):
        runner = MagicMock()
        target = tmp_path / "backups" / "ente-backup-2024-12"

        result = backup_instance(instance, str(target), runner)

        runner.down.assert_called_once()
        assert result == target.resolve()
        assert snapshot(target) == snapshot(instance.root)

    def test_missing_instance(self, tmp_path):
        with pytest.raises(InstanceNotFoundError):
            backup_instance(Instance(tmp_path / "nope"), str(tmp_path / "b"), MagicMock())

    def test_missing_app_data_is_skipped(self, tmp_path, instance, capsys):
        shutil.rmtree(instance.app_data_dir)
        target = tmp_path / "b"

        backup_instance(instance, str(target), MagicMock())

        assert not (target / "data").exists()
        assert (target / "postgres-data" / "PG_VERSION").exists()
        assert "No 'data' directory" in capsys.readouterr().out

    def test_preserves_symlinks(self, tmp_path, instance):
        os.symlink("PG_VERSION", instance.postgres_data_dir / "version-link")
        target = tmp_path / "b"

        backup_instance(instance, str(target), MagicMock())

        link = target / "postgres-data" / "version-link"
        assert link.is_symlink()
        assert os.readlink(link) == "PG_VERSION"


class TestRestore:
    def test_round_trip_is_byte_identical(self, tmp_path, instance):
        bundle = tmp_path / "bundle"
        backup_instance(instance, str(bundle), MagicMock())
        restored = Instance(tmp_path / "elsewhere" / "my-ente")

        restore_instance(str(bundle), restored, 0o755)

        assert snapshot(restored.root) == snapshot(instance.root)
        for path in restored.data_dirs():
            assert oct(path.stat().st_mode & 0o777) == oct(0o755)

    def test_existing_destination_is_refused_without_changes(self, tmp_path, instance):
        bundle = tmp_path / "bundle"
        backup_instance(instance, str(bundle), MagicMock())
        existing = Instance(tmp_path / "occupied" / "my-ente")
        existing.root.mkdir(parents=True)
        (existing.root / "keep.txt").write_text("mine")
        before = snapshot(tmp_path / "occupied")

        with pytest.raises(DestinationAlreadyExistsError) as excinfo:
            restore_instance(str(bundle), existing, 0o755)

        assert snapshot(tmp_path / "occupied") == before
        assert any("rm -rf" in line for line in excinfo.value.hints())

    def test_source_not_found(self, tmp_path):
        target = Instance(tmp_path / "r" / "my-ente")
        with pytest.raises(SourceNotFoundError):
            restore_instance(str(tmp_path / "missing-bundle"), target, 0o755)
        assert not (tmp_path / "r").exists()

    def test_incomplete_bundle(self, tmp_path):
        bundle = tmp_path / "bundle"
        (bundle / "postgres-data").mkdir(parents=True)
        (bundle / "compose.yaml").write_text("services: {}\n")
        target = Instance(tmp_path / "r" / "my-ente")

        with pytest.raises(IncompleteBackupError) as excinfo:
            restore_instance(str(bundle), target, 0o755)

        assert excinfo.value.missing == ["minio-data", "museum.yaml"]
        assert not (tmp_path / "r").exists()

    def test_bundle_without_app_data_restores_empty_dir(self, tmp_path, instance):
        bundle = tmp_path / "bundle"
        backup_instance(instance, str(bundle), MagicMock())
        shutil.rmtree(bundle / "data")
        restored = Instance(tmp_path / "r" / "my-ente")

        restore_instance(str(bundle), restored, 0o755)

        assert restored.app_data_dir.is_dir()
        assert list(restored.app_data_dir.iterdir()) == []

    def test_security_labels_are_advisory(self, tmp_path, instance, monkeypatch):
        bundle = tmp_path / "bundle"
        backup_instance(instance, str(bundle), MagicMock())
        monkeypatch.setattr("ente_selfhost.security.shutil.which", lambda name: "/usr/bin/" + name)
        restored = Instance(tmp_path / "r" / "my-ente")

        with patch("ente_selfhost.security.subprocess.run", return_value=Mock(returncode=1, stderr="not permitted", stdout="")):
            advisories = restore_instance(str(bundle), restored, 0o755)

        assert len(advisories) == 5
        assert all(not advisory.applied for advisory in advisories)
        assert restored.state().value == "complete"

    def test_failed_copy_removes_destination(self, tmp_path, instance, monkeypatch):
        bundle = tmp_path / "bundle"
        backup_instance(instance, str(bundle), MagicMock())
        restored = Instance(tmp_path / "r" / "my-ente")

        def copy_fails(source, destination, privileged_fallback=False):
            raise CopyFailedError(source, destination, "special file")

        monkeypatch.setattr("ente_selfhost.backup.copy_tree", copy_fails)
        with pytest.raises(CopyFailedError):
            restore_instance(str(bundle), restored, 0o755)

        assert not restored.root.exists()
        assert (tmp_path / "r").is_dir()

        monkeypatch.setattr("ente_selfhost.backup.copy_tree", copy_tree)
        restore_instance(str(bundle), restored, 0o755)
        assert snapshot(restored.root) == snapshot(instance.root)

    def test_permission_failure_is_reported_and_cleaned_up(self, tmp_path, instance, monkeypatch):
        bundle = tmp_path / "bundle"
        backup_instance(instance, str(bundle), MagicMock())
        restored = Instance(tmp_path / "r" / "my-ente")
        real_chmod = os.chmod

        def chmod(path, mode, *args, **kwargs):
            if Path(path).name == "minio-data":
                raise PermissionError(13, "Operation not permitted")
            return real_chmod(path, mode, *args, **kwargs)

        monkeypatch.setattr("ente_selfhost.backup._copy_bundle", lambda source, destination: [])
        monkeypatch.setattr("ente_selfhost.backup.os.chmod", chmod)

        with pytest.raises(PermissionChangeError, match="minio-data") as excinfo:
            restore_instance(str(bundle), restored, 0o755)

        assert isinstance(excinfo.value, EnteSelfhostError)
        assert not restored.root.exists()


class TestRemoveTree:
    def test_removes_directory(self, tmp_path, instance):
        remove_tree(instance.root)
        assert not instance.root.exists()

    def test_missing_directory_is_ignored(self, tmp_path):
        remove_tree(tmp_path / "absent")

    def test_permission_error_falls_back_to_sudo(self, tmp_path):
        with patch("shutil.rmtree", side_effect=PermissionError("denied")), \
                patch("subprocess.run", return_value=Mock(returncode=0, stdout="", stderr="")) as mock_run:
            remove_tree(tmp_path / "owned-by-container")

        assert mock_run.call_args[0][0] == ["sudo", "rm", "-rf", str(tmp_path / "owned-by-container")]

    def test_failed_fallback_only_warns(self, tmp_path, capsys):
        with patch("shutil.rmtree", side_effect=PermissionError("denied")), \
                patch("subprocess.run", return_value=Mock(returncode=1, stdout="", stderr="sudo: no tty")):
            remove_tree(tmp_path / "stuck")

        out = capsys.readouterr().out
        assert "Could not remove" in out
        assert "rm -rf" in out


class TestCopyTree:
    def test_permission_error_without_fallback(self, tmp_path):
        with patch("shutil.copytree", side_effect=PermissionError("denied")):
            with pytest.raises(CopyFailedError, match="denied"):
                copy_tree(tmp_path / "a", tmp_path / "b")

    def test_permission_error_falls_back_to_sudo_rsync(self, tmp_path):
        with patch("shutil.copytree", side_effect=PermissionError("denied")), \
                patch("subprocess.run", return_value=Mock(returncode=0)) as mock_run:
            copy_tree(tmp_path / "a", tmp_path / "b", privileged_fallback=True)

        assert mock_run.call_args[0][0] == ["sudo", "rsync", "-a", f"{tmp_path / 'a'}/", f"{tmp_path / 'b'}/"]

    def test_failed_fallback_raises(self, tmp_path):
        with patch("shutil.copytree", side_effect=PermissionError("denied")), \
                patch("subprocess.run", return_value=Mock(returncode=23, stderr="rsync error")):
            with pytest.raises(CopyFailedError, match="rsync error"):
                copy_tree(tmp_path / "a", tmp_path / "b", privileged_fallback=True)
