"""Tests for LayeredConfig."""

import os
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
from cascade_config import ConfigPermissionError
from cascade_config import InvalidValueError
from cascade_config import LayeredConfig
from cascade_config import NotFoundError
from cascade_config import PathError
from cascade_config import PersistError


class TestLayeredConfig:
    """Test LayeredConfig class."""

    @pytest.fixture
    def home(self):
        """Create a temporary home directory with a project below it."""
        with TemporaryDirectory() as tmpdir:
            home = Path(tmpdir).resolve() / "home"
            (home / "proj").mkdir(parents=True)
            yield home

    @pytest.fixture
    def config(self, home):
        """Create LayeredConfig rooted at the temporary home."""
        return LayeredConfig(home=home)

    @pytest.fixture
    def layered(self, home, config):
        """Load a project file layered over a home file."""
        (home / "app.conf").write_text('color = "blue"\n[db]\nhost = "global"\nport = 5432\n[cache]\nttl = 60\n')
        (home / "proj" / "app.conf").write_text('color = "red"\n[db]\nhost = "local"\n')
        config.load(home / "proj" / "app.conf")
        return config

    # ===== Construction =====

    def test_home_defaults_to_environment(self, monkeypatch, home):
        """Test home is detected when not given."""
        monkeypatch.setenv("HOME", str(home))
        assert LayeredConfig().home == home

    def test_paths_normalized(self, home):
        """Test extra paths are stored resolved."""
        config = LayeredConfig(paths=[home / "proj" / ".."], home=home)
        assert config.paths == (home,)

    # ===== Unloaded State =====

    def test_unloaded_reads_fail(self, config):
        """Test reads before load raise NotFoundError."""
        with pytest.raises(NotFoundError):
            config.get("anything")
        assert config.count() == 0

    def test_unloaded_add_section(self, config):
        """Test sections can be added before load."""
        config.add_section("db")
        assert config.section_names() == ["db"]

    def test_unloaded_save_fails(self, config):
        """Test save before load raises PathError."""
        with pytest.raises(PathError):
            config.save()

    # ===== Loading =====

    def test_load_merges_nearest_wins(self, layered):
        """Test nearer files override farther ones."""
        assert layered["color"] == "red"
        assert layered["db"]["host"] == "local"
        assert layered["db"]["port"] == 5432
        assert layered["cache"]["ttl"] == 60

    def test_load_resets_changed(self, layered):
        """Test a fresh load is unchanged."""
        assert not layered.has_changed()

    def test_load_records_filepath(self, layered, home):
        """Test the resolved local file is remembered."""
        assert layered.filepath == home / "proj" / "app.conf"

    def test_load_without_bubble_ignores_parents(self, home, config):
        """Test bubble=False reads only the local file."""
        (home / "app.conf").write_text("inherited = 1\n")
        (home / "proj" / "app.conf").write_text("own = 2\n")

        config.load(home / "proj" / "app.conf", bubble=False)

        assert config.to_dict() == {"own": 2}

    def test_load_missing_local_file(self, home, config):
        """Test a missing local file starts empty over inherited values."""
        (home / "app.conf").write_text("inherited = 1\n")

        config.load(home / "proj" / "app.conf")

        assert config["inherited"] == 1
        assert config.filepath == home / "proj" / "app.conf"

    def test_load_skips_malformed_inherited_file(self, home, config, caplog):
        """Test a broken farther file is skipped with a warning."""
        (home / "app.conf").write_text("this is broken\n")
        (home / "proj" / "app.conf").write_text("own = 2\n")

        config.load(home / "proj" / "app.conf")

        assert config.to_dict() == {"own": 2}
        assert "Failed to read configuration" in caplog.text

    def test_load_malformed_local_file_starts_empty(self, home, config):
        """Test a broken local file leaves the local layer empty."""
        (home / "app.conf").write_text("inherited = 1\n")
        (home / "proj" / "app.conf").write_text("this is broken\n")

        config.load(home / "proj" / "app.conf")

        assert config.to_dict() == {"inherited": 1}

    def test_load_directory_fails(self, home, config):
        """Test loading a directory raises PathError."""
        with pytest.raises(PathError):
            config.load(home / "proj")

    def test_load_missing_directory_fails(self, home, config):
        """Test loading from a missing directory raises PathError."""
        with pytest.raises(PathError):
            config.load(home / "missing" / "app.conf")

    def test_reload_discards_state(self, home, layered):
        """Test a second load starts from scratch."""
        layered["color"] = "green"
        assert layered.has_changed()

        layered.load(home / "proj" / "app.conf")

        assert layered["color"] == "red"
        assert not layered.has_changed()

    def test_type_conflict_nearest_wins(self, home, config):
        """Test a nearer scalar replaces a farther section of the same name."""
        (home / "app.conf").write_text("[db]\nhost = x\n")
        (home / "proj" / "app.conf").write_text('db = "flat"\n')

        config.load(home / "proj" / "app.conf")

        assert config["db"] == "flat"
        assert config.section_names() == []

    # ===== Change Tracking =====

    def test_set_same_value_unchanged(self, layered):
        """Test writing the current local value is not a change."""
        layered["color"] = "red"
        assert not layered.has_changed()

    def test_set_new_value_changed(self, layered):
        """Test writing a different value is a change."""
        layered["color"] = "green"
        assert layered.has_changed()

    def test_set_new_key_changed(self, layered):
        """Test creating a key is a change."""
        layered["size"] = 1
        assert layered.has_changed()

    def test_section_write_changed(self, layered):
        """Test a write through a section view marks the configuration."""
        db = layered["db"]
        assert not layered.has_changed()
        db["port"] = 6543
        assert layered.has_changed()

    def test_inherited_section_read_changed(self, layered):
        """Test reading an inherited-only section materializes it locally."""
        layered["cache"]
        assert layered.has_changed()

    # ===== Deleting =====

    def test_delete_local_override_falls_back(self, layered):
        """Test deleting a local override exposes the inherited value."""
        del layered["color"]
        assert layered["color"] == "blue"
        assert layered.has_changed()

    def test_delete_inherited_value_is_noop(self, layered):
        """Test inherited-only values cannot be deleted."""
        db = layered["db"]
        db.delete("port")
        assert db.has("port")
        assert db["port"] == 5432
        assert not layered.has_changed()

    def test_delete_local_value_without_fallback(self, layered):
        """Test deleting a purely local key removes it."""
        layered["size"] = 1
        del layered["size"]
        with pytest.raises(NotFoundError):
            layered["size"]

    # ===== Sections =====

    def test_set_cannot_overwrite_section(self, layered):
        """Test a scalar cannot replace a section and nothing changes."""
        before = layered.to_dict()
        with pytest.raises(InvalidValueError):
            layered.set("db", "x")
        assert layered.to_dict() == before
        assert not layered.has_changed()

    def test_section_names(self, layered):
        """Test section names are listed in order."""
        assert layered.section_names() == ["db", "cache"]
        assert layered.has_section("db")
        assert not layered.has_section("color")
        assert not layered.has_section("missing")

    def test_iteration_lists_scalars_only(self, layered):
        """Test iteration skips sections."""
        assert list(layered) == [("color", "red")]

    def test_add_section(self, layered):
        """Test a new section is created and returned."""
        logging_section = layered.add_section("logging")
        logging_section["level"] = "debug"

        assert layered.has_changed()
        assert layered["logging"]["level"] == "debug"

    def test_add_section_existing_returns_view(self, layered):
        """Test adding an existing section returns it."""
        db = layered.add_section("db")
        assert db["host"] == "local"
        assert not layered.has_changed()

    def test_add_section_over_scalar_fails(self, layered):
        """Test a scalar cannot be turned into a section."""
        with pytest.raises(InvalidValueError):
            layered.add_section("color")

    def test_add_section_invalid_name_fails(self, layered):
        """Test names that cannot be written as INI are rejected."""
        with pytest.raises(InvalidValueError):
            layered.add_section("bad\nname")

    # ===== Saving =====

    def test_save_writes_local_layer_only(self, layered, home):
        """Test only local values reach the local file."""
        layered["db"]["user"] = "admin"
        layered.save()

        text = (home / "proj" / "app.conf").read_text()
        assert 'user = "admin"' in text
        assert "5432" not in text
        assert "ttl" not in text
        assert not layered.has_changed()

    def test_save_leaves_inherited_file_alone(self, layered, home):
        """Test saving does not touch farther files."""
        before = (home / "app.conf").read_text()
        layered["color"] = "green"
        layered.save()
        assert (home / "app.conf").read_text() == before

    def test_save_creates_missing_file(self, home, config):
        """Test saving creates the local file when it did not exist."""
        config.load(home / "proj" / "new.conf")
        config["created"] = True
        config.save()
        assert (home / "proj" / "new.conf").read_text() == "created = true\n"

    def test_save_keeps_permissions(self, layered, home):
        """Test the replaced file keeps its permission bits."""
        target = home / "proj" / "app.conf"
        target.chmod(0o640)
        layered["color"] = "green"
        layered.save()
        assert target.stat().st_mode & 0o777 == 0o640

    def test_save_read_only_fails(self, layered, home, monkeypatch):
        """Test saving over a read-only file raises ConfigPermissionError."""
        target = home / "proj" / "app.conf"
        real_access = os.access
        monkeypatch.setattr(
            os, "access", lambda p, mode: False if Path(p) == target and mode & os.W_OK else real_access(p, mode)
        )

        with pytest.raises(ConfigPermissionError):
            layered.save()

    def test_read_only_error_is_permission_error(self, layered, home, monkeypatch):
        """Test the read-only failure can be caught as the built-in PermissionError."""
        target = home / "proj" / "app.conf"
        real_access = os.access
        monkeypatch.setattr(
            os, "access", lambda p, mode: False if Path(p) == target and mode & os.W_OK else real_access(p, mode)
        )

        with pytest.raises(PermissionError):
            layered.save()

    def test_save_rename_failure_cleans_up(self, layered, home, monkeypatch):
        """Test a failed rename removes the temporary file and keeps the original."""
        target = home / "proj" / "app.conf"
        before = target.read_text()

        def failing_replace(src, dst):
            raise OSError("rename failed")

        monkeypatch.setattr(os, "replace", failing_replace)
        layered["color"] = "green"

        with pytest.raises(PersistError, match="rename failed"):
            layered.save()

        assert target.read_text() == before
        assert sorted(p.name for p in target.parent.iterdir()) == ["app.conf"]
        assert layered.has_changed()

    def test_save_unencodable_text_fails_cleanly(self, layered, home):
        """Test text that cannot be written as UTF-8 is rejected without leaving files behind."""
        target = home / "proj" / "app.conf"
        before = target.read_text()
        layered["name"] = "bad\udcff"

        with pytest.raises(InvalidValueError, match="UTF-8"):
            layered.save()

        assert target.read_text() == before
        assert sorted(p.name for p in target.parent.iterdir()) == ["app.conf"]
        assert layered.has_changed()

    def test_save_write_failure_cleans_up(self, layered, home, monkeypatch):
        """Test a failure while writing the temporary file removes it."""
        target = home / "proj" / "app.conf"

        def failing_fsync(fd):
            raise OSError("disk full")

        monkeypatch.setattr(os, "fsync", failing_fsync)
        layered["color"] = "green"

        with pytest.raises(PersistError, match="disk full"):
            layered.save()

        assert sorted(p.name for p in target.parent.iterdir()) == ["app.conf"]

    def test_load_skips_inaccessible_search_path(self, home, monkeypatch):
        """Test an extra path that cannot be inspected does not abort the load."""
        locked = home.parent / "locked"
        locked.mkdir()
        (home / "app.conf").write_text("inherited = 1\n")
        real_is_dir = Path.is_dir

        def guarded_is_dir(self, *args, **kwargs):
            if self == locked:
                raise PermissionError(13, "Permission denied", str(self))
            return real_is_dir(self, *args, **kwargs)

        monkeypatch.setattr(Path, "is_dir", guarded_is_dir)
        config = LayeredConfig(paths=[locked], home=home)

        config.load(home / "proj" / "app.conf")

        assert config["inherited"] == 1

    def test_save_nested_section_fails(self, layered):
        """Test data the INI format cannot hold is rejected on save."""
        layered._local["db"]["nested"] = {"a": 1}
        with pytest.raises(InvalidValueError):
            layered.save()

    # ===== Diagnostics =====

    def test_debug_info(self, layered, home):
        """Test debug info lists paths and effective data."""
        info = layered.debug_info()
        assert info["filepath"] == home / "proj" / "app.conf"
        assert info["home"] == home
        assert info["paths"] == ()
        assert info["data"]["db"] == {"host": "local", "port": 5432}

    def test_repr(self, layered):
        """Test repr mentions the loaded file."""
        assert "app.conf" in repr(layered)
        assert repr(layered).startswith("LayeredConfig(")
