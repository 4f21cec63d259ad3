"""Tests for the relocation store."""

import errno
import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from wrapperize import _relocation
from wrapperize._relocation import RelocationStore, move_file
from wrapperize._exceptions import ConflictError, ValidationError, WriteError


STORE = Path("/var/lib/wrapperize/originals")


# ---------------------------------------------------------------------------
# Path mapping
# ---------------------------------------------------------------------------

class TestMapping:
    """The original <-> relocated mapping."""

    @pytest.mark.parametrize("original", [
        "/usr/bin/foo",
        "/usr/local/bin/foo-bar",
        "/opt/app/bin/.hidden",
        "/home/user/bin/tool with space",
    ])
    def test_bijection(self, original):
        store = RelocationStore(STORE)
        relocated = store.relocated_path_for(original)
        assert store.original_path_for(relocated) == Path(original)

    def test_relocated_path_lives_in_store(self):
        store = RelocationStore(STORE)
        assert store.relocated_path_for("/usr/bin/foo") == STORE / "usr/bin/foo"

    def test_same_name_in_different_dirs_does_not_collide(self):
        store = RelocationStore(STORE)
        assert store.relocated_path_for("/usr/bin/foo") != store.relocated_path_for("/opt/bin/foo")

    def test_relative_path_rejected(self):
        with pytest.raises(ValidationError, match="absolute"):
            RelocationStore(STORE).relocated_path_for("usr/bin/foo")

    def test_parent_references_rejected(self):
        with pytest.raises(ValidationError, match="normalized"):
            RelocationStore(STORE).relocated_path_for("/usr/bin/../lib/foo")

    def test_path_inside_store_rejected(self):
        with pytest.raises(ValidationError, match="inside the store"):
            RelocationStore(STORE).relocated_path_for(STORE / "usr/bin/foo")

    def test_original_for_path_outside_store_rejected(self):
        with pytest.raises(ValidationError, match="not inside the store"):
            RelocationStore(STORE).original_path_for("/usr/bin/foo")

    def test_relative_store_rejected(self):
        with pytest.raises(ValidationError):
            RelocationStore("relative/store")


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

class TestClaim:
    """Reserving relocated paths."""

    def test_claim_creates_parent_dirs(self, tmp_path):
        store = RelocationStore(tmp_path / "store")
        relocated = store.claim("/usr/bin/foo")
        assert relocated == tmp_path / "store" / "usr/bin/foo"
        assert relocated.parent.is_dir()
        assert not relocated.exists()

    def test_claim_occupied_path_conflicts(self, tmp_path):
        store = RelocationStore(tmp_path / "store")
        relocated = store.claim("/usr/bin/foo")
        relocated.write_text("stale")

        with pytest.raises(ConflictError) as excinfo:
            store.claim("/usr/bin/foo")
        assert excinfo.value.path == relocated


class TestMoves:
    """Relocating, restoring and discarding."""

    def test_relocate_and_restore_round_trip(self, tmp_path):
        original = tmp_path / "bin" / "foo"
        original.parent.mkdir()
        original.write_text("#!/bin/sh\necho hi\n")
        original.chmod(0o751)

        store = RelocationStore(tmp_path / "store")
        relocated = store.claim(original)
        store.relocate(original, relocated)

        assert not original.exists()
        assert relocated.read_text() == "#!/bin/sh\necho hi\n"

        store.restore(relocated, original)
        assert original.read_text() == "#!/bin/sh\necho hi\n"
        assert (original.stat().st_mode & 0o7777) == 0o751
        assert not relocated.exists()
        # Empty directories inside the store are pruned, the store itself is kept.
        assert list((tmp_path / "store").iterdir()) == []

    def test_restore_replaces_wrapper(self, tmp_path):
        original = tmp_path / "foo"
        original.write_text("wrapper")
        store = RelocationStore(tmp_path / "store")
        relocated = store.claim(original)
        relocated.write_text("real")

        store.restore(relocated, original)
        assert original.read_text() == "real"

    def test_discard_removes_and_prunes(self, tmp_path):
        store = RelocationStore(tmp_path / "store")
        relocated = store.claim("/usr/bin/foo")
        relocated.write_text("stale")

        store.discard(relocated)
        assert not relocated.exists()
        assert not (tmp_path / "store" / "usr").exists()

    def test_discard_missing_file_is_noop(self, tmp_path):
        store = RelocationStore(tmp_path / "store")
        store.discard(store.relocated_path_for("/usr/bin/foo"))

    def test_discard_outside_store_refused(self, tmp_path):
        victim = tmp_path / "victim"
        victim.write_text("keep me")
        with pytest.raises(ValidationError):
            RelocationStore(tmp_path / "store").discard(victim)
        assert victim.exists()


class TestMoveFile:
    """Moving across filesystems."""

    def test_cross_filesystem_move_copies_and_deletes(self, tmp_path, monkeypatch):
        src = tmp_path / "src"
        src.write_bytes(b"\x7fELF binary")
        src.chmod(0o755)
        dst_dir = tmp_path / "other"
        dst_dir.mkdir()
        dst = dst_dir / "dst"

        real_replace = os.replace
        calls = []

        def fake_replace(a, b):
            calls.append((a, b))
            if Path(a) == src:
                raise OSError(errno.EXDEV, "Invalid cross-device link")
            return real_replace(a, b)

        monkeypatch.setattr(_relocation.os, "replace", fake_replace)
        move_file(src, dst)

        assert not src.exists()
        assert dst.read_bytes() == b"\x7fELF binary"
        assert (dst.stat().st_mode & 0o777) == 0o755
        assert len(calls) == 2
        assert list(dst_dir.iterdir()) == [dst]

    def test_failed_move_reports_write_error(self, tmp_path):
        with pytest.raises(WriteError):
            move_file(tmp_path / "missing", tmp_path / "dst")
