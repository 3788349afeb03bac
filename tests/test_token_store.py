"""Tests for persisted-token storage."""

from panel.services.token_store import FileTokenStore, MemoryTokenStore


def test_file_store_round_trip(tmp_path):
    """A saved token is loaded back."""
    store = FileTokenStore(tmp_path / "session")
    assert store.load() is None

    store.save("aaa.bbb.ccc")
    assert store.load() == "aaa.bbb.ccc"

    store.save("ddd.eee.fff")
    assert store.load() == "ddd.eee.fff"


def test_file_store_leaves_no_temp_files(tmp_path):
    """Saving leaves only the token file behind."""
    store = FileTokenStore(tmp_path / "session")
    store.save("aaa.bbb.ccc")
    store.save("ddd.eee.fff")
    assert [p.name for p in tmp_path.iterdir()] == ["session"]


def test_file_store_is_private(tmp_path):
    """The token file is readable by its owner only."""
    store = FileTokenStore(tmp_path / "session")
    store.save("aaa.bbb.ccc")
    assert (tmp_path / "session").stat().st_mode & 0o077 == 0


def test_file_store_creates_parent_directory(tmp_path):
    """Missing parent directories are created."""
    store = FileTokenStore(tmp_path / "nested" / "dir" / "session")
    store.save("aaa.bbb.ccc")
    assert store.load() == "aaa.bbb.ccc"


def test_file_store_blank_file_means_no_session(tmp_path):
    """A blank file means no session."""
    path = tmp_path / "session"
    path.write_text("  \n")
    assert FileTokenStore(path).load() is None


def test_file_store_clear(tmp_path):
    """Clearing removes the file and is safe to repeat."""
    store = FileTokenStore(tmp_path / "session")
    store.save("aaa.bbb.ccc")
    store.clear()
    assert store.load() is None
    # clearing twice is fine
    store.clear()


def test_memory_store():
    """The memory store saves, loads and clears."""
    store = MemoryTokenStore("aaa.bbb.ccc")
    assert store.load() == "aaa.bbb.ccc"
    store.clear()
    assert store.load() is None
