import os

import pytest

from mqttwire.pidfile import PIDFile, PIDFileExistsError, process_exists


def test_new_and_remove(tmp_path):
    path = tmp_path / "testfile"
    pid_file = PIDFile(path)
    assert path.read_text() == str(os.getpid())

    with pytest.raises(PIDFileExistsError):
        PIDFile(path)

    pid_file.remove()
    assert not path.exists()


def test_remove_missing_file_raises(tmp_path):
    pid_file = PIDFile(tmp_path / "foo" / "bar")
    pid_file.remove()
    with pytest.raises(FileNotFoundError):
        pid_file.remove()


def test_creates_parent_directories(tmp_path):
    path = tmp_path / "a" / "b" / "gmq.pid"
    pid_file = PIDFile(path)
    assert path.is_file()
    pid_file.remove()


def test_stale_content_is_overwritten(tmp_path):
    path = tmp_path / "stale.pid"
    path.write_text("not-a-pid")
    pid_file = PIDFile(path)
    assert path.read_text() == str(os.getpid())
    pid_file.remove()


def test_context_manager_removes_file(tmp_path):
    path = tmp_path / "ctx.pid"
    with PIDFile(path) as pid_file:
        assert pid_file.path.exists()
    assert not path.exists()


def test_process_exists_for_current_process():
    assert process_exists(os.getpid()) is True


def test_process_exists_rejects_non_positive_pid():
    assert process_exists(0) is False
    assert process_exists(-1) is False