import os

import pytest

from bds_update.errors import UpdateInProgress
from bds_update.lock import InstallLock, lock_path_for


def test_lock_lives_beside_install_dir(tmp_path):
    install = tmp_path / "srv" / "bedrock"

    assert lock_path_for(str(install)) == str(tmp_path / "srv" / ".bedrock.update.lock")
    assert lock_path_for(str(install) + os.sep) == lock_path_for(str(install))


def test_holder_pid_survives_rejected_acquire(tmp_path, console):
    install = str(tmp_path / "bedrock")

    with InstallLock(install, console) as holder:
        with open(holder.path) as f:
            assert f.read() == str(os.getpid())

        with pytest.raises(UpdateInProgress):
            InstallLock(install, console).acquire()

        with open(holder.path) as f:
            assert f.read() == str(os.getpid())


def test_reacquire_replaces_stale_pid(tmp_path, console):
    install = str(tmp_path / "bedrock")
    stale = tmp_path / ".bedrock.update.lock"
    stale.write_text("999999999")

    with InstallLock(install, console):
        assert stale.read_text() == str(os.getpid())


def test_release_is_idempotent(tmp_path, console):
    lock = InstallLock(str(tmp_path / "bedrock"), console)
    lock.acquire()
    lock.release()
    lock.release()

    with InstallLock(str(tmp_path / "bedrock"), console):
        pass
