import contextlib
import fcntl
import os
import pathlib
import signal
import tempfile

from conspire import FileLockedError, InvalidNameError, PersistError, output

NEW_FILE_MODE = 0o644


def check_name(name):
    """Return `name` if it is usable as a group or secret file name.

    Dot-files are reserved for the vault's own temporary, lock and
    config files.
    """
    if (
        not name
        or name.startswith(".")
        or os.sep in name
        or (os.altsep and os.altsep in name)
    ):
        raise InvalidNameError.from_context(name)
    return name


@contextlib.contextmanager
def locked(filename):
    try:
        lockfile = open(filename, "a+")
    except OSError as e:
        raise PersistError.from_context(filename, e) from e
    with lockfile:
        try:
            fcntl.lockf(lockfile, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            raise FileLockedError.from_context(filename)
        # publishing the process id comes handy for debugging
        lockfile.seek(0)
        lockfile.truncate()
        print(os.getpid(), file=lockfile)
        lockfile.flush()
        try:
            yield
        finally:
            lockfile.seek(0)
            lockfile.truncate()


def atomic_write(path, data):
    """Replace `path` with `data` without ever exposing a partial file.

    The content goes to a temporary file next to `path` which is renamed
    over it once it is safely on disk. On any failure the temporary file
    is removed and the previous content of `path` stays in place.
    """
    path = pathlib.Path(path)
    try:
        mode = path.stat().st_mode & 0o777
    except FileNotFoundError:
        mode = NEW_FILE_MODE
    tmpname = None
    try:
        fd, tmpname = tempfile.mkstemp(
            prefix=".tmp.{}.".format(path.name), dir=str(path.parent)
        )
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmpname, mode)
        os.replace(tmpname, str(path))
    except OSError as e:
        raise PersistError.from_context(path, e) from e
    finally:
        # Only left over if the rename did not happen.
        if tmpname is not None and os.path.exists(tmpname):
            os.unlink(tmpname)
    _sync_directory(path.parent)


def _sync_directory(directory):
    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        output.annotate(f"Couldn't sync directory {directory}", debug=True)
    finally:
        os.close(fd)


class Terminated(SystemExit):
    """Raised from a signal handler so cleanup code gets to run."""


@contextlib.contextmanager
def terminate_gracefully(signals=(signal.SIGTERM, signal.SIGHUP)):
    """Turn termination signals into an exception for the duration.

    Without this a SIGTERM kills the process without running `finally`
    clauses or `__exit__` methods.
    """

    def handler(signum, frame):
        raise Terminated(128 + signum)

    previous = {}
    for signum in signals:
        previous[signum] = signal.signal(signum, handler)
    try:
        yield
    finally:
        for signum, old_handler in previous.items():
            signal.signal(signum, old_handler)
