import os

from .errors import FileError, FlasherError


class AlreadyRunning(FlasherError):
    pass


def _alive(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # exists, owned by somebody else
        return True
    return True


def read_pid(path):
    try:
        with open(path) as f:
            return int(f.read().strip())
    except (OSError, ValueError):
        return None


class PidFile:
    """Hold PATH with our pid for the lifetime of the `with` block."""

    def __init__(self, path):
        self.path = path
        self.owned = False

    def __enter__(self):
        if self.path is None:
            return self
        pid = read_pid(self.path)
        if pid and pid != os.getpid() and _alive(pid):
            raise AlreadyRunning('Another copy of this process found, pid={}. Exit.'.format(pid))
        try:
            with open(self.path, "w") as f:
                f.write(str(os.getpid()) + "\n")
        except OSError as ex:
            raise FileError("Can't write pid file {}: {}".format(self.path, ex.strerror or ex)) from ex
        self.owned = True
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.owned:
            self.owned = False
            try:
                os.unlink(self.path)
            except FileNotFoundError:
                pass
        return False
