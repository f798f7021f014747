"""Process-group helpers for tearing down engine subprocesses."""

import os
import signal


def kill_process_tree(pid: int, sig: int = signal.SIGKILL) -> None:
    """Signal the engine's whole process group, falling back to the single pid.

    The task runner spawns the engine with start_new_session=True, so the
    engine and anything it forks share one group that killpg reaches.
    """
    try:
        os.killpg(os.getpgid(pid), sig)
    except (ProcessLookupError, PermissionError):
        pass
    except OSError:
        # Not a group leader; signal the process alone
        try:
            os.kill(pid, sig)
        except (ProcessLookupError, PermissionError):
            pass

