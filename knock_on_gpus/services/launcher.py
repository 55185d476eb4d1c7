import logging
import os
import subprocess
from typing import Dict, List, Mapping, Optional

from knock_on_gpus.errors import LaunchError

logger = logging.getLogger(__name__)


class CommandLauncher:
    """Runs the user command once the GPUs are known to be vacant."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = os.environ if environ is None else environ

    def build_environment(self, environment: Dict[str, str]) -> Dict[str, str]:
        env = dict(self._environ)
        env.update(environment)
        return env

    def run(self, command: List[str], environment: Dict[str, str]) -> int:
        """Run ``command`` and wait for it.

        Returns the child's exit code, with a signal death mapped to
        ``128 + signal`` like a shell does.
        """
        if not command:
            raise LaunchError("No command to execute")

        logger.debug("Running %s with %s", command, environment)
        try:
            completed = subprocess.run(command, env=self.build_environment(environment))
        except OSError as e:
            raise LaunchError(f"Failed to execute {command[0]}: {e}") from e

        if completed.returncode < 0:
            return 128 - completed.returncode
        return completed.returncode
