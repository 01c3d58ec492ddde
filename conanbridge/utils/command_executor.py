import os
import subprocess
from ..cli_logger import logger

def run_command(command, cwd=None, extra_env=None):
    """
    Runs an external tool and waits for it.

    Args:
        command (list): The command and its arguments.
        cwd (str, optional): The working directory for the command.
        extra_env (dict, optional): Variables added to the current environment.

    Returns:
        A tuple (stdout, stderr, return_code). A tool that cannot be started
        yields return code -1 and the reason in stderr.
    """
    env = None
    if extra_env:
        env = dict(os.environ)
        env.update(extra_env)

    logger.debug(f"Executing: {' '.join(str(part) for part in command)}")
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            env=env,
            check=False,
            cwd=cwd
        )
    except FileNotFoundError as e:
        logger.error(f"Command not found: {e.filename or command[0]}")
        return "", str(e), -1
    except OSError as e:
        logger.error(f"Could not run {command[0]}: {e}")
        return "", str(e), -1
    return result.stdout, result.stderr, result.returncode
