import subprocess
from ..cli_logger import logger

def run_shell_command(command, env=None, input_data=None, cwd=None, timeout=None):
    """
    Executes an external command and captures its output.

    Args:
        command (list): The command to execute as a list of strings.
        env (dict, optional): A dictionary of environment variables.
        input_data (str, optional): Data to be passed to the command's stdin.
        cwd (str, optional): The working directory for the command.
        timeout (float, optional): Seconds to wait before the command is killed.

    Returns:
        A tuple (stdout, stderr, return_code). A command that cannot be started
        or that times out is reported with return code -1.
    """
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            env=env,
            input=input_data,
            check=False,
            cwd=cwd,
            timeout=timeout,
        )
        return result.stdout, result.stderr, result.returncode

    except FileNotFoundError as e:
        logger.error(f"Command not found: {e.filename}")
        return "", str(e), -1
    except subprocess.TimeoutExpired as e:
        logger.error(f"Command timed out after {timeout}s: {' '.join(command)}")
        stdout = e.stdout.decode(errors="replace") if isinstance(e.stdout, bytes) else (e.stdout or "")
        return stdout, f"Timed out after {timeout} seconds", -1
    except OSError as e:
        logger.error(f"An unexpected error occurred: {e}")
        return "", str(e), -1
