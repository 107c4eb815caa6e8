import subprocess

from .errors import InvocationError

MAX_OUTPUT_BYTES = 10 * 1024 * 1024


def run_command(argv, timeout, max_output=MAX_OUTPUT_BYTES):
    """
    Run an external tool and return its stdout.

    Timeouts, a missing binary, oversize output and non-zero exit statuses are
    all raised as InvocationError so callers handle one failure type.
    """
    try:
        result = subprocess.run(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise InvocationError(f"{argv[0]} timed out after {timeout}s") from e
    except OSError as e:
        raise InvocationError(f"{argv[0]} could not be started: {e}") from e

    stdout = result.stdout or ""
    if len(stdout) > max_output:
        raise InvocationError(f"{argv[0]} output exceeded {max_output} bytes")
    if result.returncode != 0:
        detail = (result.stderr or "").strip() or f"exit status {result.returncode}"
        raise InvocationError(f"{argv[0]} failed: {detail}", returncode=result.returncode)
    return stdout
