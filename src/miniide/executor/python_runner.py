"""
Child-process entry point for Python snippets.

Invoked as ``python -I python_runner.py SNIPPET FAULT_FILE MAX_STEPS`` by
:class:`miniide.executor.python_executor.PythonExecutor`.  The snippet runs
in a fresh ``__main__`` namespace with the process's own standard streams.
Line events inside the snippet are counted, and the run aborts once
``MAX_STEPS`` is exceeded.

Errors raised by the snippet (syntax errors, uncaught exceptions, the step
limit) are written to ``FAULT_FILE`` so the parent can tell an interpreter
fault apart from a program that merely printed to stderr and exited
non-zero.  The parent's wall-clock timeout covers everything the step
counter cannot, such as user code that removes the trace function.

This module must only import the standard library.
"""

import sys
import traceback

SNIPPET_FILENAME = "<main>"
FAULT_EXIT_CODE = 1


class StepLimitExceeded(BaseException):
    """Derives from BaseException so ``except Exception`` cannot swallow it."""


def _exit_status(code):
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    sys.__stderr__.write(f"{code}\n")
    return 1


def _write_fault(path, message):
    with open(path, "w", encoding="utf-8") as f:
        f.write(message)


def _describe(exc):
    return "".join(traceback.format_exception_only(type(exc), exc)).strip()


def main(argv):
    snippet_path, fault_path, max_steps = argv[1], argv[2], int(argv[3])
    for stream in (sys.stdout, sys.stderr, sys.stdin):
        stream.reconfigure(encoding="utf-8", errors="replace")

    with open(snippet_path, encoding="utf-8") as f:
        code = f.read()
    try:
        compiled = compile(code, SNIPPET_FILENAME, "exec")
    except SyntaxError as exc:
        _write_fault(fault_path, _describe(exc))
        return FAULT_EXIT_CODE

    steps = 0

    def local_trace(frame, event, arg):
        nonlocal steps
        if event == "line":
            steps += 1
            if steps > max_steps:
                raise StepLimitExceeded()
        return local_trace

    def global_trace(frame, event, arg):
        if frame.f_code.co_filename == SNIPPET_FILENAME:
            return local_trace
        return None

    namespace = {"__name__": "__main__", "__builtins__": __builtins__}
    sys.settrace(global_trace)
    try:
        exec(compiled, namespace)
    except SystemExit as exc:
        return _exit_status(exc.code)
    except StepLimitExceeded:
        _write_fault(fault_path, f"Execution aborted: step limit of {max_steps} exceeded")
        return FAULT_EXIT_CODE
    except Exception as exc:
        _write_fault(fault_path, _describe(exc))
        return FAULT_EXIT_CODE
    finally:
        sys.settrace(None)
        for stream in (sys.__stdout__, sys.__stderr__):
            stream.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
