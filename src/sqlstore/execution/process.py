"""SQL execution delegated to an external SQL program.

The program (``deepdive-sql`` by default) receives the SQL text as its last
positional argument. Scalar queries go through its ``eval`` subcommand,
which prints result rows as tab-separated values.

Output Policy:
    For scalar extraction the first non-empty stdout line is authoritative.
    Extra lines are ignored and reported with a warning.

Timeout and Cancellation:
    ``SqlRunnerSettings.timeout_seconds`` bounds every invocation; on expiry
    the program is killed and SQL_EXECUTION_TIMEOUT is raised. ``cancel()``
    kills every running program and the blocked callers receive
    SQL_EXECUTION_CANCELLED.
"""

import os
import subprocess
import threading
import time
from typing import Dict, List, Optional

from sqlstore.common.exceptions import (
    configuration_error,
    sql_cancelled_error,
    sql_execution_error,
    sql_timeout_error,
)
from sqlstore.constants import ExecutionMode
from sqlstore.execution.base import SqlExecutor
from sqlstore.logging import get_logger
from sqlstore.settings import SqlRunnerSettings
from sqlstore.telemetry import get_meter
from sqlstore.utils.decorators import traced
from sqlstore.utils.sql import split_tsv_line, strip_statement_terminator

logger = get_logger(__name__)

_STOP_TIMEOUT = "timeout"
_STOP_CANCELLED = "cancelled"


class SqlProcessExecutor(SqlExecutor):
    """Runs SQL text through an external SQL program.

    Example:
        >>> executor = SqlProcessExecutor(SqlRunnerSettings())
        >>> executor.execute_sql_queries("CREATE TABLE dd_x (id bigint);")
        >>> executor.execute_sql_query_get_tsv("SELECT 10, 20;", 1)
        '20'
    """

    def __init__(self, settings: Optional[SqlRunnerSettings] = None):
        self.settings = settings or SqlRunnerSettings()
        self._lock = threading.Lock()
        self._running: Dict[int, subprocess.Popen] = {}
        self._stop_reasons: Dict[int, str] = {}
        self._invocations = get_meter(__name__).create_counter(
            "sqlstore.sql_runner.invocations",
            description="External SQL program invocations by mode and exit status",
        )

    def build_command(self, sql: str, mode: ExecutionMode = ExecutionMode.SCRIPT) -> List[str]:
        """Argument vector for one invocation of the SQL program."""
        if mode == ExecutionMode.EVAL:
            return [*self.settings.command, self.settings.eval_subcommand, strip_statement_terminator(sql)]
        return [*self.settings.command, sql]

    def _environment(self) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(self.settings.env)
        return env

    def _spawn(self, args: List[str], sql: str, merge_stderr: bool) -> subprocess.Popen:
        try:
            proc = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
                text=True,
                env=self._environment(),
            )
        except FileNotFoundError as e:
            raise configuration_error(
                f"SQL program not found: {args[0]}",
                config_key="sql_runner.command",
                cause=e,
            )
        except OSError as e:
            raise sql_execution_error(sql, None, cause=e)

        with self._lock:
            self._running[proc.pid] = proc
        return proc

    def _stop(self, proc: subprocess.Popen, reason: str) -> bool:
        with self._lock:
            if proc.pid not in self._running or proc.pid in self._stop_reasons:
                return False
            if proc.poll() is not None:
                return False
            self._stop_reasons[proc.pid] = reason
        logger.warning("Stopping SQL program", extra={"pid": proc.pid, "reason": reason})
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        return True

    def _finish(self, proc: subprocess.Popen, sql: str, mode: ExecutionMode, started: float) -> None:
        """Unregister the process and apply the exit-status policy."""
        with self._lock:
            self._running.pop(proc.pid, None)
            reason = self._stop_reasons.pop(proc.pid, None)

        exit_code = proc.returncode
        duration = time.time() - started
        self._invocations.add(1, {"mode": mode.value, "exit_code": str(exit_code)})

        if reason == _STOP_TIMEOUT:
            raise sql_timeout_error(sql, self.settings.timeout_seconds)
        if reason == _STOP_CANCELLED:
            raise sql_cancelled_error(sql)
        if exit_code != 0:
            raise sql_execution_error(sql, exit_code, details={"duration.seconds": f"{duration:.6f}"})

        logger.debug(
            "SQL program finished",
            extra={"mode": mode.value, "duration.seconds": f"{duration:.6f}"},
        )

    @traced(
        span_name="sqlstore.sql.process.execute",
        attribute_getter=lambda self, sql: self._span_attributes(sql, operation="execute"),
    )
    def execute_sql_queries(self, sql: str) -> None:
        """Run SQL statements, streaming the program's output to the log.

        Raises:
            DataStoreError: SQL_EXECUTION_FAILED with the exit code and the exact
                SQL text for a nonzero exit; SQL_EXECUTION_TIMEOUT or
                SQL_EXECUTION_CANCELLED when the program was stopped.
        """
        logger.debug("Executing SQL", extra={"sql": sql})
        started = time.time()
        proc = self._spawn(self.build_command(sql, ExecutionMode.SCRIPT), sql, merge_stderr=True)

        timer = None
        if self.settings.timeout_seconds is not None:
            timer = threading.Timer(self.settings.timeout_seconds, self._stop, (proc, _STOP_TIMEOUT))
            timer.daemon = True
            timer.start()

        try:
            for line in proc.stdout:
                logger.info(line.rstrip("\r\n"), extra={"pid": proc.pid})
            proc.wait()
        except BaseException:
            self._stop(proc, _STOP_CANCELLED)
            proc.wait()
            with self._lock:
                self._running.pop(proc.pid, None)
                self._stop_reasons.pop(proc.pid, None)
            raise
        finally:
            if timer is not None:
                timer.cancel()
            proc.stdout.close()

        self._finish(proc, sql, ExecutionMode.SCRIPT, started)

    @traced(
        span_name="sqlstore.sql.process.eval",
        attribute_getter=lambda self, sql, index=0: self._span_attributes(
            sql, operation="eval", extra={"sqlstore.tsv.index": index}
        ),
    )
    def execute_sql_query_get_tsv(self, sql: str, index: int) -> str:
        """Evaluate a query and return one field of its first output line.

        Raises:
            DataStoreError: same exit-status policy as ``execute_sql_queries``;
                CONVERSION_FAILED if ``index`` is past the last field.
        """
        logger.debug("Executing SQL", extra={"sql": sql, "mode": ExecutionMode.EVAL.value})
        started = time.time()
        proc = self._spawn(self.build_command(sql, ExecutionMode.EVAL), sql, merge_stderr=False)

        try:
            stdout, stderr = proc.communicate(timeout=self.settings.timeout_seconds)
        except subprocess.TimeoutExpired:
            self._stop(proc, _STOP_TIMEOUT)
            stdout, stderr = proc.communicate()
        except BaseException:
            self._stop(proc, _STOP_CANCELLED)
            proc.communicate()
            with self._lock:
                self._running.pop(proc.pid, None)
                self._stop_reasons.pop(proc.pid, None)
            raise

        for line in (stderr or "").splitlines():
            logger.warning(line, extra={"pid": proc.pid})

        self._finish(proc, sql, ExecutionMode.EVAL, started)

        lines = [line for line in (stdout or "").splitlines() if line]
        if len(lines) > 1:
            logger.warning(
                "SQL program emitted several lines; using the first",
                extra={"line_count": len(lines), "sql": sql},
            )
        first = lines[0] if lines else ""
        return self._select_field(split_tsv_line(first), index, sql)

    def cancel(self) -> int:
        """Kill every running SQL program.

        Returns:
            Number of programs that were signalled
        """
        with self._lock:
            running = list(self._running.values())
        return sum(1 for proc in running if self._stop(proc, _STOP_CANCELLED))
