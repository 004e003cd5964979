"""Tests for SqlProcessExecutor against a fake SQL program."""

import json
import logging
import sys
import threading
import time
from pathlib import Path

import pytest

from sqlstore.common.exceptions import DataStoreError, ErrorCode
from sqlstore.constants import ExecutionMode
from sqlstore.execution.base import SqlExecutor
from sqlstore.execution.process import SqlProcessExecutor
from sqlstore.settings import SqlRunnerSettings

FAKE_RUNNER = Path(__file__).resolve().parents[1] / "fixtures" / "fake_sql_runner.py"


class TestSqlProcessExecutor:
    """Exit status, output parsing, timeout and cancellation."""

    @pytest.fixture
    def argv_log(self, tmp_path):
        return tmp_path / "argv.jsonl"

    @pytest.fixture
    def make_executor(self, argv_log):
        def _make(timeout_seconds=None, **env):
            settings = SqlRunnerSettings(
                command=[sys.executable, str(FAKE_RUNNER)],
                timeout_seconds=timeout_seconds,
                env={"FAKE_SQL_LOG": str(argv_log), **env},
            )
            return SqlProcessExecutor(settings)
        return _make

    @staticmethod
    def _invocations(argv_log):
        return [json.loads(line) for line in argv_log.read_text().splitlines()]

    def test_build_command_modes(self):
        executor = SqlProcessExecutor(SqlRunnerSettings(command=["deepdive-sql"]))
        assert executor.build_command("SELECT 1;") == ["deepdive-sql", "SELECT 1;"]
        assert executor.build_command("SELECT 1; \n", ExecutionMode.EVAL) == ["deepdive-sql", "eval", "SELECT 1"]

    def test_execute_returns_on_exit_zero(self, make_executor, argv_log):
        executor = make_executor()
        assert executor.execute_sql_queries("CREATE TABLE dd_x (id bigint);") is None
        assert self._invocations(argv_log) == [["CREATE TABLE dd_x (id bigint);"]]

    def test_execute_streams_output_to_log(self, make_executor, caplog):
        executor = make_executor(FAKE_SQL_STDOUT="CREATE TABLE\n", FAKE_SQL_STDERR="NOTICE: hello\n")
        with caplog.at_level(logging.INFO, logger="sqlstore.execution.process"):
            executor.execute_sql_queries("CREATE TABLE dd_x (id bigint);")
        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
        assert "CREATE TABLE" in messages
        assert "NOTICE: hello" in messages

    @pytest.mark.parametrize("exit_code", [1, 3, 42])
    def test_execute_nonzero_exit_raises_with_code_and_sql(self, make_executor, exit_code):
        executor = make_executor(FAKE_SQL_EXIT=str(exit_code))
        sql = "DROP TABLE IF EXISTS dd_x CASCADE;"
        with pytest.raises(DataStoreError) as exc_info:
            executor.execute_sql_queries(sql)
        error = exc_info.value
        assert error.error_code == ErrorCode.SQL_EXECUTION_FAILED
        assert error.exit_code == exit_code
        assert error.sql == sql
        assert error.message == f"Failure (exit status = {exit_code}) while executing SQL: {sql}"

    def test_get_tsv_selects_field_and_strips_terminator(self, make_executor, argv_log):
        executor = make_executor(FAKE_SQL_STDOUT="10\t20\n")
        assert executor.execute_sql_query_get_tsv("SELECT 10, 20;", 1) == "20"
        argv = self._invocations(argv_log)[0]
        assert argv == ["eval", "SELECT 10, 20"]

    def test_get_tsv_uses_first_line(self, make_executor, caplog):
        executor = make_executor(FAKE_SQL_STDOUT="first\nsecond\n")
        with caplog.at_level(logging.WARNING, logger="sqlstore.execution.process"):
            assert executor.execute_sql_query_get_tsv("SELECT x FROM dd_t;", 0) == "first"
        assert any("several lines" in r.getMessage() for r in caplog.records)

    def test_get_tsv_empty_output(self, make_executor):
        executor = make_executor()
        assert executor.execute_sql_query_get_tsv("SELECT NULL WHERE false;", 0) == ""

    def test_get_tsv_index_out_of_range(self, make_executor):
        executor = make_executor(FAKE_SQL_STDOUT="10\t20\n")
        with pytest.raises(DataStoreError) as exc_info:
            executor.execute_sql_query_get_tsv("SELECT 10, 20;", 2)
        assert exc_info.value.error_code == ErrorCode.CONVERSION_FAILED

    def test_get_tsv_nonzero_exit(self, make_executor):
        executor = make_executor(FAKE_SQL_EXIT="2", FAKE_SQL_STDERR="ERROR: syntax\n")
        with pytest.raises(DataStoreError) as exc_info:
            executor.execute_sql_query_get_tsv("SELEC 1;", 0)
        assert exc_info.value.exit_code == 2
        assert exc_info.value.sql == "SELEC 1;"

    @pytest.mark.parametrize(
        "output, expected",
        [("t\n", True), ("f\n", False), ("", False), ("true\n", False), ("T\n", False)],
    )
    def test_get_boolean_is_exact_t(self, make_executor, output, expected):
        executor = make_executor(FAKE_SQL_STDOUT=output)
        assert executor.execute_sql_query_get_boolean("SELECT true;") is expected

    def test_get_long(self, make_executor):
        executor = make_executor(FAKE_SQL_STDOUT="7\t-42\n")
        assert executor.execute_sql_query_get_long("SELECT 7, -42;") == 7
        assert executor.execute_sql_query_get_long("SELECT 7, -42;", 1) == -42

    @pytest.mark.parametrize("field", ["abc", "1_000", " 42", "42 ", "", "4.0", "9223372036854775808"])
    def test_get_long_conversion_error(self, make_executor, field):
        executor = make_executor(FAKE_SQL_STDOUT=f"{field}\tx\n")
        with pytest.raises(DataStoreError) as exc_info:
            executor.execute_sql_query_get_long("SELECT 1, 'x';")
        assert exc_info.value.error_code == ErrorCode.CONVERSION_FAILED
        assert exc_info.value.details["value"] == field

    def test_get_long_bounds(self, make_executor):
        executor = make_executor(FAKE_SQL_STDOUT="9223372036854775807\t-9223372036854775808\t+5\n")
        assert executor.execute_sql_query_get_long("SELECT 1;", 0) == 2 ** 63 - 1
        assert executor.execute_sql_query_get_long("SELECT 1;", 1) == -(2 ** 63)
        assert executor.execute_sql_query_get_long("SELECT 1;", 2) == 5

    def test_execute_timeout(self, make_executor):
        executor = make_executor(timeout_seconds=0.5, FAKE_SQL_SLEEP="30")
        started = time.time()
        with pytest.raises(DataStoreError) as exc_info:
            executor.execute_sql_queries("SELECT pg_sleep(30);")
        assert exc_info.value.error_code == ErrorCode.SQL_EXECUTION_TIMEOUT
        assert time.time() - started < 20

    def test_eval_timeout(self, make_executor):
        executor = make_executor(timeout_seconds=0.5, FAKE_SQL_SLEEP="30")
        with pytest.raises(DataStoreError) as exc_info:
            executor.execute_sql_query_get_tsv("SELECT pg_sleep(30);", 0)
        assert exc_info.value.error_code == ErrorCode.SQL_EXECUTION_TIMEOUT

    def test_cancel_stops_running_program(self, make_executor):
        executor = make_executor(FAKE_SQL_SLEEP="30")
        errors = []

        def run():
            try:
                executor.execute_sql_queries("SELECT pg_sleep(30);")
            except DataStoreError as e:
                errors.append(e)

        worker = threading.Thread(target=run)
        worker.start()

        deadline = time.time() + 10
        while not executor._running and time.time() < deadline:
            time.sleep(0.01)

        assert executor.cancel() == 1
        worker.join(timeout=10)
        assert not worker.is_alive()
        assert [e.error_code for e in errors] == [ErrorCode.SQL_EXECUTION_CANCELLED]

    def test_exited_program_is_not_reported_as_stopped(self, make_executor):
        executor = make_executor(FAKE_SQL_STDOUT="done\n")
        sql = "SELECT 1;"
        proc = executor._spawn(executor.build_command(sql), sql, merge_stderr=True)
        proc.communicate()

        assert executor._stop(proc, "timeout") is False
        assert executor.cancel() == 0
        executor._finish(proc, sql, ExecutionMode.SCRIPT, time.time())
        assert not executor._running

    def test_cancel_with_nothing_running(self, make_executor):
        assert make_executor().cancel() == 0

    def test_missing_program_is_configuration_error(self, tmp_path):
        settings = SqlRunnerSettings(command=[str(tmp_path / "no-such-program")])
        with pytest.raises(DataStoreError) as exc_info:
            SqlProcessExecutor(settings).execute_sql_queries("SELECT 1;")
        assert exc_info.value.error_code == ErrorCode.CONFIG_ERROR
        assert exc_info.value.details["config_key"] == "sql_runner.command"

    def test_query_update_runs_statements(self, make_executor, argv_log):
        make_executor().query_update("UPDATE dd_t SET id = 1;")
        assert self._invocations(argv_log) == [["UPDATE dd_t SET id = 1;"]]


class _FixedFieldExecutor(SqlExecutor):

    def __init__(self, field):
        self.field = field

    def execute_sql_queries(self, sql):
        pass

    def execute_sql_query_get_tsv(self, sql, index):
        return self.field

    def cancel(self):
        return 0


class TestScalarParsing:
    """Integer parsing shared by every executor."""

    @pytest.mark.parametrize("field", ["٣", "４２", "0x10", "+-1"])
    def test_get_long_rejects_non_ascii_and_malformed_digits(self, field):
        with pytest.raises(DataStoreError) as exc_info:
            _FixedFieldExecutor(field).execute_sql_query_get_long("SELECT 1;")
        assert exc_info.value.error_code == ErrorCode.CONVERSION_FAILED

    def test_get_long_accepts_signed_digits(self):
        assert _FixedFieldExecutor("-0042").execute_sql_query_get_long("SELECT 1;") == -42
