"""Tests for BackendCapabilityProbe."""

import threading
import time
from unittest.mock import Mock

import pytest

from sqlstore.backends import BackendCapabilityProbe
from sqlstore.constants import BackendType
from sqlstore.execution import SqlExecutor

XL_PROBE = "SELECT version() LIKE '%Postgres-XL%';"
GREENPLUM_PROBE = "SELECT version() LIKE '%Greenplum%';"


class TestBackendCapabilityProbe:

    @pytest.fixture
    def executor(self):
        executor = Mock(spec=SqlExecutor)
        executor.execute_sql_query_get_boolean.return_value = False
        return executor

    @pytest.fixture
    def probe(self, executor):
        return BackendCapabilityProbe(executor)

    def test_exists_language_queries_catalog(self, probe, executor):
        executor.execute_sql_query_get_boolean.return_value = True
        assert probe.exists_language("plpgsql") is True
        sql = executor.execute_sql_query_get_boolean.call_args.args[0]
        assert "pg_language" in sql
        assert "lanname = 'plpgsql'" in sql

    def test_exists_function_escapes_literal(self, probe, executor):
        probe.exists_function("o'brien")
        sql = executor.execute_sql_query_get_boolean.call_args.args[0]
        assert "information_schema.routines" in sql
        assert "routine_name = 'o''brien'" in sql

    def test_catalog_probes_are_not_cached(self, probe, executor):
        probe.exists_language("plpgsql")
        probe.exists_language("plpgsql")
        probe.is_using_greenplum()
        probe.is_using_greenplum()
        assert executor.execute_sql_query_get_boolean.call_count == 4

    def test_postgres_xl_flag_is_computed_once(self, probe, executor):
        executor.execute_sql_query_get_boolean.side_effect = [True, False, False]
        assert probe.is_using_postgres_xl is True
        assert probe.is_using_postgres_xl is True
        assert probe.unlogged == "UNLOGGED"
        executor.execute_sql_query_get_boolean.assert_called_once_with(XL_PROBE)

    def test_postgres_xl_flag_is_per_probe(self, executor):
        executor.execute_sql_query_get_boolean.side_effect = [True, False]
        assert BackendCapabilityProbe(executor).is_using_postgres_xl is True
        assert BackendCapabilityProbe(executor).is_using_postgres_xl is False

    def test_unlogged_empty_when_not_xl(self, probe):
        assert probe.unlogged == ""

    def test_concurrent_first_access_probes_once(self, executor):
        calls = []

        def slow_probe(sql, index=0):
            calls.append(sql)
            time.sleep(0.05)
            return True

        executor.execute_sql_query_get_boolean.side_effect = slow_probe
        probe = BackendCapabilityProbe(executor)
        results = []
        threads = [threading.Thread(target=lambda: results.append(probe.is_using_postgres_xl)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == [True] * 8
        assert calls == [XL_PROBE]

    def test_warm_up_loads_cached_flag(self, probe, executor):
        assert not BackendCapabilityProbe.is_using_postgres_xl.is_loaded(probe)
        probe.warm_up()
        assert BackendCapabilityProbe.is_using_postgres_xl.is_loaded(probe)
        probe.unlogged
        assert executor.execute_sql_query_get_boolean.call_count == 1

    @pytest.mark.parametrize(
        "xl, greenplum, expected",
        [
            (True, False, BackendType.POSTGRES_XL),
            (True, True, BackendType.POSTGRES_XL),
            (False, True, BackendType.GREENPLUM),
            (False, False, BackendType.POSTGRES),
        ],
    )
    def test_detect_backend_type(self, probe, executor, xl, greenplum, expected):
        answers = {XL_PROBE: xl, GREENPLUM_PROBE: greenplum}
        executor.execute_sql_query_get_boolean.side_effect = lambda sql, index=0: answers[sql]
        assert probe.detect_backend_type() == expected
