"""Tests for backend policies and policy selection."""

from unittest.mock import Mock, call

import pytest

from sqlstore.backends import (
    BackendCapabilityProbe,
    BackendPolicy,
    GreenplumPolicy,
    PostgresPolicy,
    PostgresXLPolicy,
    create_policy,
    resolve_backend_type,
)
from sqlstore.backends.greenplum import FAST_SEQASSIGN_SQL
from sqlstore.common.exceptions import DataStoreError, ErrorCode
from sqlstore.constants import BackendSelection, BackendType
from sqlstore.execution import SqlExecutor


@pytest.fixture
def executor():
    executor = Mock(spec=SqlExecutor)
    executor.execute_sql_query_get_long.return_value = 3
    executor.execute_sql_query_get_boolean.return_value = True
    return executor


class TestBackendPolicyContract:

    def test_base_policy_is_abstract(self, executor):
        with pytest.raises(TypeError):
            BackendPolicy(executor)

    def test_partial_policy_cannot_be_instantiated(self, executor):
        class HalfPolicy(BackendPolicy):
            def cast(self, expr, to_type):
                return f"{expr}::{to_type}"

        with pytest.raises(TypeError):
            HalfPolicy(executor)

    @pytest.mark.parametrize("policy_class", [PostgresPolicy, GreenplumPolicy, PostgresXLPolicy])
    def test_variants_are_concrete(self, executor, policy_class):
        policy = policy_class(executor)
        assert isinstance(policy, BackendPolicy)
        assert isinstance(policy.probe, BackendCapabilityProbe)


class TestPostgresPolicy:

    @pytest.fixture
    def policy(self, executor):
        return PostgresPolicy(executor)

    def test_sql_builders(self, policy):
        assert policy.create_sequence_function("dd_seq") == (
            "DROP SEQUENCE IF EXISTS dd_seq CASCADE; CREATE SEQUENCE dd_seq MINVALUE -1 START 0;"
        )
        assert policy.cast("x", "bigint") == "CAST(x AS bigint)"
        assert policy.cast(1, "text") == "CAST(1 AS text)"
        assert policy.quote_column("id") == '"id"'
        assert policy.quote_column('we"ird') == '"we""ird"'
        assert policy.random_function == "RANDOM()"
        assert policy.analyze_table("dd_labels") == "ANALYZE dd_labels;"

    def test_concat(self, policy):
        assert policy.concat(["a", "b", "c"], "-") == "a || '-' || b || '-' || c"
        assert policy.concat(["a", "b"], "'") == "a || '''' || b"
        assert policy.concat(["a", "b"], "") == "a || b"
        assert policy.concat([], ",") == "''"

    def test_assign_ids(self, policy, executor):
        assert policy.assign_ids("dd_labels", 100, "dd_seq") == 3
        executor.execute_sql_queries.assert_called_once_with(
            "ALTER SEQUENCE dd_seq RESTART 100; UPDATE dd_labels SET id = nextval('dd_seq');"
        )
        executor.execute_sql_query_get_long.assert_called_once_with("SELECT COUNT(*) FROM dd_labels;")

    def test_assign_ids_ordered(self, policy, executor):
        assert policy.assign_ids_ordered("dd_labels", 10, "dd_seq", "val DESC") == 3
        assert executor.execute_sql_queries.call_args_list == [
            call(
                "UPDATE dd_labels AS t SET id = 10 + o.rn - 1 "
                "FROM (SELECT ctid AS row_ctid, row_number() OVER (ORDER BY val DESC) AS rn FROM dd_labels) AS o "
                "WHERE t.ctid = o.row_ctid;"
            ),
            call("ALTER SEQUENCE dd_seq RESTART 13;"),
        ]

    def test_assign_ids_ordered_without_order(self, policy):
        assert "row_number() OVER () AS rn" in policy.ordered_update_sql("dd_labels", 0)

    def test_exists_table(self, policy, executor):
        assert policy.exists_table("dd_labels") is True
        sql = executor.execute_sql_query_get_boolean.call_args.args[0]
        assert "information_schema.tables" in sql
        assert "table_name = 'dd_labels'" in sql

    def test_create_special_udfs_runs_nothing(self, policy, executor):
        policy.create_special_udfs()
        executor.execute_sql_queries.assert_not_called()


class TestGreenplumPolicy:

    def test_create_special_udfs_installs_function(self, executor):
        GreenplumPolicy(executor).create_special_udfs()
        executor.execute_sql_queries.assert_called_once_with(FAST_SEQASSIGN_SQL)

    def test_create_special_udfs_installs_language_first(self, executor):
        executor.execute_sql_query_get_boolean.return_value = False
        GreenplumPolicy(executor).create_special_udfs()
        assert executor.execute_sql_queries.call_args_list == [
            call("CREATE LANGUAGE plpgsql;"),
            call(FAST_SEQASSIGN_SQL),
        ]

    def test_fast_seqassign_is_segment_aware(self):
        assert "LANGUAGE plpgsql" in FAST_SEQASSIGN_SQL
        assert "gp_segment_id" in FAST_SEQASSIGN_SQL

    def test_assign_ids_uses_udf(self, executor):
        assert GreenplumPolicy(executor).assign_ids("DD_Labels", 5, "dd_seq") == 3
        executor.execute_sql_queries.assert_called_once_with("SELECT fast_seqassign('dd_labels', 5);")

    def test_ordered_update_joins_on_segment(self, executor):
        sql = GreenplumPolicy(executor).ordered_update_sql("dd_labels", 1, "id")
        assert "t.gp_segment_id = o.row_gp_segment_id AND t.ctid = o.row_ctid" in sql


class TestPostgresXLPolicy:

    def test_ordered_update_joins_on_node(self, executor):
        sql = PostgresXLPolicy(executor).ordered_update_sql("dd_labels", 1, "id")
        assert "SELECT xc_node_id AS row_xc_node_id, ctid AS row_ctid" in sql
        assert "t.xc_node_id = o.row_xc_node_id AND t.ctid = o.row_ctid" in sql

    def test_assign_ids_numbers_rows_by_node(self, executor):
        assert PostgresXLPolicy(executor).assign_ids("dd_labels", 0, "dd_seq") == 3
        first_sql = executor.execute_sql_queries.call_args_list[0].args[0]
        assert "ORDER BY xc_node_id, ctid" in first_sql


class TestPolicyFactory:

    @pytest.mark.parametrize(
        "backend_type, policy_class",
        [
            (BackendType.POSTGRES, PostgresPolicy),
            (BackendType.GREENPLUM, GreenplumPolicy),
            (BackendType.POSTGRES_XL, PostgresXLPolicy),
            ("greenplum", GreenplumPolicy),
        ],
    )
    def test_create_policy(self, executor, backend_type, policy_class):
        policy = create_policy(backend_type, executor)
        assert type(policy) is policy_class

    def test_create_policy_shares_probe(self, executor):
        probe = BackendCapabilityProbe(executor)
        assert create_policy(BackendType.POSTGRES, executor, probe).probe is probe

    def test_unknown_backend(self, executor):
        with pytest.raises(DataStoreError) as exc_info:
            create_policy("mysql", executor)
        assert exc_info.value.error_code == ErrorCode.PLATFORM_NOT_SUPPORTED

    def test_resolve_explicit_selection_does_not_probe(self, executor):
        probe = Mock(spec=BackendCapabilityProbe)
        assert resolve_backend_type(BackendSelection.POSTGRES_XL, probe) == BackendType.POSTGRES_XL
        probe.detect_backend_type.assert_not_called()

    def test_resolve_auto_probes(self, executor):
        probe = Mock(spec=BackendCapabilityProbe)
        probe.detect_backend_type.return_value = BackendType.GREENPLUM
        assert resolve_backend_type(BackendSelection.AUTO, probe) == BackendType.GREENPLUM
        assert resolve_backend_type("auto", probe) == BackendType.GREENPLUM

    def test_resolve_unknown(self):
        with pytest.raises(DataStoreError):
            resolve_backend_type("oracle", Mock(spec=BackendCapabilityProbe))
