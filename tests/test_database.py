import pytest

from chartingest.database import (
    SCHEMA_SQL,
    Database,
    DatabaseError,
    lnam_refs_to_array_literal,
)
from chartingest.models import ChartInfo, Feature


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.last_sql = None

    def execute(self, sql, params=None):
        if self.conn.fail_on is not None and self.conn.fail_on in sql:
            raise RuntimeError("driver failure")
        self.last_sql = sql
        self.conn.executed.append((sql, params))

    def fetchone(self):
        for fragment, row in self.conn.rows:
            if fragment in self.last_sql:
                return row
        return None

    def close(self):
        self.conn.cursors_closed += 1


class FakeConnection:
    def __init__(self, rows=(), fail_on=None):
        self.rows = list(rows)
        self.fail_on = fail_on
        self.executed = []
        self.commits = 0
        self.rollbacks = 0
        self.cursors_closed = 0
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True


def make_db(conn):
    seen = []

    def connect(dsn):
        seen.append(dsn)
        return conn

    db = Database("postgresql://localhost/njord", connect)
    return db, seen


def failing_connect(dsn):
    raise ConnectionError("refused")


def test_array_literal_empty_is_null():
    assert lnam_refs_to_array_literal([]) == "NULL"


def test_array_literal_lists_refs_in_order():
    assert lnam_refs_to_array_literal(["a", "b"]) == "ARRAY['a','b']::varchar[]"


def test_array_literal_doubles_single_quotes():
    assert lnam_refs_to_array_literal(["x'y"]) == "ARRAY['x''y']::varchar[]"


def test_connect_receives_connection_string():
    conn = FakeConnection()
    db, seen = make_db(conn)
    assert seen == ["postgresql://localhost/njord"]
    assert db.is_connected() is True


def test_failed_connect_leaves_database_disconnected():
    db = Database("postgresql://localhost/njord", failing_connect)
    assert db.is_connected() is False
    assert isinstance(db.connect_error, ConnectionError)
    with pytest.raises(DatabaseError):
        db.chart_count()
    with pytest.raises(DatabaseError):
        db.insert_features(1, [])


def test_init_schema_creates_extension_then_schema():
    conn = FakeConnection()
    db, _ = make_db(conn)
    db.init_schema()
    assert [sql for sql, _ in conn.executed] == [
        "CREATE EXTENSION IF NOT EXISTS postgis",
        SCHEMA_SQL,
    ]
    assert conn.commits == 1


def test_insert_chart_returns_id_and_passes_fields_in_order():
    conn = FakeConnection(rows=[("INSERT INTO charts", (42,))])
    db, _ = make_db(conn)
    chart = ChartInfo(
        name="US5MA1AM", scale=20000, file_name="US5MA1AM.000",
        updated="20240101", issued="20231201", zoom=14,
        covr_geojson="{}", dsid_props="{}", chart_txt="{}",
    )
    assert db.insert_chart(chart) == 42
    sql, params = conn.executed[0]
    assert "RETURNING id" in sql
    assert params == (
        "US5MA1AM", 20000, "US5MA1AM.000", "20240101", "20231201", 14,
        "{}", "{}", "{}",
    )
    assert conn.commits == 1


def test_insert_chart_without_returned_row_raises():
    conn = FakeConnection()
    db, _ = make_db(conn)
    with pytest.raises(DatabaseError):
        db.insert_chart(ChartInfo(name="X"))


def test_insert_feature_embeds_lnam_literal_and_params():
    conn = FakeConnection()
    db, _ = make_db(conn)
    feature = Feature(
        layer="BOYLAT", geom_geojson="{}", props_json="{}",
        min_z=3, max_z=20, lnam_refs=["a", "b"],
    )
    db.insert_feature(7, feature)
    sql, params = conn.executed[0]
    assert "ARRAY['a','b']::varchar[]" in sql
    assert params == ("BOYLAT", "{}", "{}", 7, 3, 20)
    assert conn.commits == 1


def test_insert_feature_without_refs_uses_null():
    conn = FakeConnection()
    db, _ = make_db(conn)
    db.insert_feature(1, Feature(layer="LNDARE"))
    sql, _ = conn.executed[0]
    assert ", NULL, int4range(" in sql


def test_percent_in_refs_is_escaped_for_placeholders():
    conn = FakeConnection()
    db, _ = make_db(conn)
    db.insert_feature(1, Feature(layer="L", lnam_refs=["50%"]))
    sql, _ = conn.executed[0]
    assert "'50%%'" in sql


def test_insert_features_empty_touches_nothing():
    conn = FakeConnection()
    db, _ = make_db(conn)
    db.insert_features(1, [])
    assert conn.executed == []
    assert conn.commits == 0


def test_insert_features_uses_one_transaction():
    conn = FakeConnection()
    db, _ = make_db(conn)
    features = [Feature(layer=f"L{n}") for n in range(3)]
    db.insert_features(9, features)
    assert [params[0] for _, params in conn.executed] == ["L0", "L1", "L2"]
    assert all(params[3] == 9 for _, params in conn.executed)
    assert conn.commits == 1


def test_driver_failure_rolls_back_and_raises():
    conn = FakeConnection(fail_on="INSERT INTO features")
    db, _ = make_db(conn)
    with pytest.raises(DatabaseError) as info:
        db.insert_features(1, [Feature(layer="A")])
    assert isinstance(info.value.__cause__, RuntimeError)
    assert conn.rollbacks == 1
    assert conn.commits == 0
    assert conn.cursors_closed == 1


@pytest.mark.parametrize("count,expected", [((0,), False), ((2,), True)])
def test_chart_exists(count, expected):
    conn = FakeConnection(rows=[("SELECT COUNT(*) FROM charts", count)])
    db, _ = make_db(conn)
    assert db.chart_exists("ABC") is expected
    assert conn.executed[0][1] == ("ABC",)


def test_delete_missing_chart_only_looks_it_up():
    conn = FakeConnection()
    db, _ = make_db(conn)
    db.delete_chart("ABC")
    assert len(conn.executed) == 1
    assert conn.commits == 1


def test_delete_chart_removes_features_before_chart():
    conn = FakeConnection(rows=[("SELECT id FROM charts", (5,))])
    db, _ = make_db(conn)
    db.delete_chart("ABC")
    statements = [sql for sql, _ in conn.executed]
    assert statements[1].startswith("DELETE FROM features")
    assert statements[2].startswith("DELETE FROM charts")
    assert conn.executed[1][1] == (5,)
    assert conn.executed[2][1] == (5,)


def test_counts_read_from_their_tables():
    conn = FakeConnection(
        rows=[("FROM charts", (3,)), ("FROM features", (120,))]
    )
    db, _ = make_db(conn)
    assert db.chart_count() == 3
    assert db.feature_count() == 120


def test_count_without_row_is_zero():
    conn = FakeConnection()
    db, _ = make_db(conn)
    assert db.chart_count() == 0


def test_context_manager_closes_connection():
    conn = FakeConnection()
    db, _ = make_db(conn)
    with db as opened:
        assert opened.is_connected() is True
    assert conn.closed is True
    assert db.is_connected() is False
    with pytest.raises(DatabaseError):
        db.feature_count()


def test_closed_driver_connection_counts_as_disconnected():
    conn = FakeConnection()
    db, _ = make_db(conn)
    conn.closed = True
    assert db.is_connected() is False