"""Storage of charts and features in a PostGIS database.

The database is reached through a DB-API 2.0 connection produced by the
*connect* callable given to :class:`Database`. That callable receives the
connection string. The driver must use the ``format`` parameter style
(``%s`` placeholders), as PostgreSQL drivers commonly do.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any, Optional

from chartingest.models import ChartInfo, Feature

_log = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS meta (
    key     VARCHAR UNIQUE NOT NULL,
    value   VARCHAR NULL
);

INSERT INTO meta VALUES ('version', '1') ON CONFLICT (key) DO NOTHING;

CREATE TABLE IF NOT EXISTS charts (
    id         BIGSERIAL PRIMARY KEY,
    name       VARCHAR UNIQUE           NOT NULL,
    scale      INTEGER                  NOT NULL,
    file_name  VARCHAR                  NOT NULL,
    updated    VARCHAR                  NOT NULL,
    issued     VARCHAR                  NOT NULL,
    zoom       INTEGER                  NOT NULL,
    covr       GEOMETRY(GEOMETRY, 4326) NOT NULL,
    dsid_props JSONB                    NOT NULL,
    chart_txt  JSONB                    NOT NULL
);

CREATE INDEX IF NOT EXISTS charts_gist ON charts USING GIST (covr);
CREATE INDEX IF NOT EXISTS charts_idx ON charts (id);

CREATE TABLE IF NOT EXISTS features (
    id        BIGSERIAL PRIMARY KEY,
    layer     VARCHAR                       NOT NULL,
    geom      GEOMETRY(GEOMETRY, 4326)      NOT NULL,
    props     JSONB                         NOT NULL,
    chart_id  BIGINT REFERENCES charts (id) NOT NULL,
    lnam_refs VARCHAR[]                     NULL,
    z_range   INT4RANGE                     NOT NULL
);

CREATE INDEX IF NOT EXISTS features_gist ON features USING GIST (geom);
CREATE INDEX IF NOT EXISTS features_idx ON features (id);
CREATE INDEX IF NOT EXISTS features_layer_idx ON features (layer);
CREATE INDEX IF NOT EXISTS features_zoom_idx ON features USING GIST (z_range);
CREATE INDEX IF NOT EXISTS features_lnam_idx ON features USING GIN (lnam_refs);
"""

_INSERT_CHART_SQL = (
    "INSERT INTO charts (name, scale, file_name, updated, issued, zoom, covr, "
    "dsid_props, chart_txt) "
    "VALUES (%s, %s, %s, %s, %s, %s, ST_SetSRID(ST_GeomFromGeoJSON(%s), 4326), "
    "%s::jsonb, %s::jsonb) RETURNING id"
)

_INSERT_FEATURE_SQL = (
    "INSERT INTO features (layer, geom, props, chart_id, lnam_refs, z_range) "
    "VALUES (%s, ST_SetSRID(ST_GeomFromGeoJSON(%s), 4326), %s::jsonb, %s, "
    "{lnam_refs}, int4range(%s, %s))"
)

Connect = Callable[[str], Any]


class DatabaseError(RuntimeError):
    """Raised when a database operation cannot be carried out."""


def lnam_refs_to_array_literal(refs: Sequence[str]) -> str:
    """Return a PostgreSQL ``varchar[]`` literal for the refs, or ``NULL``."""
    if not refs:
        return "NULL"
    quoted = ",".join("'" + ref.replace("'", "''") + "'" for ref in refs)
    return f"ARRAY[{quoted}]::varchar[]"


def _rollback_quietly(conn: Any) -> None:
    try:
        conn.rollback()
    except Exception:  # the original failure is the one worth reporting
        _log.debug("rollback failed", exc_info=True)


class Database:
    """A connection to the chart database."""

    def __init__(self, connection_string: str, connect: Connect) -> None:
        self.connection_string = connection_string
        self.connect_error: Optional[BaseException] = None
        try:
            self._conn: Any = connect(connection_string)
        except Exception as exc:
            _log.error("Database connection failed: %s", exc)
            self.connect_error = exc
            self._conn = None

    def is_connected(self) -> bool:
        """Return True while an open connection is held."""
        return self._conn is not None and not getattr(self._conn, "closed", False)

    def close(self) -> None:
        """Close the connection; later operations raise DatabaseError."""
        conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _require_connection(self) -> Any:
        if not self.is_connected():
            raise DatabaseError("not connected to the database")
        return self._conn

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Any]:
        conn = self._require_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except DatabaseError:
            _rollback_quietly(conn)
            raise
        except Exception as exc:
            _rollback_quietly(conn)
            raise DatabaseError(f"{action} failed: {exc}") from exc
        finally:
            closer = getattr(cursor, "close", None)
            if callable(closer):
                closer()

    def init_schema(self) -> None:
        """Create the PostGIS extension, tables and indexes if missing."""
        with self._transaction("Schema initialization") as cur:
            cur.execute("CREATE EXTENSION IF NOT EXISTS postgis")
            cur.execute(SCHEMA_SQL)

    def insert_chart(self, chart: ChartInfo) -> int:
        """Insert a chart and return its new id."""
        with self._transaction("Chart insertion") as cur:
            cur.execute(
                _INSERT_CHART_SQL,
                (
                    chart.name,
                    chart.scale,
                    chart.file_name,
                    chart.updated,
                    chart.issued,
                    chart.zoom,
                    chart.covr_geojson,
                    chart.dsid_props,
                    chart.chart_txt,
                ),
            )
            row = cur.fetchone()
        if row is None:
            raise DatabaseError("Chart insertion failed: no id returned")
        return int(row[0])

    @staticmethod
    def _execute_feature_insert(cur: Any, chart_id: int, feature: Feature) -> None:
        literal = lnam_refs_to_array_literal(feature.lnam_refs).replace("%", "%%")
        cur.execute(
            _INSERT_FEATURE_SQL.format(lnam_refs=literal),
            (
                feature.layer,
                feature.geom_geojson,
                feature.props_json,
                chart_id,
                feature.min_z,
                feature.max_z,
            ),
        )

    def insert_feature(self, chart_id: int, feature: Feature) -> None:
        """Insert one feature belonging to the chart ``chart_id``."""
        with self._transaction("Feature insertion") as cur:
            self._execute_feature_insert(cur, chart_id, feature)

    def insert_features(self, chart_id: int, features: Iterable[Feature]) -> None:
        """Insert several features in a single transaction."""
        self._require_connection()
        batch = list(features)
        if not batch:
            return
        with self._transaction("Batch feature insertion") as cur:
            for feature in batch:
                self._execute_feature_insert(cur, chart_id, feature)

    def chart_exists(self, name: str) -> bool:
        """Return True if a chart with this name is stored."""
        with self._transaction("Chart exists check") as cur:
            cur.execute("SELECT COUNT(*) FROM charts WHERE name = %s", (name,))
            row = cur.fetchone()
        return row is not None and int(row[0]) > 0

    def delete_chart(self, name: str) -> None:
        """Delete a chart and all its features; a missing chart is no error."""
        with self._transaction("Chart deletion") as cur:
            cur.execute("SELECT id FROM charts WHERE name = %s", (name,))
            row = cur.fetchone()
            if row is None:
                return
            chart_id = int(row[0])
            cur.execute("DELETE FROM features WHERE chart_id = %s", (chart_id,))
            cur.execute("DELETE FROM charts WHERE id = %s", (chart_id,))

    def _count(self, table: str, action: str) -> int:
        with self._transaction(action) as cur:
            cur.execute(f"SELECT COUNT(*) FROM {table}")
            row = cur.fetchone()
        return 0 if row is None else int(row[0])

    def chart_count(self) -> int:
        """Return the number of stored charts."""
        return self._count("charts", "Chart count")

    def feature_count(self) -> int:
        """Return the number of stored features."""
        return self._count("features", "Feature count")