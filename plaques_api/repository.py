# ============================================================================
# PLAQUES REPOSITORY
# ============================================================================
# STATUS: Standalone Repository - read-only plaque table access
# PURPOSE: Parameterized queries against the plaque observations table
# EXPORTS: PlaquesRepository, PlaqueFilters
# INTERFACES: None (standalone implementation)
# DEPENDENCIES: psycopg, psycopg.sql, config, util_logger
# SOURCE: PostgreSQL table named by PLAQUES_TABLE
# SAFETY: SQL injection prevention via psycopg.sql composition
# PATTERNS: Repository Pattern, Query Builder, Per-request connections
# ============================================================================

"""
Plaques Repository - Direct Table Access

Safety:
- All queries use psycopg.sql.SQL() composition (NO string concatenation)
- The table name goes through sql.Identifier()
- Values are bound via %s placeholders, including the LIKE pattern

Each call opens its own connection and closes it afterwards. There is no
pooling: Function instances are short-lived and requests do not share
state.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from util_logger import LoggerFactory, ComponentType
from .config import PlaquesConfig, get_plaques_config
from .models import BoundingBox

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "PlaquesRepository")

# Display position: the projected fix supersedes the camera-derived one
_DISPLAY_LATITUDE = sql.SQL("COALESCE({}, {})").format(
    sql.Identifier("projected_latitude"), sql.Identifier("latitude")
)
_DISPLAY_LONGITUDE = sql.SQL("COALESCE({}, {})").format(
    sql.Identifier("projected_longitude"), sql.Identifier("longitude")
)

_ORDER_BY_CONFIDENCE = sql.SQL("ORDER BY {conf} DESC NULLS LAST, {id}").format(
    conf=sql.Identifier("confidence"), id=sql.Identifier("id")
)


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class PlaqueFilters:
    """Row filters shared by the list, count and search queries."""
    confidence_threshold: Optional[float] = None
    bounds: Optional[BoundingBox] = None
    text: Optional[str] = None


class PlaquesRepository:
    """
    Read-only repository over the plaque observations table.

    Thread Safety:
    - Each method creates its own connection
    - Safe for concurrent requests in Azure Functions
    """

    def __init__(self, config: Optional[PlaquesConfig] = None):
        self.config = config or get_plaques_config()
        self._table = sql.Identifier(*self.config.table_parts)
        logger.info(f"PlaquesRepository initialized (table: {self.config.table_name})")

    @contextmanager
    def _get_connection(self):
        """
        Context manager for PostgreSQL connections.

        Yields:
            psycopg connection with dict_row factory
        """
        conn = None
        try:
            conn = psycopg.connect(self.config.get_connection_string(), row_factory=dict_row)
            yield conn
        except psycopg.Error as e:
            logger.error(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    def _fetch_all(self, query: sql.Composable, params: Tuple[Any, ...]) -> List[Dict[str, Any]]:
        """Run one read query with the configured statement timeout."""
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    sql.SQL("SET statement_timeout = {}").format(
                        sql.Literal(f"{self.config.query_timeout_seconds}s")
                    )
                )
                logger.debug("Executing plaque query", extra={
                    'custom_dimensions': {'params': [str(p) for p in params]}
                })
                cur.execute(query, params)
                return cur.fetchall()

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_plaque_by_id(self, plaque_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a single plaque row by id.

        Returns:
            Row dict or None if no row matches
        """
        query = sql.SQL("SELECT * FROM {table} WHERE {id} = %s LIMIT 1").format(
            table=self._table,
            id=sql.Identifier("id")
        )

        rows = self._fetch_all(query, (plaque_id,))
        logger.info(f"Detail query for id '{plaque_id}' returned {len(rows)} row(s)")
        return rows[0] if rows else None

    def list_plaques(
        self,
        limit: int,
        offset: int = 0,
        filters: Optional[PlaqueFilters] = None
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Page through plaques ordered by confidence.

        Returns:
            Tuple of (rows, total_count) where total_count ignores paging
        """
        where_clause, where_params = self._build_where_clause(filters)

        page_query = sql.SQL("SELECT * FROM {table} {where} {order} LIMIT %s OFFSET %s").format(
            table=self._table,
            where=where_clause,
            order=_ORDER_BY_CONFIDENCE
        )
        count_query = sql.SQL("SELECT COUNT(*) AS count FROM {table} {where}").format(
            table=self._table,
            where=where_clause
        )

        rows = self._fetch_all(page_query, tuple(where_params) + (limit, offset))
        count_rows = self._fetch_all(count_query, tuple(where_params))
        total = count_rows[0]["count"] if count_rows else 0

        logger.info(f"List query returned {len(rows)}/{total} plaques")
        return rows, total

    def search_plaques(
        self,
        text: str,
        limit: int,
        offset: int = 0,
        confidence_threshold: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        """
        Case-insensitive substring search on the recognized text.

        Returns:
            Matching rows ordered by confidence
        """
        filters = PlaqueFilters(confidence_threshold=confidence_threshold, text=text)
        where_clause, where_params = self._build_where_clause(filters)

        query = sql.SQL("SELECT * FROM {table} {where} {order} LIMIT %s OFFSET %s").format(
            table=self._table,
            where=where_clause,
            order=_ORDER_BY_CONFIDENCE
        )

        rows = self._fetch_all(query, tuple(where_params) + (limit, offset))
        logger.info(f"Search for '{text}' returned {len(rows)} plaques")
        return rows

    def check_table(self) -> Dict[str, Any]:
        """
        Report whether the plaques table exists and how many rows it has.

        Returns:
            Dict with 'exists' and 'row_count' (None when the table is missing)
        """
        schema, table = (self.config.table_parts if len(self.config.table_parts) == 2
                         else ("public", self.config.table_parts[0]))
        exists_query = sql.SQL(
            "SELECT EXISTS (SELECT FROM information_schema.tables "
            "WHERE table_schema = %s AND table_name = %s) AS exists"
        )
        rows = self._fetch_all(exists_query, (schema, table))
        if not rows or not rows[0]["exists"]:
            return {"exists": False, "row_count": None}

        count_query = sql.SQL("SELECT COUNT(*) AS count FROM {table}").format(table=self._table)
        count_rows = self._fetch_all(count_query, ())
        return {"exists": True, "row_count": count_rows[0]["count"] if count_rows else 0}

    # ========================================================================
    # QUERY BUILDING (SQL COMPOSITION)
    # ========================================================================

    def _build_where_clause(
        self,
        filters: Optional[PlaqueFilters]
    ) -> Tuple[sql.Composable, List[Any]]:
        """
        Build the WHERE clause for confidence, bounding box and text filters.

        Returns:
            Tuple of (where_clause_sql, params_list). The clause is empty
            SQL when there are no filters.
        """
        conditions: List[sql.Composable] = []
        params: List[Any] = []

        if filters is None:
            return sql.SQL(""), params

        if filters.confidence_threshold is not None:
            conditions.append(sql.SQL("{} >= %s").format(sql.Identifier("confidence")))
            params.append(filters.confidence_threshold)

        bounds = filters.bounds
        if bounds is not None and not bounds.is_empty:
            if bounds.north is not None:
                conditions.append(sql.SQL("{} <= %s").format(_DISPLAY_LATITUDE))
                params.append(bounds.north)
            if bounds.south is not None:
                conditions.append(sql.SQL("{} >= %s").format(_DISPLAY_LATITUDE))
                params.append(bounds.south)

            if bounds.crosses_antimeridian:
                conditions.append(sql.SQL("({lng} >= %s OR {lng} <= %s)").format(lng=_DISPLAY_LONGITUDE))
                params.extend([bounds.west, bounds.east])
            else:
                if bounds.east is not None:
                    conditions.append(sql.SQL("{} <= %s").format(_DISPLAY_LONGITUDE))
                    params.append(bounds.east)
                if bounds.west is not None:
                    conditions.append(sql.SQL("{} >= %s").format(_DISPLAY_LONGITUDE))
                    params.append(bounds.west)

        if filters.text is not None:
            conditions.append(sql.SQL("LOWER({}) LIKE %s").format(sql.Identifier("text")))
            params.append(f"%{escape_like(filters.text.lower())}%")

        if not conditions:
            return sql.SQL(""), params

        return sql.SQL("WHERE ") + sql.SQL(" AND ").join(conditions), params
