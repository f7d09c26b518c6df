from __future__ import annotations

ANALYTICS_EVENTS_TABLE = "analytics_events"
SESSION_EVENTS_TABLE = "session_events"
ANALYTICS_SETTINGS_TABLE = "analytics_settings"
ROUTE_EXCLUSIONS_TABLE = "heatmap_exclusions"
PROPERTIES_TABLE = "properties"
LOCAL_STORAGE_TABLE = "local_storage"

UTM_COLUMNS: tuple[str, ...] = (
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
)

# Writable/readable columns per table. Identifiers are only ever taken from here.
TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    ANALYTICS_EVENTS_TABLE: (
        "event_name",
        "event_data",
        "session_id",
        "page_url",
        "page_title",
        "referrer",
        "device_type",
        "language",
        *UTM_COLUMNS,
        "created_at",
    ),
    SESSION_EVENTS_TABLE: (
        "session_id",
        "event_name",
        "page_path",
        "entity_id",
        "meta",
        "created_at",
    ),
    ANALYTICS_SETTINGS_TABLE: ("key", "value", "enabled"),
    ROUTE_EXCLUSIONS_TABLE: ("route_pattern",),
    PROPERTIES_TABLE: (
        "id",
        "title",
        "city",
        "area",
        "price",
        "bedrooms",
        "bathrooms",
        "area_sqm",
        "finishing",
        "tags",
        "status",
        "created_at",
    ),
    LOCAL_STORAGE_TABLE: ("key", "value"),
}

DDL: tuple[str, ...] = (
    f"""
    CREATE TABLE IF NOT EXISTS {ANALYTICS_EVENTS_TABLE} (
        event_name TEXT NOT NULL,
        event_data TEXT,
        session_id TEXT,
        page_url TEXT,
        page_title TEXT,
        referrer TEXT,
        device_type TEXT,
        language TEXT,
        utm_source TEXT,
        utm_medium TEXT,
        utm_campaign TEXT,
        utm_term TEXT,
        utm_content TEXT,
        created_at TIMESTAMP
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {SESSION_EVENTS_TABLE} (
        session_id TEXT NOT NULL,
        event_name TEXT NOT NULL,
        page_path TEXT,
        entity_id TEXT,
        meta TEXT DEFAULT '{{}}',
        created_at TIMESTAMP
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {ANALYTICS_SETTINGS_TABLE} (
        key TEXT PRIMARY KEY,
        value TEXT,
        enabled BOOLEAN NOT NULL DEFAULT FALSE
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {ROUTE_EXCLUSIONS_TABLE} (
        route_pattern TEXT NOT NULL
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {PROPERTIES_TABLE} (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        city TEXT,
        area TEXT,
        price DOUBLE,
        bedrooms INTEGER,
        bathrooms INTEGER,
        area_sqm DOUBLE,
        finishing TEXT,
        tags VARCHAR[],
        status TEXT NOT NULL DEFAULT 'published',
        created_at TIMESTAMP
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {LOCAL_STORAGE_TABLE} (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );
    """,
)

INDEXES: tuple[str, ...] = (
    f"CREATE INDEX IF NOT EXISTS idx_analytics_events_session ON {ANALYTICS_EVENTS_TABLE}(session_id);",
    f"CREATE INDEX IF NOT EXISTS idx_session_events_session ON {SESSION_EVENTS_TABLE}(session_id);",
)


def create_schema(conn) -> None:
    """
    Create tables/indexes. No migrations. Safe to call on every open.
    """
    for ddl in DDL:
        conn.execute(ddl)
    for ddl in INDEXES:
        conn.execute(ddl)


def columns_for(table: str) -> tuple[str, ...]:
    try:
        return TABLE_COLUMNS[table]
    except KeyError:
        raise ValueError(f"Unknown table={table!r}. Known={sorted(TABLE_COLUMNS)}") from None
