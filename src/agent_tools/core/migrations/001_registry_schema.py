"""
Migration 001: registry schema.

Creates providers, tools and invocations plus the ``tools_fts`` full-text
index. ``tools_fts`` is an external-content FTS5 table fed only by the
triggers below; updates delete the old row image before inserting the
new one so edited descriptions and tags stop matching.
"""

CREATE_PROVIDERS_TABLE = """
CREATE TABLE IF NOT EXISTS providers (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL DEFAULT '',
    endpoint    TEXT NOT NULL DEFAULT '',
    pubkey      TEXT NOT NULL DEFAULT '',
    stake_claw  TEXT NOT NULL DEFAULT '0',
    reputation  INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL,      -- ISO datetime string
    last_seen   TEXT NOT NULL       -- ISO datetime string
)
"""

CREATE_TOOLS_TABLE = """
CREATE TABLE IF NOT EXISTS tools (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    version     TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    schema_json TEXT NOT NULL,      -- {"input": ..., "output": ...}
    pricing     TEXT NOT NULL,      -- {"model": ..., "amount_claw": ...}
    provider_id TEXT NOT NULL REFERENCES providers(id),
    endpoint    TEXT NOT NULL,
    timeout_ms  INTEGER NOT NULL DEFAULT 30000,
    tags        TEXT NOT NULL DEFAULT '[]',  -- JSON array as TEXT
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    is_active   INTEGER NOT NULL DEFAULT 1
)
"""

CREATE_INVOCATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS invocations (
    id           TEXT PRIMARY KEY,
    tool_id      TEXT NOT NULL REFERENCES tools(id),
    consumer_id  TEXT NOT NULL,
    input_hash   TEXT NOT NULL,
    output_hash  TEXT,
    receipt_sig  TEXT,
    status       TEXT NOT NULL DEFAULT 'pending',
    cost_claw    TEXT,
    escrow_id    TEXT,
    started_at   TEXT NOT NULL,
    completed_at TEXT,
    error        TEXT
)
"""

CREATE_INDEXES = [
    # A deactivated tool frees its (name, version, provider) slot.
    """CREATE UNIQUE INDEX IF NOT EXISTS idx_tools_active_identity
       ON tools(name, version, provider_id) WHERE is_active = 1""",
    "CREATE INDEX IF NOT EXISTS idx_tools_active_created ON tools(is_active, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_tools_provider ON tools(provider_id)",
    "CREATE INDEX IF NOT EXISTS idx_invocations_tool ON invocations(tool_id, started_at)",
]

CREATE_FTS_TABLE = """
CREATE VIRTUAL TABLE IF NOT EXISTS tools_fts USING fts5(
    name, description, tags,
    content='tools',
    content_rowid='rowid'
)
"""

CREATE_FTS_TRIGGERS = [
    """CREATE TRIGGER IF NOT EXISTS tools_fts_insert AFTER INSERT ON tools BEGIN
        INSERT INTO tools_fts(rowid, name, description, tags)
        VALUES (new.rowid, new.name, new.description, new.tags);
    END""",
    """CREATE TRIGGER IF NOT EXISTS tools_fts_update AFTER UPDATE ON tools BEGIN
        INSERT INTO tools_fts(tools_fts, rowid, name, description, tags)
        VALUES ('delete', old.rowid, old.name, old.description, old.tags);
        INSERT INTO tools_fts(rowid, name, description, tags)
        VALUES (new.rowid, new.name, new.description, new.tags);
    END""",
    """CREATE TRIGGER IF NOT EXISTS tools_fts_delete AFTER DELETE ON tools BEGIN
        INSERT INTO tools_fts(tools_fts, rowid, name, description, tags)
        VALUES ('delete', old.rowid, old.name, old.description, old.tags);
    END""",
]

STATEMENTS = [
    CREATE_PROVIDERS_TABLE,
    CREATE_TOOLS_TABLE,
    CREATE_INVOCATIONS_TABLE,
    *CREATE_INDEXES,
    CREATE_FTS_TABLE,
    *CREATE_FTS_TRIGGERS,
]
