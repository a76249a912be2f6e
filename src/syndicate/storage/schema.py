"""
Database schema management for the syndication store.

This module handles:
- Table creation (nodes, objects, object_meta, object_terms, options, locks)
- Index creation for the canonical id scan and queue records
- WAL mode configuration

Every node shares one database file; rows are partitioned by ``node_id``.
"""

import sqlite3


def init_database(conn: sqlite3.Connection, enable_wal: bool = True) -> None:
    """
    Initialize database schema with indexes.

    Args:
        conn: SQLite connection object
        enable_wal: Enable WAL mode for concurrent writes (default: True)
    """
    if enable_wal:
        conn.execute("PRAGMA journal_mode=WAL")

    conn.execute("PRAGMA foreign_keys=ON")

    conn.executescript("""
        CREATE TABLE IF NOT EXISTS nodes (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            url TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS object_sequences (
            node_id INTEGER NOT NULL,
            object_type TEXT NOT NULL,
            last_id INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (node_id, object_type),
            FOREIGN KEY (node_id) REFERENCES nodes(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS objects (
            node_id INTEGER NOT NULL,
            object_type TEXT NOT NULL CHECK(object_type IN ('document','asset','term','comment')),
            id INTEGER NOT NULL,
            name TEXT,         -- title or term name
            taxonomy TEXT,     -- terms only
            parent_id INTEGER DEFAULT 0,
            status TEXT,
            subtype TEXT,      -- document type
            fields TEXT NOT NULL,  -- JSON snapshot of every field
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (node_id, object_type, id),
            FOREIGN KEY (node_id) REFERENCES nodes(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS object_meta (
            meta_id INTEGER PRIMARY KEY AUTOINCREMENT,
            node_id INTEGER NOT NULL,
            object_type TEXT NOT NULL,
            object_id INTEGER NOT NULL,
            meta_key TEXT NOT NULL,
            meta_value TEXT,   -- JSON
            FOREIGN KEY (node_id) REFERENCES nodes(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS object_terms (
            node_id INTEGER NOT NULL,
            object_type TEXT NOT NULL,
            object_id INTEGER NOT NULL,
            term_id INTEGER NOT NULL,
            taxonomy TEXT NOT NULL,
            PRIMARY KEY (node_id, object_type, object_id, term_id),
            FOREIGN KEY (node_id) REFERENCES nodes(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS options (
            node_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            value TEXT,        -- JSON
            PRIMARY KEY (node_id, name),
            FOREIGN KEY (node_id) REFERENCES nodes(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS locks (
            name TEXT PRIMARY KEY,
            owner TEXT NOT NULL,
            expires_at REAL NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_objects_type_status ON objects(node_id, object_type, status);
        CREATE INDEX IF NOT EXISTS idx_objects_term_name ON objects(node_id, taxonomy, name);
        CREATE INDEX IF NOT EXISTS idx_objects_parent ON objects(node_id, object_type, parent_id);
        CREATE INDEX IF NOT EXISTS idx_meta_object ON object_meta(node_id, object_type, object_id);
        CREATE INDEX IF NOT EXISTS idx_meta_key_value ON object_meta(node_id, object_type, meta_key, meta_value);
        CREATE INDEX IF NOT EXISTS idx_object_terms_term ON object_terms(node_id, term_id);
    """)

    conn.commit()
