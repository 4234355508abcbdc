"""Database schema DDL. All tables use CREATE IF NOT EXISTS for idempotency."""

# No UNIQUE (parent_id, position) constraint: renumbering a sibling range
# passes through transient duplicates between statements. Density is checked
# by the position manager after each batch instead.
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS nodes (
    node_id TEXT PRIMARY KEY,
    parent_id TEXT,
    position INTEGER NOT NULL CHECK (position >= 1),
    label TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (parent_id) REFERENCES nodes(node_id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_nodes_parent_position ON nodes(parent_id, position);
"""
