"""SQLite DDL for the ShareZone metadata store."""

SCHEMA_VERSION = 1

TABLES = [
    # owners; only the storage_used aggregate lives here, auth is external
    """
    CREATE TABLE IF NOT EXISTS users (
        user_id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        storage_used INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # one row per stored object, share policy inline.
    # share_password is an argon2 hash, encryption_key the hex per-file key
    """
    CREATE TABLE IF NOT EXISTS files (
        file_id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        size INTEGER NOT NULL DEFAULT 0,
        stored_size INTEGER NOT NULL DEFAULT 0,
        mime_type TEXT,
        storage_path TEXT NOT NULL UNIQUE,
        is_encrypted INTEGER NOT NULL DEFAULT 0,
        encryption_key TEXT,
        share_id TEXT UNIQUE,
        is_public INTEGER,
        share_password TEXT,
        share_expires_at TEXT,
        download_count INTEGER NOT NULL DEFAULT 0,
        uploaded_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        CHECK ((is_encrypted = 1) = (encryption_key IS NOT NULL))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_files_owner_uploaded ON files(owner_id, uploaded_at)",
]

TRIGGERS = [
    # keep updated_at current
    """
    CREATE TRIGGER IF NOT EXISTS files_touch_updated_at
    AFTER UPDATE ON files
    FOR EACH ROW
    BEGIN
        UPDATE files SET updated_at = CURRENT_TIMESTAMP WHERE file_id = OLD.file_id;
    END
    """,
]


def get_init_schema():
    """Statements that bring an empty database up to SCHEMA_VERSION."""
    return [
        *TABLES,
        *INDEXES,
        *TRIGGERS,
        f"INSERT OR IGNORE INTO schema_version (version) VALUES ({SCHEMA_VERSION})",
    ]
