from typing import Union
import os
import sqlite3


# SQLite refuses blobs of 1e9 bytes with the default limits, whereas 9e8 is fine
# https://www.sqlite.org/limits.html
MAX_CHUNK_SIZE = 1000 * 1000 * 900


class ChunkTooLargeError(Exception):
    pass


def get_default_cache_dir() -> str:
    cache_dir = os.environ.get('DANDISTREAM_LOCAL_CACHE_DIR', None)
    if cache_dir is not None:
        return cache_dir
    return os.path.expanduser("~/.dandistream/cache")


class LocalCache:
    """
    Persistent store of remote byte ranges, keyed by (url, offset, size).

    Entries are added on first access and are never evicted or invalidated.
    The store assumes a single writer per cache directory.
    """
    def __init__(self, *, cache_dir: Union[str, None] = None):
        if cache_dir is None:
            cache_dir = get_default_cache_dir()
        self._cache_dir = cache_dir
        os.makedirs(self._cache_dir, exist_ok=True)
        self._sqlite_db_fname = os.path.join(self._cache_dir, "dandistream_cache.db")
        self._sqlite_client = LocalCacheSQLiteClient(db_fname=self._sqlite_db_fname)

    @property
    def cache_dir(self) -> str:
        return self._cache_dir

    def get_remote_chunk(self, *, url: str, offset: int, size: int) -> Union[bytes, None]:
        return self._sqlite_client.get_remote_chunk(url=url, offset=offset, size=size)

    def has_remote_chunk(self, *, url: str, offset: int, size: int) -> bool:
        return self._sqlite_client.has_remote_chunk(url=url, offset=offset, size=size)

    def put_remote_chunk(self, *, url: str, offset: int, size: int, data: bytes):
        if len(data) != size:
            raise ValueError(f"data size does not match size: {len(data)} != {size}")
        self._sqlite_client.put_remote_chunk(url=url, offset=offset, size=size, data=data)

    def num_chunks(self) -> int:
        return self._sqlite_client.num_chunks()

    def close(self):
        self._sqlite_client.close()

    def __repr__(self):
        return f'LocalCache(cache_dir={self._cache_dir!r})'


class LocalCacheSQLiteClient:
    def __init__(self, *, db_fname: str):
        self._db_fname = db_fname
        self._conn = sqlite3.connect(self._db_fname)
        self._cursor = self._conn.cursor()
        self._cursor.execute(
            """
            PRAGMA journal_mode=WAL
            """
        )
        self._cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS remote_chunks (
                url TEXT,
                offset INTEGER,
                size INTEGER,
                data BLOB,
                PRIMARY KEY (url, offset, size)
            )
            """
        )
        self._conn.commit()

    def get_remote_chunk(self, *, url: str, offset: int, size: int) -> Union[bytes, None]:
        self._cursor.execute(
            """
            SELECT data FROM remote_chunks WHERE url = ? AND offset = ? AND size = ?
            """,
            (url, offset, size),
        )
        row = self._cursor.fetchone()
        if row is None:
            return None
        return bytes(row[0])

    def has_remote_chunk(self, *, url: str, offset: int, size: int) -> bool:
        self._cursor.execute(
            """
            SELECT 1 FROM remote_chunks WHERE url = ? AND offset = ? AND size = ?
            """,
            (url, offset, size),
        )
        return self._cursor.fetchone() is not None

    def put_remote_chunk(self, *, url: str, offset: int, size: int, data: bytes):
        if size >= MAX_CHUNK_SIZE:
            raise ChunkTooLargeError("Cannot store blobs larger than 900 MB in LocalCache")
        # INSERT OR IGNORE: an entry, once written, is never replaced
        self._cursor.execute(
            """
            INSERT OR IGNORE INTO remote_chunks (url, offset, size, data) VALUES (?, ?, ?, ?)
            """,
            (url, offset, size, data),
        )
        self._conn.commit()

    def num_chunks(self) -> int:
        self._cursor.execute(
            """
            SELECT COUNT(*) FROM remote_chunks
            """
        )
        return int(self._cursor.fetchone()[0])

    def close(self):
        self._conn.close()
