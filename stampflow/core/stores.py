from __future__ import annotations

import copy
import json
import logging
import sqlite3
import threading
from typing import Any, Callable, Dict, List, Optional

import httpx

from stampflow.core.config import _env, config
from stampflow.core.errors import AuthorizationError, DocumentNotFoundError
from stampflow.core.models import Document, DocumentType, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_BUSY_TIMEOUT_MS = 5000
REMOTE_RECORD_ID = 1

Dispatcher = Callable[[Callable[[], None]], None]


def default_sqlite_path() -> str:
    return _env("STAMPFLOW_SQLITE_PATH", "./stampflow_state.db")


def sqlite_busy_timeout_ms() -> int:
    raw = _env("STAMPFLOW_SQLITE_BUSY_TIMEOUT_MS", str(DEFAULT_SQLITE_BUSY_TIMEOUT_MS))
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_SQLITE_BUSY_TIMEOUT_MS
    return max(0, value)


def storage_mode(name: str, default: str = "inmem") -> str:
    return _env(name, default).strip().lower()


def storage_json_dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def storage_json_loads(value: str) -> Any:
    return json.loads(value)


def _type_key(doc_type: DocumentType | str) -> str:
    return DocumentType(getattr(doc_type, "value", doc_type)).value


def open_sqlite_connection(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute(f"PRAGMA busy_timeout = {sqlite_busy_timeout_ms()}")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    return conn


def ensure_sqlite_schema_meta(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_meta (
          component TEXT PRIMARY KEY,
          version INTEGER NOT NULL,
          updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )


def ensure_sqlite_component_schema(conn: sqlite3.Connection, component: str, target_version: int) -> int:
    ensure_sqlite_schema_meta(conn)
    row = conn.execute("SELECT version FROM schema_meta WHERE component = ?", (component,)).fetchone()
    if row is None:
        conn.execute(
            """
            INSERT INTO schema_meta (component, version, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            """,
            (component, target_version),
        )
        return target_version

    current_version = int(row["version"])
    if current_version > target_version:
        raise RuntimeError(
            f"Unsupported newer schema for component '{component}': {current_version} > {target_version}"
        )
    if current_version < target_version:
        conn.execute(
            """
            UPDATE schema_meta
            SET version = ?, updated_at = CURRENT_TIMESTAMP
            WHERE component = ?
            """,
            (target_version, component),
        )
    return target_version


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._documents: Dict[str, List[Document]] = {}
        self._lock = threading.Lock()

    def load_documents(self, doc_type: DocumentType | str) -> List[Document]:
        with self._lock:
            return copy.deepcopy(self._documents.get(_type_key(doc_type), []))

    def save_documents(self, doc_type: DocumentType | str, documents: List[Document]) -> None:
        with self._lock:
            self._documents[_type_key(doc_type)] = copy.deepcopy(list(documents))

    def get(self, doc_type: DocumentType | str, doc_id: str) -> Optional[Document]:
        with self._lock:
            for document in self._documents.get(_type_key(doc_type), []):
                if document.id == doc_id:
                    return copy.deepcopy(document)
        return None

    def upsert(self, document: Document) -> None:
        key = _type_key(document.doc_type)
        with self._lock:
            documents = self._documents.setdefault(key, [])
            for idx, existing in enumerate(documents):
                if existing.id == document.id:
                    documents[idx] = copy.deepcopy(document)
                    return
            documents.append(copy.deepcopy(document))

    def delete(self, doc_type: DocumentType | str, doc_id: str) -> bool:
        key = _type_key(doc_type)
        with self._lock:
            documents = self._documents.get(key, [])
            kept = [document for document in documents if document.id != doc_id]
            self._documents[key] = kept
            return len(kept) != len(documents)


class SQLiteDocumentStore:
    SCHEMA_COMPONENT = "documents"
    SCHEMA_VERSION = 1

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path or default_sqlite_path()
        self._write_lock = threading.Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return open_sqlite_connection(self.db_path)

    def _init_db(self) -> None:
        with self._connect() as conn:
            ensure_sqlite_component_schema(conn, self.SCHEMA_COMPONENT, self.SCHEMA_VERSION)
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                  doc_type TEXT NOT NULL,
                  doc_id TEXT NOT NULL,
                  position INTEGER NOT NULL,
                  payload_json TEXT NOT NULL,
                  updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                  PRIMARY KEY (doc_type, doc_id)
                )
                """
            )

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Document:
        return Document.model_validate(storage_json_loads(row["payload_json"]))

    def load_documents(self, doc_type: DocumentType | str) -> List[Document]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT payload_json FROM documents WHERE doc_type = ? ORDER BY position",
                (_type_key(doc_type),),
            ).fetchall()
        return [self._row_to_document(row) for row in rows]

    def save_documents(self, doc_type: DocumentType | str, documents: List[Document]) -> None:
        key = _type_key(doc_type)
        with self._write_lock:
            with self._connect() as conn:
                conn.execute("DELETE FROM documents WHERE doc_type = ?", (key,))
                conn.executemany(
                    """
                    INSERT INTO documents (doc_type, doc_id, position, payload_json, updated_at)
                    VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)
                    """,
                    [
                        (key, document.id, position, storage_json_dumps(document.model_dump(mode="json")))
                        for position, document in enumerate(documents)
                    ],
                )

    def get(self, doc_type: DocumentType | str, doc_id: str) -> Optional[Document]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload_json FROM documents WHERE doc_type = ? AND doc_id = ?",
                (_type_key(doc_type), doc_id),
            ).fetchone()
        return self._row_to_document(row) if row is not None else None

    def upsert(self, document: Document) -> None:
        key = _type_key(document.doc_type)
        payload_json = storage_json_dumps(document.model_dump(mode="json"))
        with self._write_lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO documents (doc_type, doc_id, position, payload_json, updated_at)
                    VALUES (?, ?, (SELECT COALESCE(MAX(position), -1) + 1 FROM documents WHERE doc_type = ?), ?,
                            CURRENT_TIMESTAMP)
                    ON CONFLICT(doc_type, doc_id) DO UPDATE SET
                      payload_json=excluded.payload_json,
                      updated_at=CURRENT_TIMESTAMP
                    """,
                    (key, document.id, key, payload_json),
                )

    def delete(self, doc_type: DocumentType | str, doc_id: str) -> bool:
        with self._write_lock:
            with self._connect() as conn:
                cur = conn.execute(
                    "DELETE FROM documents WHERE doc_type = ? AND doc_id = ?",
                    (_type_key(doc_type), doc_id),
                )
                return cur.rowcount > 0


DocumentStore = InMemoryDocumentStore | SQLiteDocumentStore


def create_document_store_from_env() -> DocumentStore:
    mode = storage_mode("STAMPFLOW_DOCUMENT_STORE", "inmem")
    if mode == "sqlite":
        return SQLiteDocumentStore()
    return InMemoryDocumentStore()


class RemoteSnapshotSync:
    """Mirrors all document lists into one shared remote record; the last write wins."""

    def __init__(self, base_url: str, timeout_s: float = 5.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    @property
    def record_url(self) -> str:
        return f"{self.base_url}/records/{REMOTE_RECORD_ID}"

    def push(self, snapshot: Dict[str, List[Dict[str, Any]]]) -> None:
        payload = {"id": REMOTE_RECORD_ID, "data": snapshot, "updated_at": utc_now_iso()}
        response = httpx.put(self.record_url, json=payload, timeout=self.timeout_s)
        response.raise_for_status()

    def pull(self) -> Optional[Dict[str, List[Dict[str, Any]]]]:
        response = httpx.get(self.record_url, timeout=self.timeout_s)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        body = response.json()
        data = body.get("data") if isinstance(body, dict) else None
        return data if isinstance(data, dict) else None


def create_remote_sync_from_env() -> Optional[RemoteSnapshotSync]:
    if not config.remote_sync_url:
        return None
    return RemoteSnapshotSync(config.remote_sync_url)


def thread_dispatcher(task: Callable[[], None]) -> None:
    threading.Thread(target=task, name="stampflow-remote-sync", daemon=True).start()


class DocumentRepository:
    """Two-phase persistence: synchronous local write, then a scheduled remote push.

    Remote failures are logged and never reach the caller.
    """

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        remote: Optional[RemoteSnapshotSync] = None,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self.store = store if store is not None else create_document_store_from_env()
        self.remote = remote
        self.dispatcher = dispatcher or thread_dispatcher

    def list(self, doc_type: DocumentType | str) -> List[Document]:
        return self.store.load_documents(doc_type)

    def find(self, doc_type: DocumentType | str, doc_id: str) -> Optional[Document]:
        return self.store.get(doc_type, doc_id)

    def get(self, doc_type: DocumentType | str, doc_id: str) -> Document:
        document = self.store.get(doc_type, doc_id)
        if document is None:
            raise DocumentNotFoundError(_type_key(doc_type), doc_id)
        return document

    def save(self, document: Document) -> Document:
        self.store.upsert(document)
        self.schedule_sync()
        return document

    def purge(self, doc_type: DocumentType | str, doc_id: str, *, privileged: bool, user_id: str = "") -> None:
        if not privileged:
            raise AuthorizationError(
                "purge", user_id, message=f"User '{user_id}' is not allowed to purge documents"
            )
        if not self.store.delete(doc_type, doc_id):
            raise DocumentNotFoundError(_type_key(doc_type), doc_id)
        logger.info("Purged document %s/%s (by=%s)", _type_key(doc_type), doc_id, user_id)
        self.schedule_sync()

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            kind.value: [document.model_dump(mode="json") for document in self.store.load_documents(kind)]
            for kind in DocumentType
        }

    def schedule_sync(self) -> None:
        if self.remote is None:
            return
        self.dispatcher(self.sync_now)

    def sync_now(self) -> bool:
        if self.remote is None:
            return False
        try:
            self.remote.push(self.snapshot())
        except httpx.HTTPError as exc:
            logger.warning("Remote sync push failed (url=%s): %s", self.remote.record_url, exc)
            return False
        return True

    def reconcile(self) -> bool:
        """Replaces local lists with the remote record, when one exists."""
        if self.remote is None:
            return False
        try:
            data = self.remote.pull()
        except httpx.HTTPError as exc:
            logger.warning("Remote sync pull failed (url=%s): %s", self.remote.record_url, exc)
            return False
        if not data:
            return False
        try:
            restored = {
                kind.value: [Document.model_validate(item) for item in data.get(kind.value) or []]
                for kind in DocumentType
            }
        except ValueError as exc:
            logger.error("Remote snapshot is malformed; keeping local documents: %s", exc)
            return False
        for key, documents in restored.items():
            self.store.save_documents(key, documents)
        return True
