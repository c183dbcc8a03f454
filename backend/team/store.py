"""
Shared team document store.

A namespaced key -> text store holding the team's shared documents
(goals, decisions, project status) and each agent's private area
(``agents/<name>/...``, where the persona lives).

The public methods never raise. A failed read returns empty text and a
failed write returns False, both logged. Writes to the same key are
serialized with a per-key lock.

Two backends:
- FileDocumentStore: one file per key under a workspace directory
- SqlDocumentStore: one SharedDocument row per key
"""

import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from database import init_db, make_engine, make_session_factory
from logger import get_logger
from models import SharedDocument

load_dotenv()

logger = get_logger()

GOALS = "GOALS.md"
DECISIONS = "DECISIONS.md"
PROJECT_STATUS = "PROJECT_STATUS.md"

# Written only when absent; operator edits are never overwritten.
DEFAULT_DOCUMENTS: Dict[str, str] = {
    GOALS: "# Current Goals & OKRs\n\nNo goals have been set yet.",
    DECISIONS: "# Decision Log\n\nNo decisions have been made yet.",
    PROJECT_STATUS: "# Project Status\n\nStatus: Initializing...",
}

AGENTS_PREFIX = "agents"


class InvalidDocumentKey(ValueError):
    """Raised for keys that are empty or escape the namespace."""
    pass


def normalize_key(key: str) -> str:
    """
    Validate a document key and return its canonical form.

    Keys are relative POSIX paths (``GOALS.md``, ``agents/milo/SOUL.md``).

    Raises:
        InvalidDocumentKey: empty key, absolute path, backslash or ``..``
    """
    if not key or not key.strip():
        raise InvalidDocumentKey("Document key must be non-empty")
    if "\\" in key:
        raise InvalidDocumentKey(f"Invalid document key: {key}")

    path = PurePosixPath(key)
    if path.is_absolute() or any(part in ("..", ".") for part in path.parts):
        raise InvalidDocumentKey(f"Invalid document key: {key}")

    return path.as_posix()


def timestamp_block(text: str, now: Optional[datetime] = None) -> str:
    """Format an appended block: a timestamped heading followed by the text."""
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%d %H:%M:%S")
    return f"\n\n### [{stamp}] Update\n{text}"


class AgentSubspace:
    """Handle on one agent's private area of the store."""

    def __init__(self, store: "DocumentStore", agent_name: str):
        self.store = store
        self.agent_name = agent_name
        self.prefix = f"{AGENTS_PREFIX}/{agent_name}"

    def key(self, name: str) -> str:
        return f"{self.prefix}/{name}"

    def read(self, name: str) -> str:
        return self.store.read(self.key(name))

    def write(self, name: str, text: str) -> bool:
        return self.store.write(self.key(name), text)

    def write_if_absent(self, name: str, text: str) -> bool:
        return self.store.write_if_absent(self.key(name), text)

    def exists(self, name: str) -> bool:
        return self.store.exists(self.key(name))


class DocumentStore(ABC):
    """
    Base class for team document stores.

    Subclasses implement the ``_``-prefixed primitives, which may raise.
    The public methods wrap them with key validation, locking, logging and
    the degrade-to-value error contract.
    """

    def __init__(self, namespace: str = "team"):
        self.namespace = namespace
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _create_namespace(self) -> None:
        ...

    @abstractmethod
    def _create_subspace(self, prefix: str) -> None:
        ...

    @abstractmethod
    def _exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        """Return the stored text, or None if the key does not exist."""
        ...

    @abstractmethod
    def _write(self, key: str, text: str) -> None:
        ...

    @abstractmethod
    def _create_if_absent(self, key: str, text: str) -> bool:
        """Create ``key`` with ``text`` atomically; False if it already existed."""
        ...

    @abstractmethod
    def _append(self, key: str, text: str) -> None:
        ...

    @abstractmethod
    def _keys(self) -> List[str]:
        ...

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def ensure_namespace(self) -> None:
        """Create the namespace and any missing well-known document."""
        try:
            self._create_namespace()
        except Exception as e:
            logger.error(
                f"Document store namespace creation failed: {self.namespace}",
                extra={"metadata": {"error": str(e)}}
            )
            return

        for key, content in DEFAULT_DOCUMENTS.items():
            if self.write_if_absent(key, content):
                logger.info(f"Default document created: {key}")

    def get_agent_subspace(self, agent_name: str) -> AgentSubspace:
        """Create (if needed) and return the private area of ``agent_name``."""
        subspace = AgentSubspace(self, agent_name)
        try:
            normalize_key(subspace.prefix)
            self._create_subspace(subspace.prefix)
        except Exception as e:
            logger.error(
                f"Agent subspace creation failed: {agent_name}",
                extra={"agent": agent_name, "metadata": {"error": str(e)}}
            )
        return subspace

    def exists(self, key: str) -> bool:
        try:
            return self._exists(normalize_key(key))
        except Exception as e:
            logger.error(
                f"Document store lookup failed: {key}",
                extra={"metadata": {"error": str(e)}}
            )
            return False

    def read(self, key: str) -> str:
        """Return the document text, or empty text if missing or unreadable."""
        try:
            content = self._read(normalize_key(key))
        except Exception as e:
            logger.error(
                f"Document store read failed: {key}",
                extra={"metadata": {"error": str(e)}}
            )
            return ""
        return content if content is not None else ""

    def write(self, key: str, text: str) -> bool:
        """Replace the full content of ``key``."""
        try:
            key = normalize_key(key)
            with self._lock_for(key):
                self._write(key, text)
        except Exception as e:
            logger.error(
                f"Document store write failed: {key}",
                extra={"metadata": {"error": str(e)}}
            )
            return False

        logger.info(f"Document store updated: {key}")
        return True

    def write_if_absent(self, key: str, text: str) -> bool:
        """Write ``text`` only when ``key`` does not exist yet. True if it was created."""
        try:
            key = normalize_key(key)
            with self._lock_for(key):
                return self._create_if_absent(key, text)
        except Exception as e:
            logger.error(
                f"Document store create failed: {key}",
                extra={"metadata": {"error": str(e)}}
            )
            return False

    def append(self, key: str, text: str) -> bool:
        """Append a timestamped block to ``key``, creating it if needed."""
        try:
            key = normalize_key(key)
            with self._lock_for(key):
                self._append(key, timestamp_block(text))
        except Exception as e:
            logger.error(
                f"Document store append failed: {key}",
                extra={"metadata": {"error": str(e)}}
            )
            return False
        return True

    def snapshot(self) -> Dict[str, str]:
        """The three shared documents every agent prompt embeds."""
        return {
            "goals": self.read(GOALS),
            "decisions": self.read(DECISIONS),
            "status": self.read(PROJECT_STATUS),
        }

    def list_keys(self) -> List[str]:
        try:
            return sorted(self._keys())
        except Exception as e:
            logger.error(
                "Document store listing failed",
                extra={"metadata": {"error": str(e)}}
            )
            return []


class FileDocumentStore(DocumentStore):
    """Documents as UTF-8 files below ``root``; the namespace is the directory name."""

    def __init__(self, root: Path):
        self.root = Path(root)
        super().__init__(namespace=self.root.name)

    def _path(self, key: str) -> Path:
        return self.root / key

    def _create_namespace(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _create_subspace(self, prefix: str) -> None:
        self._path(prefix).mkdir(parents=True, exist_ok=True)

    def _exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def _read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, key: str, text: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def _create_if_absent(self, key: str, text: str) -> bool:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(text)
        except FileExistsError:
            return False
        return True

    def _append(self, key: str, text: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(text)

    def _keys(self) -> List[str]:
        if not self.root.exists():
            return []
        return [
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob("*")
            if path.is_file()
        ]


class SqlDocumentStore(DocumentStore):
    """Documents as SharedDocument rows, scoped by namespace."""

    def __init__(self, engine: Engine, namespace: str = "team"):
        super().__init__(namespace=namespace)
        self.engine = engine
        self.session_factory = make_session_factory(engine)

    def _get(self, db, key: str):
        return (
            db.query(SharedDocument)
            .filter_by(namespace=self.namespace, key=key)
            .first()
        )

    def _create_namespace(self) -> None:
        init_db(self.engine)

    def _create_subspace(self, prefix: str) -> None:
        # Rows are created on first write; nothing to prepare.
        pass

    def _exists(self, key: str) -> bool:
        with self.session_factory() as db:
            return self._get(db, key) is not None

    def _read(self, key: str) -> Optional[str]:
        with self.session_factory() as db:
            document = self._get(db, key)
            return document.content if document is not None else None

    def _write(self, key: str, text: str) -> None:
        with self.session_factory() as db:
            document = self._get(db, key)
            if document is None:
                db.add(SharedDocument(namespace=self.namespace, key=key, content=text))
            else:
                document.content = text
            db.commit()

    def _create_if_absent(self, key: str, text: str) -> bool:
        with self.session_factory() as db:
            if self._get(db, key) is not None:
                return False
            db.add(SharedDocument(namespace=self.namespace, key=key, content=text))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                return False
        return True

    def _append(self, key: str, text: str) -> None:
        with self.session_factory() as db:
            document = self._get(db, key)
            if document is None:
                db.add(SharedDocument(namespace=self.namespace, key=key, content=text))
            else:
                document.content = (document.content or "") + text
            db.commit()

    def _keys(self) -> List[str]:
        with self.session_factory() as db:
            rows = db.query(SharedDocument.key).filter_by(namespace=self.namespace).all()
            return [row.key for row in rows]


def create_store_from_env() -> DocumentStore:
    """
    Build the document store selected by the environment.

    TEAM_STORE: ``file`` (default) or ``sql``
    TEAM_WORKSPACE: directory for the file store (default ./workspace/team)
    DATABASE_URL: database for the sql store
    """
    backend = os.getenv("TEAM_STORE", "file").lower()

    if backend == "sql":
        engine = make_engine(os.getenv("DATABASE_URL"))
        namespace = os.getenv("TEAM_NAMESPACE", "team")
        return SqlDocumentStore(engine, namespace=namespace)

    root = Path(os.getenv("TEAM_WORKSPACE", str(Path.cwd() / "workspace" / "team")))
    return FileDocumentStore(root)
