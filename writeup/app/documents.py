"""Documents and the stores that persist them.

The editor only needs ``save(document_id, fields)`` and ``load(document_id)``;
two stores are provided: JSON files in a local folder and an HTTP API reached
through httpx.
"""

from __future__ import annotations

import json
import logging
import math
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import httpx

from writeup.app.errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)

STATUS_DRAFT = "draft"
STATUS_PUBLISHED = "published"
STATUSES = (STATUS_DRAFT, STATUS_PUBLISHED)
MAX_TAGS = 5
WORDS_PER_MINUTE = 200

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass
class Document:
    id: str
    title: str = ""
    content: str = ""
    tags: list[str] = field(default_factory=list)
    status: str = STATUS_DRAFT

    @classmethod
    def from_fields(cls, document_id: str, fields: dict) -> "Document":
        status = fields.get("status")
        return cls(
            id=document_id,
            title=str(fields.get("title") or ""),
            content=str(fields.get("content") or ""),
            tags=[str(tag) for tag in fields.get("tags") or []],
            status=status if status in STATUSES else STATUS_DRAFT,
        )


def generate_slug(title: str) -> str:
    """URL slug for a title: accents dropped, lower-case, hyphen separated."""
    text = unicodedata.normalize("NFD", (title or "").lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip()


def generate_excerpt(content: str, max_length: int = 160) -> str:
    """Plain-text teaser of a markdown body."""
    text = content or ""
    text = re.sub(r"```[\s\S]*?```", "", text)
    text = re.sub(r"`[^`]+`", "", text)
    text = re.sub(r"#+\s", "", text)
    text = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
    text = re.sub(r"\*([^*]+)\*", r"\1", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    text = re.sub(r"!\[([^\]]*)\]\([^)]+\)", "", text)
    text = re.sub(r">\s", "", text)
    text = re.sub(r"[-*]\s", "", text)
    text = re.sub(r"\n+", " ", text).strip()
    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "..."


def calculate_read_time(content: str) -> int:
    """Minutes to read at 200 words per minute, never less than one."""
    words = len((content or "").split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def normalize_tags(tags: Iterable[str]) -> list[str]:
    result: list[str] = []
    for tag in tags or []:
        cleaned = str(tag).strip().lower()
        if cleaned and cleaned not in result:
            result.append(cleaned)
        if len(result) >= MAX_TAGS:
            break
    return result


def build_save_fields(title: str, content: str, tags: Iterable[str] = (), status: str = STATUS_DRAFT) -> dict:
    """Validate an explicit save and return the fields handed to the store."""
    if not (title or "").strip():
        raise ValidationError("Please enter a title.")
    if not (content or "").strip():
        raise ValidationError("Please enter some content.")
    if status not in STATUSES:
        raise ValidationError(f"Unknown status: {status!r}")
    return {
        "title": title.strip(),
        "slug": generate_slug(title),
        "content": content,
        "excerpt": generate_excerpt(content),
        "tags": normalize_tags(tags),
        "status": status,
        "read_time": calculate_read_time(content),
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }


class DocumentStore:
    """Persistence contract used by the editor window and the autosave."""

    def save(self, document_id: str, fields: dict) -> None:
        raise NotImplementedError

    def load(self, document_id: str) -> Document:
        raise NotImplementedError

    def close(self) -> None:
        return None


class FileDocumentStore(DocumentStore):
    """One JSON file per document inside *root*."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser()

    def _path_for(self, document_id: str) -> Path:
        if not _SAFE_ID.match(document_id or ""):
            raise PersistenceError(f"Invalid document id: {document_id!r}")
        return self.root / f"{document_id}.json"

    def load(self, document_id: str) -> Document:
        path = self._path_for(document_id)
        if not path.exists():
            return Document(id=document_id)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Failed to read {path.name}: {exc}") from exc
        return Document.from_fields(document_id, payload if isinstance(payload, dict) else {})

    def save(self, document_id: str, fields: dict) -> None:
        path = self._path_for(document_id)
        existing: dict = {}
        if path.exists():
            try:
                existing = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                logger.warning("Overwriting unreadable document file %s", path)
                existing = {}
        existing.update(fields)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(existing, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise PersistenceError(f"Failed to write {path.name}: {exc}") from exc
        logger.debug("Saved %s (%d fields)", path, len(fields))


class HttpDocumentStore(DocumentStore):
    """Documents behind ``GET/PUT {api_base}/api/documents/{id}``."""

    def __init__(
        self,
        api_base: str,
        token: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        headers = {"Authorization": f"Bearer {token}"} if token else None
        self.http = client or httpx.Client(base_url=self.api_base, timeout=timeout, headers=headers)

    def load(self, document_id: str) -> Document:
        try:
            resp = self.http.get(f"/api/documents/{document_id}")
            if resp.status_code == 404:
                return Document(id=document_id)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise PersistenceError(f"Failed to load document: {exc}") from exc
        return Document.from_fields(document_id, payload if isinstance(payload, dict) else {})

    def save(self, document_id: str, fields: dict) -> None:
        try:
            resp = self.http.put(f"/api/documents/{document_id}", json=fields)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            status = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else "n/a"
            logger.info("Write FAILED %s status=%s", document_id, status)
            raise PersistenceError(f"Failed to save: {exc}") from exc
        logger.debug("Write OK %s status=%s", document_id, resp.status_code)

    def close(self) -> None:
        self.http.close()
