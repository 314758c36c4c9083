"""Utilities for talking to Supabase's REST (PostgREST) and Storage APIs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import quote

import requests

from lib.schema_defaults import DEFAULT_BUCKET, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

RESPONSES_CONFLICT_TARGET = "organization_id,question_id"
PROGRESS_CONFLICT_TARGET = "form_id,contactEmail,question_id"


class BackendError(RuntimeError):
    """Raised when a call to the remote store fails."""


@dataclass(frozen=True)
class SupabaseConfig:
    """Connection settings for a Supabase project."""

    url: str
    key: str
    bucket: str = DEFAULT_BUCKET


@dataclass
class SupabaseBackend:
    """Thin wrapper around the tables and bucket used by the intake form."""

    config: SupabaseConfig
    timeout: float = REQUEST_TIMEOUT

    def _headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Build request headers for the Supabase APIs."""

        headers = {
            "apikey": self.config.key,
            "Authorization": f"Bearer {self.config.key}",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _rest_url(self, table: str) -> str:
        return f"{self.config.url.rstrip('/')}/rest/v1/{table}"

    def _storage_url(self, path: str) -> str:
        return f"{self.config.url.rstrip('/')}/storage/v1/object/{self.config.bucket}/{quote(path)}"

    def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        try:
            response = requests.get(
                self._rest_url(table),
                headers=self._headers(),
                params=params,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise BackendError(f"Failed to read from '{table}': {exc}") from exc
        if not isinstance(payload, list):
            raise BackendError(f"Unexpected payload from '{table}': {type(payload).__name__}")
        return payload

    def _upsert(self, table: str, rows: Sequence[Mapping[str, Any]], conflict_target: str) -> None:
        if not rows:
            return
        try:
            response = requests.post(
                self._rest_url(table),
                headers=self._headers(
                    {
                        "Content-Type": "application/json",
                        "Prefer": "resolution=merge-duplicates,return=minimal",
                    }
                ),
                params={"on_conflict": conflict_target},
                json=[dict(row) for row in rows],
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise BackendError(f"Failed to upsert into '{table}': {exc}") from exc
        logger.info("Upserted %d row(s) into %s", len(rows), table)

    def fetch_questions(self, form_id: int) -> List[Dict[str, Any]]:
        """Return active question rows for ``form_id`` ordered by id."""

        return self._select(
            "questions",
            {
                "select": "*",
                "form_id": f"eq.{form_id}",
                "status": "eq.true",
                "order": "id.asc",
            },
        )

    def upsert_responses(self, rows: Sequence[Mapping[str, Any]]) -> None:
        self._upsert("responses", rows, RESPONSES_CONFLICT_TARGET)

    def fetch_responses(self, organization_id: Any) -> List[Dict[str, Any]]:
        return self._select(
            "responses",
            {"select": "question_id,answer", "organization_id": f"eq.{organization_id}"},
        )

    def upsert_progress(self, rows: Sequence[Mapping[str, Any]]) -> None:
        self._upsert("progress", rows, PROGRESS_CONFLICT_TARGET)

    def fetch_progress(self, form_id: int, email: str) -> List[Dict[str, Any]]:
        return self._select(
            "progress",
            {
                "select": "question_id,answer",
                "form_id": f"eq.{form_id}",
                "contactEmail": f"eq.{email}",
            },
        )

    def find_organizations(self, email: str) -> List[Dict[str, Any]]:
        """Return organisations whose contact email matches ``email`` exactly."""

        return self._select("organizations", {"select": "id", "contactEmail": f"eq.{email}"})

    def upload_file(self, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        """Upload ``content`` to ``path`` in the bucket and return the stored path."""

        try:
            response = requests.post(
                self._storage_url(path),
                headers=self._headers({"Content-Type": content_type or "application/octet-stream"}),
                data=content,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise BackendError(f"Failed to upload '{path}': {exc}") from exc

        # Storage answers with "<bucket>/<path>" under "Key".
        key = payload.get("Key") if isinstance(payload, dict) else None
        prefix = f"{self.config.bucket}/"
        if isinstance(key, str) and key.startswith(prefix):
            return key[len(prefix):]
        return path

    def public_url(self, path: str) -> str:
        """Return the public URL for an object stored in the bucket."""

        return f"{self.config.url.rstrip('/')}/storage/v1/object/public/{self.config.bucket}/{quote(path)}"
