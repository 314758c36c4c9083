"""Shared fixtures: an in-memory stand-in for the Supabase backend."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import pytest

from lib.questions import Question
from lib.supabase_backend import BackendError


class FakeBackend:
    """Records every call and serves canned rows instead of hitting Supabase."""

    def __init__(
        self,
        *,
        questions: Optional[List[Dict[str, Any]]] = None,
        organizations: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        responses: Optional[Dict[Any, List[Dict[str, Any]]]] = None,
        progress: Optional[Dict[tuple, List[Dict[str, Any]]]] = None,
        fail_uploads: Iterable[str] = (),
        fail_upsert: bool = False,
        fail_reads: bool = False,
    ) -> None:
        self.questions = questions or []
        self.organizations = organizations or {}
        self.responses = responses or {}
        self.progress = progress or {}
        self.fail_uploads = set(fail_uploads)
        self.fail_upsert = fail_upsert
        self.fail_reads = fail_reads
        self.calls: List[str] = []
        self.uploads: List[Dict[str, Any]] = []
        self.response_upserts: List[List[Dict[str, Any]]] = []
        self.progress_upserts: List[List[Dict[str, Any]]] = []

    def _read(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_reads:
            raise BackendError(f"{name} unavailable")

    def fetch_questions(self, form_id: int) -> List[Dict[str, Any]]:
        self._read("fetch_questions")
        return [row for row in self.questions if row.get("form_id") == form_id]

    def find_organizations(self, email: str) -> List[Dict[str, Any]]:
        self._read("find_organizations")
        return list(self.organizations.get(email, []))

    def fetch_responses(self, organization_id: Any) -> List[Dict[str, Any]]:
        self._read("fetch_responses")
        return list(self.responses.get(organization_id, []))

    def fetch_progress(self, form_id: int, email: str) -> List[Dict[str, Any]]:
        self._read("fetch_progress")
        return list(self.progress.get((form_id, email), []))

    def upload_file(self, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        self.calls.append("upload_file")
        if path.rsplit("/", 1)[-1] in self.fail_uploads:
            raise BackendError(f"upload of {path} rejected")
        self.uploads.append({"path": path, "content": content, "content_type": content_type})
        return path

    def upsert_responses(self, rows: List[Dict[str, Any]]) -> None:
        self.calls.append("upsert_responses")
        if self.fail_upsert:
            raise BackendError("responses upsert rejected")
        self.response_upserts.append(list(rows))

    def upsert_progress(self, rows: List[Dict[str, Any]]) -> None:
        self.calls.append("upsert_progress")
        if self.fail_upsert:
            raise BackendError("progress upsert rejected")
        self.progress_upserts.append(list(rows))

    def public_url(self, path: str) -> str:
        return f"https://example.supabase.co/storage/v1/object/public/profile_photo/{path}"

    @property
    def writes(self) -> List[str]:
        return [call for call in self.calls if call.startswith("upsert") or call == "upload_file"]


@pytest.fixture
def fake_backend_factory():
    return FakeBackend


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


def make_question(question_id: int, question_type: str = "text", **overrides: Any) -> Question:
    values: Dict[str, Any] = {
        "id": question_id,
        "form_id": 1,
        "type": question_type,
        "label": f"Question {question_id}",
    }
    values.update(overrides)
    return Question(**values)


@pytest.fixture
def question_factory():
    return make_question
