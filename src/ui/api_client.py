"""
Synchronous HTTP client for the FieldNotes backend API.

Uses ``httpx.Client`` (sync) because Streamlit scripts run synchronously.
The capture page submits a finished session through ``submit_interview``.
"""

import logging

import httpx
import streamlit as st
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.services.capture.bundle import CaptureBundle

logger = logging.getLogger(__name__)


class APIError(Exception):
    """User-friendly API error with categorized message.

    Categories: "connection", "timeout", "http", "network", "unknown".
    ``code`` carries the server's error code for "http" failures.
    """

    def __init__(
        self,
        message: str,
        category: str = "unknown",
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        self.message = message
        self.category = category
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class APIClient:
    """Thin synchronous wrapper around httpx for calling the FastAPI backend.

    All methods return parsed JSON or raise ``APIError``. Idempotent reads
    are retried on connection errors and timeouts; writes are sent once.
    """

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self._base_url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        resp = getattr(self._client, method)(path, **kwargs)
        resp.raise_for_status()
        return resp

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
        reraise=True,
    )
    def _send_idempotent(self, path: str, **kwargs) -> httpx.Response:
        return self._send("get", path, **kwargs)

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with user-friendly error handling.

        Args:
            method: HTTP method name ("get", "post", "put", "patch", "delete").
            path: API endpoint path (e.g. "/api/v1/projects").
            **kwargs: Passed through to httpx (json, data, files, timeout, etc.).

        Returns:
            The httpx Response object with a successful status code.

        Raises:
            APIError: On connection, timeout, HTTP status, or network errors.
        """
        try:
            if method == "get":
                return self._send_idempotent(path, **kwargs)
            return self._send(method, path, **kwargs)
        except httpx.ConnectError:
            raise APIError(
                "Backend server is not running. "
                "Start it with: `uvicorn src.api.app:app --reload --port 8000`",
                category="connection",
            ) from None
        except httpx.TimeoutException:
            raise APIError(
                "Request timed out. The server may be overloaded.",
                category="timeout",
            ) from None
        except httpx.HTTPStatusError as exc:
            code = None
            try:
                body = exc.response.json()
                detail = body.get("error") or body.get("detail") or exc.response.text
                code = body.get("code")
            except ValueError:
                detail = exc.response.text or str(exc)
            raise APIError(
                str(detail),
                category="http",
                status_code=exc.response.status_code,
                code=code,
            ) from None
        except httpx.HTTPError as exc:
            raise APIError(f"Network error: {exc}", category="network") from None

    # -- health --

    def health_check(self) -> dict:
        return self._request("get", "/health").json()

    def check_connection(self) -> tuple[bool, str]:
        """Check if the backend is reachable. Returns (ok, message)."""
        try:
            self.health_check()
            return True, "Connected"
        except APIError as exc:
            return False, exc.message

    # -- projects / personas / exercises --

    def list_projects(self) -> list[dict]:
        return self._request("get", "/api/v1/projects").json()

    def create_project(self, name: str, description: str | None = None) -> dict:
        body = {"name": name, "description": description}
        return self._request("post", "/api/v1/projects", json=body).json()

    def list_personas(self, project_id: str) -> list[dict]:
        return self._request("get", f"/api/v1/projects/{project_id}/personas").json()

    def create_persona(
        self,
        project_id: str,
        name: str,
        description: str | None = None,
        characteristics: str | None = None,
    ) -> dict:
        body = {
            "project_id": project_id,
            "name": name,
            "description": description,
            "characteristics": characteristics,
        }
        return self._request("post", "/api/v1/personas", json=body).json()

    def list_exercises(self, persona_id: str) -> list[dict]:
        return self._request("get", f"/api/v1/personas/{persona_id}/exercises").json()

    def create_exercise(
        self,
        persona_id: str,
        name: str,
        type: str = "Interview",
        description: str | None = None,
    ) -> dict:
        body = {"persona_id": persona_id, "name": name, "type": type, "description": description}
        return self._request("post", "/api/v1/exercises", json=body).json()

    def delete_entity(self, kind: str, entity_id: str) -> dict:
        """Delete a project, persona, exercise or interview with its descendants."""
        return self._request("delete", f"/api/v1/{kind}s/{entity_id}").json()

    # -- interviews --

    def list_interviews(self, exercise_id: str) -> list[dict]:
        return self._request("get", f"/api/v1/exercises/{exercise_id}/interviews").json()

    def get_interview(self, interview_id: str) -> dict:
        return self._request("get", f"/api/v1/interviews/{interview_id}").json()

    def download_audio(self, interview_id: str) -> bytes | None:
        """Fetch raw audio bytes for an interview. Returns None on error."""
        try:
            return self._request("get", f"/api/v1/interviews/{interview_id}/audio").content
        except APIError:
            return None

    def submit_interview(self, bundle: CaptureBundle) -> dict:
        """Upload a capture bundle as a multipart form.

        Returns:
            The created interview record.
        """
        data = {
            "personaId": bundle.persona_id,
            "exerciseId": bundle.exercise_id,
            "title": bundle.title,
            "duration": str(bundle.duration),
        }
        if bundle.annotations:
            data["annotations"] = bundle.annotations_json()
        files = None
        if bundle.audio:
            files = {"audio": (bundle.audio_filename, bundle.audio, "audio/wav")}
        logger.info(
            "Submitting interview %r (%d notes, audio=%s)",
            bundle.title,
            len(bundle.annotations),
            bool(bundle.audio),
        )
        return self._request(
            "post", "/api/v1/interviews", data=data, files=files, timeout=120.0
        ).json()


@st.cache_resource
def get_api_client(base_url: str = "http://localhost:8000") -> APIClient:
    """Return a cached APIClient, keyed by base_url.

    Uses Streamlit's ``cache_resource`` to persist the client across reruns.
    """
    return APIClient(base_url=base_url)
