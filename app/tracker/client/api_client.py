from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from app.tracker.client.session import SessionStore

logger = logging.getLogger(__name__)

# (method, url, headers, body) -> (status, body)
Transport = Callable[[str, str, dict[str, str], bytes | None], tuple[int, bytes]]


class ApiError(RuntimeError):
    def __init__(self, status: int, message: str):
        super().__init__(f"HTTP {status}: {message}")
        self.status = status
        self.message = message


def urllib_transport(timeout_seconds: int = 30) -> Transport:
    def send(method: str, url: str, headers: dict[str, str], body: bytes | None) -> tuple[int, bytes]:
        req = urllib.request.Request(url, data=body, method=method)
        for k, v in headers.items():
            req.add_header(k, v)
        try:
            with urllib.request.urlopen(req, timeout=timeout_seconds) as resp:
                return resp.status, resp.read()
        except urllib.error.HTTPError as e:
            try:
                raw = e.read()
            except Exception:
                raw = b""
            return e.code, raw
        except urllib.error.URLError as e:
            raise ApiError(0, f"Connection failed: {e.reason}") from e

    return send


@dataclass
class TrackerClient:
    """
    JSON client for the tracker API. Carries the bearer token from `session`
    and clears the session whenever the server answers 401 or 403.
    """

    base_url: str = "http://localhost:5000"
    session: SessionStore = field(default_factory=SessionStore)
    transport: Transport | None = None
    timeout_seconds: int = 30

    def _send(self) -> Transport:
        if self.transport is None:
            self.transport = urllib_transport(self.timeout_seconds)
        return self.transport

    def request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        url = self.base_url.rstrip("/") + path
        if params:
            query = {k: v for k, v in params.items() if v is not None and v != ""}
            if query:
                url += "?" + urllib.parse.urlencode(query)

        headers = {"Accept": "application/json"}
        token = self.session.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        data = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(body).encode("utf-8")

        status, raw = self._send()(method, url, headers, data)
        try:
            payload = json.loads(raw.decode("utf-8")) if raw else None
        except ValueError:
            payload = None

        if status >= 400:
            message = payload.get("message") if isinstance(payload, dict) else None
            message = message or raw.decode("utf-8", errors="ignore")[:300] or "Request failed"
            if status in (401, 403):
                # The UI treats both as "go back to the login screen".
                self.session.clear(f"http {status}")
            logger.error("%s %s failed: %s %s", method, path, status, message)
            raise ApiError(status, message)
        return payload

    # ---------- Auth ----------
    def register(self, name: str, email: str, password: str) -> dict[str, Any]:
        j = self.request_json("POST", "/api/auth/register", body={"name": name, "email": email, "password": password})
        self.session.populate(j["token"], j["user"])
        return j["user"]

    def login(self, email: str, password: str) -> dict[str, Any]:
        j = self.request_json("POST", "/api/auth/login", body={"email": email, "password": password})
        self.session.populate(j["token"], j["user"])
        return j["user"]

    def logout(self) -> None:
        self.session.clear("logout")

    def me(self) -> dict[str, Any]:
        user = self.request_json("GET", "/api/auth/user")
        self.session.update_user(user)
        return user

    def delete_account(self) -> None:
        self.request_json("DELETE", "/api/auth/user")
        self.session.clear("account deleted")

    def health(self) -> dict[str, Any]:
        return self.request_json("GET", "/api/health")

    # ---------- Projects ----------
    def list_projects(self) -> list[dict[str, Any]]:
        return self.request_json("GET", "/api/projects")

    def create_project(self, title: str, description: str | None = None) -> dict[str, Any]:
        return self.request_json("POST", "/api/projects", body={"title": title, "description": description})

    def get_project(self, project_id: int) -> dict[str, Any]:
        return self.request_json("GET", f"/api/projects/{project_id}")

    def update_project(self, project_id: int, **fields: Any) -> dict[str, Any]:
        return self.request_json("PUT", f"/api/projects/{project_id}", body=fields)

    def delete_project(self, project_id: int) -> None:
        self.request_json("DELETE", f"/api/projects/{project_id}")

    def invite(self, project_id: int, email: str) -> dict[str, Any]:
        return self.request_json("POST", f"/api/projects/{project_id}/invite", body={"email": email})

    def remove_member(self, project_id: int, member_id: int) -> dict[str, Any]:
        return self.request_json("DELETE", f"/api/projects/{project_id}/members/{member_id}")

    # ---------- Tickets ----------
    def list_tickets(
        self,
        project_id: int,
        *,
        status: str | None = None,
        priority: str | None = None,
        assignee: int | str | None = None,
        keyword: str | None = None,
    ) -> list[dict[str, Any]]:
        return self.request_json(
            "GET",
            "/api/tickets",
            params={
                "projectId": project_id,
                "status": status,
                "priority": priority,
                "assignee": assignee,
                "keyword": keyword,
            },
        )

    def create_ticket(self, project_id: int, title: str, **fields: Any) -> dict[str, Any]:
        return self.request_json("POST", "/api/tickets", body={"projectId": project_id, "title": title, **fields})

    def get_ticket(self, ticket_id: int) -> dict[str, Any]:
        return self.request_json("GET", f"/api/tickets/{ticket_id}")

    def update_ticket(self, ticket_id: int, **fields: Any) -> dict[str, Any]:
        return self.request_json("PUT", f"/api/tickets/{ticket_id}", body=fields)

    def delete_ticket(self, ticket_id: int) -> None:
        self.request_json("DELETE", f"/api/tickets/{ticket_id}")

    def assign_ticket(self, ticket_id: int, user_id: int) -> dict[str, Any]:
        return self.request_json("PUT", f"/api/tickets/{ticket_id}/assign", body={"userId": user_id})

    # ---------- Comments ----------
    def list_comments(self, ticket_id: int) -> list[dict[str, Any]]:
        return self.request_json("GET", "/api/comments", params={"ticketId": ticket_id})

    def add_comment(self, ticket_id: int, text: str) -> dict[str, Any]:
        return self.request_json("POST", "/api/comments", body={"ticketId": ticket_id, "text": text})

    def edit_comment(self, comment_id: int, text: str) -> dict[str, Any]:
        return self.request_json("PUT", f"/api/comments/{comment_id}", body={"text": text})

    def delete_comment(self, comment_id: int) -> None:
        self.request_json("DELETE", f"/api/comments/{comment_id}")

    # ---------- Users (admin) ----------
    def list_users(self) -> list[dict[str, Any]]:
        return self.request_json("GET", "/api/users")

    def set_role(self, user_id: int, role: str) -> dict[str, Any]:
        return self.request_json("PUT", f"/api/users/{user_id}/role", body={"role": role})
