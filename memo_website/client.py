"""
Python client for the Memo API and the form state a memo screen keeps.

MemoClient wraps the HTTP surface and holds the server-issued session token.
SignUpForm and MemoBoard keep in-memory form fields, call the client,
and turn failures into form-level error text.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """An error response from the Memo API."""

    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class MemoClient:
    """
    Thin HTTP client for the Memo API.

    Args:
        base_url (str): API root, e.g. "http://localhost:8000"
        http (httpx.Client): Pre-built client to use instead (tests pass a TestClient)
        timeout (float): Request timeout in seconds when building the client
    """

    def __init__(self, base_url: str = "http://localhost:8000", http: Optional[httpx.Client] = None,
                 timeout: float = 10.0):
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.token: Optional[str] = None

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "MemoClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self.http.request(method, path, headers=headers, **kwargs)
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise ApiError(response.status_code, body.get("code", "INTERNAL_ERROR"),
                           body.get("error", response.reason_phrase))
        return response.json()

    # Accounts

    def register(self, email: str, password: str, name: Optional[str] = None,
                 nickname: Optional[str] = None) -> Dict[str, Any]:
        return self._request("POST", "/auth/register",
                             json={"email": email, "password": password, "name": name, "nickname": nickname})

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        # The bearer header is authoritative; don't let a cookie jar keep a second copy
        self.http.cookies.clear()
        return data["user"]

    def logout(self) -> None:
        try:
            self._request("POST", "/auth/logout")
        finally:
            self.token = None
            self.http.cookies.clear()

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/me")

    def password_strength(self, password: str) -> Dict[str, Any]:
        return self._request("POST", "/auth/password-strength", json={"password": password})

    # Memos

    def list_memos(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/memos")

    def create_memo(self, title: str, content: str) -> Dict[str, Any]:
        return self._request("POST", "/api/memos", json={"title": title, "content": content})

    def get_memo(self, memo_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/memos/{memo_id}")

    def update_memo(self, memo_id: str, title: Optional[str] = None,
                    content: Optional[str] = None) -> Dict[str, Any]:
        payload = {key: value for key, value in (("title", title), ("content", content)) if value is not None}
        return self._request("PUT", f"/api/memos/{memo_id}", json=payload)

    def delete_memo(self, memo_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/api/memos/{memo_id}")


class FormState:
    """Loading flag and form-level error text shared by the screens below."""

    def __init__(self, client: MemoClient):
        self.client = client
        self.error = ""
        self.is_loading = False

    def _call(self, action, *args) -> Any:
        self.is_loading = True
        self.error = ""
        try:
            return action(*args)
        except ApiError as e:
            logger.info("Request failed: %s %s", e.code, e.message)
            self.error = e.message
            return None
        except httpx.HTTPError as e:
            logger.warning("Memo API unreachable: %s", e)
            self.error = "Could not reach the memo service"
            return None
        finally:
            self.is_loading = False


class SignUpForm(FormState):
    """
    Sign-up form state.

    Blank nickname and mismatched passwords are rejected locally, before any
    request. Password rules beyond that are the server's call; `strength` is
    live, advisory feedback from /auth/password-strength.
    """

    def __init__(self, client: MemoClient):
        super().__init__(client)
        self.name = ""
        self.nickname = ""
        self.email = ""
        self.password = ""
        self.confirm_password = ""
        self.strength: Optional[Dict[str, Any]] = None
        self.user: Optional[Dict[str, Any]] = None

    def check_strength(self) -> Optional[Dict[str, Any]]:
        """Refresh `strength` for the current password; None while the field is empty."""
        if not self.password:
            self.strength = None
        else:
            self.strength = self._call(self.client.password_strength, self.password)
        return self.strength

    def submit(self) -> bool:
        """Register the account. Returns True on success and keeps the new user in `user`."""
        if not self.nickname.strip():
            self.error = "Nickname is required"
            return False
        if self.password != self.confirm_password:
            self.error = "Passwords do not match"
            return False

        result = self._call(self.client.register, self.email, self.password,
                            self.name.strip() or None, self.nickname.strip())
        if result is None:
            return False

        self.user = result["user"]
        self.password = ""
        self.confirm_password = ""
        self.strength = None
        return True


class MemoBoard(FormState):
    """
    Form and list state for one signed-in user's memo screen.

    `title`/`content` back the form. When `editing_id` is set, submit() saves
    the form into that memo instead of creating a new one. Failures are kept
    in `error` for display; nothing is retried.
    """

    def __init__(self, client: MemoClient):
        super().__init__(client)
        self.memos: List[Dict[str, Any]] = []
        self.title = ""
        self.content = ""
        self.editing_id: Optional[str] = None

    def clear_form(self) -> None:
        self.title = ""
        self.content = ""
        self.editing_id = None

    def refresh(self) -> List[Dict[str, Any]]:
        memos = self._call(self.client.list_memos)
        if memos is not None:
            self.memos = memos
        return self.memos

    def start_edit(self, memo_id: str) -> None:
        for memo in self.memos:
            if memo["id"] == memo_id:
                self.editing_id = memo_id
                self.title = memo["title"]
                self.content = memo["content"]
                self.error = ""
                return
        self.error = "Memo not found"

    def cancel_edit(self) -> None:
        self.clear_form()
        self.error = ""

    def submit(self) -> bool:
        """Create or save the memo in the form. Returns True on success."""
        if not self.title.strip() or not self.content.strip():
            self.error = "Title and content are required"
            return False

        if self.editing_id:
            saved = self._call(self.client.update_memo, self.editing_id, self.title, self.content)
        else:
            saved = self._call(self.client.create_memo, self.title, self.content)
        if saved is None:
            return False

        self.clear_form()
        self.refresh()
        return True

    def delete(self, memo_id: str) -> bool:
        if self._call(self.client.delete_memo, memo_id) is None:
            return False
        if self.editing_id == memo_id:
            self.clear_form()
        self.refresh()
        return True
