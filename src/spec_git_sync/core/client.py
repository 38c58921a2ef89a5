import logging
import threading
from typing import Any
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import Config
from ..errors import (
    AuthError,
    EncodingError,
    NetworkError,
    NotFound,
    RefConflict,
    RemoteError,
)
from ..sync.models import SyncTarget, TreeEntry
from ..validators import validate_repo_name
from .payloads import (
    BlobInfo,
    CommitInfo,
    ContentEntry,
    RefInfo,
    RepositoryInfo,
    ShaResponse,
    TreeInfo,
    UserInfo,
    encode_base64_text,
    parse_payload,
)

logger = logging.getLogger(__name__)

DEFAULT_REPO_DESCRIPTION = "Project specifications managed by spec-git-sync."
API_VERSION = "2022-11-28"


class GitHubClient:
    """Blocking client for the repository content and Git object REST API.

    Every method maps to one HTTP call.  Read-only calls are retried on
    transport errors and 502/503/504; writes are sent exactly once.
    """

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.api_url = config.api_url.rstrip("/")

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            }
        )
        session.verify = not self.config.insecure
        retry = Retry(
            total=self.config.read_retries,
            connect=self.config.read_retries,
            read=self.config.read_retries,
            status=self.config.read_retries,
            allowed_methods=frozenset({"GET"}),
            status_forcelist=(502, 503, 504),
            backoff_factor=0.5,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def _repo_path(self, target: SyncTarget, suffix: str) -> str:
        return f"/repos/{target.owner}/{target.repo}/{suffix}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
    ) -> Any:
        """
        Send one API request and return the decoded JSON body.

        Raises:
            AuthError: 401 or 403.
            NotFound: 404.
            NetworkError: Transport failure, timeout or 5xx.
            RemoteError: Any other non-success status.
            EncodingError: Body is not JSON.
        """
        url = f"{self.api_url}{path}"
        logger.debug("%s %s", method, path)
        try:
            response = self._get_session().request(
                method,
                url,
                json=json,
                params=params,
                timeout=(
                    self.config.connect_timeout,
                    self.config.read_timeout,
                ),
            )
        except requests.RequestException as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc

        status = response.status_code
        if status >= 400:
            message = _error_message(response)
            if status in (401, 403):
                raise AuthError(f"{method} {path} rejected ({status}): {message}")
            if status == 404:
                raise NotFound(f"{path}: {message}")
            if status >= 500:
                raise NetworkError(f"{method} {path} returned {status}: {message}")
            raise RemoteError(status, message)

        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise EncodingError(f"{method} {path}: response is not JSON") from exc

    # ------------------------------------------------------------------
    # Account and repository
    # ------------------------------------------------------------------

    def get_authenticated_user(self) -> UserInfo:
        """
        Return the login the token belongs to.
        """
        data = self._request("GET", "/user")
        return parse_payload(UserInfo, data, "user")

    def create_repository(
        self,
        name: str,
        private: bool = True,
        description: str = DEFAULT_REPO_DESCRIPTION,
        auto_init: bool = True,
    ) -> RepositoryInfo:
        """
        Create a repository owned by the authenticated user.

        Args:
            name: Repository name.
            private: Create as private (default True).
            description: Repository description.
            auto_init: Create an initial commit so the Git object API
                is usable straight away.

        Returns:
            Identity of the new repository, including the owner login.

        Raises:
            ValueError: If the name is invalid.
            RemoteError: If the provider rejects the name (e.g. it exists).
        """
        ok, reason = validate_repo_name(name)
        if not ok:
            raise ValueError(reason)
        data = self._request(
            "POST",
            "/user/repos",
            json={
                "name": name,
                "private": private,
                "description": description,
                "auto_init": auto_init,
            },
        )
        repo = parse_payload(RepositoryInfo, data, "repository")
        logger.info("Created repository %s", repo.full_name)
        return repo

    # ------------------------------------------------------------------
    # Contents (clone)
    # ------------------------------------------------------------------

    def get_contents(
        self, target: SyncTarget, path: str, ref: str | None = None
    ) -> list[ContentEntry] | ContentEntry:
        """
        List a directory or fetch one file at *ref* (default: the tracked
        branch).  Directory listings stop at the first 1,000 entries.

        Returns:
            A list of entries for a directory, a single entry (with
            inline content) for a file.

        Raises:
            NotFound: If *path* does not exist on the branch.
        """
        data = self._request(
            "GET",
            self._repo_path(target, f"contents/{quote(path, safe='/')}"),
            params={"ref": ref or target.branch},
        )
        if isinstance(data, list):
            return parse_payload(list[ContentEntry], data, "directory listing")
        return parse_payload(ContentEntry, data, "file")

    def get_blob(self, target: SyncTarget, sha: str) -> BlobInfo:
        data = self._request("GET", self._repo_path(target, f"git/blobs/{sha}"))
        return parse_payload(BlobInfo, data, "blob")

    # ------------------------------------------------------------------
    # Git objects (push)
    # ------------------------------------------------------------------

    def create_blob(self, target: SyncTarget, content: str) -> str:
        """
        Upload *content* as a blob and return its address.

        Content is sent as base64 of its UTF-8 bytes, so any Unicode text
        survives the round trip.

        Raises:
            EncodingError: If *content* cannot be encoded as UTF-8.
            RemoteError: 409 if the repository has no commits yet.
        """
        body = {"content": encode_base64_text(content), "encoding": "base64"}
        try:
            data = self._request(
                "POST", self._repo_path(target, "git/blobs"), json=body
            )
        except RemoteError as exc:
            # The Git object API is unavailable until the first commit exists
            if exc.status == 409:
                raise RemoteError(
                    409,
                    f"{target.full_name} is empty and must be initialised "
                    "with a first commit (e.g. a README) before pushing",
                ) from exc
            raise
        return parse_payload(ShaResponse, data, "blob").sha

    def create_tree(
        self,
        target: SyncTarget,
        entries: list[TreeEntry],
        base_tree: str | None = None,
    ) -> str:
        """
        Create a tree from *entries*, layered over *base_tree* if given.
        """
        body: dict[str, Any] = {"tree": [e.to_payload() for e in entries]}
        if base_tree is not None:
            body["base_tree"] = base_tree
        data = self._request(
            "POST", self._repo_path(target, "git/trees"), json=body
        )
        return parse_payload(ShaResponse, data, "tree").sha

    def get_tree(
        self, target: SyncTarget, sha: str, recursive: bool = True
    ) -> TreeInfo:
        params = {"recursive": "1"} if recursive else None
        data = self._request(
            "GET", self._repo_path(target, f"git/trees/{sha}"), params=params
        )
        return parse_payload(TreeInfo, data, "tree")

    def get_commit(self, target: SyncTarget, sha: str) -> CommitInfo:
        data = self._request(
            "GET", self._repo_path(target, f"git/commits/{sha}")
        )
        return parse_payload(CommitInfo, data, "commit")

    def create_commit(
        self,
        target: SyncTarget,
        message: str,
        tree_sha: str,
        parents: list[str],
    ) -> str:
        """
        Create a commit pointing at *tree_sha* with zero or one parent.
        """
        if len(parents) > 1:
            raise ValueError("Only linear history is supported (0 or 1 parent)")
        data = self._request(
            "POST",
            self._repo_path(target, "git/commits"),
            json={"message": message, "tree": tree_sha, "parents": parents},
        )
        return parse_payload(ShaResponse, data, "commit").sha

    # ------------------------------------------------------------------
    # Refs
    # ------------------------------------------------------------------

    def get_ref(self, target: SyncTarget) -> str | None:
        """
        Return the head commit of the tracked branch, or ``None`` if the
        branch does not exist.
        """
        path = self._repo_path(
            target, f"git/ref/heads/{quote(target.branch, safe='/')}"
        )
        try:
            data = self._request("GET", path)
        except NotFound:
            return None
        except RemoteError as exc:
            # An empty repository answers 409 instead of 404
            if exc.status == 409:
                logger.info("%s has no commits yet", target.full_name)
                return None
            raise
        return parse_payload(RefInfo, data, "ref").object.sha

    def create_ref(self, target: SyncTarget, sha: str) -> None:
        """
        Create the tracked branch pointing at *sha*.

        Raises:
            RefConflict: If the branch already exists.
        """
        try:
            self._request(
                "POST",
                self._repo_path(target, "git/refs"),
                json={"ref": f"refs/heads/{target.branch}", "sha": sha},
            )
        except RemoteError as exc:
            if exc.status in (409, 422):
                raise RefConflict(target.branch, None, None, str(exc)) from exc
            raise

    def update_ref(
        self, target: SyncTarget, sha: str, expected_prior: str | None = None
    ) -> None:
        """
        Fast-forward the tracked branch to *sha*.

        Raises:
            RefConflict: If the update is not a fast-forward.
        """
        try:
            self._request(
                "PATCH",
                self._repo_path(
                    target, f"git/refs/heads/{quote(target.branch, safe='/')}"
                ),
                json={"sha": sha, "force": False},
            )
        except RemoteError as exc:
            if exc.status in (409, 422):
                raise RefConflict(
                    target.branch, expected_prior, None, str(exc)
                ) from exc
            raise


def _error_message(response: requests.Response) -> str:
    """Best-effort human-readable message from an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason or "unknown error"
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            detail = errors[0].get("message")
            if detail:
                return str(detail)
        if body.get("message"):
            return str(body["message"])
    return response.reason or "unknown error"
