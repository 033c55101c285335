"""
GitHub collaborators: which files changed, and where the results go.

Reads the workflow context GitHub Actions provides through environment
variables, lists the files a pull request (or push) changed, and publishes
the report as a check run. Requests fail fast; there is no retry.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional, Sequence
from urllib.parse import parse_qs, urlparse

import httpx

from .diff_parser import ChangedFile, changed_files_from_api
from .errors import GitHubError
from .file_coverage import Annotation
from .report import Summary

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
CHECK_NAME = "Code coverage"
# The checks API accepts at most this many annotations per request
ANNOTATIONS_PER_REQUEST = 50
FILES_PER_PAGE = 100


@dataclass(frozen=True)
class GitHubContext:
    """The slice of the Actions environment this tool needs."""

    event_name: str
    repository: str
    sha: str
    payload: dict[str, Any] = field(default_factory=dict, repr=False)
    api_url: str = DEFAULT_API_URL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GitHubContext":
        env = os.environ if environ is None else environ
        missing = [
            name for name in ("GITHUB_EVENT_NAME", "GITHUB_REPOSITORY", "GITHUB_SHA")
            if not env.get(name)
        ]
        if missing:
            raise GitHubError(
                f"Not running in GitHub Actions: {', '.join(missing)} not set "
                "(pass --diff to read changes from a local diff instead)"
            )

        payload: dict[str, Any] = {}
        event_path = env.get("GITHUB_EVENT_PATH")
        if event_path:
            try:
                with open(event_path, "r", encoding="utf-8") as f:
                    payload = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise GitHubError(f"Could not read event payload {event_path}: {e}") from e

        return cls(
            event_name=env["GITHUB_EVENT_NAME"],
            repository=env["GITHUB_REPOSITORY"],
            sha=env["GITHUB_SHA"],
            payload=payload,
            api_url=env.get("GITHUB_API_URL") or DEFAULT_API_URL,
        )

    @property
    def is_pull_request(self) -> bool:
        return self.event_name == "pull_request"

    @property
    def pull_number(self) -> int:
        try:
            return int(self.payload["pull_request"]["number"])
        except (KeyError, TypeError, ValueError) as e:
            raise GitHubError("pull_request event payload has no pull request number") from e

    @property
    def head_sha(self) -> str:
        """
        Commit the check run belongs to.

        For pull requests GITHUB_SHA is the merge commit of the PR merge
        branch, so the head commit of the PR branch is used instead.
        """
        if self.is_pull_request:
            head = self.payload.get("pull_request", {}).get("head", {})
            if head.get("sha"):
                return head["sha"]
        return self.sha

    @property
    def default_branch(self) -> str:
        try:
            return self.payload["repository"]["default_branch"]
        except (KeyError, TypeError) as e:
            raise GitHubError("event payload has no repository default branch") from e


class GitHubClient:
    """Minimal REST client for the endpoints this tool uses."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "coverage-annotator",
            },
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> httpx.Response:
        try:
            response = self._client.request(method, path, params=params, json=json_body)
        except httpx.HTTPError as e:
            raise GitHubError(f"GitHub request {method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise GitHubError(
                f"GitHub API error {response.status_code} for {method} {path}: "
                f"{_error_message(response)}",
                status_code=response.status_code,
            )
        return response

    def paginate(self, path: str, params: Optional[dict] = None) -> Iterator[Any]:
        next_path: Optional[str] = path
        next_params = params or {}
        while next_path:
            response = self.request("GET", next_path, params=next_params)
            for item in response.json() or []:
                yield item
            next_path, next_params = _next_page(response.headers)

    def list_pull_request_files(self, repository: str, number: int) -> list[dict]:
        return list(self.paginate(
            f"/repos/{repository}/pulls/{number}/files",
            params={"per_page": FILES_PER_PAGE},
        ))

    def compare_commits(self, repository: str, base: str, head: str) -> list[dict]:
        response = self.request("GET", f"/repos/{repository}/compare/{base}...{head}")
        return response.json().get("files", [])

    def create_check_run(
        self,
        repository: str,
        head_sha: str,
        success: bool,
        summary: Summary,
        annotations: Sequence[Annotation],
    ) -> dict:
        """
        Publish a completed check run.

        The first batch of annotations goes with the create request, the
        rest follow as updates to the same run.
        """
        batches = [
            annotations[i:i + ANNOTATIONS_PER_REQUEST]
            for i in range(0, len(annotations), ANNOTATIONS_PER_REQUEST)
        ] or [[]]

        output = {
            "title": summary.title,
            "summary": summary.summary,
            "text": summary.details,
        }
        response = self.request("POST", f"/repos/{repository}/check-runs", json_body={
            "name": CHECK_NAME,
            "head_sha": head_sha,
            "status": "completed",
            "conclusion": "success" if success else "failure",
            "output": {**output, "annotations": [a.to_dict() for a in batches[0]]},
        })
        check_run = response.json()

        for batch in batches[1:]:
            self.request(
                "PATCH",
                f"/repos/{repository}/check-runs/{check_run['id']}",
                json_body={"output": {**output, "annotations": [a.to_dict() for a in batch]}},
            )
        return check_run


def determine_changed_files(client: GitHubClient, context: GitHubContext) -> list[ChangedFile]:
    """
    Files changed by the triggering event.

    Pull requests use the PR's file list; pushes are compared against the
    repository's default branch.
    """
    if context.is_pull_request:
        items = client.list_pull_request_files(context.repository, context.pull_number)
    else:
        items = client.compare_commits(context.repository, context.default_branch, context.sha)
    logger.info(f"{len(items)} changed files in {context.repository}")
    return changed_files_from_api(items)


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message", response.text)
    except (ValueError, AttributeError):
        return response.text


def _next_page(headers: Mapping[str, str]) -> tuple[Optional[str], Optional[dict]]:
    link = headers.get("Link") or headers.get("link")
    if not link:
        return None, None
    for part in link.split(","):
        section = part.split(";")
        if len(section) < 2 or 'rel="next"' not in section[1]:
            continue
        url = section[0].strip()[1:-1]
        parsed = urlparse(url)
        params = {key: values[-1] for key, values in parse_qs(parsed.query).items()}
        return parsed._replace(query="").geturl(), params
    return None, None
