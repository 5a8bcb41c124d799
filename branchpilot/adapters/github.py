"""GitHub API adapter (REST for pull requests, GraphQL for auto-merge)."""

from typing import Any, Dict, List

import requests

from branchpilot.adapters.base import CodeReviewAdapter, GitPlatformError
from branchpilot.models import MergeStrategies, PullRequest

_MERGE_METHODS = {"squash": "SQUASH", "merge": "MERGE", "rebase": "REBASE"}

_ENABLE_AUTO_MERGE = """
mutation($pullRequestId: ID!, $mergeMethod: PullRequestMergeMethod!) {
  enablePullRequestAutoMerge(input: {pullRequestId: $pullRequestId, mergeMethod: $mergeMethod}) {
    clientMutationId
  }
}
"""


def _pr_from_api(data: Any) -> PullRequest:
    if not isinstance(data, dict) or "number" not in data:
        raise GitPlatformError(f"Unexpected pull request payload: {str(data)[:200]}")
    head = data.get("head") or {}
    base = data.get("base") or {}
    return PullRequest(
        number=data["number"],
        url=data.get("html_url") or "",
        head_branch=head.get("ref", ""),
        base_branch=base.get("ref", ""),
        node_id=data.get("node_id"),
        state=data.get("state", "open"),
    )


def _json(resp: requests.Response, expected: type = dict) -> Any:
    """Decoded reply body; a non-JSON or wrongly shaped body is a GitPlatformError."""
    try:
        data = resp.json()
    except ValueError as e:
        raise GitPlatformError(f"Invalid JSON from {resp.url}: {resp.text[:200]!r}") from e
    if data is None and expected is list:
        return []
    if not isinstance(data, expected):
        raise GitPlatformError(f"Unexpected reply from {resp.url}: {str(data)[:200]}")
    return data


def _graphql_url(api_url: str) -> str:
    # GitHub Enterprise serves REST at /api/v3 and GraphQL at /api/graphql
    if api_url.endswith("/api/v3"):
        return api_url[: -len("/v3")] + "/graphql"
    return f"{api_url}/graphql"


class GitHubAdapter(CodeReviewAdapter):
    """GitHub API implementation."""

    def __init__(self, token: str, api_url: str = "https://api.github.com") -> None:
        self._api_url = api_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers["Authorization"] = f"token {token}"
        self._session.headers["Accept"] = "application/vnd.github.v3+json"

    def _request(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
    ) -> requests.Response:
        url = f"{self._api_url}{path}" if path.startswith("/") else f"{self._api_url}/{path}"
        try:
            resp = self._session.request(method, url, params=params, json=json, timeout=30)
        except requests.RequestException as e:
            raise GitPlatformError(f"{method} {path}: {e}") from e
        if resp.status_code >= 400:
            msg = resp.text or resp.reason or str(resp.status_code)
            try:
                msg = resp.json().get("message", msg)
            except Exception:
                pass
            raise GitPlatformError(f"{resp.status_code}: {msg}")
        return resp

    def list_open_pull_requests(self, repo: str, head_branch: str) -> List[PullRequest]:
        owner = repo.split("/", 1)[0]
        resp = self._request(
            "GET",
            f"/repos/{repo}/pulls",
            params={"state": "open", "head": f"{owner}:{head_branch}"},
        )
        data = _json(resp, list)
        return [_pr_from_api(d) for d in data]

    def get_default_branch(self, repo: str) -> str:
        data = _json(self._request("GET", f"/repos/{repo}"))
        return data.get("default_branch") or "main"

    def create_pr(
        self,
        repo: str,
        head: str,
        base: str,
        title: str,
        body: str,
        draft: bool = False,
    ) -> PullRequest:
        resp = self._request(
            "POST",
            f"/repos/{repo}/pulls",
            json={"title": title, "body": body, "head": head, "base": base, "draft": draft},
        )
        return _pr_from_api(_json(resp))

    def add_labels(self, repo: str, pr_number: int, labels: List[str]) -> None:
        self._request("POST", f"/repos/{repo}/issues/{pr_number}/labels", json={"labels": labels})

    def request_reviewers(self, repo: str, pr_number: int, reviewers: List[str]) -> None:
        # "org/team" entries are team reviewers
        users = [r for r in reviewers if "/" not in r]
        teams = [r.split("/", 1)[1] for r in reviewers if "/" in r]
        payload: Dict[str, Any] = {"reviewers": users}
        if teams:
            payload["team_reviewers"] = teams
        self._request("POST", f"/repos/{repo}/pulls/{pr_number}/requested_reviewers", json=payload)

    def add_assignees(self, repo: str, pr_number: int, assignees: List[str]) -> None:
        self._request("POST", f"/repos/{repo}/issues/{pr_number}/assignees", json={"assignees": assignees})

    def get_merge_strategies(self, repo: str) -> MergeStrategies:
        data = _json(self._request("GET", f"/repos/{repo}"))
        return MergeStrategies(
            squash=bool(data.get("allow_squash_merge")),
            merge=bool(data.get("allow_merge_commit")),
            rebase=bool(data.get("allow_rebase_merge")),
        )

    def enable_auto_merge(self, pr: PullRequest, strategy: str) -> None:
        if strategy not in _MERGE_METHODS:
            raise GitPlatformError(f"Unknown merge strategy: {strategy}")
        if not pr.node_id:
            raise GitPlatformError(f"PR #{pr.number} has no node id")
        try:
            resp = self._session.post(
                _graphql_url(self._api_url),
                json={
                    "query": _ENABLE_AUTO_MERGE,
                    "variables": {"pullRequestId": pr.node_id, "mergeMethod": _MERGE_METHODS[strategy]},
                },
                timeout=30,
            )
        except requests.RequestException as e:
            raise GitPlatformError(f"enable auto-merge: {e}") from e
        if resp.status_code >= 400:
            raise GitPlatformError(f"{resp.status_code}: {resp.text or resp.reason}")
        errors = _json(resp).get("errors")
        if errors:
            raise GitPlatformError("; ".join(str(e.get("message", e)) for e in errors))

    def check_auth(self) -> str:
        data = _json(self._request("GET", "/user"))
        return data.get("login", "")
