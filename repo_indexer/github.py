import base64
import binascii
import logging
from urllib.parse import quote

import httpx

from .errors import ContentRetrievalError, ResolutionError, TreeRetrievalError
from .models import EntryKind, FileContent, RepositoryReference, TreeEntry

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
SYMLINK_MODE = "120000"


class GitHubClient:
    """Async client for the parts of the GitHub REST API the indexer needs.

    Usage:
        async with GitHubClient(token=...) as github:
            sha = await github.resolve_branch("octocat", "hello-world", "main")
            entries = await github.list_tree("octocat", "hello-world", sha)
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            token: Personal access token. Anonymous requests are rate limited hard.
            base_url: API root, override for GitHub Enterprise.
            timeout: Default timeout for HTTP requests in seconds.
            http_client: Pre-built client (tests inject one with a mock transport).
                The caller keeps ownership of an injected client.
        """
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._base_url = base_url.rstrip("/")
        self._headers = headers

    async def _get(self, path: str, params: dict[str, str] | None = None) -> httpx.Response:
        return await self._http_client.get(
            f"{self._base_url}{path}", params=params, headers=self._headers
        )

    async def resolve_branch(self, owner: str, repo: str, branch: str) -> str:
        """Return the SHA of the branch's latest commit.

        Raises:
            ResolutionError: If the branch does not exist or the request fails.
                status_code carries the HTTP status when there was a response.
        """
        try:
            response = await self._get(f"/repos/{owner}/{repo}/branches/{quote(branch, safe='')}")
        except httpx.HTTPError as e:
            raise ResolutionError(f"Failed to resolve branch '{branch}' of {owner}/{repo}: {e}") from e

        if response.status_code == 404:
            raise ResolutionError(f"Branch '{branch}' not found in {owner}/{repo}", status_code=404)
        try:
            response.raise_for_status()
            return response.json()["commit"]["sha"]
        except httpx.HTTPStatusError as e:
            raise ResolutionError(
                f"Failed to resolve branch '{branch}' of {owner}/{repo}: {e}",
                status_code=response.status_code,
            ) from e
        except (KeyError, TypeError, ValueError) as e:
            raise ResolutionError(
                f"Malformed branch response for '{branch}' of {owner}/{repo}: {e}"
            ) from e

    async def list_tree(
        self,
        owner: str,
        repo: str,
        tree_sha: str,
        recursive: bool = True,
        allow_truncated: bool = False,
    ) -> list[TreeEntry]:
        """List every entry reachable from a commit or tree SHA.

        GitHub caps recursive listings; a truncated response is an error unless
        allow_truncated is set, in which case the partial listing is returned.

        Raises:
            TreeRetrievalError: If the listing fails or is truncated.
        """
        params = {"recursive": "1"} if recursive else None
        try:
            response = await self._get(f"/repos/{owner}/{repo}/git/trees/{tree_sha}", params)
            response.raise_for_status()
            data = response.json()
            entries = [_to_entry(item) for item in data["tree"]]
        except httpx.HTTPStatusError as e:
            raise TreeRetrievalError(
                f"Failed to list tree {tree_sha} of {owner}/{repo}: {e}",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise TreeRetrievalError(f"Failed to list tree {tree_sha} of {owner}/{repo}: {e}") from e

        if data.get("truncated"):
            if not allow_truncated:
                raise TreeRetrievalError(
                    f"Tree listing for {owner}/{repo}@{tree_sha} was truncated "
                    f"after {len(entries)} entries",
                    truncated=True,
                )
            logger.warning(
                "Tree listing for %s/%s@%s truncated after %d entries, indexing a partial tree",
                owner, repo, tree_sha, len(entries),
            )

        return entries

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> str | None:
        """Return the UTF-8 text of a file at the given ref.

        Returns None if the response has no content payload (directories, files
        over the contents API size limit, pointers) or if the file is binary.

        Raises:
            ContentRetrievalError: If the request fails.
        """
        try:
            response = await self._get(
                f"/repos/{owner}/{repo}/contents/{quote(path, safe='/')}", {"ref": ref}
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ContentRetrievalError(f"Failed to read {path}: {e}", path=path) from e

        if not isinstance(data, dict) or not data.get("content"):
            return None
        if data.get("encoding", "base64") != "base64":
            return None
        try:
            raw = base64.b64decode(data["content"])
            return raw.decode("utf-8", errors="strict")
        except (binascii.Error, UnicodeDecodeError):
            return None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


def _to_entry(item: dict) -> TreeEntry:
    item_type = item.get("type")
    if item_type == "blob" and item.get("mode") != SYMLINK_MODE:
        kind = EntryKind.BLOB
    elif item_type == "tree":
        kind = EntryKind.TREE
    else:
        kind = EntryKind.OTHER
    return TreeEntry(path=item["path"], kind=kind, sha=item.get("sha", ""))


async def fetch_tree(
    client: GitHubClient, ref: RepositoryReference, allow_truncated: bool = False
) -> tuple[str, list[TreeEntry]]:
    """Resolve the branch and list the full tree at its head commit."""
    sha = await client.resolve_branch(ref.owner, ref.name, ref.branch)
    entries = await client.list_tree(
        ref.owner, ref.name, sha, recursive=True, allow_truncated=allow_truncated
    )
    logger.info("Listed %d entries of %s at %s", len(entries), ref.full_name, sha)
    return sha, entries


async def read_file(
    client: GitHubClient, ref: RepositoryReference, commit_sha: str, entry: TreeEntry
) -> FileContent | None:
    """Read one tree entry at the given commit. Returns None if it has no text."""
    text = await client.get_file_content(ref.owner, ref.name, entry.path, commit_sha)
    if text is None:
        return None
    return FileContent(path=entry.path, text=text)
