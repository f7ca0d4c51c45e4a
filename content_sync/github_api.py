"""
GitHub GraphQL API wrapper for the content sync.

Provides a lean interface to GitHub Discussions with:
- Bearer token authentication
- Client-side rate limiting
- Cursor pagination
- Typed errors for every failure mode
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import requests
from ratelimit import limits, sleep_and_retry
from rich.console import Console

console = Console()

GITHUB_GRAPHQL_ENDPOINT = "https://api.github.com/graphql"
USER_AGENT = "veritas-civica-content-sync"
REQUEST_TIMEOUT = 30  # seconds

# GitHub caps page size at 100
MAX_PAGE_SIZE = 100
DEFAULT_MAX_ITEMS = 1000

# Stay well below GitHub's secondary rate limits
RATE_LIMIT_CALLS = 10
RATE_LIMIT_PERIOD = 1  # second


class GitHubAPIError(Exception):
    """Base class for every failure surfaced by the GitHub client."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        errors: Optional[list[dict]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors or []


class AuthenticationMissing(GitHubAPIError):
    """No token could be resolved."""


class Unauthorized(GitHubAPIError):
    """The token was rejected (HTTP 401)."""


class RateLimited(GitHubAPIError):
    """HTTP 403 with the rate limit exhausted."""

    def __init__(self, message: str, reset_at: Optional[datetime] = None):
        super().__init__(message, status=403)
        self.reset_at = reset_at


class Forbidden(GitHubAPIError):
    """HTTP 403 for any reason other than the rate limit."""


class TransportFailure(GitHubAPIError):
    """Any other non-2xx response, an unreadable body, or no response at all."""


class GraphQLError(GitHubAPIError):
    """2xx response carrying a non-empty errors array."""


class NoData(GitHubAPIError):
    """2xx response with neither data nor errors."""


class InvalidRepository(GitHubAPIError):
    """Repository string is not in owner/repo form."""


class RepositoryNotFound(GitHubAPIError):
    pass


class DiscussionNotFound(GitHubAPIError):
    pass


@dataclass
class DiscussionCategory:
    """A discussion category in a repository."""

    id: str
    name: str
    slug: str
    description: str = ""
    is_answerable: bool = False

    @classmethod
    def from_api_response(cls, node: dict) -> "DiscussionCategory":
        return cls(
            id=node["id"],
            name=node["name"],
            slug=node.get("slug", ""),
            description=node.get("description") or "",
            is_answerable=bool(node.get("isAnswerable", False)),
        )


@dataclass
class Discussion:
    """A GitHub discussion with its full body."""

    id: str
    number: int
    title: str
    body: str
    url: str
    created_at: str
    updated_at: str
    category_name: str = ""
    author: Optional[str] = None

    @classmethod
    def from_api_response(cls, node: dict) -> "Discussion":
        """Create Discussion from a GraphQL node."""
        category = node.get("category") or {}
        author = node.get("author") or {}

        return cls(
            id=node["id"],
            number=int(node["number"]),
            title=node["title"],
            body=node.get("body") or "",
            url=node.get("url", ""),
            created_at=node.get("createdAt", ""),
            updated_at=node.get("updatedAt", ""),
            category_name=category.get("name", ""),
            author=author.get("login"),
        )


@dataclass
class Page:
    """One page of a cursor-paginated connection."""

    nodes: list
    has_next_page: bool
    end_cursor: Optional[str]
    total_count: int = 0


def parse_repository(repo: str) -> tuple[str, str]:
    """
    Split an 'owner/repo' string.

    Raises:
        InvalidRepository: If the string is not exactly two non-empty parts.
    """
    parts = repo.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidRepository(
            f'Invalid repository format: "{repo}". Expected "owner/repo"'
        )
    return parts[0], parts[1]


def paginate(
    fetch_page: Callable[[int, Optional[str]], Page],
    page_size: int = MAX_PAGE_SIZE,
    max_items: int = DEFAULT_MAX_ITEMS,
) -> list:
    """
    Collect every node from a paginated source.

    Args:
        fetch_page: Called with (page size, cursor) and returns a Page.
        page_size: Upper bound for a single page.
        max_items: Hard cap on the total number of nodes returned.

    Returns:
        All nodes fetched. Hitting max_items returns a partial list
        rather than raising.
    """
    items: list = []
    cursor = None
    has_more = True

    while has_more and len(items) < max_items:
        remaining = max_items - len(items)
        page = fetch_page(min(remaining, page_size), cursor)
        items.extend(page.nodes)

        has_more = page.has_next_page
        cursor = page.end_cursor

    return items[:max_items]


LIST_CATEGORIES_QUERY = """
query ListDiscussionCategories($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    discussionCategories(first: 25) {
      nodes {
        id
        name
        slug
        description
        isAnswerable
      }
    }
  }
}
"""

DISCUSSION_FIELDS = """
    id
    number
    title
    body
    url
    createdAt
    updatedAt
    category {
      id
      name
      slug
    }
    author {
      login
    }
"""

LIST_DISCUSSIONS_QUERY = (
    """
query ListDiscussions($owner: String!, $name: String!, $categoryId: ID!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $name) {
    discussions(categoryId: $categoryId, first: $first, after: $after, orderBy: {field: UPDATED_AT, direction: DESC}) {
      totalCount
      pageInfo {
        hasNextPage
        endCursor
      }
      nodes {"""
    + DISCUSSION_FIELDS
    + """      }
    }
  }
}
"""
)

GET_DISCUSSION_QUERY = (
    """
query GetDiscussion($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    discussion(number: $number) {"""
    + DISCUSSION_FIELDS
    + """    }
  }
}
"""
)


class GitHubClient:
    """
    Wrapper around GitHub's GraphQL API.

    Handles:
    - Authentication (token injected, checked on first request)
    - Rate limiting
    - Error mapping to typed exceptions
    - Category lookups, cached per client
    """

    def __init__(
        self,
        token: Optional[str],
        session: Optional[requests.Session] = None,
        endpoint: str = GITHUB_GRAPHQL_ENDPOINT,
    ):
        """
        Initialize the GitHub client.

        Args:
            token: Bearer token, or None if none was configured.
            session: Optional requests session (useful for tests).
            endpoint: GraphQL endpoint URL.
        """
        self.token = token
        self.session = session or requests.Session()
        self.endpoint = endpoint
        self._request_count = 0
        self._category_cache: dict[tuple[str, str], Optional[DiscussionCategory]] = {}

    @sleep_and_retry
    @limits(calls=RATE_LIMIT_CALLS, period=RATE_LIMIT_PERIOD)
    def _rate_limited_post(self, payload: dict, headers: dict) -> requests.Response:
        """Execute a rate-limited POST."""
        self._request_count += 1
        return self.session.post(
            self.endpoint,
            json=payload,
            headers=headers,
            timeout=REQUEST_TIMEOUT,
        )

    def request(self, query: str, variables: Optional[dict] = None) -> dict:
        """
        Execute a GraphQL query.

        Args:
            query: GraphQL document.
            variables: Query variables.

        Returns:
            The data portion of the response.

        Raises:
            GitHubAPIError: One of its subclasses, depending on the failure.
        """
        if not self.token:
            raise AuthenticationMissing(
                "GitHub token not found. Set GITHUB_TOKEN or GH_TOKEN environment variable."
            )

        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        payload = {"query": query, "variables": variables or {}}

        try:
            response = self._rate_limited_post(payload, headers)
        except requests.RequestException as e:
            raise TransportFailure(f"GitHub API request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            self._raise_for_status(response)

        try:
            body = response.json()
        except ValueError as e:
            raise TransportFailure(
                f"GitHub API returned invalid JSON: {e}", status=response.status_code
            ) from e
        if not isinstance(body, dict):
            raise TransportFailure(
                "GitHub API returned an unexpected response body", status=response.status_code
            )

        errors = body.get("errors") or []

        if errors:
            messages = "; ".join(
                str(e.get("message", e) if isinstance(e, dict) else e) for e in errors
            )
            raise GraphQLError(f"GraphQL errors: {messages}", errors=errors)

        data = body.get("data")
        if data is None:
            raise NoData("No data returned from GitHub API")

        return data

    def _raise_for_status(self, response: requests.Response) -> None:
        """Map a non-2xx response to the matching exception."""
        status = response.status_code

        if status == 401:
            raise Unauthorized("Authentication failed. Check your GitHub token.", status=401)

        if status == 403:
            if response.headers.get("X-RateLimit-Remaining") == "0":
                reset_at = _parse_reset(response.headers.get("X-RateLimit-Reset"))
                reset_text = (
                    reset_at.isoformat().replace("+00:00", "Z") if reset_at else "unknown"
                )
                raise RateLimited(
                    f"GitHub API rate limit exceeded. Resets at {reset_text}",
                    reset_at=reset_at,
                )
            raise Forbidden("Access forbidden. Check token permissions.", status=403)

        raise TransportFailure(
            f"GitHub API request failed: {status} {response.reason}",
            status=status,
        )

    def list_discussion_categories(self, repo: str) -> list[DiscussionCategory]:
        """
        Get all discussion categories for a repository.

        Args:
            repo: Repository in 'owner/repo' format.
        """
        owner, name = parse_repository(repo)
        data = self.request(LIST_CATEGORIES_QUERY, {"owner": owner, "name": name})

        repository = data.get("repository")
        if not repository:
            raise RepositoryNotFound(f"Repository not found: {repo}")

        nodes = repository["discussionCategories"]["nodes"]
        return [DiscussionCategory.from_api_response(node) for node in nodes]

    def list_discussions(
        self,
        repo: str,
        category_id: str,
        limit: int = MAX_PAGE_SIZE,
        cursor: Optional[str] = None,
    ) -> Page:
        """
        List one page of discussions in a category, most recently updated first.

        Args:
            repo: Repository in 'owner/repo' format.
            category_id: GraphQL ID of the category.
            limit: Page size, capped at 100.
            cursor: End cursor of the previous page.
        """
        owner, name = parse_repository(repo)
        data = self.request(
            LIST_DISCUSSIONS_QUERY,
            {
                "owner": owner,
                "name": name,
                "categoryId": category_id,
                "first": min(limit, MAX_PAGE_SIZE),
                "after": cursor,
            },
        )

        repository = data.get("repository")
        if not repository:
            raise RepositoryNotFound(f"Repository not found: {repo}")

        discussions = repository["discussions"]
        page_info = discussions.get("pageInfo") or {}

        return Page(
            nodes=[Discussion.from_api_response(node) for node in discussions["nodes"]],
            has_next_page=bool(page_info.get("hasNextPage", False)),
            end_cursor=page_info.get("endCursor"),
            total_count=discussions.get("totalCount", 0),
        )

    def list_all_discussions(
        self,
        repo: str,
        category_id: str,
        max_items: int = DEFAULT_MAX_ITEMS,
    ) -> list[Discussion]:
        """Fetch every discussion in a category, up to max_items."""
        return paginate(
            lambda size, cursor: self.list_discussions(repo, category_id, size, cursor),
            page_size=MAX_PAGE_SIZE,
            max_items=max_items,
        )

    def get_discussion(self, repo: str, number: int) -> Discussion:
        """
        Get a single discussion by number.

        Raises:
            RepositoryNotFound: If the repository does not exist.
            DiscussionNotFound: If the discussion does not exist.
        """
        owner, name = parse_repository(repo)
        data = self.request(
            GET_DISCUSSION_QUERY,
            {"owner": owner, "name": name, "number": number},
        )

        repository = data.get("repository")
        if not repository:
            raise RepositoryNotFound(f"Repository not found: {repo}")

        discussion = repository.get("discussion")
        if not discussion:
            raise DiscussionNotFound(f"Discussion #{number} not found in {repo}")

        return Discussion.from_api_response(discussion)

    def find_category_by_name(self, repo: str, category_name: str) -> Optional[DiscussionCategory]:
        """Find a category by case-insensitive name. Returns None if absent."""
        wanted = category_name.lower()
        for category in self.list_discussion_categories(repo):
            if category.name.lower() == wanted:
                return category
        return None

    def get_category(self, repo: str, category_name: str) -> Optional[DiscussionCategory]:
        """Cached find_category_by_name; misses are cached too."""
        key = (repo, category_name)
        if key not in self._category_cache:
            self._category_cache[key] = self.find_category_by_name(repo, category_name)
        return self._category_cache[key]

    def clear_cache(self) -> None:
        """Forget cached category lookups."""
        self._category_cache.clear()

    @property
    def request_count(self) -> int:
        """Number of API requests made."""
        return self._request_count


def _parse_reset(value: Optional[str]) -> Optional[datetime]:
    """Convert an X-RateLimit-Reset epoch value to a UTC datetime."""
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        console.print(f"[yellow]Warning: Unparsable rate limit reset value: {value}[/yellow]")
        return None
