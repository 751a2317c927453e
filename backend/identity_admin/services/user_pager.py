"""Cursor over the user listing of a Firebase project.

The pager wraps one primitive, fetch_page(page_token, page_size), and
offers two ways to consume it:

    for user in auth_client.list_users():      # flat iteration
        ...

    pager = auth_client.list_users(page_token=saved_token)
    page = pager.next_page(100)                 # explicit paging
    saved_token = page.next_page_token

Records come back in the order the backend lists them. A pager is meant
for a single consumer and is not safe to share between threads.
"""
import logging
from collections import deque
from typing import Callable, Deque, Iterator, Optional

from identity_admin.errors import BackendError, InvalidArgumentError
from identity_admin.models.user import UserPage, UserRecord

logger = logging.getLogger(__name__)

# The backend refuses to return more than this many users per request.
MAX_PAGE_SIZE = 1000
DEFAULT_PAGE_SIZE = MAX_PAGE_SIZE

FetchPage = Callable[[Optional[str], int], UserPage]


def validate_page_size(page_size: int) -> int:
    if isinstance(page_size, bool) or not isinstance(page_size, int):
        raise InvalidArgumentError(f"page_size must be an integer, got {page_size!r}")
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise InvalidArgumentError(
            f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}"
        )
    return page_size


class UserPager(Iterator[UserRecord]):
    def __init__(
        self,
        fetch_page: FetchPage,
        page_token: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        if page_token is not None and not isinstance(page_token, str):
            raise InvalidArgumentError("page_token must be a string")
        self._fetch_page = fetch_page
        self._page_token = page_token or None
        self._page_size = validate_page_size(page_size)
        self._buffer: Deque[UserRecord] = deque()
        self._done = False

    @property
    def page_token(self) -> str:
        """Token that resumes listing after everything consumed so far.

        Raises:
            InvalidArgumentError: while records of a partially iterated
                page are pending; no token can point into the middle of a page
        """
        if self._buffer:
            raise InvalidArgumentError(
                "No resumable token while records from a partially iterated page are pending"
            )
        return self._page_token or ""

    @property
    def exhausted(self) -> bool:
        return self._done and not self._buffer

    def next_page(self, page_size: Optional[int] = None) -> UserPage:
        """Fetch the next page.

        Returns an empty page with an empty token once the listing is over,
        without contacting the backend again.
        """
        if self._buffer:
            raise InvalidArgumentError(
                "Cannot page explicitly while records from a partially iterated page are pending"
            )
        if self._done:
            return UserPage()

        size = validate_page_size(page_size) if page_size is not None else self._page_size
        return self._advance(size)

    def _advance(self, size: int) -> UserPage:
        page = self._fetch_page(self._page_token, size)
        if len(page.users) > size:
            raise BackendError(
                f"Backend returned {len(page.users)} users for a page of at most {size}"
            )

        logger.debug(
            "Fetched %d users (page_size=%d, more=%s)", len(page.users), size, page.has_next_page
        )
        self._page_token = page.next_page_token or None
        self._done = not page.next_page_token
        return page

    def __iter__(self) -> "UserPager":
        return self

    def __next__(self) -> UserRecord:
        # A page may legitimately be empty while the token says there is more.
        while not self._buffer:
            if self._done:
                raise StopIteration
            self._buffer.extend(self._advance(self._page_size).users)
        return self._buffer.popleft()
