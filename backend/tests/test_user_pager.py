import pytest

from identity_admin.errors import BackendError, InvalidArgumentError
from identity_admin.models.user import UserPage, UserRecord, UserToCreate
from identity_admin.services.user_pager import MAX_PAGE_SIZE, UserPager


def _seed(auth_client, count):
    for i in range(count):
        auth_client.create_user(UserToCreate(uid=f"user-{i:03d}", email=f"user{i}@example.com"))


def _list_calls(fake_auth):
    return [call for call in fake_auth.calls if call[0] == "list_users"]


@pytest.mark.parametrize("count", [0, 1, 7, 22])
def test_flat_and_paged_enumerate_the_same_users(auth_client, count):
    _seed(auth_client, count)

    flat = [user.uid for user in auth_client.list_users(page_size=7)]

    paged = []
    token = None
    pages = 0
    while True:
        page = auth_client.list_users(page_token=token).next_page(7)
        pages += 1
        assert len(page.users) <= 7
        paged.extend(user.uid for user in page.users)
        token = page.next_page_token
        if not token:
            break

    expected = {f"user-{i:03d}" for i in range(count)}
    assert len(flat) == len(set(flat)) == count
    assert len(paged) == len(set(paged)) == count
    assert set(flat) == set(paged) == expected
    assert flat == paged
    if count == 22:
        assert pages == 4


def test_empty_listing_ends_immediately(auth_client, fake_auth):
    pager = auth_client.list_users()
    assert list(pager) == []

    page = auth_client.list_users().next_page()
    assert page.users == ()
    assert page.next_page_token == ""
    assert not page.has_next_page


def test_flat_iteration_fetches_lazily(auth_client, fake_auth):
    _seed(auth_client, 10)
    fake_auth.calls.clear()

    pager = auth_client.list_users(page_size=4)
    assert _list_calls(fake_auth) == []

    first = next(pager)
    assert first.uid == "user-000"
    assert len(_list_calls(fake_auth)) == 1

    for _ in range(4):
        next(pager)
    assert len(_list_calls(fake_auth)) == 2


def test_no_fetch_after_last_page(auth_client, fake_auth):
    _seed(auth_client, 3)
    pager = auth_client.list_users()
    page = pager.next_page(10)
    assert [u.uid for u in page.users] == ["user-000", "user-001", "user-002"]
    assert page.next_page_token == ""
    fake_auth.calls.clear()

    again = pager.next_page(10)

    assert again == UserPage()
    assert _list_calls(fake_auth) == []
    assert pager.exhausted


def test_resume_from_persisted_token(auth_client):
    _seed(auth_client, 9)
    first = auth_client.list_users().next_page(5)
    assert first.next_page_token

    resumed = auth_client.list_users(page_token=first.next_page_token)

    assert [u.uid for u in resumed] == [f"user-{i:03d}" for i in range(5, 9)]


def test_page_size_is_passed_to_backend(auth_client, fake_auth):
    _seed(auth_client, 2)
    fake_auth.calls.clear()

    auth_client.list_users().next_page(3)

    assert _list_calls(fake_auth) == [("list_users", None, 3)]


@pytest.mark.parametrize("page_size", [0, -1, MAX_PAGE_SIZE + 1, "10", True])
def test_invalid_page_size_rejected(auth_client, fake_auth, page_size):
    with pytest.raises(InvalidArgumentError):
        auth_client.list_users().next_page(page_size)
    assert _list_calls(fake_auth) == []


def test_switching_to_paging_mid_page_is_rejected(auth_client):
    _seed(auth_client, 5)
    pager = auth_client.list_users(page_size=3)
    next(pager)

    with pytest.raises(InvalidArgumentError):
        pager.next_page()


def test_empty_page_with_token_keeps_iterating():
    pages = {
        None: UserPage(users=(UserRecord(uid="a"),), next_page_token="t1"),
        "t1": UserPage(users=(), next_page_token="t2"),
        "t2": UserPage(users=(UserRecord(uid="b"),), next_page_token=""),
    }
    requested = []

    def fetch_page(token, size):
        requested.append(token)
        return pages[token]

    assert [u.uid for u in UserPager(fetch_page)] == ["a", "b"]
    assert requested == [None, "t1", "t2"]


def test_backend_overfilling_a_page_is_an_error():
    def fetch_page(token, size):
        return UserPage(
            users=tuple(UserRecord(uid=str(i)) for i in range(size + 2)), next_page_token="more"
        )

    pager = UserPager(fetch_page)

    with pytest.raises(BackendError):
        pager.next_page(3)
    with pytest.raises(BackendError):
        next(UserPager(fetch_page, page_size=3))


def test_no_token_while_a_page_is_partially_consumed(auth_client):
    _seed(auth_client, 6)
    pager = auth_client.list_users(page_size=3)
    next(pager)

    with pytest.raises(InvalidArgumentError):
        pager.page_token


def test_token_after_a_fully_consumed_page_loses_nothing(auth_client):
    _seed(auth_client, 6)
    pager = auth_client.list_users(page_size=3)
    seen = [next(pager).uid for _ in range(3)]

    resumed = auth_client.list_users(page_token=pager.page_token, page_size=3)
    seen.extend(user.uid for user in resumed)

    assert seen == [f"user-{i:03d}" for i in range(6)]
