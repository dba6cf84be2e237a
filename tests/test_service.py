from datetime import datetime, timedelta, timezone

import pytest

from sharelink.errors import ExpiredError, ForbiddenError, NotFoundError
from sharelink.repository import FileRepository, ShareLinkRepository
from sharelink.service import ShareLinkService
from sharelink.tokens import TokenGenerator

START = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def build_service(tmp_path):
    db_path = str(tmp_path / "share.db")
    files = FileRepository(db_path)
    links = ShareLinkRepository(db_path)
    files.init()
    links.init()
    clock = FakeClock()
    service = ShareLinkService(files, links, TokenGenerator(16), clock=clock)
    return service, files, links, clock


def add_file(files: FileRepository, owner_id: int = 1) -> int:
    record = files.create_file(
        owner_id=owner_id,
        name="report.pdf",
        content_type="application/pdf",
        size=4,
        content="AAAAAA==",
    )
    return record["id"]


def test_tokens_are_unique_and_wide(tmp_path):
    service, files, _, _ = build_service(tmp_path)
    file_id = add_file(files)

    tokens = [service.issue_link(1, file_id, 7)["token"] for _ in range(25)]

    assert len(set(tokens)) == 25
    assert all(len(token) == 32 for token in tokens)


def test_token_generator_rejects_narrow_tokens():
    with pytest.raises(ValueError):
        TokenGenerator(8)


def test_issue_requires_ownership(tmp_path):
    service, files, _, _ = build_service(tmp_path)
    file_id = add_file(files, owner_id=1)

    with pytest.raises(ForbiddenError):
        service.issue_link(2, file_id, 7)
    with pytest.raises(NotFoundError):
        service.issue_link(1, file_id + 100, 7)

    link = service.issue_link(1, file_id, 7)
    assert link["user_id"] == 1
    assert link["file_id"] == file_id
    assert files.get_file(file_id)["is_shared"] == 1


def test_issue_rejects_trashed_file(tmp_path):
    service, files, _, _ = build_service(tmp_path)
    file_id = add_file(files)
    files.soft_delete_file(file_id)

    with pytest.raises(NotFoundError):
        service.issue_link(1, file_id, 7)


def test_resolve_unknown_token(tmp_path):
    service, _, _, _ = build_service(tmp_path)

    with pytest.raises(NotFoundError):
        service.resolve_link("does-not-exist")


def test_expiry_is_enforced_at_read_time(tmp_path):
    service, files, links, clock = build_service(tmp_path)
    file_id = add_file(files)
    token = service.issue_link(1, file_id, 1)["token"]

    clock.advance(hours=1)
    link, file_row = service.resolve_link(token)
    assert file_row["id"] == file_id
    assert link["token"] == token

    clock.advance(hours=24)
    with pytest.raises(ExpiredError):
        service.resolve_link(token)
    # expired records stay in storage
    assert links.find_by_token(token) is not None


def test_default_expiry_is_seven_days(tmp_path):
    service, files, _, _ = build_service(tmp_path)
    file_id = add_file(files)

    link = service.issue_link(1, file_id)

    assert link["expiry_date"] == (START + timedelta(days=7)).isoformat()
    assert link["created_at"] == START.isoformat()


@pytest.mark.parametrize("expiry_days", [0, -3])
def test_non_positive_expiry_never_expires(tmp_path, expiry_days):
    service, files, _, clock = build_service(tmp_path)
    file_id = add_file(files)

    link = service.issue_link(1, file_id, expiry_days)
    assert link["expiry_date"] is None

    clock.advance(days=365 * 50)
    _, file_row = service.resolve_link(link["token"])
    assert file_row["id"] == file_id


def test_dangling_file_is_not_found(tmp_path):
    service, files, _, _ = build_service(tmp_path)
    trashed = add_file(files)
    removed = add_file(files)
    trashed_token = service.issue_link(1, trashed, 7)["token"]
    removed_token = service.issue_link(1, removed, 7)["token"]

    files.soft_delete_file(trashed)
    files.delete_file(removed)

    for token in (trashed_token, removed_token):
        with pytest.raises(NotFoundError):
            service.resolve_link(token)


def test_revoke_link(tmp_path):
    service, files, _, _ = build_service(tmp_path)
    file_id = add_file(files)
    first = service.issue_link(1, file_id, 7)
    second = service.issue_link(1, file_id, 7)

    with pytest.raises(ForbiddenError):
        service.revoke_link(2, first["id"])

    service.revoke_link(1, first["id"])
    with pytest.raises(NotFoundError):
        service.resolve_link(first["token"])
    assert files.get_file(file_id)["is_shared"] == 1

    service.revoke_link(1, second["id"])
    assert files.get_file(file_id)["is_shared"] == 0

    with pytest.raises(NotFoundError):
        service.revoke_link(1, first["id"])


def test_list_links_and_revoke_all(tmp_path):
    service, files, _, _ = build_service(tmp_path)
    file_id = add_file(files)
    other_id = add_file(files)
    issued = [service.issue_link(1, file_id, 7)["id"] for _ in range(3)]
    kept = service.issue_link(1, other_id, 7)

    assert [link["id"] for link in service.list_links(1, file_id)] == issued
    with pytest.raises(ForbiddenError):
        service.list_links(2, file_id)

    assert service.revoke_all_for_file(file_id) == 3
    assert service.list_links(1, file_id) == []
    assert service.resolve_link(kept["token"])[1]["id"] == other_id


def test_owner_shares_then_anonymous_access_until_expiry(tmp_path):
    service, files, _, clock = build_service(tmp_path)
    file_id = add_file(files, owner_id=1)

    token = service.issue_link(1, file_id, 7)["token"]

    clock.advance(days=6, hours=23)
    _, file_row = service.resolve_link(token)
    assert file_row["content"] == "AAAAAA=="

    clock.advance(hours=1)
    with pytest.raises(ExpiredError):
        service.resolve_link(token)


def test_trash_and_restore_file(tmp_path):
    service, files, _, _ = build_service(tmp_path)
    file_id = add_file(files)
    token = service.issue_link(1, file_id, 7)["token"]

    with pytest.raises(ForbiddenError):
        service.trash_file(2, file_id)
    service.trash_file(1, file_id)
    with pytest.raises(NotFoundError):
        service.resolve_link(token)
    with pytest.raises(NotFoundError):
        service.trash_file(1, file_id)

    with pytest.raises(ForbiddenError):
        service.restore_file(2, file_id)
    restored = service.restore_file(1, file_id)
    assert restored["is_deleted"] == 0
    assert service.resolve_link(token)[1]["id"] == file_id


def test_delete_file_revokes_links(tmp_path):
    service, files, links, _ = build_service(tmp_path)
    file_id = add_file(files)
    service.issue_link(1, file_id, 7)
    service.issue_link(1, file_id, 0)
    service.trash_file(1, file_id)

    with pytest.raises(ForbiddenError):
        service.delete_file(2, file_id)
    assert service.delete_file(1, file_id) == 2
    assert files.get_file(file_id) is None
    assert links.find_all_by_file_id(file_id) == []
    with pytest.raises(NotFoundError):
        service.restore_file(1, file_id)
