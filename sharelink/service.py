import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from sharelink.errors import ExpiredError, ForbiddenError, NotFoundError
from sharelink.repository import FileRepository, ShareLinkRepository
from sharelink.tokens import TokenGenerator, redact

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_DAYS = 7


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_expired(link: dict, now: datetime) -> bool:
    if not link.get("expiry_date"):
        return False
    return now >= datetime.fromisoformat(link["expiry_date"])


class ShareLinkService:
    """Issues, resolves and revokes share links.

    The service is the only place expiry is decided: ``expiry_days=None``
    gets the default window, ``expiry_days <= 0`` never expires. Expiry is
    checked lazily on resolution; expired records are left in storage.
    """

    def __init__(
        self,
        files: FileRepository,
        links: ShareLinkRepository,
        tokens: TokenGenerator | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        default_expiry_days: int = DEFAULT_EXPIRY_DAYS,
    ):
        self.files = files
        self.links = links
        self.tokens = tokens or TokenGenerator()
        self.clock = clock
        self.default_expiry_days = default_expiry_days

    def _owned_file(self, requester_id: int, file_id: int, *, include_deleted: bool = False) -> dict:
        file_row = self.files.get_file(file_id)
        if not file_row or (file_row["is_deleted"] and not include_deleted):
            raise NotFoundError("file not found")
        if file_row["owner_id"] != requester_id:
            raise ForbiddenError("forbidden")
        return file_row

    def expiry_for(self, created_at: datetime, expiry_days: int | None) -> datetime | None:
        if expiry_days is None:
            expiry_days = self.default_expiry_days
        if expiry_days <= 0:
            return None
        return created_at + timedelta(days=expiry_days)

    def issue_link(self, requester_id: int, file_id: int, expiry_days: int | None = None) -> dict:
        self._owned_file(requester_id, file_id)

        created_at = self.clock()
        link = self.links.create(
            token=self.tokens.new_token(),
            file_id=file_id,
            user_id=requester_id,
            created_at=created_at,
            expiry_date=self.expiry_for(created_at, expiry_days),
        )
        self.files.refresh_shared(file_id)
        logger.info(
            "issued share link id=%s file_id=%s user_id=%s token=%s expiry=%s",
            link["id"], file_id, requester_id, redact(link["token"]), link["expiry_date"],
        )
        return link

    def resolve_link(self, token: str) -> tuple[dict, dict]:
        """Return ``(link, file)`` for a token that is known, unexpired and
        still points at an existing file."""
        link = self.links.find_by_token(token)
        if not link:
            logger.info("share link lookup failed token=%s", redact(token))
            raise NotFoundError("share link not found")
        if is_expired(link, self.clock()):
            logger.info("share link expired id=%s", link["id"])
            raise ExpiredError("link expired")

        file_row = self.files.get_file(link["file_id"])
        if not file_row or file_row["is_deleted"]:
            logger.warning("share link id=%s points at missing file_id=%s", link["id"], link["file_id"])
            raise NotFoundError("file not found")
        return link, file_row

    def list_links(self, requester_id: int, file_id: int) -> list[dict]:
        self._owned_file(requester_id, file_id)
        return self.links.find_all_by_file_id(file_id)

    def revoke_link(self, requester_id: int, link_id: int) -> None:
        link = self.links.find_by_id(link_id)
        if not link:
            raise NotFoundError("share link not found")
        if link["user_id"] != requester_id:
            raise ForbiddenError("forbidden")

        if not self.links.delete_by_id(link_id):
            # Lost a race with another revoke.
            raise NotFoundError("share link not found")
        self.files.refresh_shared(link["file_id"])
        logger.info("revoked share link id=%s file_id=%s", link_id, link["file_id"])

    def revoke_all_for_file(self, file_id: int) -> int:
        removed = self.links.delete_all_by_file_id(file_id)
        if removed:
            logger.info("revoked %s share link(s) for file_id=%s", removed, file_id)
        return removed

    def trash_file(self, requester_id: int, file_id: int) -> None:
        self._owned_file(requester_id, file_id)
        self.files.soft_delete_file(file_id)
        logger.info("moved file_id=%s to trash", file_id)

    def restore_file(self, requester_id: int, file_id: int) -> dict:
        self._owned_file(requester_id, file_id, include_deleted=True)
        return self.files.restore_file(file_id)

    def delete_file(self, requester_id: int, file_id: int) -> int:
        """Remove a file for good, trashed or not, along with its share links."""
        self._owned_file(requester_id, file_id, include_deleted=True)
        revoked = self.revoke_all_for_file(file_id)
        self.files.delete_file(file_id)
        return revoked
