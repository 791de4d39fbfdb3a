from src.config.logger_config import logger

from src.grabber.application.identity import IdentityReconciler
from src.grabber.application.ports import MirrorStorePort
from src.grabber.domain.models import LocalRevision, RemoteRevision, RevisionDeleted
from src.grabber.domain.rules import ip_to_hex, sha1_base36, to_mw_timestamp


class RevisionImporter:
    """Turn remote revisions into local rows, skipping ids already mirrored."""

    def __init__(self, store: MirrorStorePort, identities: IdentityReconciler) -> None:
        self.store = store
        self.identities = identities

    async def process_revision(self, remote_rev: RemoteRevision, page_id: int) -> bool:
        if self.store.revision_exists(remote_rev.revid):
            return False
        local, ip_hex = await self.build(remote_rev, page_id)
        self.write(local, ip_hex, remote_rev.tags)
        logger.debug("Inserted revision {} on page {}", remote_rev.revid, page_id)
        return True

    async def build(self, remote_rev: RemoteRevision, page_id: int) -> tuple[LocalRevision, str | None]:
        identity = await self.identities.resolve(remote_rev.user_id, remote_rev.user_name)
        # Hidden text comes without content; the row keeps an empty text and the flag
        content = "" if remote_rev.deleted & RevisionDeleted.TEXT else remote_rev.content or ""
        local = LocalRevision(
            rev_id=remote_rev.revid,
            page_id=page_id,
            parent_id=remote_rev.parentid,
            timestamp=to_mw_timestamp(remote_rev.timestamp),
            sha1=sha1_base36(content),
            length=len(content.encode("utf-8")),
            content=content,
            content_model=remote_rev.content_model,
            content_format=remote_rev.content_format,
            comment=remote_rev.comment,
            minor=remote_rev.minor,
            deleted=remote_rev.deleted,
            actor_id=identity.actor_id or 0,
        )
        ip_hex = ip_to_hex(identity.name) if identity.origin == "anonymous" else None
        return local, ip_hex

    def write(self, local: LocalRevision, ip_hex: str | None, tags: tuple[str, ...] = ()) -> None:
        with self.store.transaction():
            self.store.insert_revision(local, ip_hex)
            self.store.insert_tags(tags, rev_id=local.rev_id)
