from src.config.logger_config import logger

from src.grabber.application.ports import MirrorStorePort
from src.grabber.domain.models import PageRecord

DEFAULT_CONTENT_MODEL = "wikitext"


def content_model_override(content_model: str | None) -> str | None:
    """Only a non-default content model is stored on the page row."""
    if not content_model or content_model == DEFAULT_CONTENT_MODEL:
        return None
    return content_model


class PageIdentityResolver:
    """Keep (namespace, title) unique among live pages before a page is written.

    A local page owning the incoming title under another id was moved upstream
    and the move has not been grabbed yet. It is displaced: taken out of the
    live title index with its old title kept, until a later grab relabels it.
    """

    def __init__(self, store: MirrorStorePort, *, dry_run: bool = False) -> None:
        self.store = store
        self.dry_run = dry_run
        self.displaced_total = 0

    def reconcile(self, page_id: int, namespace: int, title: str) -> None:
        current = self.store.get_page(page_id)
        if (
            current is not None
            and not current.displaced
            and current.namespace == namespace
            and current.title == title
        ):
            return

        conflicting_id = self.store.find_live_page_id(namespace, title)
        if conflicting_id is None or conflicting_id == page_id:
            return

        self.displaced_total += 1
        if self.dry_run:
            logger.info("[DRY] Would have displaced page {} from {}:{} for page {}", conflicting_id, namespace, title, page_id)
            return
        self.store.displace_page(conflicting_id)
        logger.warning(
            "Notice: page {} owned {}:{} which now belongs to page {}; it was displaced and needs a later grab to get its new title",
            conflicting_id,
            namespace,
            title,
            page_id,
        )


class PageWriter:
    def __init__(self, store: MirrorStorePort, resolver: PageIdentityResolver) -> None:
        self.store = store
        self.resolver = resolver

    def insert_or_update(self, page: PageRecord, *, only_if_newer: bool) -> bool:
        """Insert an absent page, otherwise update it; returns whether a row was written.

        With ``only_if_newer`` an existing live row is only updated when the
        incoming ``latest`` revision is newer than the stored one.
        """
        with self.store.transaction():
            self.resolver.reconcile(page.page_id, page.namespace, page.title)
            existing = self.store.get_page(page.page_id)
            if existing is None:
                logger.info("Inserting page entry {}", page.page_id)
                self.store.insert_page(page)
                return True
            if only_if_newer and not existing.displaced and existing.latest >= page.latest:
                return False
            logger.info("Updating page entry {}", page.page_id)
            self.store.update_page(page)
            return True
