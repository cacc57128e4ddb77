"""Duplicate audit over the published catalog (report only).

Earlier runs that raced, or pages created by hand, can leave several
published pages for one artist in the same locale.  The audit groups the
catalog by (canonical identity, locale) and reports every group with more
than one page, plus pairs of distinct identities that are near-identical
(typos, transpositions) and probably the same artist.  Deleting pages is
left to an operator.
"""

from __future__ import annotations

from collections import defaultdict

import structlog

from rostersync.interfaces.catalog_provider import IPublishedCatalogProvider
from rostersync.models.artist import PublishedArtist
from rostersync.models.audit import DuplicateAuditReport, DuplicateGroup, NearDuplicate
from rostersync.utils.identity import IdentityResolver, find_near_duplicates

logger = structlog.get_logger(logger_name=__name__)


class DuplicateAuditService:
    """Finds duplicate and near-duplicate artist pages.

    Parameters
    ----------
    published:
        The published catalog.
    resolver:
        Identity rule shared with the sync run.
    near_duplicate_threshold:
        rapidfuzz similarity (0-1) above which two identities are reported.
    """

    def __init__(
        self,
        published: IPublishedCatalogProvider,
        resolver: IdentityResolver | None = None,
        near_duplicate_threshold: float = 0.9,
    ) -> None:
        self._published = published
        self._resolver = resolver or IdentityResolver()
        self._threshold = near_duplicate_threshold

    async def audit(self) -> DuplicateAuditReport:
        entries = await self._published.fetch_published()
        report = self.analyse(entries)
        logger.info(
            "duplicate_audit_complete",
            pages=report.total_pages,
            duplicate_groups=len(report.duplicates),
            near_duplicates=len(report.near_duplicates),
        )
        return report

    def analyse(self, entries: list[PublishedArtist]) -> DuplicateAuditReport:
        """Build the report from an already fetched catalog."""
        groups: dict[tuple[str, str], list[PublishedArtist]] = defaultdict(list)
        unresolvable: list[str] = []
        for entry in entries:
            identity = self._resolver.normalize(entry.name)
            if not identity:
                unresolvable.append(entry.name)
                continue
            groups[(identity, entry.locale)].append(entry)

        duplicates = [
            DuplicateGroup(
                canonical_identity=identity,
                locale=locale,
                pages=sorted(pages, key=lambda page: page.page_id or 0),
            )
            for (identity, locale), pages in sorted(groups.items())
            if len(pages) > 1
        ]

        identities = sorted({identity for identity, _locale in groups})
        near: list[NearDuplicate] = []
        for index, identity in enumerate(identities):
            # Compare each pair once.
            for other, score in find_near_duplicates(identity, identities[index + 1 :], self._threshold):
                near.append(NearDuplicate(identity=identity, other=other, score=round(score, 3)))

        return DuplicateAuditReport(
            total_pages=len(entries),
            total_identities=len(identities),
            duplicates=duplicates,
            near_duplicates=near,
            unresolvable=unresolvable,
        )
