"""Drive normalize -> rasterize -> paginate over batches of record groups."""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Sequence

from layout_normalizer import mark_keep_together, normalize
from paginator import Paginator
from rasterizer import Rasterizer
from report_errors import ReportGenerationError
from report_models import OutputDocument, RenderNode, ReportRecordGroup
from report_settings import BatchTier


logger = logging.getLogger(__name__)

GroupRenderer = Callable[[ReportRecordGroup], str]


def select_batch_policy(total: int, tiers: Sequence[BatchTier]) -> BatchTier:
    """Return the tier for *total* records: more records, smaller batches."""
    if not tiers:
        raise ValueError("no batch tiers configured")
    for tier in sorted(tiers, key=lambda t: t.min_records, reverse=True):
        if total >= tier.min_records:
            return tier
    return min(tiers, key=lambda t: t.min_records)


def partition(groups: Sequence[ReportRecordGroup], batch_size: int) -> List[Sequence[ReportRecordGroup]]:
    if batch_size < 1:
        raise ValueError("batch_size must be a positive integer")
    return [groups[i:i + batch_size] for i in range(0, len(groups), batch_size)]


class BatchOrchestrator:
    def __init__(
        self,
        rasterizer: Rasterizer,
        paginator: Paginator,
        render_group: GroupRenderer,
        *,
        viewport_width: int = 794,
    ) -> None:
        self.rasterizer = rasterizer
        self.paginator = paginator
        self.render_group = render_group
        self.viewport_width = viewport_width

    def build_batch_node(self, header: str, batch: Sequence[ReportRecordGroup]) -> RenderNode:
        node = RenderNode.from_fragments(header, width_px=self.viewport_width)
        for group in batch:
            node.append_spacer()
            for block in node.append_fragment(self.render_group(group)):
                mark_keep_together(block)
        return node

    def generate(
        self,
        groups: Sequence[ReportRecordGroup],
        header: str,
        batch_size: int,
        *,
        scale: float = 2.0,
        doc: Optional[OutputDocument] = None,
    ) -> OutputDocument:
        """Render *groups* in consecutive batches into one document.

        Any failing batch aborts the whole run with
        :class:`ReportGenerationError`; the partially filled document is
        never returned.
        """
        doc = doc if doc is not None else self.paginator.new_document()
        batches = partition(list(groups), batch_size)
        if not batches:
            # Header only: an empty report is still a one-page document.
            batches = [()]

        started = time.time()
        logger.info(
            "Generating %d record group(s) in %d batch(es) of up to %d at %.1fx",
            len(groups),
            len(batches),
            batch_size,
            scale,
        )

        for index, batch in enumerate(batches):
            batch_start = time.time()
            try:
                node = normalize(self.build_batch_node(header, batch))
                image = self.rasterizer.rasterize(node, scale)
                mode = self.paginator.mode_for(doc, image)
                self.paginator.append_image(doc, image, mode)
            except Exception as exc:
                logger.error(
                    "Batch %d/%d failed (%s): %s",
                    index + 1,
                    len(batches),
                    type(exc).__name__,
                    exc,
                )
                raise ReportGenerationError(index, exc) from exc

            logger.info(
                "Batch %d/%d: %d group(s) -> %d page(s) total in %.2fs",
                index + 1,
                len(batches),
                len(batch),
                doc.page_count,
                time.time() - batch_start,
            )

        logger.info("All batches rendered in %.2fs (%d page(s))", time.time() - started, doc.page_count)
        return doc


__all__ = ["BatchOrchestrator", "partition", "select_batch_policy"]
