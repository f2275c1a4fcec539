"""
DOM API attribution.

For every sampled DOM API call in a trace, find the script that made
it, the page that script ran in, and the first-party / third-party
pair for that page, then count the call under that identity.

A sample is counted only when:

1. its frame label carries the DOM marker;
2. its caller (the parent stack) is page JavaScript and not the
   automation tooling;
3. neither resolved script URL points at browser or extension
   internals.

Two script URLs are resolved per sample.  ``script_url`` is taken
from the nearest JavaScript ancestor as-is.  ``valid_script_url``
keeps walking until an ancestor's URL parses as an absolute URL,
which skips over ``eval`` and self-hosted frames.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable

from apiusage.analysis import labels
from apiusage.analysis.accumulator import ApiUsageAccumulator
from apiusage.models import trace
from apiusage.models.aggregate import AggregateKey
from apiusage.trace.reader import ThreadReader
from apiusage.utils import logger
from apiusage.utils import url as url_mod
from apiusage.utils.errors import TraceCorruptionError

log = logger.create_logger("Attribution")

PageFilter = Callable[[trace.Page], bool]


def is_http_page(page: trace.Page) -> bool:
    """Default page filter: pages loaded over HTTP(S)."""
    return url_mod.is_http_page(page.url)


@dataclasses.dataclass(frozen=True)
class ScriptLocation:
    """A resolved script URL and the stack it was found at."""

    url: str | None
    stack_id: int | None


@dataclasses.dataclass(frozen=True)
class SampleAttribution:
    """The counter key and API label for one admitted sample."""

    key: AggregateKey
    api: str


# ============================================================================
# Process / page helpers
# ============================================================================


def filter_threads_by_page(
    document: trace.TraceDocument,
    page_filter: PageFilter,
) -> list[tuple[trace.SubprocessProfile, list[trace.Thread]]]:
    """Select the processes that hosted at least one matching page.

    Every thread of a selected process is returned; processes
    without pages are skipped.
    """
    selected: list[tuple[trace.SubprocessProfile, list[trace.Thread]]] = []
    for process in document.processes:
        if not process.pages:
            continue
        if any(page_filter(page) for page in process.pages) and process.threads:
            selected.append((process, list(process.threads)))
    return selected


def embedder_chain(pages: dict[int, trace.Page], page: trace.Page | None) -> list[str]:
    """Return page URLs from *page* outward to its top-level page.

    The chain stops early when an embedder is not part of *pages*
    (it lives in another process).
    """
    if page is None:
        return []

    chain = [page.url]
    seen = {page.inner_window_id}
    current = page
    while current.embedder_id is not None:
        embedder_id = current.embedder_id
        if embedder_id in seen:
            raise TraceCorruptionError(f"embedding cycle at window {embedder_id}")
        seen.add(embedder_id)
        embedder = pages.get(embedder_id)
        if embedder is None:
            break
        chain.append(embedder.url)
        current = embedder
    return chain


# ============================================================================
# Stack walks
# ============================================================================


def find_script_url(reader: ThreadReader, stack_id: int, *, require_valid: bool) -> ScriptLocation:
    """Find the script URL for the call at *stack_id*.

    With ``require_valid=False`` the first JavaScript ancestor wins,
    whatever its label holds.  With ``require_valid=True`` JavaScript
    ancestors whose URL does not parse are skipped.
    """
    for ancestor in reader.ancestors(stack_id):
        frame = reader.frame_of(ancestor)
        if not reader.is_javascript(frame):
            continue
        script_url = labels.script_url_from_label(reader.label_of(frame))
        if not require_valid or url_mod.is_valid_url(script_url):
            return ScriptLocation(script_url, ancestor)
    return ScriptLocation(None, None)


def has_script_context(reader: ThreadReader, stack_id: int) -> bool:
    """Return True if the caller of *stack_id* is page JavaScript."""
    parent = reader.parent_of(stack_id)
    if parent is None or reader.is_root(parent):
        return False
    frame = reader.frame_of(parent)
    if not reader.is_javascript(frame):
        return False
    return not labels.is_automation_label(reader.label_of(frame))


# ============================================================================
# Analyser
# ============================================================================


class Analyser:
    """Attributes DOM API samples in trace documents to scripts and pages."""

    def __init__(self, page_filter: PageFilter | None = None) -> None:
        self._page_filter = page_filter or is_http_page

    def attribute_sample(
        self,
        reader: ThreadReader,
        pages: dict[int, trace.Page],
        stack_id: int,
    ) -> SampleAttribution | None:
        """Attribute one sample, or return ``None`` if it is not counted."""
        api = reader.stack_label(stack_id)
        if not labels.is_dom_label(api):
            return None
        if not has_script_context(reader, stack_id):
            return None

        script = find_script_url(reader, stack_id, require_valid=False)
        valid_script = find_script_url(reader, stack_id, require_valid=True)
        if labels.is_internal_script_url(script.url) or labels.is_internal_script_url(valid_script.url):
            return None

        page_stack = valid_script.stack_id
        if page_stack is None:
            page_stack = reader.parent_of(stack_id)
        window_id = reader.window_of(reader.frame_of(page_stack))
        page = pages.get(window_id) if window_id is not None else None

        # Only the two ends of the chain are kept; intermediate
        # iframe levels are dropped.
        chain = embedder_chain(pages, page)
        first_party = chain[-1] if chain else None
        third_party = chain[0] if chain else None

        return SampleAttribution(
            key=AggregateKey(first_party, third_party, script.url, valid_script.url),
            api=api,
        )

    def analyse_thread(
        self,
        process: trace.SubprocessProfile,
        thread: trace.Thread,
        categories: list[trace.Category],
        accumulator: ApiUsageAccumulator,
    ) -> int:
        """Count every attributable sample of *thread*; return how many."""
        reader = ThreadReader(thread, categories)
        pages = {page.inner_window_id: page for page in process.pages or []}
        counted = 0
        for stack_id in reader.sample_stacks():
            attribution = self.attribute_sample(reader, pages, stack_id)
            if attribution is None:
                continue
            accumulator.record(attribution.key, attribution.api)
            counted += 1
        return counted

    def analyse(self, document: trace.TraceDocument, accumulator: ApiUsageAccumulator) -> int:
        """Count all attributable samples of *document* into *accumulator*.

        Raises:
            TraceCorruptionError: If any table reference is inconsistent.
                Counts already recorded for this document are left in
                *accumulator*, so callers should pass a fresh one per
                document.
        """
        categories = document.meta.categories
        selected = filter_threads_by_page(document, self._page_filter)
        counted = 0
        for process, threads in selected:
            for thread in threads:
                counted += self.analyse_thread(process, thread, categories, accumulator)
        log.debug(
            "Trace analysed",
            {
                "processes": len(selected),
                "threads": sum(len(threads) for _, threads in selected),
                "samples": counted,
            },
        )
        return counted


def analyse_trace(
    document: trace.TraceDocument,
    page_filter: PageFilter | None = None,
) -> ApiUsageAccumulator:
    """Analyse one document into a new accumulator."""
    analyser = Analyser(page_filter)
    accumulator = ApiUsageAccumulator()
    analyser.analyse(document, accumulator)
    return accumulator
