"""Cluster labels: dominant-type summaries, optionally refined by an LLM."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Sequence

from neuralytics.domain.models import Cluster
from neuralytics.ports.llm import LLMPort
from neuralytics.ports.vector_index import ItemRecord
from neuralytics.prompts.labeling import CLUSTER_LABEL_PROMPT, CLUSTER_LABEL_SYSTEM

log = logging.getLogger(__name__)

MAX_LABEL_CHARS = 50
MAX_PROMPT_MEMBERS = 20


def type_label(types: Sequence[str], algorithm: str = "cluster") -> str:
    """Describe a cluster by the share of its dominant item type."""
    if not types:
        return f"{algorithm}-cluster"
    counts = Counter(t or "unknown" for t in types)
    ranked = counts.most_common()
    dominant, top = ranked[0]
    size = len(types)
    share = round(top / size * 100)
    if share >= 80:
        return f"{dominant} group ({size})"
    if share >= 60:
        return f"mostly {dominant} ({size})"
    pair = " & ".join(t for t, _ in ranked[:2])
    return f"{pair} cluster ({size})"


def _clean(raw: str) -> str:
    text = raw.strip().splitlines()[0] if raw.strip() else ""
    for prefix in ("Label:", "Cluster:", "Theme:"):
        if text.lower().startswith(prefix.lower()):
            text = text[len(prefix):]
    return text.strip().replace('"', "").replace("'", "")[:MAX_LABEL_CHARS]


class ClusterLabeler:
    """Assigns labels; the LLM path is best-effort and never raises."""

    def __init__(self, llm: LLMPort | None = None) -> None:
        self._llm = llm

    @property
    def has_llm(self) -> bool:
        return self._llm is not None

    def simple(self, members: Sequence[ItemRecord], algorithm: str) -> str:
        return type_label([m.noun_type for m in members], algorithm)

    async def label(self, cluster: Cluster, members: Sequence[ItemRecord], algorithm: str) -> str:
        fallback = self.simple(members, algorithm)
        if self._llm is None or not members:
            return fallback

        shown = members[:MAX_PROMPT_MEMBERS]
        counts = Counter(m.noun_type for m in members)
        prompt = CLUSTER_LABEL_PROMPT.format(
            type_summary=", ".join(f"{t} ({n})" for t, n in counts.most_common()),
            size=len(members),
            shown=len(shown),
            members_text="\n".join(
                f"- {m.metadata.get('label') or m.metadata.get('name') or m.id} ({m.noun_type})"
                for m in shown
            ),
        )
        try:
            raw = await asyncio.to_thread(self._llm.generate, prompt, system=CLUSTER_LABEL_SYSTEM)
        except Exception as exc:  # best-effort enrichment
            log.warning("LLM label for %s failed, using simple label: %s", cluster.id, exc)
            return fallback
        return _clean(raw) or fallback

    async def label_all(
        self,
        clusters: list[Cluster],
        records: dict[str, ItemRecord],
        algorithm: str,
    ) -> None:
        """Label every cluster in place, concurrently."""
        labels = await asyncio.gather(
            *(
                self.label(c, [records[m] for m in c.members if m in records], algorithm)
                for c in clusters
            )
        )
        for c, text in zip(clusters, labels):
            c.label = text
