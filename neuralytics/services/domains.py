"""Clustering scoped by a metadata field or by time windows."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any

import numpy as np

from neuralytics.adapters.clustering.common import build_result
from neuralytics.domain.models import (
    ClusteringOptions,
    ClusteringResult,
    DomainCluster,
    TemporalCluster,
    TimeWindow,
)
from neuralytics.ports.vector_index import ItemRecord
from neuralytics.services import distance as dk
from neuralytics.services.items import ItemRepository
from neuralytics.services.router import AlgorithmRouter

log = logging.getLogger(__name__)

MERGE_JACCARD = 0.5
TREND_BAND = 0.2


def field_value(record: ItemRecord, name: str) -> Any:
    """Look up *name* on the record itself first, then in its metadata."""
    if name in ("noun_type", "type"):
        return record.noun_type
    if name == "created_at":
        return record.created_at
    return record.metadata.get(name)


def to_epoch(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return dt.timestamp()
    if isinstance(value, str):
        try:
            return to_epoch(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def trend_of(timestamps: list[float], window: TimeWindow) -> str:
    """Compare member counts in the first and second half of the window."""
    mid = (window.start + window.end) / 2.0
    first = sum(1 for t in timestamps if t < mid)
    second = len(timestamps) - first
    if second > first * (1 + TREND_BAND):
        return "increasing"
    if second < first * (1 - TREND_BAND):
        return "decreasing"
    return "stable"


def temporal_metrics(timestamps: list[float]) -> dict[str, Any]:
    start, end = min(timestamps), max(timestamps)
    hours = Counter(datetime.fromtimestamp(t, tz=timezone.utc).hour for t in timestamps)
    days = max((end - start) / 86400.0, 1.0)
    return {
        "start_time": start,
        "end_time": end,
        "peak_hour": hours.most_common(1)[0][0],
        "items_per_day": len(timestamps) / days,
    }


class DomainEngine:
    """Runs the router separately per domain value or per time window."""

    def __init__(self, items: ItemRepository, router: AlgorithmRouter) -> None:
        self._items = items
        self._router = router

    # ── domains ──

    async def cluster_by_domain(
        self,
        field: str,
        options: ClusteringOptions,
        *,
        preserve_domain_boundaries: bool = False,
        cross_domain_threshold: float = 0.8,
    ) -> ClusteringResult:
        started = time.perf_counter()
        records = await self._items.get_many(await self._items.all_ids())

        domains: dict[str, list[ItemRecord]] = {}
        for r in records:
            value = field_value(r, field)
            if value is not None and value != "":
                domains.setdefault(str(value), []).append(r)
        if not domains:
            return build_result("domain", [], started, 0, field=field, domains=0)

        async def run(domain: str, group: list[ItemRecord]) -> list[DomainCluster]:
            opts = options.with_(
                max_clusters=min(options.max_clusters or 10, math.ceil(len(group) / 3))
            )
            res = await self._router.cluster([r.id for r in group], opts)
            return [
                DomainCluster(
                    id=f"{domain}-{c.id}",
                    centroid=c.centroid,
                    members=c.members,
                    confidence=c.confidence,
                    label=c.label,
                    metadata={**c.metadata, "field": field},
                    domain=domain,
                    domain_confidence=c.size / len(group),
                )
                for c in res.clusters
            ]

        per_domain = await asyncio.gather(*(run(d, g) for d, g in domains.items()))
        clusters = [c for cs in per_domain for c in cs]

        vectors = {r.id: r.vector for r in records}
        self._mark_cross_domain_members(clusters, vectors, cross_domain_threshold)
        cross: list[DomainCluster] = []
        if not preserve_domain_boundaries:
            cross = self._cross_domain_clusters(clusters, vectors, cross_domain_threshold)

        log.info("domain(%s): %d domains -> %d clusters, %d cross-domain",
                 field, len(domains), len(clusters), len(cross))
        return build_result(
            "domain",
            clusters + cross,
            started,
            sum(len(g) for g in domains.values()),
            field=field,
            domains=len(domains),
            cross_domain_clusters=len(cross),
        )

    @staticmethod
    def _mark_cross_domain_members(
        clusters: list[DomainCluster],
        vectors: dict[str, np.ndarray],
        threshold: float,
    ) -> None:
        for c in clusters:
            others = [o.centroid for o in clusters if o.domain != c.domain and o.centroid]
            if not others:
                continue
            centers = dk.normalize_rows(np.array(others, dtype=np.float64))
            for m in c.members:
                v = np.asarray(vectors[m], dtype=np.float64)
                norm = np.linalg.norm(v)
                if norm and float((centers @ (v / norm)).max()) > threshold:
                    c.cross_domain_members.append(m)

    @staticmethod
    def _cross_domain_clusters(
        clusters: list[DomainCluster],
        vectors: dict[str, np.ndarray],
        threshold: float,
    ) -> list[DomainCluster]:
        out: list[DomainCluster] = []
        for i, a in enumerate(clusters):
            for b in clusters[i + 1 :]:
                if a.domain == b.domain:
                    continue
                sim = dk.cosine_similarity(a.centroid, b.centroid)
                if sim < threshold:
                    continue
                members = a.members + [m for m in b.members if m not in set(a.members)]
                out.append(
                    DomainCluster(
                        id=f"cross-{a.id}-{b.id}",
                        centroid=dk.centroid(vectors[m] for m in members),
                        members=members,
                        confidence=(a.confidence + b.confidence) / 2.0,
                        label=f"{a.domain} + {b.domain}",
                        metadata={"algorithm": "cross-domain", "source_clusters": [a.id, b.id]},
                        domain=f"{a.domain}+{b.domain}",
                        domain_confidence=sim,
                    )
                )
        return out

    # ── time windows ──

    async def cluster_by_time(
        self,
        time_field: str,
        windows: list[TimeWindow],
        options: ClusteringOptions,
        *,
        overlap_strategy: str = "separate",
    ) -> ClusteringResult:
        started = time.perf_counter()
        records = await self._items.get_many(await self._items.all_ids())
        stamps: dict[str, float] = {}
        for r in records:
            ts = to_epoch(field_value(r, time_field))
            if ts is None and time_field != "created_at":
                ts = r.created_at
            if ts is not None:
                stamps[r.id] = ts

        clusters: list[TemporalCluster] = []
        for w_index, window in enumerate(windows):
            ids = [i for i, ts in stamps.items() if window.contains(ts)]
            if not ids:
                continue
            res = await self._router.cluster(ids, options)
            tag = window.label or f"window-{w_index}"
            for c in res.clusters:
                ts = [stamps[m] for m in c.members if m in stamps]
                clusters.append(
                    TemporalCluster(
                        id=f"{tag}-{c.id}",
                        centroid=c.centroid,
                        members=c.members,
                        confidence=c.confidence,
                        label=c.label,
                        metadata={**c.metadata, "time_field": time_field},
                        time_window=window,
                        trend=trend_of(ts, window),
                        temporal_metrics=temporal_metrics(ts) if ts else {},
                    )
                )

        if overlap_strategy == "merge":
            vectors = {r.id: r.vector for r in records}
            clusters = merge_overlapping(clusters, vectors, stamps)

        log.info("time(%s): %d windows -> %d clusters", time_field, len(windows), len(clusters))
        return build_result(
            "temporal",
            clusters,
            started,
            len(stamps),
            time_field=time_field,
            windows=len(windows),
            overlap_strategy=overlap_strategy,
        )


def merge_overlapping(
    clusters: list[TemporalCluster],
    vectors: dict[str, np.ndarray],
    stamps: dict[str, float],
) -> list[TemporalCluster]:
    """Merge clusters from overlapping windows whose members overlap (Jaccard >= 0.5)."""
    merged: list[TemporalCluster] = []
    for c in clusters:
        target = None
        for m in merged:
            if m.time_window is None or c.time_window is None:
                continue
            if not m.time_window.overlaps(c.time_window):
                continue
            a, b = set(m.members), set(c.members)
            if len(a & b) / len(a | b) >= MERGE_JACCARD:
                target = m
                break
        if target is None:
            merged.append(c)
            continue
        seen = set(target.members)
        target.members.extend(x for x in c.members if x not in seen)
        target.centroid = dk.centroid(vectors[x] for x in target.members)
        target.confidence = (target.confidence + c.confidence) / 2.0
        window = TimeWindow(
            start=min(target.time_window.start, c.time_window.start),
            end=max(target.time_window.end, c.time_window.end),
            label=f"{target.time_window.label}+{c.time_window.label}".strip("+"),
        )
        target.time_window = window
        ts = [stamps[x] for x in target.members if x in stamps]
        target.trend = trend_of(ts, window)
        target.temporal_metrics = temporal_metrics(ts) if ts else {}
    return merged
