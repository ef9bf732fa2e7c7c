#!/usr/bin/env python3
"""
Recall evaluation harness.

Loads a YAML fixture of recall sources and queries into in-memory stores,
runs every query through the engine and reports latency, items per source,
whether semantic scoring was used, and whether the expected snippets made it
into the output.
"""

import asyncio
import sys
import time
from pathlib import Path
from statistics import mean, median
from typing import Any, Dict, List, Optional

import click
import yaml
from loguru import logger
from rich.console import Console
from tabulate import tabulate

from contextrecall.engine import (
    RAGEngine, EngineConfig, SentenceTransformerBackend,
    MemoryItem, ClipboardItem, ActivityItem, SearchItem, AppUsageSummary,
    InMemoryAppUsageStore, memory_store, clipboard_store, activity_store, search_store
)
from contextrecall.engine.models import now_ms


DEFAULT_FIXTURE = Path(__file__).parent / "fixtures" / "sample.yaml"

console = Console()


def _timestamp(entry: Dict[str, Any], now: int) -> int:
    return now - int(entry.pop("age_minutes", 0)) * 60_000


def load_fixture(path: Path, now: Optional[int] = None) -> Dict[str, Any]:
    """Parse a fixture file into recall items and queries."""
    if now is None:
        now = now_ms()
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}

    memories = [MemoryItem(**entry) for entry in data.get("memories", [])]

    clipboard = []
    for entry in data.get("clipboard", []):
        entry = dict(entry)
        timestamp = _timestamp(entry, now)
        clipboard.append(ClipboardItem(timestamp=timestamp, **entry))

    activities = []
    for i, entry in enumerate(data.get("activities", []), 1):
        entry = dict(entry)
        timestamp = _timestamp(entry, now)
        activities.append(ActivityItem(id=i, timestamp=timestamp, **entry))

    searches = []
    for i, entry in enumerate(data.get("searches", []), 1):
        entry = dict(entry)
        timestamp = _timestamp(entry, now)
        searches.append(SearchItem(id=i, timestamp=timestamp, **entry))

    usage = [AppUsageSummary(last_used=now, **entry) for entry in data.get("app_usage", [])]

    return {
        "memories": memories,
        "clipboard": clipboard,
        "activities": activities,
        "searches": searches,
        "app_usage": usage,
        "queries": data.get("queries", []),
    }


def build_engine(fixture: Dict[str, Any],
                 config: Optional[EngineConfig] = None,
                 model: Optional[str] = None) -> RAGEngine:
    backend = SentenceTransformerBackend(model) if model else None
    return RAGEngine(
        memories=memory_store(fixture["memories"]),
        clipboard=clipboard_store(fixture["clipboard"]),
        activities=activity_store(fixture["activities"]),
        searches=search_store(fixture["searches"]),
        app_usage=InMemoryAppUsageStore(fixture["app_usage"]),
        backend=backend,
        config=config,
    )


async def evaluate(engine: RAGEngine, queries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Run each query and collect per-query results."""
    state = await engine.initialize()
    logger.info(f"Engine state: {state.value}")

    results = []
    for entry in queries:
        query = entry["query"]
        expected = entry.get("expect", [])
        start = time.perf_counter()

        if entry.get("recall"):
            output = await engine.answer_recall_query(query)
            counts = {}
            semantic = engine.embeddings_available
        else:
            context = await engine.retrieve_context(query)
            output = context.context_string
            counts = context.to_dict()["counts"]
            semantic = context.used_semantic_search

        latency_ms = (time.perf_counter() - start) * 1000
        found = [snippet for snippet in expected if snippet in output]
        results.append({
            "query": query,
            "mode": "recall" if entry.get("recall") else "context",
            "semantic": semantic,
            "latency_ms": latency_ms,
            "counts": counts,
            "expected": len(expected),
            "found": len(found),
            "output": output,
        })
        logger.debug(f"{query!r}: {len(found)}/{len(expected)} expected in {latency_ms:.1f}ms")
    return results


def render_report(results: List[Dict[str, Any]]) -> str:
    rows = []
    for r in results:
        counts = r["counts"]
        rows.append([
            r["query"][:40],
            r["mode"],
            "yes" if r["semantic"] else "no",
            counts.get("memories", "-"),
            counts.get("activities", "-"),
            counts.get("clipboard", "-"),
            counts.get("searches", "-"),
            f"{r['found']}/{r['expected']}",
            f"{r['latency_ms']:.1f}",
        ])
    table = tabulate(
        rows,
        headers=["Query", "Mode", "Semantic", "Mem", "Act", "Clip", "Search", "Hits", "ms"],
        tablefmt="github",
    )

    latencies = [r["latency_ms"] for r in results]
    expected = sum(r["expected"] for r in results)
    found = sum(r["found"] for r in results)
    summary = [
        ["Queries", len(results)],
        ["Expected snippets found", f"{found}/{expected}"],
        ["Latency mean (ms)", f"{mean(latencies):.1f}" if latencies else "-"],
        ["Latency p50 (ms)", f"{median(latencies):.1f}" if latencies else "-"],
    ]
    return table + "\n\n" + tabulate(summary, tablefmt="github")


@click.command()
@click.option("--fixture", type=click.Path(exists=True, dir_okay=False),
              default=str(DEFAULT_FIXTURE), help="YAML fixture with sources and queries")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Engine config YAML (defaults when omitted)")
@click.option("--model", default=None,
              help="sentence-transformers model name; lexical-only when omitted")
@click.option("--show-context", is_flag=True, help="Print the output of every query")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def main(fixture: str, config_path: Optional[str], model: Optional[str],
         show_context: bool, verbose: bool):
    """Run the recall engine over a fixture and print a report."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>",
        level="DEBUG" if verbose else "INFO"
    )

    config = EngineConfig.load(Path(config_path)) if config_path else EngineConfig()
    data = load_fixture(Path(fixture))
    logger.info(
        f"Loaded {len(data['memories'])} memories, {len(data['clipboard'])} clips, "
        f"{len(data['activities'])} activities, {len(data['searches'])} searches"
    )

    engine = build_engine(data, config, model)
    results = asyncio.run(evaluate(engine, data["queries"]))
    if not results:
        logger.error("Fixture has no queries")
        sys.exit(1)

    if show_context:
        for r in results:
            console.rule(f"[cyan]{r['query']}[/cyan]")
            console.print(r["output"] or "[empty]", markup=False, highlight=False)

    click.echo(render_report(results))

    missed = sum(r["expected"] - r["found"] for r in results)
    if missed:
        logger.warning(f"{missed} expected snippets missing from output")
        sys.exit(1)
    logger.success("All expected snippets found")


if __name__ == "__main__":
    main()
