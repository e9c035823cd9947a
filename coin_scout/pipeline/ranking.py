"""
Ranking run: fetch histories in parallel and score each candidate.

One worker task per candidate; a failing task drops only that candidate.
The run honours an overall deadline; when it passes, unfinished tasks are
cancelled and the already-scored subset is returned.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from coin_scout.config import Config, get_config
from coin_scout.contracts import CoinScore
from coin_scout.exceptions import DataFetchError, InsufficientDataError, PipelineError, is_recoverable
from coin_scout.interfaces import Candidate, PriceHistory
from coin_scout.market_data import build_candidate
from coin_scout.scoring.multi_factor import MultiFactorScorer, sort_scores

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 250


class MarketDataProvider(Protocol):
    def list_markets(self, vs_currency: Optional[str] = None, page: int = 1, per_page: int = 100) -> List[Dict[str, Any]]:
        ...

    def price_history(self, coin_id: str, vs_currency: Optional[str] = None, days: Optional[int] = None) -> PriceHistory:
        ...


@dataclass(frozen=True)
class RankingRun:
    scores: Tuple[CoinScore, ...]
    requested: int
    skipped: Mapping[str, str] = field(default_factory=dict)
    failed: Mapping[str, str] = field(default_factory=dict)
    timed_out: Tuple[str, ...] = ()
    elapsed_sec: float = 0.0

    @property
    def deadline_hit(self) -> bool:
        return bool(self.timed_out)


def list_universe(provider: MarketDataProvider, limit: int, vs_currency: str) -> List[Dict[str, Any]]:
    """Top ``limit`` market rows by market cap, paging as needed."""
    rows: List[Dict[str, Any]] = []
    page = 1
    while len(rows) < limit:
        per_page = min(MAX_PAGE_SIZE, limit - len(rows)) if limit <= MAX_PAGE_SIZE else MAX_PAGE_SIZE
        try:
            batch = provider.list_markets(vs_currency, page, per_page)
        except DataFetchError as exc:
            raise PipelineError("list_markets", str(exc)) from exc
        if not batch:
            break
        rows.extend(batch)
        if len(batch) < per_page:
            break
        page += 1
    return rows[:limit]


def score_market_row(
    provider: MarketDataProvider,
    scorer: MultiFactorScorer,
    row: Mapping[str, Any],
    vs_currency: str,
    days: int,
) -> CoinScore:
    history = provider.price_history(str(row["id"]), vs_currency, days)
    candidate: Candidate = build_candidate(row, history)
    return scorer.score(candidate)


def rank_coins(
    provider: MarketDataProvider,
    limit: Optional[int] = None,
    vs_currency: Optional[str] = None,
    days: Optional[int] = None,
    scorer: Optional[MultiFactorScorer] = None,
    max_workers: Optional[int] = None,
    deadline_sec: Optional[float] = None,
    config: Optional[Config] = None,
) -> RankingRun:
    """Fetch and score the top ``limit`` markets; results sorted by total score.

    Raises:
        PipelineError: the market listing itself failed (nothing to rank).
    """
    config = config or get_config()
    limit = limit or config.rank_limit
    vs_currency = vs_currency or config.vs_currency
    days = days or config.history_days
    scorer = scorer or MultiFactorScorer()
    max_workers = max(1, max_workers or config.max_workers)
    deadline_sec = config.run_deadline_sec if deadline_sec is None else deadline_sec

    start = time.monotonic()
    rows = list_universe(provider, limit, vs_currency)
    logger.info(f"Ranking {len(rows)} markets (workers={max_workers}, deadline={deadline_sec}s)")

    scores: List[CoinScore] = []
    skipped: Dict[str, str] = {}
    failed: Dict[str, str] = {}
    timed_out: List[str] = []
    collected = set()

    def _collect(future, coin_id: str) -> None:
        collected.add(coin_id)
        try:
            scores.append(future.result())
        except InsufficientDataError as exc:
            skipped[coin_id] = str(exc)
            logger.info(f"Skipping {coin_id}: {exc}")
        except Exception as exc:
            failed[coin_id] = str(exc)
            if is_recoverable(exc):
                logger.warning(f"Failed to score {coin_id}: {exc}")
            else:
                logger.error(f"Failed to score {coin_id}: {type(exc).__name__}: {exc}")

    executor = ThreadPoolExecutor(max_workers=max_workers)
    futures = {
        executor.submit(score_market_row, provider, scorer, row, vs_currency, days): str(row["id"])
        for row in rows
    }
    try:
        remaining = max(0.0, deadline_sec - (time.monotonic() - start))
        for future in as_completed(futures, timeout=remaining):
            _collect(future, futures[future])
    except FuturesTimeout:
        for future, coin_id in futures.items():
            if coin_id in collected:
                continue
            if future.done():
                _collect(future, coin_id)
            else:
                future.cancel()
                timed_out.append(coin_id)
        logger.warning(f"Ranking deadline of {deadline_sec}s reached; {len(timed_out)} candidates unfinished")
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    elapsed = time.monotonic() - start
    logger.info(
        f"Ranked {len(scores)}/{len(rows)} in {elapsed:.1f}s "
        f"(skipped={len(skipped)}, failed={len(failed)}, timed_out={len(timed_out)})"
    )
    return RankingRun(
        scores=tuple(sort_scores(scores)),
        requested=len(rows),
        skipped=skipped,
        failed=failed,
        timed_out=tuple(sorted(timed_out)),
        elapsed_sec=elapsed,
    )
