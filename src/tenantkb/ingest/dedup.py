"""Deduplicator — suppress candidates whose exact content is already stored."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from tenantkb.db.repository import Repository
from tenantkb.ingest.base import Candidate

logger = structlog.get_logger(logger_name=__name__)


@dataclass
class DedupResult:
    unique: list[Candidate] = field(default_factory=list)
    duplicates: int = 0


class Deduplicator:
    """Point-check each candidate against the tenant's stored content.

    A candidate is dropped when the tenant already has a record with the same
    content, or when an earlier candidate in the same run had it. The check
    is not transactional: two concurrent runs for one tenant can both pass it.
    The store's unique (tenant_id, content) index then turns the second insert
    into a no-op.
    """

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def filter(self, tenant_id: str, candidates: list[Candidate]) -> DedupResult:
        result = DedupResult()
        seen: set[str] = set()
        for candidate in candidates:
            if candidate.content in seen:
                result.duplicates += 1
                continue
            seen.add(candidate.content)
            if self._repo.find_by_exact_content(tenant_id, candidate.content) is not None:
                result.duplicates += 1
                continue
            result.unique.append(candidate)
        if result.duplicates:
            logger.info("duplicates_skipped", tenant_id=tenant_id, count=result.duplicates)
        return result
