"""Tests for ReEmbedder."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from helpers import LARGE_DIMS, fake_embedding
from tenantkb.categories import Category
from tenantkb.config import EmbeddingCfg
from tenantkb.db.models import EmbeddingModel, KnowledgeChunk, VectorField
from tenantkb.errors import TenantNotFoundError
from tenantkb.ingest.reembed import ReEmbedder

_EMBED = "tenantkb.llm_client.litellm.embedding"


@pytest.fixture
def seeded(repo):
    records = [
        (KnowledgeChunk(tenant_id="acme", category=Category.FAQ, content=f"record {i:02d}"), [0.1, 0.2, 0.3])
        for i in range(13)
    ]
    ids = repo.insert_many(records, VectorField.EMBEDDING)
    return repo, ids


def test_switch_to_large_leaves_no_stale_vectors(seeded):
    repo, ids = seeded
    repo.set_embedding_model("acme", EmbeddingModel.LARGE)

    with patch(_EMBED, side_effect=fake_embedding()) as mock_embed:
        report = ReEmbedder(repo).run("acme")

    assert mock_embed.call_count == 2  # 13 records in batches of 10
    assert report.total == 13
    assert report.updated == 13
    assert repo.count_by_field("acme") == {
        VectorField.EMBEDDING: 0,
        VectorField.EMBEDDING_LARGE: 13,
        None: 0,
    }
    assert [c.id for c in repo.list_all("acme")] == ids
    assert len(repo.get_vector(ids[0], VectorField.EMBEDDING_LARGE)) == LARGE_DIMS


def test_same_model_refreshes_vectors(seeded):
    repo, ids = seeded
    with patch(_EMBED, side_effect=fake_embedding()):
        ReEmbedder(repo).run("acme")
    assert repo.get_vector(ids[0], VectorField.EMBEDDING) == pytest.approx([1.0, 0.0, 0.0])
    assert repo.count_chunks("acme") == 13


def test_failed_batch_keeps_old_vectors(seeded):
    repo, ids = seeded
    repo.set_embedding_model("acme", EmbeddingModel.LARGE)
    with patch(_EMBED, side_effect=fake_embedding(fail_on="record 12")):
        report = ReEmbedder(repo).run("acme")

    assert report.batches_skipped == 1
    assert report.updated == 10
    counts = repo.count_by_field("acme")
    assert counts[VectorField.EMBEDDING_LARGE] == 10
    assert counts[VectorField.EMBEDDING] == 3


def test_custom_batch_size(seeded):
    repo, _ = seeded
    with patch(_EMBED, side_effect=fake_embedding()) as mock_embed:
        ReEmbedder(repo, EmbeddingCfg(reembed_batch_size=4)).run("acme")
    assert mock_embed.call_count == 4


def test_progress_callback(seeded):
    repo, _ = seeded
    progress = []
    with patch(_EMBED, side_effect=fake_embedding()):
        ReEmbedder(repo).run("acme", on_batch=lambda d, t: progress.append((d, t)))
    assert progress == [(1, 2), (2, 2)]


def test_unknown_tenant(repo):
    with pytest.raises(TenantNotFoundError):
        ReEmbedder(repo).run("initech")


def test_empty_tenant(repo):
    with patch(_EMBED) as mock_embed:
        report = ReEmbedder(repo).run("acme")
    mock_embed.assert_not_called()
    assert report.total == 0
