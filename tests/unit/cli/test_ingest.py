"""Tests for the tenantkb ingest and add commands."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from helpers import completion_response, fake_embedding
from tenantkb.categories import Category
from tenantkb.cli.main import app
from tenantkb.db.connection import Database
from tenantkb.db.repository import Repository
from tenantkb.ingest.dedup import DedupResult

runner = CliRunner()

_EMBED = "tenantkb.llm_client.litellm.embedding"
_COMPLETE = "tenantkb.llm_client.litellm.completion"

_TEXT = "FAQ\nQ: 営業時間は？\nA: 10時から19時です。\nPRICE\nカット 5000円\nカラー 8000円"


@pytest.fixture
def tenant(cli_env):
    result = runner.invoke(app, ["tenant", "add", "acme"])
    assert result.exit_code == 0, result.output
    return "acme"


def _chunks(cli_env, tenant_id="acme"):
    with Database(cli_env / ".tenantkb.db") as conn:
        return Repository(conn).list_all(tenant_id)


# ------------------------------------------------------------------
# Input validation
# ------------------------------------------------------------------


def test_ingest_requires_input(cli_env):
    result = runner.invoke(app, ["ingest", "--tenant", "acme"])
    assert result.exit_code == 1
    assert "Nothing to ingest" in result.output


def test_ingest_rejects_text_and_file(cli_env):
    path = cli_env / "notes.txt"
    path.write_text("hello there, world", encoding="utf-8")
    result = runner.invoke(app, ["ingest", "--tenant", "acme", "--text", "x", "--file", str(path)])
    assert result.exit_code == 1
    assert "mutually exclusive" in result.output


def test_ingest_unknown_tenant(cli_env):
    with patch(_EMBED) as mock_embed:
        result = runner.invoke(app, ["ingest", "--tenant", "initech", "--text", _TEXT])
    assert result.exit_code == 1
    assert "not registered" in result.output
    mock_embed.assert_not_called()


def test_ingest_missing_api_key(tenant, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    result = runner.invoke(app, ["ingest", "--tenant", tenant, "--text", _TEXT])
    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output


def test_ingest_unsupported_file(tenant, cli_env):
    path = cli_env / "sheet.xlsx"
    path.write_bytes(b"PK")
    result = runner.invoke(app, ["ingest", "--tenant", tenant, "--file", str(path)])
    assert result.exit_code == 1
    assert "Could not read" in result.output


# ------------------------------------------------------------------
# Happy path
# ------------------------------------------------------------------


def test_ingest_text(tenant, cli_env):
    with patch(_EMBED, side_effect=fake_embedding()):
        result = runner.invoke(app, ["ingest", "--tenant", tenant, "--text", _TEXT])
    assert result.exit_code == 0, result.output
    assert "2 records written" in result.output
    assert [c.category for c in _chunks(cli_env)] == [Category.FAQ, Category.PRICE]


def test_ingest_twice_skips_duplicates(tenant, cli_env):
    with patch(_EMBED, side_effect=fake_embedding()):
        runner.invoke(app, ["ingest", "--tenant", tenant, "--text", _TEXT])
        result = runner.invoke(app, ["ingest", "--tenant", tenant, "--text", _TEXT])
    assert result.exit_code == 0, result.output
    assert "0 records written" in result.output
    assert "2 duplicates skipped" in result.output
    assert len(_chunks(cli_env)) == 2


def test_ingest_file_with_category(tenant, cli_env):
    path = cli_env / "prices.csv"
    path.write_text("カット,5000円\nカラー,8000円\n", encoding="utf-8")
    with patch(_EMBED, side_effect=fake_embedding()):
        result = runner.invoke(
            app, ["ingest", "--tenant", tenant, "--file", str(path), "--category", "price"]
        )
    assert result.exit_code == 0, result.output
    (chunk,) = _chunks(cli_env)
    assert chunk.category is Category.PRICE


def test_ingest_long_text_synthesized(tenant, cli_env):
    prose = "CONTEXT\n" + "当店は駅から徒歩五分の場所にあります。" * 60
    items = {"items": [{"q": "場所は？", "a": "駅から徒歩五分。", "category": "CONTEXT"}]}
    with patch(_EMBED, side_effect=fake_embedding()), patch(
        _COMPLETE, return_value=completion_response(json.dumps(items))
    ):
        result = runner.invoke(app, ["ingest", "--tenant", tenant, "--text", prose])
    assert result.exit_code == 0, result.output
    (chunk,) = _chunks(cli_env)
    assert chunk.content == "Q: 場所は？\nA: 駅から徒歩五分。"


def test_ingest_failed_slice_exits_nonzero(tenant, cli_env):
    (cli_env / "tenantkb.yaml").write_text(
        "embedding:\n  small_dimensions: 3\n  large_dimensions: 4\ningest:\n  macro_batch_chars: 40\n",
        encoding="utf-8",
    )
    text = "a" * 40 + "b" * 40
    with patch(_EMBED, side_effect=fake_embedding()), patch(
        "tenantkb.ingest.pipeline.Deduplicator.filter",
        side_effect=[DedupResult(), RuntimeError("db locked")],
    ):
        result = runner.invoke(app, ["ingest", "--tenant", tenant, "--text", text])
    assert result.exit_code == 1
    assert "Slice 2/2 failed" in result.output


# ------------------------------------------------------------------
# add
# ------------------------------------------------------------------


def test_add_stores_record(tenant, cli_env):
    with patch(_EMBED, side_effect=fake_embedding()), patch(_COMPLETE) as mock_complete:
        result = runner.invoke(app, ["add", "初回20%オフ", "--tenant", tenant, "--category", "offer"])
    assert result.exit_code == 0, result.output
    assert "Stored 1 OFFER record" in result.output
    mock_complete.assert_not_called()
    (chunk,) = _chunks(cli_env)
    assert chunk.category is Category.OFFER


def test_add_duplicate(tenant, cli_env):
    with patch(_EMBED, side_effect=fake_embedding()):
        runner.invoke(app, ["add", "初回20%オフ", "--tenant", tenant])
        result = runner.invoke(app, ["add", "初回20%オフ", "--tenant", tenant])
    assert result.exit_code == 0
    assert "already stored" in result.output


def test_add_embedding_failure(tenant, cli_env):
    with patch(_EMBED, side_effect=RuntimeError("provider down")):
        result = runner.invoke(app, ["add", "初回20%オフ", "--tenant", tenant])
    assert result.exit_code == 1
    assert "nothing written" in result.output
