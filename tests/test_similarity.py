"""Tests for tag-based similarity and strategy fallback."""

import threading

import pytest

from printbrain.services.similarity import SimilarityService, TagSearch, VectorSearch, tag_score


class BrokenSearch(VectorSearch):
    async def similar_to_asset(self, db, asset, limit):
        raise RuntimeError("function match_assets does not exist")

    async def search_text(self, db, query, limit):
        raise RuntimeError("function match_assets does not exist")


@pytest.fixture
def gallery(make_asset):
    source = make_asset(drive_file_id="src", style="Baroque", mood="Dramatic", subject="Portrait")
    twin = make_asset(
        drive_file_id="twin", style="Baroque", mood="Dramatic", subject="Portrait", artist="Other Painter"
    )
    cousin = make_asset(drive_file_id="cousin", style="Baroque", mood="Serene")
    make_asset(drive_file_id="stranger", style="Cubism", title="Baroque Guitar")
    return source, twin, cousin


def test_tag_score_weights(gallery):
    source, twin, cousin = gallery
    # style 3 + mood 2 + subject 2 + ratio 1 + different artist 1
    assert tag_score(source, twin) == 9
    # style 3 + ratio 1
    assert tag_score(source, cousin) == 4


async def test_tag_search_ranks_by_shared_tags(test_db, gallery):
    source, twin, cousin = gallery
    matches = await TagSearch().similar_to_asset(test_db, source, limit=5)

    assert [m["asset_id"] for m in matches] == [twin.id, cousin.id]
    assert matches[0]["similarity"] == 9.0


async def test_tag_search_synced_only(test_db, gallery):
    source, _, _ = gallery
    assert await TagSearch(synced_only=True).similar_to_asset(test_db, source, limit=5) == []


async def test_text_search_matches_title_and_style(test_db, gallery):
    matches = await TagSearch().search_text(test_db, "baroque", limit=10)
    assert len(matches) == 4


async def test_falls_back_when_primary_fails(test_db, gallery):
    source, twin, _ = gallery
    service = SimilarityService(BrokenSearch(), TagSearch())

    matches, method = await service.similar_to_asset(test_db, source, 1)

    assert method == "tags"
    assert matches[0]["asset_id"] == twin.id


async def test_falls_back_when_primary_is_empty(test_db, gallery):
    source, _, _ = gallery
    # No embeddings stored, and no embedder for text queries
    service = SimilarityService(VectorSearch(embedder=None), TagSearch())

    _, method = await service.similar_to_asset(test_db, source, 3)
    assert method == "tags"

    _, method = await service.search_text(test_db, "dramatic", 3)
    assert method == "tags"


class ThreadRecordingSession:
    """Session proxy noting the thread of every statement."""

    def __init__(self, session):
        self.session = session
        self.threads = []

    def execute(self, *args, **kwargs):
        self.threads.append(threading.get_ident())
        return self.session.execute(*args, **kwargs)

    def rollback(self):
        self.session.rollback()


async def test_queries_run_off_the_event_loop_thread(test_db, gallery):
    source, _, _ = gallery
    db = ThreadRecordingSession(test_db)

    await TagSearch().similar_to_asset(db, source, limit=5)
    await TagSearch().search_text(db, "baroque", limit=5)

    assert len(db.threads) == 2
    assert threading.get_ident() not in db.threads
