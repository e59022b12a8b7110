from fakes import T0
from moviefinder.models import Filters, Genre, GenreCount, KeywordCount, SearchHistoryRecord
from moviefinder.preferences import aggregate_preferences, keywords


def record(query: str, genres=(), min_rating=None) -> SearchHistoryRecord:
    return SearchHistoryRecord(
        session_id="s1",
        search_query=query,
        filters=Filters(genres=tuple(Genre(0, name) for name in genres), min_rating=min_rating),
        total_results=0,
        results=[],
        created_at=T0,
    )


def test_too_few_searches():
    assert aggregate_preferences([record("alien"), record("aliens")], T0) is None


def test_top_genre_counts():
    records = [
        record("heat", ["Action"]),
        record("ronin", ["Action"]),
        record("airplane", ["Comedy"]),
        record("speed", ["Action"]),
    ]
    profile = aggregate_preferences(records, T0)
    assert profile.total_searches == 4
    assert profile.top_genres[0] == GenreCount("Action", 3)
    assert profile.top_genres[1] == GenreCount("Comedy", 1)
    assert profile.last_updated == T0


def test_genre_ties_keep_first_seen_order():
    records = [record("a", ["Drama"]), record("b", ["Horror"]), record("c", ["Drama", "Horror"])]
    profile = aggregate_preferences(records, T0)
    assert [genre.name for genre in profile.top_genres] == ["Drama", "Horror"]


def test_keywords_are_lowercased_and_short_words_dropped():
    assert keywords("Lord of the Rings") == ["lord", "the", "rings"]
    assert keywords("Up") == []


def test_top_keywords():
    records = [record("Dark City"), record("the dark knight"), record("Batman")]
    profile = aggregate_preferences(records, T0)
    assert profile.top_keywords[0] == KeywordCount("dark", 2)
    assert KeywordCount("batman", 1) in profile.top_keywords


def test_average_rating_floor():
    records = [record("a", min_rating=7.0), record("b", min_rating=8.0), record("c")]
    assert aggregate_preferences(records, T0).average_rating_floor == 7.5


def test_default_rating_floor():
    records = [record("a"), record("b"), record("c")]
    assert aggregate_preferences(records, T0).average_rating_floor == 6.0


def test_only_latest_twenty_searches_count():
    newest = [record("new", ["Comedy"]) for _ in range(20)]
    oldest = [record("old", ["Action"]) for _ in range(5)]
    profile = aggregate_preferences(newest + oldest, T0)
    assert profile.total_searches == 20
    assert profile.top_genres == [GenreCount("Comedy", 20)]


def test_at_most_five_genres():
    names = ["Action", "Comedy", "Drama", "Horror", "Crime", "Western", "War"]
    profile = aggregate_preferences([record("q", names) for _ in range(3)], T0)
    assert len(profile.top_genres) == 5
