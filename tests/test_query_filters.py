from datetime import datetime
from functools import partial

import pytest

from query_filters import (
    Between,
    Compare,
    Equals,
    FullText,
    Grouping,
    In,
    Pagination,
    cast_value,
    compile_query,
    group_pipeline,
    parse_pagination,
    parse_sort,
    to_mongo_filter,
    to_mongo_projection,
)
from schemas import Lyric, Song, field_type

SONG_TYPES = partial(field_type, Song)


class TestFieldFilters:
    def test_plain_parameter_is_equality(self):
        query = compile_query({"name": "Yellow"})
        assert query.clauses == [Equals("name", "Yellow")]
        assert to_mongo_filter(query.clauses) == {"name": "Yellow"}

    @pytest.mark.parametrize("raw, expected", [("true", True), ("false", False), ("True", "True")])
    def test_boolean_strings_are_coerced(self, raw, expected):
        query = compile_query({"published": raw})
        assert to_mongo_filter(query.clauses) == {"published": expected}

    def test_boolean_coercion_applies_with_operator(self):
        query = compile_query({"published__ne": "false"})
        assert query.clauses == [Compare("published", "ne", False)]
        assert to_mongo_filter(query.clauses) == {"published": {"$ne": False}}

    def test_reserved_parameters_are_not_filters(self):
        query = compile_query(
            {
                "page": "1",
                "perpage": "5",
                "status": "active",
                "sort": "name__asc",
                "projection": "name",
                "export_by": "csv",
                "group__anything": "x",
            }
        )
        assert query.clauses == []
        assert to_mongo_filter(query.clauses) == {}

    def test_in_splits_on_commas(self):
        query = compile_query({"name__in": "a,b,c"})
        assert query.clauses == [In("name", ("a", "b", "c"))]
        assert to_mongo_filter(query.clauses) == {"name": {"$in": ["a", "b", "c"]}}

    def test_between_parses_iso_dates(self):
        query = compile_query({"released__between": "2024-01-01,2024-06-01"})
        assert query.clauses == [
            Between("released", datetime(2024, 1, 1), datetime(2024, 6, 1))
        ]
        assert to_mongo_filter(query.clauses) == {
            "released": {"$gte": datetime(2024, 1, 1), "$lte": datetime(2024, 6, 1)}
        }

    def test_between_keeps_non_dates_as_strings(self):
        query = compile_query({"name__between": "a,m"})
        assert to_mongo_filter(query.clauses) == {"name": {"$gte": "a", "$lte": "m"}}

    def test_between_without_upper_bound(self):
        query = compile_query({"released__between": "2024-01-01"})
        assert to_mongo_filter(query.clauses) == {"released": {"$gte": datetime(2024, 1, 1)}}

    def test_untyped_operators_pass_values_through(self):
        query = compile_query({"duration__gt": "120"})
        assert to_mongo_filter(query.clauses) == {"duration": {"$gt": "120"}}


    def test_search_adds_text_predicate_and_combines(self):
        query = compile_query({"search": "love", "artistid": "abc"})
        assert FullText("love") in query.clauses
        assert to_mongo_filter(query.clauses) == {
            "$text": {"$search": "love"},
            "artistid": "abc",
        }

    def test_same_field_twice_is_anded(self):
        clauses = [Compare("duration", "gt", "1"), Compare("duration", "lt", "9")]
        assert to_mongo_filter(clauses) == {
            "$and": [{"duration": {"$gt": "1"}}, {"duration": {"$lt": "9"}}]
        }


class TestSort:
    def test_directions(self):
        assert parse_sort("name__asc,created_at__desc") == [("name", 1), ("created_at", -1)]

    def test_anything_but_asc_is_descending(self):
        assert parse_sort("name__up") == [("name", -1)]

    def test_malformed_tokens_are_dropped(self):
        assert parse_sort("name") == []
        assert parse_sort("name,duration__asc") == [("duration", 1)]

    def test_missing_sort(self):
        assert compile_query({}).sort == []


class TestPagination:
    def test_requires_both_parameters(self):
        assert compile_query({"page": "2"}).pagination is None
        assert compile_query({"perpage": "10"}).pagination is None

    def test_offset_and_page_count(self):
        pagination = compile_query({"page": "2", "perpage": "10"}).pagination
        assert pagination == Pagination(2, 10)
        assert pagination.offset == 10
        assert pagination.page_count(25) == 3

    @pytest.mark.parametrize("page, perpage", [("x", "10"), ("0", "10"), ("1", "0"), ("1", "-3")])
    def test_unusable_values_disable_pagination(self, page, perpage):
        assert parse_pagination(page, perpage) is None


class TestGrouping:
    def test_pipeline_stages(self):
        query = compile_query(
            {
                "group__columns": "artistid,name",
                "group__sums": "duration",
                "sort": "duration__desc",
                "name__ne": "intro",
                "page": "1",
                "perpage": "10",
            }
        )
        assert query.grouping == Grouping(("artistid", "name"), ("duration",))
        assert query.pagination is None
        assert group_pipeline(query) == [
            {"$match": {"name": {"$ne": "intro"}}},
            {
                "$group": {
                    "_id": {"artistid": "$artistid", "name": "$name"},
                    "duration": {"$sum": "$duration"},
                }
            },
            {"$sort": {"duration": -1}},
        ]

    def test_no_sort_stage_without_sort(self):
        query = compile_query({"group__columns": "artistid"})
        assert [list(stage)[0] for stage in group_pipeline(query)] == ["$match", "$group"]


class TestProjection:
    def test_space_and_comma_separated(self):
        assert to_mongo_projection("name url,duration") == {"name": 1, "url": 1, "duration": 1}

    def test_exclusions(self):
        assert to_mongo_projection("-lyrics") == {"lyrics": 0}

    def test_empty_means_all_fields(self):
        assert to_mongo_projection("") is None
        assert to_mongo_projection(None) is None


class TestFieldTypes:
    def test_numeric_values_follow_the_field_type(self):
        query = compile_query(
            {"duration__gt": "120", "lyrics.start_time__between": "1.5,3", "name": "42"}
        )
        assert to_mongo_filter(query.clauses, SONG_TYPES) == {
            "duration": {"$gt": 120.0},
            "lyrics.start_time": {"$gte": 1.5, "$lte": 3.0},
            "name": "42",
        }

    def test_equality_and_membership_are_cast(self):
        query = compile_query({"duration": "240", "lyrics.end_time__in": "1,2.5"})
        assert to_mongo_filter(query.clauses, SONG_TYPES) == {
            "duration": 240.0,
            "lyrics.end_time": {"$in": [1.0, 2.5]},
        }

    def test_unparseable_and_unknown_values_are_kept(self):
        query = compile_query({"duration__lt": "long", "released__between": "2024-01-01,zzz"})
        assert to_mongo_filter(query.clauses, SONG_TYPES) == {
            "duration": {"$lt": "long"},
            "released": {"$gte": datetime(2024, 1, 1), "$lte": "zzz"},
        }

    def test_grouping_match_is_cast(self):
        query = compile_query({"group__columns": "artistid", "duration__gte": "60"})
        assert group_pipeline(query, SONG_TYPES)[0] == {"$match": {"duration": {"$gte": 60.0}}}

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("duration", float),
            ("artistid", str),
            ("albums", str),
            ("lyrics.start_time", float),
            ("lyrics", Lyric),
            ("lyrics.missing", None),
            ("name.first", None),
            ("created_at", None),
        ],
    )
    def test_field_type_lookup(self, path, expected):
        assert field_type(Song, path) is expected

    def test_cast_value(self):
        assert cast_value("3", int) == 3
        assert cast_value("3.5", int) == 3.5
        assert cast_value("false", bool) is False
        assert cast_value(True, float) is True
        assert cast_value("7", None) == "7"
