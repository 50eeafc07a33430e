import datetime

import mongomock
from starlette.datastructures import QueryParams

from tourbook.features import APIFeatures, query_string_from

CASTS = {"duration": float, "price": float, "ratingsAverage": float}


def shape(query_string, **kwargs):
    return APIFeatures(query_string, **kwargs).filter().sort().limit_fields().paginate()


def test_reserved_keys_give_no_constraints():
    features = shape({"page": "2", "sort": "price", "limit": "5", "fields": "name"})
    assert features.criteria == {}


def test_reserved_keys_keep_base_filter():
    features = shape({"page": "2", "sort": "price"}, base_filter={"activeUser": {"$ne": False}})
    assert features.criteria == {"activeUser": {"$ne": False}}


def test_comparison_operators():
    features = shape({"duration[gte]": "5", "price[lt]": "1500", "difficulty": "easy"}, casts=CASTS)
    assert features.criteria == {"duration": {"$gte": 5.0}, "price": {"$lt": 1500.0}, "difficulty": "easy"}


def test_two_operators_on_one_field():
    features = shape({"price[gte]": "100", "price[lte]": "500"}, casts=CASTS)
    assert features.criteria == {"price": {"$gte": 100.0, "$lte": 500.0}}


def test_injected_operators_are_dropped():
    features = shape({"$where": "sleep(100)", "price[regex]": ".*", "name[$ne]": "x"})
    assert features.criteria == {}


def test_malformed_values_are_left_alone():
    features = shape({"price": "cheap", "page": "abc", "limit": "-3"}, casts=CASTS)
    assert features.criteria == {"price": "cheap"}
    assert features.skip == 0
    assert features.limit == 100


def test_repeated_params():
    features = shape({"difficulty": ["easy", "medium"], "name": ["First", "Second"]})
    assert features.criteria == {"difficulty": {"$in": ["easy", "medium"]}, "name": "Second"}


def test_hidden_fields_cannot_be_filtered():
    query = {"password[gte]": "$2b", "passwordResetToken": "abc", "role": "admin"}
    features = shape(query, hidden=("password", "passwordResetToken"))
    assert features.criteria == {"role": "admin"}


def test_base_filter_cannot_be_overridden():
    features = shape({"activeUser": "false"}, base_filter={"activeUser": {"$ne": False}})
    assert features.criteria == {"$and": [{"activeUser": {"$ne": False}}, {"activeUser": "false"}]}


def test_default_sort_is_newest_first():
    assert shape({}).sort_by == [("createdAt", -1)]


def test_sort_fields():
    assert shape({"sort": "-ratingsAverage,price"}).sort_by == [("ratingsAverage", -1), ("price", 1)]


def test_field_limiting():
    features = shape({"fields": "name,price,__v,password"}, hidden=("password",))
    assert features.projection == {"name": 1, "price": 1}


def test_default_projection_hides_internal_fields():
    features = shape({}, hidden=("password",))
    assert features.projection == {"__v": 0, "password": 0}


def test_excluded_fields():
    features = shape({"fields": "-summary,-description"}, hidden=("password",))
    assert features.projection == {"__v": 0, "password": 0, "summary": 0, "description": 0}


def test_included_fields_win_over_excluded_ones():
    features = shape({"fields": "name,-summary,-_id"})
    assert features.projection == {"name": 1, "_id": 0}


def test_pagination():
    features = shape({"page": "2", "limit": "10"})
    assert (features.skip, features.limit) == (10, 10)


def test_key_order_does_not_matter():
    params = [("sort", "price"), ("page", "3"), ("price[lt]", "900"), ("limit", "4"), ("fields", "name")]
    forward = shape(dict(params), casts=CASTS)
    backward = shape(dict(reversed(params)), casts=CASTS)
    for attr in ("criteria", "sort_by", "projection", "skip", "limit"):
        assert getattr(forward, attr) == getattr(backward, attr)


def test_find_pages_through_collection():
    collection = mongomock.MongoClient().db.tours
    start = datetime.datetime(2024, 1, 1)
    collection.insert_many(
        [{"name": f"tour {i}", "createdAt": start + datetime.timedelta(days=i), "__v": 0} for i in range(25)]
    )

    docs = list(shape({"page": "2", "limit": "10"}).find(collection))

    assert [doc["name"] for doc in docs] == [f"tour {i}" for i in range(14, 4, -1)]
    assert all("__v" not in doc for doc in docs)


def test_query_string_from_query_params():
    params = QueryParams("difficulty=easy&difficulty=medium&price[lt]=500")
    assert query_string_from(params) == {"difficulty": ["easy", "medium"], "price[lt]": "500"}
