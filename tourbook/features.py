import re

RESERVED_PARAMS = ("page", "sort", "limit", "fields")
OPERATORS = ("gte", "gt", "lte", "lt")
# parameters that may be repeated in the query string
REPEATABLE_PARAMS = ("duration", "ratingsQuantity", "ratingsAverage", "maxGroupSize", "difficulty", "price")

DEFAULT_SORT = [("createdAt", -1)]
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
VERSION_FIELD = "__v"

_BRACKET_PARAM = re.compile(r"^([^\[\]]+)\[([^\[\]]+)\]$")


def _positive_int(value, default):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


def _last(value):
    return value[-1] if isinstance(value, (list, tuple)) else value


class APIFeatures:
    """Turns a query string into the filter, sort, projection and window of a find.

    ``query_string`` maps each parameter to a value or a list of values (repeated
    parameters). ``base_filter`` is always enforced, ``casts`` converts raw string
    values per field and ``hidden`` names fields that are never filtered on or
    projected.
    """

    def __init__(self, query_string, base_filter=None, casts=None, hidden=()):
        self.query_string = dict(query_string)
        self.base_filter = dict(base_filter or {})
        self.casts = casts or {}
        self.hidden = tuple(hidden)

        self.criteria = dict(self.base_filter)
        self.sort_by = None
        self.projection = None
        self.skip = 0
        self.limit = 0

    def cast(self, field, value):
        cast = self.casts.get(field)
        if cast is None:
            return value
        try:
            return cast(value)
        except (TypeError, ValueError):
            return value

    def filter(self):
        query = {}
        for key, value in self.query_string.items():
            if key in RESERVED_PARAMS or key.startswith("$"):
                continue

            operator = None
            match = _BRACKET_PARAM.match(key)
            if match:
                key, operator = match.groups()
                if operator not in OPERATORS or key.startswith("$"):
                    continue
            if key in self.hidden:
                continue

            if isinstance(value, (list, tuple)) and len(value) > 1 and key in REPEATABLE_PARAMS and operator is None:
                condition = {"$in": [self.cast(key, v) for v in value]}
            else:
                condition = self.cast(key, _last(value))

            if operator is not None:
                existing = query.get(key)
                if not isinstance(existing, dict):
                    existing = {}
                existing[f"${operator}"] = condition
                condition = existing
            query[key] = condition

        if self.base_filter and query:
            self.criteria = {"$and": [self.base_filter, query]}
        else:
            self.criteria = {**self.base_filter, **query}
        return self

    def sort(self):
        sort_by = []
        raw = _last(self.query_string.get("sort"))
        for field in (raw or "").split(","):
            field = field.strip()
            if not field or field == "-":
                continue
            if field.startswith("-"):
                sort_by.append((field[1:], -1))
            else:
                sort_by.append((field, 1))
        self.sort_by = sort_by or list(DEFAULT_SORT)
        return self

    def limit_fields(self):
        excluded = (VERSION_FIELD,) + self.hidden
        raw = _last(self.query_string.get("fields"))
        fields = [f.strip() for f in (raw or "").split(",")]
        omitted = [f[1:] for f in fields if f.startswith("-") and len(f) > 1]
        fields = [f for f in fields if f and not f.startswith("-") and f not in excluded]
        if fields:
            # inclusion wins; mongo only allows _id to be excluded next to it
            self.projection = {field: 1 for field in fields}
            if "_id" in omitted:
                self.projection["_id"] = 0
        else:
            self.projection = {field: 0 for field in excluded + tuple(omitted)}
        return self

    def paginate(self):
        page = _positive_int(_last(self.query_string.get("page")), DEFAULT_PAGE)
        self.limit = _positive_int(_last(self.query_string.get("limit")), DEFAULT_LIMIT)
        self.skip = (page - 1) * self.limit
        return self

    def find(self, collection):
        cursor = collection.find(self.criteria, self.projection)
        if self.sort_by:
            cursor = cursor.sort(self.sort_by)
        return cursor.skip(self.skip).limit(self.limit)


def query_string_from(params):
    """Collapse Starlette ``QueryParams`` into ``{key: value or [values]}``."""
    collected = {}
    for key in params.keys():
        values = params.getlist(key)
        collected[key] = values if len(values) > 1 else values[0]
    return collected
