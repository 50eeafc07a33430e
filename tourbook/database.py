from pymongo import ASCENDING, DESCENDING, GEOSPHERE, MongoClient

from . import config

client = None


def get_client():
    global client
    if client is None:
        client = MongoClient(config.DATABASE_URL)
    return client


def get_db(names=()):
    db = get_client()[config.DATABASE_NAME]
    for name in names:
        if name not in db.list_collection_names():
            db.create_collection(name)
    return db


def ensure_indexes(db):
    db.tours.create_index([("name", ASCENDING)], unique=True)
    db.tours.create_index([("slug", ASCENDING)])
    db.tours.create_index([("startLocation", GEOSPHERE)])
    db.tours.create_index([("price", ASCENDING), ("ratingsAverage", DESCENDING)])
    db.users.create_index([("name", ASCENDING)], unique=True)
    db.users.create_index([("email", ASCENDING)], unique=True)
    # one review per user and tour
    db.reviews.create_index([("tour", ASCENDING), ("author", ASCENDING)], unique=True)
