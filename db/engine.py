import os
from pymongo import MongoClient
from dotenv import load_dotenv

load_dotenv()

MONGO_URI = os.getenv("MONGO_URI", None)
MONGO_DB = os.getenv("MONGO_DB", None)
ENV = os.getenv("ENV", "prod").lower()

_CLIENT = None

# --- Collections ---

def get_mongo_client() -> MongoClient:
    global _CLIENT
    if MONGO_URI is None or MONGO_DB is None:
        raise ValueError("MONGO_URI and MONGO_DB must be set")
    if _CLIENT is None:
        _CLIENT = MongoClient(MONGO_URI)
    return _CLIENT


def get_mongo_collection(collection_name: str):
    """Returns a collection of the configured database, prefixed by the environment."""
    client = get_mongo_client()
    db = client[MONGO_DB]
    return db[f"{ENV.upper()}_{collection_name}"]
