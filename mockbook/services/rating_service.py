"""
Rating Service

Candidate ratings of their interviewers, at most one per candidate and
interview. `summary_for` aggregates an interviewer's average over the whole
collection.
"""

from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from mockbook.config import Config
from mockbook.db.mongo import get_database, doc_with_id
from mockbook.utils.datetime_utils import format_iso_ist, get_now_ist
from mockbook.utils.exceptions import DuplicateError, StorageError
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)


def rating_key(interview_id: str, candidate_id: str) -> str:
    return f"{interview_id}:{candidate_id}"


class RatingService:
    """Service for interviewer ratings using MongoDB"""

    def __init__(self, config: Config, db: Optional[Database] = None):
        self.config = config
        self.db = db if db is not None else get_database(config)
        self.col = self.db["ratings"]

    def add_rating(self, rating_doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(rating_doc)
        doc["_id"] = rating_key(doc["interview_id"], doc["candidate_id"])
        doc["created_at"] = format_iso_ist(get_now_ist())
        try:
            self.col.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateError("You have already rated this interview", "RatingService")
        except PyMongoError as e:
            logger.error(f"[RatingService] Error saving rating: {e}")
            raise StorageError(f"Failed to save rating: {e}", "RatingService")
        logger.info(f"[RatingService] Interview {doc['interview_id']} rated {doc['rating']} by {doc['candidate_id']}")
        return doc_with_id(doc)

    def get_rating(self, interview_id: str, candidate_id: str) -> Optional[Dict[str, Any]]:
        try:
            return doc_with_id(self.col.find_one({"_id": rating_key(interview_id, candidate_id)}))
        except PyMongoError as e:
            logger.error(f"[RatingService] Error fetching rating: {e}")
            raise StorageError(f"Failed to fetch rating: {e}", "RatingService")

    def list_ratings(self, interviewer_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Newest first; all ratings when no interviewer is given."""
        q = {"interviewer_id": interviewer_id} if interviewer_id else {}
        try:
            return [doc_with_id(d) for d in self.col.find(q).sort("created_at", DESCENDING)]
        except PyMongoError as e:
            logger.error(f"[RatingService] Error fetching ratings: {e}")
            raise StorageError(f"Failed to fetch ratings: {e}", "RatingService")

    def summary_for(self, interviewer_id: str) -> Dict[str, Any]:
        """{average_rating (one decimal), ratings_count}; zeros when unrated."""
        try:
            result = list(self.col.aggregate([
                {"$match": {"interviewer_id": interviewer_id}},
                {"$group": {"_id": None, "average": {"$avg": "$rating"}, "count": {"$sum": 1}}},
            ]))
        except PyMongoError as e:
            logger.error(f"[RatingService] Error aggregating ratings: {e}")
            raise StorageError(f"Failed to aggregate ratings: {e}", "RatingService")
        if not result:
            return {"average_rating": 0, "ratings_count": 0}
        return {
            "average_rating": round(result[0]["average"], 1),
            "ratings_count": result[0]["count"],
        }
