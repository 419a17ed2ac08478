"""
Price Service

Interview price catalog: one price record per interview type.
"""

from typing import Any, Dict, List, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from mockbook.config import Config
from mockbook.db.mongo import get_database
from mockbook.schemas.common import InterviewType
from mockbook.utils.datetime_utils import format_iso_ist, get_now_ist
from mockbook.utils.exceptions import NotFoundError, StorageError, ValidationError
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)


def _price_out(doc: Dict[str, Any]) -> Dict[str, Any]:
    d = dict(doc)
    d["interview_type"] = d.pop("_id")
    return d


class PriceService:
    """Service for the interview price catalog using MongoDB"""

    def __init__(self, config: Config, db: Optional[Database] = None):
        self.config = config
        self.db = db if db is not None else get_database(config)
        self.col = self.db["prices"]

    def get_price(self, interview_type: InterviewType) -> Dict[str, Any]:
        """Return {price, currency} for the type; NotFoundError if never seeded."""
        interview_type = InterviewType(interview_type)
        try:
            doc = self.col.find_one({"_id": interview_type.value})
        except PyMongoError as e:
            logger.error(f"[PriceService] Error fetching price: {e}")
            raise StorageError(f"Failed to fetch price: {e}", "PriceService")
        if not doc:
            raise NotFoundError(f"Price for {interview_type.value} interviews not found", "PriceService")
        return {"price": doc["price"], "currency": doc.get("currency", self.config.booking.default_currency)}

    def list_prices(self) -> List[Dict[str, Any]]:
        try:
            return [_price_out(d) for d in self.col.find().sort("_id", 1)]
        except PyMongoError as e:
            logger.error(f"[PriceService] Error listing prices: {e}")
            raise StorageError(f"Failed to list prices: {e}", "PriceService")

    def price_map(self) -> Dict[str, Dict[str, Any]]:
        return {p["interview_type"]: {"price": p["price"], "currency": p["currency"]} for p in self.list_prices()}

    def set_price(
        self,
        interview_type: InterviewType,
        price: float,
        currency: Optional[str],
        updated_by: str,
    ) -> Dict[str, Any]:
        """Upsert the price for an interview type. Admin-only is enforced by the caller."""
        try:
            interview_type = InterviewType(interview_type)
        except ValueError:
            raise ValidationError(f"Invalid interview type: {interview_type}", "PriceService")
        if price is None or price <= 0:
            raise ValidationError("Price must be greater than zero", "PriceService")

        updates = {
            "price": price,
            "currency": currency or self.config.booking.default_currency,
            "updated_by": updated_by,
            "updated_at": format_iso_ist(get_now_ist()),
        }
        try:
            self.col.update_one({"_id": interview_type.value}, {"$set": updates}, upsert=True)
        except PyMongoError as e:
            logger.error(f"[PriceService] Error updating price: {e}")
            raise StorageError(f"Failed to update price: {e}", "PriceService")

        logger.info(f"[PriceService] Price for {interview_type.value} set to {updates['currency']} {price} by {updated_by}")
        return _price_out({"_id": interview_type.value, **updates})

    def seed_defaults(self) -> None:
        """Insert the configured default price for every type that has none."""
        now_iso = format_iso_ist(get_now_ist())
        for type_name, amount in self.config.booking.default_prices.items():
            try:
                result = self.col.update_one(
                    {"_id": InterviewType(type_name).value},
                    {"$setOnInsert": {
                        "price": amount,
                        "currency": self.config.booking.default_currency,
                        "updated_by": None,
                        "updated_at": now_iso,
                    }},
                    upsert=True,
                )
            except PyMongoError as e:
                logger.error(f"[PriceService] Error seeding default prices: {e}")
                raise StorageError(f"Failed to seed prices: {e}", "PriceService")
            if result.upserted_id is not None:
                logger.info(f"[PriceService] Default {type_name} interview price initialized")
