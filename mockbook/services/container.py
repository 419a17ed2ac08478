"""
Service wiring.

The API uses one process-wide container built from the environment config;
tests build their own against a mongomock database.
"""

from dataclasses import dataclass
from typing import Optional

from pymongo.database import Database

from mockbook.config import Config, get_config
from mockbook.db.mongo import get_database
from mockbook.services.booking_service import BookingService
from mockbook.services.email_service import EmailService
from mockbook.services.interview_service import InterviewService
from mockbook.services.notification_service import NotificationService
from mockbook.services.payment_service import PaymentService
from mockbook.services.price_service import PriceService
from mockbook.services.rating_service import RatingService
from mockbook.services.reminder_service import ReminderService
from mockbook.services.slot_service import SlotService
from mockbook.services.storage_service import StorageService
from mockbook.services.user_service import UserService


@dataclass
class ServiceContainer:
    config: Config
    db: Database
    users: UserService
    prices: PriceService
    slots: SlotService
    payments: PaymentService
    interviews: InterviewService
    ratings: RatingService
    notifier: object
    reminders: ReminderService
    storage: object
    booking: BookingService


def build_container(
    config: Config,
    db: Optional[Database] = None,
    notifier=None,
    blob_store=None,
) -> ServiceContainer:
    db = db if db is not None else get_database(config)
    users = UserService(config, db)
    prices = PriceService(config, db)
    slots = SlotService(config, prices, users, db)
    payments = PaymentService(config, db)
    interviews = InterviewService(config, db)
    ratings = RatingService(config, db)
    if notifier is None:
        notifier = NotificationService(config, EmailService(config))
    reminders = ReminderService(config, interviews, notifier.notify, users, db)
    if blob_store is None:
        blob_store = StorageService(config)
    booking = BookingService(
        config,
        slot_service=slots,
        price_service=prices,
        payment_service=payments,
        interview_service=interviews,
        rating_service=ratings,
        user_service=users,
        reminder_service=reminders,
        notifier=notifier,
        db=db,
    )
    return ServiceContainer(
        config=config,
        db=db,
        users=users,
        prices=prices,
        slots=slots,
        payments=payments,
        interviews=interviews,
        ratings=ratings,
        notifier=notifier,
        reminders=reminders,
        storage=blob_store,
        booking=booking,
    )


_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    global _container
    if _container is None:
        _container = build_container(get_config())
    return _container
