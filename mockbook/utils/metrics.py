from prometheus_client import Counter


# === Booking Metrics ===

bookings_total = Counter(
    "mockbook_bookings_total", "Interviews booked",
    ["flow"]
)

booking_failures_total = Counter(
    "mockbook_booking_failures_total", "Booking attempts that failed",
    ["flow", "error"]
)

payments_total = Counter(
    "mockbook_payment_transitions_total", "Payment status transitions",
    ["status"]
)

cancellations_total = Counter(
    "mockbook_cancellations_total", "Interviews cancelled",
    ["by"]
)

reminders_total = Counter(
    "mockbook_reminders_total", "Reminder sweep outcomes",
    ["outcome"]
)

NOTIFICATIONS_FAILED = Counter(
    "mockbook_notifications_failed_total", "Notifications that could not be delivered",
    ["event"]
)

ratings_total = Counter(
    "mockbook_ratings_total", "Interviewer ratings submitted",
    ["rating"]
)
