# app/services/activity_service.py
from datetime import date, datetime, timedelta, timezone

WINDOW_DAYS = 7

# English labels regardless of process locale
WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def _today_utc() -> date:
    return datetime.now(timezone.utc).date()


class ActivityReportBuilder:
    """
    Healthy/diseased counts for today and the six days before it (UTC),
    oldest first, with empty days filled in as zeros.
    """

    def __init__(self, store, today=None):
        self.store = store
        self.today = today or _today_utc

    def window(self) -> list[date]:
        end = self.today()
        return [end - timedelta(days=i) for i in range(WINDOW_DAYS - 1, -1, -1)]

    def build_weekly_report(self, owner_id: str) -> list[dict]:
        days = self.window()
        buckets = {d: {"healthy": 0, "diseased": 0} for d in days}

        for item in self.store.daily_counts(owner_id, days[0], days[-1]):
            bucket = buckets.get(item["date"])
            if bucket is not None:
                bucket["healthy"] = item["healthy"]
                bucket["diseased"] = item["diseased"]

        return [
            {
                "date": d.isoformat(),
                "day": WEEKDAY_LABELS[d.weekday()],
                "healthy": buckets[d]["healthy"],
                "diseased": buckets[d]["diseased"],
            }
            for d in days
        ]
