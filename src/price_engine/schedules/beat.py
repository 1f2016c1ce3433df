from celery.schedules import crontab

beat_schedule = {
    # Refresh hourly (30d) and daily (365d) windows once a day, 00:15 UTC.
    "fetch_prices_daily": {
        "task": "price_engine.fetch_prices",
        "schedule": crontab(minute=15, hour=0),
        "kwargs": {"clean_first": False},
    },
}
