from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
import os
import subprocess
import sys

import pytest

from src.config import get_settings
from src.price_engine.errors import ConfigError
from src.utils.helper import as_utc, chunked, round_price, to_price
from src.utils.rate_limiter import RequestThrottle

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def test_round_price_uses_bankers_rounding() -> None:
    assert round_price(Decimal("0.000000005")) == Decimal("0.00000000")
    assert round_price(Decimal("0.000000015")) == Decimal("0.00000002")
    assert round_price(None) is None


@pytest.mark.parametrize("raw", [None, True, "abc", float("nan"), 0, -5])
def test_to_price_rejects_unusable_values(raw) -> None:
    assert to_price(raw) is None


def test_to_price_keeps_decimal_digits() -> None:
    assert to_price(0.1) == Decimal("0.1")


def test_as_utc_treats_naive_as_utc() -> None:
    naive = datetime(2024, 3, 1, 12)
    shifted = datetime(2024, 3, 1, 14, tzinfo=timezone(timedelta(hours=2)))

    assert as_utc(naive) == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
    assert as_utc(shifted).hour == 12


def test_chunked_splits_evenly() -> None:
    assert [list(chunk) for chunk in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]


def test_throttle_sleeps_before_every_call() -> None:
    sleeps: list[float] = []
    throttle = RequestThrottle(1.5, sleep=sleeps.append)

    throttle.wait()
    throttle.wait()

    assert sleeps == [1.5, 1.5]
    assert throttle.calls == 2


def test_throttle_rejects_negative_delay() -> None:
    with pytest.raises(ValueError):
        RequestThrottle(-1)


def test_settings_reject_non_positive_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRICE_WRITE_BATCH_SIZE", "0")

    with pytest.raises(ConfigError):
        get_settings()


def test_settings_blank_secret_is_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CRON_SECRET", "   ")

    assert get_settings().cron_secret is None


def test_settings_import_without_database_url() -> None:
    env = {key: value for key, value in os.environ.items() if key != "DATABASE_URL"}
    script = (
        "import sys\n"
        "from src.config import get_settings\n"
        "get_settings()\n"
        "assert 'src.api.database.database' not in sys.modules\n"
    )

    result = subprocess.run(
        [sys.executable, "-c", script],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
    )

    assert result.returncode == 0, result.stderr
