import unittest
from datetime import date, datetime, timedelta, timezone

from dataroom.util.time import (
    calendar_date,
    normalize_dt,
    now_utc,
    parse_calendar_date,
    to_rfc3339,
)


class TestUtilTime(unittest.TestCase):
    def test_now_utc_is_tz_aware(self) -> None:
        dt = now_utc()
        self.assertIsNotNone(dt.tzinfo)
        self.assertEqual(dt.tzinfo, timezone.utc)

    def test_normalize_dt_rejects_naive(self) -> None:
        naive = datetime(2025, 1, 1, 12, 0, 0)
        with self.assertRaises(ValueError):
            normalize_dt(naive)

    def test_parse_calendar_date(self) -> None:
        self.assertEqual(parse_calendar_date(" 2025-05-02 "), date(2025, 5, 2))

    def test_parse_calendar_date_rejects_bad_values(self) -> None:
        for value in ("", "2025-02-30", "2025-05-02T10:00:00Z", "05/02/2025"):
            with self.assertRaises(ValueError):
                parse_calendar_date(value)

    def test_to_rfc3339_outputs_z(self) -> None:
        dt = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        self.assertTrue(to_rfc3339(dt).endswith("Z"))

    def test_calendar_date_uses_utc_day(self) -> None:
        late_evening_ny = datetime(2025, 3, 1, 22, 0, 0, tzinfo=timezone(timedelta(hours=-5)))
        self.assertEqual(calendar_date(late_evening_ny), "2025-03-02")


if __name__ == "__main__":
    unittest.main()
