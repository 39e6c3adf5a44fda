from datetime import date, datetime, timezone

import pytest

from rim.domain.errors import ValidationError
from rim.repositories.timestamps import to_instant, to_storage


class FakeProviderTimestamp:
    def __init__(self, value: datetime):
        self.value = value

    def to_datetime(self):
        return self.value


def test_text_timestamps():
    assert to_instant("2024-05-01 10:00:00") == datetime(2024, 5, 1, 10)
    assert to_instant("2024-05-01T10:00:00") == datetime(2024, 5, 1, 10)


def test_aware_values_become_local_naive():
    aware = datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    expected = aware.astimezone().replace(tzinfo=None)

    assert to_instant(aware) == expected
    assert to_instant("2024-05-01T10:00:00Z") == expected
    assert to_instant(aware).tzinfo is None


def test_epoch_and_mapping_shapes():
    assert to_instant(1714557600) == datetime.fromtimestamp(1714557600)
    assert to_instant({"seconds": 1714557600, "nanoseconds": 500_000_000}) == datetime.fromtimestamp(1714557600.5)
    assert to_instant({"_seconds": 1714557600, "_nanoseconds": 0}) == datetime.fromtimestamp(1714557600)


def test_date_and_wrapper_objects():
    assert to_instant(date(2024, 5, 1)) == datetime(2024, 5, 1)
    assert to_instant(FakeProviderTimestamp(datetime(2024, 5, 1, 7))) == datetime(2024, 5, 1, 7)


@pytest.mark.parametrize("raw", [True, None, "yesterday", {"minutes": 3}, object()])
def test_unsupported_shapes_rejected(raw):
    with pytest.raises(ValidationError):
        to_instant(raw)


def test_to_storage_drops_microseconds():
    assert to_storage(datetime(2024, 5, 1, 10, 0, 0, 123456)) == "2024-05-01 10:00:00"
