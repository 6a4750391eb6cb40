"""Tests for progress reporting and cancellation."""

from portal_files.core.progress import CancellationToken, ProgressReporter


class TestProgressReporter:
    def test_monotonic_and_clamped(self) -> None:
        seen: list[float] = []
        reporter = ProgressReporter(seen.append)

        for value in (-0.5, 0.2, 0.1, 0.2, 0.6, 2.0, 0.9):
            reporter.update(value)
        reporter.finish()

        assert seen == [0.0, 0.2, 0.6, 0.9, 1.0]
        assert seen == sorted(seen)

    def test_finish_fires_once_without_updates(self) -> None:
        seen: list[float] = []
        reporter = ProgressReporter(seen.append)

        reporter.finish()
        reporter.finish()
        reporter.update(0.5)

        assert seen == [1.0]
        assert reporter.value == 1.0

    def test_update_ratio_ignores_empty_totals(self) -> None:
        seen: list[float] = []
        reporter = ProgressReporter(seen.append)

        reporter.update_ratio(5, 0)
        reporter.update_ratio(1, 4)

        assert seen == [0.25]

    def test_without_callback(self) -> None:
        reporter = ProgressReporter()
        reporter.update(0.3)
        reporter.finish()
        assert reporter.value == 1.0


def test_cancellation_token() -> None:
    token = CancellationToken()
    assert not token.cancelled
    token.cancel()
    assert token.cancelled
