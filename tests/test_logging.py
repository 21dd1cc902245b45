"""Tests for Rich progress reporter."""
import pytest
from io import StringIO
from pathlib import Path

from rich.console import Console

from phototransfer.core.config import TransferMode
from phototransfer.core.models import IndexStats, OperationStatus, Period, TransferOperation, TransferSummary
from phototransfer.logging.rich_logger import QuietProgressReporter, RichProgressReporter

from .fixtures import make_record


def make_console() -> Console:
    return Console(file=StringIO(), width=120, force_terminal=False, color_system=None)


def text_of(console: Console) -> str:
    return console.file.getvalue()


class TestRichProgressReporter:
    """Tests for Rich progress reporter."""

    @pytest.fixture
    def console(self):
        return make_console()

    @pytest.fixture
    def output(self):
        return make_console()

    @pytest.fixture
    def reporter(self, console, output):
        """Create a reporter instance."""
        return RichProgressReporter(console=console, output=output)

    def test_create_default(self):
        """Test default creation."""
        reporter = RichProgressReporter()
        assert reporter._verbose is False
        assert reporter._quiet is False
        assert reporter._console.stderr is True

    def test_start_and_end_phase(self, reporter):
        """Test starting and ending a phase."""
        reporter.start_phase("Indexing", 100)
        assert reporter._progress is not None
        assert reporter._current_task_id is not None

        reporter.advance_phase(5)
        reporter.end_phase()
        assert reporter._progress is None

    def test_quiet_phase(self, console):
        """Test quiet mode shows no progress bar."""
        reporter = RichProgressReporter(quiet=True, console=console)
        reporter.start_phase("Indexing", 10)
        reporter.advance_phase()

        assert reporter._progress is None
        reporter.end_phase()

    def test_messages_go_to_console(self, reporter, console, output):
        """Test messages are written to the progress console."""
        reporter.info("Found 3 photos")
        reporter.warning("Something might be wrong")
        reporter.error("Something went wrong")

        text = text_of(console)
        assert "Found 3 photos" in text
        assert "Something might be wrong" in text
        assert "Something went wrong" in text
        assert text_of(output) == ""

    def test_debug_only_when_verbose(self, console):
        """Test debug messages need verbose mode."""
        RichProgressReporter(console=console).debug("hidden")
        RichProgressReporter(verbose=True, console=console).debug("shown")

        text = text_of(console)
        assert "shown" in text
        assert "hidden" not in text

    def test_quiet_keeps_errors(self, console):
        """Test quiet mode suppresses info but not errors."""
        reporter = RichProgressReporter(quiet=True, console=console)
        reporter.info("chatter")
        reporter.error("broken")

        text = text_of(console)
        assert "chatter" not in text
        assert "broken" in text

    def test_index_stats(self, reporter, console):
        """Test index stats table."""
        stats = IndexStats(discovered=10, processed=8, already_processed=2, errors=1, records=9)
        reporter.print_index_stats(stats, elapsed_seconds=2.0)

        text = text_of(console)
        assert "Indexing Complete" in text
        assert "Already Processed" in text
        assert "4.0 files/sec" in text

    def test_period_table(self, reporter, output):
        """Test period table goes to the result console with a total."""
        reporter.print_period_table([(Period(2012, 1), 3), (Period(2023, 6), 5)], transferred=2)

        text = text_of(output)
        assert "2012-01" in text
        assert "2023-06" in text
        assert "8" in text
        assert "Transferred" in text

    def test_extension_table(self, reporter, output):
        """Test extension table."""
        reporter.print_extension_table([(".jpg", 5), (".txt", 1)])

        text = text_of(output)
        assert ".jpg" in text
        assert "6" in text

    def test_transfer_plan(self, reporter, output):
        """Test dry-run plan lines and total."""
        ops = [
            TransferOperation(make_record("/p/a.jpg"), Path("/t/a.jpg"), TransferMode.MOVE),
            TransferOperation(make_record("/p/b.jpg"), Path("/t/b.jpg"), TransferMode.COPY),
        ]
        reporter.print_transfer_plan(ops)

        text = text_of(output)
        assert "Would move: /p/a.jpg -> /t/a.jpg" in text
        assert "Would copy: /p/b.jpg -> /t/b.jpg" in text
        assert "Total: 2 files would be transferred" in text

    def test_transfer_summary_lists_failures(self, reporter, console):
        """Test failed operations are listed with their errors."""
        op = TransferOperation(
            make_record("/p/a.jpg"), Path("/t/a.jpg"), TransferMode.MOVE,
            OperationStatus.FAILED, error="disk full",
        )
        reporter.print_transfer_summary(TransferSummary.from_operations([op]))

        text = text_of(console)
        assert "a.jpg: disk full" in text
        assert "Transfer Complete" in text

    def test_context_manager_ends_phase(self, console):
        """Test leaving the context stops any running phase."""
        with RichProgressReporter(console=console) as reporter:
            reporter.start_phase("Transferring", 3)
        assert reporter._progress is None


class TestQuietProgressReporter:
    """Tests for quiet reporter."""

    @pytest.fixture
    def reporter(self):
        return QuietProgressReporter()

    def test_silent_operations(self, reporter, capsys):
        """Test progress and info produce no output."""
        reporter.start_phase("Indexing", 100)
        reporter.advance_phase(50)
        reporter.end_phase()
        reporter.info("Info")
        reporter.success("Success")
        reporter.debug("Debug")
        reporter.print_index_stats(IndexStats())

        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err == ""

    def test_errors_to_stderr(self, reporter, capsys):
        """Test warnings and errors go to stderr."""
        reporter.warning("careful")
        reporter.error("broken")

        err = capsys.readouterr().err
        assert "WARNING: careful" in err
        assert "ERROR: broken" in err

    def test_results_still_printed(self, reporter, capsys):
        """Test result tables print as plain lines."""
        reporter.print_period_table([(Period(2023, 6), 5)])
        reporter.print_extension_table([(".jpg", 2)])

        assert capsys.readouterr().out == "2023-06\t5\n.jpg\t2\n"
