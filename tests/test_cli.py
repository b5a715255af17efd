"""
Tests for the command-line interface.
"""

import signal
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from dtclusters.cli import cancel_on_interrupt, main as cli_main, setup_logging
from dtclusters.progress import ProgressCallback


class TestMainCLI:
    """Test suite for the dtclusters CLI."""

    def setup_method(self):
        """Set up test fixtures."""
        self.records = [
            ("Aus bus 1", "ACGTACGTACGTACGTACGT"),
            ("Aus bus 2", "ACGTACGTACGTACGTACGT"),
            ("Aus cus 1", "ACGTACGTACGTACGTACGA"),
            ("Dus eus 1", "TTTTTTTTTTTTTTTTTTTT"),
        ]

    def _create_test_fasta(self, records, filepath):
        """Helper to create test FASTA file."""
        with open(filepath, 'w') as f:
            for header, seq in records:
                f.write(f">{header}\n{seq}\n")

    def _run(self, tmpdir, *extra):
        input_fasta = Path(tmpdir) / "input.fasta"
        self._create_test_fasta(self.records, input_fasta)
        cli_main([str(input_fasta), '--min-overlap', '0', '--no-progress', *extra])

    def test_setup_logging_verbose(self):
        with patch('dtclusters.cli.logging.basicConfig') as mock_config:
            setup_logging(verbose=True)
            args, kwargs = mock_config.call_args
            assert kwargs['level'] == 10  # logging.DEBUG

    def test_setup_logging_normal(self):
        with patch('dtclusters.cli.logging.basicConfig') as mock_config:
            setup_logging(verbose=False)
            args, kwargs = mock_config.call_args
            assert kwargs['level'] == 20  # logging.INFO

    def test_cli_help_message(self):
        with pytest.raises(SystemExit) as exc_info:
            cli_main(['--help'])
        assert exc_info.value.code == 0

    def test_cli_missing_input_file(self):
        with pytest.raises(SystemExit) as exc_info:
            cli_main(['nonexistent.fasta'])
        assert exc_info.value.code == 1

    def test_cli_unknown_linkage(self):
        with pytest.raises(SystemExit) as exc_info:
            cli_main(['input.fasta', '--linkage', 'ward'])
        assert exc_info.value.code == 2

    def test_cli_clustering(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            self._run(tmpdir)
        output = capsys.readouterr().out
        assert output.startswith("3 clusters at 3.0%, single linkage")
        assert "Cluster 1 (2 sequences)" in output

    def test_cli_output_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            output_path = Path(tmpdir) / "clusters.tsv"
            self._run(tmpdir, '--threshold', '0.05', '-o', str(output_path))
            lines = output_path.read_text().splitlines()
        assert lines[0] == "sequence_id\tcluster_id"
        assert lines[3] == "Aus cus 1\tcluster_1"
        assert lines[4] == "Dus eus 1\tcluster_2"

    def test_cli_walk(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            self._run(tmpdir, '--walk-to', '0.06')
        output = capsys.readouterr().out
        assert "Cluster 1 (3 sequences): 2 clusters merged, last at 5.0%" in output
        assert "Cluster 2 (1 sequences): unchanged" in output

    def test_cli_stability(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            self._run(tmpdir, '--stability-to', '0.05', '--stability-step', '0.01')
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("# Cluster stability between 3.00% and 5.00%")
        assert lines[1] == "Threshold\tClusters\tShared clusters"
        assert lines[2] == "3.00\t3\t3"
        assert lines[4] == "5.00\t2\t1"

    def test_cli_walk_and_stability_conflict(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(SystemExit) as exc_info:
                self._run(tmpdir, '--walk-to', '0.05', '--stability-to', '0.05')
        assert exc_info.value.code == 1

    def test_cli_distribution(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            self._run(tmpdir, '--distribution', 'within')
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "Distances\tFreq.\tPerc.\tCumulative"
        assert lines[1] == "<= 0.00%\t1\t100.0\t100.0"

    def test_cli_plot(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plot_path = Path(tmpdir) / "distances.png"
            self._run(tmpdir, '--plot', str(plot_path))
            assert plot_path.exists()

    def test_cli_cancelled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch('dtclusters.cli.TqdmProgress') as mock_progress:
                cancelled = ProgressCallback()
                cancelled.request_cancel()
                mock_progress.return_value = cancelled
                with pytest.raises(SystemExit) as exc_info:
                    self._run(tmpdir)
        assert exc_info.value.code == 1


class TestCancelOnInterrupt:
    """Test suite for Ctrl+C handling."""

    def test_first_interrupt_cancels(self):
        callback = ProgressCallback()
        original = signal.getsignal(signal.SIGINT)
        with cancel_on_interrupt(callback):
            handler = signal.getsignal(signal.SIGINT)
            handler(signal.SIGINT, None)
            assert callback.cancel_requested
            with pytest.raises(KeyboardInterrupt):
                handler(signal.SIGINT, None)
        assert signal.getsignal(signal.SIGINT) == original
