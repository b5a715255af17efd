"""
Tests for loading and formatting helpers.
"""

import tempfile
from pathlib import Path

import pytest

from dtclusters.agglomerate import agglomerate_clusters
from dtclusters.config import ClusterSettings
from dtclusters.engine import ClusterJob
from dtclusters.linkage import SingleLinkage
from dtclusters.utils import (
    format_partition,
    format_walk,
    load_corpus_from_fasta,
    load_sequences_from_fasta,
    save_partition,
)

from conftest import corpus_from_positions


class TestFastaLoading:
    """Test suite for FASTA loading."""

    def _create_test_fasta(self, records, filepath):
        with open(filepath, 'w') as f:
            for header, seq in records:
                f.write(f">{header}\n{seq}\n")

    def test_load_sequences(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "test.fasta"
            self._create_test_fasta([
                ("seq1 Aus bus", "--acgtacgt--"),
                ("seq2 Aus cus", "ACGT[note]"),
            ], path)
            sequences = load_sequences_from_fasta(str(path))

        assert len(sequences) == 2
        assert sequences[0].name == "seq1 Aus bus"
        assert sequences[0].species_name == "Aus bus"
        assert sequences[0].symbols == "__ACGTACGT__"
        assert sequences[1].is_symbolic

    def test_load_corpus(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "test.fasta"
            self._create_test_fasta([
                ("Aus bus 1", "ACGTACGTAC"),
                ("Aus bus 2", "ACGTACGTAA"),
            ], path)
            corpus = load_corpus_from_fasta(str(path), ClusterSettings(minimum_overlap=0))

        assert len(corpus) == 2
        assert corpus.distance(corpus[0], corpus[1]) == pytest.approx(0.1)

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_sequences_from_fasta("/nonexistent/input.fasta")


class TestFormatting:
    """Test suite for partition and walk formatting."""

    def setup_method(self):
        self.corpus = corpus_from_positions([0, 10, 50, 200])
        self.partition = ClusterJob(self.corpus, SingleLinkage(), 0.03).execute().value

    def test_format_partition(self):
        text = format_partition(self.partition)
        lines = text.splitlines()
        assert lines[0] == "3 clusters at 3.0%, single linkage"
        assert lines[1].startswith("Cluster 1 (2 sequences)")
        assert "  - Aus bus 0" in lines

    def test_format_partition_with_distances(self):
        text = format_partition(self.partition, self.corpus.distance)
        assert "(distances: 1.0%|1.0%|1.0%)" in text

    def test_format_walk(self):
        nodes = agglomerate_clusters(self.partition, 0.05).value
        text = format_walk(nodes)
        assert "Cluster 1 (3 sequences): 2 clusters merged, last at 4.0%" in text
        assert "Cluster 2 (1 sequences): unchanged" in text

    def test_save_partition_tsv(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "clusters.tsv"
            save_partition(self.partition, str(path))
            lines = path.read_text().splitlines()
        assert lines[0] == "sequence_id\tcluster_id"
        assert lines[1] == "Aus bus 0\tcluster_1"
        assert len(lines) == 5

    def test_save_partition_text(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "clusters.txt"
            save_partition(self.partition, str(path), format="text")
            assert path.read_text().startswith("3 clusters")

    def test_save_partition_unknown_format(self):
        with pytest.raises(ValueError):
            save_partition(self.partition, "unused.out", format="xml")
