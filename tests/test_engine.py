"""
Tests for threshold clustering jobs.
"""

import pytest
from hypothesis import given, settings, strategies as st

from dtclusters.engine import ClusterJob, JobState
from dtclusters.exceptions import JobStateError
from dtclusters.linkage import AverageLinkage, CompleteLinkage, SingleLinkage
from dtclusters.progress import ProgressCallback

from conftest import corpus_from_matrix, corpus_from_positions


class CancellingCallback(ProgressCallback):
    def on_delay(self, done, total):
        self.request_cancel()


class RecordingCallback(ProgressCallback):
    def __init__(self):
        super().__init__()
        self.operations = []

    def on_begin(self):
        self.operations.append([])

    def on_delay(self, done, total):
        self.operations[-1].append((done, total))


def member_indices(corpus, partition):
    return [sorted(corpus.index_of(seq) for seq in cluster) for cluster in partition]


class TestClusterJob:
    """Test suite for ClusterJob."""

    def setup_method(self):
        self.corpus = corpus_from_positions([0, 10, 20, 100, 110, 500])

    def test_initial_state(self):
        job = ClusterJob(self.corpus, SingleLinkage(), 0.03)
        assert job.state is JobState.UNEXECUTED
        assert job.count() == -1
        assert job.get_clusters() == []
        assert job.partition is None

    def test_default_parameters(self):
        job = ClusterJob(self.corpus)
        assert job.threshold == 0.03
        assert job.linkage == SingleLinkage()

    def test_negative_threshold(self):
        with pytest.raises(ValueError):
            ClusterJob(self.corpus, threshold=-0.01)

    def test_single_linkage(self):
        job = ClusterJob(self.corpus, SingleLinkage(), 0.03)
        outcome = job.execute()
        assert outcome.ok
        assert job.state is JobState.COMPLETED
        assert job.count() == 3
        assert member_indices(self.corpus, outcome.value) == [[0, 1, 2], [3, 4], [5]]
        assert outcome.value.threshold == 0.03
        assert outcome.value.linkage == SingleLinkage()

    def test_threshold_is_inclusive(self):
        job = ClusterJob(self.corpus, SingleLinkage(), 0.01)
        job.execute()
        assert member_indices(self.corpus, job.partition) == [[0, 1, 2], [3, 4], [5]]

    def test_complete_linkage(self):
        corpus = corpus_from_matrix([
            [0, 0.01, 0.02],
            [0.01, 0, 0.01],
            [0.02, 0.01, 0],
        ])
        job = ClusterJob(corpus, CompleteLinkage(), 0.015)
        job.execute()
        assert member_indices(corpus, job.partition) == [[0, 1], [2]]

    def test_average_linkage(self):
        corpus = corpus_from_matrix([
            [0, 0.01, 0.02],
            [0.01, 0, 0.01],
            [0.02, 0.01, 0],
        ])
        job = ClusterJob(corpus, AverageLinkage(), 0.015)
        job.execute()
        assert job.count() == 1

    def test_clusters_ordered_by_first_member(self):
        corpus = corpus_from_positions([500, 0, 100, 10, 110])
        job = ClusterJob(corpus, SingleLinkage(), 0.03)
        job.execute()
        assert member_indices(corpus, job.partition) == [[0], [1, 3], [2, 4]]

    def test_invalid_distances_give_singletons(self):
        corpus = corpus_from_matrix([
            [0, -1, -1],
            [-1, 0, 0.01],
            [-1, 0.01, 0],
        ])
        job = ClusterJob(corpus, SingleLinkage(), 0.03)
        job.execute()
        assert member_indices(corpus, job.partition) == [[0], [1, 2]]
        assert len(job.partition.singletons()) == 1

    def test_absorbed_distances(self):
        job = ClusterJob(self.corpus, SingleLinkage(), 0.03)
        job.execute()
        first = job.get_clusters()[0]
        assert sorted(first.distances) == pytest.approx([0.01, 0.01])

    def test_partition_is_frozen(self):
        job = ClusterJob(self.corpus, SingleLinkage(), 0.03)
        job.execute()
        with pytest.raises(ValueError):
            job.get_clusters()[0].add(self.corpus[5])

    def test_empty_corpus(self):
        job = ClusterJob(corpus_from_positions([]), SingleLinkage(), 0.03)
        outcome = job.execute()
        assert outcome.ok
        assert job.count() == 0

    def test_execute_twice(self):
        job = ClusterJob(self.corpus, SingleLinkage(), 0.03)
        job.execute()
        with pytest.raises(JobStateError):
            job.execute()

    def test_progress_reported_per_sequence(self):
        """Each clustering pass reports every sequence once, not every pair."""
        callback = RecordingCallback()
        ClusterJob(self.corpus, SingleLinkage(), 0.03).execute(callback)
        index_reports, clustering_reports = callback.operations
        assert all(total == 6 for _, total in index_reports)
        one_pass = [(1, 6), (2, 6), (3, 6), (4, 6), (5, 6), (6, 6)]
        # First pass merges, second pass confirms nothing else links
        assert clustering_reports == one_pass * 2

    def test_abort(self):
        job = ClusterJob(self.corpus, SingleLinkage(), 0.03)
        outcome = job.execute(CancellingCallback())
        assert not outcome.ok
        assert job.state is JobState.ABORTED
        assert job.partition is None
        assert job.count() == -1
        assert not self.corpus.is_locked
        with pytest.raises(JobStateError):
            job.execute()

    def test_idempotent(self):
        first = ClusterJob(self.corpus, SingleLinkage(), 0.03)
        second = ClusterJob(self.corpus, SingleLinkage(), 0.03)
        first.execute()
        second.execute()
        assert first.count_clusters_shared_with(second) == first.count()

    def test_shared_with_requires_completion(self):
        job = ClusterJob(self.corpus, SingleLinkage(), 0.03)
        with pytest.raises(JobStateError):
            job.count_clusters_shared_with(job)

    @given(
        positions=st.lists(st.integers(min_value=0, max_value=200), min_size=1, max_size=12),
        threshold=st.integers(min_value=0, max_value=60),
        linkage=st.sampled_from([SingleLinkage(), CompleteLinkage(), AverageLinkage()])
    )
    @settings(deadline=None)
    def test_partition_properties(self, positions, threshold, linkage):
        """Clusters cover the corpus, are disjoint, and no two could still link."""
        corpus = corpus_from_positions(positions)
        job = ClusterJob(corpus, linkage, threshold / 1000)
        partition = job.execute().value

        members = [seq for cluster in partition for seq in cluster]
        assert len(members) == len(corpus)
        assert set(members) == set(corpus)

        clusters = list(partition)
        for i, first in enumerate(clusters):
            for second in clusters[i + 1:]:
                assert not linkage.can_link(first, second, job.threshold, corpus.distance)

    @given(positions=st.lists(st.integers(min_value=0, max_value=200), min_size=1, max_size=12))
    @settings(deadline=None)
    def test_single_linkage_connected_components(self, positions):
        """Single-linkage clusters are the components of the threshold graph."""
        corpus = corpus_from_positions(positions)
        partition = ClusterJob(corpus, SingleLinkage(), 0.02).execute().value
        for cluster in partition:
            ordered = sorted(positions[corpus.index_of(seq)] for seq in cluster)
            assert all(b - a <= 20 for a, b in zip(ordered, ordered[1:]))
