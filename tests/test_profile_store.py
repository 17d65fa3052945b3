"""Tests for scout.adapters.profile_store."""

import sqlite3

import numpy as np
import pytest

from scout.adapters.profile_store import SQLiteProfileStore
from scout.core.errors import ProfileNotFoundError
from scout.core.models import FeedbackType


@pytest.fixture
def store(tmp_path):
    return SQLiteProfileStore(tmp_path / "profiles.db")


class TestSQLiteProfileStore:
    def test_missing_profile_raises(self, store):
        with pytest.raises(ProfileNotFoundError):
            store.get("nobody")

    def test_vectors_round_trip(self, store):
        store.save_vectors("u1", baseline_vector=[0.1, 0.2], learned_vector=None)
        profile = store.get("u1")
        np.testing.assert_allclose(profile.baseline_vector, [0.1, 0.2], rtol=1e-6)
        assert profile.learned_vector is None

    def test_save_vectors_upserts(self, store):
        store.save_vectors("u1", baseline_vector=[1, 0])
        store.save_vectors("u1", baseline_vector=[1, 0], learned_vector=[0, 1])
        assert store.get("u1").learned_vector is not None

    def test_owned_replaced(self, store):
        store.save_vectors("u1", baseline_vector=[1, 0])
        store.set_owned("u1", ["10", "11"])
        store.set_owned("u1", [12])
        assert store.get("u1").owned_ids == {"12"}

    def test_only_excluding_feedback_is_read(self, store):
        store.save_vectors("u1", baseline_vector=[1, 0])
        store.record_feedback("u1", "20", FeedbackType.NOT_INTERESTED)
        store.record_feedback("u1", "21", "hidden")
        store.record_feedback("u1", "22", FeedbackType.LOVE)
        assert store.get("u1").not_interested_ids == {"20", "21"}

    def test_feedback_overwrites(self, store):
        store.save_vectors("u1", baseline_vector=[1, 0])
        store.record_feedback("u1", "20", FeedbackType.NOT_INTERESTED)
        store.record_feedback("u1", "20", FeedbackType.LIKE)
        assert store.get("u1").not_interested_ids == set()

    def test_invalid_feedback_rejected(self, store):
        store.save_vectors("u1", baseline_vector=[1, 0])
        with pytest.raises(ValueError):
            store.record_feedback("u1", "20", "meh")

    def test_connections_are_closed(self, store, monkeypatch):
        opened = []
        real_connect = sqlite3.connect

        def tracking_connect(*args, **kwargs):
            conn = real_connect(*args, **kwargs)
            opened.append(conn)
            return conn

        monkeypatch.setattr(sqlite3, "connect", tracking_connect)
        store.save_vectors("u1", baseline_vector=[1, 0])
        store.get("u1")
        with pytest.raises(ProfileNotFoundError):
            store.get("nobody")

        assert len(opened) == 3
        for conn in opened:
            with pytest.raises(sqlite3.ProgrammingError):
                conn.execute("SELECT 1")
