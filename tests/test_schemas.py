"""Unit tests for stored-document validation."""

import pytest
from datetime import timedelta

from pydantic import ValidationError

from crcle.schemas.circles import CircleDocument


class TestCircleDocument:
    def test_naive_timestamps_read_as_utc(self, sample_circle_doc):
        doc = dict(sample_circle_doc)
        doc["createdAt"] = doc["createdAt"].replace(tzinfo=None)

        circle = CircleDocument.from_mongo(doc)

        assert circle.createdAt.utcoffset() == timedelta(0)
        assert circle.id == str(sample_circle_doc["_id"])

    @pytest.mark.parametrize("field, shift", [
        ("closeAt", timedelta(days=-4)),
        ("deleteAt", timedelta(days=-3)),
        ("createdAt", timedelta(days=10)),
    ])
    def test_out_of_order_timeline_rejected(self, sample_circle_doc, field, shift):
        doc = dict(sample_circle_doc)
        doc[field] = doc[field] + shift

        with pytest.raises(ValidationError, match="createdAt < closeAt < deleteAt"):
            CircleDocument.from_mongo(doc)

    def test_delete_at_equal_to_close_at_rejected(self, sample_circle_doc):
        doc = dict(sample_circle_doc)
        doc["deleteAt"] = doc["closeAt"]

        with pytest.raises(ValidationError):
            CircleDocument.from_mongo(doc)
