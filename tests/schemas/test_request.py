"""Tests for ServiceCreationRequest.

Tests cover:
- Defaults
- Range validation
- Password kept out of repr
"""

import pytest
from servicectl.schemas import ServiceCreationRequest


class TestServiceCreationRequest:
    """Tests for ServiceCreationRequest."""

    def test_defaults(self):
        request = ServiceCreationRequest(name="db", image="postgres", user="alice", password="s3cr3t")
        assert request.cpu_weight == 100
        assert request.memory_mb == 128
        assert request.disk_mb == 0
        assert request.instances == 1
        assert request.start_command == ()
        assert request.service_type is None

    @pytest.mark.parametrize("cpu_weight", [0, 101])
    def test_cpu_weight_range(self, cpu_weight):
        with pytest.raises(ValueError, match="cpu_weight"):
            ServiceCreationRequest(name="db", image="postgres", user="u", password="p", cpu_weight=cpu_weight)

    def test_instances_must_be_positive(self):
        with pytest.raises(ValueError, match="instances"):
            ServiceCreationRequest(name="db", image="postgres", user="u", password="p", instances=0)

    def test_repr_hides_password(self):
        request = ServiceCreationRequest(name="db", image="postgres", user="alice", password="s3cr3t")
        assert "s3cr3t" not in repr(request)
        assert "db" in repr(request)

    def test_is_frozen(self):
        request = ServiceCreationRequest(name="db", image="postgres", user="u", password="p")
        with pytest.raises(AttributeError):
            request.name = "other"
