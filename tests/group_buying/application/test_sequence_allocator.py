"""Application tests for the per-day order-number allocator."""

import pytest
from group_buying.exceptions import AllocationExhausted, DuplicateOrderNumber
from group_buying.order.sequence import DailySequence, SequenceAllocator
from protean import current_domain
from protean.exceptions import ValidationError


@pytest.fixture()
def allocator():
    return SequenceAllocator()


class TestAllocate:
    def test_first_allocation_of_the_day_is_one(self, allocator):
        assert allocator.allocate("20240501") == 1

    def test_allocations_increase(self, allocator):
        values = [allocator.allocate("20240501") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_each_day_has_its_own_sequence(self, allocator):
        allocator.allocate("20240501")
        allocator.allocate("20240501")
        assert allocator.allocate("20240502") == 1

    def test_counter_is_persisted(self, allocator):
        allocator.allocate("20240501")
        allocator.allocate("20240501")
        counter = current_domain.repository_for(DailySequence).get("20240501")
        assert counter.last_value == 2

    def test_allocators_share_the_counter(self):
        assert SequenceAllocator().allocate("20240501") == 1
        assert SequenceAllocator().allocate("20240501") == 2

    def test_exhausted_day(self, allocator):
        current_domain.repository_for(DailySequence).add(DailySequence(date_key="20240501", last_value=9999))
        with pytest.raises(AllocationExhausted):
            allocator.allocate("20240501")

    def test_invalid_date_key(self, allocator):
        with pytest.raises(ValidationError):
            allocator.allocate("2024-05-01")


class TestIssue:
    def test_issue_passes_number_to_writer(self, allocator):
        assert allocator.issue("20240501", lambda number: number) == "VC202405010001"

    def test_issue_retries_after_collision(self, allocator):
        taken = {"VC202405010001", "VC202405010002"}

        def write(number):
            if number in taken:
                raise DuplicateOrderNumber(f"{number} is taken")
            return number

        assert allocator.issue("20240501", write) == "VC202405010003"

    def test_issue_gives_up_after_budget(self):
        allocator = SequenceAllocator(allocation_attempts=3)
        attempts = []

        def write(number):
            attempts.append(number)
            raise DuplicateOrderNumber(f"{number} is taken")

        with pytest.raises(AllocationExhausted):
            allocator.issue("20240501", write)
        assert attempts == ["VC202405010001", "VC202405010002", "VC202405010003"]
