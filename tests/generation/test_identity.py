"""Tests for id allocation."""

import re
import threading

from entityforge.generation.identity import (
    CounterStore,
    IdentityAllocator,
    category_prefix,
    slugify,
)


class TestSlugify:
    def test_basic(self):
        assert slugify("Rusty Sword") == "rusty_sword"

    def test_strips_punctuation(self):
        assert slugify("  Hans' Fine Wares!  ") == "hans_fine_wares"

    def test_collapses_whitespace(self):
        assert slugify("old \t  oak\nstaff") == "old_oak_staff"

    def test_keeps_digits_and_underscores(self):
        assert slugify("Key_of 3 Doors") == "key_of_3_doors"

    def test_idempotent(self):
        for name in ["Rusty Sword", "Élan-Vital Potion", "a  b__c", "!!!"]:
            once = slugify(name)
            assert slugify(once) == once

    def test_all_stripped(self):
        assert slugify("!!!") == ""


class TestCategoryPrefix:
    def test_first_three_letters(self):
        assert category_prefix("weapon") == "wea"
        assert category_prefix("quest_giver") == "que"

    def test_short_category_padded(self):
        assert category_prefix("ox") == "oxx"
        assert category_prefix("") == "xxx"


class TestIdentityAllocator:
    def test_format(self):
        allocator = IdentityAllocator()
        assert allocator.next_id("item", "weapon", "Rusty Sword") == "wea_rusty_sword_001"

    def test_counter_per_kind_and_category(self):
        allocator = IdentityAllocator()
        assert allocator.next_id("item", "weapon", "Sword") == "wea_sword_001"
        assert allocator.next_id("item", "weapon", "Sword") == "wea_sword_002"
        assert allocator.next_id("item", "armor", "Helm") == "arm_helm_001"
        # Same category name under another kind has its own counter
        assert allocator.next_id("npc", "weapon", "Smith") == "wea_smith_001"

    def test_unnamed_fallback(self):
        allocator = IdentityAllocator()
        assert allocator.next_id("item", "key", "???") == "key_unnamed_001"

    def test_counts_past_999_grow(self):
        store = CounterStore()
        for _ in range(999):
            store.increment("item", "weapon")
        allocator = IdentityAllocator(store)
        assert allocator.next_id("item", "weapon", "Sword") == "wea_sword_1000"

    def test_reset(self):
        allocator = IdentityAllocator()
        allocator.next_id("item", "weapon", "Sword")
        allocator.reset()
        assert allocator.counters.snapshot() == {}
        assert allocator.next_id("item", "weapon", "Sword") == "wea_sword_001"

    def test_shared_store(self):
        store = CounterStore()
        first = IdentityAllocator(store)
        second = IdentityAllocator(store)
        assert first.next_id("item", "food", "Bread") == "foo_bread_001"
        assert second.next_id("item", "food", "Bread") == "foo_bread_002"


class TestCounterStore:
    def test_concurrent_increments_are_unique(self):
        store = CounterStore()
        results = []
        lock = threading.Lock()

        def worker():
            for _ in range(200):
                value = store.increment("item", "weapon")
                with lock:
                    results.append(value)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == list(range(1, 1601))
        assert store.snapshot() == {"item": {"weapon": 1600}}


class TestIdFormat:
    def test_pattern(self):
        allocator = IdentityAllocator()
        names = ["Rusty Dagger", "Hans' Stall", "Key #3", "###"]
        for name in names:
            assert re.match(r"^[a-z]{3}_[a-z0-9_]+_\d{3}$", allocator.next_id("item", "key", name))
