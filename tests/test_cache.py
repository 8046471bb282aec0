"""Tests for the folder address cache."""

import json
from datetime import date

from conftest import FakeMailbox, make_headers

from inbox_sorter.cache import FolderAddressCache
from inbox_sorter.models import AddressField, FolderCacheEntry, Fingerprint


def test_addresses_lowercased_sorted_unique(mailbox, tmp_path):
    """Addresses come back lower-cased, deduplicated and sorted."""
    cache = FolderAddressCache(mailbox, tmp_path)
    assert cache.addresses("Lists") == ["deals@shop.example.com", "news@shop.example.com"]


def test_missing_folder_is_empty(mailbox, tmp_path):
    """An unknown folder yields no addresses and no cache file."""
    cache = FolderAddressCache(mailbox, tmp_path)
    assert cache.addresses("Nope") == []
    assert not cache.path_for("Nope").exists()


def test_cache_hit_skips_scan(mailbox, tmp_path):
    """An unchanged fingerprint serves the cached set without search or fetch."""
    cache = FolderAddressCache(mailbox, tmp_path)
    first = cache.addresses("Lists")
    searches, fetches = mailbox.count("search"), mailbox.count("fetch_envelopes")

    second = cache.addresses("Lists")

    assert second == first
    assert mailbox.count("search") == searches
    assert mailbox.count("fetch_envelopes") == fetches


def test_any_fingerprint_change_forces_rescan(mailbox, tmp_path):
    """Changing a single fingerprint field invalidates the entry."""
    cache = FolderAddressCache(mailbox, tmp_path)
    base = Fingerprint(3, 10, 1)
    for changed in (Fingerprint(4, 10, 1), Fingerprint(3, 11, 1), Fingerprint(3, 10, 2)):
        mailbox.fingerprints["Lists"] = base
        cache.addresses("Lists")
        searches = mailbox.count("search")

        mailbox.fingerprints["Lists"] = changed
        cache.addresses("Lists")

        assert mailbox.count("search") == searches + 1
        assert cache.load("Lists").fingerprint == changed


def test_is_valid_compares_every_field():
    """Only an entry whose whole fingerprint matches is valid."""
    entry = FolderCacheEntry("Lists", ["a@b.test"], Fingerprint(3, 10, 7))
    assert FolderAddressCache.is_valid(entry, Fingerprint(3, 10, 7))
    assert not FolderAddressCache.is_valid(entry, Fingerprint(3, 10, 8))
    assert not FolderAddressCache.is_valid(entry, Fingerprint(3, 11, 7))
    assert not FolderAddressCache.is_valid(entry, Fingerprint(4, 10, 7))
    assert not FolderAddressCache.is_valid(None, Fingerprint(3, 10, 7))


def test_cache_file_format(mailbox, tmp_path):
    """Cache files hold addresses, the fingerprint triple and a timestamp."""
    mailbox.fingerprints["Lists"] = Fingerprint(3, 42, 7)
    cache = FolderAddressCache(mailbox, tmp_path)
    cache.addresses("Lists")

    data = json.loads(cache.path_for("Lists").read_text())
    assert data["addresses"] == ["deals@shop.example.com", "news@shop.example.com"]
    assert data["fingerprint"] == [3, 42, 7]
    assert data["cached_at"]


def test_corrupt_cache_file_is_a_miss(mailbox, tmp_path):
    """A garbage cache file is ignored and rewritten."""
    cache = FolderAddressCache(mailbox, tmp_path)
    tmp_path.mkdir(exist_ok=True)
    cache.path_for("Lists").write_text("{not json")

    assert cache.load("Lists") is None
    assert cache.addresses("Lists") == ["deals@shop.example.com", "news@shop.example.com"]
    assert cache.load("Lists") is not None


def test_empty_folder_is_cached(tmp_path):
    """A folder without messages gives an empty set and still gets an entry."""
    mailbox = FakeMailbox({"Empty": []})
    cache = FolderAddressCache(mailbox, tmp_path)

    assert cache.addresses("Empty") == []
    entry = cache.load("Empty")
    assert entry is not None
    assert entry.addresses == []
    assert mailbox.count("fetch_envelopes") == 0


def test_search_terms():
    """Since filter is added unless all messages are requested."""
    assert FolderAddressCache._search_terms(None, False) == ["NOT", "DELETED"]
    assert FolderAddressCache._search_terms(date(2025, 3, 5), False) == [
        "NOT", "DELETED", "SINCE", "05-Mar-2025",
    ]
    assert FolderAddressCache._search_terms(date(2025, 3, 5), True) == ["NOT", "DELETED"]


def test_envelopes_fetched_in_batches(tmp_path):
    """Envelope fetches never exceed 800 ids per call."""
    mailbox = FakeMailbox({"Big": [make_headers(f"user{i}@big.test") for i in range(1700)]})
    cache = FolderAddressCache(mailbox, tmp_path)

    addresses = cache.addresses("Big")

    sizes = [len(call[1]) for call in mailbox.calls if call[0] == "fetch_envelopes"]
    assert sizes == [800, 800, 100]
    assert len(addresses) == 1700


def test_recipient_field(tmp_path):
    """The TO selector collects recipients instead of senders."""
    mailbox = FakeMailbox({"Sent": [make_headers("me@home.test", to="Bob <Bob@Work.test>")]})
    cache = FolderAddressCache(mailbox, tmp_path)
    assert cache.addresses("Sent", field=AddressField.TO) == ["bob@work.test"]


def test_refresh_fingerprint_keeps_addresses(mailbox, tmp_path):
    """Stats-only refresh stores the live fingerprint but not new addresses."""
    cache = FolderAddressCache(mailbox, tmp_path)
    cache.addresses("Lists")
    mailbox.folders["Lists"].append(make_headers("new@other.test"))

    cache.refresh_fingerprint("Lists")
    searches = mailbox.count("search")

    assert cache.addresses("Lists") == ["deals@shop.example.com", "news@shop.example.com"]
    assert mailbox.count("search") == searches
    assert cache.load("Lists").fingerprint == Fingerprint(4, 5, 1)


def test_refresh_without_entry_is_noop(mailbox, tmp_path):
    """Refreshing a folder that was never cached writes nothing."""
    cache = FolderAddressCache(mailbox, tmp_path)
    cache.refresh_fingerprint("Lists")
    assert cache.load("Lists") is None


def test_inaccessible_folder_is_empty(mailbox, tmp_path):
    """Permission problems degrade to an empty address set."""
    mailbox.inaccessible.add("Lists")
    cache = FolderAddressCache(mailbox, tmp_path)
    assert cache.addresses("Lists") == []


def test_disabled_cache_always_scans(mailbox, tmp_path):
    """With caching disabled every call scans and nothing is written."""
    cache = FolderAddressCache(mailbox, tmp_path, enabled=False)
    cache.addresses("Lists")
    cache.addresses("Lists")
    assert mailbox.count("search") == 2
    assert not list(tmp_path.glob("*.json"))


def test_folder_names_with_separators(tmp_path):
    """Hierarchical folder names map to a single file inside the cache dir."""
    mailbox = FakeMailbox({"Lists/GitHub": [make_headers("noreply@github.com")]})
    cache = FolderAddressCache(mailbox, tmp_path)
    cache.addresses("Lists/GitHub")
    assert cache.path_for("Lists/GitHub").parent == tmp_path
    assert cache.load("Lists/GitHub").addresses == ["noreply@github.com"]


def test_clear_and_info(mailbox, tmp_path):
    """Info reports stored entries; clear removes them."""
    cache = FolderAddressCache(mailbox, tmp_path)
    cache.save(FolderCacheEntry("A", ["a@x.test", "b@x.test"], Fingerprint(2, 3, 1)))
    cache.save(FolderCacheEntry("B", ["c@y.test"], Fingerprint(1, 2, 1)))

    info = cache.get_info()
    assert info["folder_count"] == 2
    assert info["address_count"] == 3
    assert info["size_bytes"] > 0

    cache.clear()
    assert cache.get_info()["folder_count"] == 0
