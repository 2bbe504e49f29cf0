from protectedplayer.backend.store import InMemoryResourceStore


def test_create_returns_opaque_blob_reference() -> None:
    store = InMemoryResourceStore()

    reference = store.create(b"abc", "video/webm")

    assert reference.startswith("blob:")
    resource = store.get(reference)
    assert resource is not None
    assert resource.content == b"abc"
    assert resource.content_type == "video/webm"


def test_references_are_unique_per_resource() -> None:
    store = InMemoryResourceStore()

    first = store.create(b"a", "video/mp4")
    second = store.create(b"a", "video/mp4")

    assert first != second
    assert store.live_references == [first, second]


def test_revoke_drops_resource_once() -> None:
    store = InMemoryResourceStore()
    reference = store.create(b"abc", "audio/mpeg")

    assert store.revoke(reference) is True
    assert store.revoke(reference) is False
    assert store.get(reference) is None
    assert store.revocations == {reference: 1}
    assert store.live_references == []
