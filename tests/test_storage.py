import pytest

from repoimport.errors import UploadError, UploadErrorKind
from repoimport.storage import Container, ContainerRegistry, LocalContentStore, UploadedFile
from repoimport.storage.containers import hash_password, verify_password


def test_local_store_round_trip(tmp_path) -> None:
    store = LocalContentStore(root=tmp_path / "uploads", public_base_url="http://files.test/")
    stored = store.upload(b"payload", public_id="123-456-app", folder="kabada-uploads")
    assert stored.public_id == "kabada-uploads/123-456-app"
    assert stored.secure_url == "http://files.test/uploads/kabada-uploads/123-456-app"
    assert stored.resource_type == "raw"
    path = store.resolve(stored.public_id)
    assert path is not None and path.read_bytes() == b"payload"


def test_local_store_rejects_empty_and_unsafe_keys(tmp_path) -> None:
    store = LocalContentStore(root=tmp_path, public_base_url="http://files.test")
    with pytest.raises(UploadError) as excinfo:
        store.upload(b"", public_id="x", folder="f")
    assert excinfo.value.kind is UploadErrorKind.EMPTY_PAYLOAD
    with pytest.raises(UploadError) as excinfo:
        store.upload(b"x", public_id="../escape", folder="f")
    assert excinfo.value.kind is UploadErrorKind.INVALID_KEY
    assert store.resolve("f/../../etc") is None
    assert store.resolve("f/missing") is None


def test_password_hashing() -> None:
    encoded = hash_password("abc123")
    assert encoded.startswith("pbkdf2_sha256$")
    assert verify_password("abc123", encoded)
    assert not verify_password("abc124", encoded)
    assert not verify_password("abc123", "garbage")


def test_registry_persists_and_finds_names_case_insensitively(tmp_path) -> None:
    registry_path = tmp_path / "containers.json"
    registry = ContainerRegistry(registry_path=registry_path)
    container = Container(
        name="gh-Octo-Hello",
        password_hash=hash_password("pw"),
        files=[
            UploadedFile(
                storage_key="f/1-2-app",
                original_name="app.js",
                mime_type="text/javascript",
                size_bytes=10,
                relative_path="src/app.js",
                content_url="http://files.test/uploads/f/1-2-app",
            )
        ],
    )
    registry.save(container)

    assert registry.name_exists("GH-octo-hello")
    assert not registry.name_exists("gh-octo")

    reloaded = ContainerRegistry(registry_path=registry_path)
    restored = reloaded.get(container.id)
    assert restored is not None
    assert restored.files[0].relative_path == "src/app.js"
    assert reloaded.list_recent()[0].id == container.id


def test_touch_stamps_last_accessed(tmp_path) -> None:
    registry_path = tmp_path / "containers.json"
    registry = ContainerRegistry(registry_path=registry_path)
    container = Container(name="gh-a-b", password_hash=hash_password("pw"), last_accessed=0.0)
    registry.save(container)

    touched = registry.touch(container.id)
    assert touched is not None and touched.last_accessed > 0.0
    assert ContainerRegistry(registry_path=registry_path).get(container.id).last_accessed == touched.last_accessed
    assert registry.touch("unknown") is None
