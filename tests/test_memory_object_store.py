import hashlib

import pytest

from config.models import ObjectStoreConfig
from core.contracts.models import TreeEntry
from core.object_store.memory import MemoryObjectStore, git_object_sha
from utils import codec
from utils.errors import ConflictError, NotFoundError, ValidationError


def test_blob_sha_matches_git():
    """Object shas match git hash-object."""
    # `printf hello | git hash-object --stdin`
    assert git_object_sha("blob", b"hello") == "b6fc4c620b67d95f953a5c1c1230aaab5db5a1b0"
    assert git_object_sha("blob", b"") == hashlib.sha1(b"blob 0\0").hexdigest()


def test_create_repo_twice_is_rejected(object_store):
    """Repository names are unique."""
    with pytest.raises(ValidationError):
        object_store.create_repo("demo")


@pytest.mark.asyncio
async def test_repo_can_be_addressed_with_owner(object_store):
    """owner/name resolves to the named repository."""
    assert await object_store.get_branch_head("octo/demo", "main") == await object_store.get_branch_head("demo", "main")


@pytest.mark.asyncio
async def test_tree_entries_merge_over_base(object_store):
    """New trees keep base entries and become visible once the ref moves."""
    head = await object_store.get_branch_head("demo", "main")
    base_tree = await object_store.get_commit_tree("demo", head)
    blob = await object_store.create_blob("demo", codec.encode("changed"))

    tree = await object_store.create_tree("demo", base_tree, [TreeEntry(path="a.txt", sha=blob)])
    commit = await object_store.create_commit("demo", "change a", tree, head)

    # Not visible until the ref moves.
    assert object_store.read_file("demo", "main", "a.txt") == "original\n"
    await object_store.update_ref("demo", "main", commit, expected_old_sha=head)
    assert object_store.read_file("demo", "main", "a.txt") == "changed"
    assert object_store.read_file("demo", "main", "docs/guide.md") == "# Guide\n"


@pytest.mark.asyncio
async def test_update_ref_is_compare_and_swap(object_store):
    """Only the first update from a given head succeeds."""
    head = await object_store.get_branch_head("demo", "main")
    tree = await object_store.get_commit_tree("demo", head)
    first = await object_store.create_commit("demo", "one", tree, head)
    second = await object_store.create_commit("demo", "two", tree, head)
    assert first != second

    await object_store.update_ref("demo", "main", first, expected_old_sha=head)
    with pytest.raises(ConflictError):
        await object_store.update_ref("demo", "main", second, expected_old_sha=head)
    assert await object_store.get_branch_head("demo", "main") == first


@pytest.mark.asyncio
async def test_unknown_objects(object_store):
    """Unknown trees, commits, branches and repositories are not found."""
    head = await object_store.get_branch_head("demo", "main")
    with pytest.raises(NotFoundError):
        await object_store.create_tree("demo", "0" * 40, [])
    with pytest.raises(NotFoundError):
        await object_store.create_commit("demo", "m", "0" * 40, head)
    with pytest.raises(NotFoundError) as exc_info:
        await object_store.get_branch_head("demo", "nope")
    assert exc_info.value.reason == "branch_not_found"
    with pytest.raises(NotFoundError) as exc_info:
        await object_store.get_branch_head("nope", "main")
    assert exc_info.value.reason == "repo_not_found"


@pytest.mark.asyncio
async def test_get_files_lists_a_directory_without_recursing():
    """Directory fetches are one level deep."""
    store = MemoryObjectStore()
    store.create_repo("site", files={"index.html": "<h1/>", "css/site.css": "body{}", "css/vendor/x.css": "x"})

    root = await store.get_files("site", "", "main")
    assert [f.path for f in root] == ["index.html"]

    css = await store.get_files("site", "css", "main")
    assert [(f.path, f.content) for f in css] == [("css/site.css", "body{}")]

    single = await store.get_files("site", "/index.html", "main")
    assert [f.content for f in single] == ["<h1/>"]

    with pytest.raises(NotFoundError):
        await store.get_files("site", "missing", "main")


@pytest.mark.asyncio
async def test_binary_blobs_are_read_lossily():
    """Undecodable bytes come back as replacement characters instead of failing the listing."""
    store = MemoryObjectStore()
    store.create_repo("assets", files={"logo.bin": b"\xff\xfe\x00binary", "notes.txt": "hi"})

    files = await store.get_files("assets")

    assert [f.path for f in files] == ["logo.bin", "notes.txt"]
    assert files[0].content == "\ufffd\ufffd\x00binary"
    assert files[1].content == "hi"


@pytest.mark.asyncio
async def test_commit_message_with_lone_surrogate_is_a_validation_error(object_store):
    """A message that cannot be UTF-8 encoded is rejected as invalid_encoding."""
    head = await object_store.get_branch_head("demo", "main")
    tree = await object_store.get_commit_tree("demo", head)
    with pytest.raises(ValidationError) as exc_info:
        await object_store.create_commit("demo", "bad \ud800", tree, head)
    assert exc_info.value.reason == "invalid_encoding"


@pytest.mark.asyncio
async def test_list_contents_shows_files_and_directories():
    """Listings are one level deep and name subdirectories once."""
    store = MemoryObjectStore()
    store.create_repo("site", files={"index.html": "<h1/>", "css/site.css": "body{}", "css/vendor/x.css": "x"})

    root = await store.list_contents("site")
    assert [(e.name, e.type) for e in root] == [("css", "dir"), ("index.html", "file")]
    assert root[1].size == 5
    assert root[1].sha == git_object_sha("blob", b"<h1/>")

    css = await store.list_contents("site", "css/")
    assert [(e.path, e.type) for e in css] == [("css/site.css", "file"), ("css/vendor", "dir")]

    single = await store.list_contents("site", "index.html")
    assert [(e.name, e.path) for e in single] == [("index.html", "index.html")]

    with pytest.raises(NotFoundError):
        await store.list_contents("site", "missing")


@pytest.mark.asyncio
async def test_get_readme():
    """The README is found at the root regardless of case and extension."""
    store = MemoryObjectStore()
    store.create_repo("site", files={"ReadMe.md": "# Site\n", "docs/README": "nested"})
    readme = await store.get_readme("site")
    assert (readme.path, readme.content) == ("ReadMe.md", "# Site\n")


@pytest.mark.asyncio
async def test_missing_readme(object_store):
    """A repository without a root README reports readme_not_found."""
    with pytest.raises(NotFoundError) as exc_info:
        await object_store.get_readme("demo")
    assert exc_info.value.reason == "readme_not_found"


@pytest.mark.asyncio
async def test_list_commits_newest_first(object_store):
    """History follows first parents from the branch head and honours the limit."""
    initial = await object_store.get_branch_head("demo", "main")
    tree = await object_store.get_commit_tree("demo", initial)
    second = await object_store.create_commit("demo", "second", tree, initial)
    await object_store.update_ref("demo", "main", second, expected_old_sha=initial)

    commits = await object_store.list_commits("demo", "main")
    assert [(c.sha, c.message) for c in commits] == [(second, "second"), (initial, "Initial commit")]
    assert commits[0].parents == [initial]
    assert commits[1].parents == []

    assert [c.sha for c in await object_store.list_commits("demo", "main", limit=1)] == [second]


@pytest.mark.asyncio
async def test_get_branch(object_store):
    """Branch info carries the head commit; unknown branches are branch_not_found."""
    branch = await object_store.get_branch("demo", "main")
    assert branch.name == "main"
    assert branch.commit_sha == await object_store.get_branch_head("demo", "main")
    assert branch.protected is False

    with pytest.raises(NotFoundError) as exc_info:
        await object_store.get_branch("demo", "dev")
    assert exc_info.value.reason == "branch_not_found"


@pytest.mark.asyncio
async def test_list_repos_uses_configured_owner():
    """Repositories are listed by name with the owner-qualified full name."""
    store = MemoryObjectStore(ObjectStoreConfig(provider="memory", owner="octo"))
    store.create_repo("zeta")
    store.create_repo("alpha", branch="trunk")

    repos = await store.list_repos()

    assert [(r.name, r.full_name, r.default_branch) for r in repos] == [
        ("alpha", "octo/alpha", "trunk"),
        ("zeta", "octo/zeta", "main"),
    ]
