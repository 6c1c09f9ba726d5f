# ruff: noqa: PLR2004
import pytest

from ado_provisioner.core.branch import BranchManager
from ado_provisioner.core.exceptions import BranchNotFoundError, ConflictError, ProvisioningError
from ado_provisioner.core.models import ZERO_OBJECT_ID, ChangeType, GitRef, RefUpdateResult


def refs(**tips: str):
    """get_ref side effect answering from a branch -> commit mapping."""

    def get_ref(_repository: str, branch: str) -> GitRef | None:
        if branch not in tips:
            return None
        return GitRef(name=GitRef.ref_name(branch), object_id=tips[branch])

    return get_ref


def test_create_feature_branch(client, settings, repository) -> None:
    """Test that an absent feature branch is created from the main tip with the zero sentinel."""
    client.get_ref.side_effect = refs(main="B")
    ref = BranchManager(client, settings).ensure_feature_branch(repository)

    client.update_refs.assert_called_once()
    (update,) = client.update_refs.call_args.args[1]
    if (update.name, update.old_object_id, update.new_object_id) != ("refs/heads/feature", ZERO_OBJECT_ID, "B"):
        pytest.fail(f"Unexpected update {update}")
    if ref != GitRef(name="refs/heads/feature", object_id="B"):
        pytest.fail(f"Unexpected ref {ref}")


def test_reset_feature_branch(client, settings, repository) -> None:
    """Test that a feature branch at A is moved to the main tip B with old=A."""
    client.get_ref.side_effect = refs(main="B", feature="A")
    BranchManager(client, settings).ensure_feature_branch(repository)

    (update,) = client.update_refs.call_args.args[1]
    if (update.old_object_id, update.new_object_id) != ("A", "B"):
        pytest.fail(f"Unexpected update {update}")


def test_feature_branch_already_at_main(client, settings, repository) -> None:
    """Test that no ref update is sent when the branches already match."""
    client.get_ref.side_effect = refs(main="B", feature="B")
    BranchManager(client, settings).ensure_feature_branch(repository)
    client.update_refs.assert_not_called()


def test_missing_main_branch(client, settings, repository) -> None:
    """Test that a missing main branch is reported."""
    client.get_ref.side_effect = refs()
    with pytest.raises(BranchNotFoundError):
        BranchManager(client, settings).ensure_feature_branch(repository)


def test_stale_ref_update(client, settings, repository) -> None:
    """Test that a stale verdict surfaces as ConflictError."""
    client.get_ref.side_effect = refs(main="B", feature="A")
    client.update_refs.side_effect = None
    client.update_refs.return_value = [
        RefUpdateResult(name="refs/heads/feature", success=False, update_status="staleOldObjectId"),
    ]
    with pytest.raises(ConflictError):
        BranchManager(client, settings).ensure_feature_branch(repository)

    client.update_refs.return_value = [
        RefUpdateResult(name="refs/heads/feature", success=False, update_status="rejectedByPolicy"),
    ]
    with pytest.raises(ProvisioningError) as exc_info:
        BranchManager(client, settings).ensure_feature_branch(repository)
    if isinstance(exc_info.value, ConflictError):
        pytest.fail("Expected a plain ProvisioningError for non-stale rejections")


def test_push_content_single_commit(client, settings, repository) -> None:
    """Test that files are pushed as one commit against the branch tip, in input order."""
    client.get_ref.side_effect = refs(main="c1", feature="c1")
    client.item_exists.side_effect = lambda _repo, path, _branch: path == "b.py"
    files = [("a.py", "a"), ("b.py", "b"), ("c.py", "c")]

    BranchManager(client, settings, max_workers=3).push_content(repository, "feature", files)

    client.create_push.assert_called_once()
    repo_name, branch, old_object_id, comment, changes = client.create_push.call_args.args
    if (repo_name, branch, old_object_id) != ("app", "feature", "c1"):
        pytest.fail(f"Unexpected push target {repo_name} {branch} {old_object_id}")
    if comment != BranchManager.TREE_COMMIT_COMMENT:
        pytest.fail(f"Unexpected comment {comment}")
    if [(change.path, change.change_type) for change in changes] != [
        ("a.py", ChangeType.ADD),
        ("b.py", ChangeType.EDIT),
        ("c.py", ChangeType.ADD),
    ]:
        pytest.fail(f"Unexpected changes {changes}")


def test_push_content_nothing_to_push(client, settings, repository) -> None:
    """Test that an empty file list makes no call."""
    if BranchManager(client, settings).push_content(repository, "feature", []) is not None:
        pytest.fail("Expected None for an empty push")
    client.create_push.assert_not_called()


def test_push_file_messages(client, settings, repository) -> None:
    """Test the Add/Update commit message of single-file pushes."""
    client.get_ref.side_effect = refs(feature="c1")
    manager = BranchManager(client, settings)

    manager.push_file(repository, "feature", "azure-pipelines.yml", "trigger: none")
    if client.create_push.call_args.args[3] != "Add azure-pipelines.yml":
        pytest.fail(f"Unexpected comment {client.create_push.call_args.args[3]}")

    client.item_exists.return_value = True
    manager.push_file(repository, "feature", "azure-pipelines.yml", "trigger: none")
    if client.create_push.call_args.args[3] != "Update azure-pipelines.yml":
        pytest.fail(f"Unexpected comment {client.create_push.call_args.args[3]}")


def test_push_conflict_propagates(client, settings, repository) -> None:
    """Test that a push rejected because the tip moved is not retried."""
    client.get_ref.side_effect = refs(feature="c1")
    client.create_push.side_effect = ConflictError("push to 'feature'", 409, "stale")
    with pytest.raises(ConflictError):
        BranchManager(client, settings).push_content(repository, "feature", [("a.py", "a")])
    if client.create_push.call_count != 1:
        pytest.fail(f"Expected a single push attempt, got {client.create_push.call_count}")
