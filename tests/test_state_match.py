import pytest

from tfreco.models import IAMRecommendation, VMRecommendation
from tfreco.state import ProjectNumberCache, StateSnapshot, match_iam_resources, match_vm_resources
from tfreco.state.match import strip_instance_prefix


def make_state():
    return StateSnapshot.from_dict({
        "version": 4,
        "resources": [
            {
                "mode": "data",
                "type": "google_compute_instance",
                "name": "lookup",
                "instances": [{"attributes": {"id": "projects/p/zones/z/instances/i"}}],
            },
            {
                "mode": "managed",
                "type": "google_compute_instance",
                "name": "default",
                "instances": [{"attributes": {
                    "id": "projects/p/zones/z/instances/i",
                    "self_link": "https://www.googleapis.com/compute/v1/projects/p/zones/z/instances/i",
                }}],
            },
            {
                "mode": "managed",
                "type": "google_compute_instance",
                "name": "legacy",
                "instances": [{"attributes": {
                    "self_link": "https://www.googleapis.com/compute/v1/projects/p/zones/z/instances/old",
                }}],
            },
            {
                "mode": "managed",
                "type": "google_project_iam_binding",
                "name": "editors",
                "instances": [{"attributes": {
                    "project": "my-project",
                    "role": "roles/editor",
                    "members": ["user:alice@example.com", "user:bob@example.com"],
                }}],
            },
            {
                "mode": "managed",
                "type": "google_project_iam_binding",
                "name": "viewers",
                "instances": [{"attributes": {
                    "project": "my-project",
                    "role": "roles/viewer",
                    "members": ["user:bob@example.com"],
                }}],
            },
        ],
    })


def vm_rec(instance, rec_id="r1", size="n1-standard-2"):
    return VMRecommendation(
        instance_id=f"//compute.googleapis.com/projects/p/zones/z/instances/{instance}",
        size=size,
        recommendation_id=rec_id,
        recommendation_etag=f"etag-{rec_id}",
    )


def test_strip_instance_prefix():
    assert strip_instance_prefix("//compute.googleapis.com/projects/p") == "projects/p"
    assert strip_instance_prefix("https://www.googleapis.com/compute/v1/projects/p") == "projects/p"
    assert strip_instance_prefix("projects/p") == "projects/p"


def test_vm_match_attaches_declaration_name():
    matched = match_vm_resources(make_state(), [vm_rec("i")])
    assert len(matched) == 1
    assert matched[0].tf_resource_name == "default"
    assert matched[0].recommendation.recommendation_id == "r1"
    assert matched[0].size == "n1-standard-2"


def test_vm_match_by_self_link():
    matched = match_vm_resources(make_state(), [vm_rec("old", rec_id="r2")])
    assert [m.tf_resource_name for m in matched] == ["legacy"]


def test_vm_unknown_instance_is_dropped():
    assert match_vm_resources(make_state(), [vm_rec("missing")]) == []


def test_vm_duplicate_state_entries_first_wins():
    state = StateSnapshot.from_dict({"resources": [
        {"type": "google_compute_instance", "name": "first",
         "instances": [{"attributes": {"id": "projects/p/zones/z/instances/i"}}]},
        {"type": "google_compute_instance", "name": "second",
         "instances": [{"attributes": {"id": "projects/p/zones/z/instances/i"}}]},
    ]})
    matched = match_vm_resources(state, [vm_rec("i")])
    assert [m.tf_resource_name for m in matched] == ["first"]


def iam_rec(member, role, project="my-project", add="", rec_id="r1"):
    return IAMRecommendation(
        project=project, member=member, role=role, add=add,
        recommendation_id=rec_id, recommendation_etag=f"etag-{rec_id}",
    )


def test_iam_match_enriches_with_block_and_project():
    matched = match_iam_resources(make_state(), [iam_rec("user:bob@example.com", "roles/editor")])
    assert len(matched) == 1
    assert matched[0].resource_name == "editors"
    assert matched[0].project == "my-project"
    assert matched[0].member == "user:bob@example.com"


def test_iam_requires_role_and_member():
    recs = [
        iam_rec("user:carol@example.com", "roles/editor", rec_id="a"),
        iam_rec("user:alice@example.com", "roles/viewer", rec_id="b"),
    ]
    assert match_iam_resources(make_state(), recs) == []


def test_iam_project_numbers_are_resolved_once_per_project():
    calls = []

    def resolver(project):
        calls.append(project)
        return {"my-project": "123"}.get(project, project)

    cache = ProjectNumberCache(resolver)
    recs = [
        iam_rec("user:bob@example.com", "roles/editor", project="123", rec_id="a"),
        iam_rec("user:bob@example.com", "roles/viewer", project="projects/123", rec_id="b"),
    ]
    matched = match_iam_resources(make_state(), recs, cache)

    assert [m.resource_name for m in matched] == ["editors", "viewers"]
    assert all(m.project == "my-project" for m in matched)
    assert sorted(calls) == ["123", "my-project"]
    assert len(cache) == 2


def test_iam_other_project_does_not_match():
    recs = [iam_rec("user:bob@example.com", "roles/editor", project="other")]
    assert match_iam_resources(make_state(), recs) == []


def test_state_must_be_an_object():
    with pytest.raises(ValueError):
        StateSnapshot.from_dict([])
    with pytest.raises(ValueError):
        StateSnapshot.from_dict({"resources": "nope"})


def test_empty_state_has_no_resources():
    assert StateSnapshot.from_dict({"version": 4}).resources == ()


def test_iam_binding_without_project_matches_any_project():
    state = StateSnapshot.from_dict({"resources": [{
        "type": "google_project_iam_binding",
        "name": "viewers",
        "instances": [{"attributes": {"role": "roles/viewer", "members": ["user:bob@example.com"]}}],
    }]})
    matched = match_iam_resources(state, [iam_rec("user:bob@example.com", "roles/viewer", project="123")])
    assert [m.resource_name for m in matched] == ["viewers"]
    assert matched[0].project == ""
