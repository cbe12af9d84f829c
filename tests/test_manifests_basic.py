import pytest

from tfreco.manifests import load_manifest_files, load_variables, resolve_view
from tfreco.manifests.resolve import ValueResolver, collect_service_accounts, resolve_variables
from tfreco.models import ManifestFile


def write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def test_load_manifest_files_filters_extension_and_is_flat(tmp_path):
    write(tmp_path / "b.tf", "# b\n")
    write(tmp_path / "a.TF", "# a\n")
    write(tmp_path / "notes.md", "ignored")
    write(tmp_path / "terraform.tfvars", 'project = "p"\n')
    (tmp_path / "modules").mkdir()
    write(tmp_path / "modules" / "nested.tf", "# nested\n")

    files = load_manifest_files(tmp_path)

    assert [f.path.rsplit("/", 1)[-1] for f in files] == ["a.TF", "b.tf"]
    assert files[1].contents == "# b\n"


def test_load_manifest_files_keeps_crlf(tmp_path):
    (tmp_path / "main.tf").write_bytes(b'a = "1"\r\nb = "2"\r\n')
    files = load_manifest_files(tmp_path)
    assert files[0].contents == 'a = "1"\r\nb = "2"\r\n'


def test_missing_manifest_directory_is_fatal(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_manifest_files(tmp_path / "nope")


def test_manifest_path_must_be_directory(tmp_path):
    f = write(tmp_path / "main.tf", "")
    with pytest.raises(NotADirectoryError):
        load_manifest_files(f)


def test_load_variables(tmp_path):
    tfvars = write(tmp_path / "terraform.tfvars", "\n".join([
        '# comment',
        'project = "my-project"',
        'region="us-central1"',
        '',
        'not a variable line',
        'machine = n1-standard-1',
    ]))
    assert load_variables(tfvars) == {
        "project": "my-project",
        "region": "us-central1",
        "machine": "n1-standard-1",
    }


def test_missing_variables_file_is_empty(tmp_path):
    assert load_variables(tmp_path / "terraform.tfvars") == {}


def test_undecodable_variables_file_is_empty(tmp_path):
    (tmp_path / "terraform.tfvars").write_bytes(b"\xff\xfe\xfa")
    assert load_variables(tmp_path / "terraform.tfvars") == {}


def test_resolve_variables_interpolated_and_bare():
    text = 'project = "${var.project}"\nzone = var.zone\nname = "${ var.project }-vm"\nother = "${var.unknown}"\n'
    resolved = resolve_variables(text, {"project": "p1", "zone": "z1"})
    assert resolved == 'project = "p1"\nzone = "z1"\nname = "p1-vm"\nother = "${var.unknown}"\n'


def test_resolve_variables_does_not_touch_longer_names():
    text = "a = var.project_id\nb = var.project\n"
    resolved = resolve_variables(text, {"project": "p1"})
    assert resolved == 'a = var.project_id\nb = "p1"\n'


def test_service_account_ids_are_resolved_across_files():
    accounts_file = ManifestFile("sa.tf", 'resource "google_service_account" "sa" {\n  account_id = "${var.sa_id}"\n}\n')
    binding_file = ManifestFile("iam.tf", 'members = ["serviceAccount:${google_service_account.sa.account_id}@p.iam.gserviceaccount.com"]\n')

    accounts = collect_service_accounts([accounts_file, binding_file], {"sa_id": "deployer"})
    assert accounts == {"sa": "deployer"}

    resolver = ValueResolver({"sa_id": "deployer"}, accounts)
    assert resolver.resolve(binding_file.contents) == 'members = ["serviceAccount:deployer@p.iam.gserviceaccount.com"]\n'


def test_commented_service_account_is_ignored():
    f = ManifestFile("sa.tf", '/* resource "google_service_account" "old" {\n  account_id = "old"\n} */\n')
    assert collect_service_accounts([f], {}) == {}


def test_resolve_view_is_parallel_and_keeps_line_count():
    files = [
        ManifestFile("a.tf", 'x = "${var.a}"\ny = 1\n'),
        ManifestFile("b.tf", "z = var.a\n"),
    ]
    view = resolve_view(files, {"a": "value"})
    assert [f.path for f in view] == ["a.tf", "b.tf"]
    for original, resolved in zip(files, view):
        assert original.contents.count("\n") == resolved.contents.count("\n")
    assert view[0].contents == 'x = "value"\ny = 1\n'
    # originals are not modified
    assert files[1].contents == "z = var.a\n"
