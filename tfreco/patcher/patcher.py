from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from tfreco.config import Settings, get_settings
from tfreco.manifests.locate import (
    Span,
    find_attribute,
    find_declaration,
    find_declarations,
    line_to_offset,
    list_items,
    offset_to_line,
    unquote,
)
from tfreco.manifests.resolve import ValueResolver
from tfreco.manifests.walk import load_manifest_files, load_variables, write_manifest_files
from tfreco.models import ClaimedRecommendation, ManifestFile, MatchedIAM, MatchedVM, claim_for
from tfreco.state.match import COMPUTE_INSTANCE_TYPE, IAM_BINDING_TYPE
from .report import PatchResult
from .surgery import append_transformed_copy, comment_block, comment_line, comment_span, replace_line

logger = logging.getLogger(__name__)

MACHINE_TYPE_LINE = re.compile(r'^([ \t]*machine_type[ \t]*=[ \t]*)("[^"\n]*"|[^\s#/]+)(.*)$')


class _Workspace:
    """Original and current contents of every manifest in one directory."""

    def __init__(self, manifest_dir: str, settings: Settings):
        self.manifest_dir = manifest_dir
        self.settings = settings
        files = load_manifest_files(manifest_dir, settings.manifest_ext, settings.io_workers)
        variables = load_variables(Path(manifest_dir) / settings.variables_file)
        self.resolver = ValueResolver.for_files(files, variables)
        self.original: Dict[str, str] = {f.path: f.contents for f in files}
        self.current: Dict[str, str] = dict(self.original)

    @property
    def paths(self) -> List[str]:
        return list(self.current)

    def resolved(self, path: str) -> str:
        return self.resolver.resolve(self.current[path])

    def write_changed(self, write_dir: Optional[str]) -> List[str]:
        dest = Path(write_dir or self.manifest_dir)
        dest.mkdir(parents=True, exist_ok=True)
        changed = [
            ManifestFile(path=str(dest / Path(path).name), contents=contents)
            for path, contents in self.current.items()
            if contents != self.original[path]
        ]
        return write_manifest_files(changed, self.settings.io_workers)


# -- VM rightsizing ----------------------------------------------------------

def _machine_type_line(original_line: str, size: str) -> str:
    body = original_line.rstrip("\r")
    m = MACHINE_TYPE_LINE.match(body)
    if m:
        return f'{m.group(1)}"{size}"{m.group(3)}'
    indent = body[:len(body) - len(body.lstrip())]
    return f'{indent}machine_type = "{size}"'


def _original_value(original: str, resource_name: str, line: int) -> Optional[Span]:
    """machine_type span in the original text, when it sits on the same line as in the resolved view."""
    decl = find_declaration(original, COMPUTE_INSTANCE_TYPE, resource_name)
    if decl is None:
        return None
    attr = find_attribute(original, decl, "machine_type")
    if attr is None or offset_to_line(original, attr.start) != line:
        return None
    return attr


def edit_machine_type(original: str, resolved: str, resource_name: str, size: str) -> Optional[Tuple[str, int]]:
    """
    Set machine_type of one google_compute_instance declaration.

    Returns:
        (new content, line) when the declaration exists; the content is
        unchanged when the size is already applied. None when there is no
        declaration with a machine_type.
    """
    decl = find_declaration(resolved, COMPUTE_INSTANCE_TYPE, resource_name)
    if decl is None:
        return None
    attr = find_attribute(resolved, decl, "machine_type")
    if attr is None:
        return None

    line = offset_to_line(resolved, attr.start)
    if unquote(attr.groups[0]) == size:
        return original, line

    value = _original_value(original, resource_name, line)
    if value is not None:
        return original[:value.value_start] + f'"{size}"' + original[value.end:], line
    original_line = original.split("\n")[line - 1]
    return replace_line(original, line, _machine_type_line(original_line, size)), line


def patch_vm_manifests(manifest_dir: str, resources: Sequence[MatchedVM], write_dir: Optional[str] = None,
                       settings: Optional[Settings] = None) -> PatchResult:
    """
    Rewrite the machine_type of every matched compute instance declaration.

    Args:
        manifest_dir: Directory holding the manifests
        resources: Matched VM recommendations
        write_dir: Where changed files are written, defaults to manifest_dir

    Returns:
        PatchResult with the claimed recommendations and changed files
    """
    ws = _Workspace(manifest_dir, settings or get_settings())
    result = PatchResult()

    for resource in resources:
        rec = resource.recommendation
        for path in ws.paths:
            outcome = edit_machine_type(ws.current[path], ws.resolved(path), resource.tf_resource_name, rec.size)
            if outcome is None:
                continue
            contents, line = outcome
            if contents == ws.current[path]:
                logger.debug(f"{resource.tf_resource_name} already uses {rec.size}, nothing to change")
                result.skipped.append(rec.recommendation_id)
                break
            ws.current[path] = contents
            result.claim(claim_for(rec))
            change = f"{Path(path).name}:{line}: {resource.tf_resource_name} machine_type -> {rec.size}"
            result.changes.append(change)
            logger.info(change)
            break
        else:
            logger.debug(f"No declaration for google_compute_instance.{resource.tf_resource_name}")
            result.skipped.append(rec.recommendation_id)

    result.changed_files = ws.write_changed(write_dir)
    return result


def apply_vm_edits(manifest_dir: str, resources: Sequence[MatchedVM],
                   write_dir: Optional[str] = None) -> List[ClaimedRecommendation]:
    return patch_vm_manifests(manifest_dir, resources, write_dir).claimed


# -- IAM bindings --------------------------------------------------------------

def _binding_matches(text: str, decl: Span, project: str, role: str) -> Optional[Span]:
    """Members attribute of decl when project and role match, else None."""
    role_attr = find_attribute(text, decl, "role")
    if role_attr is None or unquote(role_attr.groups[0]) != role:
        return None
    project_attr = find_attribute(text, decl, "project")
    # a binding without a project on either side uses the provider project
    if project and project_attr is not None and unquote(project_attr.groups[0]) != project:
        return None
    members = find_attribute(text, decl, "members")
    if members is None or not members.groups[0].startswith("["):
        return None
    return members


def _comment_member(original: str, item: Tuple[str, int, int]) -> Tuple[str, int]:
    """Comment out one list item: the whole line when it holds nothing else."""
    _, start, end = item
    line = offset_to_line(original, start)
    line_start = line_to_offset(original, line)
    line_end = original.find("\n", line_start)
    line_end = len(original) if line_end == -1 else line_end

    after = end
    while after < line_end and original[after] in " \t":
        after += 1
    if after < line_end and original[after] == ",":
        after += 1

    rest = original[line_start:start] + original[after:line_end]
    if not rest.strip():
        return comment_line(original, line), line
    return comment_span(original, line, start - line_start, after - line_start), line


def edit_iam_binding(original: str, resolved: str, resource: MatchedIAM) -> Optional[Tuple[str, str]]:
    """
    Remove resource.member from the matching google_project_iam_binding.

    Returns:
        (new content, description) when a binding was found, else None
    """
    resolved_decls = find_declarations(resolved, IAM_BINDING_TYPE, resource.resource_name)
    for index, decl in enumerate(resolved_decls):
        members_attr = _binding_matches(resolved, decl, resource.project, resource.role)
        if members_attr is None:
            continue
        values = [unquote(raw) for raw, _, _ in list_items(resolved, members_attr.value_start, members_attr.end)]
        if resource.member not in values:
            continue

        remaining = [v for v in values if v != resource.member]
        if remaining:
            original_items = _original_items(original, resource.resource_name, index)
            position = values.index(resource.member)
            if original_items is not None and len(original_items) == len(values):
                contents, line = _comment_member(original, original_items[position])
            else:
                # structure differs between views; fall back to the resolved offsets
                _, start, _ = list_items(resolved, members_attr.value_start, members_attr.end)[position]
                line = offset_to_line(resolved, start)
                contents = comment_line(original, line)
            return contents, f"line {line}: removed {resource.member}"

        start_line = offset_to_line(resolved, decl.start)
        end_line = offset_to_line(resolved, decl.end - 1)
        contents = original
        description = f"lines {start_line}-{end_line}: commented out binding"
        if resource.add:
            appended = append_transformed_copy(contents, start_line, end_line, resource.add)
            if appended == contents:
                logger.debug(f"No role assignment to rewrite in {resource.resource_name}")
            else:
                contents = appended
                description += f", re-added with role {resource.add}"
        contents = comment_block(contents, start_line, end_line)
        return contents, description
    return None


def _original_items(original: str, name: str, index: int) -> Optional[List[Tuple[str, int, int]]]:
    decls = find_declarations(original, IAM_BINDING_TYPE, name)
    if index >= len(decls):
        return None
    members = find_attribute(original, decls[index], "members")
    if members is None or not members.groups[0].startswith("["):
        return None
    return list_items(original, members.value_start, members.end)


def patch_iam_manifests(manifest_dir: str, resources: Sequence[MatchedIAM], write_dir: Optional[str] = None,
                        settings: Optional[Settings] = None) -> PatchResult:
    """
    Remove members from IAM binding declarations, moving them to the
    recommended role when one is given.

    Args:
        manifest_dir: Directory holding the manifests
        resources: Matched IAM recommendations
        write_dir: Where changed files are written, defaults to manifest_dir

    Returns:
        PatchResult with the claimed recommendations and changed files
    """
    ws = _Workspace(manifest_dir, settings or get_settings())
    result = PatchResult()

    for resource in resources:
        rec = resource.recommendation
        for path in ws.paths:
            outcome = edit_iam_binding(ws.current[path], ws.resolved(path), resource)
            if outcome is None:
                continue
            ws.current[path], description = outcome
            result.claim(claim_for(rec))
            change = f"{Path(path).name}: {resource.resource_name} {description}"
            result.changes.append(change)
            logger.info(change)
            break
        else:
            logger.debug(f"No binding {resource.resource_name} with {resource.member} in {resource.role}")
            result.skipped.append(rec.recommendation_id)

    result.changed_files = ws.write_changed(write_dir)
    return result


def apply_iam_edits(manifest_dir: str, resources: Sequence[MatchedIAM],
                    write_dir: Optional[str] = None) -> List[ClaimedRecommendation]:
    return patch_iam_manifests(manifest_dir, resources, write_dir).claimed
