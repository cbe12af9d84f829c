"""
Resolved views of manifest text.

A resolved view substitutes variable and service account references with
their literal values so that declarations can be matched against values
taken from the state snapshot. It is only ever searched, never written.
Substituted values never contain newlines, so a line number computed in the
resolved view addresses the same line in the original text.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List

from tfreco.models import ManifestFile
from .locate import find_attribute, find_declarations, unquote

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_TYPE = "google_service_account"


def _single_line(value: str) -> str:
    return value.replace("\r", " ").replace("\n", " ")


def resolve_variables(text: str, variables: Dict[str, str]) -> str:
    """
    Replace ${var.NAME} with the value and bare var.NAME with the quoted value.
    Unknown variables are left as they are.
    """
    for name, value in variables.items():
        value = _single_line(value)
        interpolated = re.compile(r"\$\{[ \t]*var\." + re.escape(name) + r"[ \t]*\}")
        text = interpolated.sub(lambda _m: value, text)
        bare = re.compile(r"(?<![\w.$])var\." + re.escape(name) + r"(?![\w-])")
        text = bare.sub(lambda _m: f'"{value}"', text)
    return text


def collect_service_accounts(files: Iterable[ManifestFile], variables: Dict[str, str]) -> Dict[str, str]:
    """
    Map every declared google_service_account name to its literal account_id.
    """
    accounts: Dict[str, str] = {}
    for f in files:
        text = resolve_variables(f.contents, variables)
        for decl in find_declarations(text, SERVICE_ACCOUNT_TYPE):
            attr = find_attribute(text, decl, "account_id")
            if attr is None:
                continue
            account_id = unquote(attr.groups[0])
            if "${" in account_id or not account_id:
                continue
            accounts.setdefault(decl.groups[1], account_id)
    if accounts:
        logger.debug(f"Found service accounts: {sorted(accounts)}")
    return accounts


def resolve_service_accounts(text: str, accounts: Dict[str, str]) -> str:
    for name, account_id in accounts.items():
        ref = re.escape(SERVICE_ACCOUNT_TYPE + "." + name + ".account_id")
        interpolated = re.compile(r"\$\{[ \t]*" + ref + r"[ \t]*\}")
        text = interpolated.sub(lambda _m: account_id, text)
        bare = re.compile(r"(?<![\w.$])" + ref + r"(?![\w-])")
        text = bare.sub(lambda _m: f'"{account_id}"', text)
    return text


class ValueResolver:
    """Variable substitution followed by service account substitution."""

    def __init__(self, variables: Dict[str, str], accounts: Dict[str, str] | None = None):
        self.variables = dict(variables)
        self.accounts = dict(accounts or {})

    @classmethod
    def for_files(cls, files: Iterable[ManifestFile], variables: Dict[str, str]) -> "ValueResolver":
        files = list(files)
        return cls(variables, collect_service_accounts(files, variables))

    def resolve(self, text: str) -> str:
        text = resolve_variables(text, self.variables)
        if self.accounts:
            text = resolve_service_accounts(text, self.accounts)
        return text


def resolve_view(files: List[ManifestFile], variables: Dict[str, str]) -> List[ManifestFile]:
    """Resolved copies of files, same paths and order."""
    resolver = ValueResolver.for_files(files, variables)
    return [ManifestFile(path=f.path, contents=resolver.resolve(f.contents)) for f in files]
