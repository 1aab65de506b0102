"""Reconcile findings with author-declared permissions.

Declarations come from the skill's own frontmatter and are therefore
untrusted. A matching declaration is recorded on the finding for the
reader's benefit; it never lowers severity or deduction, otherwise an
author could declare ``network`` or ``credential_access`` and silence the
very alerts those capabilities deserve.
"""

from collections.abc import Sequence

from skilltrust.parser.models import DeclaredPermission, Finding

# (declaration-kind keywords, finding-text keywords)
_KIND_MATCHERS: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    (
        ("credential_access", "credential"),
        (
            "credential", "api_key", "api-key", "secret_key", "secret-key",
            "access_token", "access-token", "private_key", "private-key",
            "password", "env_access", ".env", ".ssh", "id_rsa", "id_ed25519",
        ),
    ),
    (
        ("network",),
        ("network", "url", "http", "https", "fetch", "download", "external", "domain", "endpoint"),
    ),
    (
        ("file_write", "file_modify"),
        (
            "file_write", "file-write", "file_modify", "file-modify", "write",
            "state persistence", "save", "store", "persist",
        ),
    ),
    (
        ("system_modification", "system"),
        ("system modification", "system_modification", "install", "modify system",
         "config", "chmod", "chown"),
    ),
    (
        ("exec", "shell"),
        ("exec", "shell", "execute", "run", "spawn", "process", "command"),
    ),
)


def find_matching_declaration(
    finding: Finding,
    declared: Sequence[DeclaredPermission],
) -> DeclaredPermission | None:
    """Return the first declaration whose kind covers this finding."""
    text = f"{finding.title} {finding.evidence} {finding.description}".lower()
    for declaration in declared:
        kind = declaration.kind.lower()
        for kind_keywords, finding_keywords in _KIND_MATCHERS:
            if not any(k in kind for k in kind_keywords):
                continue
            if any(k in text for k in finding_keywords):
                return declaration
    return None


def annotate_declared(
    findings: Sequence[Finding],
    declared: Sequence[DeclaredPermission],
) -> list[Finding]:
    """Return findings with matching declarations noted in title and description."""
    if not declared:
        return list(findings)

    annotated: list[Finding] = []
    for finding in findings:
        match = find_matching_declaration(finding, declared)
        if match is None:
            annotated.append(finding)
            continue
        note = f"Declared permission: {match.kind}"
        if match.justification:
            note += f" ({match.justification})"
        annotated.append(finding.model_copy(update={
            "title": f"{finding.title} (declared: {match.kind})",
            "description": f"{finding.description}\n\n{note}",
        }))
    return annotated
