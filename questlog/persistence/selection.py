"""Adapter selection and identity-space translation.

Both are pure functions of the session context: the engine calls them at
the single point where it binds an adapter or submits an assignment list.
"""

from collections.abc import Iterable

from questlog.domain.member import Member
from questlog.domain.session import SessionContext
from questlog.persistence.base import PersistenceAdapter


def select_adapter(
    context: SessionContext,
    *,
    local: PersistenceAdapter,
    remote: PersistenceAdapter | None,
) -> PersistenceAdapter:
    """Remote adapter when a session is active and remote mode is enabled, else local."""
    if context.is_remote and remote is not None:
        return remote
    return local


def resolve_assignees(ids: Iterable[str], members: Iterable[Member], context: SessionContext) -> list[str]:
    """Translate an assignment list into the identity space of the active store.

    Locally assignees are member ids and pass through unchanged (deduplicated).
    Remotely each member id is mapped to its linked account id; ids that are
    already account ids are kept; anything unresolvable is dropped. An empty
    remote result falls back to the current account.
    """
    unique = list(dict.fromkeys(i for i in ids if i))
    if not context.is_remote:
        return unique

    members = list(members)
    by_member_id = {m.id: m.user_id for m in members if m.user_id}
    account_ids = {m.user_id for m in members if m.user_id}
    if context.account_id:
        account_ids.add(context.account_id)

    resolved: list[str] = []
    for assignee in unique:
        account_id = by_member_id.get(assignee) or (assignee if assignee in account_ids else None)
        if account_id and account_id not in resolved:
            resolved.append(account_id)

    if not resolved and context.account_id:
        resolved = [context.account_id]
    return resolved
