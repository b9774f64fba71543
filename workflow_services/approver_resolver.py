"""
workflow_services.approver_resolver -- In-memory approver directory.

Responsibility:
    Default ``ApproverResolver``: maps role names to member user ids and
    user ids to their manager chain (direct manager first), from static
    mappings, typically built from the ``approvers`` section of the
    workflow configuration.

Architecture position:
    Services -- implements a kernel domain protocol; no persistence.

Failure modes:
    - Unknown roles and users resolve to an empty list.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence


class StaticApproverResolver:
    """ApproverResolver backed by fixed role and manager mappings."""

    def __init__(
        self,
        role_members: Mapping[str, Sequence[str]] | None = None,
        manager_chains: Mapping[str, Sequence[str]] | None = None,
    ):
        self._roles = {role: tuple(members) for role, members in (role_members or {}).items()}
        self._managers = {
            user: tuple(chain) for user, chain in (manager_chains or {}).items()
        }

    def resolve_role(self, role: str) -> list[str]:
        return list(self._roles.get(role, ()))

    def resolve_manager_chain(self, user_id: str) -> list[str]:
        """Managers of ``user_id``, nearest first."""
        return list(self._managers.get(user_id, ()))

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(sorted(self._roles))
