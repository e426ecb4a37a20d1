"""Row-level security filter synthesis.

Turns a resolved RLS policy plus the caller's user id into a WHERE
fragment with positional (``$N``) parameters:

    >>> build_rls_filter(RlsContext("own_work_orders_only", 42), RlsFieldConfig(), 2)
    RlsFilter(clause='customer_id = $3', params=(42,), applied=True)

Unknown policies, unsafe column names and ownership policies without a
user id all fail closed to ``deny_all`` (``1=0``).  A missing context is
*not* treated as deny: it comes back unapplied and the caller decides.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Union

from fieldservice.db.identifiers import is_safe_identifier
from fieldservice.rbac.types import RlsPolicy

logger = logging.getLogger(__name__)

DENY_ALL_CLAUSE = "1=0"


@dataclasses.dataclass(frozen=True)
class RlsFieldConfig:
    """Per-entity column names the ownership policies filter on."""

    own_record_field: str = "id"
    customer_field: str = "customer_id"
    assigned_field: str = "assigned_technician_id"


@dataclasses.dataclass(frozen=True)
class RlsContext:
    """Policy resolved for (role, resource) plus the requesting user's id."""

    policy: RlsPolicy | str | None
    user_id: Any = None


@dataclasses.dataclass(frozen=True)
class RlsFilter:
    clause: str = ""
    params: tuple[Any, ...] = ()
    # True only when rows were actually restricted
    applied: bool = False

    @property
    def denies_all(self) -> bool:
        return self.clause == DENY_ALL_CLAUSE


def _deny() -> RlsFilter:
    return RlsFilter(clause=DENY_ALL_CLAUSE, applied=True)


# ---------------------------------------------------------------------------
# Policy variants
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class Unrestricted:
    """all_records / public_resource"""

    def render(self, user_id: Any, param_offset: int) -> RlsFilter:
        return RlsFilter()


@dataclasses.dataclass(frozen=True)
class DenyAll:
    def render(self, user_id: Any, param_offset: int) -> RlsFilter:
        return _deny()


@dataclasses.dataclass(frozen=True)
class _FieldMatch:
    field: str

    def render(self, user_id: Any, param_offset: int) -> RlsFilter:
        if not is_safe_identifier(self.field):
            logger.error("RLS field %r is not an allowed identifier, denying access", self.field)
            return _deny()
        if user_id is None:
            logger.warning("RLS %s needs a user id but none was supplied, denying access",
                           type(self).__name__)
            return _deny()
        return RlsFilter(
            clause=f"{self.field} = ${param_offset + 1}",
            params=(user_id,),
            applied=True,
        )


@dataclasses.dataclass(frozen=True)
class OwnRecord(_FieldMatch):
    pass


@dataclasses.dataclass(frozen=True)
class CustomerOwned(_FieldMatch):
    pass


@dataclasses.dataclass(frozen=True)
class AssignedTo(_FieldMatch):
    pass


RlsRule = Union[Unrestricted, DenyAll, OwnRecord, CustomerOwned, AssignedTo]

_RULE_FACTORIES: dict[RlsPolicy, Callable[[RlsFieldConfig], RlsRule]] = {
    RlsPolicy.ALL_RECORDS: lambda fields: Unrestricted(),
    RlsPolicy.PUBLIC_RESOURCE: lambda fields: Unrestricted(),
    RlsPolicy.OWN_RECORD_ONLY: lambda fields: OwnRecord(fields.own_record_field),
    RlsPolicy.OWN_WORK_ORDERS_ONLY: lambda fields: CustomerOwned(fields.customer_field),
    RlsPolicy.OWN_INVOICES_ONLY: lambda fields: CustomerOwned(fields.customer_field),
    RlsPolicy.OWN_CONTRACTS_ONLY: lambda fields: CustomerOwned(fields.customer_field),
    RlsPolicy.ASSIGNED_WORK_ORDERS_ONLY: lambda fields: AssignedTo(fields.assigned_field),
    RlsPolicy.DENY_ALL: lambda fields: DenyAll(),
}


def resolve_rule(policy: RlsPolicy, fields: RlsFieldConfig | None = None) -> RlsRule:
    """Map a policy name onto its variant, carrying the column it filters on."""
    return _RULE_FACTORIES[policy](fields or RlsFieldConfig())


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _field_config(entity_config: Any) -> RlsFieldConfig:
    if isinstance(entity_config, RlsFieldConfig):
        return entity_config
    return getattr(entity_config, "rls_filter", None) or RlsFieldConfig()


def build_rls_filter(
    context: RlsContext | None,
    entity_config: Any = None,
    param_offset: int = 0,
) -> RlsFilter:
    """Build the RLS WHERE fragment for one query.

    ``entity_config`` is an :class:`RlsFieldConfig` or an entity metadata
    object exposing ``rls_filter``.  Placeholders start at
    ``$<param_offset + 1>``.
    """
    if isinstance(param_offset, bool) or not isinstance(param_offset, int) or param_offset < 0:
        raise ValueError(f"param_offset must be a non-negative integer, got {param_offset!r}")

    entity = getattr(entity_config, "table_name", None)

    if context is None or not context.policy:
        logger.debug("No RLS context provided for %s", entity)
        return RlsFilter()

    try:
        policy = RlsPolicy(context.policy)
    except ValueError:
        logger.warning(
            "Unknown RLS policy %r for %s (user %s), denying access",
            context.policy, entity, context.user_id,
        )
        return _deny()

    rule = resolve_rule(policy, _field_config(entity_config))
    result = rule.render(context.user_id, param_offset)

    logger.debug(
        "RLS %s on %s -> %s",
        policy.value, entity, result.clause or "(none)",
    )
    return result


def build_rls_filter_for_find_by_id(
    context: RlsContext | None,
    entity_config: Any = None,
    param_offset: int = 1,
) -> RlsFilter:
    """Same as :func:`build_rls_filter`, with ``$1`` reserved for the record id."""
    return build_rls_filter(context, entity_config, param_offset)


def policy_allows_access(policy: RlsPolicy | str | None) -> bool:
    """False for ``deny_all`` and for names outside the policy set."""
    try:
        return RlsPolicy(policy) is not RlsPolicy.DENY_ALL
    except ValueError:
        return False


def supported_policies() -> list[str]:
    return [policy.value for policy in _RULE_FACTORIES]
