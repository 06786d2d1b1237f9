"""
Authorization evaluator.

Decides whether verified claims satisfy the requirement declared for an
operation. Requirements are plain values registered per operation
identifier; request details reach the evaluator through a narrow
``RequestContext`` interface instead of framework request objects.

Evaluation order:
1. skip -> allow
2. nothing required -> allow
3. no subject in claims -> UnauthenticatedError
4. roles -> at least one shared role, else InsufficientRoleError
5. all_of -> every entry must pass, else InsufficientPermissionError
6. any_of -> at least one entry must pass, else InsufficientPermissionError

Scope handling for a matched permission:
- ``all``: allowed
- ``department``: allowed here; department membership is filtered by the
  owning service, which knows where a resource lives
- ``own``: the request's resource id must equal the caller's employee id or
  subject. A request without a recognizable id is allowed and ownership is
  left to the service layer.
"""

from dataclasses import dataclass
from functools import wraps
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from loguru import logger

from .exceptions import (
    ForbiddenOwnershipError,
    InsufficientPermissionError,
    InsufficientRoleError,
    PermissionDeniedError,
    UnauthenticatedError,
)
from .jwt_handler import AuthenticatedClaims
from .permissions import WILDCARD, Scope, matches_permission, parse_permission

# Checked in order when resolving the resource id for own-scope checks
RESOURCE_ID_FIELDS: Tuple[str, ...] = ("id", "userId", "employeeId", "resourceId")


class RequestContext(Protocol):
    """Anything that can return a named string field (path params, a dict)."""

    def get(self, name: str) -> Optional[str]:
        ...


@dataclass(frozen=True)
class Requirement:
    """
    Access requirement declared for an operation.

    Attributes:
        any_of: Permissions combined with OR
        all_of: Permissions combined with AND
        roles: Role names, at least one must be held
        skip: Bypass every check
    """
    any_of: Tuple[str, ...] = ()
    all_of: Tuple[str, ...] = ()
    roles: Tuple[str, ...] = ()
    skip: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.any_of or self.all_of or self.roles)

    def __or__(self, other: "Requirement") -> "Requirement":
        """Merge two declarations, e.g. ``require_role("manager") | any_of(...)``."""
        return Requirement(
            any_of=self.any_of + other.any_of,
            all_of=self.all_of + other.all_of,
            roles=self.roles + other.roles,
            skip=self.skip or other.skip,
        )


NO_REQUIREMENT = Requirement()


def any_of(*permissions: str) -> Requirement:
    """Caller needs ONE of these permissions."""
    return Requirement(any_of=tuple(permissions))


def all_of(*permissions: str) -> Requirement:
    """Caller needs ALL of these permissions."""
    return Requirement(all_of=tuple(permissions))


def require_role(*roles: str) -> Requirement:
    return Requirement(roles=tuple(roles))


def skip_check() -> Requirement:
    """Public operation, or one that handles auth itself."""
    return Requirement(skip=True)


def admin_only() -> Requirement:
    return any_of(f"{WILDCARD}:{WILDCARD}:{WILDCARD}")


def manager_access(resource: str, action: str = "read") -> Requirement:
    """Department-scoped access, e.g. a manager reading their team."""
    return any_of(f"{resource}:{action}:{Scope.DEPARTMENT.value}")


def self_access(resource: str, action: str = "update") -> Requirement:
    """Own-scoped access, e.g. updating one's own profile."""
    return any_of(f"{resource}:{action}:{Scope.OWN.value}")


class RequirementRegistry:
    """
    Maps operation identifiers to their declared requirement.

    Operations that were never declared carry no requirement.
    """

    def __init__(self):
        self._requirements: Dict[str, Requirement] = {}

    def declare(self, operation: str, requirement: Requirement) -> None:
        if operation in self._requirements:
            logger.warning(f"Requirement for '{operation}' redeclared")
        self._requirements[operation] = requirement

    def requirement_for(self, operation: str) -> Requirement:
        return self._requirements.get(operation, NO_REQUIREMENT)

    def operations(self) -> List[str]:
        return sorted(self._requirements)

    def protect(self, requirement: Requirement, operation: Optional[str] = None) -> Callable:
        """
        Decorator form of ``declare``.

        The function's qualified name is the operation id unless one is
        given. The function itself is returned unchanged.
        """
        def decorator(func: Callable) -> Callable:
            self.declare(operation or func.__qualname__, requirement)
            return func

        return decorator

    def __contains__(self, operation: str) -> bool:
        return operation in self._requirements

    def __len__(self) -> int:
        return len(self._requirements)


class _EmptyContext:
    def get(self, name: str) -> Optional[str]:
        return None


class AuthorizationEvaluator:
    """
    Allow/deny decisions for operations.

    Raises on denial; returns True on allow.
    """

    def __init__(self, registry: Optional[RequirementRegistry] = None):
        """
        Initialize evaluator.

        Args:
            registry: Operation requirements (default: empty registry)
        """
        self.registry = registry or RequirementRegistry()

    def authorize(
        self,
        operation: str,
        claims: Optional[AuthenticatedClaims],
        context: Optional[RequestContext] = None,
    ) -> bool:
        """Check the requirement registered for ``operation``."""
        return self.check(self.registry.requirement_for(operation), claims, context)

    def is_allowed(
        self,
        requirement: Requirement,
        claims: Optional[AuthenticatedClaims],
        context: Optional[RequestContext] = None,
    ) -> bool:
        """Boolean form of ``check`` for callers that only need a yes/no."""
        try:
            return self.check(requirement, claims, context)
        except (PermissionDeniedError, UnauthenticatedError):
            return False

    def check(
        self,
        requirement: Requirement,
        claims: Optional[AuthenticatedClaims],
        context: Optional[RequestContext] = None,
    ) -> bool:
        """
        Evaluate a requirement against claims.

        Args:
            requirement: Declared requirement
            claims: Verified claims, or None for anonymous callers
            context: Request field accessor for own-scope checks

        Returns:
            True when access is allowed

        Raises:
            UnauthenticatedError: Requirement present but no subject
            InsufficientRoleError: No required role held
            InsufficientPermissionError: Permission requirement not met
            ForbiddenOwnershipError: Own-scope resource belongs to someone else
        """
        if requirement.skip:
            logger.debug("Permission check skipped")
            return True

        if requirement.is_empty:
            logger.debug("No permissions or roles required, allowing access")
            return True

        if claims is None or not claims.sub:
            logger.warning("Permission check failed: user not authenticated")
            raise UnauthenticatedError()

        context = context if context is not None else _EmptyContext()

        if requirement.roles:
            if not set(claims.roles or []) & set(requirement.roles):
                error = InsufficientRoleError(
                    claims.sub, "role check", requirement.roles, claims.roles or []
                )
                self._log_denial(error)
                raise error
            logger.debug(f"Role check passed for user {claims.sub}")

        if requirement.all_of:
            for required in requirement.all_of:
                try:
                    granted = self._has_permission(required, claims, context, requirement.all_of)
                except ForbiddenOwnershipError as e:
                    self._log_denial(e)
                    raise
                if not granted:
                    error = InsufficientPermissionError(
                        claims.sub, "all-of permission check", requirement.all_of, claims.permissions
                    )
                    self._log_denial(error)
                    raise error

        if requirement.any_of:
            ownership_error = None
            for required in requirement.any_of:
                try:
                    if self._has_permission(required, claims, context, requirement.any_of):
                        break
                except ForbiddenOwnershipError as e:
                    ownership_error = e
            else:
                error = ownership_error or InsufficientPermissionError(
                    claims.sub, "any-of permission check", requirement.any_of, claims.permissions
                )
                self._log_denial(error)
                raise error

        logger.debug(f"Permission check passed for user {claims.sub}")
        return True

    def _has_permission(
        self,
        required: str,
        claims: AuthenticatedClaims,
        context: RequestContext,
        declared: Iterable[str] = (),
    ) -> bool:
        """Exact membership first, then wildcard matching; scope on success."""
        held = claims.permissions or []

        if required in held:
            return self._validate_scope(required, claims, context, declared)

        for permission in held:
            if matches_permission(required, permission):
                return self._validate_scope(required, claims, context, declared)

        return False

    def _validate_scope(
        self,
        permission: str,
        claims: AuthenticatedClaims,
        context: RequestContext,
        required: Iterable[str],
    ) -> bool:
        parsed = parse_permission(permission)
        if parsed is None:
            logger.error(f"Malformed permission string in requirement: {permission!r}")
            return False

        scope = parsed.scope

        if scope == Scope.OWN.value:
            resource_id = resource_id_from(context)
            if not resource_id:
                # Nothing to compare against; the owning service re-checks
                return True

            if resource_id == claims.employee_id:
                logger.debug(f"Resource ownership validated for user {claims.sub}")
                return True

            if resource_id == claims.sub:
                logger.debug(f"User self-access validated for user {claims.sub}")
                return True

            logger.warning(
                f"Resource ownership check failed. Resource ID: {resource_id}, "
                f"employee ID: {claims.employee_id}, user ID: {claims.sub}"
            )
            raise ForbiddenOwnershipError(claims.sub, f"access resource {resource_id}", list(required), claims.permissions)

        # 'all', 'department' and anything else pass at this layer
        return True

    @staticmethod
    def _log_denial(error: PermissionDeniedError) -> None:
        try:
            logger.bind(
                audit=True,
                user_id=error.user_id,
                required=error.required,
                held=error.held,
            ).warning(
                f"{type(error).__name__} for user {error.user_id}. "
                f"Required: {', '.join(error.required) or 'none'}, "
                f"Has: {', '.join(error.held) or 'none'}"
            )
        except Exception:
            # A broken log sink must not alter the decision
            pass


def resource_id_from(context: RequestContext) -> Optional[str]:
    """First non-empty value among the well-known resource id fields."""
    for name in RESOURCE_ID_FIELDS:
        value = context.get(name)
        if value:
            return str(value)
    return None


def require(
    evaluator: AuthorizationEvaluator,
    requirement: Requirement,
    claims_arg: str = "claims",
    context_arg: str = "context",
) -> Callable:
    """
    Guard a plain function with a requirement.

    The wrapped function must accept the claims (and optionally the request
    context) as keyword arguments.

    Examples:
        >>> @require(evaluator, any_of("leave:approve:department"))
        ... def approve_leave(leave_id, *, claims, context=None):
        ...     ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            evaluator.check(requirement, kwargs.get(claims_arg), kwargs.get(context_arg))
            return func(*args, **kwargs)

        wrapper.requirement = requirement
        return wrapper

    return decorator
